import logging
import os
from pathlib import Path
from typing import List

import yaml
from pydantic import BaseModel, Field
from pydantic_core import ValidationError

logger = logging.getLogger(__name__)
CONFIG_PATH = Path(__file__).parent / "config.yaml"
CONFIG_PATH_ENV = "QR_CONFIG_PATH"
OUTPUT_DIR_ENV = "QR_OUTPUT_DIR"


class QRGenerationConfig(BaseModel):
    default_size: int = Field(default=300)
    default_margin: int = Field(default=1)
    default_error_correction: str = Field(default="M")
    default_format: str = Field(default="png")
    max_data_length: int = Field(default=4296)
    supported_formats: List[str] = Field(default_factory=lambda: ["png", "svg", "jpeg"])


class OutputConfig(BaseModel):
    default_directory: str = Field(default="./qr-codes")
    max_batch_size: int = Field(default=100)


class DecodingConfig(BaseModel):
    preprocessing_enabled: bool = Field(default=True)
    max_image_size: str = Field(default="10MB")
    supported_image_formats: List[str] = Field(default_factory=lambda: ["png", "jpg", "jpeg", "gif", "bmp", "tiff"])


class PerformanceConfig(BaseModel):
    max_concurrent_requests: int = Field(default=10)


class StatisticsConfig(BaseModel):
    window_size: int = Field(default=1000)


class ConfigModel(BaseModel):
    qr_generation: QRGenerationConfig = Field(default_factory=QRGenerationConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    decoding: DecodingConfig = Field(default_factory=DecodingConfig)
    performance: PerformanceConfig = Field(default_factory=PerformanceConfig)
    statistics: StatisticsConfig = Field(default_factory=StatisticsConfig)


def _apply_env_overrides(cfg: ConfigModel) -> ConfigModel:
    output_dir = os.environ.get(OUTPUT_DIR_ENV)
    if output_dir:
        logger.info("Output directory overridden by %s: %s", OUTPUT_DIR_ENV, output_dir)
        cfg.output.default_directory = output_dir
    return cfg


def load_config(path: str | Path | None = None) -> ConfigModel:
    config_path = Path(path or os.environ.get(CONFIG_PATH_ENV) or CONFIG_PATH)

    if not config_path.exists():
        logger.info("No config at %s; using defaults", config_path)
        return _apply_env_overrides(ConfigModel())
    try:
        with open(config_path, "r") as f:
            raw = yaml.safe_load(f) or {}
    except Exception as e:
        logger.error("Failed to read YAML config %s: %s", config_path, e)
        raise

    try:
        cfg = ConfigModel(**raw)
        logger.info("Loaded configuration from %s", config_path)
    except ValidationError as exc:
        logger.error("Invalid configuration in %s: %s", config_path, exc)
        raise

    return _apply_env_overrides(cfg)


config = load_config()
