"""Typed records exchanged between the MCP tools and the QR engine."""

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from enhanced_qr_server.config import config

HEX_COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

ErrorCorrectionLevel = Literal["L", "M", "Q", "H"]
OutputFormat = Literal["png", "svg", "pdf", "jpeg"]
DotStyle = Literal["square", "round", "diamond"]
TemplateCategory = Literal["business", "personal", "event", "marketing", "social"]


class ContentType(str, Enum):
    URL = "url"
    TEXT = "text"
    EMAIL = "email"
    PHONE = "phone"
    WIFI = "wifi"
    VCARD = "vcard"
    EVENT = "event"


class Readability(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class _Model(BaseModel):
    """Accepts both snake_case and the camelCase keys used by MCP clients."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


class GenerationConfig(_Model):
    size: int = Field(default=config.qr_generation.default_size, ge=50, le=2000)
    margin: int = Field(default=config.qr_generation.default_margin, ge=0, le=10)
    error_correction_level: ErrorCorrectionLevel = config.qr_generation.default_error_correction
    format: OutputFormat = config.qr_generation.default_format

    @field_validator("error_correction_level", mode="before")
    @classmethod
    def normalize_level(cls, v: Any) -> Any:
        return v.upper().strip() if isinstance(v, str) else v

    @field_validator("format", mode="before")
    @classmethod
    def normalize_format(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.lower().strip()
            return "jpeg" if v == "jpg" else v
        return v


class StyleSpec(_Model):
    foreground_color: str = Field(default="#000000", pattern=HEX_COLOR_PATTERN)
    background_color: str = Field(default="#ffffff", pattern=HEX_COLOR_PATTERN)
    logo_path: Optional[str] = None
    logo_size: float = Field(default=0.2, ge=0.1, le=0.4)
    corner_radius: int = Field(default=0, ge=0, le=50)
    dot_style: DotStyle = "square"
    gradient_start: Optional[str] = Field(default=None, pattern=HEX_COLOR_PATTERN)
    gradient_end: Optional[str] = Field(default=None, pattern=HEX_COLOR_PATTERN)
    border_width: int = Field(default=0, ge=0, le=20)
    border_color: str = Field(default="#000000", pattern=HEX_COLOR_PATTERN)

    @property
    def has_gradient(self) -> bool:
        return bool(self.gradient_start and self.gradient_end)


class Address(_Model):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    country: Optional[str] = None


class ContactRecord(_Model):
    first_name: str
    last_name: str
    organization: Optional[str] = None
    title: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    address: Optional[Address] = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not EMAIL_RE.match(v):
            raise ValueError(f"Invalid email address: {v}")
        return v

    @field_validator("website")
    @classmethod
    def validate_website(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            parsed = urlparse(v)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                raise ValueError(f"Invalid website URL: {v}")
        return v


class NetworkCredential(_Model):
    ssid: str
    password: Optional[str] = None
    security: Literal["WEP", "WPA", "WPA2", "WPA3", "nopass"] = "WPA2"
    hidden: bool = False


class CalendarEvent(_Model):
    title: str
    description: Optional[str] = None
    location: Optional[str] = None
    start_date: str
    end_date: Optional[str] = None
    all_day: bool = False


class GenerationMetadata(_Model):
    generated_at: str = Field(default_factory=_utcnow)
    original_content: str
    estimated_size: int


class GenerationResult(_Model):
    success: bool
    file_path: Optional[str] = None
    data: Optional[bytes | str] = None
    format: str
    size_bytes: int = 0
    content_type: str
    metadata: Optional[GenerationMetadata] = None
    warnings: list[str] = Field(default_factory=list)
    error: Optional[str] = None

    def summary(self) -> dict[str, Any]:
        """Return a JSON-able view without the raw artifact payload."""
        return self.model_dump(mode="json", exclude={"data"})


class DecodeMetadata(_Model):
    version: Optional[int] = None
    error_correction_level: Optional[str] = None
    mask_pattern: Optional[int] = None
    module_count: Optional[int] = None


class QualityReport(_Model):
    score: int
    readability: Readability
    recommendations: list[str] = Field(default_factory=list)


class DecodeResult(_Model):
    success: bool
    content: Optional[str] = None
    format: Optional[str] = None
    metadata: Optional[DecodeMetadata] = None
    quality: Optional[QualityReport] = None
    error: Optional[str] = None


class Template(_Model):
    name: str = Field(min_length=1)
    description: str
    category: TemplateCategory
    style: StyleSpec = Field(default_factory=StyleSpec)
    config: GenerationConfig = Field(default_factory=GenerationConfig)


class ContentTypeCount(_Model):
    type: str
    count: int


class StatisticsSnapshot(_Model):
    total_generated: int
    by_format: dict[str, int]
    by_template: dict[str, int]
    average_size: float
    average_generation_time: float
    top_content_types: list[ContentTypeCount]
    last_generated: Optional[str] = None


class BatchItem(_Model):
    content: str
    filename: Optional[str] = None
    style: Optional[StyleSpec] = None


class BatchRequest(_Model):
    items: list[BatchItem]
    output_dir: Optional[str] = None
    format: Literal["png", "svg", "pdf"] = "png"
    base_config: Optional[GenerationConfig] = None


class BatchItemResult(_Model):
    index: int
    success: bool
    file_path: Optional[str] = None
    error: Optional[str] = None


class BatchResult(_Model):
    success: bool
    output_dir: str
    success_count: int
    failed_count: int
    results: list[BatchItemResult]


class ContentValidationReport(_Model):
    valid: bool
    content_length: int
    content_type: ContentType
    complexity: str
    estimated_version: Optional[int] = None
    recommendations: list[str] = Field(default_factory=list)


class OptimizationResult(_Model):
    original: str
    optimized: str
    original_length: int
    optimized_length: int
    reduction: int
    applied: list[str] = Field(default_factory=list)
