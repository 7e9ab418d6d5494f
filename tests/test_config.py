import pytest
from pydantic import ValidationError

from enhanced_qr_server.config import load_config


def test_missing_file_uses_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv("QR_OUTPUT_DIR", raising=False)
    cfg = load_config(tmp_path / "absent.yaml")
    assert cfg.qr_generation.default_size == 300
    assert cfg.qr_generation.default_error_correction == "M"
    assert cfg.output.default_directory == "./qr-codes"
    assert cfg.output.max_batch_size == 100
    assert cfg.statistics.window_size == 1000


def test_yaml_values_are_loaded(tmp_path, monkeypatch):
    monkeypatch.delenv("QR_OUTPUT_DIR", raising=False)
    path = tmp_path / "config.yaml"
    path.write_text("qr_generation:\n  default_size: 512\noutput:\n  max_batch_size: 5\n")
    cfg = load_config(path)
    assert cfg.qr_generation.default_size == 512
    assert cfg.output.max_batch_size == 5
    # unspecified sections keep their defaults
    assert cfg.performance.max_concurrent_requests == 10


def test_config_path_from_environment(tmp_path, monkeypatch):
    path = tmp_path / "env.yaml"
    path.write_text("performance:\n  max_concurrent_requests: 3\n")
    monkeypatch.setenv("QR_CONFIG_PATH", str(path))
    assert load_config().performance.max_concurrent_requests == 3


def test_output_directory_override(tmp_path, monkeypatch):
    monkeypatch.setenv("QR_OUTPUT_DIR", str(tmp_path / "elsewhere"))
    cfg = load_config(tmp_path / "absent.yaml")
    assert cfg.output.default_directory == str(tmp_path / "elsewhere")


def test_invalid_config_raises(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("qr_generation:\n  default_size: huge\n")
    with pytest.raises(ValidationError):
        load_config(path)


def test_empty_file_uses_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv("QR_OUTPUT_DIR", raising=False)
    path = tmp_path / "empty.yaml"
    path.write_text("")
    assert load_config(path).qr_generation.default_format == "png"
