import numpy as np
import pytest
import qrcode

from enhanced_qr_server.errors import QRAnalysisError
from enhanced_qr_server.schemas import GenerationConfig, NetworkCredential
from enhanced_qr_server.tools.decoder import NO_CODE_FOUND, decode, describe_symbol
from enhanced_qr_server.utils.image_utils import EC_LEVELS, read_format_information, version_from_module_count


def _module_grid(data: str, level: str, mask: int) -> np.ndarray:
    qr = qrcode.QRCode(error_correction=EC_LEVELS[level], mask_pattern=mask)
    qr.add_data(data)
    qr.make(fit=True)
    # dark modules are 0, light modules 255, as in OpenCV's rectified output
    return np.where(np.array(qr.modules, dtype=bool), 0, 255).astype(np.uint8)


@pytest.mark.parametrize("level, mask", [("L", 0), ("M", 3), ("Q", 5), ("H", 7)])
def test_read_format_information(level, mask):
    grid = _module_grid("https://example.com", level, mask)
    assert read_format_information(grid) == (level, mask)


def test_read_format_information_tolerates_inverted_polarity_and_bit_errors():
    grid = _module_grid("format info", "Q", 2)
    inverted = 255 - grid
    assert read_format_information(inverted) == ("Q", 2)

    damaged = grid.copy()
    damaged[8, 0] = 255 - damaged[8, 0]
    damaged[8, 1] = 255 - damaged[8, 1]
    assert read_format_information(damaged) == ("Q", 2)


def test_read_format_information_rejects_non_square_grid():
    assert read_format_information(np.zeros((21, 25), dtype=np.uint8)) == (None, None)


def test_version_from_module_count():
    assert version_from_module_count(21) == 1
    assert version_from_module_count(25) == 2
    assert version_from_module_count(177) == 40
    assert version_from_module_count(22) is None


def test_describe_symbol_from_grid():
    meta = describe_symbol(_module_grid("https://example.com", "M", 4))
    assert meta.module_count == 25
    assert meta.version == 2
    assert meta.error_correction_level == "M"
    assert meta.mask_pattern == 4


def test_describe_symbol_without_grid():
    meta = describe_symbol(None)
    assert meta.version is None and meta.module_count is None


@pytest.mark.parametrize(
    "content",
    ["https://example.com", "Hello, World!", "1234567890" * 10],
)
def test_decode_round_trip(service, content):
    result = service.generate_basic(content)
    decoded = decode(result.file_path)
    assert decoded.success is True
    assert decoded.content == content
    assert decoded.format == "text"
    if decoded.metadata.module_count is not None:
        assert decoded.metadata.version == version_from_module_count(decoded.metadata.module_count)


def test_decode_round_trip_high_level_jpeg(service):
    result = service.generate_basic("jpeg round trip", GenerationConfig(format="jpeg", error_correction_level="H"))
    assert decode(result.file_path).content == "jpeg round trip"


def test_decode_structured_payload(service):
    result = service.generate_wifi(NetworkCredential(ssid="Guest", security="nopass"))
    assert decode(result.file_path).content == "WIFI:T:nopass;S:Guest;P:;H:false;;"


def test_decode_missing_file_raises(tmp_path):
    with pytest.raises(QRAnalysisError, match="not found"):
        decode(str(tmp_path / "missing.png"))


def test_decode_unreadable_file_raises(tmp_path):
    path = tmp_path / "broken.png"
    path.write_text("definitely not an image")
    with pytest.raises(QRAnalysisError, match="Failed to open"):
        decode(str(path))


def test_decode_image_without_code_is_soft_failure(photo_path):
    result = decode(str(photo_path))
    assert result.success is False
    assert result.error == NO_CODE_FOUND
    assert result.content is None


@pytest.mark.parametrize("size", [80, 120])
def test_decode_round_trip_small_canvas(service, size):
    result = service.generate_basic("https://example.com", GenerationConfig(size=size))
    assert result.warnings == []
    assert decode(result.file_path).content == "https://example.com"


def test_decode_round_trip_long_content(service):
    content = ("Meet at the north entrance of the conference centre at 9am. " * 4)[:240]
    result = service.generate_basic(content, GenerationConfig(size=800))
    decoded = decode(result.file_path)
    assert decoded.success is True
    assert decoded.content == content


def test_tiny_canvas_is_flagged(service):
    result = service.generate_basic("https://example.com", GenerationConfig(size=50))
    assert result.success is True
    assert any("may not scan" in w for w in result.warnings)
