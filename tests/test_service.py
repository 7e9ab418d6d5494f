import os

import pytest

from enhanced_qr_server.errors import QRGenerationError, QRValidationError, UnsupportedFormatError
from enhanced_qr_server.schemas import (
    BatchItem,
    BatchRequest,
    CalendarEvent,
    ContactRecord,
    GenerationConfig,
    NetworkCredential,
    StyleSpec,
)
from enhanced_qr_server.tools.decoder import decode


def test_generate_basic_url(service, output_dir):
    result = service.generate_basic("https://example.com")
    assert result.success is True
    assert result.format == "png"
    assert result.content_type == "image/png"
    assert os.path.dirname(result.file_path) == str(output_dir)
    assert os.path.isfile(result.file_path)
    assert result.metadata.original_content == "https://example.com"

    stats = service.get_statistics()
    assert stats.total_generated == 1
    assert stats.by_format == {"png": 1}
    assert stats.top_content_types[0].type == "url"


def test_empty_content_writes_nothing(service, output_dir):
    with pytest.raises(QRValidationError, match="Content cannot be empty"):
        service.generate_basic("")
    assert not output_dir.exists() or not any(output_dir.iterdir())
    assert service.get_statistics().total_generated == 0


def test_pdf_is_unsupported(service):
    with pytest.raises(UnsupportedFormatError):
        service.generate_basic("https://example.com", GenerationConfig(format="pdf"))
    assert service.get_statistics().total_generated == 0


def test_overflow_at_level_h(service):
    with pytest.raises(QRGenerationError, match="level H"):
        service.generate_basic("a" * 3000, GenerationConfig(error_correction_level="H"))


def test_svg_result(service):
    result = service.generate_basic("https://example.com", GenerationConfig(format="svg"))
    assert result.file_path.endswith(".svg")
    assert result.content_type == "image/svg+xml"
    with open(result.file_path) as f:
        assert f.read().startswith("<svg")


def test_vcard(service):
    contact = ContactRecord(first_name="Ada", last_name="Lovelace", email="ada@example.com")
    result = service.generate_vcard(contact)
    assert result.metadata.original_content.startswith("BEGIN:VCARD")
    assert decode(result.file_path).content == result.metadata.original_content
    assert service.get_statistics().top_content_types[0].type == "vcard"


def test_wifi(service):
    result = service.generate_wifi(NetworkCredential(ssid="Office", password="s3cret", security="WPA2"))
    assert result.metadata.original_content == "WIFI:T:WPA2;S:Office;P:s3cret;H:false;;"


def test_event(service):
    event = CalendarEvent(title="Launch", start_date="2024-06-01T09:00:00Z", end_date="2024-06-01T10:00:00Z")
    result = service.generate_event(event)
    content = result.metadata.original_content
    assert "DTSTART:20240601T090000Z" in content
    assert "DTEND:20240601T100000Z" in content
    assert service.get_statistics().top_content_types[0].type == "event"


def test_styled_with_missing_logo_still_succeeds(service, tmp_path):
    style = StyleSpec(logo_path=str(tmp_path / "logo.png"))
    result = service.generate_styled("https://example.com", style)
    assert result.success is True
    assert os.path.isfile(result.file_path)
    assert any("Logo not found" in w for w in result.warnings)


def test_styled_with_logo_decodes(service, logo_path):
    style = StyleSpec(logo_path=str(logo_path), logo_size=0.2)
    result = service.generate_styled("https://example.com", style, GenerationConfig(error_correction_level="H"))
    assert result.warnings == []
    assert decode(result.file_path).content == "https://example.com"


def test_batch_continues_past_failures(service, tmp_path):
    out = tmp_path / "batch"
    request = BatchRequest(
        items=[BatchItem(content="first"), BatchItem(content=""), BatchItem(content="third")],
        output_dir=str(out),
    )
    result = service.generate_batch(request)
    assert [r.success for r in result.results] == [True, False, True]
    assert [r.index for r in result.results] == [0, 1, 2]
    assert result.success_count == 2
    assert result.failed_count == 1
    assert result.success is False
    assert result.results[1].error == "Content cannot be empty"
    assert len(list(out.iterdir())) == 2
    assert service.get_statistics().total_generated == 2


def test_batch_honours_filenames_and_format(service, tmp_path):
    out = tmp_path / "named"
    request = BatchRequest(
        items=[BatchItem(content="one", filename="first"), BatchItem(content="two", filename="second.svg")],
        output_dir=str(out),
        format="svg",
    )
    result = service.generate_batch(request)
    assert result.success is True
    assert [r.file_path for r in result.results] == [str(out / "first.svg"), str(out / "second.svg")]


def test_batch_pdf_fails_before_any_item(service, tmp_path):
    out = tmp_path / "pdf"
    with pytest.raises(UnsupportedFormatError):
        service.generate_batch(BatchRequest(items=[BatchItem(content="x")], output_dir=str(out), format="pdf"))
    assert not out.exists()
    assert service.get_statistics().total_generated == 0


def test_batch_rejects_empty_and_oversized(service):
    with pytest.raises(QRValidationError, match="cannot be empty"):
        service.generate_batch(BatchRequest(items=[]))
    with pytest.raises(QRValidationError, match="exceeds limit"):
        service.generate_batch(BatchRequest(items=[BatchItem(content="x")] * 101))


def test_statistics_are_monotonic(service):
    totals = []
    for content in ("a", "b", "c"):
        service.generate_basic(content)
        totals.append(service.get_statistics().total_generated)
    assert totals == [1, 2, 3]


def test_validate_and_optimize(service):
    report = service.validate_content("https://example.com", "url")
    assert report.valid is True
    optimized = service.optimize_content("  http://example.com  ")
    assert optimized.optimized == "https://example.com"
    assert optimized.reduction == 3


def test_reset(service):
    service.generate_basic("x")
    service.reset()
    assert service.get_statistics().total_generated == 0


def test_batch_defaults_to_service_output_dir(service, output_dir):
    result = service.generate_batch(BatchRequest(items=[BatchItem(content="default dir")]))
    assert result.output_dir == str(output_dir)
    assert os.path.dirname(result.results[0].file_path) == str(output_dir)


def test_batch_filename_extension_follows_format(service, tmp_path):
    out = tmp_path / "renamed"
    request = BatchRequest(items=[BatchItem(content="x", filename="picture.png")], output_dir=str(out), format="svg")
    result = service.generate_batch(request)
    assert result.results[0].file_path == str(out / "picture.svg")


def test_validate_reports_overflow(service):
    report = service.validate_content("a" * 4000, "text", "H")
    assert report.valid is False
    assert report.estimated_version is None
