import logging
import re
from urllib.parse import urlparse

from qrcode.exceptions import DataOverflowError

from enhanced_qr_server.config import config
from enhanced_qr_server.errors import QRValidationError
from enhanced_qr_server.schemas import EMAIL_RE, ContentType, ContentValidationReport, ErrorCorrectionLevel
from enhanced_qr_server.utils.image_utils import estimate_version

logger = logging.getLogger(__name__)

PHONE_RE = re.compile(r"^(tel:)?\+?[0-9 ()\-.]{5,20}$", re.IGNORECASE)


def validate_content(content: str) -> None:
    """Reject empty content and content beyond the symbol capacity."""
    if not content or not content.strip():
        raise QRValidationError("Content cannot be empty")

    max_length = config.qr_generation.max_data_length
    if len(content) > max_length:
        raise QRValidationError(
            f"Content exceeds maximum length of {max_length} characters",
            {"length": len(content)},
        )


def estimate_complexity(content: str) -> str:
    if len(content) < 50:
        return "Low"
    if len(content) < 200:
        return "Medium"
    if len(content) < 500:
        return "High"
    return "Very High"


def _looks_like_url(content: str) -> bool:
    parsed = urlparse(content)
    return bool(parsed.scheme and parsed.netloc)


def _type_recommendations(content: str, content_type: ContentType) -> list[str]:
    checks = {
        ContentType.URL: (_looks_like_url, "Content does not appear to be a valid URL"),
        ContentType.EMAIL: (lambda c: bool(EMAIL_RE.match(c)), "Content does not appear to be a valid email address"),
        ContentType.PHONE: (lambda c: bool(PHONE_RE.match(c)), "Content does not appear to be a valid phone number"),
        ContentType.WIFI: (lambda c: c.startswith("WIFI:"), "Content does not follow the WIFI: payload format"),
        ContentType.VCARD: (
            lambda c: c.startswith("BEGIN:VCARD") and c.rstrip().endswith("END:VCARD"),
            "Content is not a complete vCard block",
        ),
        ContentType.EVENT: (
            lambda c: c.startswith("BEGIN:VEVENT") and c.rstrip().endswith("END:VEVENT"),
            "Content is not a complete calendar event block",
        ),
    }
    check = checks.get(content_type)
    if check and not check[0](content):
        return [check[1]]
    return []


def validate_for_type(
    content: str,
    content_type: ContentType = ContentType.TEXT,
    error_correction_level: ErrorCorrectionLevel = "M",
) -> ContentValidationReport:
    """Validate content and report type-specific findings.

    Raises QRValidationError when the base constraints fail; format findings
    are returned as recommendations.
    """
    validate_content(content)
    content_type = ContentType(content_type)

    recommendations = _type_recommendations(content, content_type)

    try:
        version = estimate_version(content, error_correction_level)
    except DataOverflowError:
        version = None
        recommendations.append(
            f"Content does not fit a QR code at error correction level {error_correction_level}; "
            "use a lower level or shorten the content"
        )
    else:
        if version > 10:
            recommendations.append(f"Content needs symbol version {version}; dense codes are harder to scan")

    logger.info("Validated content: type=%s length=%d version=%s", content_type.value, len(content), version)

    return ContentValidationReport(
        valid=version is not None,
        content_length=len(content),
        content_type=content_type,
        complexity=estimate_complexity(content),
        estimated_version=version,
        recommendations=recommendations,
    )


def classify_content(content: str) -> ContentType:
    """Best-effort guess of what kind of payload a string carries."""
    if content.startswith("BEGIN:VCARD"):
        return ContentType.VCARD
    if content.startswith("BEGIN:VEVENT"):
        return ContentType.EVENT
    if content.startswith("WIFI:"):
        return ContentType.WIFI
    if content.lower().startswith("mailto:") or EMAIL_RE.match(content):
        return ContentType.EMAIL
    if _looks_like_url(content) and urlparse(content).scheme in ("http", "https"):
        return ContentType.URL
    if PHONE_RE.match(content):
        return ContentType.PHONE
    return ContentType.TEXT
