"""Error types raised by the QR code engine."""

from typing import Any


class QRError(Exception):
    """Base exception carrying a machine readable code and contextual details."""

    code = "QR_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    @property
    def error_type(self) -> str:
        return type(self).__name__.removeprefix("QR")

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": False,
            "error": self.message,
            "error_type": self.error_type,
            "code": self.code,
            "details": self.details,
        }


class QRValidationError(QRError):
    """Input is malformed or violates a constraint."""

    code = "VALIDATION_ERROR"


class TemplateNotFoundError(QRValidationError):
    """No template is registered under the requested name."""


class QRGenerationError(QRError):
    """Encoding, styling or writing the artifact failed."""

    code = "GENERATION_ERROR"


class UnsupportedFormatError(QRGenerationError):
    """The requested output format has no encoding path."""


class QRAnalysisError(QRError):
    """Decoding pipeline failure (missing or unreadable image)."""

    code = "ANALYSIS_ERROR"
