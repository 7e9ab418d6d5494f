import logging
from dataclasses import dataclass, field
from io import BytesIO

import qrcode
from PIL import Image
from qrcode.exceptions import DataOverflowError

from enhanced_qr_server.config import config
from enhanced_qr_server.errors import QRGenerationError, UnsupportedFormatError
from enhanced_qr_server.schemas import GenerationConfig, GenerationMetadata, GenerationResult, StyleSpec
from enhanced_qr_server.tools.styling import apply_style, render_styled_base, render_styled_svg
from enhanced_qr_server.utils.file_utils import write_artifact
from enhanced_qr_server.utils.image_utils import build_qr, render_raster, render_svg

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    "png": "image/png",
    "jpeg": "image/jpeg",
    "svg": "image/svg+xml",
}

_PIL_FORMATS = {"png": "PNG", "jpeg": "JPEG"}

SVG_MARGIN_SCALE = 10
# below this many pixels per module raster output may not scan
MIN_PIXELS_PER_MODULE = 2


@dataclass
class EncodedArtifact:
    format: str
    data: bytes | str
    warnings: list[str] = field(default_factory=list)

    @property
    def content_type(self) -> str:
        return CONTENT_TYPES[self.format]


def ensure_supported_format(fmt: str) -> None:
    if fmt not in config.qr_generation.supported_formats or fmt not in CONTENT_TYPES:
        raise UnsupportedFormatError(
            f"Unsupported format: {fmt}. Supported formats: {', '.join(config.qr_generation.supported_formats)}",
            {"format": fmt},
        )


def _image_bytes(img: Image.Image, fmt: str) -> bytes:
    buffer = BytesIO()
    if fmt == "jpeg":
        img.convert("RGB").save(buffer, format=_PIL_FORMATS[fmt], quality=95)
    else:
        img.save(buffer, format=_PIL_FORMATS[fmt])
    return buffer.getvalue()


def _density_warnings(qr: qrcode.QRCode, canvas: int) -> list[str]:
    needed = (qr.modules_count + 2 * qr.border) * MIN_PIXELS_PER_MODULE
    if canvas >= needed:
        return []
    message = (
        f"Canvas of {canvas}px is below {needed}px for a {qr.modules_count}-module symbol; "
        "the code may not scan, increase size or lower the error correction level"
    )
    logger.warning(message)
    return [message]


def encode(payload: str, gen_config: GenerationConfig, style: StyleSpec | None = None) -> EncodedArtifact:
    """Encode a payload into PNG/JPEG bytes or SVG markup.

    The error correction level is never lowered to make a payload fit: an
    overflow is reported as QRGenerationError.
    """
    ensure_supported_format(gen_config.format)

    # vector quiet zones are margin * 10 modules wide
    border = gen_config.margin * SVG_MARGIN_SCALE if gen_config.format == "svg" else gen_config.margin
    try:
        qr = build_qr(payload, gen_config.error_correction_level, border=border)
    except DataOverflowError as e:
        reason = str(e) or "data overflow"
        raise QRGenerationError(
            f"Content does not fit a QR code at error correction level {gen_config.error_correction_level}: {reason}",
            {"length": len(payload), "error_correction_level": gen_config.error_correction_level},
        ) from e

    logger.info(
        "Encoding payload: length=%d version=%d ec=%s format=%s size=%d",
        len(payload),
        qr.version,
        gen_config.error_correction_level,
        gen_config.format,
        gen_config.size,
    )

    if gen_config.format == "svg":
        if style is None:
            return EncodedArtifact(format="svg", data=render_svg(qr, gen_config.size))
        markup, warnings = render_styled_svg(qr, style, gen_config.size)
        return EncodedArtifact(format="svg", data=markup, warnings=warnings)

    if style is None:
        img = render_raster(qr, gen_config.size)
        return EncodedArtifact(
            format=gen_config.format,
            data=_image_bytes(img, gen_config.format),
            warnings=_density_warnings(qr, gen_config.size),
        )

    inner = gen_config.size - 2 * style.border_width
    base = render_styled_base(qr, style, inner)
    artifact = apply_style(base, style, gen_config)
    return EncodedArtifact(
        format=gen_config.format,
        data=_image_bytes(artifact.image, gen_config.format),
        warnings=_density_warnings(qr, inner) + artifact.warnings,
    )


def create_qr_code(
    payload: str,
    gen_config: GenerationConfig,
    output_path: str,
    style: StyleSpec | None = None,
) -> GenerationResult:
    """Encode a payload and write the artifact to output_path."""
    artifact = encode(payload, gen_config, style)

    try:
        size_bytes = write_artifact(output_path, artifact.data)
    except OSError as e:
        logger.error("Failed to save QR code image: path=%s format=%s error=%s", output_path, artifact.format, e)
        raise QRGenerationError(f"Failed to write QR code to {output_path}: {e}", {"path": output_path}) from e

    return GenerationResult(
        success=True,
        file_path=output_path,
        data=artifact.data,
        format=artifact.format,
        size_bytes=size_bytes,
        content_type=artifact.content_type,
        metadata=GenerationMetadata(original_content=payload, estimated_size=size_bytes),
        warnings=artifact.warnings,
    )
