"""Compositing of logos, borders and colours onto rendered QR symbols."""

import logging
import os
from dataclasses import dataclass, field

import qrcode
from PIL import Image, ImageDraw

from enhanced_qr_server.schemas import GenerationConfig, StyleSpec
from enhanced_qr_server.utils.image_utils import render_raster, render_svg

logger = logging.getLogger(__name__)

LOGO_PADDING = 5
# above this logo fraction only level H reliably recovers the covered modules
LOGO_SAFE_FRACTION = 0.2


@dataclass
class StyledArtifact:
    image: Image.Image
    warnings: list[str] = field(default_factory=list)

    def warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)


def render_styled_base(qr: qrcode.QRCode, style: StyleSpec, size: int) -> Image.Image:
    """Render the symbol with the style's colours, dot shape and gradient."""
    if style.dot_style == "diamond":
        logger.debug("Dot style 'diamond' is not supported by the renderer; drawing square modules")
    gradient = (style.gradient_start, style.gradient_end) if style.has_gradient else None
    return render_raster(
        qr,
        size,
        fill_color=style.foreground_color,
        back_color=style.background_color,
        rounded_modules=style.dot_style == "round",
        gradient=gradient,
    )


def render_styled_svg(qr: qrcode.QRCode, style: StyleSpec, size: int) -> tuple[str, list[str]]:
    """Render SVG markup with the style colours.

    Returns the markup and the style options that have no SVG rendition.
    """
    ignored = []
    if style.logo_path:
        ignored.append("logo")
    if style.has_gradient:
        ignored.append("gradient")
    if style.dot_style != "square":
        ignored.append("dot style")
    if style.border_width:
        ignored.append("border")

    warnings = [f"SVG output ignores {', '.join(ignored)}"] if ignored else []
    for message in warnings:
        logger.warning(message)
    return render_svg(qr, size, fill_color=style.foreground_color, back_color=style.background_color), warnings


def _overlay_logo(canvas: Image.Image, logo_path: str, logo_size: float, background_color: str) -> None:
    footprint = int(canvas.width * logo_size)
    x = (canvas.width - footprint) // 2
    y = (canvas.height - footprint) // 2

    with Image.open(logo_path) as src:
        logo = src.convert("RGBA").resize((footprint, footprint), Image.Resampling.LANCZOS)

    draw = ImageDraw.Draw(canvas)
    draw.rectangle(
        [x - LOGO_PADDING, y - LOGO_PADDING, x + footprint + LOGO_PADDING - 1, y + footprint + LOGO_PADDING - 1],
        fill=background_color,
    )
    canvas.paste(logo, (x, y), logo)


def apply_style(base: Image.Image, style: StyleSpec, config: GenerationConfig) -> StyledArtifact:
    """Composite border and logo over a rendered symbol.

    The result is always config.size square. Logo problems never abort: they
    are recorded as warnings and the artifact is returned without the logo.
    """
    size = config.size
    canvas = Image.new("RGB", (size, size), style.border_color if style.border_width else style.background_color)

    inner = size - 2 * style.border_width
    symbol = base if base.size == (inner, inner) else base.resize((inner, inner), Image.Resampling.NEAREST)
    canvas.paste(symbol.convert("RGB"), (style.border_width, style.border_width))

    artifact = StyledArtifact(image=canvas)

    if style.corner_radius:
        logger.debug("Corner radius %s requested; rounded corners are not rendered", style.corner_radius)

    if not style.logo_path:
        return artifact

    if style.logo_size > LOGO_SAFE_FRACTION and config.error_correction_level != "H":
        artifact.warn(
            f"Logo covers {style.logo_size:.0%} of the code at error correction level "
            f"{config.error_correction_level}; level H is recommended"
        )

    if not os.path.isfile(style.logo_path):
        artifact.warn(f"Logo not found, skipping: {style.logo_path}")
        return artifact

    try:
        _overlay_logo(canvas, style.logo_path, style.logo_size, style.background_color)
    except Exception as e:
        artifact.warn(f"Failed to apply logo {style.logo_path}: {e}")

    return artifact
