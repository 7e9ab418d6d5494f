"""Heuristic quality scoring for decoded QR images.

The score starts at 100 and loses fixed penalties for low resolution, weak
luminance contrast and long content. Thresholds are fixed so identical inputs
always give identical scores.
"""

import logging
from dataclasses import dataclass

from PIL import Image

from enhanced_qr_server.schemas import QualityReport, Readability

logger = logging.getLogger(__name__)

MIN_DIMENSION = 200
MIN_CONTRAST = 128
MAX_CONTENT_LENGTH = 1000

RESOLUTION_PENALTY = 20
CONTRAST_PENALTY = 30
LENGTH_PENALTY = 10

UNDECODABLE_RECOMMENDATIONS = ["QR code could not be decoded", "Check image quality and contrast"]


@dataclass(frozen=True)
class ImageDimensions:
    width: int
    height: int


@dataclass(frozen=True)
class LuminanceStats:
    minimum: int
    maximum: int

    @property
    def contrast(self) -> int:
        return self.maximum - self.minimum


def measure_image(img: Image.Image) -> tuple[ImageDimensions, LuminanceStats]:
    """Collect the dimensions and luminance range the assessor scores."""
    minimum, maximum = img.convert("L").getextrema()
    return ImageDimensions(width=img.width, height=img.height), LuminanceStats(minimum=minimum, maximum=maximum)


def readability_for(score: int) -> Readability:
    if score >= 90:
        return Readability.EXCELLENT
    if score >= 70:
        return Readability.GOOD
    if score >= 50:
        return Readability.FAIR
    return Readability.POOR


def assess(dimensions: ImageDimensions, luminance: LuminanceStats, content: str) -> QualityReport:
    score = 100
    recommendations = []

    if dimensions.width < MIN_DIMENSION or dimensions.height < MIN_DIMENSION:
        score -= RESOLUTION_PENALTY
        recommendations.append("Increase image resolution for better readability")

    if luminance.contrast < MIN_CONTRAST:
        score -= CONTRAST_PENALTY
        recommendations.append("Improve contrast between foreground and background")

    if len(content) > MAX_CONTENT_LENGTH:
        score -= LENGTH_PENALTY
        recommendations.append("Consider reducing content length for better reliability")

    score = max(0, score)
    logger.debug("Quality score %d for %dx%d image, contrast %d", score, dimensions.width, dimensions.height, luminance.contrast)
    return QualityReport(score=score, readability=readability_for(score), recommendations=recommendations)


def undecodable_report() -> QualityReport:
    return QualityReport(score=0, readability=Readability.POOR, recommendations=list(UNDECODABLE_RECOMMENDATIONS))
