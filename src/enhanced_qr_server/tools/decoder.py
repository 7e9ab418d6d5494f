import logging
import os

import cv2
import numpy as np
from PIL import Image

from enhanced_qr_server.config import config
from enhanced_qr_server.errors import QRAnalysisError
from enhanced_qr_server.schemas import DecodeMetadata, DecodeResult
from enhanced_qr_server.utils.file_utils import convert_to_bytes
from enhanced_qr_server.utils.image_utils import (
    LoadImageError,
    img_preprocessing,
    load_image,
    read_format_information,
    to_grayscale,
    version_from_module_count,
)

logger = logging.getLogger(__name__)

NO_CODE_FOUND = "No QR code found in image"
UPSCALE_TARGET = 800
MAX_UPSCALE = 8


def open_image(image_path: str) -> Image.Image:
    """Open an image for analysis, raising QRAnalysisError when it cannot be read."""
    if not os.path.isfile(image_path):
        raise QRAnalysisError(f"Image file not found: {image_path}", {"image_path": image_path})

    try:
        return load_image(image_path, convert_to_bytes(config.decoding.max_image_size))
    except LoadImageError as e:
        logger.error("Error loading image: %s", e)
        raise QRAnalysisError(str(e), {"image_path": image_path}) from e


def _candidates(img: Image.Image, preprocessing: bool):
    if preprocessing:
        yield "preprocessed", img_preprocessing(img)
    gray = to_grayscale(img)
    yield "grayscale", gray

    # small or dense codes have modules only a pixel or two wide
    smallest = min(gray.shape)
    if smallest < UPSCALE_TARGET:
        factor = min(MAX_UPSCALE, -(-UPSCALE_TARGET // smallest))
        yield f"upscaled x{factor}", cv2.resize(gray, None, fx=factor, fy=factor, interpolation=cv2.INTER_NEAREST)


def _detect(gray: np.ndarray) -> tuple[str, np.ndarray | None]:
    for detector in (cv2.QRCodeDetector(), cv2.QRCodeDetectorAruco()):
        data, _, straight = detector.detectAndDecode(gray)
        if data:
            return data, straight
    return "", None


def describe_symbol(straight: np.ndarray | None) -> DecodeMetadata:
    """Derive version, level and mask from OpenCV's rectified module grid."""
    if straight is None or np.size(straight) == 0:
        return DecodeMetadata()

    grid = np.squeeze(straight)
    module_count = int(grid.shape[0])
    level, mask = read_format_information(grid)
    return DecodeMetadata(
        version=version_from_module_count(module_count),
        error_correction_level=level,
        mask_pattern=mask,
        module_count=module_count,
    )


def decode_image(img: Image.Image, preprocessing: bool = config.decoding.preprocessing_enabled) -> DecodeResult:
    for label, gray in _candidates(img, preprocessing):
        try:
            data, straight = _detect(gray)
        except cv2.error as e:
            logger.warning("OpenCV failed on %s image: %s", label, e)
            continue
        if data:
            logger.info("Decoded QR code from %s image (%d characters)", label, len(data))
            return DecodeResult(success=True, content=data, format="text", metadata=describe_symbol(straight))

    logger.warning("Failed to retrieve qrcode data")
    return DecodeResult(success=False, error=NO_CODE_FOUND)


def decode(image_path: str) -> DecodeResult:
    """Decode the QR code in an image file.

    A missing or unreadable file raises QRAnalysisError; an image without a
    detectable code returns ``success=False``.
    """
    img = open_image(image_path)
    return decode_image(img)
