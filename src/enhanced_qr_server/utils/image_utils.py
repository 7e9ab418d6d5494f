import logging
import os
import xml.etree.ElementTree as ET

import cv2
import numpy as np
import qrcode
from PIL import Image, ImageColor
from qrcode.exceptions import DataOverflowError
from qrcode.image.pil import PilImage
from qrcode.image.styledpil import StyledPilImage
from qrcode.image.styles.colormasks import SolidFillColorMask, VerticalGradiantColorMask
from qrcode.image.styles.moduledrawers.pil import CircleModuleDrawer, SquareModuleDrawer
from qrcode.image.svg import SvgPathImage

logger = logging.getLogger(__name__)

# module size of the built symbol; raster rendering picks its own to fit the canvas
BOX_SIZE = 10
SVG_NAMESPACE = "http://www.w3.org/2000/svg"

EC_LEVELS = {
    "L": qrcode.constants.ERROR_CORRECT_L,
    "M": qrcode.constants.ERROR_CORRECT_M,
    "Q": qrcode.constants.ERROR_CORRECT_Q,
    "H": qrcode.constants.ERROR_CORRECT_H,
}

# two-bit error correction indicator stored in the format information
_FORMAT_EC_BITS = {1: "L", 0: "M", 3: "Q", 2: "H"}
_FORMAT_MASK = 0x5412
_FORMAT_GENERATOR = 0x537


class LoadImageError(Exception):
    pass


def hex_to_rgb(color: str) -> tuple[int, int, int]:
    return ImageColor.getrgb(color)[:3]


def build_qr(data: str, error_correction: str = "M", border: int = 1) -> qrcode.QRCode:
    """Build a QR symbol at the smallest version that fits the data.

    Raises qrcode.exceptions.DataOverflowError when the data does not fit
    any version at the requested error correction level.
    """
    qr = qrcode.QRCode(
        version=None,
        error_correction=EC_LEVELS[error_correction],
        box_size=BOX_SIZE,
        border=border,
    )
    qr.add_data(data)
    try:
        qr.make(fit=True)
    except ValueError as e:
        # newer qrcode releases report overflow as an out of range version
        raise DataOverflowError(str(e)) from e
    return qr


def estimate_version(data: str, error_correction: str = "M") -> int:
    return build_qr(data, error_correction, border=0).version


def render_raster(
    qr: qrcode.QRCode,
    size: int,
    fill_color: str = "#000000",
    back_color: str = "#ffffff",
    rounded_modules: bool = False,
    gradient: tuple[str, str] | None = None,
) -> Image.Image:
    """Render a built symbol into an RGB image of size x size pixels.

    Modules are drawn at the largest whole pixel size that fits and the symbol
    is centred on a background canvas, so every module keeps the same width.
    Only a canvas narrower than one pixel per module is resampled.
    """
    qr.box_size = max(1, size // (qr.modules_count + 2 * qr.border))

    if rounded_modules or gradient:
        if gradient:
            color_mask = VerticalGradiantColorMask(
                back_color=hex_to_rgb(back_color),
                top_color=hex_to_rgb(gradient[0]),
                bottom_color=hex_to_rgb(gradient[1]),
            )
        else:
            color_mask = SolidFillColorMask(back_color=hex_to_rgb(back_color), front_color=hex_to_rgb(fill_color))
        img = qr.make_image(
            image_factory=StyledPilImage,
            module_drawer=CircleModuleDrawer() if rounded_modules else SquareModuleDrawer(),
            color_mask=color_mask,
        )
    else:
        img = qr.make_image(image_factory=PilImage, fill_color=fill_color, back_color=back_color)

    pil_img = img.get_image().convert("RGB")
    if pil_img.width > size:
        return pil_img.resize((size, size), Image.Resampling.NEAREST)
    if pil_img.width == size:
        return pil_img

    canvas = Image.new("RGB", (size, size), back_color)
    offset = (size - pil_img.width) // 2
    canvas.paste(pil_img, (offset, offset))
    return canvas


def render_svg(qr: qrcode.QRCode, size: int, fill_color: str = "#000000", back_color: str = "#ffffff") -> str:
    """Render a built symbol as SVG markup scaled to size x size.

    The viewBox is measured in modules, quiet zone included, so the markup
    scales to any width without resampling.
    """
    img = qr.make_image(image_factory=SvgPathImage)
    root = ET.fromstring(img.to_string(encoding="unicode"))

    if "viewBox" not in root.attrib:
        dimension = root.get("width", str(size)).removesuffix("mm")
        root.set("viewBox", f"0 0 {dimension} {dimension}")
    root.set("width", str(size))
    root.set("height", str(size))

    for element in root.iter():
        if element.tag.endswith("path"):
            element.set("fill", fill_color)

    background = ET.Element(
        f"{{{SVG_NAMESPACE}}}rect", x="0", y="0", width="100%", height="100%", fill=back_color
    )
    root.insert(0, background)

    # qrcode registers an "svg:" prefix while rendering; emit the namespace unprefixed
    ET.register_namespace("", SVG_NAMESPACE)
    return ET.tostring(root, encoding="unicode")


def load_image(image_path: str, max_image_size: int) -> Image.Image:
    """Open an image file with Pillow, enforcing the configured size limit."""

    if os.path.getsize(image_path) > max_image_size:
        raise LoadImageError(f"Image file too large: {image_path}")
    try:
        img = Image.open(image_path)
        if getattr(img, "is_animated", False):
            img.seek(0)
        img.load()
    except Exception as e:
        raise LoadImageError(f"Failed to open image file: {image_path}") from e

    return img


def to_grayscale(img: Image.Image) -> np.ndarray:
    if img.mode in ("RGBA", "LA", "P"):
        # flatten transparency onto white so transparent margins read as quiet zone
        rgba = img.convert("RGBA")
        flattened = Image.new("RGBA", rgba.size, (255, 255, 255, 255))
        flattened.alpha_composite(rgba)
        img = flattened
    return np.array(img.convert("L"))


def img_preprocessing(img: Image.Image) -> np.ndarray:
    """
    Preprocess an image for QR decoding.

    Steps:
    1. If the image is smaller than 100 pixels in any dimension, upscale it to 100x100.
    2. Pad the image with a white quiet zone of 10% of its larger side.
    3. Apply Gaussian blur with a 5x5 kernel to reduce noise.
    4. Apply Otsu's thresholding to binarize the image.

    Args:
        img (Image.Image): Input image as a PIL Image.

    Returns:
        np.ndarray: Preprocessed binary image as a NumPy array.
    """

    logger.info("Starting image preprocessing...")
    if min(img.size) < 100:
        logger.info("Image size %s too small, resizing to 100x100", img.size)
        img = img.resize((100, 100), Image.Resampling.LANCZOS)

    gray = to_grayscale(img)
    logger.info("Converted image to grayscale")

    pad = max(gray.shape) // 10
    gray = cv2.copyMakeBorder(gray, pad, pad, pad, pad, cv2.BORDER_CONSTANT, value=255)

    blur = cv2.GaussianBlur(gray, (5, 5), 0)
    _, binary = cv2.threshold(blur, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)
    logger.info("Applied quiet zone padding, Gaussian blur with kernel size (5,5) and Otsu threshold")

    return binary


def _format_codeword(data: int) -> int:
    remainder = data << 10
    for shift in range(4, -1, -1):
        if remainder & (1 << (shift + 10)):
            remainder ^= _FORMAT_GENERATOR << shift
    return ((data << 10) | remainder) ^ _FORMAT_MASK


_FORMAT_CODEWORDS = {_format_codeword(data): data for data in range(32)}


def _read_bits(dark: np.ndarray, positions: list[tuple[int, int]]) -> int:
    bits = 0
    for row, col in positions:
        bits = (bits << 1) | int(dark[row, col])
    return bits


def read_format_information(grid: np.ndarray) -> tuple[str | None, int | None]:
    """Read the error correction level and mask pattern from a module grid.

    ``grid`` is a square array with one value per module and no quiet zone,
    dark modules below 128. Both copies of the 15-bit format information are
    matched against the 32 valid codewords; the closest match within a
    Hamming distance of 3 wins.
    """
    grid = np.squeeze(np.asarray(grid))
    if grid.ndim != 2 or grid.shape[0] != grid.shape[1] or grid.shape[0] < 21:
        return None, None

    dark = grid < 128
    # the top-left finder corner module is always dark
    if not dark[0, 0]:
        dark = ~dark
    n = dark.shape[0]

    first_copy = (
        [(8, col) for col in range(6)]
        + [(8, 7), (8, 8), (7, 8)]
        + [(row, 8) for row in range(5, -1, -1)]
    )
    second_copy = [(row, 8) for row in range(n - 1, n - 8, -1)] + [(8, col) for col in range(n - 8, n)]

    best_data, best_distance = None, 4
    for raw in (_read_bits(dark, first_copy), _read_bits(dark, second_copy)):
        for codeword, data in _FORMAT_CODEWORDS.items():
            distance = bin(raw ^ codeword).count("1")
            if distance < best_distance:
                best_data, best_distance = data, distance

    if best_data is None:
        return None, None
    return _FORMAT_EC_BITS[best_data >> 3], best_data & 0x7


def version_from_module_count(module_count: int) -> int | None:
    version, remainder = divmod(module_count - 17, 4)
    if remainder or not 1 <= version <= 40:
        return None
    return version
