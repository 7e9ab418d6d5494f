import numpy as np
import pytest
from PIL import Image

from enhanced_qr_server.service import QRCodeService


@pytest.fixture
def output_dir(tmp_path):
    return tmp_path / "qr-codes"


@pytest.fixture
def service(output_dir):
    return QRCodeService(output_dir=str(output_dir))


@pytest.fixture
def photo_path(tmp_path):
    """A smooth gradient image with no QR code in it."""
    gradient = np.tile(np.linspace(0, 255, 320, dtype=np.uint8), (240, 1))
    path = tmp_path / "photo.png"
    Image.fromarray(np.stack([gradient, gradient[::-1], gradient], axis=-1)).save(path)
    return path


@pytest.fixture
def logo_path(tmp_path):
    path = tmp_path / "logo.png"
    Image.new("RGBA", (50, 50), (255, 0, 0, 255)).save(path)
    return path
