import pytest

from enhanced_qr_server.schemas import GenerationConfig, StyleSpec
from enhanced_qr_server.tools.styling import apply_style, render_styled_base
from enhanced_qr_server.utils.image_utils import build_qr


@pytest.fixture
def qr():
    return build_qr("https://example.com/styled", "H", border=2)


def _compose(qr, style, size=300, level="H"):
    config = GenerationConfig(size=size, error_correction_level=level)
    base = render_styled_base(qr, style, size - 2 * style.border_width)
    return apply_style(base, style, config)


def test_plain_style_keeps_canvas_size(qr):
    artifact = _compose(qr, StyleSpec())
    assert artifact.image.size == (300, 300)
    assert artifact.warnings == []


def test_colors_are_applied(qr):
    style = StyleSpec(foreground_color="#1a365d", background_color="#fff5f5")
    artifact = _compose(qr, style)
    # the quiet zone corner carries the background, the finder corner the foreground
    assert artifact.image.getpixel((2, 2)) == (255, 245, 245)
    colors = {color for _, color in artifact.image.getcolors(maxcolors=1 << 16)}
    assert (26, 54, 93) in colors


def test_logo_is_centered_over_backing(qr, logo_path):
    style = StyleSpec(logo_path=str(logo_path), logo_size=0.2, background_color="#ffffff")
    artifact = _compose(qr, style)
    assert artifact.warnings == []
    # footprint 60px starting at 120, backing padded by 5px
    assert artifact.image.getpixel((150, 150)) == (255, 0, 0)
    assert artifact.image.getpixel((117, 117)) == (255, 255, 255)
    assert artifact.image.getpixel((182, 182)) == (255, 255, 255)


def test_missing_logo_is_a_warning(qr, tmp_path):
    artifact = _compose(qr, StyleSpec(logo_path=str(tmp_path / "nope.png")))
    assert artifact.image.size == (300, 300)
    assert len(artifact.warnings) == 1
    assert "Logo not found" in artifact.warnings[0]


def test_corrupt_logo_is_a_warning(qr, tmp_path):
    broken = tmp_path / "broken.png"
    broken.write_bytes(b"not an image")
    artifact = _compose(qr, StyleSpec(logo_path=str(broken)))
    assert artifact.image.size == (300, 300)
    assert any("Failed to apply logo" in w for w in artifact.warnings)


def test_large_logo_below_level_h_warns(qr, logo_path):
    artifact = _compose(qr, StyleSpec(logo_path=str(logo_path), logo_size=0.35), level="M")
    assert any("level H is recommended" in w for w in artifact.warnings)
    assert artifact.image.getpixel((150, 150)) == (255, 0, 0)


def test_border_is_painted_inside_canvas(qr):
    artifact = _compose(qr, StyleSpec(border_width=10, border_color="#ff0000"))
    assert artifact.image.size == (300, 300)
    assert artifact.image.getpixel((3, 3)) == (255, 0, 0)
    assert artifact.image.getpixel((296, 150)) == (255, 0, 0)
    assert artifact.image.getpixel((12, 12)) != (255, 0, 0)


def test_round_dots_and_gradient_render(qr):
    style = StyleSpec(dot_style="round", gradient_start="#e53e3e", gradient_end="#c53030", background_color="#fff5f5")
    artifact = _compose(qr, style)
    assert artifact.image.size == (300, 300)
    assert artifact.image.getpixel((2, 2)) == (255, 245, 245)


def test_unsupported_visual_options_are_no_ops(qr):
    artifact = _compose(qr, StyleSpec(corner_radius=20, dot_style="diamond"))
    assert artifact.image.size == (300, 300)
    assert artifact.warnings == []


def test_logo_size_bounds():
    with pytest.raises(ValueError):
        StyleSpec(logo_size=0.5)
    with pytest.raises(ValueError):
        StyleSpec(logo_size=0.05)
