"""
Tests for card compositing.
"""
import pytest
from PIL import Image

from colorcard.config import Config
from colorcard.errors import RenderingUnavailable
from colorcard.services.cards.compositor import (
    ELLIPSIS, cover_fit, cover_rect, fit_text, load_font, load_logo, render_card, scale_to_height
)
from colorcard.services.cards.layout import CardLayout, layout

WHITE = (255, 255, 255)


def darkest(image: Image.Image, box) -> int:
    return min(image.crop(box).convert("L").getdata())


class TestCoverGeometry:

    def test_wide_image_fits_height(self):
        assert cover_rect(200, 100, 100, 100) == (-50.0, 0.0, 200.0, 100.0)

    def test_tall_image_fits_width(self):
        assert cover_rect(100, 200, 100, 100) == (0.0, -50.0, 100.0, 200.0)

    def test_same_aspect_fills_exactly(self):
        assert cover_rect(400, 300, 800, 600) == (0.0, 0.0, 800.0, 600.0)

    def test_cover_fit_fills_box(self, striped_image):
        fitted = cover_fit(striped_image, 100, 100)
        assert fitted.size == (100, 100)
        # Only the green middle third survives the crop
        assert fitted.getpixel((5, 50)) == (0, 255, 0)
        assert fitted.getpixel((95, 50)) == (0, 255, 0)

    def test_scale_to_height_keeps_aspect(self):
        scaled = scale_to_height(Image.new("RGBA", (100, 50)), 24)
        assert scaled.size == (48, 24)


class TestRenderCard:

    def test_supersampled_dimensions(self, striped_image):
        card = render_card(striped_image, "Ada", layout("normal"), pixel_ratio=2)
        assert card.size == (800, 1066)
        assert card.mode == "RGB"

    def test_logical_dimensions(self, striped_image):
        card = render_card(striped_image, "Ada", layout("instagram-post"), pixel_ratio=1)
        assert card.size == (1080, 1350)

    def test_photo_is_cover_fitted_and_centred(self, striped_image):
        card = render_card(striped_image, "", layout("normal"), pixel_ratio=2)
        # 2130px wide after fitting the height; 665px overflow cropped per side
        assert card.getpixel((400, 355)) == (0, 255, 0)
        assert card.getpixel((0, 355)) == (255, 0, 0)
        assert card.getpixel((799, 355)) == (0, 0, 255)

    def test_text_section_is_white(self, striped_image):
        card = render_card(striped_image, "", layout("normal"), pixel_ratio=2)
        assert card.getpixel((400, 710)) == WHITE
        assert card.getpixel((799, 1065)) == WHITE

    def test_logo_drawn_in_text_section(self, striped_image):
        geometry = layout("normal").scaled(2)
        card = render_card(striped_image, "", layout("normal"), pixel_ratio=2)
        box = (geometry.padding_h, geometry.logo_top,
               geometry.width - geometry.padding_h, geometry.logo_top + geometry.logo_height)
        assert darkest(card, box) < 128

    def test_name_drawn_below_logo(self, striped_image):
        geometry = layout("normal").scaled(2)
        name_box = (geometry.padding_h, geometry.name_top, geometry.width, geometry.height)

        with_name = render_card(striped_image, "Ada Lovelace", layout("normal"), pixel_ratio=2)
        without = render_card(striped_image, "", layout("normal"), pixel_ratio=2)

        assert darkest(with_name, name_box) < 128
        assert darkest(without, name_box) == 255

    def test_hint_only_when_requested(self, striped_image):
        plain = render_card(striped_image, "", layout("normal"), pixel_ratio=1)
        hinted = render_card(striped_image, "", layout("normal"), pixel_ratio=1, include_hint=True)
        named = render_card(striped_image, "Ada", layout("normal"), pixel_ratio=1, include_hint=True)
        named_plain = render_card(striped_image, "Ada", layout("normal"), pixel_ratio=1)

        assert plain.tobytes() != hinted.tobytes()
        assert named.tobytes() == named_plain.tobytes()

    def test_missing_image_leaves_section_blank(self):
        card = render_card(None, "Ada", layout("normal"), pixel_ratio=1)
        assert card.getpixel((200, 100)) == WHITE
        assert card.size == (400, 533)

    def test_transparent_photo_shows_background(self):
        photo = Image.new("RGBA", (50, 50), (255, 0, 0, 0))
        card = render_card(photo, "", layout("normal"), pixel_ratio=1)
        assert card.getpixel((200, 100)) == WHITE

    def test_surface_allocation_failure(self):
        bogus = CardLayout(width=-10, height=-10, image_section_height=-5, text_section_height=-5,
                           padding_v=1, padding_h=1, logo_height=1, name_font_size=1,
                           logo_margin_bottom=1)
        with pytest.raises(RenderingUnavailable):
            render_card(None, "", bogus, pixel_ratio=1)


class TestLogo:

    def test_wordmark_fallback(self, monkeypatch):
        monkeypatch.setattr(Config, "LOGO_PATH", None)
        logo = load_logo()
        assert logo.mode == "RGBA"
        assert logo.width > logo.height

    def test_logo_file(self, monkeypatch, tmp_path, striped_image):
        path = tmp_path / "logo.png"
        Image.new("RGBA", (100, 50), (200, 0, 0, 255)).save(path)
        monkeypatch.setattr(Config, "LOGO_PATH", str(path))

        card = render_card(striped_image, "", layout("normal"), pixel_ratio=2)

        # Scaled to 48px high, so 96px wide from the left padding
        geometry = layout("normal").scaled(2)
        assert card.getpixel((geometry.padding_h + 10, geometry.logo_top + 10)) == (200, 0, 0)
        assert card.getpixel((geometry.padding_h + 120, geometry.logo_top + 10)) == WHITE

    def test_unreadable_logo_falls_back(self, monkeypatch, tmp_path):
        monkeypatch.setattr(Config, "LOGO_PATH", str(tmp_path / "missing.png"))
        assert load_logo().mode == "RGBA"


class TestNameFitting:

    def test_short_name_untouched(self):
        line, font = fit_text("Ada", 54, 936)
        assert line == "Ada"
        assert font is load_font(54)

    def test_long_name_clamped_to_width(self):
        name = "Wolfeschlegelsteinhausenbergerdorff " * 4
        line, font = fit_text(name, 72, 888)

        assert font.getlength(line) <= 888
        assert line.endswith(ELLIPSIS)
        assert font.size >= 43

    def test_slightly_long_name_shrinks_font(self):
        name = "W" * 12
        width = load_font(72).getlength(name)

        line, font = fit_text(name, 72, int(width * 0.9))

        assert font.size < 72
        assert font.getlength(line) <= int(width * 0.9)

    @pytest.mark.parametrize("profile", ["normal", "instagram-post", "instagram-story"])
    def test_long_name_stays_inside_padding(self, profile):
        card_layout = layout(profile)
        card = render_card(None, "W" * 200, card_layout, pixel_ratio=1)

        # A few pixels of slack for glyph overhang past the advance width
        right_gutter = (card_layout.width - card_layout.padding_h + 4, card_layout.name_top,
                        card_layout.width, card_layout.height)
        assert darkest(card, right_gutter) == 255
