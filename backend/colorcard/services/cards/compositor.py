"""
Card Compositor

Draws a laid-out card into an off-screen Pillow bitmap: the photo cover-fitted
into the image section, a white text section, the logo and the user name.
All geometry comes from the CardLayout in logical pixels and is multiplied
uniformly by the supersampling pixel ratio.

Logo:
  Set COLORCARD_LOGO_PATH to a PNG with transparency. It is scaled to the
  layout's logo height, keeping its aspect ratio. Without a logo file a
  "PANTONE®" wordmark is rendered as text in its place.
"""

import math
import os
from functools import lru_cache
from typing import Optional, Tuple

from loguru import logger
from PIL import Image, ImageDraw, ImageFont

from colorcard.config import config
from colorcard.errors import CardError, CompositingFailure, RenderingUnavailable
from colorcard.services.cards.layout import CardLayout

BACKGROUND_COLOR = (255, 255, 255)
NAME_COLOR = (25, 25, 25)
HINT_COLOR = (156, 163, 175)
LOGO_COLOR = (0, 0, 0, 255)

LOGO_TEXT = "PANTONE®"
NAME_HINT_TEXT = "Enter your name above"
WORDMARK_RENDER_SIZE = 160
ELLIPSIS = "…"
# Long names shrink to this fraction of the font size before being cut
NAME_MIN_FONT_SCALE = 0.6


# ââ Fonts ââââââââââââââââââââââââââââââââââââââââââââââââââââââââââââââââââââ

_FONT_CANDIDATES_BOLD = [
    "/usr/share/fonts/truetype/liberation/LiberationSans-Bold.ttf",
    "/usr/share/fonts/liberation/LiberationSans-Bold.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "/usr/share/fonts/dejavu/DejaVuSans-Bold.ttf",
    "/System/Library/Fonts/Helvetica.ttc",
    "/Library/Fonts/Arial Bold.ttf",
    "C:/Windows/Fonts/arialbd.ttf",
]
_FONT_CANDIDATES_REGULAR = [
    "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
    "/usr/share/fonts/liberation/LiberationSans-Regular.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/dejavu/DejaVuSans.ttf",
    "/System/Library/Fonts/Helvetica.ttc",
    "/Library/Fonts/Arial.ttf",
    "C:/Windows/Fonts/arial.ttf",
]


@lru_cache(maxsize=2)
def find_font(bold: bool = False) -> Optional[str]:
    """
    Locate a sans-serif font file.

    COLORCARD_FONT_PATH always wins; otherwise common system locations are
    searched. Returns None when nothing is installed.
    """
    if config.FONT_PATH and os.path.exists(config.FONT_PATH):
        return config.FONT_PATH

    for path in (_FONT_CANDIDATES_BOLD if bold else _FONT_CANDIDATES_REGULAR):
        if os.path.exists(path):
            return path

    logger.warning("No system font found; using Pillow's bundled font")
    return None


@lru_cache(maxsize=32)
def load_font(size: int, bold: bool = False) -> ImageFont.FreeTypeFont:
    path = find_font(bold)
    if path:
        return ImageFont.truetype(path, size)
    return ImageFont.load_default(size=size)


def fit_text(text: str, size: int, max_width: int, bold: bool = False) -> Tuple[str, ImageFont.FreeTypeFont]:
    """
    Fit a single line of text into max_width pixels.

    The font shrinks down to NAME_MIN_FONT_SCALE of its size first; if the
    line is still too wide it is cut and ends in an ellipsis.
    """
    font = load_font(size, bold)
    text_width = font.getlength(text)
    if text_width <= max_width:
        return text, font

    min_size = max(1, math.floor(size * NAME_MIN_FONT_SCALE))
    font = load_font(max(min_size, math.floor(size * max_width / text_width)), bold)

    line = text
    while font.getlength(line) > max_width and len(line) > 1:
        line = line[:-2] + ELLIPSIS
    return line, font


# ââ Logo âââââââââââââââââââââââââââââââââââââââââââââââââââââââââââââââââââââ

@lru_cache(maxsize=1)
def _wordmark() -> Image.Image:
    font = load_font(WORDMARK_RENDER_SIZE, bold=True)
    left, top, right, bottom = font.getbbox(LOGO_TEXT)
    mark = Image.new("RGBA", (right - left, bottom - top), (0, 0, 0, 0))
    ImageDraw.Draw(mark).text((-left, -top), LOGO_TEXT, font=font, fill=LOGO_COLOR)
    return mark


@lru_cache(maxsize=4)
def _logo_from_file(path: str) -> Image.Image:
    with Image.open(path) as logo:
        return logo.convert("RGBA")


def load_logo() -> Image.Image:
    """Logo artwork at its native resolution (RGBA)."""
    if config.LOGO_PATH:
        try:
            return _logo_from_file(config.LOGO_PATH)
        except OSError as e:
            logger.warning(f"Logo {config.LOGO_PATH} unusable ({e}); falling back to wordmark")
    return _wordmark()


def scale_to_height(image: Image.Image, height: int) -> Image.Image:
    """Resize to a target height, preserving aspect ratio."""
    width = max(1, round(image.width * height / image.height))
    return image.resize((width, height), Image.LANCZOS)


# ââ Geometry âââââââââââââââââââââââââââââââââââââââââââââââââââââââââââââââââ

def cover_rect(src_w: int, src_h: int, box_w: int, box_h: int) -> Tuple[float, float, float, float]:
    """
    Draw rectangle that makes the source fully cover the box.

    Returns:
        (x, y, width, height) relative to the box; the overflowing dimension
        is centred, so x or y is zero or negative
    """
    image_aspect = src_w / src_h
    target_aspect = box_w / box_h

    if image_aspect > target_aspect:
        # Fit height, centre horizontally
        draw_h = float(box_h)
        draw_w = box_h * image_aspect
        return (box_w - draw_w) / 2, 0.0, draw_w, draw_h

    # Fit width, centre vertically
    draw_w = float(box_w)
    draw_h = box_w / image_aspect
    return 0.0, (box_h - draw_h) / 2, draw_w, draw_h


def cover_fit(image: Image.Image, box_w: int, box_h: int) -> Image.Image:
    """Resize and centre-crop the image so it exactly fills box_w x box_h."""
    x, y, draw_w, draw_h = cover_rect(image.width, image.height, box_w, box_h)
    new_size = (max(box_w, round(draw_w)), max(box_h, round(draw_h)))
    resized = image.resize(new_size, Image.LANCZOS)

    left = min(max(0, round(-x)), new_size[0] - box_w)
    top = min(max(0, round(-y)), new_size[1] - box_h)
    return resized.crop((left, top, left + box_w, top + box_h))


# ââ Rendering ââââââââââââââââââââââââââââââââââââââââââââââââââââââââââââââââ

def _acquire_surface(width: int, height: int) -> Image.Image:
    try:
        return Image.new("RGB", (width, height), BACKGROUND_COLOR)
    except (MemoryError, ValueError) as e:
        raise RenderingUnavailable(f"Could not allocate {width}x{height} surface: {str(e)}") from e


def render_card(image: Optional[Image.Image],
                user_name: str,
                card_layout: CardLayout,
                pixel_ratio: Optional[int] = None,
                include_hint: bool = False) -> Image.Image:
    """
    Composite a card into a fresh bitmap.

    Args:
        image: Decoded photo, or None to leave the image section blank
        user_name: Display name; omitted when empty
        card_layout: Geometry in logical pixels
        pixel_ratio: Supersampling factor (default from config)
        include_hint: Draw the "enter your name" hint when no name is set
            (live preview only, never exported)

    Returns:
        RGB image of card size multiplied by pixel_ratio

    Raises:
        RenderingUnavailable: If no drawing surface can be allocated
        CompositingFailure: On any other drawing failure
    """
    if pixel_ratio is None:
        pixel_ratio = config.PIXEL_RATIO
    geometry = card_layout.scaled(pixel_ratio)

    canvas = _acquire_surface(geometry.width, geometry.height)

    try:
        # 1) Image section, cover semantics
        if image is not None:
            photo = cover_fit(image, geometry.width, geometry.image_section_height)
            if photo.mode == "RGBA":
                canvas.paste(photo, (0, 0), photo)
            else:
                canvas.paste(photo.convert("RGB"), (0, 0))
        else:
            logger.warning("No decoded image available; image section left blank")

        draw = ImageDraw.Draw(canvas)

        # 2) Text section, hard seam below the photo
        draw.rectangle(
            (0, geometry.text_section_top, geometry.width - 1, geometry.height - 1),
            fill=BACKGROUND_COLOR
        )

        # 3) Logo, top-left of the padded text section
        logo = scale_to_height(load_logo(), geometry.logo_height)
        canvas.paste(logo, (geometry.padding_h, geometry.logo_top), logo)

        # 4) Name below the logo
        name = (user_name or "").strip()
        text_width = geometry.width - 2 * geometry.padding_h
        if name:
            line, font = fit_text(name, geometry.name_font_size, text_width)
            draw.text((geometry.padding_h, geometry.name_top), line, font=font, fill=NAME_COLOR)
        elif include_hint:
            line, font = fit_text(NAME_HINT_TEXT, geometry.name_font_size, text_width)
            draw.text((geometry.padding_h, geometry.name_top), line, font=font, fill=HINT_COLOR)

    except CardError:
        raise
    except (OSError, ValueError, MemoryError) as e:
        logger.error(f"Card compositing failed: {str(e)}")
        raise CompositingFailure(f"Card compositing failed: {str(e)}") from e

    logger.debug(
        f"Composited card {geometry.width}x{geometry.height} "
        f"(ratio {pixel_ratio}, name={'yes' if name else 'no'})"
    )
    return canvas
