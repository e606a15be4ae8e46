"""
Card layout engine.

Maps a size profile to concrete pixel geometry. Pure: the same profile
always yields the same layout, so the live preview and the exported bitmap
agree.
"""
import math
from dataclasses import dataclass, asdict
from typing import Any, Dict, Union

from colorcard.services.cards.profiles import CardSizeProfile, get_profile

# Base card styling used when a profile carries no typography override
BASE_PADDING_V = 24
BASE_PADDING_H = 24
BASE_LOGO_HEIGHT = 24
BASE_NAME_FONT_SIZE = 18
BASE_LOGO_MARGIN_BOTTOM = 8


@dataclass(frozen=True)
class CardLayout:
    """Resolved geometry of one card, in logical pixels unless scaled."""

    width: int
    height: int
    image_section_height: int
    text_section_height: int
    padding_v: int
    padding_h: int
    logo_height: int
    name_font_size: int
    logo_margin_bottom: int

    @property
    def text_section_top(self) -> int:
        return self.image_section_height

    @property
    def logo_top(self) -> int:
        return self.image_section_height + self.padding_v

    @property
    def name_top(self) -> int:
        return self.logo_top + self.logo_height + self.logo_margin_bottom

    def scaled(self, pixel_ratio: int) -> "CardLayout":
        """Multiply every dimension uniformly by the supersampling ratio."""
        return CardLayout(**{key: value * pixel_ratio for key, value in asdict(self).items()})

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def layout(profile: Union[str, CardSizeProfile]) -> CardLayout:
    """
    Compute the card geometry for a size profile.

    Args:
        profile: CardSizeProfile or its name

    Returns:
        CardLayout with the image section taking floor(height * 2/3)
    """
    profile = get_profile(profile)

    image_section_height = math.floor(profile.height * profile.image_fraction)
    text_section_height = profile.height - image_section_height

    if profile.has_typography_override:
        padding_v = profile.padding_v
        padding_h = profile.padding_h
        logo_height = profile.logo_height
        name_font_size = profile.name_font_size
        logo_margin_bottom = profile.logo_margin_bottom
    else:
        padding_v = BASE_PADDING_V
        padding_h = BASE_PADDING_H
        logo_height = BASE_LOGO_HEIGHT
        name_font_size = BASE_NAME_FONT_SIZE
        logo_margin_bottom = BASE_LOGO_MARGIN_BOTTOM

    return CardLayout(
        width=profile.width,
        height=profile.height,
        image_section_height=image_section_height,
        text_section_height=text_section_height,
        padding_v=padding_v,
        padding_h=padding_h,
        logo_height=logo_height,
        name_font_size=name_font_size,
        logo_margin_bottom=logo_margin_bottom,
    )
