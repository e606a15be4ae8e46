"""
Card size profiles.

Static geometry and typography table for every exportable card format.
The table is read-only after import.
"""
from dataclasses import dataclass
from fractions import Fraction
from types import MappingProxyType
from typing import Mapping, Optional, Union


@dataclass(frozen=True)
class CardSizeProfile:
    """One exportable card format, in logical pixels."""

    name: str
    width: int
    height: int
    aspect_ratio: str
    file_suffix: str
    # Typography overrides; None keeps the base card styling
    padding_v: Optional[int] = None
    padding_h: Optional[int] = None
    logo_height: Optional[int] = None
    name_font_size: Optional[int] = None
    logo_margin_bottom: Optional[int] = None
    image_fraction: Fraction = Fraction(2, 3)

    @property
    def has_typography_override(self) -> bool:
        return self.padding_v is not None


NORMAL = "normal"
INSTAGRAM_POST = "instagram-post"
INSTAGRAM_STORY = "instagram-story"

DEFAULT_PROFILE = NORMAL

CARD_SIZES: Mapping[str, CardSizeProfile] = MappingProxyType({
    NORMAL: CardSizeProfile(
        name=NORMAL, width=400, height=533, aspect_ratio="3/4", file_suffix="",
    ),
    INSTAGRAM_POST: CardSizeProfile(
        name=INSTAGRAM_POST, width=1080, height=1350, aspect_ratio="4/5", file_suffix="-post",
        padding_v=72, padding_h=72, logo_height=72, name_font_size=54, logo_margin_bottom=24,
    ),
    INSTAGRAM_STORY: CardSizeProfile(
        name=INSTAGRAM_STORY, width=1080, height=1920, aspect_ratio="9/16", file_suffix="-story",
        padding_v=96, padding_h=96, logo_height=96, name_font_size=72, logo_margin_bottom=32,
    ),
})


def get_profile(profile: Union[str, CardSizeProfile]) -> CardSizeProfile:
    """
    Resolve a profile name to its CardSizeProfile.

    Raises:
        ValueError: For unknown profile names
    """
    if isinstance(profile, CardSizeProfile):
        return profile
    try:
        return CARD_SIZES[profile]
    except KeyError:
        raise ValueError(
            f"Unknown card size '{profile}'. Supported: {', '.join(CARD_SIZES)}"
        ) from None
