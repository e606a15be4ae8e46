"""
Card session state.

CardState is the mutable aggregate the outer surface feeds. It only changes
through the named transitions below; the export in-flight flag is the one
mutual-exclusion point between exports of the same card.
"""
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

from loguru import logger

from colorcard.config import config
from colorcard.errors import ExportInProgress
from colorcard.services.cards.profiles import DEFAULT_PROFILE, get_profile
from colorcard.services.colors.extraction import DEFAULT_COLOR
from colorcard.services.imaging import SourceImage

HEX_COLOR_RE = re.compile(r"^#[0-9A-F]{6}$")


@dataclass
class CardState:
    """Everything one card session knows. Never persisted."""

    dominant_color: str = DEFAULT_COLOR
    user_name: str = ""
    source_image: Optional[SourceImage] = None
    is_processing: bool = False
    selected_profile: str = DEFAULT_PROFILE
    export_in_flight: bool = False

    def set_image(self, source: SourceImage) -> None:
        """Replace the source image; the color is recomputed by the caller."""
        self.source_image = source
        self.dominant_color = DEFAULT_COLOR
        self.is_processing = True
        logger.debug(f"Card image set ({source.width}x{source.height})")

    def clear_image(self) -> None:
        """Drop the source after an upload that could not be decoded."""
        self.source_image = None
        self.dominant_color = DEFAULT_COLOR
        self.is_processing = False

    def apply_color(self, hex_color: str) -> None:
        """Store an extracted color and end processing."""
        hex_color = hex_color.upper()
        if not HEX_COLOR_RE.match(hex_color):
            raise ValueError(f"Malformed color '{hex_color}'")
        self.dominant_color = hex_color
        self.is_processing = False

    def reset_color(self) -> None:
        """Fall back to white, e.g. after a failed extraction."""
        self.dominant_color = DEFAULT_COLOR
        self.is_processing = False

    def set_name(self, name: Optional[str]) -> None:
        name = (name or "").strip()
        if len(name) > config.MAX_NAME_LENGTH:
            raise ValueError(f"Name must be at most {config.MAX_NAME_LENGTH} characters")
        self.user_name = name

    def select_profile(self, name: str) -> None:
        self.selected_profile = get_profile(name).name

    def begin_export(self) -> None:
        """
        Claim the export slot.

        Raises:
            ExportInProgress: If another export holds it
        """
        if self.export_in_flight:
            raise ExportInProgress("An export is already running for this card")
        self.export_in_flight = True

    def end_export(self) -> None:
        self.export_in_flight = False

    @property
    def can_export(self) -> bool:
        return self.source_image is not None and not self.is_processing and not self.export_in_flight

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dominant_color": self.dominant_color,
            "user_name": self.user_name,
            "has_image": self.source_image is not None,
            "is_processing": self.is_processing,
            "selected_profile": self.selected_profile,
            "export_in_flight": self.export_in_flight,
        }
