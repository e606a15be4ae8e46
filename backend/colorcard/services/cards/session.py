"""
Card sessions.

The boundary between the outer surface and the card core: uploads run
through extraction, exports through the exporter, and every failure is
turned into a user-facing notice instead of aborting the session.
"""
from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, Optional

from loguru import logger

from colorcard.config import config
from colorcard.errors import CardError, InvalidImage
from colorcard.services.cards.exporter import CardExporter, ExportResult
from colorcard.services.cards.state import CardState
from colorcard.services.colors.extraction import extract_dominant_color
from colorcard.services.imaging import decode_source_image
from colorcard.utils.ids import generate_request_id

EXTRACT_SUCCESS = "Color extracted successfully!"
EXTRACT_FAILURE = "Failed to extract color. Please try again."
EXPORT_SUCCESS = "Card downloaded successfully!"
EXPORT_FAILURE = "Failed to download card. Please try again."


@dataclass(frozen=True)
class Notice:
    """User-visible acknowledgment (rendered as a toast by the client)."""

    type: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"type": self.type, "message": self.message}


@dataclass(frozen=True)
class ExtractionOutcome:
    color: str
    notice: Notice
    error_code: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error_code is None


@dataclass(frozen=True)
class ExportOutcome:
    result: Optional[ExportResult]
    notice: Notice
    error_code: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error_code is None


class CardSession:
    """One user's card: state plus the operations the surface can trigger."""

    def __init__(self, session_id: Optional[str] = None, exporter: Optional[CardExporter] = None):
        self.session_id = session_id or generate_request_id("card")
        self.state = CardState()
        self.exporter = exporter or CardExporter()

    def upload_image(self, data: bytes, media_type: str = "image/png") -> ExtractionOutcome:
        """
        Replace the card photo and recompute its dominant color.

        Extraction failures never propagate: the color falls back to white
        and an error notice is returned.
        """
        try:
            source = decode_source_image(data, media_type)
        except InvalidImage as e:
            self.state.clear_image()
            logger.warning(f"Session {self.session_id}: upload not decodable: {e.message}")
            return ExtractionOutcome(self.state.dominant_color, Notice("error", EXTRACT_FAILURE), e.code)

        self.state.set_image(source)
        try:
            color = extract_dominant_color(source)
        except CardError as e:
            self.state.reset_color()
            logger.warning(f"Session {self.session_id}: extraction failed: {e.code}")
            return ExtractionOutcome(self.state.dominant_color, Notice("error", EXTRACT_FAILURE), e.code)

        self.state.apply_color(color)
        return ExtractionOutcome(self.state.dominant_color, Notice("success", EXTRACT_SUCCESS))

    async def export(self, profile: Optional[str] = None) -> ExportOutcome:
        """Export the card; failures become a generic notice with an error code."""
        try:
            result = await self.exporter.export(self.state, profile)
        except CardError as e:
            return ExportOutcome(None, Notice("error", EXPORT_FAILURE), e.code)
        return ExportOutcome(result, Notice("success", EXPORT_SUCCESS))


class SessionStore:
    """In-memory card sessions, oldest evicted first once full."""

    def __init__(self, max_sessions: Optional[int] = None):
        self.max_sessions = config.MAX_SESSIONS if max_sessions is None else max_sessions
        self._sessions: "OrderedDict[str, CardSession]" = OrderedDict()

    def create(self) -> CardSession:
        session = CardSession()
        self._sessions[session.session_id] = session
        while len(self._sessions) > self.max_sessions:
            evicted_id, evicted = next(iter(self._sessions.items()))
            if evicted.state.export_in_flight:
                break
            self._sessions.pop(evicted_id)
            logger.info(f"Evicted card session {evicted_id}")
        return session

    def get(self, session_id: str) -> CardSession:
        """
        Raises:
            KeyError: For unknown session ids
        """
        return self._sessions[session_id]

    def delete(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    def clear(self) -> None:
        self._sessions.clear()

    def __len__(self) -> int:
        return len(self._sessions)


# Global session store
session_store = SessionStore()
