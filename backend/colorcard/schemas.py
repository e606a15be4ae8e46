"""
Color Card API Schemas
Pydantic models for card session, extraction and layout request/response validation.
"""
from typing import Dict, List, Optional
from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Health check response."""
    ok: bool = Field(True, description="Service health status")
    version: str = Field(..., description="Service version")
    service: str = Field("colorcard", description="Service name")


class ErrorResponse(BaseModel):
    """Error response."""
    detail: str = Field(..., description="Error message")


class NoticeModel(BaseModel):
    """User-visible acknowledgment, shown as a toast by the client."""
    type: str = Field(..., pattern="^(success|error|info)$", description="Notice severity")
    message: str = Field(..., description="Human readable message")


# ============================================================================
# COLOR EXTRACTION
# ============================================================================

class DominantColorResponse(BaseModel):
    """Result of a dominant color extraction."""
    hex: str = Field(
        ...,
        pattern=r"^#[0-9A-F]{6}$",
        description="Dominant color as uppercase #RRGGBB"
    )
    width: int = Field(..., ge=0, description="Source width in pixels")
    height: int = Field(..., ge=0, description="Source height in pixels")


# ============================================================================
# PROFILES & LAYOUT
# ============================================================================

class CardSizeProfileModel(BaseModel):
    """One exportable card format."""
    name: str
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)
    aspect_ratio: str = Field(..., description="Aspect ratio as W/H")
    file_suffix: str = Field(..., description="Suffix appended to exported file names")


class CardLayoutModel(BaseModel):
    """Resolved card geometry in logical pixels."""
    profile: str
    width: int
    height: int
    image_section_height: int
    text_section_height: int
    padding_v: int
    padding_h: int
    logo_height: int
    name_font_size: int
    logo_margin_bottom: int


# ============================================================================
# CARD SESSIONS
# ============================================================================

class CardStateModel(BaseModel):
    """Public view of a card session."""
    session_id: str
    dominant_color: str = Field(..., pattern=r"^#[0-9A-F]{6}$")
    user_name: str
    has_image: bool
    is_processing: bool
    selected_profile: str
    export_in_flight: bool


class ImageUploadResponse(BaseModel):
    """Outcome of uploading a card photo."""
    card: CardStateModel
    notice: NoticeModel
    error_code: Optional[str] = Field(None, description="Failure code when extraction fell back to white")


class NameRequest(BaseModel):
    """Display name to print on the card."""
    name: str = Field("", description="Free-text display name; trimmed, then length-checked")


class ProfileRequest(BaseModel):
    """Size profile selection."""
    profile: str = Field(
        ...,
        pattern="^(normal|instagram-post|instagram-story)$",
        description="Card size profile"
    )


class ProfileListResponse(BaseModel):
    profiles: List[CardSizeProfileModel]


class MetricsResponse(BaseModel):
    uptime_seconds: float
    counters: Dict[str, int]
    timing_stats: Dict[str, Dict[str, float]]
