"""
Color Card API Routes
Card sessions, dominant color extraction, preview and PNG export.
"""
from typing import Dict, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from fastapi.responses import JSONResponse, Response
from loguru import logger

from colorcard.errors import InvalidImage
from colorcard.schemas import (
    CardLayoutModel, CardSizeProfileModel, CardStateModel, DominantColorResponse,
    ErrorResponse, ImageUploadResponse, NameRequest, NoticeModel, ProfileListResponse, ProfileRequest
)
from colorcard.services.cards.compositor import render_card
from colorcard.services.cards.exporter import encode_png
from colorcard.services.cards.layout import layout
from colorcard.services.cards.profiles import CARD_SIZES, get_profile
from colorcard.services.cards.session import CardSession, session_store
from colorcard.services.colors.extraction import extract_dominant_color
from colorcard.services.imaging import decode_source_image, read_upload

router = APIRouter(
    prefix="/v1/cards",
    tags=["Color Cards"],
    responses={404: {"model": ErrorResponse}}
)

SIZE_PATTERN = "^(normal|instagram-post|instagram-story)$"

# Export failures map to status codes; the body never carries internal detail
EXPORT_STATUS_CODES: Dict[str, int] = {
    "export_in_progress": 409,
    "image_load_failed": 422,
    "invalid_image": 422,
}


def get_session(session_id: str) -> CardSession:
    """Resolve a session id or answer 404."""
    try:
        return session_store.get(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Card session not found")


def _card_model(session: CardSession) -> CardStateModel:
    return CardStateModel(session_id=session.session_id, **session.state.to_dict())


def _attachment_headers(filename: str) -> Dict[str, str]:
    ascii_name = filename.encode("ascii", "replace").decode("ascii").replace('"', "'")
    return {
        "Content-Disposition": f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}"
    }


# ============================================================================
# PROFILES & LAYOUT
# ============================================================================

@router.get("/profiles", response_model=ProfileListResponse)
def list_profiles():
    """List the supported card size profiles."""
    return ProfileListResponse(profiles=[
        CardSizeProfileModel(
            name=p.name, width=p.width, height=p.height,
            aspect_ratio=p.aspect_ratio, file_suffix=p.file_suffix
        )
        for p in CARD_SIZES.values()
    ])


@router.get("/profiles/{profile_name}/layout", response_model=CardLayoutModel)
def get_layout(profile_name: str):
    """Card geometry for a size profile, shared by preview and export."""
    try:
        card_layout = layout(profile_name)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return CardLayoutModel(profile=profile_name, **card_layout.to_dict())


# ============================================================================
# STATELESS EXTRACTION
# ============================================================================

@router.post("/colors/extract", response_model=DominantColorResponse)
async def extract_color(file: UploadFile = File(...)):
    """
    Extract the dominant color of an uploaded image.

    - **file**: any image/* upload up to the configured size limit
    """
    data = await read_upload(file)
    try:
        source = decode_source_image(data, file.content_type)
        hex_color = extract_dominant_color(source)
    except InvalidImage as e:
        raise HTTPException(status_code=422, detail=f"Could not read image: {e.code}")
    return DominantColorResponse(hex=hex_color, width=source.width, height=source.height)


# ============================================================================
# CARD SESSIONS
# ============================================================================

@router.post("", response_model=CardStateModel, status_code=201)
def create_card():
    """Start a new card session (white color, no image, normal size)."""
    session = session_store.create()
    logger.info(f"Created card session {session.session_id}")
    return _card_model(session)


@router.get("/{session_id}", response_model=CardStateModel)
def get_card(session: CardSession = Depends(get_session)):
    return _card_model(session)


@router.delete("/{session_id}", status_code=204)
def delete_card(session_id: str):
    if not session_store.delete(session_id):
        raise HTTPException(status_code=404, detail="Card session not found")
    return Response(status_code=204)


@router.put("/{session_id}/image", response_model=ImageUploadResponse)
async def upload_card_image(file: UploadFile = File(...),
                            session: CardSession = Depends(get_session)):
    """
    Set the card photo and recompute its dominant color.

    An unreadable image still answers 200: the color falls back to #FFFFFF
    and the notice reports the failure.
    """
    data = await read_upload(file)
    outcome = session.upload_image(data, file.content_type)
    return ImageUploadResponse(
        card=_card_model(session),
        notice=NoticeModel(**outcome.notice.to_dict()),
        error_code=outcome.error_code
    )


@router.put("/{session_id}/name", response_model=CardStateModel)
def set_card_name(body: NameRequest, session: CardSession = Depends(get_session)):
    try:
        session.state.set_name(body.name)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _card_model(session)


@router.put("/{session_id}/profile", response_model=CardStateModel)
def set_card_profile(body: ProfileRequest, session: CardSession = Depends(get_session)):
    session.state.select_profile(body.profile)
    return _card_model(session)


@router.get("/{session_id}/preview")
def preview_card(size: Optional[str] = Query(None, pattern=SIZE_PATTERN, description="Card size profile"),
                 session: CardSession = Depends(get_session)):
    """
    Live preview at logical resolution.

    Shows the "Enter your name above" hint when no name is set; the hint is
    never part of an export.
    """
    state = session.state
    profile = get_profile(size or state.selected_profile)
    image = state.source_image.image if state.source_image is not None else None
    bitmap = render_card(image, state.user_name, layout(profile), pixel_ratio=1, include_hint=True)
    return Response(content=encode_png(bitmap), media_type="image/png")


@router.post("/{session_id}/export")
async def export_card(size: Optional[str] = Query(None, pattern=SIZE_PATTERN, description="Card size profile"),
                      session: CardSession = Depends(get_session)):
    """
    Export the card as a PNG download.

    - **size**: normal | instagram-post | instagram-story (default: the session's selection)

    Answers 409 while another export of the same card is running.
    """
    outcome = await session.export(size)
    if not outcome.ok:
        return JSONResponse(
            status_code=EXPORT_STATUS_CODES.get(outcome.error_code, 500),
            content={
                "detail": outcome.notice.message,
                "error_code": outcome.error_code,
                "notice": outcome.notice.to_dict()
            }
        )

    result = outcome.result
    headers = _attachment_headers(result.filename)
    headers["X-Card-Notice"] = outcome.notice.message
    headers["X-Card-Gate-Timed-Out"] = str(result.job.gate_outcome.timed_out).lower()
    return Response(content=result.png_bytes, media_type="image/png", headers=headers)
