"""
Color Card Imaging Utilities
Handles upload validation, decoding into SourceImage and scratch downscaling.
"""
import io
import math
from dataclasses import dataclass, field
from typing import Optional, Tuple

import cv2
import numpy as np
from fastapi import HTTPException, UploadFile
from PIL import Image, ImageOps, UnidentifiedImageError

from colorcard.config import config
from colorcard.errors import InvalidImage, RenderingUnavailable


@dataclass(frozen=True)
class SourceImage:
    """Decoded user photo. Replaced, never mutated, on re-upload."""

    data: bytes
    media_type: str
    image: Image.Image = field(repr=False, compare=False)

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    @property
    def size(self) -> Tuple[int, int]:
        return self.image.size

    @classmethod
    def from_pil(cls, image: Image.Image, media_type: str = "image/png") -> "SourceImage":
        """Wrap an already decoded Pillow image (no original bytes kept)."""
        return cls(data=b"", media_type=media_type, image=image)

    def decode(self) -> Image.Image:
        """
        Produce a fresh decoded copy of the source.

        Re-reads the original bytes when they are available so every render
        context owns its own pixels.
        """
        if self.data:
            return _open_image(self.data)
        return self.image.copy()


def validate_media_type(media_type: Optional[str]) -> None:
    """
    Accept any declared image/* media type.

    Raises:
        HTTPException: 415 for non-image uploads
    """
    if not media_type or not media_type.lower().startswith("image/"):
        raise HTTPException(
            status_code=415,
            detail="Unsupported media type. Please select an image file."
        )


def validate_file_size(size: Optional[int]) -> None:
    """
    Reject uploads above the configured ceiling.

    Raises:
        HTTPException: 413 for oversized files
    """
    if size is not None and size > config.max_file_bytes():
        raise HTTPException(
            status_code=413,
            detail=f"File size too large. Maximum size is {config.MAX_FILE_MB}MB."
        )


async def read_upload(file: UploadFile) -> bytes:
    """
    Validate and read an uploaded image file.

    Args:
        file: FastAPI UploadFile object

    Returns:
        Raw file bytes

    Raises:
        HTTPException: 415 for non-images, 413 for oversized files, 400 for read errors
    """
    validate_media_type(file.content_type)
    # file.size might be None for some clients
    validate_file_size(getattr(file, "size", None))

    try:
        file_bytes = await file.read()
    except OSError as e:
        raise HTTPException(status_code=400, detail=f"Failed to read file: {str(e)}")

    # Validate file size after reading
    validate_file_size(len(file_bytes))
    if not file_bytes:
        raise HTTPException(status_code=400, detail="Empty file")

    return file_bytes


def _open_image(data: bytes) -> Image.Image:
    try:
        pil_image = Image.open(io.BytesIO(data))
        pil_image.load()
        # Browsers honour EXIF orientation when painting photos
        pil_image = ImageOps.exif_transpose(pil_image)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise InvalidImage(f"Failed to decode image: {str(e)}") from e

    if pil_image.mode not in ("RGB", "RGBA"):
        has_alpha = "A" in pil_image.getbands() or "transparency" in pil_image.info
        pil_image = pil_image.convert("RGBA" if has_alpha else "RGB")

    return pil_image


def decode_source_image(data: bytes, media_type: str = "image/png") -> SourceImage:
    """
    Decode raw upload bytes into a SourceImage.

    Raises:
        InvalidImage: If the bytes do not decode or the result has a zero dimension
    """
    pil_image = _open_image(data)

    width, height = pil_image.size
    if width == 0 or height == 0:
        raise InvalidImage(f"Invalid image dimensions: {width}x{height}")

    return SourceImage(data=data, media_type=media_type, image=pil_image)


def scratch_dimensions(width: int, height: int, max_edge: Optional[int] = None) -> Tuple[int, int]:
    """
    Dimensions of the read-only sampling buffer.

    The scale is min(max_edge/width, max_edge/height, 1); results are
    floored and never below one pixel.
    """
    if max_edge is None:
        max_edge = config.EXTRACT_MAX_EDGE

    scale = min(max_edge / width, max_edge / height, 1)
    return max(1, math.floor(width * scale)), max(1, math.floor(height * scale))


def scratch_buffer(image: Image.Image, max_edge: Optional[int] = None) -> np.ndarray:
    """
    Read an image into a new RGBA sampling buffer of scratch_dimensions size.

    Large images are first shrunk by a whole factor with Image.reduce, so the
    full-resolution RGBA array is never materialised; cv2 then brings the
    result to the exact scratch size.

    Args:
        image: Decoded Pillow image
        max_edge: Maximum edge size (default from config)

    Returns:
        (H, W, 4) uint8 array; the image is never modified

    Raises:
        RenderingUnavailable: If the scratch buffer cannot be allocated
    """
    width, height = image.size
    target = scratch_dimensions(width, height, max_edge)

    try:
        if image.mode not in ("RGB", "RGBA"):
            image = image.convert("RGBA")
        factor = min(width // target[0], height // target[1])
        if factor > 1:
            image = image.reduce(factor)

        pixels = np.asarray(image.convert("RGBA"), dtype=np.uint8)
        if (pixels.shape[1], pixels.shape[0]) == target:
            return pixels.copy()
        # Use INTER_AREA for downscaling (better quality)
        return cv2.resize(pixels, target, interpolation=cv2.INTER_AREA)
    except (cv2.error, MemoryError, ValueError) as e:
        raise RenderingUnavailable(f"Could not allocate sampling buffer: {str(e)}") from e
