"""
Dominant color extraction for card photos.

Reduces a decoded image to one representative color by bucketed histogram
voting: the image is downscaled into a scratch buffer, every Nth pixel is
quantized to 16 levels per channel, and the most frequent bucket wins.
"""

import time
from collections import Counter
from typing import Iterable, Optional, Tuple

import numpy as np
from loguru import logger

from colorcard.config import config
from colorcard.errors import ImageLoadFailed, InvalidImage, RenderingUnavailable
from colorcard.services.imaging import SourceImage, decode_source_image, scratch_buffer
from colorcard.utils.metrics import get_metrics

DEFAULT_COLOR = "#FFFFFF"
BUCKET_SIZE = 16


def rgb_to_hex(rgb: Iterable[int]) -> str:
    """Convert an RGB triple to an uppercase #RRGGBB string."""
    r, g, b = [int(x) for x in rgb]
    return f"#{r:02X}{g:02X}{b:02X}"


def quantize(pixels_rgb_u8: np.ndarray, bucket: int = BUCKET_SIZE) -> np.ndarray:
    """Truncate every channel to the lower edge of its bucket."""
    return (pixels_rgb_u8 // bucket) * bucket


def read_back(image, max_edge: Optional[int] = None) -> np.ndarray:
    """
    Read the image into the scratch buffer the way a canvas read-back sees
    it: fully transparent pixels come back as black.
    """
    scratch = scratch_buffer(image, max_edge)
    scratch[scratch[..., 3] == 0, :3] = 0
    return scratch


def sample_pixels(scratch: np.ndarray, stride: Optional[int] = None) -> np.ndarray:
    """
    Take every stride-th pixel of the flattened scratch buffer.

    Args:
        scratch: (H, W, C) uint8 buffer
        stride: Pixel stride (default from config)

    Returns:
        (N, 3) uint8 RGB samples in row-major order
    """
    if stride is None:
        stride = config.SAMPLE_STRIDE
    flat = scratch.reshape(-1, scratch.shape[-1])
    return flat[::stride, :3]


def build_histogram(samples_rgb_u8: np.ndarray) -> Counter:
    """
    Count quantized triples.

    The Counter keeps first-seen order, which is what makes tie-breaking
    deterministic.
    """
    quantized = quantize(samples_rgb_u8)
    return Counter(tuple(px) for px in quantized.tolist())


def pick_dominant(histogram: Counter) -> Tuple[Tuple[int, int, int], int]:
    """Return the most frequent bucket; ties go to the first one encountered."""
    if not histogram:
        raise InvalidImage("No pixels sampled")
    # most_common orders equal counts by first insertion
    (triple, count), = histogram.most_common(1)
    return triple, count


def extract_dominant_color(source: Optional[SourceImage],
                           max_edge: Optional[int] = None,
                           stride: Optional[int] = None) -> str:
    """
    Extract the dominant color of a decoded source image.

    Args:
        source: Decoded SourceImage (None when decoding never happened)
        max_edge: Longest edge of the sampling buffer (default from config)
        stride: Pixel stride while sampling (default from config)

    Returns:
        Uppercase hex color string "#RRGGBB"

    Raises:
        ImageLoadFailed: If no decoded source is available
        InvalidImage: If the source has a zero dimension
        RenderingUnavailable: If no scratch buffer can be obtained
    """
    metrics = get_metrics()
    metrics.increment_extraction_count()
    start_time = time.time()

    try:
        if source is None or source.image is None:
            raise ImageLoadFailed("Image could not be loaded")

        width, height = source.size
        if width == 0 or height == 0:
            raise InvalidImage(f"Image not loaded or dimensions are invalid: {width}x{height}")

        scratch = read_back(source.image, max_edge)
        samples = sample_pixels(scratch, stride)
        histogram = build_histogram(samples)
        triple, count = pick_dominant(histogram)

    except (ImageLoadFailed, InvalidImage, RenderingUnavailable) as e:
        metrics.increment_extraction_failure(e.code)
        logger.warning(f"Color extraction failed: {e.code}: {e.message}")
        raise

    hex_color = rgb_to_hex(triple)
    duration_ms = (time.time() - start_time) * 1000
    metrics.record_timing("extraction", duration_ms)

    logger.info(
        f"Dominant color {hex_color} from {width}x{height} image "
        f"({len(samples)} samples, {len(histogram)} buckets, winner count {count})"
    )
    return hex_color


def extract_dominant_color_from_bytes(data: bytes, media_type: str = "image/png") -> str:
    """
    Decode raw bytes and extract their dominant color.

    Raises:
        InvalidImage: If the bytes are not a decodable image
    """
    try:
        source = decode_source_image(data, media_type)
    except InvalidImage as e:
        get_metrics().increment_extraction_failure(e.code)
        raise
    return extract_dominant_color(source)
