"""
Card Exporter

Orchestrates one export run: readiness gate -> layout -> compositor -> PNG.
At most one export per card is in flight; a second request is rejected
without touching the running job.
"""

import io
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Tuple, Union

from loguru import logger
from PIL import Image

from colorcard.config import config
from colorcard.errors import CardError, CompositingFailure, ImageLoadFailed
from colorcard.services.cards.compositor import render_card
from colorcard.services.cards.layout import layout
from colorcard.services.cards.profiles import CardSizeProfile, get_profile
from colorcard.services.cards.readiness import GateOutcome, ImageReadinessGate, ImageResource
from colorcard.services.cards.state import CardState
from colorcard.services.imaging import SourceImage
from colorcard.utils.ids import generate_request_id
from colorcard.utils.metrics import get_metrics

FILENAME_PREFIX = "pantone-card-"
FALLBACK_NAME = "color"


class ExportStatus(str, Enum):
    PENDING = "pending"
    AWAITING_IMAGE = "awaiting_image"
    COMPOSITING = "compositing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class ExportJob:
    """Snapshot of the inputs of one export invocation."""

    profile: CardSizeProfile
    source_image: Optional[SourceImage]
    user_name: str
    job_id: str = field(default_factory=lambda: generate_request_id("export"))
    status: ExportStatus = ExportStatus.PENDING
    gate_outcome: Optional[GateOutcome] = None


@dataclass(frozen=True)
class ExportResult:
    """Finished PNG ready to hand to the host."""

    filename: str
    png_bytes: bytes = field(repr=False)
    width: int
    height: int
    job: ExportJob

    def write_to(self, directory: Union[str, Path]) -> Path:
        """Emit the file into a directory and return its path."""
        path = Path(directory) / self.filename
        path.write_bytes(self.png_bytes)
        logger.info(f"Card written to {path}")
        return path


def export_filename(profile: Union[str, CardSizeProfile], user_name: Optional[str]) -> str:
    """pantone-card-{name or "color"}{suffix}.png"""
    profile = get_profile(profile)
    name = (user_name or "").strip() or FALLBACK_NAME
    # Path separators would escape the target directory
    name = name.replace("/", "-").replace("\\", "-")
    return f"{FILENAME_PREFIX}{name}{profile.file_suffix}.png"


def encode_png(image: Image.Image) -> bytes:
    """Encode a bitmap as PNG bytes."""
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


class CardExporter:
    """Runs exports for card sessions."""

    def __init__(self,
                 gate_factory: Optional[Callable[[], ImageReadinessGate]] = None,
                 resource_factory: Optional[Callable[[SourceImage, Tuple[int, int]], ImageResource]] = None,
                 pixel_ratio: Optional[int] = None,
                 supersampled: Optional[bool] = None):
        self.gate_factory = gate_factory or ImageReadinessGate
        self.resource_factory = resource_factory or ImageResource
        self.pixel_ratio = config.PIXEL_RATIO if pixel_ratio is None else pixel_ratio
        self.supersampled = config.EXPORT_SUPERSAMPLED if supersampled is None else supersampled

    async def export(self, state: CardState,
                     profile: Union[str, CardSizeProfile, None] = None) -> ExportResult:
        """
        Export the card in a size profile (default: the session's selection).

        Raises:
            ValueError: For unknown profile names
            ExportInProgress: If an export is already running for this card
            ImageLoadFailed: If there is no source image or it fails to decode
            RenderingUnavailable: If no drawing surface can be allocated
            CompositingFailure: On unexpected draw or encode failures
        """
        profile = get_profile(profile or state.selected_profile)
        metrics = get_metrics()

        # Raises before the slot is ours, so the running job keeps it
        state.begin_export()

        job = ExportJob(profile=profile, source_image=state.source_image, user_name=state.user_name)
        log = logger.bind(job_id=job.job_id)
        start_time = time.time()
        metrics.increment_export_count(profile.name)
        log.info(f"Export started ({profile.name})")

        try:
            if job.source_image is None:
                raise ImageLoadFailed("No source image to export")

            card_layout = layout(profile)
            resource = self.resource_factory(
                job.source_image,
                (card_layout.width, card_layout.image_section_height)
            )

            job.status = ExportStatus.AWAITING_IMAGE
            job.gate_outcome = await self.gate_factory().wait(resource)

            job.status = ExportStatus.COMPOSITING
            bitmap = render_card(resource.image, job.user_name, card_layout, self.pixel_ratio)

            if not self.supersampled and self.pixel_ratio != 1:
                bitmap = bitmap.resize((profile.width, profile.height), Image.LANCZOS)

            png_bytes = encode_png(bitmap)
            job.status = ExportStatus.DONE

        except CardError as e:
            job.status = ExportStatus.FAILED
            metrics.increment_export_failure(e.code)
            log.error(f"Export failed: {e.code}: {e.message}")
            raise

        except Exception as e:
            job.status = ExportStatus.FAILED
            metrics.increment_export_failure(CompositingFailure.code)
            log.exception("Export failed unexpectedly")
            raise CompositingFailure(f"Export failed: {str(e)}") from e

        finally:
            state.end_export()

        duration_ms = (time.time() - start_time) * 1000
        metrics.record_timing("export", duration_ms)

        filename = export_filename(profile, job.user_name)
        log.info(
            f"Export done: {filename} {bitmap.width}x{bitmap.height} "
            f"in {duration_ms:.0f}ms (gate timed out: {job.gate_outcome.timed_out})"
        )
        return ExportResult(
            filename=filename,
            png_bytes=png_bytes,
            width=bitmap.width,
            height=bitmap.height,
            job=job,
        )
