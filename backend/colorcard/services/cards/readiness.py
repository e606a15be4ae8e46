"""
Image readiness gate.

A decode "load" signal can arrive before the pixels are actually paintable,
and sometimes it never arrives at all. The gate turns that uncertainty into
a bounded protocol:

    IDLE -> LOADING -> DECODED -> SETTLING -> READY
                 \\________ any ________/ -> FAILED   (decode error)
                 \\__ any non-terminal __/ -> READY    (max wait elapsed)

Everything runs on the event loop; decoding is scheduled with
``loop.call_soon`` and waits are ``asyncio`` futures and sleeps, never threads.
"""
import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Tuple

from loguru import logger
from PIL import Image

from colorcard.config import config
from colorcard.errors import ImageLoadFailed, InvalidImage
from colorcard.services.imaging import SourceImage
from colorcard.utils.metrics import get_metrics

LoadListener = Callable[[], None]
ErrorListener = Callable[[Exception], None]


class GateState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    DECODED = "decoded"
    SETTLING = "settling"
    READY = "ready"
    FAILED = "failed"


TERMINAL_STATES = frozenset({GateState.READY, GateState.FAILED})


@dataclass(frozen=True)
class GateOutcome:
    """Single resolution event of a gate run."""

    state: GateState
    timed_out: bool
    poll_attempts: int
    elapsed_ms: float


class ImageResource:
    """
    Image element of an off-screen render context.

    Mirrors what a rendering host exposes about an image: a completion flag,
    natural and rendered sizes, visibility, and load/error notifications.
    """

    def __init__(self, source: SourceImage,
                 render_box: Optional[Tuple[int, int]] = None,
                 hidden: bool = False):
        self.source = source
        self.render_box = render_box
        self.hidden = hidden
        self.image: Optional[Image.Image] = None
        self.error: Optional[Exception] = None
        self.complete = False
        self._generation = 0
        self._listeners: List[Tuple[LoadListener, ErrorListener]] = []

    @property
    def natural_width(self) -> int:
        return self.image.width if self.image is not None else 0

    @property
    def natural_height(self) -> int:
        return self.image.height if self.image is not None else 0

    @property
    def rendered_width(self) -> int:
        return self.render_box[0] if self.render_box else self.natural_width

    @property
    def rendered_height(self) -> int:
        return self.render_box[1] if self.render_box else self.natural_height

    def is_paintable(self) -> bool:
        """Complete, has pixels, occupies a box and is not hidden."""
        return (
            self.complete
            and self.natural_width > 0 and self.natural_height > 0
            and self.rendered_width > 0 and self.rendered_height > 0
            and not self.hidden
        )

    def add_listener(self, on_load: LoadListener, on_error: ErrorListener) -> None:
        self._listeners.append((on_load, on_error))

    def remove_listener(self, on_load: LoadListener, on_error: ErrorListener) -> None:
        try:
            self._listeners.remove((on_load, on_error))
        except ValueError:
            pass

    def reload(self) -> None:
        """
        Re-assign the source to get a fresh completion signal.

        Drops any decoded pixels and schedules a decode on the running loop.
        A later reload supersedes a pending one.
        """
        self._generation += 1
        self.complete = False
        self.image = None
        self.error = None
        asyncio.get_running_loop().call_soon(self._decode, self._generation)

    def _decode(self, generation: int) -> None:
        if generation != self._generation:
            return
        try:
            image = self.source.decode()
        except InvalidImage as e:
            self.complete = True
            self.error = e
            for _, on_error in list(self._listeners):
                on_error(e)
            return

        self.image = image
        self.complete = True
        for on_load, _ in list(self._listeners):
            on_load()


class ImageReadinessGate:
    """
    Decides when an image resource is safe to composite.

    One gate instance serves one export run.
    """

    def __init__(self,
                 settle_delay_ms: Optional[int] = None,
                 poll_interval_ms: Optional[int] = None,
                 poll_attempts: Optional[int] = None,
                 max_wait_ms: Optional[int] = None):
        self.settle_delay = (config.GATE_SETTLE_DELAY_MS if settle_delay_ms is None else settle_delay_ms) / 1000
        self.poll_interval = (config.GATE_POLL_INTERVAL_MS if poll_interval_ms is None else poll_interval_ms) / 1000
        self.poll_attempts = config.GATE_POLL_ATTEMPTS if poll_attempts is None else poll_attempts
        self.max_wait = (config.GATE_MAX_WAIT_MS if max_wait_ms is None else max_wait_ms) / 1000

        self._state = GateState.IDLE
        self.history: List[GateState] = [GateState.IDLE]
        self._error: Optional[Exception] = None

    @property
    def state(self) -> GateState:
        return self._state

    def _transition(self, new_state: GateState) -> None:
        if self._state in TERMINAL_STATES:
            raise RuntimeError(f"Gate already resolved as {self._state.value}")
        logger.debug(f"Readiness gate {self._state.value} -> {new_state.value}")
        self._state = new_state
        self.history.append(new_state)

    def _raise_if_failed(self) -> None:
        if self._error is not None:
            raise ImageLoadFailed(f"Image could not be loaded: {self._error}") from self._error

    async def wait(self, resource: ImageResource) -> GateOutcome:
        """
        Drive the gate to resolution.

        Returns:
            GateOutcome in state READY; timed_out is set when the maximum
            wait elapsed and the gate proceeded best-effort

        Raises:
            ImageLoadFailed: On a decode error signal (state FAILED)
        """
        if self._state is not GateState.IDLE:
            raise RuntimeError("Readiness gate can only be driven once")

        loop = asyncio.get_running_loop()
        start = loop.time()
        signal = loop.create_future()
        attempts = 0

        def on_load():
            if not signal.done():
                signal.set_result(None)

        def on_error(exc: Exception):
            self._error = exc
            if not signal.done():
                signal.set_result(exc)

        resource.add_listener(on_load, on_error)
        self._transition(GateState.LOADING)
        if resource.error is not None:
            self._error = resource.error

        try:
            async with asyncio.timeout(self.max_wait):
                self._raise_if_failed()
                if not resource.complete:
                    resource.reload()

                await self._await_decoded(resource, signal)
                self._transition(GateState.DECODED)

                self._transition(GateState.SETTLING)
                await asyncio.sleep(self.settle_delay)
                attempts = await self._poll(resource)

        except TimeoutError:
            self._transition(GateState.READY)
            elapsed_ms = (loop.time() - start) * 1000
            get_metrics().increment_gate_timeout()
            logger.warning(
                f"Image not confirmed ready after {elapsed_ms:.0f}ms; proceeding best-effort"
            )
            return GateOutcome(GateState.READY, True, attempts, elapsed_ms)

        except ImageLoadFailed:
            self._transition(GateState.FAILED)
            logger.error(f"Readiness gate failed: {self._error}")
            raise

        finally:
            resource.remove_listener(on_load, on_error)

        self._transition(GateState.READY)
        elapsed_ms = (loop.time() - start) * 1000
        logger.debug(f"Image ready after {elapsed_ms:.0f}ms ({attempts} poll attempts)")
        return GateOutcome(GateState.READY, False, attempts, elapsed_ms)

    async def _await_decoded(self, resource: ImageResource, signal: asyncio.Future) -> None:
        while not resource.is_paintable():
            self._raise_if_failed()
            if not resource.complete and not signal.done():
                await signal
            else:
                # Completion reported but not paintable yet
                await asyncio.sleep(self.poll_interval)
        self._raise_if_failed()

    async def _poll(self, resource: ImageResource) -> int:
        attempts = 0
        while attempts < self.poll_attempts:
            attempts += 1
            self._raise_if_failed()
            if resource.is_paintable():
                return attempts
            await asyncio.sleep(self.poll_interval)

        self._raise_if_failed()
        logger.warning(f"Image still not paintable after {attempts} polls; proceeding")
        return attempts
