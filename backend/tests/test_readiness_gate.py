"""
Tests for the image readiness gate.
"""
import asyncio

import pytest
from PIL import Image

from colorcard.errors import ImageLoadFailed
from colorcard.services.cards.readiness import (
    GateState, ImageReadinessGate, ImageResource
)
from colorcard.services.imaging import SourceImage, decode_source_image
from colorcard.utils.metrics import get_metrics


class StalledResource(ImageResource):
    """Never reports completion, like a load event that never fires."""

    def reload(self):
        self.complete = False


def fast_gate(**overrides):
    params = dict(settle_delay_ms=0, poll_interval_ms=1, poll_attempts=3, max_wait_ms=200)
    params.update(overrides)
    return ImageReadinessGate(**params)


@pytest.mark.asyncio
async def test_happy_path_reaches_ready(red_png):
    resource = ImageResource(decode_source_image(red_png), render_box=(400, 355))
    gate = fast_gate()

    outcome = await gate.wait(resource)

    assert outcome.state is GateState.READY
    assert outcome.timed_out is False
    assert outcome.poll_attempts == 1
    assert gate.history == [
        GateState.IDLE, GateState.LOADING, GateState.DECODED, GateState.SETTLING, GateState.READY
    ]
    assert resource.is_paintable()
    assert resource.image.size == (120, 90)


@pytest.mark.asyncio
async def test_settle_delay_is_honoured(red_png):
    resource = ImageResource(decode_source_image(red_png))
    loop = asyncio.get_running_loop()

    start = loop.time()
    await fast_gate(settle_delay_ms=50).wait(resource)

    assert loop.time() - start >= 0.045


@pytest.mark.asyncio
async def test_missing_load_signal_times_out(red_png):
    resource = StalledResource(decode_source_image(red_png))
    gate = fast_gate(max_wait_ms=50)

    outcome = await gate.wait(resource)

    assert outcome.state is GateState.READY
    assert outcome.timed_out is True
    assert outcome.elapsed_ms >= 45
    assert gate.history[-1] is GateState.READY
    assert GateState.DECODED not in gate.history
    assert resource.image is None
    assert get_metrics().get_counters()["gate_timeout_total"] == 1


@pytest.mark.asyncio
async def test_poll_cap_proceeds_without_timeout(red_png):
    resource = ImageResource(decode_source_image(red_png))
    gate = fast_gate(settle_delay_ms=20, poll_attempts=4, max_wait_ms=2000)
    # Becomes unpaintable while the gate is settling
    asyncio.get_running_loop().call_later(0.01, setattr, resource, "hidden", True)

    outcome = await gate.wait(resource)

    assert outcome.state is GateState.READY
    assert outcome.timed_out is False
    assert outcome.poll_attempts == gate.poll_attempts == 4
    assert gate.history[-2:] == [GateState.SETTLING, GateState.READY]
    assert "gate_timeout_total" not in get_metrics().get_counters()


@pytest.mark.asyncio
async def test_hidden_image_times_out(red_png):
    resource = ImageResource(decode_source_image(red_png), hidden=True)

    outcome = await fast_gate(max_wait_ms=50).wait(resource)

    assert outcome.timed_out is True
    assert resource.complete is True


@pytest.mark.asyncio
async def test_zero_render_box_times_out(red_png):
    resource = ImageResource(decode_source_image(red_png), render_box=(0, 0))

    outcome = await fast_gate(max_wait_ms=50).wait(resource)

    assert outcome.timed_out is True


@pytest.mark.asyncio
async def test_decode_error_fails_gate():
    broken = SourceImage(data=b"garbage", media_type="image/png", image=Image.new("RGB", (1, 1)))
    resource = ImageResource(broken)
    gate = fast_gate()

    with pytest.raises(ImageLoadFailed):
        await gate.wait(resource)

    assert gate.state is GateState.FAILED
    assert gate.history == [GateState.IDLE, GateState.LOADING, GateState.FAILED]


@pytest.mark.asyncio
async def test_earlier_decode_error_fails_immediately():
    broken = SourceImage(data=b"garbage", media_type="image/png", image=Image.new("RGB", (1, 1)))
    resource = ImageResource(broken)
    resource.complete = True
    resource.error = ValueError("decode error")

    with pytest.raises(ImageLoadFailed):
        await fast_gate().wait(resource)


@pytest.mark.asyncio
async def test_already_complete_resource_is_not_reloaded(red_png):
    resource = ImageResource(decode_source_image(red_png))
    resource.reload()
    await asyncio.sleep(0)
    decoded = resource.image
    assert resource.complete

    await fast_gate().wait(resource)

    assert resource.image is decoded


@pytest.mark.asyncio
async def test_gate_cannot_be_reused(red_png):
    resource = ImageResource(decode_source_image(red_png))
    gate = fast_gate()
    await gate.wait(resource)

    with pytest.raises(RuntimeError):
        await gate.wait(resource)


@pytest.mark.asyncio
async def test_listeners_removed_after_resolution(red_png):
    resource = ImageResource(decode_source_image(red_png))
    await fast_gate().wait(resource)
    assert resource._listeners == []


@pytest.mark.asyncio
async def test_later_reload_supersedes_pending(red_png):
    resource = ImageResource(decode_source_image(red_png))
    loaded = []
    resource.add_listener(lambda: loaded.append(True), lambda exc: None)

    resource.reload()
    resource.reload()
    await asyncio.sleep(0)

    assert loaded == [True]


def test_gate_defaults_come_from_config():
    gate = ImageReadinessGate()
    # conftest shrinks the configured timings
    assert gate.settle_delay == 0
    assert gate.poll_interval == 0.001
    assert gate.poll_attempts == 3
    assert gate.max_wait == 2
