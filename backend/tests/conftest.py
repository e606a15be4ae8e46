"""
Test configuration and fixtures for the color card tests.
"""
import io

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from colorcard.config import Config
from colorcard.services.cards.session import session_store
from colorcard.utils.metrics import reset_metrics

# Import the main app
from main import app


@pytest.fixture
def test_client():
    """Create test client for the FastAPI app."""
    return TestClient(app)


@pytest.fixture(autouse=True)
def reset_state():
    """Reset metrics and card sessions before each test."""
    reset_metrics()
    session_store.clear()
    yield
    session_store.clear()


@pytest.fixture(autouse=True)
def fast_gate(monkeypatch):
    """Shrink readiness-gate delays so exports finish quickly."""
    monkeypatch.setattr(Config, "GATE_SETTLE_DELAY_MS", 0)
    monkeypatch.setattr(Config, "GATE_POLL_INTERVAL_MS", 1)
    monkeypatch.setattr(Config, "GATE_POLL_ATTEMPTS", 3)
    monkeypatch.setattr(Config, "GATE_MAX_WAIT_MS", 2000)


def encode_image(img: Image.Image, fmt: str = "PNG") -> bytes:
    buffer = io.BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def png_factory():
    """Build PNG bytes of a solid color."""
    def _make(color=(200, 10, 10), size=(64, 64), mode="RGB"):
        return encode_image(Image.new(mode, size, color))
    return _make


@pytest.fixture
def red_png(png_factory):
    return png_factory((200, 10, 10), (120, 90))


@pytest.fixture
def striped_image():
    """300x100 image: red, green and blue vertical thirds."""
    img = Image.new("RGB", (300, 100), (255, 0, 0))
    img.paste((0, 255, 0), (100, 0, 200, 100))
    img.paste((0, 0, 255), (200, 0, 300, 100))
    return img
