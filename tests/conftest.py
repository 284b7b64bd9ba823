import io

import pytest
from PIL import Image

from evidence_harness.browser_interaction.session_manager import SessionStrategy


class FakeSession:
    """Stands in for a browser engine; records lifecycle calls."""

    def __init__(self, name="chromium", can_capture_pixels=True, png=None, fail_close=False,
                 url="https://example.com/login", title="Login Page"):
        self.name = name
        self.can_capture_pixels = can_capture_pixels
        self.png = png
        self.fail_close = fail_close
        self.url = url
        self.title = title
        self.started = False
        self.closed = False

    def start(self):
        self.started = True
        return self

    def navigate(self, url):
        self.url = url

    def screenshot(self, path=None):
        if self.png is None:
            raise RuntimeError("screenshot timed out")
        return self.png

    def close(self):
        self.closed = True
        if self.fail_close:
            raise RuntimeError("browser already gone")


def make_png(width=40, height=20, color="steelblue") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


def failing_strategy(name, message="executable doesn't exist"):
    def factory():
        raise RuntimeError(message)
    return SessionStrategy(name, factory)


@pytest.fixture
def png_bytes():
    return make_png()


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for var in ("CI", "REPL_ID", "HARNESS_BROWSER", "HARNESS_HEADLESS", "HARNESS_WINDOW_WIDTH",
                "HARNESS_WINDOW_HEIGHT", "HARNESS_SCREENSHOT_INTERVAL"):
        monkeypatch.delenv(var, raising=False)
