import io
from typing import Any, Tuple

from PIL import Image


class VisualCapture:
    def __init__(self, session: Any):
        self.session = session

    def capture(self) -> Tuple[bytes, Image.Image]:
        """Captures a screenshot and returns the PNG bytes along with the decoded image."""
        screenshot_bytes = self.session.screenshot()
        image = Image.open(io.BytesIO(screenshot_bytes))
        # Decode now so a truncated capture fails here, not in the report.
        image.load()
        return screenshot_bytes, image
