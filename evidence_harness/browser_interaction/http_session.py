"""Non-rendering fallback engine.

Fetches pages over plain HTTP and keeps just enough state (URL, title, source)
for captions and synthesized visuals. It never launches a browser, so it
cannot take screenshots.
"""

import base64
import html
import logging
import re
from typing import Optional
from urllib.parse import unquote

import requests

from evidence_harness.utils.config import BROWSER_HTTP, PAGE_LOAD_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "evidence-harness/0.1"
)

_TITLE_RE = re.compile(r"<title[^>]*>(.*?)</title>", re.IGNORECASE | re.DOTALL)


def extract_title(markup: str) -> str:
    """Returns the text of the first <title> element, whitespace-collapsed."""
    match = _TITLE_RE.search(markup or "")
    if not match:
        return ""
    return " ".join(html.unescape(match.group(1)).split())


def decode_data_url(url: str) -> str:
    """Decodes a ``data:`` URL into text."""
    header, _, payload = url[len("data:"):].partition(",")
    if header.endswith(";base64"):
        return base64.b64decode(payload).decode("utf-8", errors="replace")
    return unquote(payload)


class HttpSession:
    can_capture_pixels = False

    def __init__(self, timeout: float = PAGE_LOAD_TIMEOUT_SECONDS):
        self.timeout = timeout
        self.http: Optional[requests.Session] = None
        self._url = "about:blank"
        self._source = ""

    @property
    def name(self) -> str:
        return BROWSER_HTTP

    def start(self) -> "HttpSession":
        if self.http is None:
            logger.info("Starting non-rendering HTTP engine")
            self.http = requests.Session()
            self.http.headers["User-Agent"] = USER_AGENT
        return self

    def navigate(self, url: str):
        if self.http is None:
            self.start()
        if url == "about:blank":
            self._url, self._source = url, ""
        elif url.startswith("data:"):
            self._url, self._source = url, decode_data_url(url)
        else:
            resp = self.http.get(url, timeout=self.timeout)
            resp.raise_for_status()
            self._url, self._source = resp.url, resp.text

    @property
    def url(self) -> str:
        if self.http is None:
            raise RuntimeError("Session not started")
        return self._url

    @property
    def title(self) -> str:
        if self.http is None:
            raise RuntimeError("Session not started")
        return extract_title(self._source)

    @property
    def page_source(self) -> str:
        if self.http is None:
            raise RuntimeError("Session not started")
        return self._source

    def screenshot(self, path: Optional[str] = None) -> bytes:
        raise RuntimeError("The HTTP engine cannot capture pixels")

    def close(self):
        if self.http is not None:
            http, self.http = self.http, None
            http.close()
        self._url, self._source = "about:blank", ""

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
