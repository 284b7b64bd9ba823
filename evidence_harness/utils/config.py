import os
import threading
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = os.path.join("config", "driver.yaml")

# Presence of any of these variables means we run inside a CI box or container.
ENVIRONMENT_MARKERS = ("CI", "REPL_ID")

# Fixed at session creation, never reconfigured.
PAGE_LOAD_TIMEOUT_SECONDS = 60
ELEMENT_WAIT_TIMEOUT_SECONDS = 30

BROWSER_CHROMIUM = "chromium"
BROWSER_FIREFOX = "firefox"
BROWSER_HTTP = "http"

BROWSER_ALIASES = {
    "chromium": BROWSER_CHROMIUM,
    "chrome": BROWSER_CHROMIUM,
    "firefox": BROWSER_FIREFOX,
    "http": BROWSER_HTTP,
    "htmlunit": BROWSER_HTTP,
}

# Runtime override keys read from the process environment.
ENV_OVERRIDES = {
    "HARNESS_BROWSER": "browser",
    "HARNESS_HEADLESS": "headless",
    "HARNESS_WINDOW_WIDTH": "window.width",
    "HARNESS_WINDOW_HEIGHT": "window.height",
    "HARNESS_SCREENSHOT_INTERVAL": "screenshot.interval",
}

_TRUE_WORDS = {"true", "yes", "on", "1"}
_FALSE_WORDS = {"false", "no", "off", "0"}


@dataclass(frozen=True)
class HarnessConfig:
    browser: str = BROWSER_CHROMIUM
    headless: bool = False
    window_width: int = 1920
    window_height: int = 1080
    screenshot_interval: int = 1

    # Set when one of ENVIRONMENT_MARKERS was present at resolution time.
    in_container: bool = False

    @classmethod
    def load(
        cls,
        path: Optional[str] = None,
        overrides: Optional[Mapping[str, Any]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "HarnessConfig":
        """Builds the effective configuration from overrides, the YAML file and defaults."""
        environ = os.environ if environ is None else environ
        overrides = dict(overrides or {})
        file_values = read_properties(path or DEFAULT_CONFIG_PATH)
        in_container = any(marker in environ for marker in ENVIRONMENT_MARKERS)
        defaults = cls()

        def pick(key: str) -> Any:
            if overrides.get(key) is not None:
                return overrides[key], "override"
            if key in file_values and file_values[key] is not None:
                return file_values[key], "file"
            return None, "default"

        raw_browser, _ = pick("browser")
        browser = _parse_browser(raw_browser, defaults.browser)

        raw_headless, source = pick("headless")
        if source == "override":
            headless = _parse_bool("headless", raw_headless, in_container or defaults.headless)
        else:
            from_file = _parse_bool("headless", raw_headless, defaults.headless)
            headless = in_container or from_file

        width = _parse_int("window.width", pick("window.width")[0], defaults.window_width, minimum=1)
        height = _parse_int("window.height", pick("window.height")[0], defaults.window_height, minimum=1)
        interval = _parse_int(
            "screenshot.interval", pick("screenshot.interval")[0], defaults.screenshot_interval, minimum=0
        )

        return cls(
            browser=browser,
            headless=headless,
            window_width=width,
            window_height=height,
            screenshot_interval=interval,
            in_container=in_container,
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "browser": self.browser,
            "headless": self.headless,
            "window.width": self.window_width,
            "window.height": self.window_height,
            "screenshot.interval": self.screenshot_interval,
        }


class ConfigResolver:
    """Resolves the effective configuration once and hands out the same value afterwards."""

    def __init__(
        self,
        path: Optional[str] = None,
        overrides: Optional[Mapping[str, Any]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.path = path
        self.overrides = dict(overrides or {})
        self.environ = environ
        self._config: Optional[HarnessConfig] = None
        self._lock = threading.Lock()

    def resolve(self) -> HarnessConfig:
        if self._config is not None:
            return self._config
        with self._lock:
            if self._config is None:
                self._config = HarnessConfig.load(self.path, self.overrides, self.environ)
                logger.info(f"Effective configuration: {self._config.as_dict()}")
        return self._config


def overrides_from_env(environ: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """Collects HARNESS_* variables into an override mapping keyed like the config file."""
    environ = os.environ if environ is None else environ
    return {key: environ[var] for var, key in ENV_OVERRIDES.items() if environ.get(var)}


def read_properties(path: str) -> Dict[str, Any]:
    """Reads the YAML driver file into a flat ``{"window.width": ...}`` mapping."""
    if not os.path.exists(path):
        logger.info(f"Driver config {path} not found, using defaults")
        return {}
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Could not read driver config {path}: {e}")
        return {}
    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Driver config {path} is not a mapping, using defaults")
        return {}
    return _flatten(data)


def _flatten(data: Mapping[str, Any], prefix: str = "") -> Dict[str, Any]:
    flat: Dict[str, Any] = {}
    for key, value in data.items():
        name = f"{prefix}{key}"
        if isinstance(value, dict):
            flat.update(_flatten(value, prefix=f"{name}."))
        else:
            flat[name] = value
    return flat


def _parse_browser(value: Any, default: str) -> str:
    if value is None:
        return default
    name = str(value).strip().lower()
    if name not in BROWSER_ALIASES:
        logger.warning(f"Unsupported browser '{value}', defaulting to {default}")
        return default
    return BROWSER_ALIASES[name]


def _parse_bool(field: str, value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    word = str(value).strip().lower()
    if word in _TRUE_WORDS:
        return True
    if word in _FALSE_WORDS:
        return False
    logger.warning(f"Malformed value {value!r} for '{field}', using default {default}")
    return default


def _parse_int(field: str, value: Any, default: int, minimum: int) -> int:
    if value is None:
        return default
    try:
        if isinstance(value, bool):
            raise ValueError("boolean is not a number")
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        logger.warning(f"Malformed value {value!r} for '{field}', using default {default}")
        return default
    if parsed < minimum:
        logger.warning(f"Value {parsed} for '{field}' is below {minimum}, using default {default}")
        return default
    return parsed
