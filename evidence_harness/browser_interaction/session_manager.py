import enum
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, List, Optional, Sequence

from evidence_harness.browser_interaction.http_session import HttpSession
from evidence_harness.browser_interaction.playwright_session import PlaywrightSession
from evidence_harness.utils.config import BROWSER_HTTP, HarnessConfig

logger = logging.getLogger(__name__)


class SessionInitializationError(RuntimeError):
    """Every session strategy failed; the harness cannot continue."""

    def __init__(self, attempted: Sequence[str]):
        self.attempted = list(attempted)
        super().__init__(f"Browser session initialization failed (tried: {', '.join(self.attempted)})")


class SessionState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    CLOSED = "closed"


@dataclass(frozen=True)
class SessionStrategy:
    """A named way of producing a started session."""

    name: str
    factory: Callable[[], Any]

    def create(self) -> Any:
        session = self.factory()
        session.start()
        return session


def build_strategies(config: HarnessConfig) -> List[SessionStrategy]:
    """Configured engine first, then the non-rendering HTTP engine."""
    fallback = SessionStrategy(BROWSER_HTTP, HttpSession)
    if config.browser == BROWSER_HTTP:
        return [fallback]
    primary = SessionStrategy(
        config.browser,
        lambda: PlaywrightSession(
            engine=config.browser,
            headless=config.headless,
            window_width=config.window_width,
            window_height=config.window_height,
            in_container=config.in_container,
        ),
    )
    return [primary, fallback]


def current_worker() -> int:
    return threading.get_ident()


class SessionManager:
    """Owns one browser session per worker.

    Workers are identified explicitly by the ``worker`` argument; when it is
    omitted the calling thread's identity is used. A worker only ever sees
    its own session.
    """

    def __init__(self, config: HarnessConfig, strategies: Optional[Sequence[SessionStrategy]] = None):
        self.config = config
        self.strategies = list(strategies) if strategies is not None else build_strategies(config)
        self._sessions: Dict[Hashable, Any] = {}
        self._states: Dict[Hashable, SessionState] = {}
        self._lock = threading.Lock()

    def _key(self, worker: Optional[Hashable]) -> Hashable:
        return current_worker() if worker is None else worker

    def state(self, worker: Optional[Hashable] = None) -> SessionState:
        with self._lock:
            return self._states.get(self._key(worker), SessionState.UNINITIALIZED)

    def current(self, worker: Optional[Hashable] = None) -> Optional[Any]:
        """Returns the worker's session without creating one."""
        with self._lock:
            return self._sessions.get(self._key(worker))

    def get(self, worker: Optional[Hashable] = None) -> Any:
        """Returns the worker's session, creating one if there is none."""
        session = self.current(worker)
        if session is None:
            self.initialize(worker)
            session = self.current(worker)
        return session

    def initialize(self, worker: Optional[Hashable] = None):
        """Creates a fresh session for the worker, trying each strategy in order."""
        key = self._key(worker)
        if self.current(key) is not None:
            self.teardown(key)

        self._set_state(key, SessionState.INITIALIZING)
        attempted = []
        last_error: Optional[BaseException] = None
        for strategy in self.strategies:
            attempted.append(strategy.name)
            try:
                session = strategy.create()
            except Exception as e:
                last_error = e
                logger.warning(f"Could not start '{strategy.name}' session: {e}")
                continue
            with self._lock:
                self._sessions[key] = session
                self._states[key] = SessionState.READY
            if len(attempted) > 1:
                logger.warning(f"Fell back to '{strategy.name}' session after {attempted[:-1]} failed")
            else:
                logger.info(f"Started '{strategy.name}' session")
            return

        self._set_state(key, SessionState.UNINITIALIZED)
        raise SessionInitializationError(attempted) from last_error

    def teardown(self, worker: Optional[Hashable] = None):
        """Closes the worker's session, if any. Never raises."""
        key = self._key(worker)
        with self._lock:
            session = self._sessions.pop(key, None)
            if session is not None:
                self._states[key] = SessionState.CLOSED
        if session is None:
            return
        try:
            logger.info(f"Closing '{getattr(session, 'name', 'unknown')}' session")
            session.close()
        except Exception:
            logger.exception("Error while closing browser session")

    def teardown_all(self):
        """End-of-run sweep over every worker's session."""
        with self._lock:
            workers = list(self._sessions)
        for worker in workers:
            self.teardown(worker)
        with self._lock:
            # Swept workers start over as uninitialized.
            for worker in [w for w in self._states if w not in self._sessions]:
                del self._states[worker]

    def can_capture_pixels(self, worker: Optional[Hashable] = None) -> bool:
        session = self.current(worker)
        if session is None:
            return False
        return bool(getattr(session, "can_capture_pixels", False))

    def _set_state(self, key: Hashable, state: SessionState):
        with self._lock:
            self._states[key] = state
