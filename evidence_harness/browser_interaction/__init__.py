"""Browser engines and per-worker session lifecycle."""

from evidence_harness.browser_interaction.session_manager import (
    SessionInitializationError,
    SessionManager,
    SessionState,
    SessionStrategy,
)

__all__ = ["SessionInitializationError", "SessionManager", "SessionState", "SessionStrategy"]
