import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Hashable, List, Optional, Union

from evidence_harness.browser_interaction.session_manager import SessionManager
from evidence_harness.observation import surrogate
from evidence_harness.observation.attachments import Attachment, AttachmentKind, attachment_label
from evidence_harness.observation.visual_capture import VisualCapture

logger = logging.getLogger(__name__)

TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class CaptureEvent(enum.Enum):
    SCENARIO_START = "Scenario_Start"
    BEFORE_STEP = "Before_Step"
    AFTER_STEP = "After_Step"
    SCENARIO_END = "Final_State"

    @property
    def prefix(self) -> str:
        return self.value


@dataclass
class ScenarioContext:
    """What the pipeline needs to know about the running scenario."""

    name: str
    sink: Any  # anything with attach(Attachment)
    status: str = "RUNNING"

    @property
    def failed(self) -> bool:
        return self.status.upper() == "FAILED"


@dataclass
class _PageState:
    url: str
    title: str
    time: str


class CapturePipeline:
    """Turns scenario lifecycle events into evidence attachments.

    Capturing is best effort: nothing raised here reaches the scenario.
    """

    def __init__(self, sessions: SessionManager, clock: Callable[[], datetime] = datetime.now):
        self.sessions = sessions
        self.clock = clock

    def capture(
        self, event: CaptureEvent, context: ScenarioContext, worker: Optional[Hashable] = None
    ) -> List[Attachment]:
        """Captures evidence for one event and returns the attachments it emitted."""
        session = self.sessions.current(worker)
        if session is None:
            logger.debug(f"No active session, skipping {event.prefix} capture")
            return []

        emitted: List[Attachment] = []

        def emit(kind: AttachmentKind, mime_type: str, payload: Union[str, bytes], label: str):
            data = payload.encode("utf-8") if isinstance(payload, str) else payload
            attachment = Attachment(kind=kind, mime_type=mime_type, payload=data, label=label)
            context.sink.attach(attachment)
            emitted.append(attachment)

        try:
            state = self._page_state(session)
            label = attachment_label(event.prefix, context.name)
            if event is CaptureEvent.SCENARIO_START:
                self._capture_start(context, state, label, emit)
            elif event is CaptureEvent.SCENARIO_END:
                self._capture_end(context, state, label, emit)
            else:
                self._capture_step(event, session, context, state, label, worker, emit)
        except Exception:
            logger.exception(f"Error capturing {event.prefix} evidence for '{context.name}'")
        return emitted

    def _page_state(self, session: Any) -> _PageState:
        return _PageState(url=session.url, title=session.title, time=self.clock().strftime(TIME_FORMAT))

    def _capture_start(self, context, state, label, emit):
        html = surrogate.scenario_start_html(context.name, state.url, state.title, state.time)
        emit(AttachmentKind.TEXT_NOTE, "text/html", html, label)

    def _capture_step(self, event, session, context, state, label, worker, emit):
        if self.sessions.can_capture_pixels(worker):
            try:
                png, image = VisualCapture(session).capture()
            except Exception as e:
                logger.warning(f"Screenshot failed for {label}, using a synthesized visual: {e}")
            else:
                emit(AttachmentKind.RAW_IMAGE, "image/png", png, label)
                logger.info(f"Screenshot captured: {label} ({image.width}x{image.height})")
                emit(AttachmentKind.TEXT_NOTE, "text/html",
                     surrogate.details_html(state.url, state.title, state.time), f"{label}_details")
                return

        svg = surrogate.render_svg(
            f"{event.prefix} - {state.title}",
            [
                f"URL: {state.url}",
                f"Title: {state.title}",
                f"Status: {context.status}",
                f"Time: {state.time}",
            ],
        )
        emit(AttachmentKind.SYNTHESIZED_VISUAL, "image/svg+xml", svg, label)
        emit(AttachmentKind.TEXT_NOTE, "text/html",
             surrogate.details_html(state.url, state.title, state.time), f"{label}_details")

    def _capture_end(self, context, state, label, emit):
        svg = surrogate.render_svg(
            f"FINAL STATE - {context.status}",
            [
                f"URL: {state.url}",
                f"Title: {state.title}",
                f"Status: {context.status}",
                f"Time: {state.time}",
            ],
        )
        emit(AttachmentKind.SYNTHESIZED_VISUAL, "text/html", surrogate.embed_svg_html(svg), label)
        summary = surrogate.final_summary_html(state.url, state.title, context.status, context.failed, state.time)
        emit(AttachmentKind.TEXT_NOTE, "text/html", summary, attachment_label("Final_Summary", context.name))
