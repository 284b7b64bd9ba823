import base64
import re
from datetime import datetime

import pytest
from unittest.mock import MagicMock

from evidence_harness.browser_interaction.session_manager import SessionManager, SessionStrategy
from evidence_harness.observation.attachments import AttachmentKind, attachment_label
from evidence_harness.observation.capture_pipeline import CaptureEvent, CapturePipeline, ScenarioContext
from evidence_harness.reporting.scenario_report import ScenarioReport
from evidence_harness.utils.config import HarnessConfig

from conftest import FakeSession

SCENARIO = "Login with valid credentials"
FIXED_TIME = datetime(2026, 10, 18, 9, 30, 0)


def pipeline_for(session):
    manager = SessionManager(HarnessConfig(), strategies=[SessionStrategy(session.name, lambda: session)])
    manager.initialize()
    return CapturePipeline(manager, clock=lambda: FIXED_TIME)


def test_label_has_no_whitespace():
    assert attachment_label("Before_Step", SCENARIO) == "Before_Step_Login_with_valid_credentials"
    assert attachment_label("After_Step", " Tabs\tand  spaces ") == "After_Step_Tabs_and_spaces"


def test_no_session_is_a_silent_noop():
    manager = SessionManager(HarnessConfig(), strategies=[])
    sink = MagicMock()
    pipeline = CapturePipeline(manager)

    for event in CaptureEvent:
        assert pipeline.capture(event, ScenarioContext(SCENARIO, sink)) == []
    sink.attach.assert_not_called()


def test_step_capture_with_pixels(png_bytes):
    report = ScenarioReport(SCENARIO)
    pipeline = pipeline_for(FakeSession(png=png_bytes))

    attachments = pipeline.capture(CaptureEvent.BEFORE_STEP, ScenarioContext(SCENARIO, report))

    assert [a.kind for a in attachments] == [AttachmentKind.RAW_IMAGE, AttachmentKind.TEXT_NOTE]
    image, caption = attachments
    assert image.mime_type == "image/png"
    assert image.payload == png_bytes
    assert image.label == "Before_Step_Login_with_valid_credentials"
    assert caption.label == "Before_Step_Login_with_valid_credentials_details"
    text = caption.payload.decode()
    assert "https://example.com/login" in text
    assert "Login Page" in text
    assert "2026-10-18 09:30:00" in text
    assert report.attachments == attachments


def test_failed_screenshot_falls_back_to_synthesized_visual(caplog):
    report = ScenarioReport(SCENARIO)
    pipeline = pipeline_for(FakeSession(png=None))

    attachments = pipeline.capture(CaptureEvent.AFTER_STEP, ScenarioContext(SCENARIO, report, status="PASSED"))

    assert [a.kind for a in attachments] == [AttachmentKind.SYNTHESIZED_VISUAL, AttachmentKind.TEXT_NOTE]
    svg = attachments[0].payload.decode()
    assert attachments[0].mime_type == "image/svg+xml"
    assert attachments[0].label == "After_Step_Login_with_valid_credentials"
    assert svg.startswith("<svg")
    assert "URL: https://example.com/login" in svg
    assert "Status: PASSED" in svg
    assert "using a synthesized visual" in caplog.text


def test_corrupt_screenshot_bytes_fall_back():
    pipeline = pipeline_for(FakeSession(png=b"not a png"))
    attachments = pipeline.capture(CaptureEvent.BEFORE_STEP, ScenarioContext(SCENARIO, ScenarioReport(SCENARIO)))
    assert attachments[0].kind is AttachmentKind.SYNTHESIZED_VISUAL


def test_non_rendering_session_never_requests_pixels():
    session = FakeSession(name="http", can_capture_pixels=False)
    session.screenshot = MagicMock()
    pipeline = pipeline_for(session)

    attachments = pipeline.capture(CaptureEvent.BEFORE_STEP, ScenarioContext(SCENARIO, ScenarioReport(SCENARIO)))

    session.screenshot.assert_not_called()
    assert attachments[0].kind is AttachmentKind.SYNTHESIZED_VISUAL


def test_scenario_start_produces_one_note():
    pipeline = pipeline_for(FakeSession())
    attachments = pipeline.capture(CaptureEvent.SCENARIO_START, ScenarioContext(SCENARIO, ScenarioReport(SCENARIO)))

    assert len(attachments) == 1
    assert attachments[0].kind is AttachmentKind.TEXT_NOTE
    assert attachments[0].label == "Scenario_Start_Login_with_valid_credentials"
    assert "Test Started" in attachments[0].payload.decode()


def test_scenario_end_embeds_svg_and_adds_summary(png_bytes):
    pipeline = pipeline_for(FakeSession(png=png_bytes))
    context = ScenarioContext(SCENARIO, ScenarioReport(SCENARIO), status="FAILED")

    visual, summary = pipeline.capture(CaptureEvent.SCENARIO_END, context)

    assert visual.kind is AttachmentKind.SYNTHESIZED_VISUAL
    assert visual.mime_type == "text/html"
    assert visual.label == "Final_State_Login_with_valid_credentials"
    encoded = re.search(r"data:image/svg\+xml;base64,([A-Za-z0-9+/=]+)", visual.payload.decode()).group(1)
    assert "FINAL STATE - FAILED" in base64.b64decode(encoded).decode()

    assert summary.kind is AttachmentKind.TEXT_NOTE
    assert "Test Completed: FAILED" in summary.payload.decode()
    assert "color:red" in summary.payload.decode()


def test_markup_is_escaped():
    session = FakeSession(title="<script>alert(1)</script>")
    pipeline = pipeline_for(session)
    attachments = pipeline.capture(CaptureEvent.AFTER_STEP, ScenarioContext(SCENARIO, ScenarioReport(SCENARIO)))
    assert "<script>" not in attachments[0].payload.decode()


def test_capture_errors_never_escape(caplog):
    sink = MagicMock()
    sink.attach.side_effect = IOError("disk full")
    pipeline = pipeline_for(FakeSession())

    attachments = pipeline.capture(CaptureEvent.SCENARIO_START, ScenarioContext(SCENARIO, sink))

    assert attachments == []
    assert "Error capturing Scenario_Start evidence" in caplog.text


@pytest.mark.parametrize("event", [CaptureEvent.BEFORE_STEP, CaptureEvent.AFTER_STEP])
def test_every_image_has_a_caption(event, png_bytes):
    pipeline = pipeline_for(FakeSession(png=png_bytes))
    attachments = pipeline.capture(event, ScenarioContext(SCENARIO, ScenarioReport(SCENARIO)))
    images = [a for a in attachments if a.is_image]
    notes = [a for a in attachments if not a.is_image]
    assert len(images) == 1
    assert [n.label for n in notes] == [f"{images[0].label}_details"]
