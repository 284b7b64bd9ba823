from types import SimpleNamespace

from unittest.mock import MagicMock

from evidence_harness import pytest_plugin
from evidence_harness.browser_interaction.session_manager import SessionManager, SessionStrategy
from evidence_harness.hooks import ScenarioHooks
from evidence_harness.utils.config import HarnessConfig

from conftest import FakeSession


def make_request(tmp_path):
    config = HarnessConfig()
    manager = SessionManager(config, strategies=[SessionStrategy("chromium", FakeSession)])
    hooks = ScenarioHooks(config, sessions=manager, output_root=str(tmp_path / "target"))
    request = MagicMock()
    request.config.stash = {pytest_plugin.hooks_key: hooks}
    return request, hooks


def test_bdd_lifecycle(tmp_path):
    request, hooks = make_request(tmp_path)
    feature = SimpleNamespace(name="Authentication")
    scenario = SimpleNamespace(name="Login with valid credentials")
    step = SimpleNamespace(name="I open the login page")

    pytest_plugin.pytest_bdd_before_scenario(request, feature, scenario)
    report = hooks.active().report
    pytest_plugin.pytest_bdd_before_step(request, feature, scenario, step, None)
    pytest_plugin.pytest_bdd_after_step(request, feature, scenario, step, None, {})
    pytest_plugin.pytest_bdd_after_scenario(request, feature, scenario)

    assert report.status == "PASSED"
    assert report.attachments[0].label == "Scenario_Start_Login_with_valid_credentials"
    assert hooks.sessions.current() is None


def test_step_error_marks_scenario_failed(tmp_path):
    request, hooks = make_request(tmp_path)
    scenario = SimpleNamespace(name="Broken login")
    step = SimpleNamespace(name="I submit")

    pytest_plugin.pytest_bdd_before_scenario(request, None, scenario)
    report = hooks.active().report
    pytest_plugin.pytest_bdd_step_error(request, None, scenario, step, None, {}, AssertionError("nope"))
    pytest_plugin.pytest_bdd_after_scenario(request, None, scenario)

    assert report.status == "FAILED"
    assert "Test Completed: FAILED" in report.attachments[-1].payload.decode()


def test_session_finish_runs_sweep(tmp_path):
    request, hooks = make_request(tmp_path)
    session = hooks.sessions.get()
    pytest_plugin.pytest_sessionfinish(SimpleNamespace(config=request.config), 0)
    assert session.closed
