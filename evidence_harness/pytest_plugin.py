"""pytest-bdd integration.

Enable it from a ``conftest.py``::

    pytest_plugins = ["evidence_harness.pytest_plugin"]

Every scenario then gets its own browser session (``browser_session``
fixture) and evidence is captured around each step.
"""

import logging

import pytest

from evidence_harness.hooks import ScenarioHooks
from evidence_harness.utils.config import ConfigResolver, overrides_from_env

logger = logging.getLogger(__name__)

hooks_key = pytest.StashKey[ScenarioHooks]()


def pytest_addoption(parser):
    group = parser.getgroup("evidence", "browser evidence capture")
    group.addoption("--harness-config", default=None, help="Path to the driver YAML file")
    group.addoption("--harness-output", default="target", help="Root directory for captured evidence")


def pytest_configure(config):
    resolver = ConfigResolver(
        path=config.getoption("--harness-config"),
        overrides=overrides_from_env(),
    )
    config.stash[hooks_key] = ScenarioHooks(resolver.resolve(), output_root=config.getoption("--harness-output"))


def pytest_sessionfinish(session, exitstatus):
    hooks = session.config.stash.get(hooks_key, None)
    if hooks is not None:
        hooks.after_all()


def _hooks(request) -> ScenarioHooks:
    return request.config.stash[hooks_key]


def pytest_bdd_before_scenario(request, feature, scenario):
    _hooks(request).before_scenario(scenario.name)


def pytest_bdd_before_step(request, feature, scenario, step, step_func):
    _hooks(request).before_step()


def pytest_bdd_after_step(request, feature, scenario, step, step_func, step_func_args):
    _hooks(request).after_step(status="PASSED")


def pytest_bdd_step_error(request, feature, scenario, step, step_func, step_func_args, exception):
    _hooks(request).after_step(status="FAILED")


def pytest_bdd_after_scenario(request, feature, scenario):
    hooks = _hooks(request)
    active = hooks.active()
    status = "FAILED" if active is not None and active.context.failed else "PASSED"
    hooks.after_scenario(status)


@pytest.fixture
def browser_session(request):
    """The current worker's browser session, created on demand."""
    return _hooks(request).sessions.get()
