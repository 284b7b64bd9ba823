import logging
import threading
from dataclasses import dataclass
from typing import Dict, Hashable, List, Optional

from evidence_harness.browser_interaction.session_manager import SessionManager, current_worker
from evidence_harness.observation.attachments import Attachment
from evidence_harness.observation.capture_pipeline import CaptureEvent, CapturePipeline, ScenarioContext
from evidence_harness.reporting.layout import DEFAULT_ROOT, new_run_directory, report_locations
from evidence_harness.reporting.scenario_report import ScenarioReport
from evidence_harness.utils.config import HarnessConfig

logger = logging.getLogger(__name__)


@dataclass
class ActiveScenario:
    context: ScenarioContext
    report: ScenarioReport


class ScenarioHooks:
    """Connects a scenario runner's lifecycle to sessions and evidence capture."""

    def __init__(
        self,
        config: HarnessConfig,
        sessions: Optional[SessionManager] = None,
        pipeline: Optional[CapturePipeline] = None,
        output_root: str = DEFAULT_ROOT,
    ):
        self.config = config
        self.sessions = sessions or SessionManager(config)
        self.pipeline = pipeline or CapturePipeline(self.sessions)
        self.output_root = output_root
        self.run_dir: Optional[str] = None
        self._active: Dict[Hashable, ActiveScenario] = {}
        self._lock = threading.Lock()

    def _key(self, worker: Optional[Hashable]) -> Hashable:
        return current_worker() if worker is None else worker

    def _run_directory(self) -> str:
        with self._lock:
            if self.run_dir is None:
                self.run_dir = new_run_directory(self.output_root)
            return self.run_dir

    def active(self, worker: Optional[Hashable] = None) -> Optional[ActiveScenario]:
        with self._lock:
            return self._active.get(self._key(worker))

    def before_scenario(self, name: str, worker: Optional[Hashable] = None) -> ScenarioReport:
        """Starts a fresh session for the scenario. Raises SessionInitializationError if none can start."""
        key = self._key(worker)
        logger.info(f"Starting scenario: {name}")
        self.sessions.initialize(key)

        report = ScenarioReport(name, self._run_directory())
        scenario = ActiveScenario(context=ScenarioContext(name=name, sink=report), report=report)
        with self._lock:
            self._active[key] = scenario
        self.pipeline.capture(CaptureEvent.SCENARIO_START, scenario.context, key)
        return report

    def before_step(self, worker: Optional[Hashable] = None) -> List[Attachment]:
        return self._step(CaptureEvent.BEFORE_STEP, None, worker)

    def after_step(self, status: Optional[str] = None, worker: Optional[Hashable] = None) -> List[Attachment]:
        return self._step(CaptureEvent.AFTER_STEP, status, worker)

    def _step(self, event: CaptureEvent, status: Optional[str], worker: Optional[Hashable]) -> List[Attachment]:
        key = self._key(worker)
        scenario = self.active(key)
        if scenario is None:
            return []
        # A failed scenario stays failed.
        if status and not scenario.context.failed:
            scenario.context.status = status
        return self.pipeline.capture(event, scenario.context, key)

    def after_scenario(self, status: str, worker: Optional[Hashable] = None) -> Optional[str]:
        """Captures the final state, exports the scenario report and closes the session."""
        key = self._key(worker)
        with self._lock:
            scenario = self._active.pop(key, None)
        if scenario is None:
            self.sessions.teardown(key)
            return None

        logger.info(f"Scenario {scenario.context.name} ended with status: {status}")
        scenario.context.status = status
        scenario.report.status = status
        exported = None
        try:
            self.pipeline.capture(CaptureEvent.SCENARIO_END, scenario.context, key)
            exported = scenario.report.export()
        except Exception:
            logger.exception(f"Could not export evidence for '{scenario.context.name}'")
        finally:
            self.sessions.teardown(key)
        return exported

    def after_all(self):
        """End-of-run sweep: closes every remaining session and logs where the reports are."""
        self.sessions.teardown_all()
        logger.info("Test execution completed - all sessions have been closed")
        locations = report_locations(self.output_root)
        if not locations["report_dir"]:
            logger.info("No evidence report directory found")
            return locations
        logger.info(f"Report directory: {locations['report_dir']}")
        for path in locations["pdf"]:
            logger.info(f"PDF report: {path}")
        for path in locations["html"]:
            logger.info(f"HTML attachment: {path}")
        return locations
