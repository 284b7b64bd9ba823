import json
import os
import re
import logging
from dataclasses import dataclass, asdict
from typing import List, Optional

from evidence_harness.observation.attachments import Attachment, AttachmentKind
from evidence_harness.reporting.layout import SCREENSHOT_SUBDIR

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]+")


def safe_filename(name: str) -> str:
    return _UNSAFE_CHARS.sub("_", name).strip("_") or "scenario"


def claim_directory(parent: str, name: str) -> str:
    """Creates a directory under parent that no earlier export used. Repeats get a numeric suffix."""
    os.makedirs(parent, exist_ok=True)
    suffix = 1
    while True:
        candidate = name if suffix == 1 else f"{name}_{suffix}"
        path = os.path.join(parent, candidate)
        try:
            os.makedirs(path)
            return path
        except FileExistsError:
            suffix += 1


@dataclass
class AttachmentRecord:
    index: int
    kind: str
    mime_type: str
    label: str
    timestamp: float
    # Attachments are written next to the index, not inlined.
    path: Optional[str] = None


class ScenarioReport:
    """Collects the attachments of one scenario and persists them verbatim."""

    def __init__(self, name: str, run_dir: Optional[str] = None):
        self.name = name
        self.run_dir = run_dir
        self.status = "RUNNING"
        self.attachments: List[Attachment] = []

    def attach(self, attachment: Attachment):
        self.attachments.append(attachment)

    def export(self, run_dir: Optional[str] = None) -> str:
        """Writes every attachment plus an index file and returns the scenario directory."""
        run_dir = run_dir or self.run_dir
        if not run_dir:
            raise ValueError("No run directory to export to")
        screenshot_dir = os.path.join(run_dir, SCREENSHOT_SUBDIR)
        os.makedirs(screenshot_dir, exist_ok=True)
        scenario_dir = claim_directory(run_dir, safe_filename(self.name))
        prefix = os.path.basename(scenario_dir)

        records = []
        for index, attachment in enumerate(self.attachments, start=1):
            filename = f"{index:03d}_{safe_filename(attachment.label)}{attachment.extension}"
            path = os.path.join(scenario_dir, filename)
            with open(path, "wb") as f:
                f.write(attachment.payload)
            if attachment.kind is AttachmentKind.RAW_IMAGE:
                # The assembler only looks at the run's screenshot folder.
                mirror = os.path.join(screenshot_dir, f"{prefix}_{filename}")
                with open(mirror, "wb") as f:
                    f.write(attachment.payload)
            records.append(
                AttachmentRecord(
                    index=index,
                    kind=attachment.kind.value,
                    mime_type=attachment.mime_type,
                    label=attachment.label,
                    timestamp=attachment.timestamp,
                    path=filename,
                )
            )

        with open(os.path.join(scenario_dir, "scenario.json"), "w") as f:
            json.dump(
                {"name": self.name, "status": self.status, "attachments": [asdict(r) for r in records]},
                f,
                indent=2,
            )
        logger.info(f"Exported {len(records)} attachments for '{self.name}' to {scenario_dir}")
        return scenario_dir
