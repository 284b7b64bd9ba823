"""On-disk layout shared by the live pipeline and the report assembler.

    target/
        evidence-reports-<stamp>/      one per run
            screenshots/               raw images of every scenario
            <scenario>/                all attachments of one scenario
        screenshots/                   flat fallback location
        test-reports/                  assembled PDF documents
"""

import os
from datetime import datetime
from typing import Any, Dict, Optional

DEFAULT_ROOT = "target"
REPORT_DIR_PREFIX = "evidence-reports"
SCREENSHOT_SUBDIR = "screenshots"
PDF_OUTPUT_SUBDIR = "test-reports"

STAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"


def timestamp(now: Optional[datetime] = None) -> str:
    return (now or datetime.now()).strftime(STAMP_FORMAT)


def new_run_directory(root: str = DEFAULT_ROOT, now: Optional[datetime] = None) -> str:
    path = os.path.join(root, f"{REPORT_DIR_PREFIX}-{timestamp(now)}")
    os.makedirs(os.path.join(path, SCREENSHOT_SUBDIR), exist_ok=True)
    return path


def latest_report_directory(root: str = DEFAULT_ROOT) -> Optional[str]:
    """Most recently modified run directory under ``root``, if any."""
    if not os.path.isdir(root):
        return None
    candidates = [
        os.path.join(root, name)
        for name in os.listdir(root)
        if name.startswith(REPORT_DIR_PREFIX) and os.path.isdir(os.path.join(root, name))
    ]
    if not candidates:
        return None
    return max(candidates, key=os.path.getmtime)


def pdf_output_path(
    root: str = DEFAULT_ROOT, now: Optional[datetime] = None, output_dir: Optional[str] = None
) -> str:
    directory = output_dir or os.path.join(root, PDF_OUTPUT_SUBDIR)
    return os.path.join(directory, f"TestReport-{timestamp(now)}.pdf")


def find_files_by_extension(directory: str, extension: str):
    """Recursively lists files under ``directory`` ending with ``extension``."""
    found = []
    if not os.path.isdir(directory):
        return found
    for current, dirs, files in os.walk(directory):
        dirs.sort()
        for name in sorted(files):
            if name.lower().endswith(extension):
                found.append(os.path.join(current, name))
    return found


def report_locations(root: str = DEFAULT_ROOT) -> Dict[str, Any]:
    """Latest run directory plus the PDF and HTML files produced for it."""
    latest = latest_report_directory(root)
    pdf_dir = os.path.join(root, PDF_OUTPUT_SUBDIR)
    return {
        "report_dir": latest,
        "pdf": find_files_by_extension(pdf_dir, ".pdf") + (find_files_by_extension(latest, ".pdf") if latest else []),
        "html": find_files_by_extension(latest, ".html") if latest else [],
    }
