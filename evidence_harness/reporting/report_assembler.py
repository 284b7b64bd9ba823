"""Offline assembly of captured screenshots into a PDF document.

Discovery walks the run output directories left behind by the live pipeline,
assembly lays each image on its own A4 page after a title page.
"""

import io
import os
import logging
import platform
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterator, List, Optional, Sequence, Tuple

from PIL import Image
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from evidence_harness.reporting.layout import (
    DEFAULT_ROOT,
    REPORT_DIR_PREFIX,
    SCREENSHOT_SUBDIR,
)
from evidence_harness.utils.config import HarnessConfig

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg")
DIRECTORY_MARKERS = ("screenshot", "report", "extent")

TITLE_FONT = "Helvetica-Bold"
HEADER_FONT = "Helvetica-Bold"
NORMAL_FONT = "Helvetica"
TITLE_FONT_SIZE = 18
HEADER_FONT_SIZE = 14
NORMAL_FONT_SIZE = 11
MARGIN = 50
HEADER_GAP = 30


class ReportAssemblyError(RuntimeError):
    pass


@dataclass(frozen=True)
class DiscoveredImage:
    file_path: str
    size_bytes: int
    pixel_width: Optional[int] = None
    pixel_height: Optional[int] = None

    @property
    def file_name(self) -> str:
        return os.path.basename(self.file_path)


class DirectoryLister:
    """Filesystem access used by discovery; swap it out to test without a disk."""

    def list_dir(self, path: str) -> List[str]:
        return os.listdir(path)

    def is_dir(self, path: str) -> bool:
        return os.path.isdir(path)

    def mtime(self, path: str) -> float:
        return os.path.getmtime(path)

    def size(self, path: str) -> int:
        return os.path.getsize(path)

    def open(self, path: str):
        return open(path, "rb")


def is_image_file(name: str) -> bool:
    return name.lower().endswith(IMAGE_EXTENSIONS)


def scan_images(directory: str, lister: DirectoryLister) -> Iterator[str]:
    """Depth-first, name-ordered walk yielding image paths under ``directory``."""
    if not lister.is_dir(directory):
        return
    for name in sorted(lister.list_dir(directory)):
        path = os.path.join(directory, name)
        if lister.is_dir(path):
            yield from scan_images(path, lister)
        elif is_image_file(name):
            yield path


def locate_latest_run(root: str, lister: DirectoryLister) -> Iterator[str]:
    """Screenshots of the most recently modified run directory."""
    if not lister.is_dir(root):
        return
    runs = [
        os.path.join(root, name)
        for name in lister.list_dir(root)
        if name.startswith(REPORT_DIR_PREFIX) and lister.is_dir(os.path.join(root, name))
    ]
    if not runs:
        return
    latest = max(runs, key=lister.mtime)
    yield from scan_images(os.path.join(latest, SCREENSHOT_SUBDIR), lister)


def locate_flat_screenshots(root: str, lister: DirectoryLister) -> Iterator[str]:
    yield from scan_images(os.path.join(root, SCREENSHOT_SUBDIR), lister)


def locate_marked_directories(root: str, lister: DirectoryLister) -> Iterator[str]:
    """First top-level directory with a screenshot/report marker in its name that holds images."""
    if not lister.is_dir(root):
        return
    for name in sorted(lister.list_dir(root)):
        path = os.path.join(root, name)
        if not lister.is_dir(path) or not any(marker in name.lower() for marker in DIRECTORY_MARKERS):
            continue
        found = list(scan_images(path, lister))
        if found:
            yield from found
            return


Locator = Callable[[str, DirectoryLister], Iterator[str]]

DEFAULT_LOCATORS: Tuple[Locator, ...] = (
    locate_latest_run,
    locate_flat_screenshots,
    locate_marked_directories,
)


def describe_image(path: str, lister: DirectoryLister) -> DiscoveredImage:
    width = height = None
    try:
        with lister.open(path) as f:
            with Image.open(f) as image:
                width, height = image.size
    except Exception as e:
        logger.debug(f"Could not read image header of {path}: {e}")
    return DiscoveredImage(file_path=path, size_bytes=lister.size(path), pixel_width=width, pixel_height=height)


def iter_images(
    root: str = DEFAULT_ROOT,
    lister: Optional[DirectoryLister] = None,
    locators: Sequence[Locator] = DEFAULT_LOCATORS,
) -> Iterator[DiscoveredImage]:
    """Yields images from the first locator that finds any."""
    lister = lister or DirectoryLister()
    for locate in locators:
        paths = locate(root, lister)
        first = next(paths, None)
        if first is None:
            continue
        logger.info(f"Found images in: {os.path.dirname(first)}")
        yield describe_image(first, lister)
        for path in paths:
            yield describe_image(path, lister)
        return


def find_images(
    root: str = DEFAULT_ROOT,
    lister: Optional[DirectoryLister] = None,
    locators: Sequence[Locator] = DEFAULT_LOCATORS,
) -> List[DiscoveredImage]:
    return list(iter_images(root, lister, locators))


@dataclass(frozen=True)
class Placement:
    x: float
    y: float
    width: float
    height: float
    scale: float


def fit_image(image_width: float, image_height: float, avail_width: float, avail_height: float) -> float:
    """Uniform scale that fits the image: width first, then height if it still overflows."""
    scale = avail_width / image_width
    if image_height * scale > avail_height:
        scale = avail_height / image_height
    return scale


def place_image(
    image_width: float,
    image_height: float,
    page_width: float,
    page_height: float,
    margin: float = MARGIN,
    header_gap: float = HEADER_GAP,
) -> Placement:
    """Centers the scaled image horizontally, directly below the page header."""
    avail_width = page_width - 2 * margin
    avail_height = page_height - 2 * margin - header_gap
    scale = fit_image(image_width, image_height, avail_width, avail_height)
    width = image_width * scale
    height = image_height * scale
    x = (page_width - width) / 2
    y = page_height - margin - header_gap - height
    return Placement(x=x, y=y, width=width, height=height, scale=scale)


def environment_lines(config: Optional[HarnessConfig] = None) -> List[str]:
    lines = [f"OS: {platform.system()} {platform.release()}".strip()]
    if config is not None:
        lines.append(f"Browser: {config.browser}{' (Headless)' if config.headless else ''}")
    lines.append("Framework: pytest with Playwright")
    return lines


@dataclass
class AssemblyResult:
    output_path: str
    page_count: int = 1
    skipped: List[str] = field(default_factory=list)


class ReportAssembler:
    def __init__(
        self,
        environment: Optional[Sequence[str]] = None,
        clock: Callable[[], datetime] = datetime.now,
        page_size: Tuple[float, float] = A4,
    ):
        self.environment = list(environment) if environment is not None else environment_lines()
        self.clock = clock
        self.page_size = page_size

    def assemble(self, images: Sequence[DiscoveredImage], output_path: str) -> AssemblyResult:
        """Renders the title page plus one page per readable image and writes the PDF."""
        result = AssemblyResult(output_path=output_path)
        buffer = io.BytesIO()
        pdf = canvas.Canvas(buffer, pagesize=self.page_size)
        pdf.setTitle("Test Execution Report")

        self._title_page(pdf)
        pdf.showPage()

        for number, image in enumerate(images, start=1):
            try:
                reader, (width, height) = self._load(image)
            except Exception as e:
                logger.warning(f"Skipping {image.file_path}: {e}")
                result.skipped.append(image.file_path)
                continue
            self._image_page(pdf, reader, width, height, f"Screenshot {number}: {image.file_name}")
            pdf.showPage()
            result.page_count += 1

        pdf.save()
        self._write(buffer.getvalue(), output_path)
        logger.info(
            f"PDF report with {result.page_count - 1} screenshots written to {os.path.abspath(output_path)}"
        )
        return result

    def _load(self, image: DiscoveredImage):
        with Image.open(image.file_path) as source:
            source.load()
            decoded = source.convert("RGB") if source.mode not in ("RGB", "L") else source.copy()
        return ImageReader(decoded), decoded.size

    def _title_page(self, pdf: canvas.Canvas):
        _, page_height = self.page_size
        top = page_height - MARGIN

        pdf.setFont(TITLE_FONT, TITLE_FONT_SIZE)
        pdf.drawString(MARGIN, top, "Test Execution Report")

        pdf.setFont(NORMAL_FONT, NORMAL_FONT_SIZE)
        pdf.drawString(MARGIN, top - 30, f"Generated: {self.clock().strftime('%Y-%m-%d %H:%M:%S')}")
        pdf.drawString(MARGIN, top - 70, "This report contains screenshots captured during test execution.")

        pdf.setFont(HEADER_FONT, HEADER_FONT_SIZE)
        pdf.drawString(MARGIN, top - 110, "Test Environment")

        pdf.setFont(NORMAL_FONT, NORMAL_FONT_SIZE)
        y = top - 140
        for line in self.environment:
            pdf.drawString(MARGIN, y, line)
            y -= 20

    def _image_page(self, pdf: canvas.Canvas, reader: ImageReader, width: int, height: int, header: str):
        page_width, page_height = self.page_size
        pdf.setFont(HEADER_FONT, HEADER_FONT_SIZE)
        pdf.drawString(MARGIN, page_height - MARGIN, header)
        placement = place_image(width, height, page_width, page_height)
        pdf.drawImage(reader, placement.x, placement.y, placement.width, placement.height)

    def _write(self, data: bytes, output_path: str):
        directory = os.path.dirname(output_path)
        partial = f"{output_path}.part"
        try:
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(partial, "wb") as f:
                f.write(data)
            os.replace(partial, output_path)
        except OSError as e:
            if os.path.exists(partial):
                os.remove(partial)
            raise ReportAssemblyError(f"Could not write report to {output_path}: {e}") from e
