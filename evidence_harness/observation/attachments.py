import enum
import re
import time
from dataclasses import dataclass, field


class AttachmentKind(enum.Enum):
    RAW_IMAGE = "raw-image"
    SYNTHESIZED_VISUAL = "synthesized-visual"
    TEXT_NOTE = "text-note"


MIME_EXTENSIONS = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/svg+xml": ".svg",
    "text/html": ".html",
    "text/plain": ".txt",
}


@dataclass(frozen=True)
class Attachment:
    kind: AttachmentKind
    mime_type: str
    payload: bytes
    label: str
    timestamp: float = field(default_factory=time.time)

    @property
    def extension(self) -> str:
        return MIME_EXTENSIONS.get(self.mime_type, ".bin")

    @property
    def is_image(self) -> bool:
        return self.kind is not AttachmentKind.TEXT_NOTE


_WHITESPACE_RE = re.compile(r"\s+")


def attachment_label(prefix: str, scenario_name: str) -> str:
    """Builds ``{prefix}_{scenario}`` with every whitespace run turned into one underscore."""
    return f"{prefix}_{_WHITESPACE_RE.sub('_', scenario_name.strip())}"
