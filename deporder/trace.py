"""Decision trace of a tree build."""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .models import Path

logger = logging.getLogger(__name__)

ENTERED = "entered"
PRUNED_DUPLICATE = "pruned_duplicate"
DETECTED_CYCLE = "detected_cycle"
REWIRED = "rewired"
LEAF = "leaf"
EXTERNAL = "external"

EVENT_KINDS = (ENTERED, PRUNED_DUPLICATE, DETECTED_CYCLE, REWIRED, LEAF, EXTERNAL)


@dataclass
class TraceEvent:
    """One decision taken while building the tree."""

    kind: str
    node: str
    path: Path = ()
    priority: Optional[int] = None
    parent: Optional[str] = None
    detail: dict = field(default_factory=dict)

    def __post_init__(self):
        if self.kind not in EVENT_KINDS:
            raise ValueError(f"Unknown trace event kind: {self.kind}")
        self.path = tuple(self.path)

    def __str__(self) -> str:
        text = f"{self.kind:<16} {self.node}"
        if self.parent:
            text += f" <- {self.parent}"
        text += f" {list(self.path)}"
        if self.priority is not None:
            text += f" p={self.priority}"
        if self.detail:
            text += " " + " ".join(f"{k}={v}" for k, v in self.detail.items())
        return text


TraceSink = Callable[[TraceEvent], None]


class LoggingTrace:
    """Writes every event to the log at DEBUG level."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log or logger

    def __call__(self, event: TraceEvent) -> None:
        self.log.debug(f"trace: {event}")


class TraceRecorder:
    """Keeps every event, in emission order."""

    def __init__(self):
        self.events: List[TraceEvent] = []

    def __call__(self, event: TraceEvent) -> None:
        self.events.append(event)

    def of_kind(self, kind: str) -> List[TraceEvent]:
        return [e for e in self.events if e.kind == kind]

    def __len__(self) -> int:
        return len(self.events)
