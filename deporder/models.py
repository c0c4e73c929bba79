"""Core data models for deporder."""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import List, Optional, Tuple, Union

Path = Tuple[int, ...]
Edge = Tuple[int, str]  # (priority, dependency id)


class Priority(IntEnum):
    """Dependency strength. Smaller values are stronger."""

    REQUIRED = 1
    RECOMMENDED = 2
    OPTIONAL = 3
    EXTERNAL = 4

    @classmethod
    def parse(cls, value: Union[int, str, "Priority"]) -> "Priority":
        """Accept 1..4, their string forms, or a priority name."""
        if isinstance(value, Priority):
            return value
        if isinstance(value, int):
            return cls(value)
        text = str(value).strip().lower()
        if text.isdigit():
            return cls(int(text))
        try:
            return cls[text.upper()]
        except KeyError:
            raise ValueError(f"Unknown dependency priority: {value!r}") from None

    @property
    def label(self) -> str:
        return self.name.lower()


@dataclass
class Node:
    """The canonical record of one package in the dependency tree.

    ``path`` holds the sibling position of every ancestor from the root
    down to this node, ``priority_path`` the priority of the edge entering
    each of those positions. ``edges`` is the live edge list, pruned as
    duplicates are found. ``source_edges`` is the cached dependency list
    shared with the dependency cache; only rewiring and cycle pruning
    change it.
    """

    id: str
    path: Path = ()
    priority_path: Path = ()
    edges: List[Edge] = field(default_factory=list)
    source_edges: List[Edge] = field(default_factory=list, repr=False)
    external: bool = False

    def __post_init__(self):
        self.path = tuple(self.path)
        self.priority_path = tuple(self.priority_path)
        if len(self.path) != len(self.priority_path):
            raise ValueError(
                f"Path {list(self.path)} and priority path {list(self.priority_path)} "
                f"of {self.id} differ in length"
            )

    @property
    def depth(self) -> int:
        return len(self.path)

    @property
    def parent_path(self) -> Optional[Path]:
        """Path of the parent node, None for the root."""
        if not self.path:
            return None
        return self.path[:-1]

    @property
    def is_leaf(self) -> bool:
        return not self.edges

    def is_ancestor_of(self, path: Path) -> bool:
        """True if this node's path is an equal or proper prefix of ``path``."""
        return tuple(path[:len(self.path)]) == self.path

    def __str__(self) -> str:
        return f"{self.id} {list(self.path)}"


@dataclass
class Backtrack:
    """Request to rewrite the tree under an ancestor to break a cycle.

    ``target_parent`` is the node that performs the rewire: the parent of
    ``demote``, the package that was re-entered. ``promote`` is the package
    whose incoming edge is cut; it takes the place of ``demote`` under
    ``target_parent``. ``priority`` is the weakest edge priority seen while
    the request travelled up the call chain.
    """

    target_parent: str
    promote: str
    demote: str
    priority: int

    def __str__(self) -> str:
        return (f"backtrack to {self.target_parent}: promote {self.promote}, "
                f"demote {self.demote} (priority {self.priority})")
