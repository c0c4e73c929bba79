"""deporder - build order resolution for source-based distributions."""

__version__ = "1.0.0"

from .exceptions import (
    DependencyOrderError,
    MalformedSourceError,
    OrphanReferenceError,
    UnresolvableCycleError,
    DuplicateRemovalMismatchError,
    ConfigError,
)
from .models import Priority, Node, Backtrack
from .config import ResolverConfig
from .store import NodeStore
from .sources import MappingSource, DepFileSource, XmlSource, DependencyCache
from .graph_builder import DependencyTreeBuilder, Tree, build_order

__all__ = [
    "__version__",
    "DependencyOrderError",
    "MalformedSourceError",
    "OrphanReferenceError",
    "UnresolvableCycleError",
    "DuplicateRemovalMismatchError",
    "ConfigError",
    "Priority",
    "Node",
    "Backtrack",
    "ResolverConfig",
    "NodeStore",
    "MappingSource",
    "DepFileSource",
    "XmlSource",
    "DependencyCache",
    "DependencyTreeBuilder",
    "Tree",
    "build_order",
]
