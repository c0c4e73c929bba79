"""Builds the dependency tree of a build run and resolves its cycles."""

import logging
from typing import Dict, Iterable, List, Optional, Tuple, Union

from .config import ResolverConfig
from .exceptions import (
    DuplicateRemovalMismatchError,
    OrphanReferenceError,
    UnresolvableCycleError,
)
from .models import Backtrack, Edge, Node, Priority
from .sources import DependencyCache
from .store import NodeStore
from .trace import (
    DETECTED_CYCLE,
    ENTERED,
    EXTERNAL,
    LEAF,
    PRUNED_DUPLICATE,
    REWIRED,
    LoggingTrace,
    TraceEvent,
    TraceSink,
)
from .traversal import iter_build_order

logger = logging.getLogger(__name__)


class Tree:
    """A completed dependency tree."""

    def __init__(self, store: NodeStore, root_id: str, synthetic_root: bool = False,
                 stats: Optional[Dict[str, int]] = None):
        self.store = store
        self.root_id = root_id
        self.synthetic_root = synthetic_root
        self.stats = dict(stats or {})

    @property
    def root(self) -> Node:
        return self.store.get(self.root_id)

    def order(self) -> List[str]:
        """Build order: every package after all of its dependencies."""
        order = list(iter_build_order(self.store, self.root_id))
        if not self.synthetic_root:
            order.append(self.root_id)
        return order

    def edges_of(self, node_id: str) -> List[Edge]:
        return list(self.store.get(node_id).edges)

    def children_of(self, node_id: str) -> List[str]:
        return [dep_id for _priority, dep_id in self.store.get(node_id).edges]

    def packages(self) -> List[str]:
        """Every package of the tree, synthetic root excluded."""
        return [n.id for n in self.store if not (self.synthetic_root and n.id == self.root_id)]

    def __contains__(self, node_id: str) -> bool:
        return node_id in self.store and not (self.synthetic_root and node_id == self.root_id)

    def __len__(self) -> int:
        return len(self.packages())


class DependencyTreeBuilder:
    """
    Expands requested packages into a dependency tree, one canonical node
    per package.

    A second reference to a package that is not an ancestor is dropped from
    the referencing node's edge list. A reference to an ancestor is a cycle:
    it is dropped when the new edge is no stronger than the weakest edge
    between the ancestor and the current node. Otherwise a Backtrack travels
    back up to the ancestor's parent, which rewires the tree so that the
    cycle is cut at its weakest edge, and expansion resumes from there.
    """

    def __init__(self, source, config: Optional[ResolverConfig] = None,
                 trace: Optional[TraceSink] = None):
        self.config = config or ResolverConfig()
        self.cache = source if isinstance(source, DependencyCache) else DependencyCache(source)
        self.trace = trace if trace is not None else LoggingTrace()
        self.store = NodeStore()
        self._top_depth = 0
        self._stats = self._empty_stats()

    @staticmethod
    def _empty_stats() -> Dict[str, int]:
        return {"pruned": 0, "cycles": 0, "rewires": 0}

    def build(self, targets: Union[str, Iterable[str]]) -> Tree:
        """
        Build the tree for one package, or for several under a synthetic root.

        Raises:
            MalformedSourceError: dependency metadata could not be used
            OrphanReferenceError: the store lost track of a parent node
            UnresolvableCycleError: a cycle could not be resolved
        """
        if isinstance(targets, str):
            targets = [targets]
        targets = list(dict.fromkeys(targets))
        if not targets:
            raise ValueError("No package requested")

        self.store = NodeStore()
        self._stats = self._empty_stats()

        if len(targets) == 1:
            root_id = targets[0]
            synthetic = False
            self._top_depth = 0
        else:
            root_id = self.config.root_name
            if root_id in targets:
                raise ValueError(f"Requested package {root_id} clashes with the root name")
            synthetic = True
            self._top_depth = 1
            self.cache.seed(root_id, [(int(Priority.REQUIRED), t) for t in targets])

        logger.info(f"Building dependency tree for {', '.join(targets)} "
                    f"(dependency level {self.config.dependency_level})")

        self.store.put(Node(root_id))
        backtrack = self._expand(root_id)
        if backtrack is not None:
            raise UnresolvableCycleError(
                f"Cycle resolution reached the root without finding its target: {backtrack}"
            )

        tree = Tree(self.store, root_id, synthetic, self._stats)
        logger.info(f"Tree complete: {len(tree)} packages, {self._stats['pruned']} pruned edges, "
                    f"{self._stats['cycles']} cycles, {self._stats['rewires']} rewires")
        return tree

    def _emit(self, kind: str, node: str, path=(), priority: Optional[int] = None,
              parent: Optional[str] = None, **detail) -> None:
        self.trace(TraceEvent(kind, node, path, priority, parent, detail))

    def _expand(self, node_id: str) -> Optional[Backtrack]:
        """
        Expand the dependencies of a node already placed in the store.

        Returns:
            None once the subtree is complete, or the Backtrack that an
            ancestor has to act on
        """
        node = self.store.get(node_id)
        ceiling = self.config.ceiling_at(node.depth, self._top_depth)
        node.source_edges = self.cache.get(node_id, ceiling)
        node.edges = list(node.source_edges)
        self._emit(ENTERED, node_id, node.path, ceiling)

        if node.is_leaf:
            self._emit(LEAF, node_id, node.path)
            return None

        pruned: List[Tuple[int, Edge]] = []

        for index in range(len(node.edges)):
            while True:
                priority, dep_id = node.edges[index]
                child_path = node.path + (index + 1,)

                if self.store.exists(dep_id):
                    existing = self.store.get(dep_id)
                    if existing.is_ancestor_of(child_path):
                        backtrack = self._handle_cycle(node, index, existing)
                        if backtrack is not None:
                            return backtrack
                    else:
                        logger.debug(f"Prune: {dep_id} from {node_id}, already at {list(existing.path)}")
                        self._emit(PRUNED_DUPLICATE, dep_id, child_path, priority, node_id)
                    self._stats["pruned"] += 1
                    pruned.append((index, (priority, dep_id)))
                    break

                child = Node(dep_id, child_path, node.priority_path + (priority,))

                if priority == Priority.EXTERNAL:
                    child.external = True
                    self.store.put(child)
                    self._emit(EXTERNAL, dep_id, child_path, priority, node_id)
                    break

                self.store.put(child)
                backtrack = self._expand(dep_id)
                if backtrack is None:
                    break

                if backtrack.target_parent == node_id:
                    self._rewire(node, index, backtrack)
                    continue

                if priority > backtrack.priority:
                    logger.debug(f"Weaker edge {node_id} -> {dep_id} ({priority}) becomes the cut point")
                    backtrack.promote = dep_id
                    backtrack.priority = priority
                return backtrack

        self._remove_pruned(node, pruned)
        return None

    def _handle_cycle(self, node: Node, index: int, existing: Node) -> Optional[Backtrack]:
        """
        Decide what to do with the edge at ``index`` that re-enters an ancestor.

        Returns None when the edge is pruned, or the Backtrack to send up.
        """
        priority, dep_id = node.edges[index]
        self._stats["cycles"] += 1
        cycle_path = node.path + (index + 1,)
        logger.info(f"Cyclic dependency: {dep_id} is an ancestor of {node.id} {list(node.path)}")

        if existing.parent_path is None or dep_id == node.id:
            # Neither the root nor a self-reference has a parent to rewire under
            logger.warning(f"Dropping dependency of {node.id} on {dep_id}: "
                           f"{'self-dependency' if dep_id == node.id else 'it is the root'}")
            self._emit(DETECTED_CYCLE, dep_id, cycle_path, priority, node.id, action="prune")
            self.cache.remove(node.id, dep_id, priority)
            return None

        other_path = existing.parent_path
        weakest = max(node.priority_path[len(other_path):node.depth])

        if priority >= weakest:
            logger.debug(f"Prune: cyclic {node.id} -> {dep_id} ({priority} >= {weakest})")
            self._emit(DETECTED_CYCLE, dep_id, cycle_path, priority, node.id,
                       action="prune", weakest=weakest)
            self.cache.remove(node.id, dep_id, priority)
            return None

        other_parent = self.store.find_by_path(other_path)
        if other_parent is None:
            raise OrphanReferenceError(dep_id, other_path)

        self._emit(DETECTED_CYCLE, dep_id, cycle_path, priority, node.id,
                   action="backtrack", weakest=weakest, target=other_parent)
        return Backtrack(target_parent=other_parent, promote=node.id, demote=dep_id, priority=priority)

    def _rewire(self, node: Node, index: int, backtrack: Backtrack) -> None:
        """
        Put ``backtrack.promote`` in place of ``backtrack.demote`` under ``node``.

        The edge leading into ``promote`` is cut from its parent's cached
        dependency list, the subtree of ``demote`` is erased, and the edge at
        ``index`` now names ``promote``. The caller re-expands that edge.
        """
        priority, current = node.edges[index]
        if current != backtrack.demote:
            raise UnresolvableCycleError(
                f"{node.id} was asked to demote {backtrack.demote} but its edge "
                f"{index + 1} names {current}"
            )

        if self._stats["rewires"] >= self.config.max_rewires:
            raise UnresolvableCycleError(
                f"Giving up after {self._stats['rewires']} rewires; last was {backtrack}"
            )

        if not self.store.exists(backtrack.promote):
            raise OrphanReferenceError(backtrack.promote, node.path)
        promoted = self.store.get(backtrack.promote)
        cut_path = promoted.parent_path
        cut_parent = self.store.find_by_path(cut_path)
        if cut_parent is None:
            raise OrphanReferenceError(backtrack.promote, cut_path)

        removed = self.cache.remove(cut_parent, backtrack.promote, count=None)
        erased = self.store.erase(backtrack.demote)

        node.edges[index] = (priority, backtrack.promote)
        self.cache.replace_first(node.id, backtrack.demote, backtrack.promote)
        self._stats["rewires"] += 1

        logger.info(f"Rewire under {node.id}: {backtrack.promote} replaces {backtrack.demote}, "
                    f"edge {cut_parent} -> {backtrack.promote} cut")
        logger.debug(f"Erased {len(erased)} nodes: {', '.join(erased)}; removed {removed} cached edges")
        self._emit(REWIRED, backtrack.promote, node.path + (index + 1,), priority, node.id,
                   demote=backtrack.demote, cut=cut_parent)

    def _remove_pruned(self, node: Node, pruned: List[Tuple[int, Edge]]) -> None:
        """Drop every marked edge from the live edge list, one entry per mark."""
        if not pruned:
            return
        if len(pruned) > len(node.edges):
            raise DuplicateRemovalMismatchError(node.id, pruned[0][1][1], len(pruned), len(node.edges))

        for index, edge in sorted(pruned, reverse=True):
            if index >= len(node.edges) or node.edges[index] != edge:
                found = sum(1 for e in node.edges if e == edge)
                expected = sum(1 for _i, e in pruned if e == edge)
                raise DuplicateRemovalMismatchError(node.id, edge[1], expected, found)
            del node.edges[index]


def build_order(source, targets: Union[str, Iterable[str]],
                config: Optional[ResolverConfig] = None,
                trace: Optional[TraceSink] = None) -> List[str]:
    """Resolve ``targets`` against ``source`` and return the build order."""
    return DependencyTreeBuilder(source, config, trace).build(targets).order()
