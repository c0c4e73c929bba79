"""Keyed storage of the canonical node records of one build run."""

import logging
from typing import Dict, Iterator, List, Optional

from .models import Node, Path

logger = logging.getLogger(__name__)


class NodeStore:
    """
    Holds one Node per package id, plus a path -> id index.

    The path index answers "which node sits at this position", used to find
    the parent of a node (its path without the last element) when a cycle
    has to be rewired.
    """

    def __init__(self):
        self._nodes: Dict[str, Node] = {}
        self._by_path: Dict[Path, str] = {}

    def exists(self, node_id: str) -> bool:
        return node_id in self._nodes

    def get(self, node_id: str) -> Node:
        try:
            return self._nodes[node_id]
        except KeyError:
            raise KeyError(f"No node recorded for {node_id}") from None

    def put(self, node: Node) -> None:
        """Insert or replace the record of ``node.id``."""
        holder = self._by_path.get(node.path)
        if holder is not None and holder != node.id:
            raise ValueError(
                f"Path {list(node.path)} already holds {holder}, cannot store {node.id}"
            )

        previous = self._nodes.get(node.id)
        if previous is not None and previous.path != node.path:
            self._by_path.pop(previous.path, None)

        self._nodes[node.id] = node
        self._by_path[node.path] = node.id

    def delete(self, node_id: str) -> None:
        node = self._nodes.pop(node_id, None)
        if node is None:
            return
        if self._by_path.get(node.path) == node_id:
            del self._by_path[node.path]

    def find_by_path(self, path: Path) -> Optional[str]:
        """Return the id of the node stored at exactly ``path``."""
        return self._by_path.get(tuple(path))

    def is_ancestor(self, node_id: str, path: Path) -> bool:
        """True if the node's path is an equal or proper prefix of ``path``."""
        node = self._nodes.get(node_id)
        return node is not None and node.is_ancestor_of(path)

    def erase(self, node_id: str) -> List[str]:
        """
        Delete the subtree rooted at ``node_id``.

        Children whose path does not descend from this node's path are
        canonical elsewhere in the tree and are left untouched.

        Returns:
            The ids that were deleted, children first
        """
        node = self._nodes.get(node_id)
        if node is None:
            return []

        erased: List[str] = []
        for _priority, child_id in node.edges:
            child = self._nodes.get(child_id)
            if child is None or child is node:
                continue
            if len(child.path) > len(node.path) and node.is_ancestor_of(child.path):
                erased.extend(self.erase(child_id))
            else:
                logger.debug(f"Keeping {child_id} while erasing {node_id}: rooted at {list(child.path)}")

        self.delete(node_id)
        erased.append(node_id)
        return erased

    def ids(self) -> List[str]:
        return list(self._nodes)

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[Node]:
        return iter(list(self._nodes.values()))
