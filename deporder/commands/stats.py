"""Stats command for showing dependency tree statistics."""

import logging
from typing import Dict

from ..graph_builder import Tree

logger = logging.getLogger(__name__)


def collect_stats(tree: Tree) -> Dict[str, int]:
    """Count packages by kind, plus the decisions taken while building.

    Args:
        tree: A completed dependency tree

    Returns:
        Mapping of statistic name to count
    """
    nodes = [node for node in tree.store if node.id in tree]
    externals = sum(1 for node in nodes if node.external)
    leaves = sum(1 for node in nodes if node.is_leaf and not node.external)
    deepest = max((node.depth for node in nodes), default=0)

    return {
        "packages": len(nodes),
        "externals": externals,
        "leaves": leaves,
        "depth": deepest,
        "pruned": tree.stats.get("pruned", 0),
        "cycles": tree.stats.get("cycles", 0),
        "rewires": tree.stats.get("rewires", 0),
    }


def show_stats(tree: Tree) -> None:
    """Print statistics about a dependency tree."""
    stats = collect_stats(tree)
    logger.debug(f"Stats for {tree.root_id}: {stats}")

    print("Dependency Tree Statistics:")
    print(f"  Total Packages: {stats['packages']}")
    print(f"  External Packages: {stats['externals']}")
    print(f"  Leaf Packages: {stats['leaves']}")
    print(f"  Maximum Depth: {stats['depth']}")
    print(f"  Pruned Edges: {stats['pruned']}")
    print(f"  Cycles Detected: {stats['cycles']}")
    print(f"  Rewires: {stats['rewires']}")
