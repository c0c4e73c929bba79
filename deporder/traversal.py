"""Linear build order from a completed dependency tree."""

import logging
from typing import Iterator, Optional, Set

from .exceptions import OrphanReferenceError
from .store import NodeStore

logger = logging.getLogger(__name__)


def iter_build_order(store: NodeStore, root_id: str, _seen: Optional[Set[str]] = None) -> Iterator[str]:
    """
    Yield the packages below ``root_id``, dependencies first.

    Edges are walked in declaration order; a child with edges of its own is
    walked before it is yielded. The root itself is not yielded. The store
    is only read, so the walk can be repeated.
    """
    if _seen is None:
        _seen = set()

    node = store.get(root_id)
    for _priority, child_id in node.edges:
        if not store.exists(child_id):
            raise OrphanReferenceError(child_id, node.path)
        child = store.get(child_id)
        if child.edges and not child.external:
            yield from iter_build_order(store, child_id, _seen)
        if child_id not in _seen:
            _seen.add(child_id)
            yield child_id
