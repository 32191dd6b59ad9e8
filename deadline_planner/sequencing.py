from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Set, Tuple

from .models import WorkItem

# Items that share methods or source material are worked back to back.
DEFAULT_CLUSTERS: Tuple[Tuple[str, ...], ...] = (
    ("econ-micro", "econ-macro", "econ-intl"),
    ("history", "english"),
    ("physics", "math"),
)


def sequence_items(
    items: Sequence[WorkItem],
    clusters: Optional[Sequence[Sequence[str]]] = None,
) -> List[WorkItem]:
    """Cluster members first, in cluster order; everything else after, in input order.

    The result is always a permutation of ``items``; items sharing an id stay together.
    """
    declared = DEFAULT_CLUSTERS if clusters is None else clusters
    by_id: Dict[str, List[WorkItem]] = {}
    for item in items:
        by_id.setdefault(item.id, []).append(item)
    placed: Set[str] = set()
    ordered: List[WorkItem] = []
    for cluster in declared:
        for item_id in cluster:
            if item_id in by_id and item_id not in placed:
                ordered.extend(by_id[item_id])
                placed.add(item_id)
    for item in items:
        if item.id not in placed:
            ordered.extend(by_id[item.id])
            placed.add(item.id)
    return ordered
