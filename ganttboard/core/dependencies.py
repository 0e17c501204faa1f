"""
依存関係抽出
描画用の「タスク→依存先」隣接マップ（循環検出・トポロジカル整列は行わない）
"""

from typing import Dict, FrozenSet, Iterable, List

from .timeline import ScheduledItem


def extract_dependencies(items: Iterable[ScheduledItem]) -> Dict[str, FrozenSet[str]]:
    """
    各項目の depends_on をそのまま隣接マップに写す

    未知のIDへの参照も保持する。依存なしの項目は空集合。
    """
    return {item.id: frozenset(item.depends_on or ()) for item in items}


def dangling_references(adjacency: Dict[str, FrozenSet[str]]) -> Dict[str, List[str]]:
    """隣接マップ内で、どの項目にも存在しない依存先IDを列挙"""
    known = set(adjacency)
    result = {}
    for item_id, depends_on in adjacency.items():
        missing = sorted(dep for dep in depends_on if dep not in known)
        if missing:
            result[item_id] = missing
    return result


def adjacency_to_dict(adjacency: Dict[str, FrozenSet[str]]) -> Dict[str, List[str]]:
    """JSON化できる形（値をソート済みリスト）に変換"""
    return {item_id: sorted(depends_on) for item_id, depends_on in adjacency.items()}
