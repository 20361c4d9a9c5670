import networkx as nx
from typing import Dict, Iterable, Set, Tuple

from wedding_seating.solver.domain import Placement

WEIGHT_TRY_TOGETHER = 1
WEIGHT_TRY_APART = -1

# Kary dla avoidSinglesAlone (mniej = lepiej)
SINGLES_MERGE = 0
SINGLES_NEUTRAL = 1
SINGLES_ISOLATED = 2


def calculate_hint_score(hints: nx.Graph, cluster_index: int, clusters_at_table: Iterable[int]) -> int:
    """Suma wag miękkich preferencji "try" względem klastrów siedzących już przy stole."""
    if cluster_index not in hints:
        return 0
    score = 0
    for other in clusters_at_table:
        if hints.has_edge(cluster_index, other):
            score += int(hints.edges[cluster_index, other].get("weight", 0))
    return score


def singles_penalty(is_single: bool, singles_at_table: int, remaining_after: int) -> int:
    """
    Pojedynczy gość nie powinien zostać jedynym singlem przy stole bez wolnych miejsc.
    Singiel trafiający do stołu z dokładnie jednym singlem łączy ich w parę.
    """
    if is_single:
        if singles_at_table == 1:
            return SINGLES_MERGE
        if singles_at_table == 0 and remaining_after == 0:
            return SINGLES_ISOLATED
        return SINGLES_NEUTRAL
    if singles_at_table == 1 and remaining_after < 1:
        return SINGLES_ISOLATED
    return SINGLES_MERGE


def adjacency_misses(adjacency: nx.Graph, table_number: int, partner_tables: Iterable[Set[int]]) -> int:
    """Liczba partnerów "must adjacent", których nie da się dosięgnąć z danego stołu."""
    misses = 0
    for tables in partner_tables:
        if not tables:
            continue
        if table_number in tables:
            continue
        if any(adjacency.has_edge(table_number, t) for t in tables):
            continue
        misses += 1
    return misses


def rank_key(
    adjacency_miss: int,
    singles_key: int,
    hint_score: int,
    remaining_after: int,
    table_number: int,
) -> Tuple[int, int, int, int, int]:
    # min() po tej krotce wybiera najlepszego kandydata
    return (adjacency_miss, singles_key, -hint_score, remaining_after, table_number)


def calculate_table_loads(placements: Iterable[Placement]) -> Dict[int, int]:
    loads: Dict[int, int] = {}
    for p in placements:
        loads[p.table_number] = loads.get(p.table_number, 0) + p.seats
    return loads
