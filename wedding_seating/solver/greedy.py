import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

import networkx as nx

from wedding_seating.solver.constraints import Cluster, ConstraintGraph
from wedding_seating.solver.context import RunContext
from wedding_seating.solver.domain import (
    AdjacencyPolicy,
    Placement,
    PreferenceScope,
    TableMode,
    TableSpec,
    TableType,
)
from wedding_seating.solver.kids import KidsTablePlan
from wedding_seating.solver.objectives import adjacency_misses, calculate_hint_score, rank_key, singles_penalty

logger = logging.getLogger(__name__)


@dataclass
class TableState:
    spec: TableSpec
    load: int = 0
    guest_ids: List[int] = field(default_factory=list)
    cluster_ids: Set[int] = field(default_factory=set)
    singles: int = 0

    @property
    def number(self) -> int:
        return self.spec.number

    @property
    def remaining(self) -> int:
        return self.spec.capacity - self.load


class PlacementState:
    """Stan rozmieszczania w pamięci: otwarte stoły, pula rezerwowa i obsadzenie."""

    def __init__(self, context: RunContext, graph: ConstraintGraph, tables: Iterable[TableSpec], adjacency: nx.Graph):
        self.context = context
        self.graph = graph
        self.adjacency = adjacency
        self.open: Dict[int, TableState] = {}
        self.reserve: List[TableSpec] = []
        for spec in sorted(tables, key=lambda t: t.number):
            if spec.reserve:
                self.reserve.append(spec)
            else:
                self.open[spec.number] = TableState(spec)
        self.guest_table: Dict[int, int] = {}
        self.cluster_tables: Dict[int, Set[int]] = {}
        self.opened: List[TableSpec] = []
        self.placements: List[Placement] = []
        self.unplaced: List[int] = []

    def seat(self, guest_id: int, table_number: int, seats: int, pinned: bool = False) -> None:
        table = self.open[table_number]
        table.load += seats
        table.guest_ids.append(guest_id)
        if seats == 1:
            table.singles += 1
        cluster_index = self.graph.cluster_of.get(guest_id)
        if cluster_index is not None:
            table.cluster_ids.add(cluster_index)
            self.cluster_tables.setdefault(cluster_index, set()).add(table_number)
        self.guest_table[guest_id] = table_number
        if not pinned:
            self.placements.append(Placement(guest_id=guest_id, table_number=table_number, seats=seats))

    def adjacent(self, a: int, b: int) -> bool:
        return a != b and self.adjacency.has_edge(a, b)

    def sorted_open(self) -> List[TableState]:
        return [self.open[n] for n in sorted(self.open)]


def is_compatible(spec: TableSpec, cluster: Cluster) -> bool:
    if spec.table_type == TableType.KIDS:
        return cluster.is_kids
    if spec.table_type == TableType.ADULTS:
        return cluster.children == 0
    return True


def forbidden_by(state: PlacementState, cluster: Cluster, table_number: int) -> Optional[int]:
    """Zwraca indeks klastra, z którym stół koliduje przez twarde "apart", albo None."""
    apart = state.graph.apart
    if cluster.index not in apart:
        return None
    enforce = state.context.settings.adjacency_policy == AdjacencyPolicy.ENFORCE_ADJACENT
    for other in sorted(apart.neighbors(cluster.index)):
        tables = state.cluster_tables.get(other)
        if not tables:
            continue
        if table_number in tables:
            return other
        scope = apart.edges[cluster.index, other]["scope"]
        if enforce and scope == PreferenceScope.ADJACENT_TABLES:
            if any(state.adjacent(table_number, t) for t in tables):
                return other
    return None


def _candidates(
    state: PlacementState,
    cluster: Cluster,
    seats: int,
    types: Optional[Set[TableType]] = None,
) -> List[TableState]:
    result = []
    for table in state.sorted_open():
        if table.spec.locked:
            continue
        if types is not None and table.spec.table_type not in types:
            continue
        if not is_compatible(table.spec, cluster):
            continue
        if table.remaining < seats:
            continue
        if forbidden_by(state, cluster, table.number) is not None:
            continue
        result.append(table)
    return result


def _rank(state: PlacementState, cluster: Cluster, seats: int, is_single: bool, table: TableState):
    settings = state.context.settings
    graph = state.graph

    adjacency_miss = 0
    if settings.adjacency_policy != AdjacencyPolicy.IGNORE and cluster.index in graph.must_adjacent:
        partner_tables = [state.cluster_tables.get(o, set()) for o in graph.must_adjacent.neighbors(cluster.index)]
        adjacency_miss = adjacency_misses(state.adjacency, table.number, partner_tables)

    singles_key = 0
    if settings.avoid_singles_alone:
        singles_key = singles_penalty(is_single, table.singles, table.remaining - seats)

    hint = calculate_hint_score(graph.hints, cluster.index, table.cluster_ids)
    return rank_key(adjacency_miss, singles_key, hint, table.remaining - seats, table.number)


def _table_name(state: PlacementState, number: int, table_type: TableType, group_id: Optional[int]) -> str:
    if table_type == TableType.KIDS:
        return f"Kids {number}"
    group = state.graph.groups.get(group_id) if group_id is not None else None
    if group:
        return f"{group.name} {number}"
    return f"Table {number}"


def _take_reserve(
    state: PlacementState, cluster: Optional[Cluster], seats: int, table_type: TableType
) -> Optional[TableState]:
    # Pula rezerwowa: puste stoły "auto" z poprzednich przebiegów, używane przed utworzeniem nowych
    for spec in state.reserve:
        if spec.table_type != table_type or spec.capacity < seats:
            continue
        if cluster is not None and forbidden_by(state, cluster, spec.number) is not None:
            continue
        state.reserve.remove(spec)
        table = TableState(spec)
        state.open[spec.number] = table
        logger.debug(f"Reusing reserve table {spec.number} ({spec.name})")
        return table
    return None


def _new_table(state: PlacementState, capacity: int, table_type: TableType, group_id: Optional[int]) -> TableState:
    number = state.context.allocate_table_number()
    spec = TableSpec(
        number=number,
        name=_table_name(state, number, table_type, group_id),
        capacity=capacity,
        table_type=table_type,
        mode=TableMode.AUTO,
        group_id=group_id,
    )
    state.opened.append(spec)
    table = TableState(spec)
    state.open[number] = table
    logger.info(f"Opened table {number} ({spec.name}, {table_type.value}, capacity {capacity})")
    return table


def _open_for_cluster(state: PlacementState, cluster: Cluster, free: List[int], seats: int) -> Optional[TableState]:
    settings = state.context.settings
    report = state.context.report

    if seats > settings.max_table_size:
        report.capacity_exceeded(
            free,
            f"Cluster of {seats} seats exceeds the maximum table size {settings.max_table_size}; left unplaced",
        )
        return None

    table = _take_reserve(state, cluster, seats, TableType.MIXED)
    if table is None:
        table = _new_table(state, max(settings.seats_per_table, seats), TableType.MIXED, cluster.group_id)
    if seats > settings.seats_per_table:
        report.capacity_exceeded(
            free,
            f"No table has room for a cluster of {seats} seats; seated at table {table.number} "
            f"which is larger than the default {settings.seats_per_table}",
            [table.number],
        )
    return table


def _check_adjacency(state: PlacementState, cluster: Cluster, table_number: int) -> None:
    graph = state.graph
    if cluster.index not in graph.must_adjacent:
        return
    policy = state.context.settings.adjacency_policy
    for other in sorted(graph.must_adjacent.neighbors(cluster.index)):
        other_tables = state.cluster_tables.get(other)
        if not other_tables or table_number in other_tables:
            continue
        pref_ids = graph.must_adjacent.edges[cluster.index, other]["preference_ids"]
        guests = cluster.party_ids + graph.clusters[other].party_ids
        tables = [table_number] + sorted(other_tables)
        if policy == AdjacencyPolicy.IGNORE:
            state.context.report.no_adjacent_table(
                guests, tables, "Adjacency policy is 'ignore'; adjacent placement is not guaranteed", pref_ids
            )
            continue
        if any(state.adjacent(table_number, t) for t in other_tables):
            continue
        if table_number not in state.adjacency or state.adjacency.degree(table_number) == 0:
            reason = f"Table {table_number} has no declared adjacent tables"
        else:
            reason = f"No table adjacent to {', '.join(str(t) for t in sorted(other_tables))} had room"
        state.context.report.no_adjacent_table(guests, tables, reason, pref_ids)


def place_cluster(state: PlacementState, cluster: Cluster, plan: KidsTablePlan) -> None:
    graph = state.graph
    report = state.context.report

    free = [p for p in cluster.party_ids if p not in state.guest_table]
    if not free:
        return
    seats = graph.seats_of(free)

    # Klaster z przypiętym członkiem dosiada się do jego stołu
    anchors = sorted({state.guest_table[p] for p in cluster.party_ids if p in state.guest_table})
    if anchors:
        if len(anchors) > 1:
            report.unsatisfiable_musts(
                cluster.party_ids, [], "Members of a must-together cluster are pinned to different tables", anchors
            )
        target = state.open[anchors[0]]
        if not target.spec.locked and target.remaining >= seats and forbidden_by(state, cluster, target.number) is None:
            for p in free:
                state.seat(p, target.number, graph.parties[p].seats)
            _check_adjacency(state, cluster, target.number)
            return
        report.capacity_exceeded(
            free,
            f"Cannot join pinned cluster members at table {target.number}; seating the rest separately",
            [target.number],
        )

    is_single = len(free) == 1 and seats == 1
    pool: List[TableState] = []
    if plan.active and cluster.is_kids:
        pool = _candidates(state, cluster, seats, {TableType.KIDS})
        if not pool:
            pool = _candidates(state, cluster, seats, {TableType.MIXED, TableType.ADULTS})
    else:
        pool = _candidates(state, cluster, seats)

    if pool:
        table = min(pool, key=lambda t: _rank(state, cluster, seats, is_single, t))
    else:
        table = _open_for_cluster(state, cluster, free, seats)

    if table is None:
        state.unplaced.extend(free)
        return

    for p in free:
        state.seat(p, table.number, graph.parties[p].seats)
    _check_adjacency(state, cluster, table.number)


def _report_pinned_apart_violations(state: PlacementState) -> None:
    apart = state.graph.apart
    for ca, cb in sorted(apart.edges()):
        shared = state.cluster_tables.get(ca, set()) & state.cluster_tables.get(cb, set())
        if not shared:
            continue
        data = apart.edges[ca, cb]
        guests = [g for pair in data["guest_pairs"] for g in pair]
        state.context.report.apart_violated(
            guests, shared, "Pinned guests who must sit apart already share a table", data["preference_ids"]
        )


def _report_pinned_overload(state: PlacementState) -> None:
    for number, table in sorted(state.open.items()):
        if table.load <= table.spec.capacity or table.spec.capacity_override:
            continue
        state.context.report.capacity_exceeded(
            table.guest_ids,
            f"Pinned guests need {table.load} seats at table {number} (capacity {table.spec.capacity})",
            [number],
        )


def place_clusters(
    context: RunContext,
    graph: ConstraintGraph,
    tables: Iterable[TableSpec],
    adjacency: nx.Graph,
    pinned: Dict[int, Placement],
    plan: KidsTablePlan,
    scope: Optional[Set[int]] = None,
) -> PlacementState:
    """
    Zachłanne rozmieszczanie klastrów (bin-packing, największe najpierw).
    Każdy klaster przechodzi pending -> placed albo pending -> unplaced (konflikt);
    przebieg zawsze dobiega końca.
    """
    state = PlacementState(context, graph, tables, adjacency)

    for placement in sorted(pinned.values(), key=lambda p: p.guest_id):
        if placement.table_number not in state.open:
            logger.warning(f"Pinned guest {placement.guest_id} refers to unknown table {placement.table_number}")
            continue
        state.seat(placement.guest_id, placement.table_number, placement.seats, pinned=True)
    _report_pinned_apart_violations(state)
    _report_pinned_overload(state)

    for _ in range(plan.tables_to_open):
        table = _take_reserve(state, None, 1, TableType.KIDS)
        if table is None:
            _new_table(state, context.settings.seats_per_table, TableType.KIDS, None)

    for cluster in graph.clusters:
        if scope is not None and cluster.index not in scope:
            continue
        place_cluster(state, cluster, plan)

    logger.info(
        f"Placement finished: {len(state.placements)} placed, {len(state.unplaced)} unplaced, "
        f"{len(state.opened)} tables opened"
    )
    return state
