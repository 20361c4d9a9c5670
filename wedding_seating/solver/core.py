import dataclasses
import logging
import time
from typing import Dict, Iterable, Optional, Set

import networkx as nx

from wedding_seating.solver.constraints import ConstraintGraph, build_constraints
from wedding_seating.solver.context import RunContext
from wedding_seating.solver.domain import (
    Adjacency,
    Group,
    Party,
    Placement,
    Preference,
    SolveOutcome,
    TableMode,
    TableSpec,
)
from wedding_seating.solver.greedy import place_clusters
from wedding_seating.solver.kids import plan_kids_tables

logger = logging.getLogger(__name__)


def build_adjacency_graph(tables: Iterable[TableSpec], adjacencies: Iterable[Adjacency]) -> nx.Graph:
    """
    Graf sąsiedztwa stołów (po numerach). Krawędzie są traktowane jako nieskierowane:
    stół A obok B oznacza również B obok A.
    """
    known = {t.number for t in tables}
    graph = nx.Graph()
    graph.add_nodes_from(known)
    for adj in adjacencies:
        if adj.table_number == adj.adjacent_table_number:
            continue
        if adj.table_number not in known or adj.adjacent_table_number not in known:
            continue
        graph.add_edge(adj.table_number, adj.adjacent_table_number)
    return graph


def scope_clusters(graph: ConstraintGraph, scope_guest_ids: Iterable[int]) -> Set[int]:
    """Rozszerza zbiór gości do pełnych klastrów "must together"."""
    return {graph.cluster_of[g] for g in scope_guest_ids if g in graph.cluster_of}


def run_solver(
    context: RunContext,
    parties: Iterable[Party],
    groups: Iterable[Group],
    tables: Iterable[TableSpec],
    preferences: Iterable[Preference],
    adjacencies: Iterable[Adjacency],
    existing: Dict[int, Placement],
    locked_guest_ids: Iterable[int] = (),
    known_guest_ids: Optional[Set[int]] = None,
    scope_guest_ids: Optional[Iterable[int]] = None,
) -> SolveOutcome:
    """
    Czysty przebieg: ograniczenia -> stoły dziecięce -> rozmieszczanie.

    existing: bieżące przypisania partycji (gość -> stół).
    scope_guest_ids=None oznacza przebieg pełny: zwalniane są wszystkie niezablokowane przypisania.
    W przebiegu przyrostowym zwalniane są tylko przypisania klastrów z zakresu, reszta jest przypięta.
    """
    start_time = time.time()
    parties = list(parties)
    tables = list(tables)
    locked = set(locked_guest_ids)

    graph = build_constraints(context, parties, groups, preferences, known_guest_ids)

    scope: Optional[Set[int]] = None
    if scope_guest_ids is None:
        released = sorted(g for g in existing if g not in locked)
    else:
        scope_guest_ids = set(scope_guest_ids)
        scope = scope_clusters(graph, scope_guest_ids)
        # goście spoza populacji (np. po odmowie) też tracą swoje miejsca
        in_scope = scope_guest_ids | {p for c in scope for p in graph.clusters[c].party_ids}
        released = sorted(g for g in existing if g in in_scope and g not in locked)

    released_set = set(released)
    pinned = {g: p for g, p in existing.items() if g not in released_set}

    occupied = {p.table_number for p in pinned.values()}
    tables = [
        dataclasses.replace(
            t, reserve=t.mode == TableMode.AUTO and not t.locked and t.number not in occupied
        )
        for t in tables
    ]

    plan = plan_kids_tables(context, parties, graph, tables, scope)
    adjacency = build_adjacency_graph(tables, adjacencies)
    state = place_clusters(context, graph, tables, adjacency, pinned, plan, scope)

    total_time = time.time() - start_time
    logger.info(
        f"Solver run for wedding {context.wedding_id} ({context.assignment_type.value}): "
        f"{len(released)} released, {len(pinned)} pinned, {len(state.placements)} placed, "
        f"{len(context.report)} conflicts in {total_time:.3f}s"
    )

    return SolveOutcome(
        placements=list(state.placements),
        released_guest_ids=released,
        opened_tables=list(state.opened),
        conflicts=context.report.conflicts,
        unplaced_guest_ids=list(state.unplaced),
        time_seconds=total_time,
    )

