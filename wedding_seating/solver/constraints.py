import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Tuple

import networkx as nx

from wedding_seating.solver.context import RunContext
from wedding_seating.solver.domain import (
    AdjacencyPolicy,
    Group,
    Party,
    Preference,
    PreferenceScope,
    PreferenceStrength,
    PreferenceType,
)
from wedding_seating.solver.objectives import WEIGHT_TRY_APART, WEIGHT_TRY_TOGETHER

logger = logging.getLogger(__name__)

# Goście bez grupy są rozmieszczani na końcu
UNGROUPED_PRIORITY = 10 ** 9


class UnionFind:
    """
    Union-Find z kompresją ścieżek.
    Korzeniem zbioru zostaje element o najniższej randze (kolejności utworzenia),
    dzięki czemu wynik nie zależy od kolejności łączenia.
    """

    def __init__(self, items: Iterable[int], rank: Dict[int, int]):
        self.parent: Dict[int, int] = {x: x for x in items}
        self.rank = rank

    def find(self, x: int) -> int:
        root = x
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[x] != root:
            nxt = self.parent[x]
            self.parent[x] = root
            x = nxt
        return root

    def union(self, a: int, b: int) -> bool:
        ra, rb = self.find(a), self.find(b)
        if ra == rb:
            return False
        if (self.rank[rb], rb) < (self.rank[ra], ra):
            ra, rb = rb, ra
        self.parent[rb] = ra
        return True

    def groups(self) -> Dict[int, List[int]]:
        result: Dict[int, List[int]] = {}
        for x in self.parent:
            result.setdefault(self.find(x), []).append(x)
        return result


@dataclass(frozen=True)
class Cluster:
    index: int
    party_ids: Tuple[int, ...]
    seats: int
    children: int
    priority: int
    first_rank: int
    group_id: Optional[int] = None

    @property
    def is_kids(self) -> bool:
        # "głównie dzieci": dzieci zajmują więcej miejsc niż dorośli
        return self.children > self.seats - self.children


@dataclass
class ConstraintGraph:
    clusters: List[Cluster]
    parties: Dict[int, Party]
    groups: Dict[int, Group]
    cluster_of: Dict[int, int]
    apart: nx.Graph = field(default_factory=nx.Graph)          # twarde "apart", atrybut scope
    must_adjacent: nx.Graph = field(default_factory=nx.Graph)  # together+must+adjacentTables
    hints: nx.Graph = field(default_factory=nx.Graph)          # miękkie "try", atrybut weight

    def seats_of(self, party_ids: Iterable[int]) -> int:
        return sum(self.parties[p].seats for p in party_ids)


def _valid_preferences(
    context: RunContext,
    parties: Dict[int, Party],
    preferences: Iterable[Preference],
    known_guest_ids: Optional[Set[int]],
) -> List[Preference]:
    valid = []
    for pref in sorted(preferences, key=lambda p: p.id):
        if not pref.enabled:
            continue
        if pref.guest_a_id == pref.guest_b_id:
            context.report.invalid_preference(pref, f"Preference {pref.id} links guest {pref.guest_a_id} to itself")
            continue
        missing = [g for g in (pref.guest_a_id, pref.guest_b_id) if g not in parties]
        if missing:
            if known_guest_ids is not None and all(g in known_guest_ids for g in missing):
                # gość istnieje, ale nie bierze udziału w tym przebiegu (np. odmówił)
                logger.debug(f"Skipping preference {pref.id}: guest(s) {missing} not seated in this run")
                continue
            context.report.invalid_preference(
                pref, f"Preference {pref.id} references missing guest(s) {', '.join(str(g) for g in missing)}"
            )
            continue
        valid.append(pref)
    return valid


def _build_clusters(
    parties: Dict[int, Party],
    groups: Dict[int, Group],
    uf: UnionFind,
) -> List[Cluster]:
    unsorted = []
    for members in uf.groups().values():
        members = sorted(members, key=lambda p: (parties[p].created_rank, p))
        member_groups = [groups[parties[p].group_id] for p in members if parties[p].group_id in groups]
        best_group = min(member_groups, key=lambda g: (g.priority, g.id)) if member_groups else None
        unsorted.append(
            Cluster(
                index=-1,
                party_ids=tuple(members),
                seats=sum(parties[p].seats for p in members),
                children=sum(parties[p].children for p in members),
                priority=best_group.priority if best_group else UNGROUPED_PRIORITY,
                first_rank=parties[members[0]].created_rank,
                group_id=best_group.id if best_group else None,
            )
        )

    # Kolejność: priorytet grupy rosnąco -> waga malejąco -> kolejność utworzenia
    unsorted.sort(key=lambda c: (c.priority, -c.seats, c.first_rank, c.party_ids[0]))
    return [
        Cluster(
            index=i,
            party_ids=c.party_ids,
            seats=c.seats,
            children=c.children,
            priority=c.priority,
            first_rank=c.first_rank,
            group_id=c.group_id,
        )
        for i, c in enumerate(unsorted)
    ]


def _add_apart_edge(apart: nx.Graph, ca: int, cb: int, pref: Preference) -> None:
    if apart.has_edge(ca, cb):
        data = apart.edges[ca, cb]
        data["preference_ids"].append(pref.id)
        data["guest_pairs"].append((pref.guest_a_id, pref.guest_b_id))
        if pref.scope == PreferenceScope.ADJACENT_TABLES:
            data["scope"] = PreferenceScope.ADJACENT_TABLES
        return
    apart.add_edge(
        ca,
        cb,
        scope=pref.scope,
        preference_ids=[pref.id],
        guest_pairs=[(pref.guest_a_id, pref.guest_b_id)],
    )


def build_constraints(
    context: RunContext,
    parties: Iterable[Party],
    groups: Iterable[Group],
    preferences: Iterable[Preference],
    known_guest_ids: Optional[Set[int]] = None,
) -> ConstraintGraph:
    """
    Zamienia preferencje i grupy na graf ograniczeń:
    klastry "must together" (Union-Find), krawędzie "apart",
    wymagania sąsiedztwa oraz miękkie podpowiedzi "try".
    """
    party_by_id = {p.id: p for p in parties}
    group_by_id = {g.id: g for g in groups}
    valid = _valid_preferences(context, party_by_id, preferences, known_guest_ids)

    # 1. Klastry: together + must + sameTable
    uf = UnionFind(party_by_id.keys(), {p.id: p.created_rank for p in party_by_id.values()})
    together = nx.Graph()
    for pref in valid:
        if (
            pref.type == PreferenceType.TOGETHER
            and pref.strength == PreferenceStrength.MUST
            and pref.scope == PreferenceScope.SAME_TABLE
        ):
            uf.union(pref.guest_a_id, pref.guest_b_id)
            together.add_edge(pref.guest_a_id, pref.guest_b_id, preference_id=pref.id)

    clusters = _build_clusters(party_by_id, group_by_id, uf)
    cluster_of = {p: c.index for c in clusters for p in c.party_ids}
    graph = ConstraintGraph(clusters=clusters, parties=party_by_id, groups=group_by_id, cluster_of=cluster_of)
    graph.apart.add_nodes_from(c.index for c in clusters)

    # 2-4. Sąsiedztwo, "apart" i podpowiedzi
    for pref in valid:
        ca, cb = cluster_of[pref.guest_a_id], cluster_of[pref.guest_b_id]

        if pref.strength == PreferenceStrength.MUST and pref.type == PreferenceType.APART:
            if ca == cb:
                path = nx.shortest_path(together, pref.guest_a_id, pref.guest_b_id)
                path_prefs = [together.edges[u, v]["preference_id"] for u, v in zip(path, path[1:])]
                context.report.unsatisfiable_musts(
                    guest_ids=path,
                    preference_ids=[pref.id] + path_prefs,
                    reason=(
                        f"Guests {pref.guest_a_id} and {pref.guest_b_id} must sit apart (preference {pref.id}) "
                        f"but are bound together by preference(s) {', '.join(str(p) for p in path_prefs)}"
                    ),
                )
                continue
            _add_apart_edge(graph.apart, ca, cb, pref)

        elif pref.strength == PreferenceStrength.MUST and pref.type == PreferenceType.TOGETHER:
            if pref.scope != PreferenceScope.ADJACENT_TABLES or ca == cb:
                continue
            if graph.must_adjacent.has_edge(ca, cb):
                graph.must_adjacent.edges[ca, cb]["preference_ids"].append(pref.id)
            else:
                graph.must_adjacent.add_edge(ca, cb, preference_ids=[pref.id])

        else:
            if ca == cb:
                continue
            weight = WEIGHT_TRY_TOGETHER if pref.type == PreferenceType.TOGETHER else WEIGHT_TRY_APART
            if graph.hints.has_edge(ca, cb):
                graph.hints.edges[ca, cb]["weight"] += weight
            else:
                graph.hints.add_edge(ca, cb, weight=weight)

    # Sprzeczność: "obok siebie" i "nie obok siebie" dla tej samej pary klastrów
    if context.settings.adjacency_policy == AdjacencyPolicy.ENFORCE_ADJACENT:
        for ca, cb in sorted(graph.must_adjacent.edges()):
            if not graph.apart.has_edge(ca, cb):
                continue
            apart_edge = graph.apart.edges[ca, cb]
            if apart_edge["scope"] != PreferenceScope.ADJACENT_TABLES:
                continue
            context.report.unsatisfiable_musts(
                guest_ids=clusters[ca].party_ids + clusters[cb].party_ids,
                preference_ids=graph.must_adjacent.edges[ca, cb]["preference_ids"] + apart_edge["preference_ids"],
                reason="Clusters are required both at adjacent tables and away from adjacent tables",
            )

    logger.info(
        f"Built {len(clusters)} clusters from {len(party_by_id)} parties: "
        f"{graph.apart.number_of_edges()} apart edges, {graph.must_adjacent.number_of_edges()} adjacency "
        f"requirements, {graph.hints.number_of_edges()} soft hints"
    )
    return graph
