from conftest import make_context

from wedding_seating.solver.constraints import UNGROUPED_PRIORITY, UnionFind, build_constraints
from wedding_seating.solver.domain import (
    AdjacencyPolicy,
    ConflictKind,
    Group,
    Party,
    Preference,
    PreferenceScope,
    PreferenceStrength,
    PreferenceType,
)

MUST = PreferenceStrength.MUST
TRY = PreferenceStrength.TRY
TOGETHER = PreferenceType.TOGETHER
APART = PreferenceType.APART
ADJACENT = PreferenceScope.ADJACENT_TABLES


def parties(*seats, **kwargs):
    return [Party(id=i + 1, seats=s, created_rank=i, **kwargs) for i, s in enumerate(seats)]


class TestUnionFind:
    def test_root_is_lowest_rank(self):
        uf = UnionFind([1, 2, 3], {1: 2, 2: 0, 3: 1})
        uf.union(1, 3)
        uf.union(3, 2)
        assert uf.find(1) == 2
        assert uf.find(3) == 2

    def test_path_compression(self):
        uf = UnionFind([1, 2, 3], {1: 2, 2: 0, 3: 1})
        uf.union(1, 3)
        uf.union(3, 2)
        uf.find(1)
        assert uf.parent[1] == 2

    def test_union_of_same_set_is_noop(self):
        uf = UnionFind([1, 2], {1: 0, 2: 1})
        assert uf.union(1, 2) is True
        assert uf.union(2, 1) is False
        assert len(uf.groups()) == 1


class TestClusters:
    def test_must_together_same_table_merges_parties(self):
        ctx = make_context()
        prefs = [Preference(id=10, guest_a_id=1, guest_b_id=2, type=TOGETHER, strength=MUST)]
        graph = build_constraints(ctx, parties(4, 3, 1), [], prefs)

        assert graph.clusters[0].party_ids == (1, 2)
        assert graph.clusters[0].seats == 7
        assert graph.cluster_of[1] == graph.cluster_of[2]
        assert len(graph.clusters) == 2

    def test_try_and_adjacent_preferences_do_not_merge(self):
        ctx = make_context()
        prefs = [
            Preference(id=1, guest_a_id=1, guest_b_id=2, type=TOGETHER, strength=TRY),
            Preference(id=2, guest_a_id=2, guest_b_id=3, type=TOGETHER, scope=ADJACENT, strength=MUST),
        ]
        graph = build_constraints(ctx, parties(1, 1, 1), [], prefs)

        assert len(graph.clusters) == 3
        assert graph.must_adjacent.has_edge(graph.cluster_of[2], graph.cluster_of[3])
        assert graph.hints.edges[graph.cluster_of[1], graph.cluster_of[2]]["weight"] == 1

    def test_order_by_priority_then_weight_then_creation(self):
        ctx = make_context()
        groups = [Group(id=1, name="Family", priority=1), Group(id=2, name="Work", priority=2)]
        people = [
            Party(id=1, seats=5, group_id=2, created_rank=0),
            Party(id=2, seats=1, group_id=1, created_rank=1),
            Party(id=3, seats=2, group_id=1, created_rank=2),
            Party(id=4, seats=2, group_id=1, created_rank=3),
            Party(id=5, seats=9, created_rank=4),
        ]
        graph = build_constraints(ctx, people, groups, [])

        assert [c.party_ids for c in graph.clusters] == [(3,), (4,), (2,), (1,), (5,)]
        assert graph.clusters[-1].priority == UNGROUPED_PRIORITY

    def test_cluster_takes_best_priority_of_its_members(self):
        ctx = make_context()
        groups = [Group(id=1, name="Family", priority=1), Group(id=2, name="Work", priority=5)]
        people = [
            Party(id=1, seats=1, group_id=2, created_rank=0),
            Party(id=2, seats=1, group_id=1, created_rank=1),
        ]
        prefs = [Preference(id=1, guest_a_id=1, guest_b_id=2, type=TOGETHER, strength=MUST)]
        graph = build_constraints(ctx, people, groups, prefs)

        assert graph.clusters[0].priority == 1
        assert graph.clusters[0].group_id == 1

    def test_kids_cluster_detection(self):
        ctx = make_context()
        people = [Party(id=1, seats=3, children=2), Party(id=2, seats=2, children=1)]
        graph = build_constraints(ctx, people, [], [])
        by_party = {c.party_ids[0]: c for c in graph.clusters}

        assert by_party[1].is_kids
        assert not by_party[2].is_kids


class TestDataErrors:
    def test_missing_guest_is_reported_and_dropped(self):
        ctx = make_context()
        prefs = [Preference(id=7, guest_a_id=1, guest_b_id=99, type=TOGETHER, strength=MUST)]
        graph = build_constraints(ctx, parties(1, 1), [], prefs)

        conflicts = ctx.report.of_kind(ConflictKind.INVALID_PREFERENCE)
        assert len(conflicts) == 1
        assert conflicts[0].preference_ids == (7,)
        assert len(graph.clusters) == 2

    def test_known_guest_outside_the_run_is_skipped_silently(self):
        ctx = make_context()
        prefs = [Preference(id=7, guest_a_id=1, guest_b_id=3, type=APART, strength=MUST)]
        build_constraints(ctx, parties(1, 1), [], prefs, known_guest_ids={1, 2, 3})

        assert len(ctx.report) == 0

    def test_self_link_is_invalid(self):
        ctx = make_context()
        prefs = [Preference(id=3, guest_a_id=1, guest_b_id=1, type=TOGETHER, strength=MUST)]
        build_constraints(ctx, parties(1), [], prefs)

        assert ctx.report.of_kind(ConflictKind.INVALID_PREFERENCE)

    def test_disabled_preferences_are_ignored(self):
        ctx = make_context()
        prefs = [Preference(id=1, guest_a_id=1, guest_b_id=2, type=TOGETHER, strength=MUST, enabled=False)]
        graph = build_constraints(ctx, parties(1, 1), [], prefs)

        assert len(graph.clusters) == 2


class TestUnsatisfiableMusts:
    def test_apart_inside_cluster_flags_both_rules(self):
        ctx = make_context()
        prefs = [
            Preference(id=10, guest_a_id=1, guest_b_id=2, type=TOGETHER, strength=MUST),
            Preference(id=11, guest_a_id=2, guest_b_id=1, type=APART, strength=MUST),
        ]
        graph = build_constraints(ctx, parties(1, 1), [], prefs)

        conflicts = ctx.report.of_kind(ConflictKind.MUTUALLY_UNSATISFIABLE_MUSTS)
        assert len(conflicts) == 1
        assert conflicts[0].preference_ids == (10, 11)
        assert conflicts[0].involved_guest_ids == (1, 2)
        assert graph.apart.number_of_edges() == 0

    def test_transitive_chain_is_reported(self):
        ctx = make_context()
        prefs = [
            Preference(id=1, guest_a_id=1, guest_b_id=2, type=TOGETHER, strength=MUST),
            Preference(id=2, guest_a_id=2, guest_b_id=3, type=TOGETHER, strength=MUST),
            Preference(id=3, guest_a_id=1, guest_b_id=3, type=APART, strength=MUST),
        ]
        build_constraints(ctx, parties(1, 1, 1), [], prefs)

        conflict = ctx.report.of_kind(ConflictKind.MUTUALLY_UNSATISFIABLE_MUSTS)[0]
        assert conflict.preference_ids == (1, 2, 3)
        assert conflict.involved_guest_ids == (1, 2, 3)

    def test_adjacent_and_not_adjacent_under_enforcement(self):
        ctx = make_context(adjacency_policy=AdjacencyPolicy.ENFORCE_ADJACENT)
        prefs = [
            Preference(id=1, guest_a_id=1, guest_b_id=2, type=TOGETHER, scope=ADJACENT, strength=MUST),
            Preference(id=2, guest_a_id=1, guest_b_id=2, type=APART, scope=ADJACENT, strength=MUST),
        ]
        build_constraints(ctx, parties(1, 1), [], prefs)

        assert ctx.report.of_kind(ConflictKind.MUTUALLY_UNSATISFIABLE_MUSTS)


class TestHints:
    def test_opposite_try_hints_cancel_out(self):
        ctx = make_context()
        prefs = [
            Preference(id=1, guest_a_id=1, guest_b_id=2, type=TOGETHER, strength=TRY),
            Preference(id=2, guest_a_id=1, guest_b_id=2, type=APART, strength=TRY),
        ]
        graph = build_constraints(ctx, parties(1, 1), [], prefs)

        assert graph.hints.edges[0, 1]["weight"] == 0

    def test_adjacent_scope_dominates_merged_apart_edge(self):
        ctx = make_context()
        prefs = [
            Preference(id=1, guest_a_id=1, guest_b_id=2, type=APART, strength=MUST),
            Preference(id=2, guest_a_id=2, guest_b_id=1, type=APART, scope=ADJACENT, strength=MUST),
        ]
        graph = build_constraints(ctx, parties(1, 1), [], prefs)

        edge = graph.apart.edges[0, 1]
        assert edge["scope"] == ADJACENT
        assert edge["preference_ids"] == [1, 2]
