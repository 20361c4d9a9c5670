import logging
from typing import Iterable, Iterator, List, Set, Tuple

from wedding_seating.solver.domain import ConflictKind, Preference, SeatingConflict

logger = logging.getLogger(__name__)


class ConflictReport:
    """
    Zbiera konflikty napotkane w trakcie przebiegu.
    Nigdy nie przerywa przebiegu; duplikaty są pomijane.
    """

    def __init__(self) -> None:
        self._conflicts: List[SeatingConflict] = []
        self._seen: Set[Tuple] = set()

    def add(
        self,
        kind: ConflictKind,
        guest_ids: Iterable[int] = (),
        table_numbers: Iterable[int] = (),
        reason: str = "",
        preference_ids: Iterable[int] = (),
    ) -> SeatingConflict:
        conflict = SeatingConflict(
            kind=kind,
            involved_guest_ids=tuple(sorted(set(guest_ids))),
            involved_table_numbers=tuple(sorted(set(table_numbers))),
            reason=reason,
            preference_ids=tuple(sorted(set(preference_ids))),
        )
        key = (conflict.kind, conflict.involved_guest_ids, conflict.involved_table_numbers, conflict.reason)
        if key in self._seen:
            return conflict
        self._seen.add(key)
        self._conflicts.append(conflict)
        logger.warning(f"Seating conflict [{kind.value}]: {reason}")
        return conflict

    def invalid_preference(self, pref: Preference, reason: str) -> SeatingConflict:
        return self.add(
            ConflictKind.INVALID_PREFERENCE,
            guest_ids=(pref.guest_a_id, pref.guest_b_id),
            reason=reason,
            preference_ids=(pref.id,),
        )

    def capacity_exceeded(self, guest_ids: Iterable[int], reason: str, table_numbers: Iterable[int] = ()) -> SeatingConflict:
        return self.add(ConflictKind.CAPACITY_EXCEEDED, guest_ids, table_numbers, reason)

    def unsatisfiable_musts(
        self, guest_ids: Iterable[int], preference_ids: Iterable[int], reason: str, table_numbers: Iterable[int] = ()
    ) -> SeatingConflict:
        return self.add(
            ConflictKind.MUTUALLY_UNSATISFIABLE_MUSTS,
            guest_ids,
            table_numbers,
            reason,
            preference_ids,
        )

    def no_adjacent_table(
        self, guest_ids: Iterable[int], table_numbers: Iterable[int], reason: str, preference_ids: Iterable[int] = ()
    ) -> SeatingConflict:
        return self.add(
            ConflictKind.NO_ADJACENT_TABLE_AVAILABLE,
            guest_ids,
            table_numbers,
            reason,
            preference_ids,
        )

    def apart_violated(
        self, guest_ids: Iterable[int], table_numbers: Iterable[int], reason: str, preference_ids: Iterable[int] = ()
    ) -> SeatingConflict:
        return self.add(ConflictKind.APART_VIOLATED, guest_ids, table_numbers, reason, preference_ids)

    @property
    def conflicts(self) -> List[SeatingConflict]:
        return list(self._conflicts)

    def of_kind(self, kind: ConflictKind) -> List[SeatingConflict]:
        return [c for c in self._conflicts if c.kind == kind]

    def __iter__(self) -> Iterator[SeatingConflict]:
        return iter(self._conflicts)

    def __len__(self) -> int:
        return len(self._conflicts)
