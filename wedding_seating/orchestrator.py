"""
Warstwa orkiestracji przebiegów rozsadzania.

Ładuje rekordy wesela z bazy, buduje wejście dla czystego solvera
(wedding_seating.solver.core.run_solver), serializuje przebiegi per
(wesele, partycja) i zapisuje wynik w jednej transakcji.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from sqlalchemy.orm import Session

from wedding_seating.database import (
    Guest,
    GuestGroup,
    SeatAssignment,
    SeatingPreference,
    SeatingSettingsRow,
    SessionLocal,
    Table,
    TableAdjacency,
    TableGuest,
    Wedding,
)
from wedding_seating.exceptions import (
    CapacityConfirmationRequired,
    GroupNotFoundError,
    GuestNotFoundError,
    InvalidSettingsError,
    NothingToPromoteError,
    RunInProgressError,
    SettingsMissingError,
    SimulationDisabledError,
    TableNotFoundError,
    WeddingNotFoundError,
)
from wedding_seating.models import (
    AssignmentOut,
    AssignResult,
    ConflictOut,
    PromoteResult,
    RsvpChangeResult,
    RunResult,
    SeatedGuest,
    SettingsOut,
    SettingsUpdate,
    TableSummary,
)
from wedding_seating.settings import Settings, get_settings
from wedding_seating.solver.context import RunContext
from wedding_seating.solver.core import run_solver
from wedding_seating.solver.domain import (
    Adjacency,
    AdjacencyPolicy,
    AssignmentType,
    AutoRecalcPolicy,
    ConflictKind,
    Group,
    Party,
    Placement,
    Preference,
    PreferenceScope,
    PreferenceStrength,
    PreferenceType,
    RsvpStatus,
    SeatingConflict,
    SeatingMode,
    SeatingSettings,
    TableMode,
    TableSpec,
    TableType,
)

logger = logging.getLogger(__name__)


class RunLocks:
    """Co najwyżej jeden przebieg na parę (wesele, typ przypisania); kolejny jest odrzucany."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[Tuple[int, str], threading.Lock] = {}

    @contextmanager
    def hold(self, wedding_id: int, assignment_type: AssignmentType):
        key = (wedding_id, assignment_type.value)
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
        if not lock.acquire(blocking=False):
            logger.warning(f"Rejected concurrent {assignment_type.value} run for wedding {wedding_id}")
            raise RunInProgressError(wedding_id, assignment_type.value)
        try:
            yield
        finally:
            lock.release()


def party_seats(guest: Guest) -> int:
    return max(1, (guest.adults_attending or 0) + (guest.children_attending or 0))


def expected_seats(guest: Guest) -> int:
    return max(1, guest.expected_party_size or guest.invited_count or 1)


def settings_to_domain(row: SeatingSettingsRow, app: Settings) -> SeatingSettings:
    max_size = row.max_table_size if row.max_table_size is not None else app.max_table_size
    return SeatingSettings(
        mode=SeatingMode(row.mode),
        seats_per_table=row.seats_per_table,
        auto_recalc_policy=AutoRecalcPolicy(row.auto_recalc_policy),
        adjacency_policy=AdjacencyPolicy(row.adjacency_policy),
        simulation_enabled=row.simulation_enabled,
        enable_kids_table=row.enable_kids_table,
        kids_table_min_age=row.kids_table_min_age,
        kids_table_min_count=row.kids_table_min_count,
        avoid_singles_alone=row.avoid_singles_alone,
        enable_zone_placement=row.enable_zone_placement,
        max_table_size=max(max_size, row.seats_per_table),
    )


def default_settings_row(wedding_id: int, app: Settings) -> SeatingSettingsRow:
    return SeatingSettingsRow(
        wedding_id=wedding_id,
        mode=SeatingMode.MANUAL.value,
        seats_per_table=app.default_seats_per_table,
        auto_recalc_policy=AutoRecalcPolicy.GROUP_ONLY.value,
        adjacency_policy=AdjacencyPolicy.FORBID_SAME_TABLE_ONLY.value,
        simulation_enabled=True,
        enable_kids_table=False,
        kids_table_min_age=app.default_kids_table_min_age,
        kids_table_min_count=app.default_kids_table_min_count,
        avoid_singles_alone=True,
        enable_zone_placement=False,
        max_table_size=None,
    )


@dataclass
class RunInput:
    """Wszystko, co solver dostaje z bazy dla jednego przebiegu."""
    settings: SeatingSettings
    parties: List[Party]
    groups: List[Group]
    tables: List[TableSpec]
    table_rows: Dict[int, Table]  # numer -> wiersz
    preferences: List[Preference]
    adjacencies: List[Adjacency]
    existing: Dict[int, Placement]
    locked_guest_ids: Set[int]
    repins: Dict[int, Placement]  # przypięcia bez zgodnego wiersza przypisania
    known_guest_ids: Set[int]
    next_table_number: int
    bad_preferences: List[SeatingConflict] = field(default_factory=list)


class SeatingOrchestrator:
    def __init__(self, session_factory=SessionLocal, locks: Optional[RunLocks] = None, app_settings: Settings = None):
        self.session_factory = session_factory
        self.locks = locks or RunLocks()
        self.app_settings = app_settings or get_settings()

    # --- Przebiegi solvera ---

    def run_full(self, wedding_id: int, assignment_type: AssignmentType = AssignmentType.REAL) -> RunResult:
        return self.run(wedding_id, assignment_type)

    def run_incremental(
        self,
        wedding_id: int,
        group_id: Optional[int] = None,
        guest_id: Optional[int] = None,
        assignment_type: AssignmentType = AssignmentType.REAL,
    ) -> RunResult:
        if group_id is None and guest_id is None:
            raise ValueError("Incremental run needs a group_id or a guest_id")
        return self.run(wedding_id, assignment_type, group_id=group_id, guest_id=guest_id)

    def run(
        self,
        wedding_id: int,
        assignment_type: AssignmentType = AssignmentType.REAL,
        group_id: Optional[int] = None,
        guest_id: Optional[int] = None,
    ) -> RunResult:
        with self.locks.hold(wedding_id, assignment_type):
            session = self.session_factory()
            try:
                return self._run(session, wedding_id, assignment_type, group_id, guest_id)
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

    def _run(
        self,
        session: Session,
        wedding_id: int,
        assignment_type: AssignmentType,
        group_id: Optional[int],
        guest_id: Optional[int],
    ) -> RunResult:
        self._require_wedding(session, wedding_id)
        row = self._settings_row(session, wedding_id)
        if row is None:
            raise SettingsMissingError(wedding_id)
        settings = settings_to_domain(row, self.app_settings)
        if assignment_type == AssignmentType.SIMULATION and not settings.simulation_enabled:
            raise SimulationDisabledError(wedding_id)

        scope_guest_ids: Optional[Set[int]] = None
        if group_id is not None:
            group = session.get(GuestGroup, group_id)
            if group is None or group.wedding_id != wedding_id:
                raise GroupNotFoundError(group_id)
            scope_guest_ids = {
                g.id for g in session.query(Guest).filter_by(wedding_id=wedding_id, group_id=group_id)
            }
        if guest_id is not None:
            guest = session.get(Guest, guest_id)
            if guest is None or guest.wedding_id != wedding_id:
                raise GuestNotFoundError(guest_id)
            scope_guest_ids = (scope_guest_ids or set()) | {guest_id}

        kind = "full" if scope_guest_ids is None else "incremental"
        logger.info(f"Starting {kind} {assignment_type.value} run for wedding {wedding_id}")

        data = self._load(session, wedding_id, assignment_type, settings)
        context = RunContext(
            wedding_id=wedding_id,
            assignment_type=assignment_type,
            settings=settings,
            next_table_number=data.next_table_number,
            group_id=group_id,
        )
        for conflict in data.bad_preferences:
            context.report.add(
                conflict.kind, conflict.involved_guest_ids, (), conflict.reason, conflict.preference_ids
            )

        outcome = run_solver(
            context,
            data.parties,
            data.groups,
            data.tables,
            data.preferences,
            data.adjacencies,
            data.existing,
            data.locked_guest_ids,
            known_guest_ids=data.known_guest_ids,
            scope_guest_ids=scope_guest_ids,
        )

        id_of = self._persist(session, wedding_id, assignment_type, settings, data, outcome)
        session.commit()

        created = len(outcome.placements) + len(data.repins)
        logger.info(
            f"Finished {kind} {assignment_type.value} run for wedding {wedding_id}: "
            f"{created} assignments, {len(outcome.opened_tables)} tables created, "
            f"{len(outcome.conflicts)} conflicts"
        )
        return RunResult(
            success=True,
            assignment_type=assignment_type,
            group_id=group_id,
            assignments_created=created,
            assignments_released=len(outcome.released_guest_ids),
            tables_created=len(outcome.opened_tables),
            conflicts=[self._conflict_out(c, id_of) for c in outcome.conflicts],
            unplaced_guest_ids=sorted(outcome.unplaced_guest_ids),
            time_seconds=outcome.time_seconds,
        )

    def _load(
        self, session: Session, wedding_id: int, assignment_type: AssignmentType, settings: SeatingSettings
    ) -> RunInput:
        simulation = assignment_type == AssignmentType.SIMULATION

        guests = (
            session.query(Guest)
            .filter_by(wedding_id=wedding_id)
            .order_by(Guest.created_at, Guest.id)
            .all()
        )
        parties = []
        for rank, g in enumerate(guests):
            if g.rsvp_status == RsvpStatus.CONFIRMED.value:
                seats = party_seats(g)
            elif simulation and g.rsvp_status == RsvpStatus.PENDING.value:
                seats = expected_seats(g)
            else:
                continue
            parties.append(
                Party(
                    id=g.id,
                    name=g.name or "Guest",
                    seats=seats,
                    children=min(g.children_attending or 0, seats),
                    group_id=g.group_id,
                    created_rank=rank,
                    confirmed=g.rsvp_status == RsvpStatus.CONFIRMED.value,
                )
            )
        party_by_id = {p.id: p for p in parties}

        groups = [
            Group(id=gr.id, name=gr.name, priority=gr.priority or 0)
            for gr in session.query(GuestGroup).filter_by(wedding_id=wedding_id).order_by(GuestGroup.id)
        ]

        all_tables = session.query(Table).filter_by(wedding_id=wedding_id).order_by(Table.number).all()
        next_number = max((t.number for t in all_tables), default=0) + 1
        visible = [t for t in all_tables if simulation or not t.simulation_only]
        table_rows = {t.number: t for t in visible}
        number_of = {t.id: t.number for t in visible}
        tables = [
            TableSpec(
                number=t.number,
                name=t.name,
                capacity=t.capacity,
                table_type=TableType(t.table_type or TableType.MIXED.value),
                mode=TableMode(t.mode or TableMode.MANUAL.value),
                id=t.id,
                group_id=t.group_id,
                locked=bool(t.locked),
                capacity_override=bool(t.capacity_override),
            )
            for t in visible
        ]

        preferences, bad = self._load_preferences(session, wedding_id)

        adjacencies = [
            Adjacency(number_of[a.table_id], number_of[a.adjacent_table_id])
            for a in session.query(TableAdjacency).filter_by(wedding_id=wedding_id)
            if a.table_id in number_of and a.adjacent_table_id in number_of
        ]

        rows = (
            session.query(SeatAssignment)
            .filter_by(wedding_id=wedding_id, assignment_type=assignment_type.value)
            .all()
        )
        existing: Dict[int, Placement] = {}
        for r in rows:
            if r.table_id not in number_of:
                logger.warning(f"Assignment {r.id} points at a table not visible to {assignment_type.value} runs")
                continue
            existing[r.guest_id] = Placement(r.guest_id, number_of[r.table_id], r.seats_count)

        # Przypięcia: blokada gościa, zablokowany stół, a w trybie manualnym lista assignedGuests
        wanted: Dict[int, int] = {}
        for t in visible:
            if t.locked:
                for r in rows:
                    if r.table_id == t.id:
                        wanted[r.guest_id] = t.number
        if not simulation and settings.mode == SeatingMode.MANUAL:
            for t in visible:
                for guest_id in t.assigned_guest_ids:
                    wanted.setdefault(guest_id, t.number)
        for g in guests:
            if g.locked_table_id is not None and g.locked_table_id in number_of:
                wanted[g.id] = number_of[g.locked_table_id]
        # Przypinamy tylko gości, którzy biorą udział w przebiegu; wiersze pozostałych są zwalniane
        wanted = {guest_id: number for guest_id, number in wanted.items() if guest_id in party_by_id}

        repins: Dict[int, Placement] = {}
        for guest_id, number in wanted.items():
            seats = party_by_id[guest_id].seats
            current = existing.get(guest_id)
            if current is not None and current.table_number == number and current.seats == seats:
                continue
            placement = Placement(guest_id, number, seats)
            repins[guest_id] = placement
            existing[guest_id] = placement

        return RunInput(
            settings=settings,
            parties=parties,
            groups=groups,
            tables=tables,
            table_rows=table_rows,
            preferences=preferences,
            adjacencies=adjacencies,
            existing=existing,
            locked_guest_ids=set(wanted),
            repins=repins,
            known_guest_ids={g.id for g in guests},
            next_table_number=next_number,
            bad_preferences=bad,
        )

    def _load_preferences(self, session: Session, wedding_id: int) -> Tuple[List[Preference], List[SeatingConflict]]:
        preferences, bad = [], []
        for p in session.query(SeatingPreference).filter_by(wedding_id=wedding_id).order_by(SeatingPreference.id):
            try:
                preferences.append(
                    Preference(
                        id=p.id,
                        guest_a_id=p.guest_a_id,
                        guest_b_id=p.guest_b_id,
                        type=PreferenceType(p.type),
                        scope=PreferenceScope(p.scope or PreferenceScope.SAME_TABLE.value),
                        strength=PreferenceStrength(p.strength or PreferenceStrength.TRY.value),
                        enabled=p.enabled is not False,
                    )
                )
            except ValueError as e:
                if p.enabled is False:
                    continue
                bad.append(
                    SeatingConflict(
                        kind=ConflictKind.INVALID_PREFERENCE,
                        involved_guest_ids=(p.guest_a_id, p.guest_b_id),
                        reason=f"Preference {p.id} is malformed: {e}",
                        preference_ids=(p.id,),
                    )
                )
        return preferences, bad

    def _persist(
        self,
        session: Session,
        wedding_id: int,
        assignment_type: AssignmentType,
        settings: SeatingSettings,
        data: RunInput,
        outcome,
    ) -> Dict[int, int]:
        rewritten = set(outcome.released_guest_ids) | set(data.repins)
        if rewritten:
            session.query(SeatAssignment).filter(
                SeatAssignment.wedding_id == wedding_id,
                SeatAssignment.assignment_type == assignment_type.value,
                SeatAssignment.guest_id.in_(rewritten),
            ).delete(synchronize_session=False)

        id_of = {number: row.id for number, row in data.table_rows.items()}
        for spec in outcome.opened_tables:
            row = Table(
                wedding_id=wedding_id,
                name=spec.name,
                number=spec.number,
                capacity=spec.capacity,
                table_type=spec.table_type.value,
                mode=TableMode.AUTO.value,
                group_id=spec.group_id,
                locked=False,
                simulation_only=assignment_type == AssignmentType.SIMULATION,
            )
            session.add(row)
            data.table_rows[spec.number] = row
        session.flush()
        for spec in outcome.opened_tables:
            id_of[spec.number] = data.table_rows[spec.number].id

        new_rows = list(data.repins.values()) + list(outcome.placements)
        for p in new_rows:
            session.add(
                SeatAssignment(
                    wedding_id=wedding_id,
                    table_id=id_of[p.table_number],
                    guest_id=p.guest_id,
                    seats_count=p.seats,
                    assignment_type=assignment_type.value,
                )
            )
        session.flush()

        if assignment_type == AssignmentType.REAL:
            if settings.mode == SeatingMode.AUTO:
                self._rebuild_assigned_guests(session, wedding_id)
            else:
                # Tryb manualny: lista jest ręczna, wynik solvera jej nie rozszerza
                released = set(outcome.released_guest_ids)
                for table in data.table_rows.values():
                    self._drop_assigned(table, released)
        return id_of

    # --- Table.assignedGuests ---

    def _rebuild_assigned_guests(self, session: Session, wedding_id: int) -> None:
        """W trybie auto lista gości stołu jest widokiem odbudowanym z przypisań "real"."""
        rows = (
            session.query(SeatAssignment)
            .filter_by(wedding_id=wedding_id, assignment_type=AssignmentType.REAL.value)
            .order_by(SeatAssignment.id)
            .all()
        )
        by_table: Dict[int, List[int]] = {}
        for r in rows:
            by_table.setdefault(r.table_id, []).append(r.guest_id)
        for table in session.query(Table).filter_by(wedding_id=wedding_id, simulation_only=False):
            self._set_assigned(table, by_table.get(table.id, []))

    @staticmethod
    def _set_assigned(table: Table, guest_ids: List[int]) -> None:
        if table.assigned_guest_ids == guest_ids:
            return
        table.assigned.clear()
        for position, guest_id in enumerate(guest_ids):
            table.assigned.append(TableGuest(table_id=table.id, guest_id=guest_id, position=position))

    @classmethod
    def _drop_assigned(cls, table: Table, guest_ids: Set[int]) -> None:
        kept = [g for g in table.assigned_guest_ids if g not in guest_ids]
        cls._set_assigned(table, kept)

    # --- Odczyt ---

    def list_assignments(self, wedding_id: int, assignment_type: AssignmentType) -> List[AssignmentOut]:
        with self.session_factory() as session:
            self._require_wedding(session, wedding_id)
            rows = (
                session.query(SeatAssignment)
                .filter_by(wedding_id=wedding_id, assignment_type=assignment_type.value)
                .order_by(SeatAssignment.table_id, SeatAssignment.guest_id)
                .all()
            )
            return [AssignmentOut.model_validate(r) for r in rows]

    def seating_summary(self, wedding_id: int, assignment_type: AssignmentType) -> List[TableSummary]:
        with self.session_factory() as session:
            self._require_wedding(session, wedding_id)
            simulation = assignment_type == AssignmentType.SIMULATION
            tables = session.query(Table).filter_by(wedding_id=wedding_id).order_by(Table.number).all()
            groups = {g.id: g.name for g in session.query(GuestGroup).filter_by(wedding_id=wedding_id)}
            names = {g.id: g.name for g in session.query(Guest).filter_by(wedding_id=wedding_id)}
            rows = (
                session.query(SeatAssignment)
                .filter_by(wedding_id=wedding_id, assignment_type=assignment_type.value)
                .order_by(SeatAssignment.id)
                .all()
            )
            seated: Dict[int, List[SeatedGuest]] = {}
            for r in rows:
                seated.setdefault(r.table_id, []).append(
                    SeatedGuest(guest_id=r.guest_id, name=names.get(r.guest_id), seats=r.seats_count)
                )

            summary = []
            for t in tables:
                if t.simulation_only and not simulation:
                    continue
                assignments = seated.get(t.id, [])
                occupied = sum(a.seats for a in assignments)
                summary.append(
                    TableSummary(
                        table_id=t.id,
                        name=t.name,
                        number=t.number,
                        capacity=t.capacity,
                        table_type=TableType(t.table_type or TableType.MIXED.value),
                        group_name=groups.get(t.group_id),
                        assignments=assignments,
                        occupied=occupied,
                        free=max(0, t.capacity - occupied),
                        is_over_capacity=occupied > t.capacity,
                    )
                )
            return summary

    # --- Promocja symulacji ---

    def promote_simulation(self, wedding_id: int) -> PromoteResult:
        """Zastępuje partycję "real" kopią partycji "simulation"."""
        with self.locks.hold(wedding_id, AssignmentType.REAL):
            session = self.session_factory()
            try:
                self._require_wedding(session, wedding_id)
                sim_rows = (
                    session.query(SeatAssignment)
                    .filter_by(wedding_id=wedding_id, assignment_type=AssignmentType.SIMULATION.value)
                    .order_by(SeatAssignment.id)
                    .all()
                )
                if not sim_rows:
                    raise NothingToPromoteError(wedding_id)

                session.query(SeatAssignment).filter_by(
                    wedding_id=wedding_id, assignment_type=AssignmentType.REAL.value
                ).delete(synchronize_session=False)
                for r in sim_rows:
                    session.add(
                        SeatAssignment(
                            wedding_id=wedding_id,
                            table_id=r.table_id,
                            guest_id=r.guest_id,
                            seats_count=r.seats_count,
                            assignment_type=AssignmentType.REAL.value,
                        )
                    )

                converted = 0
                for table in session.query(Table).filter(Table.id.in_({r.table_id for r in sim_rows})):
                    if table.simulation_only:
                        table.simulation_only = False
                        converted += 1
                session.flush()
                self._rebuild_assigned_guests(session, wedding_id)
                session.commit()
                logger.info(
                    f"Promoted {len(sim_rows)} simulation assignments to real for wedding {wedding_id} "
                    f"({converted} tables converted)"
                )
                return PromoteResult(assignments_promoted=len(sim_rows), tables_converted=converted)
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

    # --- Ręczne przypisanie ---

    def assign_guests(
        self,
        table_id: int,
        guest_ids: List[int],
        action: str = "add",
        confirm_over_capacity: bool = False,
    ) -> AssignResult:
        """
        Ręczna edycja listy gości stołu (omija solver).
        Przekroczenie pojemności wymaga jawnego potwierdzenia; wtedy stół dostaje flagę capacity_override.
        """
        with self.session_factory() as lookup:
            table = lookup.get(Table, table_id)
            if table is None:
                raise TableNotFoundError(table_id)
            wedding_id = table.wedding_id

        with self.locks.hold(wedding_id, AssignmentType.REAL):
            session = self.session_factory()
            try:
                result = self._assign(session, table_id, guest_ids, action, confirm_over_capacity)
                session.commit()
                return result
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

    def _assign(
        self, session: Session, table_id: int, guest_ids: List[int], action: str, confirm: bool
    ) -> AssignResult:
        table = session.get(Table, table_id)
        requested = list(dict.fromkeys(guest_ids))
        guests = {
            g.id: g
            for g in session.query(Guest).filter(Guest.wedding_id == table.wedding_id, Guest.id.in_(requested))
        }
        missing = [g for g in requested if g not in guests]
        if missing:
            raise GuestNotFoundError(missing)

        current = table.assigned_guest_ids
        if action == "add":
            target = current + [g for g in requested if g not in current]
        elif action == "remove":
            target = [g for g in current if g not in requested]
        elif action == "set":
            target = requested
        else:
            raise ValueError(f"Unknown action: {action}")

        everyone = {g.id: g for g in session.query(Guest).filter(Guest.id.in_(set(target) | set(current)))}
        total_people = sum(party_seats(everyone[g]) for g in target)
        over = total_people > table.capacity
        if over and not confirm:
            raise CapacityConfirmationRequired(table.id, total_people, table.capacity)

        removed = [g for g in current if g not in target]
        added = [g for g in target if g not in current]

        if removed:
            session.query(SeatAssignment).filter(
                SeatAssignment.wedding_id == table.wedding_id,
                SeatAssignment.assignment_type == AssignmentType.REAL.value,
                SeatAssignment.table_id == table.id,
                SeatAssignment.guest_id.in_(removed),
            ).delete(synchronize_session=False)
            for g in removed:
                if everyone[g].locked_table_id == table.id:
                    everyone[g].locked_table_id = None

        if added:
            # gość siedzi przy jednym stole: zdejmujemy go z pozostałych list
            others = (
                session.query(Table)
                .filter(Table.wedding_id == table.wedding_id, Table.id != table.id)
                .all()
            )
            for other in others:
                kept = [g for g in other.assigned_guest_ids if g not in added]
                self._set_assigned(other, kept)
            session.query(SeatAssignment).filter(
                SeatAssignment.wedding_id == table.wedding_id,
                SeatAssignment.assignment_type == AssignmentType.REAL.value,
                SeatAssignment.guest_id.in_(added),
            ).delete(synchronize_session=False)
            for g in added:
                session.add(
                    SeatAssignment(
                        wedding_id=table.wedding_id,
                        table_id=table.id,
                        guest_id=g,
                        seats_count=party_seats(everyone[g]),
                        assignment_type=AssignmentType.REAL.value,
                    )
                )
                everyone[g].locked_table_id = table.id

        self._set_assigned(table, target)
        if over:
            table.capacity_override = True
        logger.info(
            f"Manual {action} on table {table.id}: {len(added)} added, {len(removed)} removed, "
            f"{total_people}/{table.capacity} people"
        )
        return AssignResult(table_id=table.id, total_people=total_people, is_over_capacity=over)

    # --- Zmiana RSVP ---

    def handle_rsvp_change(self, wedding_id: int, guest_id: int) -> RsvpChangeResult:
        with self.session_factory() as session:
            self._require_wedding(session, wedding_id)
            guest = session.get(Guest, guest_id)
            if guest is None or guest.wedding_id != wedding_id:
                raise GuestNotFoundError(guest_id)
            group_id = guest.group_id
            row = self._settings_row(session, wedding_id) or default_settings_row(wedding_id, self.app_settings)
            mode = SeatingMode(row.mode)
            policy = AutoRecalcPolicy(row.auto_recalc_policy)

        if mode != SeatingMode.AUTO:
            logger.debug(f"RSVP change for guest {guest_id} ignored: wedding {wedding_id} is in manual mode")
            return RsvpChangeResult(triggered=False, policy=policy)
        if policy == AutoRecalcPolicy.GROUP_ONLY:
            if group_id is not None:
                run = self.run_incremental(wedding_id, group_id=group_id)
            else:
                run = self.run_incremental(wedding_id, guest_id=guest_id)
        elif policy == AutoRecalcPolicy.FULL:
            run = self.run_full(wedding_id, AssignmentType.REAL)
        else:
            return RsvpChangeResult(triggered=False, policy=policy)
        return RsvpChangeResult(triggered=True, policy=policy, run=run)

    # --- Ustawienia ---

    def get_settings(self, wedding_id: int) -> SettingsOut:
        with self.session_factory() as session:
            self._require_wedding(session, wedding_id)
            row = self._settings_row(session, wedding_id) or default_settings_row(wedding_id, self.app_settings)
            return self._settings_out(row)

    def update_settings(self, wedding_id: int, update: SettingsUpdate) -> SettingsOut:
        session = self.session_factory()
        try:
            self._require_wedding(session, wedding_id)
            row = self._settings_row(session, wedding_id)
            if row is None:
                row = default_settings_row(wedding_id, self.app_settings)
                session.add(row)
            for name, value in update.model_dump(exclude_unset=True).items():
                if value is None and name != "max_table_size":
                    continue
                if hasattr(value, "value"):
                    value = value.value
                setattr(row, name, value)
            if row.max_table_size is not None and row.max_table_size < row.seats_per_table:
                raise InvalidSettingsError("maxTableSize must be at least seatsPerTable")
            session.commit()
            logger.info(f"Updated seating settings for wedding {wedding_id}")
            return self._settings_out(row)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # --- Pomocnicze ---

    @staticmethod
    def _require_wedding(session: Session, wedding_id: int) -> Wedding:
        wedding = session.get(Wedding, wedding_id)
        if wedding is None:
            raise WeddingNotFoundError(wedding_id)
        return wedding

    @staticmethod
    def _settings_row(session: Session, wedding_id: int) -> Optional[SeatingSettingsRow]:
        return session.query(SeatingSettingsRow).filter_by(wedding_id=wedding_id).first()

    @staticmethod
    def _settings_out(row: SeatingSettingsRow) -> SettingsOut:
        return SettingsOut(
            wedding_id=row.wedding_id,
            mode=row.mode,
            seats_per_table=row.seats_per_table,
            auto_recalc_policy=row.auto_recalc_policy,
            adjacency_policy=row.adjacency_policy,
            simulation_enabled=row.simulation_enabled,
            enable_kids_table=row.enable_kids_table,
            kids_table_min_age=row.kids_table_min_age,
            kids_table_min_count=row.kids_table_min_count,
            avoid_singles_alone=row.avoid_singles_alone,
            enable_zone_placement=row.enable_zone_placement,
            max_table_size=row.max_table_size,
        )

    @staticmethod
    def _conflict_out(conflict: SeatingConflict, id_of: Dict[int, int]) -> ConflictOut:
        return ConflictOut(
            kind=conflict.kind,
            involved_guest_ids=list(conflict.involved_guest_ids),
            involved_table_ids=[id_of[n] for n in conflict.involved_table_numbers if n in id_of],
            reason=conflict.reason,
            preference_ids=list(conflict.preference_ids),
        )
