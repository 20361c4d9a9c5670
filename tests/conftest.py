"""
Wspólne fixture'y testów: baza SQLite w pamięci, orkiestrator i budowniczy danych wesela.
"""

import sys
from pathlib import Path
from typing import Dict, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from wedding_seating.database import (  # noqa: E402
    Guest,
    GuestGroup,
    SeatAssignment,
    SeatingPreference,
    SeatingSettingsRow,
    Table,
    TableAdjacency,
    Wedding,
    init_db,
)
from wedding_seating.orchestrator import RunLocks, SeatingOrchestrator  # noqa: E402
from wedding_seating.settings import Settings  # noqa: E402
from wedding_seating.solver.context import RunContext  # noqa: E402
from wedding_seating.solver.domain import AssignmentType, SeatingSettings  # noqa: E402


def make_context(next_table_number: int = 1, assignment_type=AssignmentType.REAL, **settings) -> RunContext:
    return RunContext(
        wedding_id=1,
        assignment_type=assignment_type,
        settings=SeatingSettings(**settings),
        next_table_number=next_table_number,
    )


class WeddingBuilder:
    """Zapisuje rekordy wesela w bazie testowej i zwraca ich id."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def _add(self, obj) -> int:
        with self.session_factory() as session:
            session.add(obj)
            session.commit()
            return obj.id

    def wedding(self, name: str = "Ania & Tomek", settings: Optional[dict] = None, with_settings: bool = True) -> int:
        wedding_id = self._add(Wedding(name=name))
        if with_settings:
            values = dict(mode="auto")
            values.update(settings or {})
            self._add(SeatingSettingsRow(wedding_id=wedding_id, **values))
        return wedding_id

    def group(self, wedding_id: int, name: str, priority: int = 0) -> int:
        return self._add(GuestGroup(wedding_id=wedding_id, name=name, priority=priority))

    def guest(
        self,
        wedding_id: int,
        name: str = "Guest",
        adults: int = 1,
        children: int = 0,
        rsvp: str = "confirmed",
        group_id: Optional[int] = None,
        **kwargs,
    ) -> int:
        return self._add(
            Guest(
                wedding_id=wedding_id,
                name=name,
                adults_attending=adults,
                children_attending=children,
                rsvp_status=rsvp,
                group_id=group_id,
                **kwargs,
            )
        )

    def table(self, wedding_id: int, number: int, capacity: int, **kwargs) -> int:
        kwargs.setdefault("name", f"Table {number}")
        return self._add(Table(wedding_id=wedding_id, number=number, capacity=capacity, **kwargs))

    def preference(
        self,
        wedding_id: int,
        guest_a_id: int,
        guest_b_id: int,
        type: str,
        scope: str = "sameTable",
        strength: str = "must",
        enabled: bool = True,
    ) -> int:
        return self._add(
            SeatingPreference(
                wedding_id=wedding_id,
                guest_a_id=guest_a_id,
                guest_b_id=guest_b_id,
                type=type,
                scope=scope,
                strength=strength,
                enabled=enabled,
            )
        )

    def adjacency(self, wedding_id: int, table_id: int, adjacent_table_id: int) -> int:
        return self._add(TableAdjacency(wedding_id=wedding_id, table_id=table_id, adjacent_table_id=adjacent_table_id))

    def update(self, model, obj_id: int, **values) -> None:
        with self.session_factory() as session:
            obj = session.get(model, obj_id)
            for k, v in values.items():
                setattr(obj, k, v)
            session.commit()

    # --- odczyt ---

    def seating(self, wedding_id: int, assignment_type: str = "real") -> Dict[int, int]:
        """gość -> id stołu"""
        with self.session_factory() as session:
            rows = session.query(SeatAssignment).filter_by(wedding_id=wedding_id, assignment_type=assignment_type)
            return {r.guest_id: r.table_id for r in rows}

    def rows(self, wedding_id: int, assignment_type: str = "real"):
        with self.session_factory() as session:
            rows = (
                session.query(SeatAssignment)
                .filter_by(wedding_id=wedding_id, assignment_type=assignment_type)
                .order_by(SeatAssignment.id)
            )
            return [(r.id, r.guest_id, r.table_id, r.seats_count) for r in rows]

    def tables(self, wedding_id: int):
        with self.session_factory() as session:
            tables = session.query(Table).filter_by(wedding_id=wedding_id).order_by(Table.number).all()
            return [
                {
                    "id": t.id,
                    "number": t.number,
                    "name": t.name,
                    "capacity": t.capacity,
                    "table_type": t.table_type,
                    "mode": t.mode,
                    "simulation_only": t.simulation_only,
                    "capacity_override": t.capacity_override,
                    "assigned": t.assigned_guest_ids,
                }
                for t in tables
            ]

    def get(self, model, obj_id: int, attr: str):
        with self.session_factory() as session:
            return getattr(session.get(model, obj_id), attr)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def orchestrator(session_factory) -> SeatingOrchestrator:
    return SeatingOrchestrator(session_factory, RunLocks(), Settings())


@pytest.fixture
def builder(session_factory) -> WeddingBuilder:
    return WeddingBuilder(session_factory)
