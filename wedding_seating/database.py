from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker

from wedding_seating.settings import get_settings


def make_engine(url: str):
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args)


engine = make_engine(get_settings().database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


class Wedding(Base):
    __tablename__ = "weddings"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, index=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))


class SeatingSettingsRow(Base):
    __tablename__ = "seating_settings"
    id = Column(Integer, primary_key=True, index=True)
    wedding_id = Column(Integer, ForeignKey("weddings.id"), unique=True, nullable=False)
    mode = Column(String, default="manual", nullable=False)
    seats_per_table = Column(Integer, default=12, nullable=False)
    auto_recalc_policy = Column(String, default="onRsvpChangeGroupOnly", nullable=False)
    adjacency_policy = Column(String, default="forbidSameTableOnly", nullable=False)
    simulation_enabled = Column(Boolean, default=True, nullable=False)
    enable_kids_table = Column(Boolean, default=False, nullable=False)
    kids_table_min_age = Column(Integer, default=6, nullable=False)
    kids_table_min_count = Column(Integer, default=6, nullable=False)
    avoid_singles_alone = Column(Boolean, default=True, nullable=False)
    enable_zone_placement = Column(Boolean, default=False, nullable=False)
    max_table_size = Column(Integer, nullable=True)  # None -> limit z konfiguracji aplikacji


class GuestGroup(Base):
    __tablename__ = "guest_groups"
    id = Column(Integer, primary_key=True, index=True)
    wedding_id = Column(Integer, ForeignKey("weddings.id"), index=True)
    name = Column(String)
    priority = Column(Integer, default=0)


class Guest(Base):
    """Jeden rekord gościa = jedna "partia" (osoba + towarzyszące dzieci/dorośli)."""
    __tablename__ = "guests"
    id = Column(Integer, primary_key=True, index=True)
    wedding_id = Column(Integer, ForeignKey("weddings.id"), index=True)
    group_id = Column(Integer, ForeignKey("guest_groups.id"), nullable=True)
    name = Column(String)
    rsvp_status = Column(String, default="pending")
    adults_attending = Column(Integer, default=1)
    children_attending = Column(Integer, default=0)
    expected_party_size = Column(Integer, nullable=True)
    invited_count = Column(Integer, default=1)
    locked_table_id = Column(Integer, ForeignKey("tables.id"), nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))


class Table(Base):
    __tablename__ = "tables"
    __table_args__ = (UniqueConstraint("wedding_id", "number", name="uq_table_number_per_wedding"),)
    id = Column(Integer, primary_key=True, index=True)
    wedding_id = Column(Integer, ForeignKey("weddings.id"), index=True)
    name = Column(String)
    number = Column(Integer, nullable=False)
    capacity = Column(Integer, nullable=False)
    table_type = Column(String, default="mixed")
    mode = Column(String, default="manual")  # "auto" = otwarty przez solver
    group_id = Column(Integer, ForeignKey("guest_groups.id"), nullable=True)
    locked = Column(Boolean, default=False)
    simulation_only = Column(Boolean, default=False)
    capacity_override = Column(Boolean, default=False)

    assigned = relationship(
        "TableGuest",
        order_by="TableGuest.position",
        cascade="all, delete-orphan",
        back_populates="table",
    )

    @property
    def assigned_guest_ids(self):
        return [a.guest_id for a in self.assigned]


class TableGuest(Base):
    # Table.assignedGuests: lista gości przy stole (źródło prawdy w trybie manualnym)
    __tablename__ = "table_guests"
    table_id = Column(Integer, ForeignKey("tables.id"), primary_key=True)
    guest_id = Column(Integer, ForeignKey("guests.id"), primary_key=True)
    position = Column(Integer, default=0)

    table = relationship("Table", back_populates="assigned")


class TableAdjacency(Base):
    __tablename__ = "table_adjacencies"
    id = Column(Integer, primary_key=True, index=True)
    wedding_id = Column(Integer, ForeignKey("weddings.id"), index=True)
    table_id = Column(Integer, ForeignKey("tables.id"))
    adjacent_table_id = Column(Integer, ForeignKey("tables.id"))


class SeatingPreference(Base):
    __tablename__ = "seating_preferences"
    id = Column(Integer, primary_key=True, index=True)
    wedding_id = Column(Integer, ForeignKey("weddings.id"), index=True)
    # bez FK: preferencja może wskazywać usuniętego gościa, solver zgłasza to jako konflikt
    guest_a_id = Column(Integer, nullable=False)
    guest_b_id = Column(Integer, nullable=False)
    type = Column(String, nullable=False)
    scope = Column(String, default="sameTable")
    strength = Column(String, default="try")
    enabled = Column(Boolean, default=True)


class SeatAssignment(Base):
    __tablename__ = "seat_assignments"
    __table_args__ = (UniqueConstraint("wedding_id", "guest_id", "assignment_type", name="uq_guest_per_partition"),)
    id = Column(Integer, primary_key=True, index=True)
    wedding_id = Column(Integer, ForeignKey("weddings.id"), index=True)
    table_id = Column(Integer, ForeignKey("tables.id"), nullable=False)
    guest_id = Column(Integer, ForeignKey("guests.id"), nullable=False)
    seats_count = Column(Integer, default=1)
    assignment_type = Column(String, default="real", index=True)


def init_db(bind=None):
    Base.metadata.create_all(bind=bind or engine)
