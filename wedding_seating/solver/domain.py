from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

# --- Zamknięte warianty (enums) ---


class AssignmentType(str, Enum):
    REAL = "real"
    SIMULATION = "simulation"


class TableType(str, Enum):
    ADULTS = "adults"
    KIDS = "kids"
    MIXED = "mixed"


class TableMode(str, Enum):
    MANUAL = "manual"
    AUTO = "auto"


class PreferenceType(str, Enum):
    TOGETHER = "together"
    APART = "apart"


class PreferenceScope(str, Enum):
    SAME_TABLE = "sameTable"
    ADJACENT_TABLES = "adjacentTables"


class PreferenceStrength(str, Enum):
    MUST = "must"
    TRY = "try"


class RsvpStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    DECLINED = "declined"


class SeatingMode(str, Enum):
    MANUAL = "manual"
    AUTO = "auto"


class AutoRecalcPolicy(str, Enum):
    GROUP_ONLY = "onRsvpChangeGroupOnly"
    FULL = "full"
    MANUAL_TRIGGER_ONLY = "manual-trigger-only"


class AdjacencyPolicy(str, Enum):
    FORBID_SAME_TABLE_ONLY = "forbidSameTableOnly"
    ENFORCE_ADJACENT = "enforceAdjacentPlacement"
    IGNORE = "ignore"


class ConflictKind(str, Enum):
    INVALID_PREFERENCE = "invalid-preference"
    CAPACITY_EXCEEDED = "capacity-exceeded"
    MUTUALLY_UNSATISFIABLE_MUSTS = "mutually-unsatisfiable-musts"
    NO_ADJACENT_TABLE_AVAILABLE = "no-adjacent-table-available"
    APART_VIOLATED = "apart-violated"


# --- Rekordy wejściowe solvera ---


@dataclass(frozen=True)
class Party:
    """Jeden rekord gościa: niepodzielna jednostka rozsadzania."""
    id: int
    name: str = "Guest"
    seats: int = 1
    children: int = 0
    group_id: Optional[int] = None
    created_rank: int = 0  # stabilna kolejność utworzenia gościa
    confirmed: bool = True  # False dla gości "pending" w symulacji


@dataclass(frozen=True)
class Group:
    id: int
    name: str
    priority: int = 0


@dataclass
class TableSpec:
    # Identyfikatorem stołu w solverze jest jego numer (unikalny w weselu);
    # stoły otwarte w trakcie przebiegu nie mają jeszcze id w bazie.
    number: int
    name: str
    capacity: int
    table_type: TableType = TableType.MIXED
    mode: TableMode = TableMode.MANUAL
    id: Optional[int] = None
    group_id: Optional[int] = None
    locked: bool = False
    reserve: bool = False
    capacity_override: bool = False  # przekroczenie pojemności zatwierdzone ręcznie


@dataclass(frozen=True)
class Adjacency:
    table_number: int
    adjacent_table_number: int


@dataclass(frozen=True)
class Preference:
    id: int
    guest_a_id: int
    guest_b_id: int
    type: PreferenceType
    scope: PreferenceScope = PreferenceScope.SAME_TABLE
    strength: PreferenceStrength = PreferenceStrength.TRY
    enabled: bool = True

    def other(self, guest_id: int) -> int:
        return self.guest_b_id if guest_id == self.guest_a_id else self.guest_a_id


@dataclass(frozen=True)
class SeatingSettings:
    mode: SeatingMode = SeatingMode.MANUAL
    seats_per_table: int = 12
    auto_recalc_policy: AutoRecalcPolicy = AutoRecalcPolicy.GROUP_ONLY
    adjacency_policy: AdjacencyPolicy = AdjacencyPolicy.FORBID_SAME_TABLE_ONLY
    simulation_enabled: bool = True
    enable_kids_table: bool = False
    kids_table_min_age: int = 6
    kids_table_min_count: int = 6
    avoid_singles_alone: bool = True
    enable_zone_placement: bool = False
    max_table_size: int = 24


# --- Wyjście solvera ---


@dataclass(frozen=True)
class Placement:
    guest_id: int
    table_number: int
    seats: int


@dataclass(frozen=True)
class SeatingConflict:
    kind: ConflictKind
    involved_guest_ids: Tuple[int, ...] = ()
    involved_table_numbers: Tuple[int, ...] = ()
    reason: str = ""
    preference_ids: Tuple[int, ...] = ()


@dataclass
class SolveOutcome:
    placements: list = field(default_factory=list)       # List[Placement], nowe wiersze
    released_guest_ids: list = field(default_factory=list)
    opened_tables: list = field(default_factory=list)    # List[TableSpec]
    conflicts: list = field(default_factory=list)        # List[SeatingConflict]
    unplaced_guest_ids: list = field(default_factory=list)
    time_seconds: float = 0.0
