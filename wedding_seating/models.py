from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel
from typing import List, Literal, Optional

from wedding_seating.solver.domain import (
    AdjacencyPolicy,
    AssignmentType,
    AutoRecalcPolicy,
    ConflictKind,
    SeatingMode,
    TableType,
)


class CamelModel(BaseModel):
    # Kontrakt zewnętrzny używa camelCase (assignmentsCreated, guestIds...)
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Modele Wejściowe (Request) ---

class RunRequest(CamelModel):
    type: AssignmentType = AssignmentType.REAL
    group_id: Optional[int] = None


class AssignRequest(CamelModel):
    guest_ids: List[int]
    action: Literal["add", "remove", "set"] = "add"
    confirm_over_capacity: bool = False


class SettingsUpdate(CamelModel):
    """Częściowa aktualizacja: pola pominięte w żądaniu zostają bez zmian."""
    mode: Optional[SeatingMode] = None
    seats_per_table: Optional[int] = Field(default=None, ge=1)
    auto_recalc_policy: Optional[AutoRecalcPolicy] = None
    adjacency_policy: Optional[AdjacencyPolicy] = None
    simulation_enabled: Optional[bool] = None
    enable_kids_table: Optional[bool] = None
    kids_table_min_age: Optional[int] = Field(default=None, ge=0)
    kids_table_min_count: Optional[int] = Field(default=None, ge=1)
    avoid_singles_alone: Optional[bool] = None
    enable_zone_placement: Optional[bool] = None
    max_table_size: Optional[int] = Field(default=None, ge=1)

    @model_validator(mode="after")
    def check_table_sizes(self):
        if self.seats_per_table is not None and self.max_table_size is not None:
            if self.max_table_size < self.seats_per_table:
                raise ValueError("maxTableSize must be at least seatsPerTable")
        return self


# --- Modele Wyjściowe (Response) ---

class ConflictOut(CamelModel):
    kind: ConflictKind
    involved_guest_ids: List[int] = []
    involved_table_ids: List[int] = []
    reason: str
    preference_ids: List[int] = []


class RunResult(CamelModel):
    success: bool
    assignment_type: AssignmentType
    group_id: Optional[int] = None
    assignments_created: int
    assignments_released: int = 0
    tables_created: int
    conflicts: List[ConflictOut]
    unplaced_guest_ids: List[int] = []
    time_seconds: float = 0.0


class AssignmentOut(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    wedding_id: int
    table_id: int
    guest_id: int
    seats_count: int
    assignment_type: AssignmentType


class SeatedGuest(CamelModel):
    guest_id: int
    name: Optional[str] = None
    seats: int


class TableSummary(CamelModel):
    table_id: int
    name: Optional[str] = None
    number: int
    capacity: int
    table_type: TableType
    group_name: Optional[str] = None
    assignments: List[SeatedGuest] = []
    occupied: int
    free: int
    is_over_capacity: bool


class AssignResult(CamelModel):
    table_id: int
    total_people: int
    is_over_capacity: bool


class PromoteResult(CamelModel):
    assignments_promoted: int
    tables_converted: int


class RsvpChangeResult(CamelModel):
    triggered: bool
    policy: Optional[AutoRecalcPolicy] = None
    run: Optional[RunResult] = None


class SettingsOut(CamelModel):
    wedding_id: int
    mode: SeatingMode
    seats_per_table: int
    auto_recalc_policy: AutoRecalcPolicy
    adjacency_policy: AdjacencyPolicy
    simulation_enabled: bool
    enable_kids_table: bool
    kids_table_min_age: int
    kids_table_min_count: int
    avoid_singles_alone: bool
    enable_zone_placement: bool
    max_table_size: Optional[int] = None
