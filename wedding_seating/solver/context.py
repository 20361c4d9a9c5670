from dataclasses import dataclass, field
from typing import Optional

from wedding_seating.solver.conflicts import ConflictReport
from wedding_seating.solver.domain import AssignmentType, SeatingSettings


@dataclass
class RunContext:
    """
    Stan jednego przebiegu, przekazywany jawnie:
    budowa ograniczeń -> rozmieszczanie -> raport konfliktów.
    """
    wedding_id: int
    assignment_type: AssignmentType
    settings: SeatingSettings
    next_table_number: int = 1
    group_id: Optional[int] = None
    report: ConflictReport = field(default_factory=ConflictReport)

    def allocate_table_number(self) -> int:
        number = self.next_table_number
        self.next_table_number += 1
        return number
