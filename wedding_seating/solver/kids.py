import logging
import math
from dataclasses import dataclass
from typing import Iterable, Optional, Set

from wedding_seating.solver.constraints import ConstraintGraph
from wedding_seating.solver.context import RunContext
from wedding_seating.solver.domain import Party, TableSpec, TableType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KidsTablePlan:
    active: bool = False
    tables_to_open: int = 0
    children_total: int = 0


def plan_kids_tables(
    context: RunContext,
    parties: Iterable[Party],
    graph: ConstraintGraph,
    tables: Iterable[TableSpec],
    scope: Optional[Set[int]] = None,
) -> KidsTablePlan:
    """
    Decyduje, czy wydzielić stół dziecięcy i ile stołów typu "kids" otworzyć przed rozmieszczaniem.
    kidsTableMinAge nie jest tu używany: model przechowuje tylko liczbę dzieci w rekordzie gościa.
    """
    settings = context.settings
    if not settings.enable_kids_table:
        return KidsTablePlan()

    # Próg liczymy tylko z potwierdzonych gości, także w symulacji
    children_total = sum(p.children for p in parties if p.confirmed)
    if children_total < settings.kids_table_min_count:
        logger.info(
            f"Kids table skipped: {children_total} children attending, minimum is {settings.kids_table_min_count}"
        )
        return KidsTablePlan(children_total=children_total)

    kid_seats = sum(c.seats for c in graph.clusters if c.is_kids and (scope is None or c.index in scope))
    needed = math.ceil(kid_seats / settings.seats_per_table) if kid_seats else 0
    existing = sum(1 for t in tables if t.table_type == TableType.KIDS and not t.locked and not t.reserve)
    plan = KidsTablePlan(active=True, tables_to_open=max(0, needed - existing), children_total=children_total)
    logger.info(
        f"Kids table enabled: {children_total} children, {kid_seats} seats in child clusters, "
        f"{existing} kids tables available, opening {plan.tables_to_open}"
    )
    return plan
