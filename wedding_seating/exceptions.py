class SeatingError(Exception):
    """Błąd krytyczny: przerywa operację przed jakimkolwiek zapisem."""


class WeddingNotFoundError(SeatingError):
    def __init__(self, wedding_id: int):
        super().__init__(f"Wedding {wedding_id} not found")
        self.wedding_id = wedding_id


class SettingsMissingError(SeatingError):
    def __init__(self, wedding_id: int):
        super().__init__(f"Seating settings for wedding {wedding_id} are missing")
        self.wedding_id = wedding_id


class GroupNotFoundError(SeatingError):
    def __init__(self, group_id: int):
        super().__init__(f"Guest group {group_id} not found")
        self.group_id = group_id


class TableNotFoundError(SeatingError):
    def __init__(self, table_id: int):
        super().__init__(f"Table {table_id} not found")
        self.table_id = table_id


class GuestNotFoundError(SeatingError):
    def __init__(self, guest_ids):
        ids = sorted(guest_ids) if not isinstance(guest_ids, int) else [guest_ids]
        super().__init__(f"Guest(s) {', '.join(str(g) for g in ids)} not found")
        self.guest_ids = ids


class RunInProgressError(SeatingError):
    def __init__(self, wedding_id: int, assignment_type: str):
        super().__init__(f"A {assignment_type} seating run for wedding {wedding_id} is already in progress")
        self.wedding_id = wedding_id
        self.assignment_type = assignment_type


class CapacityConfirmationRequired(SeatingError):
    def __init__(self, table_id: int, total_people: int, capacity: int):
        super().__init__(
            f"Table {table_id} would seat {total_people} people but has capacity {capacity}; "
            f"confirm to override"
        )
        self.table_id = table_id
        self.total_people = total_people
        self.capacity = capacity


class SimulationDisabledError(SeatingError):
    def __init__(self, wedding_id: int):
        super().__init__(f"Simulation is disabled for wedding {wedding_id}")
        self.wedding_id = wedding_id


class NothingToPromoteError(SeatingError):
    def __init__(self, wedding_id: int):
        super().__init__(f"Wedding {wedding_id} has no simulation assignments to promote")
        self.wedding_id = wedding_id


class InvalidSettingsError(SeatingError):
    def __init__(self, message: str):
        super().__init__(message)
