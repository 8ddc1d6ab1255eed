class RunecastError(RuntimeError):
    pass


class CatalogError(RunecastError):
    pass


class UnknownRuneError(CatalogError):
    pass


class UnknownSpreadError(CatalogError):
    pass


class SessionError(RunecastError):
    pass


class InvalidTransition(SessionError):
    """An event arrived in a phase that does not accept it."""

    def __init__(self, event: str, phase: str):
        super().__init__(f"Cannot {event} while session is {phase}")
        self.event = event
        self.phase = phase


class InterpretationError(RunecastError):
    pass


class InsufficientHistoryError(RunecastError):
    def __init__(self, have: int, need: int):
        super().__init__(f"Pattern analysis needs at least {need} readings, have {have}")
        self.have = have
        self.need = need


class StorageError(RunecastError):
    pass
