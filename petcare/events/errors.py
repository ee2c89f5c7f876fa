from __future__ import annotations

from typing import Iterable, Optional


class EventError(Exception):
    """Base class for event engine errors."""


class ValidationError(EventError):
    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class NotFoundError(EventError):
    def __init__(self, message: str, event_id: Optional[int] = None):
        super().__init__(message)
        self.event_id = event_id


class PersistenceError(EventError):
    """The store was unreachable or rejected a write."""


class PartialFailureError(EventError):
    """A batch over several records did not apply to all of them.

    ``succeeded`` and ``failed`` hold record ids. When ``rolled_back`` is
    true the successful writes were undone and the store is unchanged;
    otherwise the ``succeeded`` records keep their new values.
    """

    def __init__(
        self,
        message: str,
        succeeded: Iterable[int] = (),
        failed: Iterable[int] = (),
        rolled_back: bool = False,
    ):
        super().__init__(message)
        self.succeeded = tuple(succeeded)
        self.failed = tuple(failed)
        self.rolled_back = rolled_back

    def __str__(self) -> str:
        base = super().__str__()
        state = "rolled back" if self.rolled_back else "partially applied"
        return (
            f"{base} ({state}; succeeded={list(self.succeeded)}, "
            f"failed={list(self.failed)})"
        )
