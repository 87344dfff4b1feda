"""In-process table of live reminder timers."""

from typing import Dict, List, Optional, Protocol


class TimerHandle(Protocol):
    """A scheduled callback that can be cancelled before it starts."""

    def cancel(self) -> None:
        ...


class JobTable:
    """
    Maps reminder id to its live timer handle.

    Holds at most one handle per id. Neither ``set`` nor ``clear`` awaits,
    so on the event loop each call is atomic for a given id.
    """

    def __init__(self):
        self._jobs: Dict[str, TimerHandle] = {}

    def set(self, reminder_id: str, handle: TimerHandle) -> None:
        """Store ``handle`` for ``reminder_id``, cancelling any previous one."""
        previous = self._jobs.get(reminder_id)
        if previous is not None and previous is not handle:
            previous.cancel()
        self._jobs[reminder_id] = handle

    def clear(self, reminder_id: str, only: Optional[TimerHandle] = None) -> bool:
        """
        Cancel and remove the handle for ``reminder_id``.

        When ``only`` is given the entry is removed only if it is still that
        handle, so a firing timer never drops a replacement installed while
        it was running. Returns True if an entry was removed.
        """
        handle = self._jobs.get(reminder_id)
        if handle is None:
            return False
        if only is not None and handle is not only:
            return False
        del self._jobs[reminder_id]
        handle.cancel()
        return True

    def get(self, reminder_id: str) -> Optional[TimerHandle]:
        return self._jobs.get(reminder_id)

    def ids(self) -> List[str]:
        return list(self._jobs)

    def clear_all(self) -> int:
        """Cancel every live timer."""
        handles = list(self._jobs.values())
        self._jobs.clear()
        for handle in handles:
            handle.cancel()
        return len(handles)

    def __contains__(self, reminder_id: object) -> bool:
        return reminder_id in self._jobs

    def __len__(self) -> int:
        return len(self._jobs)
