from enum import Enum
from typing import List, Optional, Set


class RunDecision(str, Enum):
    DISPATCH = "dispatch"   # send execute_request now
    QUEUED = "queued"       # held until earlier runs have been sent and settled
    IGNORED = "ignored"     # already running, or not a runnable cell
    REJECTED = "rejected"   # kernel not connected, or the request could not be built


class RunScheduler:
    """
    Single-flight execution state for one kernel session.

    Pure bookkeeping with no I/O: states are Idle (`running is None`) and
    Running(cell_id). Extra run requests wait in a FIFO queue without
    duplicates. The coordinator performs the sends this object decides on.
    """

    def __init__(self):
        self.running: Optional[str] = None
        self.queue: List[str] = []
        self.counter = 0
        self.pending: Set[str] = set()      # dispatched, reply not seen yet
        self._stamped: Set[str] = set()     # cells holding a count since the last reset

    @property
    def is_busy(self) -> bool:
        return self.running is not None

    def request(self, cell_id: str) -> RunDecision:
        if self.running == cell_id:
            return RunDecision.IGNORED
        # Idle with a non-empty queue happens after an error frame or a
        # disconnect; the new cell still goes behind the waiting ones.
        if self.running is not None or self.queue:
            if cell_id not in self.queue:
                self.queue.append(cell_id)
            return RunDecision.QUEUED
        return RunDecision.DISPATCH

    def start(self, cell_id: str) -> None:
        """Record that execute_request for `cell_id` has been sent."""
        self.running = cell_id
        self.pending.add(cell_id)
        if cell_id in self.queue:
            self.queue.remove(cell_id)

    def complete(self, cell_id: str) -> Optional[str]:
        """execute_reply. Returns the next queued cell to dispatch, if any."""
        self.pending.discard(cell_id)
        if self.running == cell_id:
            self.running = None
        return self.pop_next()

    def idle(self) -> Optional[str]:
        """status(idle). Returns the next queued cell to dispatch, if any."""
        self.running = None
        return self.pop_next()

    def fail(self, cell_id: Optional[str] = None) -> None:
        """error frame or failed send: clear running state without draining."""
        self.running = None

    def abort(self, cell_id: str) -> None:
        """The execute_request for `cell_id` never left the client."""
        self.pending.discard(cell_id)
        if self.running == cell_id:
            self.running = None

    def disconnect(self) -> None:
        """Channel closed. Queued cells survive until the next hello."""
        self.running = None
        self.pending.clear()

    def reset(self) -> None:
        """Fresh kernel: counters, tickets and queue start over."""
        self.running = None
        self.queue.clear()
        self.pending.clear()
        self._stamped.clear()
        self.counter = 0

    def pop_next(self) -> Optional[str]:
        if self.running is None and self.queue:
            return self.queue.pop(0)
        return None

    def stamp(self, cell_id: str, existing_count: Optional[int]) -> int:
        """
        Display count for a reply to `cell_id`.

        The first reply since the last reset takes the counter value. Later
        replies for the same cell, whether replays or re-runs, keep the
        count already on the cell.
        """
        if cell_id in self._stamped and existing_count is not None:
            return existing_count
        count = self.counter
        self.counter += 1
        self._stamped.add(cell_id)
        return count
