"""Process-wide progress store polled by clients while a pipeline runs."""

import threading
import time
from dataclasses import asdict, dataclass, field, replace


@dataclass
class ProgressState:
    percent: float = 0.0
    message: str = "pending"
    done: bool = False
    error: str | None = None
    updated_at: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        data = asdict(self)
        data.pop("updated_at")
        if data["error"] is None:
            data.pop("error")
        return data


class ProgressTracker:
    """Keyed progress states guarded by a single lock.

    Entries are created on first update. While an entry is running its
    percent never goes down, so pollers see a non-decreasing sequence.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._states: dict[str, ProgressState] = {}

    def update(self, request_id: str, **partial) -> ProgressState:
        with self._lock:
            current = self._states.get(request_id, ProgressState())
            if "percent" in partial:
                percent = min(max(float(partial["percent"]), 0.0), 100.0)
                if not current.done:
                    percent = max(percent, current.percent)
                partial["percent"] = percent
            state = replace(current, **partial, updated_at=time.time())
            self._states[request_id] = state
            return replace(state)

    def get(self, request_id: str) -> ProgressState:
        with self._lock:
            state = self._states.get(request_id)
            return replace(state) if state else ProgressState()

    def complete(self, request_id: str, message: str = "Done") -> ProgressState:
        return self.update(request_id, percent=100.0, message=message, done=True, error=None)

    def fail(self, request_id: str, error: str) -> ProgressState:
        return self.update(request_id, message="Failed", done=True, error=error)

    def prune(self, max_age: float) -> int:
        """Drop finished entries not updated for ``max_age`` seconds."""
        cutoff = time.time() - max_age
        with self._lock:
            stale = [k for k, s in self._states.items() if s.done and s.updated_at < cutoff]
            for key in stale:
                del self._states[key]
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)


tracker = ProgressTracker()
