"""Progress tracking for proof validation."""

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Callable, Sequence, Tuple
import math
import threading
import time

from .proof import VerificationOutcome


@dataclass(frozen=True)
class EndpointProgress:
    """Validity counters for a single endpoint."""
    label: str
    valid: int = 0
    checked: int = 0

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization."""
        return {
            'label': self.label,
            'valid': self.valid,
            'checked': self.checked,
        }


@dataclass(frozen=True)
class ProgressSnapshot:
    """Immutable view of a ProgressState at one instant."""
    endpoints: Tuple[EndpointProgress, ...]
    completed_leaves: int
    total_leaves: int
    elapsed_seconds: float
    eta_seconds: Optional[int]

    @property
    def percentage(self) -> float:
        if self.total_leaves <= 0:
            return 0.0
        return min(100.0, (self.completed_leaves / self.total_leaves) * 100)

    def to_dict(self) -> Dict:
        return {
            'endpoints': [endpoint.to_dict() for endpoint in self.endpoints],
            'completed_leaves': self.completed_leaves,
            'total_leaves': self.total_leaves,
            'percentage': round(self.percentage, 1),
            'time': {
                'elapsed_seconds': round(self.elapsed_seconds, 1),
                'eta_seconds': self.eta_seconds,
            },
        }


class ProgressState:
    """Thread-safe counters for a validation run, with ETA estimation.

    Counters may be updated from the event loop while a web handler reads
    snapshots from another thread, so every access goes through one lock.
    """

    def __init__(self,
                 labels: Sequence[str],
                 total_leaves: int,
                 callback: Optional[Callable[[Dict], None]] = None,
                 update_frequency: int = 10,
                 update_first_n: int = 100,
                 clock: Callable[[], float] = time.monotonic):
        """Initialize progress state.

        Args:
            labels: Endpoint labels, in endpoint order
            total_leaves: Number of leaves the run will process
            callback: Function to call with progress updates
            update_frequency: Send update every N leaves (after the first N)
            update_first_n: Send every update for the first N leaves
            clock: Monotonic time source
        """
        self.callback = callback
        self.update_frequency = max(1, update_frequency)
        self.update_first_n = update_first_n
        self.total_leaves = total_leaves

        self._lock = threading.Lock()
        self._clock = clock
        self._labels: List[str] = list(labels)
        self._valid: Dict[str, int] = {label: 0 for label in self._labels}
        self._checked: Dict[str, int] = {label: 0 for label in self._labels}
        self._completed = 0

        # Timing
        self.start_time = clock()

    @property
    def elapsed_seconds(self) -> float:
        """Get elapsed time in seconds."""
        return self._clock() - self.start_time

    @property
    def completed_leaves(self) -> int:
        with self._lock:
            return self._completed

    def record_outcome(self, label: str, outcome: VerificationOutcome) -> None:
        """Count a verification outcome for an endpoint.

        UNKNOWN outcomes are not counted: nothing was checked.
        """
        with self._lock:
            self._count(label, outcome)

    def record_leaf_complete(self) -> None:
        """Record that every endpoint has reported for one leaf."""
        with self._lock:
            self._completed += 1

    def record_leaf(self, outcomes: Mapping[str, VerificationOutcome]) -> None:
        """Count a finished leaf's outcomes and complete it in one step.

        Readers never see an outcome counted before its leaf is complete,
        so checked <= completed_leaves holds in every snapshot.
        """
        with self._lock:
            for label, outcome in outcomes.items():
                self._count(label, outcome)
            self._completed += 1

    def _count(self, label: str, outcome: VerificationOutcome) -> None:
        if outcome is VerificationOutcome.UNKNOWN:
            return
        self._checked[label] += 1
        if outcome is VerificationOutcome.VALID:
            self._valid[label] += 1

    def estimate_remaining_seconds(self) -> Optional[float]:
        """Average time per completed leaf times the leaves still to go.

        Returns None until at least one leaf has completed.
        """
        with self._lock:
            completed = self._completed
        if completed <= 0:
            return None
        remaining = max(0, self.total_leaves - completed)
        return (self.elapsed_seconds / completed) * remaining

    def snapshot(self) -> ProgressSnapshot:
        """Take an immutable copy of the counters."""
        eta = self.estimate_remaining_seconds()
        with self._lock:
            endpoints = tuple(
                EndpointProgress(label, self._valid[label], self._checked[label])
                for label in self._labels
            )
            completed = self._completed
        return ProgressSnapshot(
            endpoints=endpoints,
            completed_leaves=completed,
            total_leaves=self.total_leaves,
            elapsed_seconds=self.elapsed_seconds,
            eta_seconds=math.ceil(eta) if eta is not None else None,
        )

    def should_send_update(self) -> bool:
        """Check if we should send a progress update.

        Returns:
            True if update should be sent
        """
        completed = self.completed_leaves

        # Always send for the first leaves and for the last one
        if completed <= self.update_first_n or completed >= self.total_leaves:
            return True

        return completed % self.update_frequency == 0

    def send_update(self, message: Optional[str] = None) -> None:
        """Send progress update via callback.

        Args:
            message: Optional message to include
        """
        if not self.callback:
            return

        if message:
            self.callback({'type': 'message', 'message': message})

        self.callback({'type': 'progress', 'data': self.to_dict()})

    def send_message(self, message: str) -> None:
        """Send a message without progress data.

        Args:
            message: Message to send
        """
        if self.callback:
            self.callback({'type': 'message', 'message': message})

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization."""
        return self.snapshot().to_dict()
