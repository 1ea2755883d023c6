"""
Recognition stability module.

Debounces per-frame matches: an identity is stable once the last K
recognitions all name the same employee. A recognition of somebody else
invalidates the ongoing stabilization.
"""

from collections import deque
from typing import Deque, List, Optional


class StabilityTracker:
    """Fixed-capacity FIFO of recent recognized employee IDs."""

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError('Stability window must hold at least one entry')
        self.capacity = capacity
        self._window: Deque[int] = deque(maxlen=capacity)

    def push(self, employee_id: int) -> bool:
        """
        Record a recognition.

        A different employee than the previous entries clears the window
        and the recognition is dropped.

        Returns:
            True if the window is full and every entry is employee_id
        """
        if self._window and self._window[-1] != employee_id:
            self._window.clear()
            return False

        self._window.append(employee_id)
        return self.is_stable

    def clear(self) -> None:
        """Forget the window (face lost or unknown)."""
        self._window.clear()

    @property
    def is_stable(self) -> bool:
        return (
            len(self._window) == self.capacity
            and all(entry == self._window[0] for entry in self._window)
        )

    @property
    def candidate(self) -> Optional[int]:
        """Most recent employee ID, if any."""
        return self._window[-1] if self._window else None

    def snapshot(self) -> List[int]:
        return list(self._window)

    def __len__(self) -> int:
        return len(self._window)
