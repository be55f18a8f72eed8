"""Append-only in-memory storage of the snapshots of one recording."""

from collections.abc import Iterator

from ..exceptions import NotFoundError
from .models import Snapshot


class ContentStore:
    """Indexed sequence of snapshots for a single recording.

    Indices are contiguous from 0. The store knows nothing about caching or
    eviction; its owner calls ``release()`` when the recording is destroyed.
    """

    def __init__(self, recording_id: str):
        self.recording_id = recording_id
        self._snapshots: list[Snapshot] = []
        self._released = False

    def __len__(self) -> int:
        return len(self._snapshots)

    def __iter__(self) -> Iterator[Snapshot]:
        return iter(self._snapshots)

    @property
    def released(self) -> bool:
        return self._released

    @property
    def last(self) -> Snapshot | None:
        return self._snapshots[-1] if self._snapshots else None

    def append(self, snapshot: Snapshot) -> None:
        if self._released:
            raise RuntimeError(f"Content store for {self.recording_id} has been released")
        if snapshot.index != len(self._snapshots):
            raise ValueError(f"Snapshot index {snapshot.index} breaks sequence (expected {len(self._snapshots)})")
        self._snapshots.append(snapshot)

    def get(self, index: int) -> Snapshot:
        if index < 0 or index >= len(self._snapshots):
            raise NotFoundError(f"Snapshot {index} not found in recording {self.recording_id}")
        return self._snapshots[index]

    def release(self) -> None:
        """Drop all snapshot content."""
        self._snapshots.clear()
        self._released = True
