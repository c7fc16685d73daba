"""
Write plans: ordered, phase-tagged write sets split into batches.

A plan that fits one batch is committed atomically. Larger plans are split
into sequential batches in phase order, so reference stripping is always
committed before the entity's own copies disappear and the authoritative
copy goes last. A crash part-way through leaves dangling-safe state: some
holder may still list a missing id, which readers already tolerate.
"""

from __future__ import annotations

from enum import IntEnum

from knotsync.store.writes import Write


class Phase(IntEnum):
    REFERENCES = 0
    PRIMARY = 1
    AUTHORITATIVE = 2


class WritePlan:
    def __init__(self) -> None:
        self._phases: dict[Phase, list[Write]] = {phase: [] for phase in Phase}

    def add(self, phase: Phase, *writes: Write) -> WritePlan:
        bucket = self._phases[phase]
        for write in writes:
            if write not in bucket:
                bucket.append(write)
        return self

    @property
    def writes(self) -> list[Write]:
        return [w for phase in Phase for w in self._phases[phase]]

    def phase(self, phase: Phase) -> list[Write]:
        return list(self._phases[phase])

    def __len__(self) -> int:
        return sum(len(bucket) for bucket in self._phases.values())

    def batches(self, max_size: int) -> list[list[Write]]:
        """Sequential batches of at most ``max_size`` writes."""
        if max_size < 1:
            raise ValueError("max_size must be positive")
        writes = self.writes
        return [writes[i : i + max_size] for i in range(0, len(writes), max_size)]


__all__ = ["Phase", "WritePlan"]
