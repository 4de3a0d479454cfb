"""Telemetry value types and the shared snapshot store.

The store holds exactly one :class:`TelemetrySnapshot` at a time.  Writers
build a new snapshot with :func:`dataclasses.replace` and swap it in under
the store lock, so a reader always sees one complete snapshot, never a
half-written one.

Joint angles are kept in **radians**.  Degrees are derived on read.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field, replace
from typing import Iterator, Sequence

import numpy as np

NUM_JOINTS = 6


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class JointPositions:
    """Six joint angles in radians (index 0..5 maps to axis 1..6)."""

    values: tuple[float, ...] = (0.0,) * NUM_JOINTS

    def __post_init__(self) -> None:
        if len(self.values) != NUM_JOINTS:
            raise ValueError(
                f"JointPositions needs exactly {NUM_JOINTS} values, "
                f"got {len(self.values)}"
            )
        object.__setattr__(
            self, "values", tuple(float(v) for v in self.values),
        )

    @classmethod
    def from_sequence(cls, values: Sequence[float]) -> JointPositions:
        """Create from any 6-element sequence (list, tuple, ndarray)."""
        return cls(tuple(values))

    def degrees(self) -> tuple[float, ...]:
        """Return the angles converted to degrees (rad * 180 / pi)."""
        return tuple(np.degrees(np.asarray(self.values, dtype=float)).tolist())

    def __getitem__(self, index: int) -> float:
        return self.values[index]

    def __iter__(self) -> Iterator[float]:
        return iter(self.values)

    def __len__(self) -> int:
        return NUM_JOINTS


@dataclass(frozen=True)
class ToolPose:
    """Cartesian pose of the tool centre point.

    ``x, y, z`` are in the controller's length unit (mm for JAKA arms),
    ``rx, ry, rz`` are the orientation angles as reported by the driver.
    """

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    rx: float = 0.0
    ry: float = 0.0
    rz: float = 0.0

    @classmethod
    def from_sequence(cls, values: Sequence[float]) -> ToolPose:
        """Create from the driver's ``[x, y, z, rx, ry, rz]`` list."""
        if len(values) != 6:
            raise ValueError(
                f"ToolPose needs exactly 6 values, got {len(values)}"
            )
        return cls(*(float(v) for v in values))

    def as_tuple(self) -> tuple[float, float, float, float, float, float]:
        return (self.x, self.y, self.z, self.rx, self.ry, self.rz)


@dataclass(frozen=True)
class RobotStatus:
    """Controller status flags.  ``error_code`` 0 means no error."""

    powered_on: bool = False
    enabled: bool = False
    in_error: bool = False
    is_moving: bool = False
    in_collision: bool = False
    error_code: int = 0

    @classmethod
    def from_flags(
        cls,
        powered_on: int,
        enabled: int,
        error_code: int,
        in_error: int,
        is_moving: int,
        in_collision: int,
    ) -> RobotStatus:
        """Create from the controller's integer flags (1 = set)."""
        return cls(
            powered_on=bool(powered_on),
            enabled=bool(enabled),
            in_error=bool(in_error),
            is_moving=bool(is_moving),
            in_collision=bool(in_collision),
            error_code=int(error_code),
        )


@dataclass(frozen=True)
class TelemetrySnapshot:
    """Latest known joints, pose and status.

    ``updated_at`` is a ``time.monotonic()`` stamp of the last replace,
    ``0.0`` before the first write.
    """

    joints: JointPositions = field(default_factory=JointPositions)
    pose: ToolPose = field(default_factory=ToolPose)
    status: RobotStatus = field(default_factory=RobotStatus)
    updated_at: float = 0.0


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class SnapshotStore:
    """Lock-guarded holder of the current :class:`TelemetrySnapshot`.

    One lock covers every field.  Each accessor takes it once, so values
    returned by a single call are always consistent with each other.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._snapshot = TelemetrySnapshot()

    # -- writers ------------------------------------------------------------

    def replace_joints(self, joints: JointPositions) -> TelemetrySnapshot:
        """Swap in new joint positions.  Returns the new snapshot."""
        with self._lock:
            self._snapshot = replace(
                self._snapshot, joints=joints, updated_at=time.monotonic(),
            )
            return self._snapshot

    def replace_pose(self, pose: ToolPose) -> TelemetrySnapshot:
        """Swap in a new tool pose.  Returns the new snapshot."""
        with self._lock:
            self._snapshot = replace(
                self._snapshot, pose=pose, updated_at=time.monotonic(),
            )
            return self._snapshot

    def replace_status(self, status: RobotStatus) -> TelemetrySnapshot:
        """Swap in a new status.  Returns the new snapshot."""
        with self._lock:
            self._snapshot = replace(
                self._snapshot, status=status, updated_at=time.monotonic(),
            )
            return self._snapshot

    # -- readers ------------------------------------------------------------

    def snapshot(self) -> TelemetrySnapshot:
        with self._lock:
            return self._snapshot

    def joint_positions(self) -> JointPositions:
        with self._lock:
            return self._snapshot.joints

    def joint_positions_degrees(self) -> tuple[float, ...]:
        with self._lock:
            joints = self._snapshot.joints
        return joints.degrees()

    def tool_pose(self) -> ToolPose:
        with self._lock:
            return self._snapshot.pose

    def status(self) -> RobotStatus:
        with self._lock:
            return self._snapshot.status
