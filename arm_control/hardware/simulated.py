"""In-process simulated arm implementing :class:`RobotDriver`.

Behaves like a well-mannered controller:
    - ``enable`` needs the arm powered (``-3`` otherwise).
    - ``jog`` needs the arm enabled (``-4``) and a valid axis (``-2``).
    - Joint-frame jogs move the joint instantly: incremental adds
      *position*, absolute sets it.  Base/tool-frame jogs act on the
      matching pose component instead.
    - Unknown handles return ``-1``.

Test hooks:
    - :meth:`SimulatedDriver.inject_fault` queues result codes for the
      next calls of a method.
    - ``read_delay_s`` makes every read block, to emulate a slow link.
    - ``calls`` records every method call.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Sequence

from arm_control.hardware.driver import (
    ERR_CONNECTION,
    ERR_INVALID_PARAMETER,
    ERR_IN_ERROR,
    ERR_NOT_ENABLED,
    ERR_NOT_POWERED,
    OK,
    CoordFrame,
    MoveMode,
)
from arm_control.hardware.telemetry import NUM_JOINTS, RobotStatus

logger = logging.getLogger(__name__)


@dataclass
class SimulatedArm:
    """Mutable state of one simulated connection."""

    ip: str
    powered_on: bool = False
    enabled: bool = False
    in_error: bool = False
    error_code: int = 0
    joints: list[float] = field(default_factory=lambda: [0.0] * NUM_JOINTS)
    pose: list[float] = field(default_factory=lambda: [0.0] * 6)
    jogging: set[int] = field(default_factory=set)

    def status(self) -> RobotStatus:
        return RobotStatus(
            powered_on=self.powered_on,
            enabled=self.enabled,
            in_error=self.in_error,
            is_moving=bool(self.jogging),
            in_collision=False,
            error_code=self.error_code,
        )


class SimulatedDriver:
    """Fake controller holding any number of simulated arms.

    Parameters
    ----------
    first_handle : int
        Handle value returned by the first successful ``create_handle``.
    read_delay_s : float
        Delay applied to every ``read_*`` call.
    reject_ips : Sequence[str]
        Addresses for which ``create_handle`` returns ``-1``.
    """

    def __init__(
        self,
        first_handle: int = 1,
        read_delay_s: float = 0.0,
        reject_ips: Sequence[str] = (),
    ) -> None:
        self.read_delay_s = read_delay_s
        self.reject_ips = set(reject_ips)
        self.calls: list[tuple[str, tuple]] = []

        self._lock = threading.Lock()
        self._next_handle = first_handle
        self._arms: dict[int, SimulatedArm] = {}
        self._faults: dict[str, deque[int]] = defaultdict(deque)

    # ------------------------------------------------------------------
    # Test hooks
    # ------------------------------------------------------------------

    def inject_fault(self, method: str, code: int, times: int = 1) -> None:
        """Make the next *times* calls of *method* return *code*."""
        if not hasattr(self, method):
            raise ValueError(f"Unknown driver method: {method}")
        with self._lock:
            self._faults[method].extend([code] * times)

    def arm(self, handle: int) -> SimulatedArm:
        """Return the simulated state behind *handle*."""
        return self._arms[handle]

    def set_joint_positions(self, handle: int, values: Sequence[float]) -> None:
        with self._lock:
            self._arms[handle].joints = [float(v) for v in values]

    def set_tool_pose(self, handle: int, values: Sequence[float]) -> None:
        with self._lock:
            self._arms[handle].pose = [float(v) for v in values]

    def set_error(self, handle: int, error_code: int) -> None:
        """Put the arm in (or, with ``0``, out of) an error state."""
        with self._lock:
            arm = self._arms[handle]
            arm.error_code = error_code
            arm.in_error = error_code != 0

    def call_count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)

    @property
    def open_handles(self) -> list[int]:
        with self._lock:
            return list(self._arms)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _enter(self, method: str, *args: object) -> int | None:
        """Record the call; return an injected fault code if one is queued."""
        with self._lock:
            self.calls.append((method, args))
            queue = self._faults.get(method)
            if queue:
                return queue.popleft()
        return None

    def _lookup(self, handle: int) -> SimulatedArm | None:
        return self._arms.get(handle)

    def _read_pause(self) -> None:
        if self.read_delay_s > 0:
            time.sleep(self.read_delay_s)

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    def create_handle(self, ip: str) -> tuple[int, int]:
        fault = self._enter("create_handle", ip)
        if fault is not None:
            return fault, 0
        if ip in self.reject_ips:
            return ERR_CONNECTION, 0
        with self._lock:
            handle = self._next_handle
            self._next_handle += 1
            self._arms[handle] = SimulatedArm(ip=ip)
        logger.debug("Simulated arm %s opened as handle %d", ip, handle)
        return OK, handle

    def destroy_handle(self, handle: int) -> int:
        fault = self._enter("destroy_handle", handle)
        with self._lock:
            arm = self._arms.pop(handle, None)
        if fault is not None:
            return fault
        return OK if arm is not None else ERR_CONNECTION

    # ------------------------------------------------------------------
    # Power / enable
    # ------------------------------------------------------------------

    def power_on(self, handle: int) -> int:
        fault = self._enter("power_on", handle)
        if fault is not None:
            return fault
        with self._lock:
            arm = self._lookup(handle)
            if arm is None:
                return ERR_CONNECTION
            arm.powered_on = True
        return OK

    def power_off(self, handle: int) -> int:
        fault = self._enter("power_off", handle)
        if fault is not None:
            return fault
        with self._lock:
            arm = self._lookup(handle)
            if arm is None:
                return ERR_CONNECTION
            arm.powered_on = False
            arm.enabled = False
            arm.jogging.clear()
        return OK

    def enable(self, handle: int) -> int:
        fault = self._enter("enable", handle)
        if fault is not None:
            return fault
        with self._lock:
            arm = self._lookup(handle)
            if arm is None:
                return ERR_CONNECTION
            if not arm.powered_on:
                return ERR_NOT_POWERED
            if arm.in_error:
                return ERR_IN_ERROR
            arm.enabled = True
        return OK

    def disable(self, handle: int) -> int:
        fault = self._enter("disable", handle)
        if fault is not None:
            return fault
        with self._lock:
            arm = self._lookup(handle)
            if arm is None:
                return ERR_CONNECTION
            arm.enabled = False
            arm.jogging.clear()
        return OK

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def read_joint_positions(self, handle: int) -> tuple[int, Sequence[float]]:
        fault = self._enter("read_joint_positions", handle)
        self._read_pause()
        if fault is not None:
            return fault, []
        with self._lock:
            arm = self._lookup(handle)
            if arm is None:
                return ERR_CONNECTION, []
            return OK, list(arm.joints)

    def read_tool_pose(self, handle: int) -> tuple[int, Sequence[float]]:
        fault = self._enter("read_tool_pose", handle)
        self._read_pause()
        if fault is not None:
            return fault, []
        with self._lock:
            arm = self._lookup(handle)
            if arm is None:
                return ERR_CONNECTION, []
            return OK, list(arm.pose)

    def read_status(self, handle: int) -> tuple[int, RobotStatus]:
        fault = self._enter("read_status", handle)
        self._read_pause()
        if fault is not None:
            return fault, RobotStatus()
        with self._lock:
            arm = self._lookup(handle)
            if arm is None:
                return ERR_CONNECTION, RobotStatus()
            return OK, arm.status()

    # ------------------------------------------------------------------
    # Jog
    # ------------------------------------------------------------------

    def jog(
        self,
        handle: int,
        axis: int,
        mode: MoveMode,
        frame: CoordFrame,
        velocity: float,
        position: float,
    ) -> int:
        fault = self._enter("jog", handle, axis, mode, frame, velocity, position)
        if fault is not None:
            return fault
        with self._lock:
            arm = self._lookup(handle)
            if arm is None:
                return ERR_CONNECTION
            if not 0 <= axis < NUM_JOINTS:
                return ERR_INVALID_PARAMETER
            if not arm.powered_on:
                return ERR_NOT_POWERED
            if not arm.enabled:
                return ERR_NOT_ENABLED
            if arm.in_error:
                return ERR_IN_ERROR

            target = arm.joints if frame == CoordFrame.JOINT else arm.pose
            if mode == MoveMode.INCREMENTAL:
                target[axis] += float(position)
            else:
                target[axis] = float(position)
            arm.jogging.add(axis)
        return OK

    def stop_jog(self, handle: int, axis: int) -> int:
        fault = self._enter("stop_jog", handle, axis)
        if fault is not None:
            return fault
        with self._lock:
            arm = self._lookup(handle)
            if arm is None:
                return ERR_CONNECTION
            if not 0 <= axis < NUM_JOINTS:
                return ERR_INVALID_PARAMETER
            arm.jogging.discard(axis)
        return OK
