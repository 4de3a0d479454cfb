"""Connection manager -- arm lifecycle state machine.

States::

    DISCONNECTED --connect--> CONNECTED --enable_robot--> ENABLED
         ^                       |  ^                        |
         +-------disconnect------+  +-----disable_robot------+
         +------------------disconnect-----------------------+

The manager owns the driver handle and the :class:`PollingWorker`.
``connect`` starts the worker, ``disconnect`` stops it (bounded join) and
only then releases the handle.

Every driver call goes through one lock, so control calls from the caller
and reads from the worker never overlap on the handle.

Public operations return :class:`OperationResult` instead of raising: a
failed result is falsy and carries the mapped description.  Failures are
logged (driver errors at ERROR, state violations at WARNING).

``on_connected`` and ``on_disconnected`` are emitted while the lifecycle
lock is still held, so subscribers always see them in transition order.
Handlers run on the calling thread and may call back into the manager.

Usage::

    with ConnectionManager(driver, robot_ip="10.0.0.5") as arm:
        if arm.connect() and arm.power_on() and arm.enable_robot():
            arm.jog_joint(0, velocity=0.1, position=0.05)
            print(arm.current_joint_positions_degrees())
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING, Any, Callable

from arm_control.hardware.driver import (
    ArmError,
    CommandError,
    CoordFrame,
    MoveMode,
    PreconditionError,
    RobotConnectionError,
    RobotDriver,
    describe_error,
    is_error,
)
from arm_control.hardware.events import Event
from arm_control.hardware.polling import PollingWorker, validate_frequency
from arm_control.hardware.telemetry import (
    NUM_JOINTS,
    JointPositions,
    RobotStatus,
    SnapshotStore,
    TelemetrySnapshot,
    ToolPose,
)

if TYPE_CHECKING:
    from arm_control.configs.loader import ArmConfig

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# State and results
# ---------------------------------------------------------------------------


class ConnectionState(Enum):
    """Connection lifecycle state."""

    DISCONNECTED = auto()
    CONNECTED = auto()
    ENABLED = auto()


@dataclass(frozen=True)
class OperationResult:
    """Outcome of a manager operation.  Truthy on success."""

    ok: bool
    message: str = ""
    code: int = 0
    error: ArmError | None = None

    def __bool__(self) -> bool:
        return self.ok

    def raise_for_error(self) -> None:
        """Re-raise the stored error, if any."""
        if self.error is not None:
            raise self.error

    @classmethod
    def success(cls, message: str = "") -> OperationResult:
        return cls(ok=True, message=message)

    @classmethod
    def failure(cls, error: ArmError) -> OperationResult:
        code = getattr(error, "code", 0)
        message = getattr(error, "description", str(error))
        return cls(ok=False, message=message, code=code, error=error)


# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------


class ConnectionManager:
    """Owns one arm connection and its telemetry.

    Parameters
    ----------
    driver : RobotDriver
        Driver used for every call.
    robot_ip : str
        Default address for :meth:`connect`.
    frequency_hz : float
        Telemetry polling frequency, 10..125 Hz.
    join_timeout_s : float
        Upper bound on waiting for the polling thread during disconnect.
    read_status : bool
        Also refresh :class:`RobotStatus` in the polling loop.  Off by
        default: status then only changes on connect and on
        power/enable/disable commands.
    jog_mode, jog_frame : MoveMode, CoordFrame
        Defaults for :meth:`jog_joint`.
    jog_velocity : float
        Velocity used by :meth:`jog_joint` when none is given.  Must be > 0.
    """

    def __init__(
        self,
        driver: RobotDriver,
        robot_ip: str = "",
        frequency_hz: float = 60,
        join_timeout_s: float = 1.0,
        *,
        read_status: bool = False,
        jog_mode: MoveMode = MoveMode.INCREMENTAL,
        jog_frame: CoordFrame = CoordFrame.JOINT,
        jog_velocity: float = 0.1,
    ) -> None:
        if join_timeout_s <= 0:
            raise ValueError(f"join_timeout_s must be > 0, got {join_timeout_s}")
        if jog_velocity <= 0:
            raise ValueError(f"jog_velocity must be > 0, got {jog_velocity}")

        self._driver = driver
        self.robot_ip = robot_ip
        self.frequency_hz = validate_frequency(frequency_hz)
        self.join_timeout_s = join_timeout_s
        self.read_status = read_status
        self.jog_mode = jog_mode
        self.jog_frame = jog_frame
        self.jog_velocity = jog_velocity

        self._state = ConnectionState.DISCONNECTED
        self._handle: int | None = None
        self._worker: PollingWorker | None = None
        self._store = SnapshotStore()

        # Serialises lifecycle operations between caller threads
        self._op_lock = threading.RLock()
        # Serialises driver calls (caller and polling thread)
        self._driver_lock = threading.Lock()

        self.on_connected = Event("connected")
        self.on_disconnected = Event("disconnected")
        self.on_telemetry = Event("telemetry")

    @classmethod
    def from_config(
        cls, driver: RobotDriver, config: ArmConfig,
    ) -> ConnectionManager:
        """Build a manager from a loaded :class:`ArmConfig`."""
        return cls(
            driver,
            robot_ip=config.connection.robot_ip,
            frequency_hz=config.polling.frequency_hz,
            join_timeout_s=config.polling.join_timeout_s,
            read_status=config.polling.read_status,
            jog_mode=config.jog.mode,
            jog_frame=config.jog.frame,
            jog_velocity=config.jog.default_velocity,
        )

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        """``True`` while a driver handle is held."""
        return self._state is not ConnectionState.DISCONNECTED

    @property
    def is_enabled(self) -> bool:
        return self._state is ConnectionState.ENABLED

    @property
    def is_moving(self) -> bool:
        """Motion flag from the last status refresh."""
        return self._store.status().is_moving

    @property
    def is_polling(self) -> bool:
        return self._worker is not None and self._worker.is_running

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def connect(self, ip: str | None = None) -> OperationResult:
        """Open a handle, refresh status and start telemetry polling.

        Calling while already connected logs a warning and succeeds
        without touching the driver.  A rejected handle is not retried.
        """
        with self._op_lock:
            if self.is_connected:
                logger.warning(
                    "Already connected to %s; connect ignored", self.robot_ip,
                )
                return OperationResult.success("already connected")

            target = ip or self.robot_ip
            try:
                if not target:
                    raise PreconditionError("Cannot connect: no robot IP")
                logger.info("Connecting to robot at %s", target)
                with self._driver_lock:
                    code, handle = self._driver.create_handle(target)
                if is_error(code):
                    raise RobotConnectionError(code, f"connect to {target}")
            except ArmError as exc:
                return self._fail(exc)

            self.robot_ip = target
            self._handle = handle
            self._state = ConnectionState.CONNECTED
            logger.info("Connected to %s (handle %s)", target, handle)

            self._refresh_status()
            self._start_worker()
            self.on_connected.emit()
        return OperationResult.success("connected")

    def disconnect(self) -> OperationResult:
        """Stop polling, disable if enabled, release the handle.

        Safe to call repeatedly; only the first call after a connect has
        any effect.
        """
        with self._op_lock:
            if not self.is_connected:
                return OperationResult.success("already disconnected")

            logger.info("Disconnecting from %s", self.robot_ip)
            self._stop_worker()

            if self._state is ConnectionState.ENABLED:
                result = self.disable_robot()
                if not result:
                    logger.warning(
                        "Disable before disconnect failed (%s); continuing",
                        result.message,
                    )

            handle = self._handle
            with self._driver_lock:
                code = self._driver.destroy_handle(handle)
            if is_error(code):
                logger.warning(
                    "Releasing handle %s returned: %s",
                    handle,
                    describe_error(code),
                )

            self._handle = None
            self._state = ConnectionState.DISCONNECTED
            logger.info("Disconnected")
            self.on_disconnected.emit()
        return OperationResult.success("disconnected")

    def close(self) -> None:
        """Teardown hook: same as :meth:`disconnect`, result ignored."""
        self.disconnect()

    # ------------------------------------------------------------------
    # Power / enable
    # ------------------------------------------------------------------

    def power_on(self) -> OperationResult:
        """Power the arm on.  ConnectionState does not change."""
        with self._op_lock:
            try:
                self._call("power on", self._driver.power_on,
                           self._require_handle("power on"))
            except ArmError as exc:
                return self._fail(exc)
            self._refresh_status()
            return OperationResult.success("powered on")

    def power_off(self) -> OperationResult:
        """Power the arm off.  An enabled arm drops back to CONNECTED."""
        with self._op_lock:
            try:
                self._call("power off", self._driver.power_off,
                           self._require_handle("power off"))
            except ArmError as exc:
                return self._fail(exc)
            if self._state is ConnectionState.ENABLED:
                self._state = ConnectionState.CONNECTED
            self._refresh_status()
            return OperationResult.success("powered off")

    def enable_robot(self) -> OperationResult:
        """Enable the servos.  CONNECTED -> ENABLED on success."""
        with self._op_lock:
            try:
                self._call("enable", self._driver.enable,
                           self._require_handle("enable"))
            except ArmError as exc:
                return self._fail(exc)
            self._state = ConnectionState.ENABLED
            self._refresh_status()
            return OperationResult.success("enabled")

    def disable_robot(self) -> OperationResult:
        """Disable the servos.  ENABLED -> CONNECTED on success.

        Without a handle this fails quietly (no log, no driver call).
        """
        with self._op_lock:
            if self._handle is None:
                return OperationResult.failure(
                    PreconditionError("Cannot disable: not connected"),
                )
            try:
                self._call("disable", self._driver.disable, self._handle)
            except ArmError as exc:
                return self._fail(exc)
            self._state = ConnectionState.CONNECTED
            self._refresh_status()
            return OperationResult.success("disabled")

    def refresh_status(self) -> OperationResult:
        """Read :class:`RobotStatus` from the driver into the snapshot."""
        with self._op_lock:
            try:
                handle = self._require_handle("refresh status")
                with self._driver_lock:
                    code, status = self._driver.read_status(handle)
                if is_error(code):
                    raise CommandError(code, "read status")
            except ArmError as exc:
                return self._fail(exc)
            self._store.replace_status(status)
            return OperationResult.success("status refreshed")

    # ------------------------------------------------------------------
    # Jog
    # ------------------------------------------------------------------

    def jog_joint(
        self,
        index: int,
        velocity: float | None = None,
        position: float = 0.0,
        *,
        mode: MoveMode | None = None,
        frame: CoordFrame | None = None,
    ) -> OperationResult:
        """Jog one axis.  Requires ENABLED and an int ``0 <= index <= 5``.

        *position* is a target (absolute mode) or a step (incremental
        mode).  *velocity*, *mode* and *frame* default to the configured
        jog settings.
        """
        with self._op_lock:
            try:
                if self._state is not ConnectionState.ENABLED:
                    raise PreconditionError(
                        f"Robot not ready to move (state {self._state.name})",
                    )
                self._check_index(index)
                velocity = self.jog_velocity if velocity is None else velocity
                mode = self.jog_mode if mode is None else mode
                frame = self.jog_frame if frame is None else frame
                logger.debug(
                    "Jog axis %d %s/%s v=%.4f p=%.4f",
                    index, mode.name, frame.name, velocity, position,
                )
                self._call(
                    f"jog axis {index}",
                    self._driver.jog,
                    self._handle, index, mode, frame, velocity, position,
                )
            except ArmError as exc:
                return self._fail(exc)
            return OperationResult.success(f"jog axis {index}")

    def stop_jog(self, index: int) -> OperationResult:
        """Stop a jog on one axis.  Requires a handle."""
        with self._op_lock:
            try:
                handle = self._require_handle("stop jog")
                self._check_index(index)
                self._call(
                    f"stop jog axis {index}",
                    self._driver.stop_jog,
                    handle,
                    index,
                )
            except ArmError as exc:
                return self._fail(exc)
            return OperationResult.success(f"stop jog axis {index}")

    # ------------------------------------------------------------------
    # Telemetry accessors
    # ------------------------------------------------------------------

    def current_joint_positions_radians(self) -> JointPositions:
        return self._store.joint_positions()

    def current_joint_positions_degrees(self) -> tuple[float, ...]:
        return self._store.joint_positions_degrees()

    def current_tool_pose(self) -> ToolPose:
        return self._store.tool_pose()

    def current_status(self) -> RobotStatus:
        return self._store.status()

    def snapshot(self) -> TelemetrySnapshot:
        return self._store.snapshot()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_handle(self, operation: str) -> int:
        if self._handle is None:
            raise PreconditionError(f"Cannot {operation}: not connected")
        return self._handle

    @staticmethod
    def _check_index(index: int) -> None:
        # bool is an int subclass; True must not alias axis 1
        if (
            isinstance(index, bool)
            or not isinstance(index, int)
            or not 0 <= index < NUM_JOINTS
        ):
            raise PreconditionError(f"Invalid joint index: {index!r}")

    def _call(self, operation: str, call: Callable[..., int], *args: Any) -> None:
        """Run a control call under the driver lock; raise on failure."""
        with self._driver_lock:
            code = call(*args)
        if is_error(code):
            raise CommandError(code, operation)
        logger.info("%s: ok", operation.capitalize())

    @staticmethod
    def _fail(error: ArmError) -> OperationResult:
        if isinstance(error, PreconditionError):
            logger.warning("%s", error)
        else:
            logger.error("%s", error)
        return OperationResult.failure(error)

    def _refresh_status(self) -> bool:
        """Best-effort status refresh after a state change."""
        with self._driver_lock:
            code, status = self._driver.read_status(self._handle)
        if is_error(code):
            logger.warning("Status refresh failed: %s", describe_error(code))
            return False
        self._store.replace_status(status)
        return True

    def _start_worker(self) -> None:
        self._worker = PollingWorker(
            self._driver,
            self._handle,
            self._store,
            self._driver_lock,
            self.frequency_hz,
            is_active=lambda: self.is_connected,
            read_status=self.read_status,
            on_telemetry=self.on_telemetry,
        )
        self._worker.start()

    def _stop_worker(self) -> None:
        if self._worker is None:
            return
        self._worker.stop(timeout=self.join_timeout_s)
        self._worker = None

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    def __enter__(self) -> ConnectionManager:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
