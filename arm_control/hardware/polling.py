"""Background telemetry polling.

One daemon thread per connection reads joints and tool pose from the
driver at a fixed frequency and swaps them into the :class:`SnapshotStore`.

Freshness is best-effort:
    - A read with a non-zero result code is skipped for that cycle; the
      previous value stays in the store.
    - Any other exception in a cycle is logged and the loop continues.
    - Only :meth:`PollingWorker.stop` ends the loop.

``stop()`` closes a commit gate before joining, so once it returns no
further write reaches the store, even if a slow driver read outlives the
join timeout.  Reads check the same flag under the driver lock, so none
starts after the stop.
"""

from __future__ import annotations

import contextvars
import logging
import threading
from typing import Callable

from arm_control.hardware.driver import RobotDriver, is_error
from arm_control.hardware.events import Event
from arm_control.hardware.telemetry import (
    JointPositions,
    RobotStatus,
    SnapshotStore,
    TelemetrySnapshot,
    ToolPose,
)

logger = logging.getLogger(__name__)

MIN_FREQUENCY_HZ = 10
MAX_FREQUENCY_HZ = 125


def validate_frequency(frequency_hz: float) -> float:
    """Return *frequency_hz* or raise ``ValueError`` outside 10..125 Hz."""
    if not MIN_FREQUENCY_HZ <= frequency_hz <= MAX_FREQUENCY_HZ:
        raise ValueError(
            f"Polling frequency must be within "
            f"{MIN_FREQUENCY_HZ}..{MAX_FREQUENCY_HZ} Hz, got {frequency_hz}"
        )
    return float(frequency_hz)


class PollingWorker:
    """Periodic driver reader feeding a :class:`SnapshotStore`.

    Parameters
    ----------
    driver : RobotDriver
        Driver to read from.
    handle : int
        Handle of the live connection.
    store : SnapshotStore
        Destination of the readings.  The worker is its only joints/pose
        writer.
    driver_lock : threading.Lock
        Lock serialising every driver call for *handle*.
    frequency_hz : float
        Polling frequency, 10..125 Hz.
    is_active : callable, optional
        Extra loop condition; the loop exits when it returns ``False``.
    read_status : bool
        Also read :class:`RobotStatus` every cycle.
    on_telemetry : Event, optional
        Emitted (on the worker thread) with the new snapshot after a cycle
        that replaced joints or pose.
    """

    def __init__(
        self,
        driver: RobotDriver,
        handle: int,
        store: SnapshotStore,
        driver_lock: threading.Lock,
        frequency_hz: float = 60,
        *,
        is_active: Callable[[], bool] | None = None,
        read_status: bool = False,
        on_telemetry: Event | None = None,
    ) -> None:
        self._driver = driver
        self._handle = handle
        self._store = store
        self._driver_lock = driver_lock
        self.frequency_hz = validate_frequency(frequency_hz)
        self._is_active = is_active or (lambda: True)
        self._read_status = read_status
        self._on_telemetry = on_telemetry

        self._stop = threading.Event()
        self._commit_lock = threading.Lock()
        self._thread: threading.Thread | None = None
        self.cycles = 0

    @property
    def period_s(self) -> float:
        """Sleep between cycles in seconds."""
        return 1.0 / self.frequency_hz

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the polling thread.  Does nothing if already running."""
        if self.is_running:
            return
        self._stop.clear()
        # Log context pushed by the caller follows the worker thread
        ctx = contextvars.copy_context()
        self._thread = threading.Thread(
            target=ctx.run,
            args=(self._run,),
            name=f"telemetry-poll-{self._handle}",
            daemon=True,
        )
        self._thread.start()
        logger.info(
            "Telemetry polling started at %.0f Hz (handle %s)",
            self.frequency_hz,
            self._handle,
        )

    def stop(self, timeout: float = 1.0) -> bool:
        """Stop the loop and wait up to *timeout* seconds for it to exit.

        Returns
        -------
        bool
            ``True`` if the thread exited within *timeout*.
        """
        with self._commit_lock:
            self._stop.set()

        thread = self._thread
        if thread is None:
            return True
        if thread is not threading.current_thread():
            thread.join(timeout=timeout)
        exited = not thread.is_alive()
        if exited:
            self._thread = None
            logger.info("Telemetry polling stopped (handle %s)", self._handle)
        else:
            logger.warning(
                "Polling thread still inside a driver call after %.2fs; "
                "its result will be discarded",
                timeout,
            )
        return exited

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def _run(self) -> None:
        while not self._stop.is_set() and self._is_active():
            try:
                self.poll_once()
            except Exception:  # noqa: BLE001
                logger.exception("Unexpected error in telemetry poll cycle")
            self._stop.wait(self.period_s)

    def poll_once(self) -> TelemetrySnapshot | None:
        """Run a single read cycle.

        Returns
        -------
        TelemetrySnapshot | None
            The snapshot after the last successful write of this cycle,
            ``None`` if nothing was written or the worker was stopped.
        """
        latest: TelemetrySnapshot | None = None

        reply = self._read(self._driver.read_joint_positions)
        if reply is None:
            return None
        code, values = reply
        if is_error(code):
            logger.debug("Joint read skipped (code %d)", code)
        else:
            joints = JointPositions.from_sequence(values)
            latest = self._commit(self._store.replace_joints, joints) or latest

        reply = self._read(self._driver.read_tool_pose)
        if reply is None:
            return None
        code, values = reply
        if is_error(code):
            logger.debug("Tool pose read skipped (code %d)", code)
        else:
            pose = ToolPose.from_sequence(values)
            latest = self._commit(self._store.replace_pose, pose) or latest

        if self._read_status:
            reply = self._read(self._driver.read_status)
            if reply is None:
                return None
            code, status = reply
            if is_error(code):
                logger.debug("Status read skipped (code %d)", code)
            else:
                self._commit(self._store.replace_status, status)

        self.cycles += 1
        if (
            latest is not None
            and self._on_telemetry is not None
            and not self._stop.is_set()
        ):
            self._on_telemetry.emit(latest)
        return latest

    def _read(self, read: Callable[[int], tuple]) -> tuple | None:
        """Call *read* under the driver lock; ``None`` once stopped.

        Checking the stop flag under the driver lock means no read can
        start after the owner has stopped the worker and released the
        handle.
        """
        with self._driver_lock:
            if self._stop.is_set():
                return None
            return read(self._handle)

    def _commit(
        self,
        write: Callable[[JointPositions | ToolPose | RobotStatus], TelemetrySnapshot],
        value: JointPositions | ToolPose | RobotStatus,
    ) -> TelemetrySnapshot | None:
        """Apply *write* unless a stop has been requested."""
        with self._commit_lock:
            if self._stop.is_set():
                return None
            return write(value)
