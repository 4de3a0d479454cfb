"""
Hardware communication module.

Provides the driver protocol and result codes, the connection state
machine, the background telemetry poller and its snapshot store, and an
in-process simulated arm.
"""

from arm_control.hardware.connection import (
    ConnectionManager,
    ConnectionState,
    OperationResult,
)
from arm_control.hardware.driver import (
    ArmError,
    CommandError,
    CoordFrame,
    DriverError,
    MoveMode,
    PreconditionError,
    RobotConnectionError,
    RobotDriver,
    describe_error,
    load_driver,
)
from arm_control.hardware.events import Event
from arm_control.hardware.polling import PollingWorker
from arm_control.hardware.simulated import SimulatedDriver
from arm_control.hardware.telemetry import (
    JointPositions,
    RobotStatus,
    SnapshotStore,
    TelemetrySnapshot,
    ToolPose,
)

__all__ = [
    "ArmError",
    "CommandError",
    "ConnectionManager",
    "ConnectionState",
    "CoordFrame",
    "DriverError",
    "Event",
    "JointPositions",
    "MoveMode",
    "OperationResult",
    "PollingWorker",
    "PreconditionError",
    "RobotConnectionError",
    "RobotDriver",
    "RobotStatus",
    "SimulatedDriver",
    "SnapshotStore",
    "TelemetrySnapshot",
    "ToolPose",
    "describe_error",
    "load_driver",
]
