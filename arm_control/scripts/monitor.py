#!/usr/bin/env python3
"""Live telemetry monitor.

Connects to the arm and prints joint angles (degrees) and the tool pose at
a fixed rate until the duration elapses or Ctrl+C is pressed.  Reading
telemetry never commands motion, so the arm is left unpowered.

Usage::

    python -m arm_control.scripts.monitor
    python -m arm_control.scripts.monitor --ip 10.0.0.5 --rate 5
    python -m arm_control.scripts.monitor --duration 30 --csv outputs/joints.csv
"""

from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path

# Allow direct execution from the repo root
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from arm_control.configs.loader import load_config
from arm_control.hardware.connection import ConnectionManager
from arm_control.hardware.driver import load_driver
from arm_control.hardware.telemetry import NUM_JOINTS, TelemetrySnapshot
from src.utils.fs import atomic_write_text
from src.utils.logging_config import (
    get_logger,
    install_excepthook,
    push_context,
    setup_logging,
    shutdown,
)

logger = get_logger(__name__)

CSV_HEADER = ",".join(
    ["t"]
    + [f"j{i + 1}_deg" for i in range(NUM_JOINTS)]
    + ["x", "y", "z", "rx", "ry", "rz"]
)


def format_row(snap: TelemetrySnapshot, elapsed: float) -> str:
    """One human-readable telemetry line."""
    joints = " ".join(f"{d:8.2f}" for d in snap.joints.degrees())
    p = snap.pose
    return (
        f"{elapsed:7.2f}s | J[deg] {joints} | "
        f"TCP {p.x:8.2f} {p.y:8.2f} {p.z:8.2f} "
        f"{p.rx:7.3f} {p.ry:7.3f} {p.rz:7.3f}"
    )


def csv_row(snap: TelemetrySnapshot, elapsed: float) -> str:
    values = [elapsed, *snap.joints.degrees(), *snap.pose.as_tuple()]
    return ",".join(f"{v:.6f}" for v in values)


def monitor(
    ip: str | None = None,
    config_path: str | None = None,
    duration: float = 0.0,
    rate: float = 2.0,
    csv_path: str | None = None,
) -> bool:
    """Print telemetry until *duration* seconds pass (0 = until Ctrl+C).

    Returns ``False`` if the connection could not be opened.
    """
    if rate <= 0:
        raise ValueError(f"rate must be > 0, got {rate}")

    config = load_config(config_path)
    setup_logging(
        config.logging.level,
        config.logging.log_file,
        json=config.logging.json,
        color=config.logging.color,
        context={"app": "monitor"},
    )
    install_excepthook()

    target = ip or config.connection.robot_ip
    push_context(robot=target)
    try:
        manager = ConnectionManager.from_config(
            load_driver(config.connection.driver), config,
        )
        manager.on_disconnected.subscribe(
            lambda: logger.info("Monitor detached"),
        )

        result = manager.connect(target)
        if not result:
            print(f"[FAIL] Connect to {target}: {result.message}")
            return False

        rows: list[str] = []
        start = time.monotonic()
        interval = 1.0 / rate
        try:
            while duration <= 0 or time.monotonic() - start < duration:
                elapsed = time.monotonic() - start
                snap = manager.snapshot()
                print(format_row(snap, elapsed))
                if csv_path:
                    rows.append(csv_row(snap, elapsed))
                time.sleep(interval)
        except KeyboardInterrupt:
            print("\nInterrupted")
        finally:
            manager.close()

        if csv_path:
            atomic_write_text(csv_path, "\n".join([CSV_HEADER, *rows]) + "\n")
            logger.info("Wrote %d samples to %s", len(rows), csv_path)
        return True
    finally:
        shutdown()


def main() -> None:
    parser = argparse.ArgumentParser(description="Print live arm telemetry")
    parser.add_argument("--ip", "-i", type=str, help="Robot IP override")
    parser.add_argument("--config", "-c", type=str, help="Config file path")
    parser.add_argument(
        "--duration", "-d", type=float, default=0.0,
        help="Seconds to run (0 = until Ctrl+C)",
    )
    parser.add_argument(
        "--rate", "-r", type=float, default=2.0,
        help="Lines printed per second",
    )
    parser.add_argument("--csv", type=str, help="Write samples to this CSV")
    args = parser.parse_args()

    ok = monitor(args.ip, args.config, args.duration, args.rate, args.csv)
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
