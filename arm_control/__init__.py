"""
Arm Control Package.

Connection and telemetry core for a 6-axis robot arm driven through a
native controller API. Owns the connection lifecycle, polls joints and
tool pose in the background, and gates motion commands on arm state.

Subpackages:
    hardware: Driver protocol, connection manager, telemetry polling
    configs: Arm configuration loading and validation
    scripts: Command-line smoke test and telemetry monitor
"""

__all__ = ["hardware", "configs", "scripts"]
