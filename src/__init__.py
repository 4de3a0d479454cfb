"""Shared infrastructure for the arm control stack.

Architecture layers (strict one-way dependency):
    arm_control/scripts/ -> arm_control/{configs,hardware}/ -> src/utils/

Nothing under src/ imports from arm_control.
"""

__version__ = "0.3.0"
