"""Command-line entrypoints (``python -m arm_control.scripts.<name>``)."""
