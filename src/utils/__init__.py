"""Cross-cutting utilities (lowest dependency layer).

This package provides shared primitives for:
    - YAML loading and atomic writes (fs)
    - Unified logging (logging_config)

No module in utils/ may import from upper layers (arm_control).

Convenience imports:
    from src.utils import fs
    from src.utils.logging_config import setup_logging, get_logger
"""

from . import fs
from . import logging_config

# Common functions for direct import
from .logging_config import get_logger, push_context, setup_logging

__all__ = [
    # Modules
    'fs',
    'logging_config',
    # Direct exports
    'setup_logging',
    'get_logger',
    'push_context',
]
