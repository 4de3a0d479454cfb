"""Filesystem helpers shared by the config loader and logging setup.

Provides:
    - YAML loading (PyYAML ``safe_load``)
    - Directory creation with exist_ok semantics
    - Atomic text writes: tmp file -> fsync -> rename

All paths use pathlib.Path for cross-platform compatibility.

Usage:
    from src.utils import fs
    data = fs.load_yaml("arm_control/configs/robot.yaml")
    fs.ensure_dir("outputs/logs")
"""

import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Union

import yaml


def ensure_dir(p: Union[str, Path]) -> Path:
    """Create directory if it doesn't exist, return Path object.

    Parameters
    ----------
    p : Union[str, Path]
        Directory path

    Returns
    -------
    Path
        Path object (guaranteed to exist)

    Notes
    -----
    Creates parent directories as needed.
    """
    p = Path(p)
    p.mkdir(parents=True, exist_ok=True)
    return p


def load_yaml(path: Union[str, Path]) -> Dict[str, Any]:
    """Load YAML file safely.

    Parameters
    ----------
    path : Union[str, Path]
        YAML file path

    Returns
    -------
    Dict[str, Any]
        Parsed YAML content (``None`` for an empty file)

    Raises
    ------
    FileNotFoundError
        If file doesn't exist
    yaml.YAMLError
        If YAML parsing fails
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"YAML file not found: {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"Failed to parse YAML file {path}: {e}") from e


def atomic_write_text(
    path: Union[str, Path],
    text: str,
    encoding: str = 'utf-8'
) -> None:
    """Write text so readers never observe a partial file.

    Parameters
    ----------
    path : Union[str, Path]
        Destination path; parent directories are created.
    text : str
        Content to write.
    encoding : str
        Text encoding, default utf-8.
    """
    path = Path(path)
    ensure_dir(path.parent)

    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, 'w', encoding=encoding) as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
