"""Process-wide settings read from a YAML parameter file."""

from __future__ import annotations

import threading
from typing import Any

import numpy as np
import yaml


class ConfigError(Exception):
    """The parameter file could not be read, or a key is missing."""


class _ConfigLoader(yaml.SafeLoader):
    """Safe loader that also understands matrices written as ``!!opencv-matrix``."""


def _construct_opencv(loader: yaml.SafeLoader, suffix: str, node):
    data = loader.construct_mapping(node, deep=True)
    if suffix == "matrix" and {"rows", "cols", "data"} <= data.keys():
        return np.asarray(data["data"], dtype=float).reshape(int(data["rows"]), int(data["cols"]))
    return data


_ConfigLoader.add_multi_constructor("tag:yaml.org,2002:opencv-", _construct_opencv)


def _strip_directive(text: str) -> str:
    # Files written by OpenCV start with "%YAML:1.0", which is not valid YAML.
    lines = text.splitlines()
    if lines and lines[0].startswith("%YAML"):
        lines = lines[1:]
    return "\n".join(lines)


class Config:
    """Single shared set of parameters: load once, then read values by key."""

    _values: dict[str, Any] | None = None
    _lock = threading.Lock()

    @classmethod
    def set_parameter_file(cls, filename) -> None:
        """Load the parameter file, replacing any earlier one.

        On failure the previous parameters are discarded as well.
        """
        with cls._lock:
            cls._values = None
            try:
                with open(filename, encoding="utf-8") as handle:
                    values = yaml.load(_strip_directive(handle.read()), Loader=_ConfigLoader)
            except (OSError, yaml.YAMLError) as exc:
                raise ConfigError(f"Cannot open config file: {filename}") from exc
            if values is None:
                values = {}
            if not isinstance(values, dict):
                raise ConfigError(f"config file {filename} does not hold a mapping")
            cls._values = values

    @classmethod
    def get(cls, key: str) -> Any:
        """The value stored under ``key``."""
        with cls._lock:
            if cls._values is None:
                raise ConfigError("no parameter file loaded")
            try:
                return cls._values[key]
            except KeyError:
                raise ConfigError(f"no parameter named {key!r}") from None