"""Configuration of a calibration run: free parameters, models and error blocks."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_BASE_LINK = "base_link"
DEFAULT_MAX_NUM_ITERATIONS = 1000


def _entry(entry: Any, where: str) -> Mapping[str, Any]:
    if not isinstance(entry, Mapping):
        raise TypeError(f"{where} entries must be mappings, got {type(entry).__name__}")
    return entry


def _field(entry: Mapping[str, Any], key: str, where: str) -> Any:
    try:
        return entry[key]
    except KeyError:
        raise ValueError(f"{where} entry is missing {key!r}") from None


def _string(entry: Mapping[str, Any], key: str, where: str) -> str:
    value = _field(entry, key, where)
    if not isinstance(value, str):
        raise TypeError(f"{where} {key!r} must be a string, got {value!r}")
    return value


def _flag(entry: Mapping[str, Any], key: str, where: str) -> bool:
    value = _field(entry, key, where)
    if not isinstance(value, bool):
        raise TypeError(f"{where} {key!r} must be true or false, got {value!r}")
    return value


def _number(entry: Mapping[str, Any], key: str, where: str) -> float:
    value = _field(entry, key, where)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"{where} {key!r} must be a number, got {value!r}")
    return float(value)


def _sequence(config: Mapping[str, Any], key: str) -> list:
    value = config[key]
    if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple)):
        raise TypeError(f"{key!r} must be a list, got {type(value).__name__}")
    return list(value)


_AXES = ("x", "y", "z", "roll", "pitch", "yaw")


@dataclass
class FreeFrameParams:
    """Which of the six degrees of freedom of a frame are calibrated."""

    name: str
    x: bool = False
    y: bool = False
    z: bool = False
    roll: bool = False
    pitch: bool = False
    yaw: bool = False

    @classmethod
    def from_mapping(cls, entry: Any) -> FreeFrameParams:
        entry = _entry(entry, "free_frames")
        return cls(
            _string(entry, "name", "free_frames"),
            *(_flag(entry, axis, "free_frames") for axis in _AXES),
        )


@dataclass
class FreeFrameInitialValue:
    """Starting offset of a free frame."""

    name: str
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    roll: float = 0.0
    pitch: float = 0.0
    yaw: float = 0.0

    @classmethod
    def from_mapping(cls, entry: Any) -> FreeFrameInitialValue:
        entry = _entry(entry, "free_frames_initial_values")
        where = "free_frames_initial_values"
        return cls(
            _string(entry, "name", where),
            *(_number(entry, axis, where) for axis in _AXES),
        )


@dataclass
class Params:
    """A named, typed block of configuration (a model or an error block)."""

    name: str
    type: str
    params: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, entry: Any, where: str) -> Params:
        entry = _entry(entry, where)
        return cls(_string(entry, "name", where), _string(entry, "type", where), dict(entry))


@dataclass
class OptimizationParams:
    """Everything that configures one optimization."""

    base_link: str = DEFAULT_BASE_LINK
    free_params: list[str] = field(default_factory=list)
    free_frames: list[FreeFrameParams] = field(default_factory=list)
    free_frames_initial_values: list[FreeFrameInitialValue] = field(default_factory=list)
    models: list[Params] = field(default_factory=list)
    error_blocks: list[Params] = field(default_factory=list)
    max_num_iterations: int = DEFAULT_MAX_NUM_ITERATIONS

    def load(self, config: Mapping[str, Any]) -> None:
        """Read settings from ``config``; lists present there replace the current ones."""
        self.base_link = config.get("base_link", self.base_link)
        self.max_num_iterations = int(
            config.get("max_num_iterations", DEFAULT_MAX_NUM_ITERATIONS)
        )

        if "free_params" in config:
            names = _sequence(config, "free_params")
            for name in names:
                if not isinstance(name, str):
                    raise TypeError(f"free_params entries must be strings, got {name!r}")
            self.free_params = names

        if "free_frames" in config:
            self.free_frames = [
                FreeFrameParams.from_mapping(e) for e in _sequence(config, "free_frames")
            ]

        if "free_frames_initial_values" in config:
            self.free_frames_initial_values = [
                FreeFrameInitialValue.from_mapping(e)
                for e in _sequence(config, "free_frames_initial_values")
            ]

        if "models" in config:
            self.models = [
                Params.from_mapping(e, "models") for e in _sequence(config, "models")
            ]

        if "error_blocks" in config:
            self.error_blocks = [
                Params.from_mapping(e, "error_blocks") for e in _sequence(config, "error_blocks")
            ]

    def get_param(self, params: Params, name: str, default_value: T) -> T:
        """Value of ``name`` in a block, or ``default_value`` (with a warning) if unset."""
        if name not in params.params:
            logger.warning("%s was not set, using default of %s", name, default_value)
            return default_value
        value = params.params[name]
        if isinstance(default_value, bool):
            if not isinstance(value, bool):
                raise TypeError(f"{name} must be true or false, got {value!r}")
            return value
        if isinstance(default_value, float):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise TypeError(f"{name} must be a number, got {value!r}")
            return float(value)  # type: ignore[return-value]
        if isinstance(default_value, int):
            if isinstance(value, bool) or not isinstance(value, int):
                raise TypeError(f"{name} must be an integer, got {value!r}")
            return value  # type: ignore[return-value]
        if isinstance(default_value, str):
            if not isinstance(value, str):
                raise TypeError(f"{name} must be a string, got {value!r}")
            return value  # type: ignore[return-value]
        return value