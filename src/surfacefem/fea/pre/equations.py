"""
Equation Parameters Data Model
==============================
One parameter record per supported equation. Records are plain dataclasses
tagged with their :class:`Equation`; the solver dispatches on the concrete
record type with ``match``.

Every scalar field has an application defined safe range in
``PARAMETER_RANGES``; ``set`` and ``clamp`` keep a record inside it.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, fields
from enum import StrEnum
from typing import Any, Dict, Iterator, Tuple, Union

import numpy as np

logger = logging.getLogger(__name__)


class Equation(StrEnum):
    HEAT = "heat"
    WAVE = "wave"
    ADVECTION_DIFFUSION = "advection_diffusion"
    REACTION_DIFFUSION = "reaction_diffusion"


TIME_STEP_RANGE: Tuple[float, float] = (1.0e-5, 1.0)


@dataclass
class EquationParameters(ABC):
    time_step: float

    # Inclusive (min, max) per scalar field
    PARAMETER_RANGES = {"time_step": TIME_STEP_RANGE}

    @property
    @abstractmethod
    def equation(self) -> Equation:
        pass

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"equation": self.equation.value}
        for f in fields(self):
            value = getattr(self, f.name)
            d[f.name] = value.tolist() if isinstance(value, np.ndarray) else value
        return d

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> EquationParameters:
        try:
            equation = Equation(data.get("equation"))
        except ValueError:
            logger.error(f"Unknown equation in parameter record: {data.get('equation')!r}")
            raise
        cls = PARAMETER_TYPES[equation]
        defaults = cls()
        kwargs = {f.name: data.get(f.name, getattr(defaults, f.name)) for f in fields(cls)}
        record = cls(**kwargs)
        record.clamp()
        return record

    def set(self, name: str, value: float) -> float:
        """
        Assign a scalar parameter, clipped into its safe range.

        Args:
            name: Field name, e.g. ``"time_step"``.
            value: Requested value.

        Returns:
            The value actually stored.

        Raises:
            KeyError: If the record has no such scalar parameter.
        """
        if name not in self.PARAMETER_RANGES:
            raise KeyError(f"{type(self).__name__} has no parameter '{name}'")
        lo, hi = self.PARAMETER_RANGES[name]
        clipped = float(min(max(float(value), lo), hi))
        if clipped != float(value):
            logger.debug(f"{self.equation}: '{name}' clipped from {value} to {clipped}")
        setattr(self, name, clipped)
        return clipped

    def clamp(self) -> None:
        for name in self.PARAMETER_RANGES:
            self.set(name, getattr(self, name))


@dataclass
class HeatParameters(EquationParameters):
    time_step: float = 0.01
    conductivity: float = 0.05

    PARAMETER_RANGES = {"time_step": TIME_STEP_RANGE, "conductivity": (0.0, 10.0)}

    @property
    def equation(self) -> Equation:
        return Equation.HEAT


@dataclass
class WaveParameters(EquationParameters):
    time_step: float = 0.05
    wave_speed: float = 0.05

    PARAMETER_RANGES = {"time_step": TIME_STEP_RANGE, "wave_speed": (0.0, 10.0)}

    @property
    def equation(self) -> Equation:
        return Equation.WAVE


VELOCITY_COMPONENT_RANGE: Tuple[float, float] = (-10.0, 10.0)


@dataclass
class AdvectionDiffusionParameters(EquationParameters):
    time_step: float = 0.001
    diffusivity: float = 0.25
    velocity: np.ndarray = field(default_factory=lambda: np.array([1.0, 0.0, 0.0], dtype=np.float32))

    PARAMETER_RANGES = {"time_step": TIME_STEP_RANGE, "diffusivity": (0.0, 10.0)}

    def __post_init__(self) -> None:
        self.velocity = np.asarray(self.velocity, dtype=np.float32).reshape(3)

    @property
    def equation(self) -> Equation:
        return Equation.ADVECTION_DIFFUSION

    def set_velocity(self, velocity: Any) -> np.ndarray:
        """Assign the velocity with each component clipped into range."""
        lo, hi = VELOCITY_COMPONENT_RANGE
        self.velocity = np.clip(np.asarray(velocity, dtype=np.float32).reshape(3), lo, hi)
        return self.velocity

    def clamp(self) -> None:
        super().clamp()
        self.set_velocity(self.velocity)


@dataclass
class ReactionDiffusionParameters(EquationParameters):
    time_step: float = 0.001
    Du: float = 0.08
    Dv: float = 0.04
    feed_rate: float = 0.035
    kill_rate: float = 0.06

    PARAMETER_RANGES = {
        "time_step": TIME_STEP_RANGE,
        "Du": (0.0, 1.0),
        "Dv": (0.0, 1.0),
        "feed_rate": (0.0, 0.1),
        "kill_rate": (0.0, 0.1),
    }

    @property
    def equation(self) -> Equation:
        return Equation.REACTION_DIFFUSION


AnyParameters = Union[
    HeatParameters,
    WaveParameters,
    AdvectionDiffusionParameters,
    ReactionDiffusionParameters,
]

PARAMETER_TYPES: Dict[Equation, type] = {
    Equation.HEAT: HeatParameters,
    Equation.WAVE: WaveParameters,
    Equation.ADVECTION_DIFFUSION: AdvectionDiffusionParameters,
    Equation.REACTION_DIFFUSION: ReactionDiffusionParameters,
}


class ParameterStore:
    """
    Holds exactly one parameter record per equation and the active equation.

    Edits to a record survive switching to another equation and back.
    """
    def __init__(self, active: Equation = Equation.WAVE) -> None:
        self._records: Dict[Equation, EquationParameters] = {
            equation: cls() for equation, cls in PARAMETER_TYPES.items()
        }
        self.active_equation: Equation = Equation(active)

    def __getitem__(self, equation: Equation) -> AnyParameters:
        return self._records[Equation(equation)]

    def __iter__(self) -> Iterator[EquationParameters]:
        return iter(self._records.values())

    @property
    def active(self) -> AnyParameters:
        return self._records[self.active_equation]

    @property
    def advection(self) -> AdvectionDiffusionParameters:
        return self._records[Equation.ADVECTION_DIFFUSION]

    def reset(self, equation: Equation | None = None) -> None:
        """Restore defaults for one equation, or for all of them."""
        targets = [Equation(equation)] if equation is not None else list(PARAMETER_TYPES)
        for eq in targets:
            self._records[eq] = PARAMETER_TYPES[eq]()
        logger.info(f"Parameters reset to defaults: {', '.join(str(t) for t in targets)}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "active": self.active_equation.value,
            "records": {eq.value: rec.to_dict() for eq, rec in self._records.items()},
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> ParameterStore:
        store = ParameterStore(active=Equation(data.get("active", Equation.WAVE)))
        for key, record in data.get("records", {}).items():
            record = dict(record)
            record.setdefault("equation", key)
            parsed = EquationParameters.from_dict(record)
            store._records[parsed.equation] = parsed
        return store
