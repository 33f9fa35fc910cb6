from surfacefem.fea.pre.equations import (
    AdvectionDiffusionParameters,
    Equation,
    EquationParameters,
    HeatParameters,
    ParameterStore,
    ReactionDiffusionParameters,
    WaveParameters,
)
from surfacefem.fea.pre.surface import BrushMode, Surface

__all__ = [
    "AdvectionDiffusionParameters",
    "BrushMode",
    "Equation",
    "EquationParameters",
    "HeatParameters",
    "ParameterStore",
    "ReactionDiffusionParameters",
    "Surface",
    "WaveParameters",
]
