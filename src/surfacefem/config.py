"""
Configuration & Numeric Constants
=================================
This module is the central registry for file paths, numeric constants and the
linear solver settings shared by the FEM core.

Why is this file needed?
------------------------
1. Precision: the whole engine runs in single precision; ``DTYPE`` is the one
   place that decides it.
2. Solver control: tolerances and iteration caps of the Krylov solves are
   collected in :class:`SolverSettings` instead of being scattered as literals.
3. Deployment: it resolves the bundled example meshes both in development and
   when frozen by PyInstaller (sys._MEIPASS).

Exports:
    ASSETS_PATH (str): Absolute path to the assets directory.
    DTYPE: Floating point type of fields, state vectors and operators.
    INSTABILITY_THRESHOLD (float): Magnitude above which a state is unstable.
    SolverSettings: Linear solve configuration.
"""
from __future__ import annotations

import os
import sys
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Literal

import numpy as np


def get_resource_path(relative_path: str) -> str:
    """
    Get absolute path to resource, works for dev and for PyInstaller.
    """
    if hasattr(sys, '_MEIPASS'):
        base_path: str = getattr(sys, '_MEIPASS')
        return os.path.join(base_path, relative_path)

    # config.py is in src/surfacefem/
    current_file_path: Path = Path(__file__)
    project_root: Path = current_file_path.parent.parent.parent
    return os.path.join(str(project_root), relative_path)


ASSETS_PATH: str = get_resource_path("assets")

DTYPE = np.float32
INDEX_DTYPE = np.int64

# Marker of a vertex that carries no degree of freedom
NO_DOF: int = -1

INSTABILITY_THRESHOLD: float = 1.0e4

# Triangles with |(b-a)x(c-a)| below this are skipped during assembly
DEGENERATE_AREA_TOLERANCE: float = 1.0e-12


@dataclass
class SolverSettings:
    """
    Settings of the sparse linear solves done every time step.

    Attributes:
        rtol: Relative residual tolerance of the Krylov iteration.
        atol: Absolute residual tolerance of the Krylov iteration.
        max_iterations: Upper bound on iterations; the effective cap is
            ``min(2 * N, max_iterations)``.
        advection_method: Krylov method for the advection-diffusion system.
            ``"cg"`` treats the (slightly non-symmetric) system as if it were
            symmetric; ``"bicgstab"`` solves it as non-symmetric.
    """
    rtol: float = 1.0e-6
    atol: float = 0.0
    max_iterations: int = 1000
    advection_method: Literal["cg", "bicgstab"] = "cg"

    def iteration_cap(self, n_dofs: int) -> int:
        return max(1, min(2 * n_dofs, self.max_iterations))

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SolverSettings:
        method = data.get("advection_method", "cg")
        if method not in ("cg", "bicgstab"):
            raise ValueError(f"Unknown advection solve method: {method!r}")
        return cls(
            rtol=float(data.get("rtol", 1.0e-6)),
            atol=float(data.get("atol", 0.0)),
            max_iterations=int(data.get("max_iterations", 1000)),
            advection_method=method,
        )
