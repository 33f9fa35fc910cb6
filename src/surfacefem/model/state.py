"""
Session State (Data Model)
==========================
This module defines the data of one interactive session.

Why is this file needed?
------------------------
1. State Management: it holds the equation choice, the boundary condition,
   the parameter records and the recorded field frames in one place.
2. Persistence: this object is what gets serialized when saving a session.
3. Decoupling: the viewer reads from this object; the controller writes to it.

Classes:
    SessionState: The main container class.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, TYPE_CHECKING

import numpy as np

from surfacefem.fea.analysis.dof import BoundaryCondition
from surfacefem.fea.pre.equations import Equation, ParameterStore

if TYPE_CHECKING:
    import numpy.typing as npt


@dataclass
class SessionState:
    boundary_condition: BoundaryCondition = BoundaryCondition.DIRICHLET
    parameters: ParameterStore = field(default_factory=ParameterStore)

    # Mesh file the surface was loaded from (None for generated surfaces)
    surface_path: Optional[str] = None

    # Recorded field frames, one (V,) array per recorded step
    snapshots: list[npt.NDArray[np.float32]] = field(default_factory=list)
    snapshot_steps: list[int] = field(default_factory=list)

    @property
    def equation(self) -> Equation:
        return self.parameters.active_equation

    def record_snapshot(self, step: int, values: npt.NDArray[np.floating]) -> None:
        self.snapshots.append(np.array(values, dtype=np.float32, copy=True))
        self.snapshot_steps.append(int(step))

    def clear_snapshots(self) -> None:
        self.snapshots.clear()
        self.snapshot_steps.clear()
