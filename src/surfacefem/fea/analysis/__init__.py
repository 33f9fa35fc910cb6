from surfacefem.fea.analysis.dof import BoundaryCondition, DofMap, build_dof_map
from surfacefem.fea.analysis.finite_elements import Tri3
from surfacefem.fea.analysis.model import Model, Operators, assemble_operators

__all__ = [
    "BoundaryCondition",
    "DofMap",
    "Model",
    "Operators",
    "Tri3",
    "assemble_operators",
    "build_dof_map",
]
