from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np
import scipy as sp

from surfacefem.config import DTYPE, NO_DOF
from surfacefem.fea.analysis.dof import BoundaryCondition, DofMap, build_dof_map
from surfacefem.fea.analysis.finite_elements.tri3 import Tri3
from surfacefem.fea.pre.equations import ParameterStore

if TYPE_CHECKING:
    import numpy.typing as npt

    from surfacefem.fea.pre.surface import Surface

logger = logging.getLogger(__name__)


@dataclass
class Operators:
    """Global N x N operators in CSR format."""
    stiffness: sp.sparse.csr_matrix
    mass: sp.sparse.csr_matrix
    advection: sp.sparse.csr_matrix

    @classmethod
    def empty(cls, n_dofs: int = 0) -> Operators:
        def zero() -> sp.sparse.csr_matrix:
            return sp.sparse.csr_matrix((n_dofs, n_dofs), dtype=DTYPE)
        return cls(stiffness=zero(), mass=zero(), advection=zero())


def _assemble_global_matrix(
    local_matrices: npt.NDArray[np.float64],
    element_dofs: npt.NDArray[np.int64],
    insert: npt.NDArray[np.bool_],
    n_dofs: int,
) -> sp.sparse.csr_matrix:
    """
    Assemble a global matrix from a stack of local matrices via COO triplets.

    Duplicate (row, col) pairs are summed by the CSR conversion.

    Args:
        local_matrices: (m, 3, 3) local matrices.
        element_dofs: (m, 3) dof id of each triangle vertex (``NO_DOF`` for fixed ones).
        insert: (m, 3, 3) mask of the local entries to insert.
        n_dofs: Size N of the global matrix.

    Returns:
        The N x N matrix in CSR format.
    """
    n_local = element_dofs.shape[1]
    rows = np.repeat(element_dofs, n_local, axis=1).reshape(-1, n_local, n_local)
    cols = np.tile(element_dofs, n_local).reshape(-1, n_local, n_local)

    mask = insert & (rows != NO_DOF) & (cols != NO_DOF)
    return sp.sparse.coo_matrix(
        (
            local_matrices[mask].astype(DTYPE),
            (rows[mask], cols[mask]),
        ),
        shape=(n_dofs, n_dofs),
    ).tocsr()


def assemble_operators(
    surface: Surface,
    dof_map: DofMap,
    bc: BoundaryCondition,
    velocity: npt.ArrayLike,
) -> Operators:
    """
    Build the stiffness, mass and advection operators of a surface.

    Stiffness and mass entries couple two unknowns (all vertices under
    Neumann, interior ones under Dirichlet). Advection entries couple two
    vertices that are not on the boundary, whatever the boundary condition.

    Args:
        surface: Geometry provider.
        dof_map: Vertex to dof map built for ``bc``.
        bc: Boundary condition policy.
        velocity: (3,) advection velocity.

    Returns:
        The three N x N operators.
    """
    n_dofs = dof_map.n_dofs
    if n_dofs == 0 or surface.triangle_count == 0:
        return Operators.empty(n_dofs)

    elements = Tri3(surface.triangle_coords)
    valid = elements.valid
    n_degenerate = int(np.count_nonzero(~valid))
    if n_degenerate:
        logger.warning(f"Skipping {n_degenerate} degenerate triangle(s) during assembly.")

    triangles = surface.triangles[valid]
    element_dofs = dof_map.index_of[triangles]

    interior = ~surface.on_boundary[triangles]
    interior_pairs = interior[:, :, None] & interior[:, None, :]
    if bc == BoundaryCondition.NEUMANN:
        symmetric_insert = np.ones_like(interior_pairs)
    else:
        symmetric_insert = interior_pairs

    stiffness = _assemble_global_matrix(
        elements.get_stiffness_matrix()[valid], element_dofs, symmetric_insert, n_dofs
    )
    mass = _assemble_global_matrix(
        elements.get_mass_matrix()[valid], element_dofs, symmetric_insert, n_dofs
    )
    advection = _assemble_global_matrix(
        elements.get_advection_matrix(velocity)[valid], element_dofs, interior_pairs, n_dofs
    )
    return Operators(stiffness=stiffness, mass=mass, advection=advection)


class Model:
    """
    FEM context of one surface.

    Owns the boundary condition policy, the equation parameters, the dof map
    and the assembled operators. The surface itself is borrowed.
    """
    def __init__(
        self,
        surface: Surface | None = None,
        boundary_condition: BoundaryCondition = BoundaryCondition.DIRICHLET,
        parameters: ParameterStore | None = None,
    ) -> None:
        """
        Initialize the model.

        Args:
            surface: Geometry provider; may be attached later.
            boundary_condition: Boundary condition policy.
            parameters: Parameter store; defaults are used when omitted.
        """
        self.surface: Surface | None = surface
        self.boundary_condition = BoundaryCondition(boundary_condition)
        self.parameters = parameters if parameters is not None else ParameterStore()

        self.dof_map: DofMap = build_dof_map(np.empty(0, dtype=bool), self.boundary_condition)
        self.operators: Operators = Operators.empty()
        self.assembled: bool = False
        self._assembled_velocity: np.ndarray | None = None

    @property
    def number_of_equations(self) -> int:
        """Return the number of unknowns N."""
        return self.dof_map.n_dofs

    @property
    def stiffness(self) -> sp.sparse.csr_matrix:
        return self.operators.stiffness

    @property
    def mass(self) -> sp.sparse.csr_matrix:
        return self.operators.mass

    @property
    def advection(self) -> sp.sparse.csr_matrix:
        return self.operators.advection

    def init_from_surface(self, surface: Surface | None = None) -> bool:
        """
        Index the dofs and assemble all operators for the (new) surface.

        Args:
            surface: Replaces the attached surface when given.

        Returns:
            True if the operators are valid afterwards.
        """
        if surface is not None:
            self.surface = surface
        if self.surface is None or not self.surface.initialized:
            logger.warning("Model has no initialized surface; operators were not assembled.")
            self.dof_map = build_dof_map(np.empty(0, dtype=bool), self.boundary_condition)
            self.operators = Operators.empty()
            self.assembled = False
            return False

        self.update_boundary_conditions()
        return True

    def update_boundary_conditions(self, boundary_condition: BoundaryCondition | None = None) -> None:
        """Re-index the dofs (optionally under a new policy) and reassemble."""
        if boundary_condition is not None:
            self.boundary_condition = BoundaryCondition(boundary_condition)
        if self.surface is None:
            return
        self.dof_map = build_dof_map(self.surface.on_boundary, self.boundary_condition)
        self.assemble_matrices()

    def assemble_matrices(self) -> None:
        """Assemble the stiffness, mass and advection operators from scratch."""
        if self.surface is None:
            return
        if self.dof_map.n_vertices != self.surface.vertex_count:
            self.dof_map = build_dof_map(self.surface.on_boundary, self.boundary_condition)
        self.operators = assemble_operators(
            surface=self.surface,
            dof_map=self.dof_map,
            bc=self.boundary_condition,
            velocity=self.parameters.advection.velocity,
        )
        self._assembled_velocity = self.parameters.advection.velocity.copy()
        self.assembled = True
        logger.info(
            f"Assembled operators ({self.boundary_condition}): N={self.number_of_equations}, "
            f"nnz(K)={self.stiffness.nnz}, nnz(M)={self.mass.nnz}, nnz(A)={self.advection.nnz}."
        )

    @property
    def advection_is_stale(self) -> bool:
        """True if the advection velocity was edited after the operator was built."""
        return self.assembled and not np.array_equal(self._assembled_velocity, self.parameters.advection.velocity)

    def update_advection_velocity(self) -> None:
        """Replace the advection operator after the velocity changed; K and M are kept."""
        if self.surface is None or not self.assembled:
            return
        self.operators.advection = assemble_operators(
            surface=self.surface,
            dof_map=self.dof_map,
            bc=self.boundary_condition,
            velocity=self.parameters.advection.velocity,
        ).advection
        self._assembled_velocity = self.parameters.advection.velocity.copy()
        logger.info(f"Advection operator rebuilt for velocity {self.parameters.advection.velocity.tolist()}.")

