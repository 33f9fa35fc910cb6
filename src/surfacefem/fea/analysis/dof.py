"""
Degree-of-freedom indexing of surface vertices.

A vertex either carries an unknown (a dof in ``[0, N)``) or is fixed by the
boundary condition and carries ``NO_DOF``. Gather and scatter move values
between the per-vertex surface field and the dense per-dof state vectors.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

import numpy as np

from surfacefem.config import DTYPE, INDEX_DTYPE, NO_DOF

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)


class BoundaryCondition(StrEnum):
    DIRICHLET = "dirichlet"
    NEUMANN = "neumann"


@dataclass
class DofMap:
    """
    Dense vertex to dof map.

    Attributes:
        index_of: (V,) array, dof id of each vertex or ``NO_DOF`` if fixed.
        n_dofs: Number of unknowns N.
    """
    index_of: npt.NDArray[np.int64]
    n_dofs: int

    @property
    def n_vertices(self) -> int:
        return int(self.index_of.size)

    @property
    def free_vertices(self) -> npt.NDArray[np.int64]:
        """Vertex indices that carry a dof, ordered by dof id."""
        return np.flatnonzero(self.index_of != NO_DOF)

    @property
    def fixed_vertices(self) -> npt.NDArray[np.int64]:
        return np.flatnonzero(self.index_of == NO_DOF)

    def is_fixed(self, vertex: int) -> bool:
        return bool(self.index_of[vertex] == NO_DOF)

    def gather(self, field: npt.NDArray[np.floating]) -> npt.NDArray[np.float32]:
        """
        Pull the values of the free vertices out of a per-vertex field.

        Args:
            field: (V,) per-vertex values.

        Returns:
            (N,) array ordered by dof id.
        """
        assert field.shape[0] == self.n_vertices, "field length does not match the dof map"
        return np.asarray(field[self.free_vertices], dtype=DTYPE)

    def scatter(
        self,
        values: npt.NDArray[np.floating],
        out: npt.NDArray[np.floating],
    ) -> npt.NDArray[np.floating]:
        """
        Write dof values back into a per-vertex field, zeroing fixed vertices.

        Args:
            values: (N,) array ordered by dof id.
            out: (V,) per-vertex field, modified in place.

        Returns:
            ``out``.
        """
        assert values.shape[0] == self.n_dofs, "state length does not match the dof map"
        assert out.shape[0] == self.n_vertices, "field length does not match the dof map"
        out[self.fixed_vertices] = 0.0
        out[self.free_vertices] = values
        return out


def build_dof_map(
    on_boundary: npt.NDArray[np.bool_],
    bc: BoundaryCondition,
) -> DofMap:
    """
    Number the unknown vertices in ascending vertex order.

    Under Neumann every vertex is unknown; under Dirichlet only the vertices
    that are not on the boundary are.

    Args:
        on_boundary: (V,) boolean boundary flags.
        bc: Boundary condition policy.

    Returns:
        The dof map. ``n_dofs`` may be 0.
    """
    on_boundary = np.asarray(on_boundary, dtype=bool)
    if bc == BoundaryCondition.NEUMANN:
        unknown = np.ones(on_boundary.size, dtype=bool)
    else:
        unknown = ~on_boundary

    index_of = np.full(on_boundary.size, NO_DOF, dtype=INDEX_DTYPE)
    n_dofs = int(np.count_nonzero(unknown))
    index_of[unknown] = np.arange(n_dofs, dtype=INDEX_DTYPE)

    logger.debug(f"Dof map built ({bc}): {n_dofs} unknowns of {on_boundary.size} vertices.")
    return DofMap(index_of=index_of, n_dofs=n_dofs)
