import numpy as np
import pytest

from surfacefem.fea.analysis import BoundaryCondition, Model
from surfacefem.fea.pre.equations import ParameterStore
from surfacefem.fea.pre.surface import Surface


def assembled(surface: Surface, bc: BoundaryCondition, velocity=None) -> Model:
    parameters = ParameterStore()
    if velocity is not None:
        parameters.advection.set_velocity(velocity)
    model = Model(surface, bc, parameters)
    assert model.init_from_surface()
    return model


@pytest.mark.parametrize("bc", list(BoundaryCondition))
def test_stiffness_and_mass_are_symmetric_and_square(tilted_grid, bc):
    model = assembled(tilted_grid, bc)
    n = model.number_of_equations

    for matrix in (model.stiffness, model.mass, model.advection):
        assert matrix.shape == (n, n)
    np.testing.assert_allclose(model.stiffness.toarray(), model.stiffness.T.toarray(), atol=1e-6)
    np.testing.assert_allclose(model.mass.toarray(), model.mass.T.toarray(), atol=1e-7)


def test_neumann_mass_sums_to_surface_area(tilted_grid):
    model = assembled(tilted_grid, BoundaryCondition.NEUMANN)
    np.testing.assert_allclose(model.mass.sum(), tilted_grid.total_area(), rtol=1e-5)
    np.testing.assert_allclose(tilted_grid.total_area(), 0.6, rtol=1e-5)


def test_neumann_stiffness_annihilates_constants(tilted_grid):
    model = assembled(tilted_grid, BoundaryCondition.NEUMANN)
    ones = np.ones(model.number_of_equations, dtype=np.float32)
    np.testing.assert_allclose(model.stiffness @ ones, 0.0, atol=1e-4)


def test_dirichlet_mass_is_positive_definite(grid):
    model = assembled(grid, BoundaryCondition.DIRICHLET)
    eigenvalues = np.linalg.eigvalsh(model.mass.toarray().astype(np.float64))
    assert eigenvalues.min() > 0.0


def test_hexagon_fan_closed_form(hexagon):
    model = assembled(hexagon, BoundaryCondition.DIRICHLET)

    assert model.number_of_equations == 1
    np.testing.assert_allclose(model.stiffness.toarray(), [[2.0 * np.sqrt(3.0)]], rtol=1e-5)
    np.testing.assert_allclose(model.mass.toarray(), [[np.sqrt(3.0) / 4.0]], rtol=1e-5)


def test_advection_skips_boundary_vertices_under_neumann(grid):
    model = assembled(grid, BoundaryCondition.NEUMANN, velocity=[1.0, 0.0, 0.0])
    advection = model.advection.toarray()

    boundary = np.flatnonzero(grid.on_boundary)
    assert np.count_nonzero(advection) > 0
    np.testing.assert_array_equal(advection[boundary, :], 0.0)
    np.testing.assert_array_equal(advection[:, boundary], 0.0)


def test_advection_is_zero_for_zero_velocity(grid):
    model = assembled(grid, BoundaryCondition.DIRICHLET, velocity=[0.0, 0.0, 0.0])
    assert np.count_nonzero(model.advection.toarray()) == 0


def test_velocity_change_rebuilds_only_advection(grid):
    model = assembled(grid, BoundaryCondition.DIRICHLET, velocity=[1.0, 0.0, 0.0])
    stiffness = model.stiffness
    before = model.advection.toarray()

    model.parameters.advection.set_velocity([0.0, 0.0, 1.0])
    model.update_advection_velocity()

    assert model.stiffness is stiffness
    assert not np.allclose(model.advection.toarray(), before)


def test_single_boundary_triangle_has_empty_operators(single_triangle):
    model = assembled(single_triangle, BoundaryCondition.DIRICHLET)

    assert model.number_of_equations == 0
    assert model.stiffness.shape == (0, 0)
    assert model.mass.nnz == 0


def test_degenerate_triangles_are_skipped(caplog):
    surface = Surface.from_arrays(
        [[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 0.0, 1.0], [2.0, 0.0, 0.0]],
        [[0, 1, 2], [0, 1, 3]],
        on_boundary=[False, False, False, False],
    )
    with caplog.at_level("WARNING", logger="surfacefem"):
        model = assembled(surface, BoundaryCondition.NEUMANN)

    assert "degenerate" in caplog.text
    np.testing.assert_allclose(model.mass.sum(), 0.5, rtol=1e-6)


def test_uninitialized_surface_leaves_model_unassembled():
    model = Model(Surface())
    assert not model.init_from_surface()
    assert not model.assembled
    assert model.number_of_equations == 0



def test_assemble_before_init_indexes_the_surface(grid):
    model = Model(grid, BoundaryCondition.DIRICHLET)
    model.assemble_matrices()

    assert model.dof_map.n_vertices == grid.vertex_count
    assert model.number_of_equations == int((~grid.on_boundary).sum())


def test_velocity_edit_marks_advection_stale(grid):
    model = assembled(grid, BoundaryCondition.NEUMANN)
    assert not model.advection_is_stale

    model.parameters.advection.set_velocity([0.0, 0.0, 1.0])
    assert model.advection_is_stale

    model.update_advection_velocity()
    assert not model.advection_is_stale
