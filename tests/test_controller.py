import numpy as np

from surfacefem.controller.simulation import SimulationController
from surfacefem.fea.analysis import BoundaryCondition, Model
from surfacefem.fea.pre.equations import Equation
from surfacefem.fea.pre.surface import Surface
from surfacefem.fea.solvers import Solver


def make_controller(surface: Surface, equation: Equation = Equation.HEAT, **kwargs) -> SimulationController:
    model = Model(surface)
    model.parameters.active_equation = equation
    return SimulationController(surface, Solver(model), **kwargs)


# Grid centre, an interior vertex of the 8 x 6 grid
CENTRE = np.array([0.0, 0.0, 0.0])


def test_tick_does_nothing_while_paused(grid):
    controller = make_controller(grid)
    result = controller.tick()
    assert not result.advanced
    assert result.step == 0


def test_brush_strokes_are_applied_between_steps(grid):
    controller = make_controller(grid)
    controller.brush(CENTRE, radius=0.25, value=1.0)

    assert controller.pending_strokes == 1
    np.testing.assert_array_equal(grid.field, 0.0)

    controller.tick()

    assert controller.pending_strokes == 0
    assert grid.field.max() == np.float32(1.0)


def test_running_ticks_advance_the_solver(grid):
    controller = make_controller(grid)
    controller.brush(CENTRE, radius=0.25)
    controller.play()

    result = controller.tick()

    assert result.advanced
    assert result.step == 1
    assert grid.field.max() < 1.0


def test_instability_clears_and_pauses(grid):
    controller = make_controller(grid)
    controller.solver.parameters.set("conductivity", 0.0)
    centre_vertex = grid.nearest_vertex(CENTRE)
    grid.field[centre_vertex] = 5.0e4
    controller.play()

    result = controller.tick()

    assert result.unstable
    assert controller.instability_detected
    assert not controller.running
    np.testing.assert_array_equal(grid.field, 0.0)
    np.testing.assert_array_equal(controller.solver.u, 0.0)


def test_run_counts_steps_and_records_snapshots(grid):
    controller = make_controller(grid, snapshot_interval=2)
    controller.brush(CENTRE, radius=0.25)

    completed = controller.run(5)

    assert completed == 5
    assert not controller.running
    assert controller.state.snapshot_steps == [2, 4]
    assert controller.state.snapshots[0].shape == (grid.vertex_count,)


def test_reset_clears_field_and_state(grid):
    controller = make_controller(grid, snapshot_interval=1)
    controller.brush(CENTRE, radius=0.25)
    controller.run(2)

    controller.reset()

    np.testing.assert_array_equal(grid.field, 0.0)
    assert controller.step == 0
    assert controller.state.snapshots == []


def test_boundary_condition_toggle_updates_session(grid):
    controller = make_controller(grid)
    assert controller.toggle_boundary_condition() == BoundaryCondition.NEUMANN
    assert controller.solver.neq == grid.vertex_count
    assert controller.state.boundary_condition == BoundaryCondition.NEUMANN


def test_switch_equation_through_controller(grid):
    controller = make_controller(grid)
    controller.switch_equation(Equation.REACTION_DIFFUSION)
    assert controller.state.equation == Equation.REACTION_DIFFUSION


def test_load_surface_reinitialises(grid, hexagon):
    controller = make_controller(grid)
    controller.load_surface(hexagon, path="hexagon.obj")

    assert controller.surface is hexagon
    assert controller.solver.neq == 1
    assert controller.state.surface_path == "hexagon.obj"
