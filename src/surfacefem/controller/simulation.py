"""
Simulation Controller
=====================
Owns the update loop that drives the solver one step per tick.

Why is this file needed?
------------------------
1. Single writer: brush strokes requested by the viewer are queued and
   applied at the start of the next tick, so the surface field is only ever
   written between steps on the update loop.
2. Instability policy: when the solver blows up, the state and the field are
   cleared and the simulation pauses. The solver itself never retries.
3. Session bookkeeping: equation and boundary condition changes go through
   here so the :class:`SessionState` always mirrors the running model.

Classes:
    BrushStroke: One queued brush edit.
    TickResult: Outcome of one tick.
    SimulationController: The update loop.
"""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

import numpy as np

from surfacefem.fea.analysis import BoundaryCondition
from surfacefem.fea.pre.equations import Equation
from surfacefem.fea.pre.surface import BrushMode
from surfacefem.model.state import SessionState

if TYPE_CHECKING:
    import numpy.typing as npt

    from surfacefem.fea.pre.surface import Surface
    from surfacefem.fea.solvers import Solver

logger = logging.getLogger(__name__)


@dataclass
class BrushStroke:
    center: npt.NDArray[np.float64]
    radius: float
    value: float = 1.0
    mode: BrushMode = BrushMode.SET


@dataclass
class TickResult:
    advanced: bool
    unstable: bool
    step: int


class SimulationController:
    def __init__(
        self,
        surface: Surface,
        solver: Solver,
        state: Optional[SessionState] = None,
        snapshot_interval: int = 0,
    ) -> None:
        """
        Args:
            surface: Surface whose field is simulated and painted.
            solver: Time integrator; its model is attached to ``surface``.
            state: Session data; created from the solver's model when omitted.
            snapshot_interval: Record the field every this many steps (0 disables).
        """
        self.surface = surface
        self.solver = solver
        self.solver.model.surface = surface

        if state is None:
            state = SessionState(
                boundary_condition=solver.model.boundary_condition,
                parameters=solver.model.parameters,
            )
        else:
            solver.model.parameters = state.parameters
            solver.model.boundary_condition = state.boundary_condition
        self.state = state

        self.snapshot_interval = snapshot_interval
        self.running: bool = False
        self.instability_detected: bool = False
        self._strokes: deque[BrushStroke] = deque()

        self.solver.init()

    @property
    def step(self) -> int:
        return self.solver.step_count

    # ------------------------------------------------------------------
    # Play state
    # ------------------------------------------------------------------
    def play(self) -> None:
        self.running = True
        self.instability_detected = False

    def pause(self) -> None:
        self.running = False

    def toggle(self) -> bool:
        if self.running:
            self.pause()
        else:
            self.play()
        logger.info("Simulation running." if self.running else "Simulation paused.")
        return self.running

    def reset(self) -> None:
        """Clear the solver state, the surface field and the recorded frames."""
        self._strokes.clear()
        self.solver.clear_values()
        self.surface.clear_values()
        self.state.clear_snapshots()
        logger.info("Simulation reset.")

    # ------------------------------------------------------------------
    # Model changes
    # ------------------------------------------------------------------
    def load_surface(self, surface: Surface, path: Optional[str] = None) -> None:
        """Replace the surface and re-initialise the solver."""
        self.pause()
        self._strokes.clear()
        self.surface = surface
        self.solver.model.surface = surface
        self.state.surface_path = path
        self.state.clear_snapshots()
        self.solver.init()

    def switch_equation(self, equation: Equation) -> None:
        self.solver.switch_equation(Equation(equation))

    def set_boundary_condition(self, boundary_condition: BoundaryCondition) -> None:
        self.state.boundary_condition = BoundaryCondition(boundary_condition)
        self.solver.set_boundary_condition(self.state.boundary_condition)

    def toggle_boundary_condition(self) -> BoundaryCondition:
        if self.state.boundary_condition == BoundaryCondition.DIRICHLET:
            self.set_boundary_condition(BoundaryCondition.NEUMANN)
        else:
            self.set_boundary_condition(BoundaryCondition.DIRICHLET)
        return self.state.boundary_condition

    def brush(
        self,
        center: npt.ArrayLike,
        radius: float,
        value: float = 1.0,
        mode: BrushMode | str = BrushMode.SET,
    ) -> None:
        """Queue a brush stroke; it is applied at the start of the next tick."""
        self._strokes.append(
            BrushStroke(
                center=np.asarray(center, dtype=np.float64).reshape(3),
                radius=float(radius),
                value=float(value),
                mode=BrushMode(mode),
            )
        )

    @property
    def pending_strokes(self) -> int:
        return len(self._strokes)

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------
    def _apply_strokes(self) -> None:
        respect_boundary = self.state.boundary_condition == BoundaryCondition.DIRICHLET
        while self._strokes:
            stroke = self._strokes.popleft()
            self.surface.apply_brush(
                stroke.center,
                stroke.radius,
                stroke.value,
                stroke.mode,
                respect_boundary=respect_boundary,
            )

    def tick(self) -> TickResult:
        """
        Apply queued brush strokes, then advance one step if running.

        On instability the state and the field are cleared and the
        simulation pauses.
        """
        self._apply_strokes()

        advanced = False
        if self.running and self.solver.has_operators:
            advanced = self.solver.advance_time()

        unstable = self.solver.has_numerical_instability()
        if unstable:
            logger.warning(
                f"Numerical instability detected in {self.solver.equation} at step {self.step}; "
                f"values cleared and simulation paused. Try a smaller time step."
            )
            self.solver.clear_values()
            self.surface.clear_values()
            self.pause()
            self.instability_detected = True
        elif advanced and self.snapshot_interval > 0 and self.step % self.snapshot_interval == 0:
            self.state.record_snapshot(self.step, self.surface.field)

        return TickResult(advanced=advanced, unstable=unstable, step=self.step)

    def run(self, n_steps: int) -> int:
        """
        Run headless for up to ``n_steps`` ticks.

        Returns:
            Number of steps completed before the end or an instability.
        """
        self.play()
        completed = 0
        for _ in range(n_steps):
            result = self.tick()
            if result.unstable or not result.advanced:
                break
            completed += 1
        self.pause()
        return completed
