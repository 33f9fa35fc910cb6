"""
Live Surface Viewer
===================
A PyVista window that shows the surface field while the simulation runs.

Why is this file needed?
------------------------
1. Visualization: it renders the surface coloured by the field and refreshes
   the colours after every tick.
2. Interaction: clicks paint the field through the controller's brush queue,
   key presses pause, clear, switch equations and toggle the boundary
   condition.

Note: All numerics stay in the controller; this module only forwards events.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import pyvista as pv

from surfacefem.fea.pre.equations import Equation
from surfacefem.fea.pre.surface import FIELD_NAME, BrushMode

if TYPE_CHECKING:
    from surfacefem.controller.simulation import SimulationController

logger = logging.getLogger(__name__)

EQUATION_KEYS: dict[str, Equation] = {
    "1": Equation.HEAT,
    "2": Equation.WAVE,
    "3": Equation.ADVECTION_DIFFUSION,
    "4": Equation.REACTION_DIFFUSION,
}

COLOR_LIMITS: dict[Equation, tuple[float, float]] = {
    Equation.HEAT: (0.0, 1.0),
    Equation.WAVE: (-0.5, 0.5),
    Equation.ADVECTION_DIFFUSION: (0.0, 1.0),
    Equation.REACTION_DIFFUSION: (0.0, 0.5),
}


class SurfaceViewer:
    def __init__(
        self,
        controller: SimulationController,
        brush_radius: float = 0.05,
        brush_value: float = 1.0,
        brush_mode: BrushMode = BrushMode.SET,
        interval_ms: int = 16,
        steps_per_frame: int = 1,
    ) -> None:
        self.controller = controller
        self.brush_radius = brush_radius
        self.brush_value = brush_value
        self.brush_mode = BrushMode(brush_mode)
        self.interval_ms = interval_ms
        self.steps_per_frame = max(1, steps_per_frame)

        self.plotter = pv.Plotter(title="surfacefem")
        self.mesh: pv.PolyData = controller.surface.to_pyvista()
        self._actor: pv.Actor | None = None
        self._status_actor = None

        self._build_scene()
        self._bind_events()

    # ------------------------------------------------------------------
    # Scene
    # ------------------------------------------------------------------
    def _build_scene(self) -> None:
        if self._actor is not None:
            self.plotter.remove_actor(self._actor)
        self._actor = self.plotter.add_mesh(
            self.mesh,
            scalars=FIELD_NAME,
            cmap="jet",
            clim=COLOR_LIMITS[self.controller.solver.equation],
            show_edges=False,
            scalar_bar_args={
                "title": "Value",
                "vertical": True,
                "fmt": "%.2f",
                "position_x": 0.85,
                "position_y": 0.3,
            },
            interpolate_before_map=True,
        )
        self._update_status()

    def _update_status(self) -> None:
        solver = self.controller.solver
        state = "running" if self.controller.running else "paused"
        text = (
            f"{solver.equation}  |  {self.controller.state.boundary_condition}  |  "
            f"dt={solver.parameters.time_step:g}  |  step {solver.step_count}  |  {state}"
        )
        if self.controller.instability_detected:
            text += "  |  unstable: values cleared"
        if self._status_actor is not None:
            self.plotter.remove_actor(self._status_actor)
        self._status_actor = self.plotter.add_text(text, position="upper_left", font_size=9)

    def refresh(self) -> None:
        """Copy the surface field into the rendered mesh."""
        self.mesh.point_data[FIELD_NAME][:] = self.controller.surface.field
        self._update_status()
        self.plotter.render()

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------
    def _bind_events(self) -> None:
        self.plotter.enable_point_picking(
            callback=self._on_pick,
            left_clicking=True,
            show_point=False,
            show_message="Click to paint. space: play/pause, c: clear, 1-4: equation, b: boundary condition",
        )
        self.plotter.add_key_event("space", self._on_toggle)
        self.plotter.add_key_event("c", self._on_clear)
        self.plotter.add_key_event("b", self._on_toggle_bc)
        for key, equation in EQUATION_KEYS.items():
            self.plotter.add_key_event(key, lambda eq=equation: self._on_switch(eq))

    def _on_pick(self, point) -> None:
        if point is None:
            return
        self.controller.brush(point, self.brush_radius, self.brush_value, self.brush_mode)
        if not self.controller.running:
            # Apply the stroke right away when paused
            self.controller.tick()
            self.refresh()

    def _on_toggle(self) -> None:
        self.controller.toggle()
        self._update_status()

    def _on_clear(self) -> None:
        self.controller.reset()
        self.refresh()

    def _on_toggle_bc(self) -> None:
        self.controller.toggle_boundary_condition()
        self.refresh()

    def _on_switch(self, equation: Equation) -> None:
        self.controller.switch_equation(equation)
        self._build_scene()
        self.refresh()

    def _on_timer(self, _step: int) -> None:
        if not self.controller.running:
            return
        for _ in range(self.steps_per_frame):
            result = self.controller.tick()
            if result.unstable or not result.advanced:
                break
        self.refresh()

    def show(self, max_frames: int = 10_000_000) -> None:
        logger.info("Opening viewer window.")
        self.plotter.add_timer_event(max_steps=max_frames, duration=self.interval_ms, callback=self._on_timer)
        self.plotter.show()
