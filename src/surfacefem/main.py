"""
Application Initialization
==========================
This module wires the model, the solver, the controller and (optionally) the
viewer together and runs them.

Why is this file needed?
------------------------
It acts as the "Dependency Injection" root. It:
1. Sets up logging from the command line options.
2. Builds the surface (mesh file, saved session or generated grid).
3. Instantiates the Model, Solver and SimulationController.
4. Either runs a headless batch of steps or opens the live viewer.
"""
from __future__ import annotations

import argparse
import logging
from typing import Optional, Sequence

import numpy as np

from surfacefem.config import SolverSettings
from surfacefem.controller.simulation import SimulationController
from surfacefem.fea.analysis import BoundaryCondition, Model
from surfacefem.fea.pre.equations import Equation
from surfacefem.fea.pre.surface import Surface
from surfacefem.fea.solvers import Solver
from surfacefem.logging_config import setup_logging
from surfacefem.model.io import IOManager
from surfacefem.model.state import SessionState

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="surfacefem",
        description="Time-step heat, wave, advection-diffusion and reaction-diffusion on a triangulated surface.",
    )
    source = ap.add_mutually_exclusive_group()
    source.add_argument("--mesh", type=str, help="Triangle mesh file (OBJ, PLY, VTU, ...).")
    source.add_argument("--session", type=str, help="Session file (.h5) written with --save.")
    source.add_argument("--grid", type=int, nargs=2, metavar=("NX", "NZ"), default=(32, 32),
                        help="Generate a planar NX x NZ grid (default 32 32).")

    ap.add_argument("--equation", type=str, default=None, choices=[e.value for e in Equation])
    ap.add_argument("--bc", type=str, default=None, choices=[b.value for b in BoundaryCondition])
    ap.add_argument("--time-step", type=float, default=None, help="Override the time step of the equation.")
    ap.add_argument("--advection-method", type=str, default=None, choices=["cg", "bicgstab"])

    ap.add_argument("--brush", type=float, nargs=4, metavar=("X", "Y", "Z", "R"), default=None,
                    help="Paint value 1 around (X, Y, Z) with radius R before running.")
    ap.add_argument("--steps", type=int, default=0, help="Run this many steps headless.")
    ap.add_argument("--snapshot-interval", type=int, default=0, help="Record the field every N steps.")
    ap.add_argument("--view", action="store_true", help="Open the live viewer.")

    ap.add_argument("--save", type=str, default=None, help="Write the session to this .h5 file.")
    ap.add_argument("--export", type=str, default=None, help="Export the surface and field (meshio format).")
    ap.add_argument("--extrusion", type=float, default=0.0, help="Normal displacement per unit value on export.")

    ap.add_argument("--log-level", type=str, default="INFO",
                    choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    ap.add_argument("--log-file", type=str, default=None)
    return ap


def create_controller(args: argparse.Namespace) -> SimulationController:
    settings: Optional[SolverSettings] = None
    if args.session:
        state, surface, settings = IOManager.load_session(args.session)
    else:
        state = SessionState()
        if args.mesh:
            surface = Surface.from_file(args.mesh)
            state.surface_path = args.mesh
        else:
            nx, nz = args.grid
            surface = Surface.from_grid(nx, nz)

    settings = settings if settings is not None else SolverSettings()
    if args.advection_method:
        settings.advection_method = args.advection_method
    if args.equation:
        state.parameters.active_equation = Equation(args.equation)
    if args.bc:
        state.boundary_condition = BoundaryCondition(args.bc)
    if args.time_step is not None:
        state.parameters.active.set("time_step", args.time_step)

    model = Model(surface, state.boundary_condition, state.parameters)
    solver = Solver(model, settings)
    return SimulationController(surface, solver, state, snapshot_interval=args.snapshot_interval)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(level=args.log_level, log_file=args.log_file)

    try:
        controller = create_controller(args)
    except ValueError as e:
        logger.error(f"Could not set up the simulation: {e}")
        return 2

    if args.brush is not None:
        x, y, z, radius = args.brush
        controller.brush(np.array([x, y, z]), radius)
        controller.tick()

    if args.steps > 0:
        completed = controller.run(args.steps)
        logger.info(f"Completed {completed} of {args.steps} steps ({controller.solver.equation}).")
        if controller.instability_detected:
            logger.warning("Run stopped on numerical instability.")

    if args.view:
        from surfacefem.view.viewer import SurfaceViewer
        SurfaceViewer(controller).show()

    if args.save:
        IOManager.save_session(controller.state, controller.surface, args.save, controller.solver.settings)
    if args.export:
        controller.surface.export(args.export, extrusion=args.extrusion)

    return 1 if controller.instability_detected else 0


if __name__ == "__main__":
    raise SystemExit(main())
