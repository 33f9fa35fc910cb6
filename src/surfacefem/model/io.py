"""
Input/Output Manager (HDF5)
Handles saving and loading a session (geometry, field, parameters and
recorded frames) to .h5 files.
"""
from __future__ import annotations

import json
import logging
from importlib.metadata import version, PackageNotFoundError

import h5py
import numpy as np

from surfacefem.config import SolverSettings
from surfacefem.fea.analysis.dof import BoundaryCondition
from surfacefem.fea.pre.equations import ParameterStore
from surfacefem.fea.pre.surface import Surface
from surfacefem.model.state import SessionState

logger = logging.getLogger(__name__)

try:
    APP_VERSION = version("surfacefem")
except PackageNotFoundError:
    APP_VERSION = "0.0.0-dev"


def _attr_str(value) -> str:
    # h5py returns str or bytes depending on how the attribute was written
    return value.decode("utf-8") if isinstance(value, bytes) else str(value)


class IOManager:

    @staticmethod
    def save_session(
        state: SessionState,
        surface: Surface,
        filepath: str,
        settings: SolverSettings | None = None,
    ) -> None:
        logger.info(f"Saving session to: {filepath}")
        try:
            with h5py.File(filepath, "w") as f:
                f.attrs["version"] = APP_VERSION

                # --- 1. SETTINGS ---
                grp_sim = f.create_group("simulation")
                grp_sim.attrs["equation"] = state.equation.value
                grp_sim.attrs["boundary_condition"] = state.boundary_condition.value
                grp_sim.attrs["parameters_json"] = json.dumps(state.parameters.to_dict())
                if settings is not None:
                    grp_sim.attrs["solver_settings_json"] = json.dumps(settings.to_dict())
                if state.surface_path:
                    grp_sim.attrs["surface_path"] = state.surface_path

                # --- 2. GEOMETRY ---
                grp_geo = f.create_group("geometry")
                grp_geo.create_dataset("vertices", data=surface.vertices, compression="gzip")
                grp_geo.create_dataset("triangles", data=surface.triangles, compression="gzip")
                grp_geo.create_dataset("on_boundary", data=surface.on_boundary.astype(np.uint8))
                grp_geo.create_dataset("field", data=surface.field)

                # --- 3. RECORDED FRAMES ---
                if state.snapshots:
                    grp_res = f.create_group("snapshots")
                    grp_res.create_dataset("steps", data=np.array(state.snapshot_steps, dtype=np.int64))
                    # Stack: (frames, V)
                    grp_res.create_dataset("values", data=np.vstack(state.snapshots), compression="gzip")
                    logger.debug(f"Saved {len(state.snapshots)} field frames.")

            logger.info(f"Session saved to: {filepath}")

        except Exception as e:
            logger.exception(f"Failed to save session: {e}")
            raise

    @staticmethod
    def load_session(filepath: str) -> tuple[SessionState, Surface, SolverSettings | None]:
        """
        Load a session written by :meth:`save_session`.

        Raises:
            ValueError: If the file is not an HDF5 file or has no geometry.
        """
        logger.info(f"Loading session from: {filepath}")
        if not h5py.is_hdf5(filepath):
            msg = f"File '{filepath}' is not a valid HDF5 file."
            logger.error(msg)
            raise ValueError(msg)

        try:
            with h5py.File(filepath, "r") as f:
                if "geometry" not in f:
                    raise ValueError(f"File '{filepath}' does not contain a surface.")

                state = SessionState()
                settings: SolverSettings | None = None

                if "simulation" in f:
                    grp_sim = f["simulation"]
                    if "parameters_json" in grp_sim.attrs:
                        state.parameters = ParameterStore.from_dict(
                            json.loads(_attr_str(grp_sim.attrs["parameters_json"]))
                        )
                    if "boundary_condition" in grp_sim.attrs:
                        state.boundary_condition = BoundaryCondition(
                            _attr_str(grp_sim.attrs["boundary_condition"])
                        )
                    if "solver_settings_json" in grp_sim.attrs:
                        settings = SolverSettings.from_dict(
                            json.loads(_attr_str(grp_sim.attrs["solver_settings_json"]))
                        )
                    if "surface_path" in grp_sim.attrs:
                        state.surface_path = _attr_str(grp_sim.attrs["surface_path"])

                grp_geo = f["geometry"]
                surface = Surface.from_arrays(
                    vertices=grp_geo["vertices"][:],
                    triangles=grp_geo["triangles"][:],
                    on_boundary=grp_geo["on_boundary"][:].astype(bool),
                )
                if "field" in grp_geo:
                    surface.field[:] = grp_geo["field"][:]

                if "snapshots" in f:
                    grp_res = f["snapshots"]
                    steps = grp_res["steps"][:].tolist()
                    matrix = grp_res["values"][:]
                    for step, row in zip(steps, matrix):
                        state.record_snapshot(step, row)
                    logger.debug(f"Loaded {len(state.snapshots)} field frames.")

            logger.info(f"Session loaded from: {filepath}")
            return state, surface, settings

        except Exception as e:
            logger.exception(f"Failed to load session: {e}")
            raise
