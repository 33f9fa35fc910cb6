import logging
import os

import meshio
import numpy as np
import pytest

from surfacefem.config import ASSETS_PATH
from surfacefem.logging_config import setup_logging
from surfacefem.main import build_parser, main
from surfacefem.model.io import IOManager


def test_headless_run_saves_and_exports(tmp_path):
    session = str(tmp_path / "run.h5")
    exported = str(tmp_path / "run.vtu")

    code = main([
        "--grid", "10", "10",
        "--equation", "heat",
        "--brush", "0", "0", "0", "0.3",
        "--steps", "4",
        "--snapshot-interval", "2",
        "--save", session,
        "--export", exported,
        "--log-level", "WARNING",
    ])

    assert code == 0
    state, surface, _ = IOManager.load_session(session)
    assert state.snapshot_steps == [2, 4]
    assert surface.field.max() > 0.0
    assert "value" in meshio.read(exported).point_data


def test_mesh_option_with_neumann(tmp_path):
    session = str(tmp_path / "octahedron.h5")
    code = main([
        "--mesh", os.path.join(ASSETS_PATH, "octahedron.obj"),
        "--bc", "neumann",
        "--equation", "wave",
        "--steps", "2",
        "--save", session,
        "--log-level", "ERROR",
    ])

    assert code == 0
    state, surface, _ = IOManager.load_session(session)
    assert surface.closed
    assert state.surface_path.endswith("octahedron.obj")


def test_bad_mesh_path_returns_error_code(tmp_path):
    assert main(["--mesh", str(tmp_path / "nope.obj"), "--log-level", "ERROR"]) == 2


def test_parser_defaults():
    args = build_parser().parse_args([])
    assert tuple(args.grid) == (32, 32)
    assert args.steps == 0
    assert not args.view
    np.testing.assert_equal(args.brush, None)


def test_setup_logging_accepts_level_names(tmp_path):
    log_file = tmp_path / "run.log"
    logger = setup_logging("debug", str(log_file))

    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 2
    with pytest.raises(ValueError):
        setup_logging("LOUD")
    setup_logging("WARNING")
