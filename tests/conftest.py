"""Shared surfaces for the surfacefem tests."""
import numpy as np
import pytest

from surfacefem.fea.pre.surface import Surface


def hexagon_fan() -> Surface:
    """Unit-radius regular hexagon in the XZ plane, fanned around a centre vertex 0."""
    angles = np.arange(6) * np.pi / 3.0
    rim = np.column_stack([np.cos(angles), np.zeros(6), np.sin(angles)])
    vertices = np.vstack([[0.0, 0.0, 0.0], rim])
    triangles = [[0, 1 + i, 1 + (i + 1) % 6] for i in range(6)]
    return Surface.from_arrays(vertices, triangles)


@pytest.fixture
def hexagon() -> Surface:
    return hexagon_fan()


@pytest.fixture
def single_triangle() -> Surface:
    return Surface.from_arrays(
        [[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 0.0, 1.0]],
        [[0, 1, 2]],
    )


@pytest.fixture
def grid() -> Surface:
    return Surface.from_grid(8, 6, width=1.0, depth=0.6)


@pytest.fixture
def tilted_grid() -> Surface:
    """The 8 x 6 grid rotated out of the XZ plane."""
    surface = Surface.from_grid(8, 6, width=1.0, depth=0.6)
    angle = 0.4
    rotation = np.array([
        [1.0, 0.0, 0.0],
        [0.0, np.cos(angle), -np.sin(angle)],
        [0.0, np.sin(angle), np.cos(angle)],
    ])
    return Surface.from_arrays(surface.vertices @ rotation.T, surface.triangles)
