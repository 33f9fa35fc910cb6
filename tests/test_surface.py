import os

import meshio
import numpy as np
import pytest

from surfacefem.config import ASSETS_PATH
from surfacefem.fea.pre.surface import FIELD_NAME, Surface, compute_boundary_flags


def test_boundary_flags_come_from_open_edges(hexagon):
    assert not hexagon.on_boundary[0]
    assert hexagon.on_boundary[1:].all()
    assert hexagon.num_boundary_points == 6
    assert not hexagon.closed


def test_grid_boundary_count(grid):
    # 9 x 7 vertices, perimeter ring of 2 * (8 + 6)
    assert grid.vertex_count == 63
    assert grid.num_boundary_points == 28


def test_compute_boundary_flags_of_two_triangles():
    flags = compute_boundary_flags(5, np.array([[0, 1, 2], [0, 2, 3]]))
    np.testing.assert_array_equal(flags, [True, True, True, True, False])


def test_octahedron_asset_is_closed():
    surface = Surface.from_file(os.path.join(ASSETS_PATH, "octahedron.obj"))

    assert surface.vertex_count == 6
    assert surface.triangle_count == 8
    assert surface.closed
    # Vertex normals of a centred octahedron point outwards along the vertex
    np.testing.assert_allclose(np.abs(surface.normals), np.abs(surface.vertices), atol=1e-6)


def test_missing_file_raises_value_error(tmp_path):
    with pytest.raises(ValueError):
        Surface.from_file(str(tmp_path / "missing.obj"))


def test_out_of_range_triangles_are_rejected():
    with pytest.raises(ValueError):
        Surface.from_arrays([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0]], [[0, 1, 2]])


def test_brush_set_reaches_value_at_centre_and_fades(grid):
    centre_vertex = 4 * 7 + 3
    centre = grid.vertices[centre_vertex]

    edited = grid.apply_brush(centre, radius=0.25, value=2.0)

    assert edited > 1
    assert grid.field[centre_vertex] == pytest.approx(2.0)
    distance = np.linalg.norm(grid.vertices - centre, axis=1)
    np.testing.assert_array_equal(grid.field[distance >= 0.25], 0.0)
    assert np.all(grid.field <= 2.0)


def test_brush_leaves_boundary_untouched(grid):
    corner = grid.vertices[0]
    grid.apply_brush(corner, radius=0.3, value=1.0)

    np.testing.assert_array_equal(grid.field[grid.on_boundary], 0.0)
    assert grid.field[~grid.on_boundary].max() > 0.0


def test_brush_can_paint_boundary_when_asked(grid):
    grid.apply_brush(grid.vertices[0], radius=0.3, value=1.0, respect_boundary=False)
    assert grid.field[0] == pytest.approx(1.0)


def test_brush_add_and_smooth(grid):
    centre = grid.vertices[4 * 7 + 3]
    grid.apply_brush(centre, radius=0.25, value=1.0, mode="add")
    grid.apply_brush(centre, radius=0.25, value=1.0, mode="add")
    peak = grid.field.max()
    assert peak == pytest.approx(2.0)

    grid.apply_brush(centre, radius=0.25, mode="smooth")
    assert grid.field.max() < peak


def test_unknown_brush_mode(grid):
    with pytest.raises(ValueError):
        grid.apply_brush(grid.vertices[10], radius=0.1, mode="erase")


def test_export_writes_field_and_extrusion(tmp_path, grid):
    grid.apply_brush(grid.vertices[4 * 7 + 3], radius=0.25, value=1.0)
    path = str(tmp_path / "surface.vtu")

    grid.export(path, extrusion=0.5)

    mesh = meshio.read(path)
    np.testing.assert_allclose(mesh.point_data[FIELD_NAME], grid.field)
    # Grid normals point along -y or +y; the displacement is field * 0.5
    np.testing.assert_allclose(np.abs(mesh.points[:, 1]), 0.5 * grid.field, atol=1e-6)


def test_export_round_trips_through_from_file(tmp_path, hexagon):
    hexagon.field[0] = 0.75
    path = str(tmp_path / "hexagon.vtu")
    hexagon.export(path)

    loaded = Surface.from_file(path)

    np.testing.assert_allclose(loaded.vertices, hexagon.vertices)
    np.testing.assert_allclose(loaded.field, hexagon.field)
    np.testing.assert_array_equal(loaded.on_boundary, hexagon.on_boundary)


def test_clear_values_and_clear(hexagon):
    hexagon.field[:] = 1.0
    hexagon.clear_values()
    np.testing.assert_array_equal(hexagon.field, 0.0)

    hexagon.clear()
    assert not hexagon.initialized
    assert hexagon.vertex_count == 0
