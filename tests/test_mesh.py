import math

import numpy as np
import pytest

from korangar.mesh import (
    Aabb,
    Instance,
    Mesh,
    ObjectType,
    Scene,
    SceneObject,
    deduplicate,
)

TRIANGLE = [(0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 1.0, 0.0)]
OTHER = [(0.0, 0.0, 1.0), (1.0, 0.0, 1.0), (0.0, 1.0, 2.0)]


def _scene_with(mesh):
    return Scene(objects=[SceneObject.from_mesh(mesh)], instances=[Instance(0)])


def test_empty_expanded_by_point_is_that_point():
    box = Aabb.empty().expand_point((1.5, -2.0, 3.0))
    assert box.min == (1.5, -2.0, 3.0)
    assert box.max == (1.5, -2.0, 3.0)


def test_empty_has_inverted_bounds():
    box = Aabb.empty()
    assert all(lo == math.inf for lo in box.min)
    assert all(hi == -math.inf for hi in box.max)


def test_merge_with_empty_is_identity():
    box = Aabb((0.0, 1.0, 2.0), (3.0, 4.0, 5.0))
    assert box.merge(Aabb.empty()) == box
    assert Aabb.empty().merge(box) == box


def test_merge_contains_both():
    a = Aabb((0.0, 0.0, 0.0), (1.0, 1.0, 1.0))
    b = Aabb((-1.0, 0.5, 0.5), (0.5, 2.0, 0.75))
    merged = a.merge(b)
    assert merged.min == (-1.0, 0.0, 0.0)
    assert merged.max == (1.0, 2.0, 1.0)


def test_center_and_extents():
    box = Aabb((0.0, 0.0, 0.0), (2.0, 4.0, 6.0))
    assert box.extents() == (2.0, 4.0, 6.0)
    assert box.center() == (1.0, 2.0, 3.0)


def test_surface_area_of_unit_cube():
    assert Aabb((0.0, 0.0, 0.0), (1.0, 1.0, 1.0)).surface_area() == pytest.approx(6.0)


def test_surface_area_scales_quadratically():
    small = Aabb((0.0, 0.0, 0.0), (1.0, 2.0, 3.0))
    large = Aabb((0.0, 0.0, 0.0), (2.0, 4.0, 6.0))
    assert large.surface_area() == pytest.approx(4 * small.surface_area())


def test_mesh_three_column_faces_get_material_zero():
    mesh = Mesh(TRIANGLE, [[0, 1, 2]])
    assert mesh.faces.shape == (1, 4)
    assert mesh.faces[0, 3] == 0
    assert mesh.normals.shape == (3, 3)
    assert mesh.uvs.shape == (3, 2)


def test_mesh_rejects_out_of_range_face():
    with pytest.raises(ValueError):
        Mesh(TRIANGLE, [[0, 1, 3]])


def test_mesh_rejects_mismatched_normals():
    with pytest.raises(ValueError):
        Mesh(TRIANGLE, [[0, 1, 2]], normals=[(0.0, 0.0, 1.0)])


def test_scene_object_from_mesh_bounds():
    obj = SceneObject.from_mesh(Mesh(TRIANGLE, [[0, 1, 2]]))
    assert obj.type is ObjectType.MESH
    assert obj.aabb.min == (0.0, 0.0, 0.0)
    assert obj.aabb.max == (1.0, 1.0, 0.0)


def test_deduplicate_removes_repeated_triangle():
    vertices = TRIANGLE + TRIANGLE
    mesh = Mesh(vertices, [[0, 1, 2, 3], [3, 4, 5, 1]])
    scene = _scene_with(mesh)
    deduplicate(scene)
    assert scene.object_count == 1
    result = scene.objects[0].mesh
    assert result.face_count == 1
    assert result.attr_count == 3
    np.testing.assert_array_equal(result.faces, [[0, 1, 2, 0]])
    np.testing.assert_array_equal(result.vertices, np.array(TRIANGLE, dtype=np.float32))


def test_deduplicate_keeps_distinct_triangles_in_order():
    mesh = Mesh(TRIANGLE + OTHER, [[0, 1, 2], [3, 4, 5]])
    scene = _scene_with(mesh)
    deduplicate(scene)
    result = scene.objects[0].mesh
    assert result.face_count == 2
    np.testing.assert_array_equal(result.vertices[:3], np.array(TRIANGLE, dtype=np.float32))
    np.testing.assert_array_equal(result.vertices[3:], np.array(OTHER, dtype=np.float32))
    np.testing.assert_array_equal(result.faces[:, :3], [[0, 1, 2], [3, 4, 5]])


def test_deduplicate_drops_degenerate_triangle():
    vertices = TRIANGLE + [(5.0, 5.0, 5.0)]
    mesh = Mesh(vertices, [[3, 3, 3], [0, 1, 2]])
    scene = _scene_with(mesh)
    deduplicate(scene)
    result = scene.objects[0].mesh
    assert result.face_count == 1
    assert (5.0, 5.0, 5.0) not in [tuple(v) for v in result.vertices.tolist()]


def test_deduplicate_carries_normals_and_uvs():
    normals = [(0.0, 0.0, 1.0)] * 3
    uvs = [(0.0, 0.0), (1.0, 0.0), (0.0, 1.0)]
    mesh = Mesh(TRIANGLE, [[2, 0, 1]], normals=normals, uvs=uvs)
    scene = _scene_with(mesh)
    deduplicate(scene)
    result = scene.objects[0].mesh
    np.testing.assert_array_equal(result.normals, np.array(normals, dtype=np.float32))
    np.testing.assert_array_equal(result.uvs, np.array([uvs[2], uvs[0], uvs[1]], dtype=np.float32))


def test_deduplicate_bounds_match_vertices():
    mesh = Mesh(TRIANGLE + OTHER, [[0, 1, 2], [3, 4, 5]])
    scene = _scene_with(mesh)
    deduplicate(scene)
    obj = scene.objects[0]
    assert obj.aabb == obj.mesh.bounds()
    assert obj.aabb.max[2] == 2.0


def test_deduplicate_drops_box_objects():
    box = SceneObject(ObjectType.AABB, Aabb((0.0, 0.0, 0.0), (1.0, 1.0, 1.0)))
    mesh_obj = SceneObject.from_mesh(Mesh(TRIANGLE, [[0, 1, 2]]))
    scene = Scene(objects=[box, mesh_obj], instances=[Instance(0), Instance(1)])
    deduplicate(scene)
    assert scene.object_count == 1
    assert scene.instance_count == 1
    assert scene.instances[0].object_id == 0
    assert scene.objects[0].type is ObjectType.MESH


def test_deduplicate_keeps_instance_transform():
    model = np.identity(4)
    model[0, 3] = 7.0
    scene = Scene(
        objects=[SceneObject.from_mesh(Mesh(TRIANGLE, [[0, 1, 2]]))],
        instances=[Instance(0, model)],
    )
    deduplicate(scene)
    np.testing.assert_array_equal(scene.instances[0].model, model)


def test_deduplicate_writes_trace(capsys):
    scene = _scene_with(Mesh(TRIANGLE, [[0, 1, 2]]))
    deduplicate(scene)
    out = capsys.readouterr().out
    assert "Scene (Deduplicated) face count: 1 attr_count: 3" in out