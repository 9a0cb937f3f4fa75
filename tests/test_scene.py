import json
import math

import numpy as np
import pytest

from korangar.gltf import GltfError, load_gltf
from korangar.gltf_elements import CameraType, WrapMode
from korangar.mesh import Aabb, ObjectType
from korangar.scene import (
    flat_scene_from_gltf,
    geometry_from_gltf,
    mesh_from_gltf,
    minecraft_scene,
    scene_from_bounds,
    scene_from_gltf,
)

POSITIONS = np.array([[0, 0, 0], [1, 0, 0], [0, 1, 0]], dtype="<f4")
NORMALS = np.array([[1, 0, 0], [1, 0, 0], [1, 0, 0]], dtype="<f4")
UVS = np.array([[0, 0], [1, 0], [0, 1]], dtype="<f4")


def _write_model(tmp_path, nodes, index_dtype="<u2", primitive_extra=None, extra=None, write_bin=True):
    indices = np.array([0, 1, 2], dtype=index_dtype).tobytes()
    indices += b"\0" * (-len(indices) % 4)
    parts = [indices, POSITIONS.tobytes(), NORMALS.tobytes(), UVS.tobytes()]
    views, offset = [], 0
    for part in parts:
        views.append({"buffer": 0, "byteOffset": offset, "byteLength": len(part)})
        offset += len(part)
    component = 5123 if index_dtype == "<u2" else 5125
    primitive = {"attributes": {"POSITION": 1, "NORMAL": 2, "TEXCOORD_0": 3}, "indices": 0}
    primitive.update(primitive_extra or {})
    gltf = {
        "asset": {"version": "2.0"},
        "scene": 0,
        "nodes": nodes,
        "meshes": [{"name": "tri", "primitives": [primitive]}],
        "accessors": [
            {"bufferView": 0, "componentType": component, "count": 3, "type": "SCALAR"},
            {"bufferView": 1, "componentType": 5126, "count": 3, "type": "VEC3"},
            {"bufferView": 2, "componentType": 5126, "count": 3, "type": "VEC3"},
            {"bufferView": 3, "componentType": 5126, "count": 3, "type": "VEC2"},
        ],
        "bufferViews": views,
        "buffers": [{"uri": "model.bin", "byteLength": offset}],
    }
    gltf.update(extra or {})
    if write_bin:
        (tmp_path / "model.bin").write_bytes(b"".join(parts))
    path = tmp_path / "model.gltf"
    path.write_text(json.dumps(gltf))
    return path


def test_mesh_from_gltf_reads_triangle(tmp_path):
    path = _write_model(tmp_path, [{"mesh": 0}])
    obj = mesh_from_gltf(load_gltf(path), 0)
    assert obj.type is ObjectType.MESH
    assert obj.mesh.faces.tolist() == [[0, 1, 2, 0]]
    np.testing.assert_array_equal(obj.mesh.vertices, POSITIONS)
    np.testing.assert_array_equal(obj.mesh.normals, NORMALS)
    np.testing.assert_array_equal(obj.mesh.uvs, UVS)
    assert obj.aabb == Aabb((0.0, 0.0, 0.0), (1.0, 1.0, 0.0))


def test_mesh_from_gltf_uint32_indices_and_material(tmp_path):
    path = _write_model(tmp_path, [{"mesh": 0}], index_dtype="<u4", primitive_extra={"material": 2})
    obj = mesh_from_gltf(load_gltf(path), 0)
    assert obj.mesh.faces[:, :3].tolist() == [[0, 1, 2]]
    assert obj.mesh.faces[0, 3] == 2


def test_mesh_from_gltf_missing_accessor(tmp_path):
    path = _write_model(tmp_path, [{"mesh": 0}], primitive_extra={"indices": 9})
    with pytest.raises(GltfError):
        mesh_from_gltf(load_gltf(path), 0)


def test_missing_buffer_file_raises(tmp_path):
    path = _write_model(tmp_path, [{"mesh": 0}], write_bin=False)
    with pytest.raises(GltfError):
        scene_from_gltf(path)


def test_missing_gltf_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        scene_from_gltf(tmp_path / "absent.gltf")


def test_scene_applies_node_translation(tmp_path):
    path = _write_model(tmp_path, [{"mesh": 0, "translation": [1, 2, 3]}])
    scene = scene_from_gltf(path)
    assert scene.object_count == 1
    assert [i.object_id for i in scene.instances] == [0]
    np.testing.assert_allclose(scene.objects[0].mesh.vertices, POSITIONS + [1, 2, 3])
    np.testing.assert_allclose(scene.objects[0].mesh.normals, NORMALS)
    assert scene.aabb == Aabb((0.0, 0.0, 0.0), (1.0, 1.0, 0.0))


def test_scene_composes_parent_transforms(tmp_path):
    nodes = [
        {"mesh": 0, "translation": [1, 0, 0], "children": [1]},
        {"mesh": 0, "translation": [0, 0, 5]},
    ]
    scene = scene_from_gltf(_write_model(tmp_path, nodes))
    assert [i.object_id for i in scene.instances] == [0, 1]
    np.testing.assert_allclose(scene.objects[0].mesh.vertices, POSITIONS + [1, 0, 0])
    np.testing.assert_allclose(scene.objects[1].mesh.vertices, POSITIONS + [1, 0, 5])


def test_scene_rotates_normals(tmp_path):
    half = math.sqrt(0.5)
    path = _write_model(tmp_path, [{"mesh": 0, "rotation": [0.0, 0.0, half, half]}])
    mesh = scene_from_gltf(path).objects[0].mesh
    np.testing.assert_allclose(mesh.normals, [[0, 1, 0]] * 3, atol=1e-5)
    np.testing.assert_allclose(np.linalg.norm(mesh.vertices, axis=1), np.linalg.norm(POSITIONS, axis=1), atol=1e-5)


def test_flat_scene_merges_objects(tmp_path):
    nodes = [{"mesh": 0}, {"mesh": 0, "translation": [0, 0, 2]}]
    layered = scene_from_gltf(_write_model(tmp_path, nodes))
    flat = flat_scene_from_gltf(tmp_path / "model.gltf")
    assert flat.object_count == 1
    assert flat.instance_count == 1
    mesh = flat.objects[0].mesh
    assert mesh.face_count == sum(o.mesh.face_count for o in layered.objects)
    assert mesh.faces[:, :3].tolist() == [[0, 1, 2], [3, 4, 5]]
    expected = layered.objects[0].aabb.merge(layered.objects[1].aabb)
    assert flat.objects[0].aabb == expected


def test_geometry_concatenates_untransformed_meshes(tmp_path):
    path = _write_model(tmp_path, [{"mesh": 0, "translation": [4, 4, 4]}])
    obj = geometry_from_gltf(path)
    np.testing.assert_array_equal(obj.mesh.vertices, POSITIONS)
    assert obj.mesh.faces.tolist() == [[0, 1, 2, 0]]


def test_scene_cameras(tmp_path):
    extra = {
        "cameras": [
            {"name": "cam", "type": "perspective", "perspective": {"aspectRatio": 1.5, "yfov": 0.5}}
        ]
    }
    nodes = [{"mesh": 0}, {"camera": 0, "translation": [0, 0, 7]}]
    scene = scene_from_gltf(_write_model(tmp_path, nodes, extra=extra))
    assert len(scene.cameras) == 1
    camera = scene.cameras[0]
    assert camera.type is CameraType.PINHOLE
    assert camera.fov == pytest.approx(0.5)
    assert camera.viewport == (0, 0, 15, 10)
    np.testing.assert_allclose(camera.view[:3, 3], [0, 0, 7])


def test_scene_textures_and_samplers(tmp_path):
    extra = {
        "images": [{"uri": "tex.png"}],
        "textures": [{"source": 0, "sampler": 0}],
        "samplers": [{"wrapS": 10497}],
    }
    scene = scene_from_gltf(_write_model(tmp_path, [{"mesh": 0}], extra=extra), tmp_path / "images")
    assert scene.textures == [tmp_path / "images" / "tex.png"]
    assert len(scene.samplers) == 1
    assert scene.samplers[0].wrap_s is WrapMode.REPEAT
    assert scene.samplers[0].wrap_t is WrapMode.REPEAT


def test_texture_with_missing_image(tmp_path):
    extra = {"textures": [{"source": 3}]}
    with pytest.raises(GltfError):
        scene_from_gltf(_write_model(tmp_path, [{"mesh": 0}], extra=extra))


def test_scene_from_bounds():
    boxes = [Aabb((0, 0, 0), (1, 1, 1)), Aabb((-2, -2, -2), (0, 3, 0))]
    scene = scene_from_bounds(boxes)
    assert [o.type for o in scene.objects] == [ObjectType.AABB, ObjectType.AABB]
    assert [o.aabb for o in scene.objects] == boxes
    assert [i.object_id for i in scene.instances] == [0, 1]


def test_minecraft_scene_boxes_each_triangle(tmp_path):
    nodes = [{"mesh": 0}, {"mesh": 0, "translation": [0, 0, 2]}]
    scene = scene_from_gltf(_write_model(tmp_path, nodes))
    expected = [obj.aabb for obj in scene.objects]
    minecraft_scene(scene)
    assert scene.object_count == 2
    assert all(o.type is ObjectType.AABB for o in scene.objects)
    assert [o.aabb for o in scene.objects] == expected
    assert [i.object_id for i in scene.instances] == [0, 1]