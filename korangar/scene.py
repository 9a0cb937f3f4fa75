"""Building renderable scenes from glTF documents."""

from __future__ import annotations

import os
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np

from .gltf import GltfDocument, GltfError, load_gltf
from .gltf_elements import CameraType, GltfAccessor, GltfNode, WrapMode
from .logger import log_message
from .mesh import Aabb, Instance, Mesh, ObjectType, Scene, SceneObject

__all__ = [
    "Camera",
    "Sampler",
    "Material",
    "mesh_from_gltf",
    "geometry_from_gltf",
    "scene_from_gltf",
    "flat_scene_from_gltf",
    "scene_from_bounds",
    "minecraft_scene",
]

_UNSIGNED_SHORT = 0x1403
_UNSIGNED_INT = 0x1405
_INDEX_TYPES = {_UNSIGNED_SHORT: np.dtype("<u2"), _UNSIGNED_INT: np.dtype("<u4")}

# Pinhole cameras get a viewport this many units high.
_VIEWPORT_HEIGHT = 10


@dataclass
class Camera:
    """A camera placed by a node; ``view`` is the node's local transform."""

    type: CameraType = CameraType.NONE
    view: np.ndarray = field(default_factory=lambda: np.identity(4), compare=False)
    fov: float = 0.0
    viewport: tuple[int, int, int, int] = (0, 0, 0, 0)


@dataclass
class Sampler:
    wrap_s: WrapMode = WrapMode.REPEAT
    wrap_t: WrapMode = WrapMode.REPEAT


@dataclass
class Material:
    """Surface parameters; textures and samplers are indices into the scene."""

    roughness: float = 0.0
    metalicity: float = 0.0
    base_color: tuple[float, float, float] = (0.0, 0.0, 0.0)
    base_color_texture: int | None = None
    base_color_sampler: int | None = None


def _accessor(document: GltfDocument, index: int) -> GltfAccessor:
    if not 0 <= index < len(document.accessors):
        raise GltfError(f"accessor {index} does not exist")
    return document.accessors[index]


def _view_data(document: GltfDocument, accessor: GltfAccessor) -> bytes:
    if not 0 <= accessor.buffer_view < len(document.buffer_views):
        raise GltfError(f"buffer view {accessor.buffer_view} does not exist")
    view = document.buffer_views[accessor.buffer_view]
    if not 0 <= view.buffer < len(document.buffers):
        raise GltfError(f"buffer {view.buffer} does not exist")
    buffer = document.buffers[view.buffer]
    if buffer.data is None:
        raise GltfError(f"buffer {view.buffer} has no data")
    end = view.byte_offset + view.byte_length
    if end > len(buffer.data):
        raise GltfError(f"buffer view {accessor.buffer_view} runs past its buffer")
    return buffer.data[view.byte_offset : end]


def _floats(data: bytes, width: int) -> np.ndarray:
    usable = len(data) // (4 * width) * (4 * width)
    return np.frombuffer(data[:usable], dtype="<f4").reshape(-1, width)


def _place(target: np.ndarray, offset: int, values: np.ndarray) -> None:
    end = offset + len(values)
    if end > len(target):
        raise GltfError("attribute data does not fit the accessor counts")
    target[offset:end] = values


def mesh_from_gltf(document: GltfDocument, mesh_index: int) -> SceneObject:
    """Gather every primitive of one glTF mesh into a single mesh object.

    Vertex attributes of later primitives are placed after those of earlier
    ones; the placement advances by each primitive's normal count.
    """
    gltf_mesh = document.meshes[mesh_index]
    attr_total = sum(
        _accessor(document, p.positions).count for p in gltf_mesh.primitives if p.positions >= 0
    )
    vertices = np.zeros((attr_total, 3), dtype=np.float32)
    normals = np.zeros((attr_total, 3), dtype=np.float32)
    uvs = np.zeros((attr_total, 2), dtype=np.float32)
    faces: list[np.ndarray] = []
    offset = 0

    for primitive in gltf_mesh.primitives:
        if primitive.indices >= 0:
            accessor = _accessor(document, primitive.indices)
            dtype = _INDEX_TYPES.get(accessor.component_type)
            if dtype is not None:
                data = _view_data(document, accessor)
                indices = np.frombuffer(data, dtype=dtype, count=len(data) // dtype.itemsize)
                usable = len(indices) // 3 * 3
                triangles = indices[:usable].reshape(-1, 3).astype(np.uint32) + np.uint32(offset)
                material = np.full(len(triangles), max(primitive.material, 0), dtype=np.uint32)
                faces.append(np.column_stack([triangles, material]))
        if primitive.positions >= 0:
            accessor = _accessor(document, primitive.positions)
            _place(vertices, offset, _floats(_view_data(document, accessor), 3))
        if primitive.uvs >= 0:
            accessor = _accessor(document, primitive.uvs)
            _place(uvs, offset, _floats(_view_data(document, accessor), 2))
        if primitive.normals >= 0:
            accessor = _accessor(document, primitive.normals)
            _place(normals, offset, _floats(_view_data(document, accessor), 3))
            offset += accessor.count

    face_array = np.concatenate(faces) if faces else np.zeros((0, 4), dtype=np.uint32)
    try:
        mesh = Mesh(vertices, face_array, normals, uvs)
    except ValueError as error:
        raise GltfError(f"mesh {mesh_index}: {error}") from error
    result = SceneObject.from_mesh(mesh)

    name = gltf_mesh.name or ""
    log_message("Mesh '%s' face count: %d attr_count: %d\n", name, mesh.face_count, mesh.attr_count)
    log_message("Mesh '%s' AABB [%f %f %f] x [%f %f %f]\n", name, *result.aabb.min, *result.aabb.max)
    return result


def _merge_objects(objects: Iterable[SceneObject]) -> SceneObject:
    vertices = [np.zeros((0, 3), dtype=np.float32)]
    normals = [np.zeros((0, 3), dtype=np.float32)]
    uvs = [np.zeros((0, 2), dtype=np.float32)]
    faces = [np.zeros((0, 4), dtype=np.uint32)]
    bounds = Aabb.empty()
    offset = 0
    for obj in objects:
        if obj.mesh is None:
            continue
        mesh = obj.mesh
        shifted = mesh.faces.copy()
        shifted[:, :3] += np.uint32(offset)
        faces.append(shifted)
        vertices.append(mesh.vertices)
        normals.append(mesh.normals)
        uvs.append(mesh.uvs)
        bounds = bounds.merge(obj.aabb)
        offset += mesh.attr_count
    merged = Mesh(
        np.concatenate(vertices),
        np.concatenate(faces),
        np.concatenate(normals),
        np.concatenate(uvs),
    )
    return SceneObject(ObjectType.MESH, bounds, merged)


def geometry_from_gltf(
    path: str | os.PathLike[str], base_path: str | os.PathLike[str] | None = None
) -> SceneObject:
    """All meshes of a glTF file as one untransformed mesh object.

    Buffers are read from the file's directory; ``base_path`` only matters
    to :func:`scene_from_gltf`, where it locates images.
    """
    document = load_gltf(path)
    return _merge_objects(mesh_from_gltf(document, i) for i in range(len(document.meshes)))


def _world_matrix(document: GltfDocument, node: GltfNode) -> np.ndarray:
    matrix = node.matrix
    seen = {id(node)}
    current = node
    while current.parent >= 0:
        current = document.nodes[current.parent]
        if id(current) in seen:
            raise GltfError("node hierarchy contains a cycle")
        seen.add(id(current))
        matrix = current.matrix @ matrix
    return matrix


def _transformed(mesh: Mesh, matrix: np.ndarray) -> Mesh:
    linear = matrix[:3, :3]
    vertices = mesh.vertices.astype(np.float64) @ linear.T + matrix[:3, 3]
    normals = mesh.normals.astype(np.float64) @ np.linalg.pinv(linear)
    lengths = np.linalg.norm(normals, axis=1, keepdims=True)
    normals = np.divide(normals, lengths, out=np.zeros_like(normals), where=lengths > 0)
    return Mesh(vertices, mesh.faces.copy(), normals, mesh.uvs.copy())


def scene_from_gltf(
    path: str | os.PathLike[str], base_path: str | os.PathLike[str] | None = None
) -> Scene:
    """Build a scene with one world-space object for every node with a mesh.

    Image paths are resolved against ``base_path``, or the file's directory.
    """
    document = load_gltf(path)
    texture_base = Path(base_path) if base_path is not None else document.base_path
    scene = Scene()

    meshes = [mesh_from_gltf(document, i) for i in range(len(document.meshes))]
    for obj in meshes:
        scene.aabb = scene.aabb.merge(obj.aabb)

    for node in document.nodes:
        if node.mesh < 0:
            continue
        if node.mesh >= len(meshes):
            raise GltfError(f"node names missing mesh {node.mesh}")
        source = meshes[node.mesh].mesh
        obj = SceneObject.from_mesh(_transformed(source, _world_matrix(document, node)))
        name = node.name or ""
        log_message(
            "Mesh Instance '%s' face count: %d attr_count: %d\n",
            name,
            obj.mesh.face_count,
            obj.mesh.attr_count,
        )
        log_message(
            "Mesh Instance '%s' AABB [%f %f %f] x [%f %f %f]\n", name, *obj.aabb.min, *obj.aabb.max
        )
        scene.instances.append(Instance(len(scene.objects)))
        scene.objects.append(obj)

    log_message(
        "Scene face count: %d attr_count: %d\n",
        sum(o.mesh.face_count for o in meshes),
        sum(o.mesh.attr_count for o in meshes),
    )
    log_message("Scene AABB [%f %f %f] x [%f %f %f]\n", *scene.aabb.min, *scene.aabb.max)

    for texture in document.textures:
        if not 0 <= texture.source < len(document.images):
            raise GltfError(f"texture names missing image {texture.source}")
        scene.textures.append(texture_base / (document.images[texture.source].uri or ""))

    scene.samplers.extend(Sampler() for _ in document.samplers)

    for gltf_material in document.materials:
        index = gltf_material.base_color_texture[0]
        texture_index = sampler_index = None
        if index >= 0:
            if index >= len(document.textures):
                raise GltfError(f"material names missing texture {index}")
            texture_index = index
            sampler = document.textures[index].sampler
            sampler_index = sampler if sampler >= 0 else None
        scene.materials.append(
            Material(
                gltf_material.roughness,
                gltf_material.metalicity,
                gltf_material.base_color,
                texture_index,
                sampler_index,
            )
        )

    for gltf_camera in document.cameras:
        if gltf_camera.node < 0:
            continue
        camera = Camera(gltf_camera.type, document.nodes[gltf_camera.node].matrix.copy())
        if camera.type is CameraType.PINHOLE:
            camera.fov = gltf_camera.fov
            camera.viewport = (
                0,
                0,
                int(gltf_camera.aspect_ratio * _VIEWPORT_HEIGHT),
                _VIEWPORT_HEIGHT,
            )
        scene.cameras.append(camera)

    return scene


def flat_scene_from_gltf(
    path: str | os.PathLike[str], base_path: str | os.PathLike[str] | None = None
) -> Scene:
    """Like :func:`scene_from_gltf`, with all objects merged into one."""
    scene = scene_from_gltf(path, base_path)
    scene.objects = [_merge_objects(scene.objects)]
    scene.instances = [Instance(0)]
    return scene


def scene_from_bounds(bounds: Iterable[Aabb]) -> Scene:
    """A scene with one box object and one instance for every box."""
    objects = [SceneObject(ObjectType.AABB, box) for box in bounds]
    return Scene(objects=objects, instances=[Instance(i) for i in range(len(objects))])


def minecraft_scene(scene: Scene) -> None:
    """Replace every mesh triangle in ``scene`` by its bounding box."""
    boxes: list[SceneObject] = []
    for obj in scene.objects:
        if obj.mesh is None:
            continue
        mesh = obj.mesh
        for face in mesh.faces:
            corners = mesh.vertices[face[:3]]
            box = Aabb(
                tuple(float(v) for v in corners.min(axis=0)),
                tuple(float(v) for v in corners.max(axis=0)),
            )
            boxes.append(SceneObject(ObjectType.AABB, box))
    scene.objects = boxes
    scene.instances = [Instance(i) for i in range(len(boxes))]