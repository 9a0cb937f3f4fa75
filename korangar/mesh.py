"""Scene geometry: bounding boxes, triangle meshes, objects and instances."""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from .logger import log_message

__all__ = [
    "ObjectType",
    "Aabb",
    "Mesh",
    "SceneObject",
    "Instance",
    "Scene",
    "deduplicate",
]

Vec3 = tuple[float, float, float]

# Triangles whose bounding box has a smaller surface area are dropped.
_DEGENERATE_AREA = 0.00000001


class ObjectType(enum.Enum):
    NONE = enum.auto()
    MESH = enum.auto()
    AABB = enum.auto()


@dataclass(frozen=True)
class Aabb:
    """An axis-aligned bounding box; the empty box has inverted bounds."""

    min: Vec3
    max: Vec3

    @staticmethod
    def empty() -> Aabb:
        return Aabb((math.inf,) * 3, (-math.inf,) * 3)

    def expand_point(self, point) -> Aabb:
        """The smallest box holding this box and ``point``."""
        px, py, pz = (float(c) for c in point)
        return Aabb(
            (min(self.min[0], px), min(self.min[1], py), min(self.min[2], pz)),
            (max(self.max[0], px), max(self.max[1], py), max(self.max[2], pz)),
        )

    def merge(self, other: Aabb) -> Aabb:
        """The smallest box holding both boxes."""
        return Aabb(
            tuple(min(a, b) for a, b in zip(self.min, other.min)),
            tuple(max(a, b) for a, b in zip(self.max, other.max)),
        )

    def center(self) -> Vec3:
        return tuple((lo + hi) * 0.5 for lo, hi in zip(self.min, self.max))

    def extents(self) -> Vec3:
        return tuple(hi - lo for lo, hi in zip(self.min, self.max))

    def surface_area(self) -> float:
        x, y, z = self.extents()
        return 2.0 * (x * y + y * z + z * x)


def _aabb_of(points) -> Aabb:
    box = Aabb.empty()
    for point in points:
        box = box.expand_point(point)
    return box


@dataclass(eq=False)
class Mesh:
    """Indexed triangles with per-vertex positions, normals and uvs.

    Each face row holds three vertex indices and a material index; faces
    given with three columns get material 0. Missing normals and uvs are
    filled with zeros.
    """

    vertices: Any
    faces: Any
    normals: Any = None
    uvs: Any = None

    def __post_init__(self) -> None:
        self.vertices = np.asarray(self.vertices, dtype=np.float32).reshape(-1, 3)
        count = len(self.vertices)
        faces = np.asarray(self.faces, dtype=np.uint32)
        if faces.size == 0:
            faces = faces.reshape(0, 4)
        if faces.ndim != 2 or faces.shape[1] not in (3, 4):
            raise ValueError(f"faces must have 3 or 4 columns, got shape {faces.shape}")
        if faces.shape[1] == 3:
            faces = np.column_stack([faces, np.zeros(len(faces), dtype=np.uint32)])
        if len(faces) and int(faces[:, :3].max()) >= count:
            raise ValueError("a face refers to a vertex that does not exist")
        self.faces = faces
        self.normals = (
            np.zeros((count, 3), dtype=np.float32)
            if self.normals is None
            else np.asarray(self.normals, dtype=np.float32).reshape(-1, 3)
        )
        self.uvs = (
            np.zeros((count, 2), dtype=np.float32)
            if self.uvs is None
            else np.asarray(self.uvs, dtype=np.float32).reshape(-1, 2)
        )
        if len(self.normals) != count or len(self.uvs) != count:
            raise ValueError("normals and uvs must match the vertex count")

    @property
    def face_count(self) -> int:
        return len(self.faces)

    @property
    def attr_count(self) -> int:
        return len(self.vertices)

    def bounds(self) -> Aabb:
        if self.attr_count == 0:
            return Aabb.empty()
        lo = self.vertices.min(axis=0)
        hi = self.vertices.max(axis=0)
        return Aabb(tuple(float(v) for v in lo), tuple(float(v) for v in hi))


@dataclass
class SceneObject:
    """A piece of geometry: a mesh or a bare bounding box."""

    type: ObjectType = ObjectType.NONE
    aabb: Aabb = field(default_factory=Aabb.empty)
    mesh: Mesh | None = None

    @classmethod
    def from_mesh(cls, mesh: Mesh) -> SceneObject:
        return cls(ObjectType.MESH, mesh.bounds(), mesh)


@dataclass
class Instance:
    """A placement of an object; ``model`` is a 4x4 transform."""

    object_id: int = 0
    model: np.ndarray = field(default_factory=lambda: np.identity(4), compare=False)


@dataclass
class Scene:
    objects: list[SceneObject] = field(default_factory=list)
    instances: list[Instance] = field(default_factory=list)
    aabb: Aabb = field(default_factory=Aabb.empty)
    cameras: list = field(default_factory=list)
    materials: list = field(default_factory=list)
    textures: list = field(default_factory=list)
    samplers: list = field(default_factory=list)
    benchmark_file: str | None = None

    @property
    def object_count(self) -> int:
        return len(self.objects)

    @property
    def instance_count(self) -> int:
        return len(self.instances)


def _deduplicate_mesh(mesh: Mesh) -> SceneObject:
    cache: dict[tuple, int] = {}
    for index, face in enumerate(mesh.faces):
        corners = mesh.vertices[face[:3]]
        if _aabb_of(corners).surface_area() < _DEGENERATE_AREA:
            continue
        cache[tuple(map(tuple, corners.tolist()))] = index

    kept = np.fromiter(cache.values(), dtype=np.int64, count=len(cache))
    corner_ids = mesh.faces[kept, :3].reshape(-1).astype(np.int64)
    count = len(kept)
    faces = np.column_stack(
        [np.arange(count * 3, dtype=np.uint32).reshape(count, 3), np.zeros(count, dtype=np.uint32)]
    )
    cleaned = Mesh(
        vertices=mesh.vertices[corner_ids],
        faces=faces,
        normals=mesh.normals[corner_ids],
        uvs=mesh.uvs[corner_ids],
    )
    return SceneObject.from_mesh(cleaned)


def deduplicate(scene: Scene) -> None:
    """Rebuild every instanced mesh without repeated or degenerate triangles.

    Each surviving triangle gets three vertices of its own and material 0.
    Instances of objects that are not meshes are dropped.
    """
    objects: list[SceneObject] = []
    instances: list[Instance] = []
    for instance in scene.instances:
        source = scene.objects[instance.object_id]
        if source.type is not ObjectType.MESH or source.mesh is None:
            continue
        objects.append(_deduplicate_mesh(source.mesh))
        instances.append(Instance(len(objects) - 1, instance.model.copy()))

    scene.objects = objects
    scene.instances = instances

    if objects and objects[0].mesh is not None:
        first = objects[0].mesh
        log_message(
            "Scene (Deduplicated) face count: %d attr_count: %d\n",
            first.face_count,
            first.attr_count,
        )
        log_message(
            "Scene (Deduplicated) AABB [%f %f %f] x [%f %f %f]\n",
            *scene.aabb.min,
            *scene.aabb.max,
        )