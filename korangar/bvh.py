"""Bounding volume hierarchy nodes: traversal, printing and OBJ export."""

from __future__ import annotations

import os
from collections import deque
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path

import numpy as np

from .mesh import Aabb

__all__ = ["BvhNode", "Obb", "bvh_breadth_first", "print_bvh", "export_bvh_nodes"]

Vec3 = tuple[float, float, float]

_MAX_LEVELS = 256

_CUBE_FACES = (
    (0, 1, 2), (0, 2, 3), (4, 5, 6),
    (4, 6, 7), (8, 9, 10), (8, 10, 11),
    (12, 13, 14), (12, 14, 15), (16, 17, 18),
    (16, 18, 19), (20, 21, 22), (20, 22, 23),
)

_CUBE_NORMALS = np.array(
    [(0.0, 1.0, 0.0)] * 4
    + [(0.0, 0.0, 1.0)] * 4
    + [(-1.0, 0.0, 0.0)] * 4
    + [(0.0, -1.0, 0.0)] * 4
    + [(1.0, 0.0, 0.0)] * 4
    + [(0.0, 0.0, -1.0)] * 4
)

_CUBE_VERTICES = np.array(
    [
        (1.0, 1.0, -1.0), (-1.0, 1.0, -1.0), (-1.0, 1.0, 1.0), (1.0, 1.0, 1.0),
        (1.0, -1.0, 1.0), (1.0, 1.0, 1.0), (-1.0, 1.0, 1.0), (-1.0, -1.0, 1.0),
        (-1.0, -1.0, 1.0), (-1.0, 1.0, 1.0), (-1.0, 1.0, -1.0), (-1.0, -1.0, -1.0),
        (-1.0, -1.0, -1.0), (1.0, -1.0, -1.0), (1.0, -1.0, 1.0), (-1.0, -1.0, 1.0),
        (1.0, -1.0, -1.0), (1.0, 1.0, -1.0), (1.0, 1.0, 1.0), (1.0, -1.0, 1.0),
        (-1.0, -1.0, -1.0), (-1.0, 1.0, -1.0), (1.0, 1.0, -1.0), (1.0, -1.0, -1.0),
    ]
)

_CUBE_UVS = (
    (0.625, 0.5), (0.875, 0.5), (0.875, 0.25), (0.625, 0.25),
    (0.375, 0.25), (0.625, 0.25), (0.625, 0.0), (0.375, 0.0),
    (0.375, 1.0), (0.625, 1.0), (0.625, 0.75), (0.375, 0.75),
    (0.125, 0.5), (0.375, 0.5), (0.375, 0.25), (0.125, 0.25),
    (0.375, 0.5), (0.625, 0.5), (0.625, 0.25), (0.375, 0.25),
    (0.375, 0.75), (0.625, 0.75), (0.625, 0.5), (0.375, 0.5),
)


@dataclass
class BvhNode:
    """A hierarchy node; it is a leaf when it holds primitives.

    Interior nodes name their children by index in ``left`` and ``right``.
    """

    bounds: Aabb
    n_primitives: int = 0
    left: int = 0
    right: int = 0
    primitives_offset: int = 0
    axis: int = 0

    def is_leaf(self) -> bool:
        return self.n_primitives > 0


@dataclass(frozen=True)
class Obb:
    """An oriented box: midpoint, three orthogonal axes and half extents."""

    mid: Vec3
    v0: Vec3
    v1: Vec3
    v2: Vec3
    ext: Vec3


def bvh_breadth_first(nodes: Sequence[BvhNode], root: int = 0) -> Iterator[tuple[int, BvhNode]]:
    """Yield ``(index, node)`` pairs in breadth-first order from ``root``."""
    queue = deque([root])
    while queue:
        index = queue.popleft()
        node = nodes[index]
        yield index, node
        if node.is_leaf():
            continue
        queue.append(node.left)
        queue.append(node.right)


def print_bvh(nodes: Sequence[BvhNode], root: int = 0) -> list[str]:
    """Print one line per node in breadth-first order and return the lines."""
    lines = []
    for index, node in bvh_breadth_first(nodes, root):
        kind = "Leaf" if node.is_leaf() else "Node"
        line = f"{kind} [{index}] [{node.n_primitives}]"
        print(line)
        lines.append(line)
    return lines


def _collect_levels(nodes: Sequence[BvhNode], root: int) -> list[list[tuple[int, BvhNode]]]:
    levels: list[list[tuple[int, BvhNode]]] = [[] for _ in range(_MAX_LEVELS)]
    queue = deque([(root, 0)])
    while queue:
        index, level = queue.popleft()
        if level >= _MAX_LEVELS:
            continue
        node = nodes[index]
        levels[level].append((index, node))
        if node.is_leaf():
            continue
        queue.append((node.left, level + 1))
        queue.append((node.right, level + 1))

    # Leaves are repeated on every deeper level that still holds nodes.
    for level in range(1, _MAX_LEVELS):
        if not levels[level]:
            break
        levels[level].extend(entry for entry in levels[level - 1] if entry[1].is_leaf())

    for level in levels:
        level.sort(key=lambda entry: entry[1].n_primitives)
    return levels


def _obb_cube(obb: Obb) -> tuple[np.ndarray, np.ndarray]:
    ext = [float(e) for e in obb.ext]
    rotation = np.identity(4)
    for k, axis in enumerate((obb.v0, obb.v1, obb.v2)):
        vector = np.asarray(axis, dtype=np.float64)
        if vector[k] < 0.0:
            ext[k] = -ext[k]
            vector = -vector
        rotation[:3, k] = vector
    translate = np.identity(4)
    translate[:3, 3] = obb.mid
    scale = np.diag([ext[0] * 2.0, ext[1] * 2.0, ext[2] * 2.0, 1.0])
    transform = translate @ rotation @ scale

    linear = transform[:3, :3]
    vertices = (_CUBE_VERTICES * 0.5) @ linear.T + transform[:3, 3]
    normals = _CUBE_NORMALS @ np.linalg.pinv(linear)
    lengths = np.linalg.norm(normals, axis=1, keepdims=True)
    normals = np.divide(normals, lengths, out=np.zeros_like(normals), where=lengths > 0)
    return vertices, normals


def _aabb_cube(bounds: Aabb) -> tuple[np.ndarray, np.ndarray]:
    center = np.asarray(bounds.center())
    half = np.asarray(bounds.extents()) * 0.5
    return _CUBE_VERTICES * half + center, _CUBE_NORMALS.copy()


def _material(level: int, name: str, diffuse: float) -> str:
    return (
        f"newmtl {name}{level}\n"
        f"\tNs {100.0:f}\n"
        f"\tNi {1.5:f}\n"
        f"\td {1.0:f}\n"
        f"\tTr {0.0:f}\n"
        f"\tTf {0.5:f} {0.5:f} {0.5:f}\n"
        f"\tKa {0.2:f} {0.2:f} {0.2:f}\n"
        f"\tKd {diffuse:f} {diffuse:f} {diffuse:f}\n"
        f"\tKs {1.0:f} {1.0:f} {1.0:f}\n"
        f"\tKe {0.0:f} {0.0:f} {0.0:f}\n"
        f"\tillum {2}\n"
        "\n"
    )


def export_bvh_nodes(
    nodes: Sequence[BvhNode],
    root: int,
    transforms: Sequence | None,
    obbs: Sequence[Obb] | None,
    depth: int,
    filename: str | os.PathLike[str],
) -> tuple[Path, Path]:
    """Write the hierarchy as cubes to ``<filename>.obj`` and ``<filename>.mtl``.

    Each level becomes one object; leaves also appear on every deeper level.
    With ``transforms`` given, each node is drawn as its oriented box from
    ``obbs``; otherwise as its axis-aligned bounds. A non-negative ``depth``
    limits the export to that single level. Returns both paths.
    """
    if transforms is not None and obbs is None:
        raise ValueError("oriented boxes are needed when transforms are given")

    levels = _collect_levels(nodes, root)
    obj_path = Path(f"{os.fspath(filename)}.obj")
    mtl_path = Path(f"{os.fspath(filename)}.mtl")

    attr_offset = 0
    with open(obj_path, "w", encoding="ascii") as obj, open(mtl_path, "w", encoding="ascii") as mtl:
        for number, level in enumerate(levels, start=1):
            if depth >= 0 and number != depth + 1:
                continue
            if not level:
                continue

            obj.write(f"o BVH_{number}\ng BVH_{number}\n\nusemtl MAT_BVH_{number}\n")
            for index, node in level:
                if transforms is not None:
                    transforms[index]
                    vertices, normals = _obb_cube(obbs[index])
                else:
                    vertices, normals = _aabb_cube(node.bounds)

                obj.writelines(f"v {x:f} {y:f} {z:f}\n" for x, y, z in vertices)
                obj.write("\n")
                obj.writelines(f"vt {u:f} {v:f}\n" for u, v in _CUBE_UVS)
                obj.write("\n")
                obj.writelines(f"vn {x:f} {y:f} {z:f}\n" for x, y, z in normals)
                obj.write("\n")
                for face in _CUBE_FACES:
                    a, b, c = (corner + 1 + attr_offset for corner in face)
                    obj.write(f"f {a}/{a}/{a} {b}/{b}/{b} {c}/{c}/{c}\n")
                obj.write("\n")
                attr_offset += len(_CUBE_VERTICES)

            obj.write(
                f"o BVH_{number}_Leaves\ng BVH_{number}_Leaves\n\n"
                f"usemtl MAT_BVH_Leaves_{number}\n"
            )
            mtl.write(_material(number, "MAT_BVH_", 0.75))
            mtl.write(_material(number, "MAT_BVH_Leaves_", 0.1))

    return obj_path, mtl_path