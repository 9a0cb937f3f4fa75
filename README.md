# korangar

Tools for getting triangle scenes out of glTF files into a form a ray tracer
can work with, plus helpers for inspecting bounding volume hierarchies built
over them. The only dependency is NumPy; Python 3.10 or later is required.

## Modules

- `korangar.tokens` – a tokenizer for the JSON text of glTF documents
  (`Tokenizer`, `Token`, `TokenType`, `tokenize`). Malformed text raises
  `TokenError`.
- `korangar.gltf_elements` – parsers and dataclasses for single glTF elements:
  buffers, buffer views, accessors, meshes and their primitives, nodes,
  images, textures, samplers, materials and cameras.
- `korangar.gltf` – `parse_gltf(content, base_path)` and `load_gltf(path)`
  produce a `GltfDocument` holding every element list. Node parents and
  camera nodes are linked, and buffer files named by relative URIs are read
  from the base path (buffers whose files cannot be opened are left without
  data). Dangling node or camera references raise `GltfError`. The
  `materials` array of a document is passed over, so `GltfDocument.materials`
  stays empty.
- `korangar.mesh` – `Aabb`, `Mesh`, `SceneObject`, `Instance`, `Scene` and
  `deduplicate(scene)`, which rebuilds every instanced mesh without degenerate
  or repeated triangles, giving each kept triangle its own three vertices.
- `korangar.scene` – scene building from glTF files: `mesh_from_gltf`,
  `geometry_from_gltf`, `scene_from_gltf`, `flat_scene_from_gltf`,
  `scene_from_bounds` and `minecraft_scene`, with the `Camera`, `Sampler` and
  `Material` records they produce.
- `korangar.bvh` – `BvhNode`, `Obb`, breadth-first traversal, printing and
  Wavefront OBJ/MTL export of a hierarchy.
- `korangar.cmdopt` – matching command-line arguments against a compact
  option pattern.
- `korangar.logger` – `log_message(fmt, *args)`, timestamped trace output.

## Usage

### Loading a glTF scene

```python
from korangar.gltf import load_gltf
from korangar.scene import scene_from_gltf, flat_scene_from_gltf

document = load_gltf("models/crown/crown.gltf")

scene = scene_from_gltf("models/crown/crown.gltf")
flat = flat_scene_from_gltf("models/crown/crown.gltf")
```

`scene_from_gltf` creates one world-space object for every node that has a
mesh, walking up the node's parents to place it. Buffers are always read from
the glTF file's directory; the optional `base_path` only changes where image
paths in `scene.textures` point. `flat_scene_from_gltf` does the same and then
merges all objects into a single mesh with one instance.

`geometry_from_gltf(path)` returns all meshes of a file merged into one
untransformed `SceneObject`.

### Cleaning up geometry

```python
from korangar.mesh import deduplicate

deduplicate(scene)
```

Instances of objects that are not meshes are dropped.

### Boxes instead of triangles

```python
from korangar.mesh import Aabb
from korangar.scene import scene_from_bounds, minecraft_scene

box = Aabb.empty().expand_point((0.0, 0.0, 0.0)).expand_point((1.0, 1.0, 1.0))
boxes = scene_from_bounds([box])

minecraft_scene(scene)  # every triangle of scene becomes its bounding box
```

`minecraft_scene` changes the scene in place.

### Looking at a BVH

Nodes are `BvhNode` records in a sequence; interior nodes name their children
by index, and the root is given as an index too.

```python
from korangar.bvh import bvh_breadth_first, print_bvh, export_bvh_nodes

for index, node in bvh_breadth_first(nodes, 0):
    ...

print_bvh(nodes, 0)
export_bvh_nodes(nodes, 0, None, None, -1, "bvh_bounds")
```

`export_bvh_nodes` writes `bvh_bounds.obj` and `bvh_bounds.mtl` and returns
both paths. Each level becomes one object, with leaves repeated on every
deeper level. A depth of `-1` exports every level; any other non-negative
value exports only that level. When transforms are given, each node is drawn
as its oriented box from `obbs` (which must then be given as well); otherwise
as its axis-aligned bounds.

### Tokenizing

```python
from korangar.tokens import tokenize

for token in tokenize('{"count": 3, "scale": [1.0, 2.5e1, -4]}'):
    print(token.type, token.text())
```

### Matching command-line options

A pattern lists option names each followed by a value count, for example
`"s[1]v[0]integrator[1]"`.

```python
from korangar.cmdopt import get_option

param = get_option(["prog", "-s", "scene.gltf", "-v"], "s[1]v[0]integrator[1]", "s")
param.arguments  # ('scene.gltf',)
```

`get_option` returns `None` when the option is not in the pattern or not on
the command line.

### Logging

```python
from korangar.logger import log_message

log_message("Mesh '%s' face count: %d\n", "crown", 1200)
```

The message is written to standard output behind a `[TRACE <time>]` prefix
and also returned.

## What this package does not do

It does not render. There is no window, no interactive camera, no image
output and no command to run; it loads and prepares scenes and inspects BVH
nodes handed to it, but it does not build a BVH itself. Images named by glTF
textures are not loaded, only their paths are collected.