"""Parsers for the individual elements of a glTF document.

Every ``parse_*`` function expects the tokenizer to sit on the opening
``{`` (or ``[`` for :func:`skip_array`) of the element. It leaves the
tokenizer on the token that follows the element's closing bracket.
``parse_object`` is called for nested objects the element does not
understand itself; it must consume the object in the same way.
"""

from __future__ import annotations

import enum
import math
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field, replace

import numpy as np

from .tokens import Token, TokenError, Tokenizer, TokenType

__all__ = [
    "CameraType",
    "WrapMode",
    "GltfBuffer",
    "GltfBufferView",
    "GltfAccessor",
    "GltfPrimitive",
    "GltfNode",
    "GltfImage",
    "GltfSampler",
    "GltfTexture",
    "GltfMaterial",
    "GltfMesh",
    "GltfCamera",
    "skip_array",
    "parse_buffer",
    "parse_buffer_view",
    "parse_accessor",
    "parse_mesh",
    "parse_node",
    "parse_material",
    "parse_texture",
    "parse_sampler",
    "parse_camera",
    "parse_image",
]

ParseObject = Callable[[Tokenizer], None]


class CameraType(enum.Enum):
    NONE = 0
    PINHOLE = 1


class WrapMode(enum.Enum):
    NONE = 0
    REPEAT = 1


@dataclass
class GltfBuffer:
    uri: str | None = None
    byte_length: int = 0
    data: bytes | None = None


@dataclass
class GltfBufferView:
    buffer: int = 0
    byte_length: int = 0
    byte_offset: int = 0


@dataclass
class GltfAccessor:
    type: str | None = None
    buffer_view: int = 0
    component_type: int = 0
    count: int = 0


@dataclass
class GltfPrimitive:
    positions: int = -1
    normals: int = -1
    uvs: int = -1
    indices: int = -1
    material: int = -1


@dataclass
class GltfNode:
    name: str | None = None
    matrix: np.ndarray = field(default_factory=lambda: np.identity(4), compare=False)
    parent: int = -1
    children: list[int] = field(default_factory=list)
    mesh: int = -1
    camera: int = -1


@dataclass
class GltfImage:
    mime: str | None = None
    name: str | None = None
    uri: str | None = None


@dataclass
class GltfSampler:
    wrap_s: WrapMode = WrapMode.NONE
    wrap_t: WrapMode = WrapMode.NONE


@dataclass
class GltfTexture:
    source: int = -1
    sampler: int = -1


@dataclass
class GltfMaterial:
    name: str | None = None
    base_color_texture: tuple[int, int] = (-1, -1)
    base_color: tuple[float, float, float] = (0.0, 0.0, 0.0)
    roughness: float = 0.0
    metalicity: float = 0.0
    base_color_sampler: int = 0


@dataclass
class GltfMesh:
    name: str | None = None
    primitives: list[GltfPrimitive] = field(default_factory=list)


@dataclass
class GltfCamera:
    name: str | None = None
    aspect_ratio: float = 0.0
    fov: float = 0.0
    type: CameraType = CameraType.NONE
    node: int = -1


def _advance(tokenizer: Tokenizer) -> Token:
    token = tokenizer.next()
    if token.type is TokenType.EOS:
        raise TokenError("unexpected end of glTF text")
    return token


def _as_int(token: Token) -> int:
    if token.type is TokenType.INTEGER:
        return token.value
    if token.type is TokenType.FLOAT:
        return int(token.value)
    raise TokenError(f"expected a number, found {token.type.name} at offset {token.start}")


def _scalar(token: Token) -> float:
    if token.type in (TokenType.INTEGER, TokenType.FLOAT):
        return token.as_scalar()
    raise TokenError(f"expected a number, found {token.type.name} at offset {token.start}")


def _members(tokenizer: Tokenizer) -> Iterator[tuple[Token, Token]]:
    """Yield ``(key, value)`` pairs; the consumer must move past each value."""
    while tokenizer.token.type is not TokenType.RBRACE:
        key = _advance(tokenizer)
        if key.type is TokenType.RBRACE:
            break
        _advance(tokenizer)
        value = _advance(tokenizer)
        yield key, value
    tokenizer.next()


def _skip_value(tokenizer: Tokenizer, parse_object: ParseObject) -> None:
    kind = tokenizer.token.type
    if kind is TokenType.LBRACE:
        parse_object(tokenizer)
    elif kind is TokenType.LBRACKET:
        skip_array(tokenizer, parse_object)
    else:
        tokenizer.next()


def _scalar_members(
    tokenizer: Tokenizer, parse_object: ParseObject
) -> Iterator[tuple[Token, Token]]:
    """Yield only plain (non-nested) members, skipping nested ones."""
    for key, value in _members(tokenizer):
        if value.type in (TokenType.LBRACE, TokenType.LBRACKET):
            _skip_value(tokenizer, parse_object)
        else:
            yield key, value
            tokenizer.next()


def _skip_object(tokenizer: Tokenizer) -> None:
    for _key, _value in _members(tokenizer):
        _skip_value(tokenizer, _skip_object)


def _resolve(parse_object: ParseObject | None) -> ParseObject:
    return _skip_object if parse_object is None else parse_object


def skip_array(tokenizer: Tokenizer, parse_object: ParseObject | None = None) -> None:
    """Move past an array, handing nested objects to ``parse_object``."""
    parse_object = _resolve(parse_object)
    while tokenizer.token.type is not TokenType.RBRACKET:
        token = _advance(tokenizer)
        if token.type is TokenType.RBRACKET:
            break
        if token.type is TokenType.LBRACKET:
            skip_array(tokenizer, parse_object)
        elif token.type is TokenType.LBRACE:
            parse_object(tokenizer)
        else:
            tokenizer.next()
    tokenizer.next()


def _parse_numbers(tokenizer: Tokenizer, count: int) -> list[float]:
    tokenizer.next()
    values = []
    for _ in range(count):
        values.append(_scalar(tokenizer.token))
        tokenizer.next()
        if len(values) < count:
            tokenizer.next()
    if tokenizer.token.type is not TokenType.RBRACKET:
        raise TokenError(f"expected {count} numbers in array at offset {tokenizer.token.start}")
    tokenizer.next()
    return values


def _parse_indices(tokenizer: Tokenizer) -> list[int]:
    values = []
    while tokenizer.token.type is not TokenType.RBRACKET:
        token = _advance(tokenizer)
        if token.type is TokenType.RBRACKET:
            break
        values.append(_as_int(token))
        _advance(tokenizer)
    tokenizer.next()
    return values


def parse_buffer(tokenizer: Tokenizer) -> GltfBuffer:
    buffer = GltfBuffer()
    for key, value in _scalar_members(tokenizer, _skip_object):
        if key.matches("byteLength"):
            buffer.byte_length = _as_int(value)
        elif key.matches("uri"):
            buffer.uri = value.text()
    return buffer


def parse_buffer_view(tokenizer: Tokenizer) -> GltfBufferView:
    view = GltfBufferView()
    for key, value in _scalar_members(tokenizer, _skip_object):
        if key.matches("byteLength"):
            view.byte_length = _as_int(value)
        elif key.matches("byteOffset"):
            view.byte_offset = _as_int(value)
        elif key.matches("buffer"):
            view.buffer = _as_int(value)
    return view


def parse_accessor(tokenizer: Tokenizer, parse_object: ParseObject | None = None) -> GltfAccessor:
    accessor = GltfAccessor()
    for key, value in _scalar_members(tokenizer, _resolve(parse_object)):
        if key.matches("bufferView"):
            accessor.buffer_view = _as_int(value)
        elif key.matches("componentType"):
            accessor.component_type = _as_int(value)
        elif key.matches("count"):
            accessor.count = _as_int(value)
        elif key.matches("type"):
            accessor.type = value.text()
    return accessor


def _parse_attributes(tokenizer: Tokenizer, parse_object: ParseObject) -> tuple[int, int, int]:
    positions = normals = uvs = -1
    for key, value in _scalar_members(tokenizer, parse_object):
        if key.matches("POSITION"):
            positions = _as_int(value)
        elif key.matches("NORMAL"):
            normals = _as_int(value)
        elif key.matches("TEXCOORD_0"):
            uvs = _as_int(value)
    return positions, normals, uvs


def _parse_primitive(
    tokenizer: Tokenizer, parse_object: ParseObject, previous: GltfPrimitive
) -> GltfPrimitive:
    primitive = replace(previous)
    for key, value in _members(tokenizer):
        if value.type is TokenType.LBRACE and key.matches("attributes"):
            primitive.positions, primitive.normals, primitive.uvs = _parse_attributes(
                tokenizer, parse_object
            )
        elif value.type in (TokenType.LBRACE, TokenType.LBRACKET):
            _skip_value(tokenizer, parse_object)
        else:
            if key.matches("indices"):
                primitive.indices = _as_int(value)
            elif key.matches("material"):
                primitive.material = _as_int(value)
            tokenizer.next()
    return primitive


def _parse_primitives(tokenizer: Tokenizer, parse_object: ParseObject) -> list[GltfPrimitive]:
    # Fields a primitive leaves out keep the previous primitive's values.
    primitives = []
    current = GltfPrimitive()
    while tokenizer.token.type is not TokenType.RBRACKET:
        token = _advance(tokenizer)
        if token.type is TokenType.RBRACKET:
            break
        if token.type is TokenType.LBRACE:
            current = _parse_primitive(tokenizer, parse_object, current)
            primitives.append(current)
        elif token.type is TokenType.LBRACKET:
            skip_array(tokenizer, parse_object)
        else:
            tokenizer.next()
    tokenizer.next()
    return primitives


def parse_mesh(tokenizer: Tokenizer, parse_object: ParseObject | None = None) -> GltfMesh:
    parse_object = _resolve(parse_object)
    mesh = GltfMesh()
    for key, value in _members(tokenizer):
        if value.type is TokenType.LBRACKET and key.matches("primitives"):
            mesh.primitives = _parse_primitives(tokenizer, parse_object)
        elif value.type in (TokenType.LBRACE, TokenType.LBRACKET):
            _skip_value(tokenizer, parse_object)
        else:
            if key.matches("name"):
                mesh.name = value.text()
            tokenizer.next()
    return mesh


def _quaternion_matrix(x: float, y: float, z: float, w: float) -> np.ndarray:
    return np.array(
        [
            [1 - 2 * (y * y + z * z), 2 * (x * y - z * w), 2 * (x * z + y * w), 0.0],
            [2 * (x * y + z * w), 1 - 2 * (x * x + z * z), 2 * (y * z - x * w), 0.0],
            [2 * (x * z - y * w), 2 * (y * z + x * w), 1 - 2 * (x * x + y * y), 0.0],
            [0.0, 0.0, 0.0, 1.0],
        ]
    )


def parse_node(tokenizer: Tokenizer, parse_object: ParseObject | None = None) -> GltfNode:
    """Parse a node; its local transform ends up in ``matrix`` (row-major)."""
    parse_object = _resolve(parse_object)
    node = GltfNode()
    rotation = [0.0, 0.0, 0.0, 1.0]
    translation = [0.0, 0.0, 0.0]
    scale = [1.0, 1.0, 1.0]
    matrix = None
    for key, value in _members(tokenizer):
        if value.type is TokenType.LBRACKET:
            if key.matches("rotation"):
                rotation = _parse_numbers(tokenizer, 4)
            elif key.matches("translation"):
                translation = _parse_numbers(tokenizer, 3)
            elif key.matches("scale"):
                scale = _parse_numbers(tokenizer, 3)
            elif key.matches("matrix"):
                matrix = np.array(_parse_numbers(tokenizer, 16)).reshape(4, 4).T
            elif key.matches("children"):
                node.children = _parse_indices(tokenizer)
            else:
                skip_array(tokenizer, parse_object)
        elif value.type is TokenType.LBRACE:
            parse_object(tokenizer)
        else:
            if key.matches("mesh"):
                node.mesh = _as_int(value)
            elif key.matches("camera"):
                node.camera = _as_int(value)
            elif key.matches("name"):
                node.name = value.text()
            tokenizer.next()

    if matrix is None:
        translate = np.identity(4)
        translate[:3, 3] = translation
        scaling = np.diag([*scale, 1.0])
        matrix = translate @ _quaternion_matrix(*rotation) @ scaling
    node.matrix = matrix
    return node


def _parse_texture_info(
    tokenizer: Tokenizer, material: GltfMaterial, parse_object: ParseObject
) -> None:
    index, tex_coord = material.base_color_texture
    for key, value in _scalar_members(tokenizer, parse_object):
        if key.matches("index"):
            index = _as_int(value)
        elif key.matches("texCoord"):
            tex_coord = _as_int(value)
    material.base_color_texture = (index, tex_coord)


def _parse_pbr(tokenizer: Tokenizer, material: GltfMaterial, parse_object: ParseObject) -> None:
    for key, value in _members(tokenizer):
        if value.type is TokenType.LBRACE:
            if key.matches("baseColorTexture"):
                _parse_texture_info(tokenizer, material, parse_object)
            else:
                parse_object(tokenizer)
        elif value.type is TokenType.LBRACKET:
            if key.matches("baseColorFactor"):
                red, green, blue, _alpha = _parse_numbers(tokenizer, 4)
                material.base_color = (red, green, blue)
            else:
                skip_array(tokenizer, parse_object)
        else:
            if key.matches("roughnessFactor"):
                material.roughness = _scalar(value)
            elif key.matches("metallicFactor"):
                material.metalicity = _scalar(value)
            tokenizer.next()


def parse_material(tokenizer: Tokenizer, parse_object: ParseObject | None = None) -> GltfMaterial:
    parse_object = _resolve(parse_object)
    material = GltfMaterial()
    for key, value in _members(tokenizer):
        if value.type is TokenType.LBRACE:
            if key.matches("pbrMetallicRoughness"):
                _parse_pbr(tokenizer, material, parse_object)
            else:
                parse_object(tokenizer)
        elif value.type is TokenType.LBRACKET:
            skip_array(tokenizer, parse_object)
        else:
            if key.matches("name"):
                material.name = value.text()
            tokenizer.next()
    return material


def parse_texture(tokenizer: Tokenizer, parse_object: ParseObject | None = None) -> GltfTexture:
    texture = GltfTexture()
    for key, value in _scalar_members(tokenizer, _resolve(parse_object)):
        if key.matches("source"):
            texture.source = _as_int(value)
        elif key.matches("sampler"):
            texture.sampler = _as_int(value)
    return texture


def parse_sampler(tokenizer: Tokenizer, parse_object: ParseObject | None = None) -> GltfSampler:
    """Parse a sampler; any given wrap mode is treated as repeat."""
    sampler = GltfSampler()
    for key, _value in _scalar_members(tokenizer, _resolve(parse_object)):
        if key.matches("magFilter") or key.matches("minFilter"):
            continue
        if key.matches("wrapT"):
            sampler.wrap_t = WrapMode.REPEAT
        elif key.matches("wrapS"):
            sampler.wrap_s = WrapMode.REPEAT
    return sampler


def _parse_perspective(tokenizer: Tokenizer, camera: GltfCamera, parse_object: ParseObject) -> None:
    camera.aspect_ratio = 1.0
    camera.fov = math.radians(60.0)
    for key, value in _scalar_members(tokenizer, parse_object):
        if key.matches("aspectRatio"):
            camera.aspect_ratio = _scalar(value)
        elif key.matches("yfov"):
            camera.fov = _scalar(value)


def parse_camera(tokenizer: Tokenizer, parse_object: ParseObject | None = None) -> GltfCamera:
    parse_object = _resolve(parse_object)
    camera = GltfCamera()
    for key, value in _members(tokenizer):
        if value.type is TokenType.LBRACE:
            if key.matches("perspective"):
                _parse_perspective(tokenizer, camera, parse_object)
            else:
                parse_object(tokenizer)
        elif value.type is TokenType.LBRACKET:
            skip_array(tokenizer, parse_object)
        else:
            if key.matches("name"):
                camera.name = value.text()
            elif key.matches("type"):
                camera.type = CameraType.PINHOLE
            tokenizer.next()
    return camera


def parse_image(tokenizer: Tokenizer, parse_object: ParseObject | None = None) -> GltfImage:
    image = GltfImage()
    for key, value in _scalar_members(tokenizer, _resolve(parse_object)):
        if key.matches("mimeType"):
            image.mime = value.text()
        elif key.matches("name"):
            image.name = value.text()
        elif key.matches("uri"):
            image.uri = value.text()
    return image