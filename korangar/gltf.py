"""Reading of glTF documents into their element lists."""

from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from .gltf_elements import (
    GltfAccessor,
    GltfBuffer,
    GltfBufferView,
    GltfCamera,
    GltfImage,
    GltfMaterial,
    GltfMesh,
    GltfNode,
    GltfSampler,
    GltfTexture,
    parse_accessor,
    parse_buffer,
    parse_buffer_view,
    parse_camera,
    parse_image,
    parse_mesh,
    parse_node,
    parse_sampler,
    parse_texture,
    skip_array,
)
from .tokens import Token, TokenError, Tokenizer, TokenType

__all__ = ["GltfError", "GltfDocument", "parse_gltf", "load_gltf"]


class GltfError(ValueError):
    """Raised when a glTF document refers to elements it does not hold."""


@dataclass
class GltfDocument:
    """Every element list found in a glTF document."""

    buffers: list[GltfBuffer] = field(default_factory=list)
    buffer_views: list[GltfBufferView] = field(default_factory=list)
    accessors: list[GltfAccessor] = field(default_factory=list)
    cameras: list[GltfCamera] = field(default_factory=list)
    meshes: list[GltfMesh] = field(default_factory=list)
    nodes: list[GltfNode] = field(default_factory=list)
    images: list[GltfImage] = field(default_factory=list)
    textures: list[GltfTexture] = field(default_factory=list)
    samplers: list[GltfSampler] = field(default_factory=list)
    materials: list[GltfMaterial] = field(default_factory=list)
    base_path: Path = field(default_factory=lambda: Path("."))


def _advance(tokenizer: Tokenizer) -> Token:
    token = tokenizer.next()
    if token.type is TokenType.EOS:
        raise TokenError("unexpected end of glTF text")
    return token


class _DocumentParser:
    """Walks the document, collecting element lists wherever they appear."""

    def __init__(self, document: GltfDocument) -> None:
        self.document = document
        doc = document
        # Checked in order; a key matches when it is a prefix of the name.
        # Materials are deliberately passed over.
        self._arrays: list[tuple[str, Callable[[Tokenizer], None]]] = [
            ("buffers", lambda t: self._collect(t, doc.buffers, parse_buffer)),
            ("bufferViews", lambda t: self._collect(t, doc.buffer_views, parse_buffer_view)),
            ("accessors", lambda t: self._collect(t, doc.accessors, self._with_objects(parse_accessor))),
            ("meshes", lambda t: self._collect(t, doc.meshes, self._with_objects(parse_mesh))),
            ("images", lambda t: self._collect(t, doc.images, self._with_objects(parse_image))),
            ("textures", lambda t: self._collect(t, doc.textures, self._with_objects(parse_texture))),
            ("samplers", lambda t: self._collect(t, doc.samplers, self._with_objects(parse_sampler))),
            ("materials", lambda t: skip_array(t, self.parse_object)),
            ("nodes", lambda t: self._collect(t, doc.nodes, self._with_objects(parse_node))),
            ("cameras", lambda t: self._collect(t, doc.cameras, self._with_objects(parse_camera))),
        ]

    def _with_objects(self, parse):
        return lambda tokenizer: parse(tokenizer, self.parse_object)

    def _collect(self, tokenizer: Tokenizer, target: list, parse_element) -> None:
        while tokenizer.token.type is not TokenType.RBRACKET:
            token = _advance(tokenizer)
            if token.type is TokenType.RBRACKET:
                break
            if token.type is TokenType.LBRACE:
                target.append(parse_element(tokenizer))
            elif token.type is TokenType.LBRACKET:
                skip_array(tokenizer, self.parse_object)
            else:
                tokenizer.next()
        tokenizer.next()

    def _parse_array_member(self, key: Token, tokenizer: Tokenizer) -> None:
        for name, handler in self._arrays:
            if key.matches(name):
                handler(tokenizer)
                return
        skip_array(tokenizer, self.parse_object)

    def parse_object(self, tokenizer: Tokenizer) -> None:
        while tokenizer.token.type is not TokenType.RBRACE:
            key = _advance(tokenizer)
            if key.type is TokenType.RBRACE:
                break
            _advance(tokenizer)
            value = _advance(tokenizer)
            if value.type is TokenType.LBRACKET:
                self._parse_array_member(key, tokenizer)
            elif value.type is TokenType.LBRACE:
                self.parse_object(tokenizer)
            else:
                tokenizer.next()
        tokenizer.next()


def _link_nodes(document: GltfDocument) -> None:
    nodes = document.nodes
    for index, node in enumerate(nodes):
        for child in node.children:
            if not 0 <= child < len(nodes):
                raise GltfError(f"node {index} names missing child {child}")
            nodes[child].parent = index
    for index, node in enumerate(nodes):
        if node.camera < 0:
            continue
        if node.camera >= len(document.cameras):
            raise GltfError(f"node {index} names missing camera {node.camera}")
        document.cameras[node.camera].node = index


def _load_buffers(document: GltfDocument) -> None:
    for buffer in document.buffers:
        if buffer.uri is None:
            continue
        try:
            with open(document.base_path / buffer.uri, "rb") as stream:
                buffer.data = stream.read(buffer.byte_length)
        except OSError:
            continue


def parse_gltf(content: str, base_path: str | os.PathLike[str] = ".") -> GltfDocument:
    """Parse glTF text; buffer files are looked up relative to ``base_path``.

    Buffers whose files cannot be opened are left without data.
    """
    tokenizer = Tokenizer(content)
    first = tokenizer.next()
    if first.type is not TokenType.LBRACE:
        raise TokenError(f"glTF text must start with an object, found {first.type.name}")
    document = GltfDocument(base_path=Path(base_path))
    _DocumentParser(document).parse_object(tokenizer)
    _link_nodes(document)
    _load_buffers(document)
    return document


def load_gltf(path: str | os.PathLike[str]) -> GltfDocument:
    """Read and parse a glTF file, loading buffers from its directory."""
    file_path = Path(os.path.normpath(os.fspath(path)))
    content = file_path.read_text(encoding="utf-8")
    return parse_gltf(content, file_path.parent)