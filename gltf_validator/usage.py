from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Iterator

from .constants import ARRAY_KINDS
from .context import ValidationContext
from .objects import texture_infos
from .values import is_integer


log = logging.getLogger(__name__)

UNUSED_KINDS = (
    "accessors",
    "buffers",
    "bufferViews",
    "cameras",
    "images",
    "materials",
    "meshes",
    "nodes",
    "samplers",
    "skins",
    "textures",
)

Reference = tuple[str, Any]


@dataclass
class UsageGraph:
    children: dict[int, list[tuple[int, int]]] = field(default_factory=dict)
    parent_map: dict[int, int] = field(default_factory=dict)
    back_edges: set[tuple[int, int]] = field(default_factory=set)
    used: dict[str, set[int]] = field(default_factory=lambda: {kind: set() for kind in ARRAY_KINDS})
    used_animation_samplers: set[tuple[int, int]] = field(default_factory=set)


def build_child_graph(ctx: ValidationContext) -> dict[int, list[tuple[int, int]]]:
    """node -> [(position in ``children``, child node)] for every resolvable child reference."""
    graph: dict[int, list[tuple[int, int]]] = {}
    for entry in ctx.registry.entries("nodes"):
        edges: list[tuple[int, int]] = []
        children = entry.obj.get("children")
        if isinstance(children, list):
            for k, child in enumerate(children):
                if ctx.registry.lookup("nodes", child) is not None:
                    edges.append((k, child))
        graph[entry.index] = edges
    return graph


def find_node_loops(ctx: ValidationContext, graph: dict[int, list[tuple[int, int]]]) -> set[tuple[int, int]]:
    """Iterative DFS over the child graph; reports and returns each back-edge as ``(parent, position)``."""
    on_path: set[int] = set()
    done: set[int] = set()
    back_edges: set[tuple[int, int]] = set()

    for root in graph:
        if root in done:
            continue
        stack: list[tuple[int, Iterator[tuple[int, int]]]] = [(root, iter(graph[root]))]
        on_path.add(root)
        while stack:
            node, edges = stack[-1]
            advanced = False
            for k, child in edges:
                if child in on_path:
                    ctx.issues.record("NODE_LOOP", f"/nodes/{node}/children/{k}")
                    back_edges.add((node, k))
                elif child not in done:
                    on_path.add(child)
                    stack.append((child, iter(graph[child])))
                    advanced = True
                    break
            if not advanced:
                stack.pop()
                on_path.discard(node)
                done.add(node)
    return back_edges


def _build_parent_map(
    ctx: ValidationContext,
    graph: dict[int, list[tuple[int, int]]],
    back_edges: set[tuple[int, int]],
) -> dict[int, int]:
    parent_map: dict[int, int] = {}
    for node, edges in graph.items():
        for k, child in edges:
            if (node, k) in back_edges:
                continue
            parent = parent_map.get(child)
            if parent is None:
                parent_map[child] = node
            elif parent != node:
                ctx.issues.record("NODE_PARENT_OVERRIDE", f"/nodes/{node}/children/{k}", child)
    return parent_map


def _check_scene_roots(ctx: ValidationContext, parent_map: dict[int, int]) -> None:
    for entry in ctx.registry.entries("scenes"):
        nodes = entry.obj.get("nodes")
        if not isinstance(nodes, list):
            continue
        for k, node in enumerate(nodes):
            if is_integer(node) and node in parent_map:
                ctx.issues.record("SCENE_NON_ROOT_NODE", f"{entry.pointer}/nodes/{k}", node)


def descendants(graph: dict[int, list[tuple[int, int]]], root: int) -> set[int]:
    seen = {root}
    stack = [root]
    while stack:
        node = stack.pop()
        for _, child in graph.get(node, ()):
            if child not in seen:
                seen.add(child)
                stack.append(child)
    return seen


def _root_of(node: int, parent_map: dict[int, int]) -> int:
    seen = {node}
    while node in parent_map:
        node = parent_map[node]
        if node in seen:
            break
        seen.add(node)
    return node


def _check_skins(ctx: ValidationContext, graph: dict[int, list[tuple[int, int]]], parent_map: dict[int, int]) -> None:
    for entry in ctx.registry.entries("skins"):
        info = entry.info
        if info is None or not info.joints:
            continue
        joints = entry.obj.get("joints", [])
        if info.skeleton is not None:
            reachable = descendants(graph, info.skeleton)
            for k, joint in enumerate(joints):
                if is_integer(joint) and ctx.registry.lookup("nodes", joint) is not None and joint not in reachable:
                    ctx.issues.record("SKIN_SKELETON_INVALID", f"{entry.pointer}/joints/{k}", joint, info.skeleton)
        elif "skeleton" not in entry.obj:
            roots = {_root_of(joint, parent_map) for joint in info.joints}
            if len(roots) > 1:
                ctx.issues.record("SKIN_NO_COMMON_ROOT", f"{entry.pointer}/joints")


def _refs_scene(obj: dict[str, Any]) -> Iterator[Reference]:
    for node in _list(obj.get("nodes")):
        yield "nodes", node


def _refs_node(obj: dict[str, Any]) -> Iterator[Reference]:
    for child in _list(obj.get("children")):
        yield "nodes", child
    yield "meshes", obj.get("mesh")
    yield "cameras", obj.get("camera")
    yield "skins", obj.get("skin")


def _refs_skin(obj: dict[str, Any]) -> Iterator[Reference]:
    for joint in _list(obj.get("joints")):
        yield "nodes", joint
    yield "nodes", obj.get("skeleton")
    yield "accessors", obj.get("inverseBindMatrices")


def _refs_mesh(obj: dict[str, Any]) -> Iterator[Reference]:
    for primitive in _list(obj.get("primitives")):
        if not isinstance(primitive, dict):
            continue
        yield from _attribute_refs(primitive.get("attributes"))
        yield "accessors", primitive.get("indices")
        yield "materials", primitive.get("material")
        for target in _list(primitive.get("targets")):
            yield from _attribute_refs(target)


def _refs_material(obj: dict[str, Any]) -> Iterator[Reference]:
    for _, texture_info in texture_infos(obj, ""):
        yield "textures", texture_info.get("index")


def _refs_texture(obj: dict[str, Any]) -> Iterator[Reference]:
    yield "images", obj.get("source")
    yield "samplers", obj.get("sampler")
    extensions = obj.get("extensions")
    if isinstance(extensions, dict):
        for extension in extensions.values():
            if isinstance(extension, dict):
                yield "images", extension.get("source")


def _refs_image(obj: dict[str, Any]) -> Iterator[Reference]:
    yield "bufferViews", obj.get("bufferView")


def _refs_accessor(obj: dict[str, Any]) -> Iterator[Reference]:
    yield "bufferViews", obj.get("bufferView")
    sparse = obj.get("sparse")
    if isinstance(sparse, dict):
        for key in ("indices", "values"):
            region = sparse.get(key)
            if isinstance(region, dict):
                yield "bufferViews", region.get("bufferView")


def _refs_buffer_view(obj: dict[str, Any]) -> Iterator[Reference]:
    yield "buffers", obj.get("buffer")


def _refs_animation(obj: dict[str, Any]) -> Iterator[Reference]:
    samplers = _list(obj.get("samplers"))
    for channel in _list(obj.get("channels")):
        if not isinstance(channel, dict):
            continue
        target = channel.get("target")
        if isinstance(target, dict):
            yield "nodes", target.get("node")
        index = channel.get("sampler")
        if is_integer(index) and 0 <= index < len(samplers) and isinstance(samplers[index], dict):
            yield "accessors", samplers[index].get("input")
            yield "accessors", samplers[index].get("output")


def _attribute_refs(attributes: Any) -> Iterator[Reference]:
    if isinstance(attributes, dict):
        for value in attributes.values():
            yield "accessors", value


def _list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


REFERENCE_WALKERS: dict[str, Callable[[dict[str, Any]], Iterable[Reference]]] = {
    "scenes": _refs_scene,
    "nodes": _refs_node,
    "skins": _refs_skin,
    "meshes": _refs_mesh,
    "materials": _refs_material,
    "textures": _refs_texture,
    "images": _refs_image,
    "accessors": _refs_accessor,
    "bufferViews": _refs_buffer_view,
    "animations": _refs_animation,
}


def compute_used(ctx: ValidationContext) -> dict[str, set[int]]:
    """Worklist traversal from every scene and animation; only reachable objects propagate usage."""
    registry = ctx.registry
    used: dict[str, set[int]] = {kind: set() for kind in ARRAY_KINDS}
    stack: list[tuple[str, int]] = []

    def mark(kind: str, value: Any) -> None:
        entry = registry.lookup(kind, value)
        if entry is None or entry.index in used[kind]:
            return
        used[kind].add(entry.index)
        stack.append((kind, entry.index))

    for seed_kind in ("scenes", "animations"):
        for entry in registry.entries(seed_kind):
            mark(seed_kind, entry.index)

    while stack:
        kind, index = stack.pop()
        walker = REFERENCE_WALKERS.get(kind)
        obj = registry.lookup(kind, index).obj
        if walker is None or not obj:
            continue
        for ref_kind, value in walker(obj):
            mark(ref_kind, value)
    return used


def _used_animation_samplers(ctx: ValidationContext) -> set[tuple[int, int]]:
    used: set[tuple[int, int]] = set()
    for entry in ctx.registry.entries("animations"):
        samplers = _list(entry.obj.get("samplers"))
        for channel in _list(entry.obj.get("channels")):
            if isinstance(channel, dict):
                index = channel.get("sampler")
                if is_integer(index) and 0 <= index < len(samplers):
                    used.add((entry.index, index))
    return used


def _report_unused(ctx: ValidationContext, graph: UsageGraph) -> None:
    for entry in ctx.registry.entries("animations"):
        for k, sampler in enumerate(_list(entry.obj.get("samplers"))):
            if isinstance(sampler, dict) and (entry.index, k) not in graph.used_animation_samplers:
                ctx.issues.record("UNUSED_OBJECT", f"{entry.pointer}/samplers/{k}")

    for kind in UNUSED_KINDS:
        for entry in ctx.registry.entries(kind):
            if isinstance(entry.value, dict) and entry.index not in graph.used[kind]:
                ctx.issues.record("UNUSED_OBJECT", entry.pointer)


def track_usage(ctx: ValidationContext) -> UsageGraph:
    graph = UsageGraph()
    graph.children = build_child_graph(ctx)
    graph.back_edges = find_node_loops(ctx, graph.children)
    graph.parent_map = _build_parent_map(ctx, graph.children, graph.back_edges)
    _check_scene_roots(ctx, graph.parent_map)
    _check_skins(ctx, graph.children, graph.parent_map)

    graph.used = compute_used(ctx)
    graph.used_animation_samplers = _used_animation_samplers(ctx)
    _report_unused(ctx, graph)
    log.debug(
        "usage: %s",
        ", ".join(f"{kind}={len(graph.used[kind])}/{ctx.registry.length(kind)}" for kind in UNUSED_KINDS),
    )
    return graph
