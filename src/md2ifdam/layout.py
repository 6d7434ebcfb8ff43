"""Assign centre coordinates to nodes and edge labels and route edges.

Graphviz ``dot`` is used when it is on ``PATH``; otherwise a small layered
layout places nodes rank by rank and routes edges as straight segments.
Every labelled edge is laid out as a sized box between its endpoints so
that labels never overlap nodes.
"""
from __future__ import annotations

import logging
import shlex
import shutil
import subprocess
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Deque, Dict, List, Optional, Set, Tuple

from .errors import LayoutError
from .graph import Edge, Graph, Point

logger = logging.getLogger(__name__)

PX_PER_INCH = 96.0
SELF_LOOP_REACH = 20.0
VALID_RANK_DIRS = {"TB", "BT", "LR", "RL"}


@dataclass
class _Box:
    name: str
    width: float
    height: float
    cx: float = 0.0
    cy: float = 0.0

    @property
    def bbox(self) -> Tuple[float, float, float, float]:
        return (
            self.cx - self.width / 2.0,
            self.cy - self.height / 2.0,
            self.cx + self.width / 2.0,
            self.cy + self.height / 2.0,
        )


@dataclass
class _Plan:
    """Layout input: one box per node, placeholder and edge label."""

    boxes: Dict[str, _Box]
    node_names: Dict[str, str]
    label_names: Dict[int, str]
    links: List[Tuple[str, str]]


def layout_graph(graph: Graph) -> None:
    """Set ``x``/``y`` on nodes and labelled edges, ``points`` on all edges."""
    rank_dir = (graph.config.rank_dir or "TB").strip().upper()
    if rank_dir not in VALID_RANK_DIRS:
        raise LayoutError(f'invalid rank direction "{graph.config.rank_dir}"', code="E_GRAPH_ARGS")
    plan = _plan(graph)
    dot_path = shutil.which("dot")
    if dot_path:
        logger.debug("laying out %d boxes with %s", len(plan.boxes), dot_path)
        _layout_with_graphviz(dot_path, graph, plan, rank_dir)
    else:
        logger.debug("Graphviz not found, using the built-in layered layout")
        _layout_layered(graph, plan, rank_dir)
    _translate_graph(graph, plan)


def _plan(graph: Graph) -> _Plan:
    boxes: Dict[str, _Box] = {}
    node_names: Dict[str, str] = {}
    for idx, node in enumerate(graph.nodes()):
        name = f"n{idx}"
        node_names[node.id] = name
        boxes[name] = _Box(name, float(node.width or 0.0), float(node.height or 0.0))

    links: List[Tuple[str, str]] = []
    label_names: Dict[int, str] = {}
    for idx, edge in enumerate(graph.edges()):
        for endpoint in (edge.v, edge.w):
            if endpoint not in node_names:
                logger.warning('edge "%s" points at "%s", which is not a heading', edge.name, endpoint)
                name = f"p{len(node_names)}"
                node_names[endpoint] = name
                boxes[name] = _Box(name, 0.0, 0.0)
        tail = node_names[edge.v]
        head = node_names[edge.w]
        if edge.label and tail != head:
            label = f"l{idx}"
            label_names[idx] = label
            boxes[label] = _Box(label, float(edge.width or 0.0), float(edge.height or 0.0))
            links.append((tail, label))
            links.append((label, head))
        else:
            links.append((tail, head))
    return _Plan(boxes=boxes, node_names=node_names, label_names=label_names, links=links)


def _apply_plan(graph: Graph, plan: _Plan, routes: Dict[Tuple[str, str], Deque[List[Point]]]) -> None:
    for node in graph.nodes():
        box = plan.boxes[plan.node_names[node.id]]
        node.x, node.y = box.cx, box.cy

    for idx, edge in enumerate(graph.edges()):
        tail = plan.node_names[edge.v]
        head = plan.node_names[edge.w]
        label = plan.label_names.get(idx)
        if label is not None:
            points = _take_route(routes, tail, label) + _take_route(routes, label, head)
            box = plan.boxes[label]
            edge.x, edge.y = box.cx, box.cy
        else:
            points = _take_route(routes, tail, head)
            if edge.label:
                edge.x, edge.y = _self_loop_label(points, edge)
        edge.points = points


def _take_route(routes: Dict[Tuple[str, str], Deque[List[Point]]], tail: str, head: str) -> List[Point]:
    queue = routes.get((tail, head))
    if not queue:
        raise LayoutError(
            f"layout output has no route from {tail} to {head}",
            code="E_GRAPH_LAYOUT_PARSE",
        )
    return queue.popleft()


def _self_loop_label(points: List[Point], edge: Edge) -> Point:
    x = max(px for px, _ in points) + float(edge.width or 0.0) / 2.0
    y = sum(py for _, py in points) / len(points)
    return x, y


# Graphviz ------------------------------------------------------------------


def _layout_with_graphviz(dot_path: str, graph: Graph, plan: _Plan, rank_dir: str) -> None:
    dot_text = build_graphviz_dot(graph, plan, rank_dir)
    try:
        proc = subprocess.run(
            [dot_path, "-Tplain"],
            input=dot_text,
            text=True,
            capture_output=True,
            check=False,
            timeout=10.0,
        )
    except subprocess.TimeoutExpired as exc:
        raise LayoutError("graph layout timed out") from exc
    except OSError as exc:
        raise LayoutError(f"failed to execute Graphviz: {exc}") from exc
    if proc.returncode != 0:
        detail = (proc.stderr or "").strip()
        if len(detail) > 240:
            detail = detail[:240] + "..."
        raise LayoutError(f"Graphviz failed: {detail or 'unknown error'}")
    routes = parse_graphviz_plain(proc.stdout, plan)
    _apply_plan(graph, plan, routes)


def build_graphviz_dot(graph: Graph, plan: _Plan, rank_dir: str) -> str:
    config = graph.config
    rank_sep = config.rank_sep / 2.0 if plan.label_names else config.rank_sep
    nodesep_in = max(0.02, config.node_sep / PX_PER_INCH)
    ranksep_in = max(0.02, rank_sep / PX_PER_INCH)
    lines: List[str] = ["digraph G {"]
    lines.append(
        f'  graph [rankdir="{rank_dir}", nodesep="{nodesep_in:.4f}", '
        f'ranksep="{ranksep_in:.4f}", splines="spline"];'
    )
    lines.append('  node [shape="box", fixedsize="true", margin="0", label=""];')
    lines.append('  edge [arrowhead="none"];')
    for box in plan.boxes.values():
        width_in = max(0.01, box.width / PX_PER_INCH)
        height_in = max(0.01, box.height / PX_PER_INCH)
        lines.append(f'  {box.name} [width="{width_in:.4f}", height="{height_in:.4f}"];')
    for tail, head in plan.links:
        lines.append(f"  {tail} -> {head};")
    lines.append("}")
    return "\n".join(lines)


def parse_graphviz_plain(plain_text: str, plan: _Plan) -> Dict[Tuple[str, str], Deque[List[Point]]]:
    """Read ``dot -Tplain`` output into box centres and per-link routes."""
    lines = [ln.strip() for ln in plain_text.splitlines() if ln.strip()]
    if not lines or not lines[0].startswith("graph "):
        raise LayoutError("unexpected Graphviz plain output: missing graph header", code="E_GRAPH_LAYOUT_PARSE")
    header = shlex.split(lines[0])
    try:
        graph_height_in = float(header[3])
    except (IndexError, ValueError) as exc:
        raise LayoutError(
            "unexpected Graphviz plain output: invalid graph dimensions", code="E_GRAPH_LAYOUT_PARSE"
        ) from exc

    def _point(x_raw: str, y_raw: str) -> Point:
        return float(x_raw) * PX_PER_INCH, (graph_height_in - float(y_raw)) * PX_PER_INCH

    routes: Dict[Tuple[str, str], Deque[List[Point]]] = defaultdict(deque)
    for line in lines[1:]:
        if line == "stop":
            break
        parts = shlex.split(line)
        if not parts:
            continue
        try:
            if parts[0] == "node":
                box = plan.boxes.get(parts[1])
                if box is not None:
                    box.cx, box.cy = _point(parts[2], parts[3])
            elif parts[0] == "edge":
                count = int(parts[3])
                coords = parts[4 : 4 + 2 * count]
                if len(coords) < 2 * count:
                    raise LayoutError(
                        "unexpected Graphviz plain output: truncated edge points",
                        code="E_GRAPH_LAYOUT_PARSE",
                    )
                points = [_point(coords[i], coords[i + 1]) for i in range(0, len(coords), 2)]
                routes[(parts[1], parts[2])].append(points)
        except LayoutError:
            raise
        except (IndexError, ValueError) as exc:
            raise LayoutError(
                f"unexpected Graphviz plain output: malformed line {line!r}",
                code="E_GRAPH_LAYOUT_PARSE",
            ) from exc
    return routes


# Built-in layered layout ---------------------------------------------------


def _layout_layered(graph: Graph, plan: _Plan, rank_dir: str) -> None:
    config = graph.config
    label_names = set(plan.label_names.values())
    order = [name for name in plan.boxes if name not in label_names]
    order_index = {name: idx for idx, name in enumerate(order)}
    # Labels sit between the ranks of their endpoints; make room for them.
    label_extent = 0.0
    for name in label_names:
        box = plan.boxes[name]
        label_extent = max(label_extent, box.height if rank_dir in {"TB", "BT"} else box.width)
    rank_gap = config.rank_sep + label_extent

    edges = _collapse_label_links(plan.links, label_names)
    outgoing: Dict[str, List[Tuple[str, str]]] = {name: [] for name in order}
    for tail, head in edges:
        if tail != head:
            outgoing[tail].append((tail, head))

    reversed_edges: Set[Tuple[str, str]] = set()
    state: Dict[str, int] = {name: 0 for name in order}

    def _dfs(name: str) -> None:
        state[name] = 1
        for edge in outgoing[name]:
            target = edge[1]
            if state[target] == 0:
                _dfs(target)
            elif state[target] == 1:
                reversed_edges.add(edge)
        state[name] = 2

    for name in order:
        if state[name] == 0:
            _dfs(name)

    dag_outgoing: Dict[str, List[str]] = {name: [] for name in order}
    dag_edges: List[Tuple[str, str]] = []
    indegree: Dict[str, int] = {name: 0 for name in order}
    for tail, head in edges:
        if tail == head:
            continue
        u, v = (head, tail) if (tail, head) in reversed_edges else (tail, head)
        dag_edges.append((u, v))
        dag_outgoing[u].append(v)
        indegree[v] += 1

    queue: Deque[str] = deque(name for name in order if indegree[name] == 0)
    topo: List[str] = []
    while queue:
        u = queue.popleft()
        topo.append(u)
        for v in dag_outgoing[u]:
            indegree[v] -= 1
            if indegree[v] == 0:
                queue.append(v)
    if len(topo) != len(order):
        topo = order[:]

    rank: Dict[str, int] = {name: 0 for name in order}
    for u in topo:
        for v in dag_outgoing[u]:
            rank[v] = max(rank[v], rank[u] + 1)

    rank_to_names: Dict[int, List[str]] = {}
    for name in order:
        rank_to_names.setdefault(rank[name], []).append(name)
    max_rank = max(rank_to_names.keys(), default=0)

    for r in range(1, max_rank + 1):
        members = rank_to_names.get(r, [])
        if not members:
            continue
        prev_pos: Dict[str, int] = {}
        for pr in range(0, r):
            for idx, name in enumerate(rank_to_names.get(pr, [])):
                prev_pos.setdefault(name, idx)
        median_by_name: Dict[str, float] = {}
        for name in members:
            preds = sorted(prev_pos.get(u, order_index[u]) for (u, v) in dag_edges if v == name and rank[u] < r)
            if not preds:
                median_by_name[name] = float("inf")
                continue
            mid = len(preds) // 2
            median_by_name[name] = float(preds[mid]) if len(preds) % 2 else 0.5 * (preds[mid - 1] + preds[mid])
        rank_to_names[r] = sorted(members, key=lambda name: (median_by_name[name], order_index[name]))

    vertical = rank_dir in {"TB", "BT"}

    def _cross(box: _Box) -> float:
        return box.width if vertical else box.height

    def _main(box: _Box) -> float:
        return box.height if vertical else box.width

    spans: Dict[int, float] = {}
    depths: Dict[int, float] = {}
    for r in range(0, max_rank + 1):
        members = [plan.boxes[name] for name in rank_to_names.get(r, [])]
        span = sum(_cross(box) for box in members)
        if members:
            span += config.node_sep * (len(members) - 1)
        spans[r] = span
        depths[r] = max((_main(box) for box in members), default=0.0)
    widest = max(spans.values(), default=0.0)

    main_cursor = 0.0
    for r in range(0, max_rank + 1):
        cross_cursor = (widest - spans[r]) / 2.0
        for name in rank_to_names.get(r, []):
            box = plan.boxes[name]
            cross = cross_cursor + _cross(box) / 2.0
            main = main_cursor + depths[r] / 2.0
            if rank_dir in {"BT", "RL"}:
                main = -main
            box.cx, box.cy = (cross, main) if vertical else (main, cross)
            cross_cursor += _cross(box) + config.node_sep
        main_cursor += depths[r] + rank_gap

    routes: Dict[Tuple[str, str], Deque[List[Point]]] = defaultdict(deque)
    for tail, head in plan.links:
        if head in label_names:
            continue
        if tail in label_names:
            source = next(t for t, h in plan.links if h == tail)
            _route_through_label(routes, plan, source, tail, head)
            continue
        routes[(tail, head)].append(_straight_route(plan.boxes[tail], plan.boxes[head]))
    _apply_plan(graph, plan, routes)


def _collapse_label_links(links: List[Tuple[str, str]], label_names: Set[str]) -> List[Tuple[str, str]]:
    source_of: Dict[str, str] = {}
    edges: List[Tuple[str, str]] = []
    for tail, head in links:
        if head in label_names:
            source_of[head] = tail
        elif tail in label_names:
            edges.append((source_of[tail], head))
        else:
            edges.append((tail, head))
    return edges


def _route_through_label(
    routes: Dict[Tuple[str, str], Deque[List[Point]]],
    plan: _Plan,
    tail: str,
    label: str,
    head: str,
) -> None:
    start_box = plan.boxes[tail]
    end_box = plan.boxes[head]
    label_box = plan.boxes[label]
    route = _straight_route(start_box, end_box)
    mid = ((route[0][0] + route[-1][0]) / 2.0, (route[0][1] + route[-1][1]) / 2.0)
    label_box.cx, label_box.cy = mid
    routes[(tail, label)].append([route[0], mid])
    routes[(label, head)].append([mid, route[-1]])


def _straight_route(start: _Box, end: _Box) -> List[Point]:
    if start is end:
        left, top, right, bottom = start.bbox
        return [
            (right, start.cy - start.height / 4.0),
            (right + SELF_LOOP_REACH, start.cy),
            (right, start.cy + start.height / 4.0),
        ]
    p_from = _ray_rect_intersection((start.cx, start.cy), (end.cx, end.cy), start.bbox) or (start.cx, start.cy)
    p_to = _ray_rect_intersection((end.cx, end.cy), (start.cx, start.cy), end.bbox) or (end.cx, end.cy)
    mid = ((p_from[0] + p_to[0]) / 2.0, (p_from[1] + p_to[1]) / 2.0)
    return [p_from, mid, p_to]


def _ray_rect_intersection(
    origin: Point,
    toward: Point,
    bbox: Tuple[float, float, float, float],
) -> Optional[Point]:
    ox, oy = origin
    tx, ty = toward
    dx = tx - ox
    dy = ty - oy
    if abs(dx) < 1e-12 and abs(dy) < 1e-12:
        return None

    left, top, right, bottom = bbox
    candidates: List[Tuple[float, float, float]] = []
    if abs(dx) > 1e-12:
        for x in (left, right):
            t = (x - ox) / dx
            if t <= 1e-12:
                continue
            y = oy + t * dy
            if top - 1e-9 <= y <= bottom + 1e-9:
                candidates.append((t, x, y))
    if abs(dy) > 1e-12:
        for y in (top, bottom):
            t = (y - oy) / dy
            if t <= 1e-12:
                continue
            x = ox + t * dx
            if left - 1e-9 <= x <= right + 1e-9:
                candidates.append((t, x, y))
    if not candidates:
        return None
    _, x, y = min(candidates, key=lambda item: item[0])
    return (x, y)


# Translation ----------------------------------------------------------------


def _translate_graph(graph: Graph, plan: _Plan) -> None:
    """Shift everything so the drawing starts at the configured margins."""
    config = graph.config
    xs: List[float] = []
    ys: List[float] = []
    for box in plan.boxes.values():
        left, top, right, bottom = box.bbox
        xs.extend((left, right))
        ys.extend((top, bottom))
    for edge in graph.edges():
        for px, py in edge.points:
            xs.append(px)
            ys.append(py)
        if edge.x is not None and edge.y is not None:
            half_w = float(edge.width or 0.0) / 2.0
            half_h = float(edge.height or 0.0) / 2.0
            xs.extend((edge.x - half_w, edge.x + half_w))
            ys.extend((edge.y - half_h, edge.y + half_h))
    if not xs:
        graph.width = 2 * config.margin_x
        graph.height = 2 * config.margin_y
        return

    min_x, max_x = min(xs), max(xs)
    min_y, max_y = min(ys), max(ys)
    dx = config.margin_x - min_x
    dy = config.margin_y - min_y
    for node in graph.nodes():
        node.x = (node.x or 0.0) + dx
        node.y = (node.y or 0.0) + dy
    for edge in graph.edges():
        if edge.x is not None and edge.y is not None:
            edge.x += dx
            edge.y += dy
        edge.points = [(px + dx, py + dy) for px, py in edge.points]
    graph.width = max_x - min_x + 2 * config.margin_x
    graph.height = max_y - min_y + 2 * config.margin_y
