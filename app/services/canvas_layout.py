from __future__ import annotations

from typing import Any, Iterable, Mapping

from app.db.enums import CanvasNodeTypeEnum

NODE_DIMENSIONS = {
    CanvasNodeTypeEnum.product.value: (200.0, 120.0),
    "video": (200.0, 120.0),
}
DEFAULT_NODE_DIMENSIONS = (150.0, 50.0)
NODE_SPACING = 20.0
SEARCH_STEP = 30.0
MAX_SEARCH_DISTANCE = 9
FALLBACK_OFFSET = (200.0, 100.0)

# +x, -x, +y, -y, then the four diagonals.
_DIRECTIONS = ((1, 0), (-1, 0), (0, 1), (0, -1), (1, 1), (-1, -1), (1, -1), (-1, 1))


def node_dimensions(node_type: Any) -> tuple[float, float]:
    key = getattr(node_type, "value", node_type)
    return NODE_DIMENSIONS.get(key, DEFAULT_NODE_DIMENSIONS)


def _overlaps(
    x: float, y: float, size: tuple[float, float], other_x: float, other_y: float, other_size: tuple[float, float]
) -> bool:
    width, height = size
    other_width, other_height = other_size
    return not (
        x + width + NODE_SPACING <= other_x
        or other_x + other_width + NODE_SPACING <= x
        or y + height + NODE_SPACING <= other_y
        or other_y + other_height + NODE_SPACING <= y
    )


def is_position_free(position: Mapping[str, float], node_type: Any, nodes: Iterable[Mapping[str, Any]]) -> bool:
    size = node_dimensions(node_type)
    x, y = float(position["x"]), float(position["y"])
    for node in nodes:
        other = node.get("position") or {}
        if "x" not in other or "y" not in other:
            continue
        if _overlaps(x, y, size, float(other["x"]), float(other["y"]), node_dimensions(node.get("type"))):
            return False
    return True


def find_non_overlapping_position(
    desired: Mapping[str, float], node_type: Any, nodes: Iterable[Mapping[str, Any]]
) -> dict[str, float]:
    """
    Nearest free spot to `desired` for a node of `node_type` among existing `nodes`.

    Candidates are tried outward in steps of SEARCH_STEP. When nothing within
    MAX_SEARCH_DISTANCE steps is free the result is a fixed offset from `desired`.
    """
    existing = list(nodes)
    x, y = float(desired["x"]), float(desired["y"])
    if is_position_free({"x": x, "y": y}, node_type, existing):
        return {"x": x, "y": y}

    for distance in range(1, MAX_SEARCH_DISTANCE + 1):
        offset = distance * SEARCH_STEP
        for dx, dy in _DIRECTIONS:
            candidate = {"x": x + dx * offset, "y": y + dy * offset}
            if is_position_free(candidate, node_type, existing):
                return candidate

    return {"x": x + FALLBACK_OFFSET[0], "y": y + FALLBACK_OFFSET[1]}
