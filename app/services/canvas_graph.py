from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Optional, Sequence

from pydantic import ValidationError

from app.db.enums import CanvasNodeTypeEnum
from app.schemas.canvas import DEFAULT_VIEWPORT, NODE_DATA_MODELS

if TYPE_CHECKING:
    from app.db.models import Agent, CanvasBrandKit, Product, ProjectCanvas

logger = logging.getLogger(__name__)

PRODUCT_NODE_PREFIX = "video_"
AGENT_NODE_PREFIX = "agent_"
BRAND_KIT_NODE_PREFIX = "brandkit_"

_VALID_EDGE_TYPES = {
    (CanvasNodeTypeEnum.product, CanvasNodeTypeEnum.agent),
    (CanvasNodeTypeEnum.agent, CanvasNodeTypeEnum.agent),
    (CanvasNodeTypeEnum.product, CanvasNodeTypeEnum.brand_kit),
}


class CanvasGraphError(ValueError):
    """Raised when a submitted canvas contains an edge or node the graph cannot hold."""


@dataclass(frozen=True)
class NodeRef:
    node_type: CanvasNodeTypeEnum
    entity_id: str
    agent_type: Optional[str] = None


def product_node_id(product_id: Any) -> str:
    return f"{PRODUCT_NODE_PREFIX}{product_id}"


def agent_node_id(agent_type: Any, agent_id: Any) -> str:
    return f"{AGENT_NODE_PREFIX}{getattr(agent_type, 'value', agent_type)}_{agent_id}"


def brand_kit_node_id(brand_kit_id: Any) -> str:
    return f"{BRAND_KIT_NODE_PREFIX}{brand_kit_id}"


def edge_id(source: str, target: str) -> str:
    return f"e{source}-{target}"


def parse_node_id(node_id: str) -> Optional[NodeRef]:
    if node_id.startswith(PRODUCT_NODE_PREFIX):
        return NodeRef(CanvasNodeTypeEnum.product, node_id[len(PRODUCT_NODE_PREFIX) :])
    if node_id.startswith(BRAND_KIT_NODE_PREFIX):
        return NodeRef(CanvasNodeTypeEnum.brand_kit, node_id[len(BRAND_KIT_NODE_PREFIX) :])
    if node_id.startswith(AGENT_NODE_PREFIX):
        agent_type, sep, entity_id = node_id[len(AGENT_NODE_PREFIX) :].rpartition("_")
        if not sep or not agent_type or not entity_id:
            return None
        return NodeRef(CanvasNodeTypeEnum.agent, entity_id, agent_type)
    return None


def is_valid_edge(source_type: Any, target_type: Any) -> bool:
    try:
        pair = (CanvasNodeTypeEnum(source_type), CanvasNodeTypeEnum(target_type))
    except ValueError:
        return False
    return pair in _VALID_EDGE_TYPES


def agent_nicknames(agents: Sequence[Agent]) -> dict[str, str]:
    """TITLE_AGENT, TITLE_AGENT_2, ... counted per type in the given (creation) order."""
    counts: dict[str, int] = {}
    nicknames: dict[str, str] = {}
    for agent in agents:
        type_value = getattr(agent.type, "value", agent.type)
        counts[type_value] = counts.get(type_value, 0) + 1
        base = f"{type_value.upper()}_AGENT"
        nicknames[str(agent.id)] = base if counts[type_value] == 1 else f"{base}_{counts[type_value]}"
    return nicknames


def _drop_none(data: Mapping[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in data.items() if value is not None}


def _product_image_url(product: Product) -> Optional[str]:
    for image in product.product_images or []:
        if image.get("url"):
            return image["url"]
    return None


def product_node_data(product: Product) -> dict[str, Any]:
    return _drop_none(
        {
            "productId": str(product.id),
            "title": product.title,
            "imageUrl": _product_image_url(product),
            "productName": product.product_name,
            "keyFeatures": product.key_features,
            "targetKeywords": product.target_keywords,
            "targetAudience": product.target_audience,
            "customTargetAudience": product.custom_target_audience,
            "productCategory": product.product_category,
        }
    )


def agent_node_data(agent: Agent, *, nickname: str) -> dict[str, Any]:
    # Chat history is read from the agent row, never from canvas state.
    return _drop_none(
        {
            "agentId": str(agent.id),
            "type": agent.type.value,
            "draft": agent.draft or "",
            "status": agent.status.value,
            "imageUrl": agent.image_url,
            "nickname": nickname,
        }
    )


def brand_kit_node_data(brand_kit: CanvasBrandKit) -> dict[str, Any]:
    return {
        "brandKitId": str(brand_kit.id),
        "brandName": brand_kit.brand_name,
        "brandVoice": brand_kit.brand_voice,
        "colorPalette": brand_kit.color_palette,
    }


def _node(node_id: str, node_type: CanvasNodeTypeEnum, position: Mapping[str, Any], data: dict) -> dict:
    return {
        "id": node_id,
        "type": node_type.value,
        "position": {"x": float(position["x"]), "y": float(position["y"])},
        "data": data,
    }


def _connection_edges(
    agent: Agent, *, product_nodes: Mapping[str, str], agent_nodes: Mapping[str, str]
) -> list[dict[str, Any]]:
    target = agent_node_id(agent.type, agent.id)
    edges: list[dict[str, Any]] = []
    for connection_id in agent.connections or []:
        source = product_nodes.get(str(connection_id)) or agent_nodes.get(str(connection_id))
        if source is None:
            logger.debug(
                "Dropping unresolved agent connection",
                extra={"agent_id": str(agent.id), "connection_id": connection_id},
            )
            continue
        edges.append({"id": edge_id(source, target), "source": source, "target": target})
    return edges


def reconcile_canvas(
    *,
    products: Sequence[Product],
    agents: Sequence[Agent],
    brand_kit: Optional[CanvasBrandKit],
    canvas: Optional[ProjectCanvas],
) -> dict[str, Any]:
    """
    Merge the stored canvas snapshot with the live entities of a project.

    Every live product, agent and brand kit gets a node. Its position comes from the
    saved node with the same id, falling back to the entity's own canvas_position.
    Saved edges are kept verbatim when both ends are live and the type pair is valid.
    Agents without a saved node (or every agent, when no edges were ever saved) get
    their edges rebuilt from `connections`. The first product is then linked to the
    brand kit exactly once.
    """
    saved_nodes = {node.get("id"): node for node in (canvas.nodes if canvas else []) or []}
    saved_edges = list(canvas.edges or []) if canvas else []

    def position_for(node_id: str, fallback: Mapping[str, Any]) -> Mapping[str, Any]:
        saved = saved_nodes.get(node_id) or {}
        position = saved.get("position") or {}
        if "x" in position and "y" in position:
            return position
        return fallback or {"x": 0.0, "y": 0.0}

    nodes: list[dict[str, Any]] = []
    node_types: dict[str, CanvasNodeTypeEnum] = {}

    product_nodes: dict[str, str] = {}
    for product in products:
        node_id = product_node_id(product.id)
        product_nodes[str(product.id)] = node_id
        node_types[node_id] = CanvasNodeTypeEnum.product
        nodes.append(
            _node(
                node_id,
                CanvasNodeTypeEnum.product,
                position_for(node_id, product.canvas_position),
                product_node_data(product),
            )
        )

    nicknames = agent_nicknames(agents)
    agent_nodes: dict[str, str] = {}
    for agent in agents:
        node_id = agent_node_id(agent.type, agent.id)
        agent_nodes[str(agent.id)] = node_id
        node_types[node_id] = CanvasNodeTypeEnum.agent
        nodes.append(
            _node(
                node_id,
                CanvasNodeTypeEnum.agent,
                position_for(node_id, agent.canvas_position),
                agent_node_data(agent, nickname=nicknames[str(agent.id)]),
            )
        )

    kit_node_id: Optional[str] = None
    if brand_kit is not None:
        kit_node_id = brand_kit_node_id(brand_kit.id)
        node_types[kit_node_id] = CanvasNodeTypeEnum.brand_kit
        nodes.append(
            _node(
                kit_node_id,
                CanvasNodeTypeEnum.brand_kit,
                position_for(kit_node_id, brand_kit.canvas_position),
                brand_kit_node_data(brand_kit),
            )
        )

    edges: list[dict[str, Any]] = []
    seen: set[tuple[str, str]] = set()
    if saved_edges:
        for edge in saved_edges:
            source_type = node_types.get(edge.get("source"))
            target_type = node_types.get(edge.get("target"))
            if source_type is None or target_type is None:
                continue
            if not is_valid_edge(source_type, target_type):
                continue
            if (edge["source"], edge["target"]) in seen:
                continue
            seen.add((edge["source"], edge["target"]))
            edges.append(dict(edge))
        rebuild_for = [agent for agent in agents if agent_nodes[str(agent.id)] not in saved_nodes]
    else:
        rebuild_for = list(agents)

    for agent in rebuild_for:
        for edge in _connection_edges(agent, product_nodes=product_nodes, agent_nodes=agent_nodes):
            if (edge["source"], edge["target"]) in seen:
                continue
            seen.add((edge["source"], edge["target"]))
            edges.append(edge)

    if kit_node_id is not None and products:
        first_product = product_nodes[str(products[0].id)]
        if (first_product, kit_node_id) not in seen:
            edges.append(
                {"id": edge_id(first_product, kit_node_id), "source": first_product, "target": kit_node_id}
            )

    viewport = (canvas.viewport if canvas else None) or dict(DEFAULT_VIEWPORT)
    return {"nodes": nodes, "edges": edges, "viewport": viewport}


def normalize_nodes(nodes: Iterable[Any]) -> list[dict[str, Any]]:
    """Validate node data against its typed model and drop unset values."""
    normalized: list[dict[str, Any]] = []
    for node in nodes:
        model = NODE_DATA_MODELS[node.type]
        try:
            data = model.model_validate(node.data).model_dump(mode="json", exclude_none=True)
        except ValidationError as exc:
            raise CanvasGraphError(f"Invalid data for node {node.id}: {exc.errors()[0]['msg']}") from exc
        normalized.append(
            {
                "id": node.id,
                "type": node.type.value,
                "position": node.position.model_dump(),
                "data": data,
            }
        )
    return normalized


def validate_edges(edges: Iterable[Any], node_types: Mapping[str, Any]) -> list[dict[str, Any]]:
    """Check every edge against the canvas. Repeated source/target pairs keep the first edge."""
    validated: list[dict[str, Any]] = []
    seen: set[tuple[str, str]] = set()
    for edge in edges:
        payload = edge.model_dump(exclude_none=True) if hasattr(edge, "model_dump") else _drop_none(edge)
        source_type = node_types.get(payload["source"])
        target_type = node_types.get(payload["target"])
        if source_type is None or target_type is None:
            raise CanvasGraphError(f"Edge {payload['id']} references a node that is not on the canvas")
        if not is_valid_edge(source_type, target_type):
            raise CanvasGraphError(
                f"Invalid connection from {CanvasNodeTypeEnum(source_type).value} "
                f"to {CanvasNodeTypeEnum(target_type).value}"
            )
        if (payload["source"], payload["target"]) in seen:
            continue
        seen.add((payload["source"], payload["target"]))
        validated.append(payload)
    return validated


def derive_connections(edges: Iterable[Mapping[str, Any]], nodes: Iterable[Mapping[str, Any]]) -> dict[str, list[str]]:
    """Map each agent on the canvas to the entity ids of the nodes feeding into it."""
    connections: dict[str, list[str]] = {}
    agent_ids_by_node: dict[str, str] = {}
    for node in nodes:
        ref = parse_node_id(node["id"])
        if ref is not None and ref.node_type == CanvasNodeTypeEnum.agent:
            agent_ids_by_node[node["id"]] = ref.entity_id
            connections[ref.entity_id] = []

    for edge in edges:
        agent_id = agent_ids_by_node.get(edge["target"])
        if agent_id is None:
            continue
        source = parse_node_id(edge["source"])
        if source is None or source.entity_id in connections[agent_id]:
            continue
        connections[agent_id].append(source.entity_id)
    return connections

