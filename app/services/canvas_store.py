from __future__ import annotations

import logging
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.db.enums import CanvasNodeTypeEnum
from app.db.repositories.agents import AgentsRepository
from app.db.repositories.brand_kits import CanvasBrandKitsRepository
from app.db.repositories.canvases import ProjectCanvasesRepository
from app.db.repositories.products import ProductsRepository
from app.schemas.canvas import CanvasState
from app.services.canvas_graph import (
    derive_connections,
    normalize_nodes,
    parse_node_id,
    reconcile_canvas,
    validate_edges,
)

logger = logging.getLogger(__name__)


def _as_uuid(value: str) -> Optional[UUID]:
    try:
        return UUID(value)
    except ValueError:
        return None


def load_canvas(session: Session, *, user_id: str, project_id: UUID) -> dict[str, Any]:
    products = ProductsRepository(session).list_by_project(user_id=user_id, project_id=project_id)
    agents = AgentsRepository(session).list_by_project(user_id=user_id, project_id=project_id)
    brand_kit = CanvasBrandKitsRepository(session).get_for_project(user_id=user_id, project_id=project_id)
    canvas = ProjectCanvasesRepository(session).get(user_id=user_id, project_id=project_id)
    return reconcile_canvas(products=products, agents=agents, brand_kit=brand_kit, canvas=canvas)


def occupied_positions(session: Session, *, user_id: str, project_id: UUID) -> list[dict[str, Any]]:
    """Current node boxes of a project, for placing a new node."""
    boxes: list[dict[str, Any]] = []
    for product in ProductsRepository(session).list_by_project(user_id=user_id, project_id=project_id):
        boxes.append({"type": CanvasNodeTypeEnum.product.value, "position": product.canvas_position})
    for agent in AgentsRepository(session).list_by_project(user_id=user_id, project_id=project_id):
        boxes.append({"type": CanvasNodeTypeEnum.agent.value, "position": agent.canvas_position})
    brand_kit = CanvasBrandKitsRepository(session).get_for_project(user_id=user_id, project_id=project_id)
    if brand_kit is not None:
        boxes.append({"type": CanvasNodeTypeEnum.brand_kit.value, "position": brand_kit.canvas_position})
    return boxes


def save_canvas(session: Session, *, user_id: str, project_id: UUID, state: CanvasState) -> dict[str, Any]:
    """
    Persist a canvas snapshot and mirror it onto the live entities.

    Edges are validated against the submitted node types. Every agent on the canvas
    has its `connections` rewritten from the incoming edges, and every node position
    is copied back to its entity.
    """
    nodes = normalize_nodes(state.nodes)
    node_types = {node["id"]: CanvasNodeTypeEnum(node["type"]) for node in nodes}
    edges = validate_edges(state.edges, node_types)

    ProjectCanvasesRepository(session).save_state(
        user_id=user_id,
        project_id=project_id,
        nodes=nodes,
        edges=edges,
        viewport=state.viewport.model_dump(),
    )

    agents_repo = AgentsRepository(session)
    products_repo = ProductsRepository(session)
    kits_repo = CanvasBrandKitsRepository(session)
    agents = {str(agent.id): agent for agent in agents_repo.list_by_project(user_id=user_id, project_id=project_id)}
    products = {
        str(product.id): product for product in products_repo.list_by_project(user_id=user_id, project_id=project_id)
    }
    brand_kit = kits_repo.get_for_project(user_id=user_id, project_id=project_id)

    for agent_id, connections in derive_connections(edges, nodes).items():
        agent = agents.get(agent_id)
        if agent is not None and list(agent.connections or []) != connections:
            agents_repo.update_connections(agent, connections=connections)

    for node in nodes:
        ref = parse_node_id(node["id"])
        if ref is None or _as_uuid(ref.entity_id) is None:
            continue
        position = node["position"]
        if ref.node_type == CanvasNodeTypeEnum.agent and ref.entity_id in agents:
            agent = agents[ref.entity_id]
            if agent.canvas_position != position:
                agents_repo.update_position(agent, canvas_position=position)
        elif ref.node_type == CanvasNodeTypeEnum.product and ref.entity_id in products:
            product = products[ref.entity_id]
            if product.canvas_position != position:
                products_repo.patch(product, {"canvas_position": dict(position)})
        elif ref.node_type == CanvasNodeTypeEnum.brand_kit and brand_kit is not None:
            if str(brand_kit.id) == ref.entity_id and brand_kit.canvas_position != position:
                kits_repo.update(brand_kit, canvas_position=dict(position))

    logger.info(
        "Saved canvas",
        extra={"project_id": str(project_id), "nodes": len(nodes), "edges": len(edges)},
    )
    return load_canvas(session, user_id=user_id, project_id=project_id)
