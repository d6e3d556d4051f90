from __future__ import annotations

import copy
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from app.client.api import ListingApiClient, ListingApiRequestError
from app.client.debounce import Debouncer
from app.config import settings
from app.db.enums import AgentStatusEnum, AgentTypeEnum, CanvasNodeTypeEnum
from app.services.canvas_graph import (
    CanvasGraphError,
    agent_node_id,
    edge_id,
    is_valid_edge,
    parse_node_id,
    product_node_id,
)
from app.services.canvas_layout import find_non_overlapping_position
from app.services.uploads import MAX_RETRIES, can_retry_upload, validate_upload

logger = logging.getLogger(__name__)

GENERATE_ALL_ORDER = (
    AgentTypeEnum.title,
    AgentTypeEnum.bullet_points,
    AgentTypeEnum.hero_image,
    AgentTypeEnum.lifestyle_image,
    AgentTypeEnum.infographic,
)


@dataclass
class GenerationOutcome:
    node_id: str
    agent_id: str
    agent_type: str
    ok: bool
    content: Optional[str] = None
    image_url: Optional[str] = None
    error: Optional[str] = None


@dataclass
class PendingUpload:
    file_name: str
    file_bytes: bytes
    content_type: str
    product_id: Optional[str] = None
    attempts: int = 0
    last_error: Optional[BaseException] = None


@dataclass
class UploadOutcome:
    ok: bool
    product_node_id: Optional[str] = None
    error: Optional[str] = None
    retryable: bool = False
    attempts: int = 0


@dataclass
class CanvasSnapshot:
    nodes: list[dict[str, Any]] = field(default_factory=list)
    edges: list[dict[str, Any]] = field(default_factory=list)
    viewport: dict[str, float] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        return {"nodes": self.nodes, "edges": self.edges, "viewport": self.viewport}

    def node(self, node_id: str) -> Optional[dict[str, Any]]:
        for node in self.nodes:
            if node["id"] == node_id:
                return node
        return None


class CanvasSession:
    """
    Local node/edge graph for one project, mirrored to the API.

    Graph edits are buffered by a debouncer and written as a full canvas save; viewport
    changes have their own, shorter debouncer. Long-running calls (generate,
    generate_all) work from a snapshot taken when they are invoked.
    """

    def __init__(
        self,
        api: ListingApiClient,
        *,
        project_id: str,
        clock: Callable[[], float] = time.monotonic,
        save_delay_seconds: float | None = None,
        viewport_delay_seconds: float | None = None,
    ) -> None:
        self.api = api
        self.project_id = str(project_id)
        self.nodes: dict[str, dict[str, Any]] = {}
        self.edges: list[dict[str, Any]] = []
        self.viewport: dict[str, float] = {"x": 0.0, "y": 0.0, "zoom": 1.0}
        self.notifications: list[str] = []
        self.pending_upload: Optional[PendingUpload] = None
        self._graph_saver: Debouncer[dict[str, Any]] = Debouncer(
            self._persist_graph,
            delay_seconds=save_delay_seconds if save_delay_seconds is not None else settings.CANVAS_SAVE_DEBOUNCE_SECONDS,
            clock=clock,
            name="canvas-graph",
        )
        self._viewport_saver: Debouncer[dict[str, float]] = Debouncer(
            self._persist_viewport,
            delay_seconds=(
                viewport_delay_seconds
                if viewport_delay_seconds is not None
                else settings.CANVAS_VIEWPORT_DEBOUNCE_SECONDS
            ),
            clock=clock,
            name="canvas-viewport",
        )

    # state

    def load(self) -> CanvasSnapshot:
        state = self.api.get_canvas(project_id=self.project_id)
        self._graph_saver.cancel()
        self._viewport_saver.cancel()
        self._replace_state(state)
        return self.snapshot()

    def snapshot(self) -> CanvasSnapshot:
        return CanvasSnapshot(
            nodes=copy.deepcopy(list(self.nodes.values())),
            edges=copy.deepcopy(self.edges),
            viewport=dict(self.viewport),
        )

    def node_status(self, node_id: str) -> Optional[str]:
        node = self.nodes.get(node_id)
        return node["data"].get("status") if node else None

    def _replace_state(self, state: dict[str, Any]) -> None:
        self.nodes = {node["id"]: node for node in state.get("nodes", [])}
        self.edges = list(state.get("edges", []))
        self.viewport = dict(state.get("viewport") or self.viewport)

    def _merge_server_data(self, state: dict[str, Any]) -> None:
        """Refresh node data from the server without moving anything the user placed since."""
        for server_node in state.get("nodes", []):
            local = self.nodes.get(server_node["id"])
            if local is None:
                self.nodes[server_node["id"]] = server_node
            else:
                local["data"] = server_node.get("data", local.get("data", {}))
        known = {(edge["source"], edge["target"]) for edge in self.edges}
        for edge in state.get("edges", []):
            if (edge["source"], edge["target"]) not in known and edge["source"] in self.nodes:
                self.edges.append(edge)

    # persistence

    def tick(self) -> bool:
        """Fire any debounced writes whose quiet period has elapsed."""
        wrote_graph = self._graph_saver.poll()
        wrote_viewport = self._viewport_saver.poll()
        return wrote_graph or wrote_viewport

    def flush(self) -> None:
        self._graph_saver.flush()
        self._viewport_saver.flush()

    @property
    def has_pending_writes(self) -> bool:
        return self._graph_saver.pending or self._viewport_saver.pending

    def _schedule_save(self) -> None:
        self._graph_saver.schedule(self.snapshot().to_payload())

    def _persist_graph(self, payload: dict[str, Any]) -> None:
        state = self.api.save_canvas(project_id=self.project_id, state=payload)
        self._merge_server_data(state)

    def _persist_viewport(self, viewport: dict[str, float]) -> None:
        self.api.save_viewport(project_id=self.project_id, viewport=viewport)

    # graph edits

    def _occupied(self) -> list[dict[str, Any]]:
        return [{"type": node["type"], "position": node["position"]} for node in self.nodes.values()]

    def drop_product(self, position: dict[str, float], **fields: Any) -> str:
        desired = find_non_overlapping_position(position, CanvasNodeTypeEnum.product, self._occupied())
        product = self.api.create_product(project_id=self.project_id, canvas_position=desired, **fields)
        node_id = product_node_id(product["id"])
        data = {"productId": str(product["id"])}
        if product.get("title"):
            data["title"] = product["title"]
        images = product.get("product_images") or []
        if images and images[0].get("url"):
            data["imageUrl"] = images[0]["url"]
        self.nodes[node_id] = {
            "id": node_id,
            "type": CanvasNodeTypeEnum.product.value,
            "position": dict(product.get("canvas_position") or desired),
            "data": data,
        }
        self._schedule_save()
        return node_id

    def drop_agent(self, product_node: str, agent_type: AgentTypeEnum | str, position: dict[str, float]) -> str:
        ref = parse_node_id(product_node)
        if ref is None or ref.node_type != CanvasNodeTypeEnum.product or product_node not in self.nodes:
            raise CanvasGraphError(f"{product_node} is not a product on this canvas")
        agent_type = AgentTypeEnum(agent_type)
        desired = find_non_overlapping_position(position, CanvasNodeTypeEnum.agent, self._occupied())
        try:
            agent = self.api.create_agent(product_id=ref.entity_id, agent_type=agent_type.value, canvas_position=desired)
        except ListingApiRequestError as exc:
            self.notifications.append(exc.message)
            raise
        node_id = agent_node_id(agent_type, agent["id"])
        self.nodes[node_id] = {
            "id": node_id,
            "type": CanvasNodeTypeEnum.agent.value,
            "position": dict(agent.get("canvas_position") or desired),
            "data": {
                "agentId": str(agent["id"]),
                "type": agent_type.value,
                "draft": agent.get("draft") or "",
                "status": agent.get("status") or AgentStatusEnum.idle.value,
                "nickname": self._next_nickname(agent_type),
            },
        }
        self._add_edge(product_node, node_id)
        self._schedule_save()
        return node_id

    def _next_nickname(self, agent_type: AgentTypeEnum) -> str:
        count = sum(
            1
            for node in self.nodes.values()
            if node["type"] == CanvasNodeTypeEnum.agent.value and node["data"].get("type") == agent_type.value
        )
        base = f"{agent_type.value.upper()}_AGENT"
        return base if count == 0 else f"{base}_{count + 1}"

    def _add_edge(self, source: str, target: str) -> bool:
        if any(edge["source"] == source and edge["target"] == target for edge in self.edges):
            return False
        self.edges.append({"id": edge_id(source, target), "source": source, "target": target})
        return True

    def connect(self, source: str, target: str) -> bool:
        """Add a validated edge; returns False when it already exists."""
        if source not in self.nodes or target not in self.nodes:
            raise CanvasGraphError("Both ends of a connection must be on the canvas")
        if source == target:
            raise CanvasGraphError("A node cannot connect to itself")
        if not is_valid_edge(self.nodes[source]["type"], self.nodes[target]["type"]):
            raise CanvasGraphError(
                f"Invalid connection from {self.nodes[source]['type']} to {self.nodes[target]['type']}"
            )
        added = self._add_edge(source, target)
        if added:
            self._schedule_save()
        return added

    def disconnect(self, source: str, target: str) -> bool:
        before = len(self.edges)
        self.edges = [edge for edge in self.edges if not (edge["source"] == source and edge["target"] == target)]
        if len(self.edges) == before:
            return False
        self._schedule_save()
        return True

    def move_node(self, node_id: str, position: dict[str, float]) -> None:
        if node_id not in self.nodes:
            raise CanvasGraphError(f"{node_id} is not on this canvas")
        self.nodes[node_id]["position"] = {"x": float(position["x"]), "y": float(position["y"])}
        self._schedule_save()

    def set_viewport(self, viewport: dict[str, float]) -> None:
        self.viewport = {"x": float(viewport["x"]), "y": float(viewport["y"]), "zoom": float(viewport["zoom"])}
        self._viewport_saver.schedule(dict(self.viewport))

    def remove_node(self, node_id: str) -> None:
        """Delete the node's entity on the server and drop it (and its edges) locally."""
        ref = parse_node_id(node_id)
        if node_id not in self.nodes or ref is None:
            raise CanvasGraphError(f"{node_id} is not on this canvas")

        if ref.node_type == CanvasNodeTypeEnum.product:
            # Deleting a product also deletes its agents, so take the server's view afterwards.
            self.flush()
            self.api.delete_product(product_id=ref.entity_id)
            self.load()
            return

        if ref.node_type == CanvasNodeTypeEnum.agent:
            self.api.delete_agent(agent_id=ref.entity_id)
        else:
            self.api.delete_canvas_brand_kit(project_id=self.project_id)
        self.nodes.pop(node_id, None)
        self.edges = [edge for edge in self.edges if node_id not in (edge["source"], edge["target"])]
        self._schedule_save()

    # generation

    def _set_agent_data(self, node_id: str, **values: Any) -> None:
        node = self.nodes.get(node_id)
        if node is not None:
            node["data"].update({key: value for key, value in values.items() if value is not None})

    def generate(self, node_id: str, *, additional_context: str | None = None) -> GenerationOutcome:
        """Generate one agent's content. Pending graph edits are saved first so the server sees them."""
        snapshot = self.snapshot()
        return self._generate_from(snapshot, node_id, additional_context=additional_context)

    def _generate_from(
        self, snapshot: CanvasSnapshot, node_id: str, *, additional_context: str | None = None
    ) -> GenerationOutcome:
        node = snapshot.node(node_id)
        if node is None or node["type"] != CanvasNodeTypeEnum.agent.value:
            raise CanvasGraphError(f"{node_id} is not an agent on this canvas")
        agent_id = node["data"]["agentId"]
        agent_type = node["data"]["type"]

        try:
            self.flush()
            self._set_agent_data(node_id, status=AgentStatusEnum.generating.value)
            result = self.api.generate(agent_id=agent_id, additional_context=additional_context)
        except ListingApiRequestError as exc:
            self._set_agent_data(node_id, status=AgentStatusEnum.error.value)
            self.notifications.append(exc.message)
            logger.warning(
                "Generation failed", extra={"agent_id": agent_id, "agent_type": agent_type, "status": exc.status_code}
            )
            return GenerationOutcome(node_id, agent_id, agent_type, ok=False, error=exc.message)

        self._set_agent_data(
            node_id,
            status=AgentStatusEnum.ready.value,
            draft=result.get("content"),
            imageUrl=result.get("imageUrl"),
        )
        return GenerationOutcome(
            node_id,
            agent_id,
            agent_type,
            ok=True,
            content=result.get("content"),
            image_url=result.get("imageUrl"),
        )

    def generate_all(self, product_node: str | None = None) -> list[GenerationOutcome]:
        """
        Generate every agent one at a time in listing order.

        Each agent is linked to the product first when it has no incoming edge from it.
        A failed agent is recorded and the run moves on to the next one.
        """
        snapshot = self.snapshot()
        products = [node for node in snapshot.nodes if node["type"] == CanvasNodeTypeEnum.product.value]
        if product_node is None:
            if not products:
                raise CanvasGraphError("Add a product before generating")
            product_node = products[0]["id"]
        elif snapshot.node(product_node) is None:
            raise CanvasGraphError(f"{product_node} is not on this canvas")

        agents = [node for node in snapshot.nodes if node["type"] == CanvasNodeTypeEnum.agent.value]
        ordered = [
            agent for agent_type in GENERATE_ALL_ORDER for agent in agents if agent["data"].get("type") == agent_type.value
        ]

        linked = False
        for agent in ordered:
            if self._add_edge(product_node, agent["id"]):
                linked = True
        if linked:
            self._schedule_save()
            snapshot = self.snapshot()

        outcomes = []
        for agent in ordered:
            outcomes.append(self._generate_from(snapshot, agent["id"]))
        failed = [outcome for outcome in outcomes if not outcome.ok]
        logger.info("Generate-all finished", extra={"agents": len(outcomes), "failed": len(failed)})
        return outcomes

    def refine(self, node_id: str, message: str) -> GenerationOutcome:
        node = self.nodes.get(node_id)
        if node is None or node["type"] != CanvasNodeTypeEnum.agent.value:
            raise CanvasGraphError(f"{node_id} is not an agent on this canvas")
        agent_id = node["data"]["agentId"]
        agent_type = node["data"]["type"]

        try:
            self.flush()
            self._set_agent_data(node_id, status=AgentStatusEnum.generating.value)
            result = self.api.refine(agent_id=agent_id, message=message)
        except ListingApiRequestError as exc:
            self._set_agent_data(node_id, status=AgentStatusEnum.error.value)
            self.notifications.append(exc.message)
            return GenerationOutcome(node_id, agent_id, agent_type, ok=False, error=exc.message)

        self._set_agent_data(
            node_id,
            status=AgentStatusEnum.ready.value,
            draft=result.get("content"),
            imageUrl=result.get("imageUrl"),
        )
        return GenerationOutcome(
            node_id, agent_id, agent_type, ok=True, content=result.get("content"), image_url=result.get("imageUrl")
        )

    # uploads

    def upload(
        self, *, file_name: str, file_bytes: bytes, content_type: str, position: dict[str, float]
    ) -> UploadOutcome:
        """
        Create a product node from an image or video file.

        Oversized and unsupported files raise UploadValidationError before any request
        is made. Transient failures leave a pending upload for `retry_upload`.
        """
        resolved = validate_upload(content_type=content_type, size_bytes=len(file_bytes), filename=file_name)
        self.pending_upload = PendingUpload(file_name=file_name, file_bytes=file_bytes, content_type=resolved)
        return self._attempt_upload(position)

    def retry_upload(self) -> UploadOutcome:
        pending = self.pending_upload
        if pending is None:
            raise RuntimeError("There is no failed upload to retry")
        if pending.last_error is None or not can_retry_upload(pending.last_error, attempts=pending.attempts):
            raise RuntimeError(f"Upload cannot be retried after {pending.attempts} of {MAX_RETRIES} retries")
        pending.attempts += 1
        return self._attempt_upload(None)

    def _attempt_upload(self, position: Optional[dict[str, float]]) -> UploadOutcome:
        pending = self.pending_upload
        assert pending is not None
        try:
            if pending.product_id is None:
                node_id = self.drop_product(position or {"x": 0.0, "y": 0.0}, title=pending.file_name)
                pending.product_id = self.nodes[node_id]["data"]["productId"]
            uploaded = self.api.upload_product_image(
                product_id=pending.product_id,
                file_name=pending.file_name,
                file_bytes=pending.file_bytes,
                content_type=pending.content_type,
            )
        except ListingApiRequestError as exc:
            pending.last_error = exc
            retryable = can_retry_upload(exc, attempts=pending.attempts)
            self.notifications.append(f"Upload failed: {exc.message}" + (" Try again." if retryable else ""))
            logger.warning(
                "Upload failed",
                extra={"file_name": pending.file_name, "attempts": pending.attempts, "retryable": retryable},
            )
            return UploadOutcome(
                ok=False,
                product_node_id=product_node_id(pending.product_id) if pending.product_id else None,
                error=exc.message,
                retryable=retryable,
                attempts=pending.attempts,
            )

        node_id = product_node_id(pending.product_id)
        if uploaded.get("url"):
            self.nodes[node_id]["data"]["imageUrl"] = uploaded["url"]
        attempts = pending.attempts
        self.pending_upload = None
        self._schedule_save()
        return UploadOutcome(ok=True, product_node_id=node_id, attempts=attempts)
