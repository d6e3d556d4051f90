from types import SimpleNamespace
from uuid import uuid4

import pytest

from app.db.enums import AgentStatusEnum, AgentTypeEnum, CanvasNodeTypeEnum
from app.db.models import Agent, CanvasBrandKit, Product
from app.schemas.canvas import CanvasEdge
from app.services.canvas_graph import (
    CanvasGraphError,
    agent_nicknames,
    agent_node_id,
    brand_kit_node_id,
    derive_connections,
    edge_id,
    parse_node_id,
    product_node_id,
    reconcile_canvas,
    validate_edges,
)


def _product(x=0.0, y=0.0, **fields):
    return Product(id=uuid4(), user_id="u", canvas_position={"x": x, "y": y}, product_images=[], **fields)


def _agent(product, agent_type=AgentTypeEnum.title, *, connections=None, x=300.0, y=0.0):
    return Agent(
        id=uuid4(),
        user_id="u",
        product_id=product.id,
        type=agent_type,
        draft="",
        status=AgentStatusEnum.idle,
        connections=[str(product.id)] if connections is None else connections,
        chat_history=[],
        canvas_position={"x": x, "y": y},
    )


def _brand_kit():
    return CanvasBrandKit(
        id=uuid4(),
        user_id="u",
        brand_name="Acme",
        brand_voice="Friendly",
        color_palette={"type": "preset", "preset": "warm-earth"},
        canvas_position={"x": 0.0, "y": 400.0},
    )


def _canvas(nodes, edges, viewport=None):
    return SimpleNamespace(nodes=nodes, edges=edges, viewport=viewport or {"x": 0.0, "y": 0.0, "zoom": 1.0})


def _pairs(edges):
    return [(edge["source"], edge["target"]) for edge in edges]


def test_parse_node_id_handles_hyphenated_agent_types():
    agent_id = str(uuid4())
    ref = parse_node_id(agent_node_id(AgentTypeEnum.lifestyle_image, agent_id))
    assert ref.node_type == CanvasNodeTypeEnum.agent
    assert ref.entity_id == agent_id
    assert ref.agent_type == "lifestyle-image"
    assert parse_node_id("sticky_note_1") is None


def test_connections_rebuild_single_edge_without_saved_edges():
    product = _product()
    agent = _agent(product)

    state = reconcile_canvas(products=[product], agents=[agent], brand_kit=None, canvas=None)

    assert _pairs(state["edges"]) == [(product_node_id(product.id), agent_node_id(agent.type, agent.id))]
    assert state["viewport"] == {"x": 0.0, "y": 0.0, "zoom": 1.0}


def test_saved_edges_are_kept_verbatim_and_invalid_ones_dropped():
    product = _product()
    agent = _agent(product)
    p_node, a_node = product_node_id(product.id), agent_node_id(agent.type, agent.id)
    saved_edges = [
        {"id": "custom-edge", "source": p_node, "target": a_node, "sourceHandle": "out"},
        {"id": "backwards", "source": a_node, "target": p_node},
        {"id": "dangling", "source": p_node, "target": "agent_title_gone"},
    ]
    saved_nodes = [
        {"id": p_node, "type": "videoNode", "position": {"x": 5.0, "y": 6.0}, "data": {}},
        {"id": a_node, "type": "agentNode", "position": {"x": 300.0, "y": 0.0}, "data": {}},
    ]

    state = reconcile_canvas(products=[product], agents=[agent], brand_kit=None, canvas=_canvas(saved_nodes, saved_edges))

    assert state["edges"] == [saved_edges[0]]
    positions = {node["id"]: node["position"] for node in state["nodes"]}
    assert positions[p_node] == {"x": 5.0, "y": 6.0}


def test_agents_missing_from_saved_nodes_get_connection_edges():
    product = _product()
    first = _agent(product)
    newcomer = _agent(product, AgentTypeEnum.bullet_points, x=600.0)
    p_node = product_node_id(product.id)
    first_node = agent_node_id(first.type, first.id)
    saved_nodes = [
        {"id": p_node, "type": "videoNode", "position": {"x": 0.0, "y": 0.0}, "data": {}},
        {"id": first_node, "type": "agentNode", "position": {"x": 300.0, "y": 0.0}, "data": {}},
    ]
    saved_edges = [{"id": edge_id(p_node, first_node), "source": p_node, "target": first_node}]

    state = reconcile_canvas(
        products=[product], agents=[first, newcomer], brand_kit=None, canvas=_canvas(saved_nodes, saved_edges)
    )

    assert _pairs(state["edges"]) == [
        (p_node, first_node),
        (p_node, agent_node_id(newcomer.type, newcomer.id)),
    ]


def test_disconnected_saved_agent_is_not_reconnected_from_connections():
    product = _product()
    agent = _agent(product)
    other = _agent(product, AgentTypeEnum.bullet_points, x=600.0)
    p_node, a_node, o_node = (
        product_node_id(product.id),
        agent_node_id(agent.type, agent.id),
        agent_node_id(other.type, other.id),
    )
    saved_nodes = [
        {"id": node_id, "type": node_type, "position": {"x": 0.0, "y": 0.0}, "data": {}}
        for node_id, node_type in ((p_node, "videoNode"), (a_node, "agentNode"), (o_node, "agentNode"))
    ]
    saved_edges = [{"id": edge_id(p_node, o_node), "source": p_node, "target": o_node}]

    state = reconcile_canvas(products=[product], agents=[agent, other], brand_kit=None, canvas=_canvas(saved_nodes, saved_edges))

    assert _pairs(state["edges"]) == [(p_node, o_node)]


@pytest.mark.parametrize("kit_edges_saved", [0, 1, 2])
def test_first_product_links_to_brand_kit_exactly_once(kit_edges_saved):
    first, second = _product(), _product(x=400.0)
    kit = _brand_kit()
    first_node, kit_node = product_node_id(first.id), brand_kit_node_id(kit.id)
    saved_edges = [{"id": "p2-p1-agent", "source": product_node_id(second.id), "target": kit_node}]
    for index in range(kit_edges_saved):
        saved_edges.append({"id": f"kit-{index}", "source": first_node, "target": kit_node})

    state = reconcile_canvas(products=[first, second], agents=[], brand_kit=kit, canvas=_canvas([], saved_edges))

    assert _pairs(state["edges"]).count((first_node, kit_node)) == 1


def test_brand_kit_edge_added_when_nothing_was_saved():
    product = _product()
    kit = _brand_kit()

    state = reconcile_canvas(products=[product], agents=[], brand_kit=kit, canvas=None)

    assert _pairs(state["edges"]) == [(product_node_id(product.id), brand_kit_node_id(kit.id))]
    kit_node = next(node for node in state["nodes"] if node["type"] == "brandKitNode")
    assert kit_node["data"]["brandName"] == "Acme"


def test_agent_node_data_carries_nickname_but_not_chat():
    product = _product(product_name="Acme Mug")
    first, second = _agent(product), _agent(product, x=600.0)
    second.chat_history = [
        {"role": "ai", "message": "later", "timestamp": 20},
        {"role": "user", "message": "earlier", "timestamp": 10},
    ]

    state = reconcile_canvas(products=[product], agents=[first, second], brand_kit=None, canvas=None)

    data = {node["id"]: node["data"] for node in state["nodes"]}
    assert data[agent_node_id(first.type, first.id)]["nickname"] == "TITLE_AGENT"
    second_data = data[agent_node_id(second.type, second.id)]
    assert second_data["nickname"] == "TITLE_AGENT_2"
    assert "chatHistory" not in second_data
    assert data[product_node_id(product.id)]["productName"] == "Acme Mug"


def test_agent_nicknames_count_per_type():
    product = _product()
    agents = [_agent(product), _agent(product, AgentTypeEnum.hero_image), _agent(product, AgentTypeEnum.hero_image)]
    assert list(agent_nicknames(agents).values()) == ["TITLE_AGENT", "HERO-IMAGE_AGENT", "HERO-IMAGE_AGENT_2"]


def test_validate_edges_rejects_invalid_type_pairs():
    node_types = {
        "video_1": CanvasNodeTypeEnum.product,
        "agent_title_2": CanvasNodeTypeEnum.agent,
        "brandkit_3": CanvasNodeTypeEnum.brand_kit,
    }
    valid = validate_edges([CanvasEdge(id="e1", source="video_1", target="agent_title_2")], node_types)
    assert valid == [{"id": "e1", "source": "video_1", "target": "agent_title_2"}]

    with pytest.raises(CanvasGraphError, match="Invalid connection from agentNode to brandKitNode"):
        validate_edges([CanvasEdge(id="e2", source="agent_title_2", target="brandkit_3")], node_types)
    with pytest.raises(CanvasGraphError, match="not on the canvas"):
        validate_edges([CanvasEdge(id="e3", source="video_9", target="agent_title_2")], node_types)


def test_validate_edges_keeps_first_of_repeated_pairs():
    node_types = {"video_1": CanvasNodeTypeEnum.product, "brandkit_3": CanvasNodeTypeEnum.brand_kit}
    edges = [
        CanvasEdge(id="a", source="video_1", target="brandkit_3"),
        CanvasEdge(id="b", source="video_1", target="brandkit_3"),
    ]

    assert validate_edges(edges, node_types) == [{"id": "a", "source": "video_1", "target": "brandkit_3"}]


def test_derive_connections_from_incoming_edges():
    product_id, title_id, bullets_id = str(uuid4()), str(uuid4()), str(uuid4())
    p_node = product_node_id(product_id)
    title_node = agent_node_id("title", title_id)
    bullets_node = agent_node_id("bullet-points", bullets_id)
    nodes = [{"id": p_node}, {"id": title_node}, {"id": bullets_node}]
    edges = [
        {"source": p_node, "target": title_node},
        {"source": p_node, "target": bullets_node},
        {"source": title_node, "target": bullets_node},
        {"source": p_node, "target": bullets_node},
    ]

    assert derive_connections(edges, nodes) == {
        title_id: [product_id],
        bullets_id: [product_id, title_id],
    }
