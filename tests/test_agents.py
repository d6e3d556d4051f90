from uuid import uuid4

from app.db.enums import AgentStatusEnum, AgentTypeEnum
from app.services.provider_errors import RATE_LIMIT_MESSAGE


def test_create_agent_links_product_and_avoids_overlap(api_client, product):
    resp = api_client.post(
        "/agents",
        json={"productId": str(product.id), "type": "title", "canvasPosition": {"x": 100, "y": 100}},
    )
    assert resp.status_code == 201
    agent = resp.json()
    assert agent["type"] == "title"
    assert agent["status"] == "idle"
    assert agent["draft"] == ""
    assert agent["connections"] == [str(product.id)]
    assert agent["canvas_position"] != {"x": 100.0, "y": 100.0}


def test_create_agent_for_unknown_product_is_not_found(api_client):
    resp = api_client.post(
        "/agents",
        json={"productId": str(uuid4()), "type": "title", "canvasPosition": {"x": 0, "y": 0}},
    )
    assert resp.status_code == 404


def test_image_agent_limit_per_project(api_client, product, make_agent):
    for index in range(4):
        make_agent(AgentTypeEnum.hero_image, position={"x": 400.0, "y": 100.0 + index * 100})

    resp = api_client.post(
        "/agents",
        json={"productId": str(product.id), "type": "hero-image", "canvasPosition": {"x": 900, "y": 900}},
    )
    assert resp.status_code == 409
    assert resp.json() == {"detail": "Maximum of 4 hero image agents per project reached"}

    lifestyle = api_client.post(
        "/agents",
        json={"productId": str(product.id), "type": "lifestyle-image", "canvasPosition": {"x": 900, "y": 900}},
    )
    assert lifestyle.status_code == 201


def test_list_agents_requires_a_filter(api_client, project, make_agent):
    agent = make_agent()
    assert api_client.get("/agents").status_code == 400

    by_project = api_client.get("/agents", params={"projectId": str(project.id)})
    assert [item["id"] for item in by_project.json()] == [str(agent.id)]


def test_draft_chat_and_position_updates(api_client, make_agent):
    agent = make_agent()

    draft = api_client.patch(f"/agents/{agent.id}/draft", json={"draft": "Hand-written title"})
    assert draft.status_code == 200
    assert draft.json()["draft"] == "Hand-written title"
    assert draft.json()["status"] == "ready"

    chat = api_client.post(f"/agents/{agent.id}/chat", json={"role": "user", "message": "Shorter please"})
    assert chat.status_code == 200
    history = chat.json()["chat_history"]
    assert [entry["message"] for entry in history] == ["Shorter please"]
    assert history[0]["role"] == "user"

    moved = api_client.patch(f"/agents/{agent.id}/position", json={"canvasPosition": {"x": 640, "y": 320}})
    assert moved.json()["canvas_position"] == {"x": 640.0, "y": 320.0}


def test_generate_title_via_api(api_client, db_session, make_agent, fake_llm):
    agent = make_agent()

    resp = api_client.post(f"/agents/{agent.id}/generate", json={})
    assert resp.status_code == 200
    body = resp.json()
    assert body["content"] == "Acme Mug 12oz Insulated Travel Mug"
    assert "Product Name: Acme Mug" in body["prompt"]

    refreshed = api_client.get(f"/agents/{agent.id}").json()
    assert refreshed["status"] == "ready"
    assert refreshed["draft"] == "Acme Mug 12oz Insulated Travel Mug"


def test_generate_failure_returns_bad_gateway_and_keeps_draft(api_client, make_agent, fake_llm):
    agent = make_agent(draft="Previous title")
    fake_llm.error = RuntimeError("Error code: 429 - rate_limit_exceeded")

    resp = api_client.post(f"/agents/{agent.id}/generate")
    assert resp.status_code == 502
    assert resp.json() == {"detail": RATE_LIMIT_MESSAGE}

    refreshed = api_client.get(f"/agents/{agent.id}").json()
    assert refreshed["status"] == AgentStatusEnum.error.value
    assert refreshed["draft"] == "Previous title"


def test_generate_unknown_agent_is_not_found(api_client):
    resp = api_client.post(f"/agents/{uuid4()}/generate")
    assert resp.status_code == 404
    assert resp.json() == {"detail": "Agent not found or unauthorized"}


def test_refine_text_agent_records_chat(api_client, make_agent, fake_llm):
    agent = make_agent(draft="Acme Mug Insulated 12oz Stainless Steel Coffee Travel Mug For Commuters")
    fake_llm.response = "Acme Mug 12oz Insulated Travel Mug"

    resp = api_client.post(f"/agents/{agent.id}/refine", json={"message": "Make it shorter"})
    assert resp.status_code == 200
    assert resp.json()["content"] == "Acme Mug 12oz Insulated Travel Mug"

    refreshed = api_client.get(f"/agents/{agent.id}").json()
    assert [entry["role"] for entry in refreshed["chat_history"]] == ["user", "ai"]
    assert refreshed["draft"] == "Acme Mug 12oz Insulated Travel Mug"


def test_delete_agent(api_client, make_agent):
    agent = make_agent()
    agent_id = agent.id
    assert api_client.delete(f"/agents/{agent_id}").json() == {"ok": True}
    assert api_client.get(f"/agents/{agent_id}").status_code == 404
