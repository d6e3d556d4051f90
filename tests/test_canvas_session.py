import pytest

from app.client.api import ListingApiClient, ListingApiRequestError
from app.client.canvas_session import CanvasSession
from app.db.enums import AgentTypeEnum
from app.services import uploads
from app.services.canvas_graph import CanvasGraphError, agent_node_id, product_node_id
from app.services.uploads import UploadValidationError


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def session(api_client, project, product, clock):
    api = ListingApiClient(bearer_token="test-token", http_client=api_client)
    canvas = CanvasSession(api, project_id=str(project.id), clock=clock, save_delay_seconds=1.0, viewport_delay_seconds=0.5)
    canvas.load()
    return canvas


def _server_edges(api_client, project):
    state = api_client.get(f"/projects/{project.id}/canvas").json()
    return {(edge["source"], edge["target"]) for edge in state["edges"]}


def test_drop_agent_links_product_and_saves_after_quiet_period(session, api_client, project, product, clock):
    p_node = product_node_id(product.id)

    title_node = session.drop_agent(p_node, AgentTypeEnum.title, {"x": 100, "y": 100})

    assert session.nodes[title_node]["data"]["nickname"] == "TITLE_AGENT"
    assert session.nodes[title_node]["position"] != {"x": 100.0, "y": 100.0}
    assert (p_node, title_node) in {(edge["source"], edge["target"]) for edge in session.edges}
    assert session.has_pending_writes

    session.move_node(title_node, {"x": 640, "y": 80})
    clock.advance(0.5)
    assert session.tick() is False

    clock.advance(1.0)
    assert session.tick() is True
    assert not session.has_pending_writes

    server = api_client.get(f"/projects/{project.id}/canvas").json()
    positions = {node["id"]: node["position"] for node in server["nodes"]}
    assert positions[title_node] == {"x": 640.0, "y": 80.0}
    assert (p_node, title_node) in _server_edges(api_client, project)


def test_second_agent_of_a_type_gets_numbered_nickname(session, product):
    p_node = product_node_id(product.id)
    session.drop_agent(p_node, "hero-image", {"x": 400, "y": 0})
    second = session.drop_agent(p_node, "hero-image", {"x": 400, "y": 0})
    assert session.nodes[second]["data"]["nickname"] == "HERO-IMAGE_AGENT_2"


def test_connect_validates_edge_types(session, product):
    p_node = product_node_id(product.id)
    title_node = session.drop_agent(p_node, AgentTypeEnum.title, {"x": 400, "y": 0})
    bullets_node = session.drop_agent(p_node, AgentTypeEnum.bullet_points, {"x": 400, "y": 200})

    assert session.connect(title_node, bullets_node) is True
    assert session.connect(title_node, bullets_node) is False
    with pytest.raises(CanvasGraphError, match="Invalid connection from agentNode to videoNode"):
        session.connect(title_node, p_node)
    assert session.disconnect(title_node, bullets_node) is True


def test_viewport_changes_use_their_own_debounce(session, api_client, project, clock):
    session.set_viewport({"x": 12, "y": -4, "zoom": 1.25})
    session.set_viewport({"x": 20, "y": -4, "zoom": 1.25})
    clock.advance(0.6)

    assert session.tick() is True
    assert api_client.get(f"/projects/{project.id}/canvas").json()["viewport"] == {"x": 20.0, "y": -4.0, "zoom": 1.25}


def test_generate_saves_pending_edits_then_updates_node(session, api_client, project, product, make_agent):
    agent = make_agent()
    session.load()
    node_id = agent_node_id(agent.type, agent.id)
    session.move_node(node_id, {"x": 900, "y": 40})

    outcome = session.generate(node_id)

    assert outcome.ok
    assert outcome.content == "Acme Mug 12oz Insulated Travel Mug"
    assert session.node_status(node_id) == "ready"
    assert session.nodes[node_id]["data"]["draft"] == "Acme Mug 12oz Insulated Travel Mug"
    assert api_client.get(f"/agents/{agent.id}").json()["canvas_position"] == {"x": 900.0, "y": 40.0}


def test_generate_all_runs_in_order_and_continues_after_failure(session, product, make_agent, fake_images, fake_llm):
    hero = make_agent(AgentTypeEnum.hero_image, position={"x": 400.0, "y": 300.0})
    title = make_agent(AgentTypeEnum.title)
    session.load()
    fake_images.error = RuntimeError("image service down")

    outcomes = session.generate_all()

    assert [outcome.agent_type for outcome in outcomes] == ["title", "hero-image"]
    assert [outcome.ok for outcome in outcomes] == [True, False]
    assert outcomes[1].error == "image service down"
    assert session.node_status(agent_node_id(title.type, title.id)) == "ready"
    assert session.node_status(agent_node_id(hero.type, hero.id)) == "error"
    assert session.notifications == ["image service down"]


def test_generate_all_links_unconnected_agents_to_product(session, api_client, project, product, make_agent):
    agent = make_agent()
    session.load()
    p_node, a_node = product_node_id(product.id), agent_node_id(agent.type, agent.id)
    session.disconnect(p_node, a_node)

    outcomes = session.generate_all()

    assert [outcome.ok for outcome in outcomes] == [True]
    assert (p_node, a_node) in _server_edges(api_client, project)


def test_agent_limit_surfaces_as_notification(session, product, make_agent):
    for index in range(4):
        make_agent(AgentTypeEnum.lifestyle_image, position={"x": 400.0, "y": 100.0 * index})
    session.load()

    with pytest.raises(ListingApiRequestError) as excinfo:
        session.drop_agent(product_node_id(product.id), AgentTypeEnum.lifestyle_image, {"x": 900, "y": 0})

    assert excinfo.value.status_code == 409
    assert session.notifications == ["Maximum of 4 lifestyle image agents per project reached"]


def test_upload_validates_before_any_request(session, fake_storage, monkeypatch):
    monkeypatch.setattr(uploads, "MAX_UPLOAD_BYTES", 4)
    before = dict(session.nodes)

    with pytest.raises(UploadValidationError) as too_large:
        session.upload(file_name="big.png", file_bytes=b"0123456789", content_type="image/png", position={"x": 0, "y": 0})
    with pytest.raises(UploadValidationError) as wrong_type:
        session.upload(file_name="notes.pdf", file_bytes=b"%PDF", content_type="application/pdf", position={"x": 0, "y": 0})

    assert too_large.value.reason == "too_large"
    assert wrong_type.value.reason == "unsupported_type"
    assert session.nodes == before
    assert fake_storage.stored == []


def test_upload_creates_product_node_with_image(session, fake_storage):
    outcome = session.upload(
        file_name="lid.png", file_bytes=b"png-bytes", content_type="image/png", position={"x": 800, "y": 0}
    )

    assert outcome.ok
    node = session.nodes[outcome.product_node_id]
    assert node["data"]["title"] == "lid.png"
    assert node["data"]["imageUrl"].startswith("https://cdn.test/products/")
    assert session.pending_upload is None


def test_failed_upload_can_be_retried(session, fake_storage, monkeypatch):
    real_upload = session.api.upload_product_image
    calls = []

    def flaky_upload(**kwargs):
        calls.append(kwargs["product_id"])
        if len(calls) == 1:
            raise ListingApiRequestError("Service unavailable", status_code=503)
        return real_upload(**kwargs)

    monkeypatch.setattr(session.api, "upload_product_image", flaky_upload)

    first = session.upload(file_name="lid.png", file_bytes=b"png-bytes", content_type="image/png", position={"x": 800, "y": 0})
    assert not first.ok
    assert first.retryable
    assert session.notifications == ["Upload failed: Service unavailable Try again."]

    second = session.retry_upload()
    assert second.ok
    assert second.attempts == 1
    assert second.product_node_id == first.product_node_id
    assert calls[0] == calls[1]


def test_client_errors_are_not_retried(session, fake_storage, monkeypatch):
    def rejected(**kwargs):
        raise ListingApiRequestError("Product not found or unauthorized", status_code=404)

    monkeypatch.setattr(session.api, "upload_product_image", rejected)

    outcome = session.upload(file_name="lid.png", file_bytes=b"png", content_type="image/png", position={"x": 800, "y": 0})

    assert not outcome.retryable
    with pytest.raises(RuntimeError, match="cannot be retried"):
        session.retry_upload()


def test_removing_product_reloads_server_state(session, product, make_agent):
    agent = make_agent()
    p_node, a_node = product_node_id(product.id), agent_node_id(agent.type, agent.id)
    session.load()

    session.remove_node(p_node)

    assert p_node not in session.nodes
    assert a_node not in session.nodes
    assert session.edges == []


def test_generate_all_reports_failed_pending_save_per_agent(session, make_agent, monkeypatch):
    title = make_agent()
    bullets = make_agent(AgentTypeEnum.bullet_points, position={"x": 400.0, "y": 300.0})
    session.load()
    title_node = agent_node_id(title.type, title.id)
    session.move_node(title_node, {"x": 900, "y": 40})

    def offline(**kwargs):
        raise ListingApiRequestError("Request to PUT failed: offline")

    monkeypatch.setattr(session.api, "save_canvas", offline)

    outcomes = session.generate_all()

    assert [outcome.agent_type for outcome in outcomes] == ["title", "bullet-points"]
    assert [outcome.ok for outcome in outcomes] == [False, False]
    assert outcomes[0].error == "Request to PUT failed: offline"
    assert session.node_status(title_node) == "error"
    assert session.node_status(agent_node_id(bullets.type, bullets.id)) == "error"
    assert session.notifications == ["Request to PUT failed: offline"] * 2
    assert session.has_pending_writes
