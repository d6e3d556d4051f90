from app.services.canvas_graph import product_node_id


def test_share_snapshots_canvas_and_counts_views(api_client, project, product, make_agent):
    make_agent()

    created = api_client.post(f"/projects/{project.id}/shares")
    assert created.status_code == 201
    share_id = created.json()["share_id"]

    first = api_client.get(f"/shares/{share_id}")
    second = api_client.get(f"/shares/{share_id}")

    assert first.status_code == 200
    assert first.json()["viewCount"] == 1
    assert second.json()["viewCount"] == 2
    assert second.json()["projectId"] == str(project.id)
    node_ids = {node["id"] for node in second.json()["canvasState"]["nodes"]}
    assert product_node_id(product.id) in node_ids
    assert len(second.json()["canvasState"]["edges"]) == 1


def test_share_snapshot_leaves_out_agent_chat(api_client, project, product, make_agent):
    agent = make_agent()
    api_client.post(f"/agents/{agent.id}/chat", json={"role": "user", "message": "Make it punchier"})

    share_id = api_client.post(f"/projects/{project.id}/shares").json()["share_id"]
    shared = api_client.get(f"/shares/{share_id}").json()

    agent_node = next(node for node in shared["canvasState"]["nodes"] if node["type"] == "agentNode")
    assert agent_node["data"]["agentId"] == str(agent.id)
    assert "chatHistory" not in agent_node["data"]


def test_share_is_a_frozen_snapshot(api_client, project, product, make_agent):
    share_id = api_client.post(f"/projects/{project.id}/shares").json()["share_id"]
    make_agent()

    shared = api_client.get(f"/shares/{share_id}").json()

    assert len(shared["canvasState"]["nodes"]) == 1


def test_list_shares_for_project(api_client, project):
    share_id = api_client.post(f"/projects/{project.id}/shares").json()["share_id"]
    listed = api_client.get(f"/projects/{project.id}/shares").json()
    assert [item["share_id"] for item in listed] == [share_id]


def test_unknown_share_and_project(api_client):
    assert api_client.get("/shares/does-not-exist").status_code == 404
    resp = api_client.post("/projects/00000000-0000-0000-0000-000000000000/shares")
    assert resp.status_code == 404
