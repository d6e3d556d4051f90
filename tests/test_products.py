from app.config import settings
from app.db.enums import AgentTypeEnum
from app.db.models import Agent
from app.db.repositories.agents import AgentsRepository
from app.db.repositories.projects import ProjectsRepository
from app.routers import products as products_router
from app.services import uploads
from app.services.canvas_layout import is_position_free
from app.services.media_storage import get_media_storage


def test_create_product_places_node_next_to_existing_one(api_client, project, product):
    resp = api_client.post(
        "/products",
        json={"projectId": str(project.id), "canvasPosition": {"x": 100, "y": 100}, "productName": "Acme Lid"},
    )
    assert resp.status_code == 201
    created = resp.json()
    assert created["product_name"] == "Acme Lid"
    assert created["canvas_position"] != {"x": 100.0, "y": 100.0}
    existing = [{"type": "videoNode", "position": product.canvas_position}]
    assert is_position_free(created["canvas_position"], "videoNode", existing)


def test_create_product_resolves_storage_id_to_image_url(api_client, project, fake_storage):
    resp = api_client.post(
        "/products",
        json={"projectId": str(project.id), "canvasPosition": {"x": 0, "y": 0}, "storageId": "products/aa/one.png"},
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["storage_key"] == "products/aa/one.png"
    assert body["product_images"] == [
        {"url": "https://cdn.test/products/aa/one.png", "type": "main", "storageId": "products/aa/one.png"}
    ]


def test_create_product_requires_owned_project(api_client, db_session):
    foreign = ProjectsRepository(db_session).create(user_id="someone-else", title="Private")
    resp = api_client.post("/products", json={"projectId": str(foreign.id), "canvasPosition": {"x": 0, "y": 0}})
    assert resp.status_code == 404


def test_update_product_info_and_metadata(api_client, product):
    info = api_client.patch(
        f"/products/{product.id}/info",
        json={"targetAudience": "Custom", "customTargetAudience": "Commuters", "productCategory": "Kitchen"},
    )
    assert info.status_code == 200
    assert info.json()["custom_target_audience"] == "Commuters"
    assert info.json()["product_name"] == "Acme Mug"

    metadata = api_client.patch(
        f"/products/{product.id}/metadata",
        json={"fileSize": 2048, "resolution": {"width": 1200, "height": 900}, "format": "image/png"},
    )
    assert metadata.status_code == 200
    assert metadata.json()["resolution"] == {"width": 1200, "height": 900}
    assert metadata.json()["file_size"] == 2048


def test_list_products_by_project(api_client, project, product):
    resp = api_client.get("/products", params={"projectId": str(project.id)})
    assert resp.status_code == 200
    assert [item["id"] for item in resp.json()] == [str(product.id)]


def test_upload_product_image_stores_file_and_updates_product(api_client, product, fake_storage):
    resp = api_client.post(
        f"/products/{product.id}/images",
        files={"file": ("mug.webp", b"webp-bytes", "image/webp")},
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["storageId"].startswith("products/")
    assert body["url"] == f"https://cdn.test/{body['storageId']}"
    assert body["product"]["storage_key"] == body["storageId"]
    assert fake_storage.objects[body["storageId"]] == (b"webp-bytes", "image/webp")


def test_upload_rejects_unsupported_type(api_client, product, fake_storage):
    resp = api_client.post(
        f"/products/{product.id}/images",
        files={"file": ("notes.pdf", b"%PDF-1.4", "application/pdf")},
    )
    assert resp.status_code == 415
    assert "Unsupported file type" in resp.json()["detail"]
    assert fake_storage.stored == []


def test_upload_rejects_oversized_file(api_client, product, fake_storage, monkeypatch):
    monkeypatch.setattr(uploads, "MAX_UPLOAD_BYTES", 8)
    resp = api_client.post(
        f"/products/{product.id}/images",
        files={"file": ("big.png", b"0123456789", "image/png")},
    )
    assert resp.status_code == 413
    assert "too large" in resp.json()["detail"]
    assert fake_storage.stored == []


def test_upload_reports_missing_storage_configuration(api_client, product, monkeypatch):
    monkeypatch.setattr(products_router, "get_media_storage", get_media_storage)
    monkeypatch.setattr(settings, "MEDIA_STORAGE_BUCKET", None)

    resp = api_client.post(
        f"/products/{product.id}/images",
        files={"file": ("mug.png", b"png-bytes", "image/png")},
    )
    assert resp.status_code == 500
    assert resp.json() == {"detail": "MEDIA_STORAGE_BUCKET is required"}


def test_delete_product_removes_its_agents(api_client, db_session, auth_context, project, product):
    product_id = product.id
    AgentsRepository(db_session).create(
        user_id=auth_context.user_id,
        product_id=product_id,
        project_id=project.id,
        agent_type=AgentTypeEnum.bullet_points,
        canvas_position={"x": 400.0, "y": 100.0},
    )
    resp = api_client.delete(f"/products/{product_id}")
    assert resp.status_code == 200

    db_session.expire_all()
    assert db_session.query(Agent).count() == 0
    assert api_client.get(f"/products/{product_id}").status_code == 404
