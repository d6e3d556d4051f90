import base64
import hashlib
import os
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("CLERK_JWT_ISSUER", "https://clerk.test")
os.environ.setdefault("CLERK_JWKS_URL", "https://clerk.test/.well-known/jwks.json")
os.environ.setdefault("CLERK_AUDIENCE", "listing-canvas")

import pytest
from fastapi.testclient import TestClient

from app.auth.dependencies import AuthContext, get_current_user, get_optional_user
from app.db import models  # noqa: F401
from app.db.base import Base, SessionLocal, engine
from app.db.deps import get_session
from app.db.enums import AgentTypeEnum
from app.db.repositories.agents import AgentsRepository
from app.db.repositories.products import ProductsRepository
from app.db.repositories.projects import ProjectsRepository
from app.llm.images import GeneratedImage
from app.main import app
from app.routers import agents as agents_router
from app.routers import products as products_router
from app.services.generation import GenerationService
from app.services.media_storage import StoredObject

TEST_USER_ID = "user_test_123"
PRODUCT_IMAGE_KEY = "products/ab/source-mug.png"
PRODUCT_IMAGE_BYTES = b"\x89PNG-source-mug"


class FakeMediaStorage:
    def __init__(self) -> None:
        self.objects: dict[str, tuple[bytes, str | None]] = {PRODUCT_IMAGE_KEY: (PRODUCT_IMAGE_BYTES, "image/png")}
        self.stored: list[StoredObject] = []

    def resolve_url(self, *, key: str) -> str:
        return f"https://cdn.test/{key}"

    def download_bytes(self, *, key: str) -> tuple[bytes, str | None]:
        return self.objects[key]

    def store(self, *, data: bytes, content_type: str | None, kind: str) -> StoredObject:
        key = f"{kind}/{hashlib.sha256(data).hexdigest()}"
        self.objects[key] = (data, content_type)
        stored = StoredObject(key=key, url=self.resolve_url(key=key), content_type=content_type, size_bytes=len(data))
        self.stored.append(stored)
        return stored


class FakeLLMClient:
    def __init__(self) -> None:
        self.response = "Acme Mug 12oz Insulated Travel Mug"
        self.error: Exception | None = None
        self.prompts: list[str] = []
        self.calls: list[list[dict]] = []
        self.before_call = None

    def generate_text(self, prompt, params, *, system=None):
        self.prompts.append(prompt)
        messages = [{"role": "system", "content": system}] if system else []
        return self.complete(messages + [{"role": "user", "content": prompt}], params)

    def complete(self, messages, params):
        self.calls.append(messages)
        if self.before_call is not None:
            self.before_call()
        if self.error is not None:
            raise self.error
        return self.response

    def analyze_image(self, *, image_url, prompt, system, params):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return "The mug sits centered on white; the user wants a warmer tone."


class FakeImageClient:
    def __init__(self) -> None:
        self.error: Exception | None = None
        self.edits: list[dict] = []
        self.generations: list[dict] = []

    def edit_image(self, **kwargs):
        self.edits.append(kwargs)
        if self.error is not None:
            raise self.error
        return GeneratedImage(b64_json=base64.b64encode(b"generated-image").decode())

    def generate_image(self, **kwargs):
        self.generations.append(kwargs)
        return GeneratedImage(b64_json=base64.b64encode(b"fallback-image").decode())


@pytest.fixture()
def db_session():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def auth_context() -> AuthContext:
    return AuthContext(user_id=TEST_USER_ID)


@pytest.fixture()
def fake_storage(monkeypatch) -> FakeMediaStorage:
    storage = FakeMediaStorage()
    monkeypatch.setattr(products_router, "get_media_storage", lambda: storage)
    return storage


@pytest.fixture()
def fake_llm() -> FakeLLMClient:
    return FakeLLMClient()


@pytest.fixture()
def fake_images() -> FakeImageClient:
    return FakeImageClient()


@pytest.fixture()
def generation_service(db_session, fake_llm, fake_images, fake_storage) -> GenerationService:
    return GenerationService(db_session, llm=fake_llm, images=fake_images, storage_factory=lambda: fake_storage)


@pytest.fixture()
def override_dependencies(db_session, auth_context, generation_service):
    def get_session_override():
        try:
            yield db_session
        finally:
            pass

    def get_user_override():
        return auth_context

    app.dependency_overrides[get_session] = get_session_override
    app.dependency_overrides[get_current_user] = get_user_override
    app.dependency_overrides[get_optional_user] = get_user_override
    app.dependency_overrides[agents_router.get_generation_service] = lambda: generation_service
    try:
        yield
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def api_client(override_dependencies):
    with TestClient(app) as client:
        yield client


@pytest.fixture()
def project(db_session, auth_context):
    return ProjectsRepository(db_session).create(user_id=auth_context.user_id, title="Acme Kitchen Launch")


@pytest.fixture()
def product(db_session, auth_context, project):
    return ProductsRepository(db_session).create(
        user_id=auth_context.user_id,
        project_id=project.id,
        canvas_position={"x": 100.0, "y": 100.0},
        storage_key=PRODUCT_IMAGE_KEY,
        image_url=f"https://cdn.test/{PRODUCT_IMAGE_KEY}",
        title="mug.png",
        product_name="Acme Mug",
        key_features="Insulated, 12oz",
    )


@pytest.fixture()
def make_agent(db_session, auth_context, project, product):
    def _make(agent_type=AgentTypeEnum.title, *, position=None, draft=None):
        agent = AgentsRepository(db_session).create(
            user_id=auth_context.user_id,
            product_id=product.id,
            project_id=project.id,
            agent_type=agent_type,
            canvas_position=position or {"x": 400.0, "y": 100.0},
        )
        if draft is not None:
            agent = AgentsRepository(db_session).update_draft(agent, draft=draft)
        return agent

    return _make
