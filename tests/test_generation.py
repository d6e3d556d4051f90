import pytest

from app.config import settings
from app.db.enums import AgentStatusEnum, AgentTypeEnum
from app.db.repositories.agents import AgentsRepository
from app.db.repositories.products import ProductsRepository
from app.llm.client import LLMClientConfigError
from app.services.provider_errors import (
    DEFAULT_FAILURE_MESSAGE,
    GENERATE_CONTENT_POLICY_MESSAGE,
    NO_PRODUCT_IMAGES_MESSAGE,
    QUOTA_MESSAGE,
    REFINE_CONTENT_POLICY_MESSAGE,
    GenerationError,
    map_provider_error,
    not_configured_message,
)


def test_title_generation_moves_agent_through_statuses(
    db_session, auth_context, generation_service, fake_llm, make_agent
):
    agent = make_agent()
    assert agent.status == AgentStatusEnum.idle
    observed = []
    fake_llm.before_call = lambda: observed.append(
        AgentsRepository(db_session).get(user_id=auth_context.user_id, agent_id=agent.id).status
    )

    result = generation_service.generate(agent_id=agent.id, user_id=auth_context.user_id)

    assert observed == [AgentStatusEnum.generating]
    assert "Acme Mug" in fake_llm.prompts[0]
    assert "Insulated, 12oz" in fake_llm.prompts[0]
    assert result.content == "Acme Mug 12oz Insulated Travel Mug"
    db_session.refresh(agent)
    assert agent.status == AgentStatusEnum.ready
    assert agent.draft == "Acme Mug 12oz Insulated Travel Mug"


def test_provider_failure_marks_agent_errored_and_restores_draft(
    db_session, auth_context, generation_service, fake_llm, make_agent
):
    agent = make_agent(draft="Existing title")
    fake_llm.error = RuntimeError("upstream exploded")

    with pytest.raises(GenerationError) as excinfo:
        generation_service.generate(agent_id=agent.id, user_id=auth_context.user_id)

    assert excinfo.value.message == "upstream exploded"
    db_session.refresh(agent)
    assert agent.status == AgentStatusEnum.error
    assert agent.draft == "Existing title"


def test_connected_agent_output_is_included_in_prompt(
    auth_context, generation_service, fake_llm, make_agent, product
):
    title = make_agent(draft="Acme Mug 12oz Insulated Travel Mug")
    bullets = make_agent(AgentTypeEnum.bullet_points, position={"x": 700.0, "y": 100.0})
    generation_service.agents.update_connections(bullets, connections=[str(product.id), str(title.id)])

    generation_service.generate(agent_id=bullets.id, user_id=auth_context.user_id)

    prompt = fake_llm.prompts[-1]
    assert "Related content from other agents:" in prompt
    assert "title: Acme Mug 12oz Insulated Travel Mug" in prompt


def test_hero_image_generation_edits_product_image_and_stores_result(
    db_session, auth_context, generation_service, fake_images, fake_storage, make_agent, product
):
    agent = make_agent(AgentTypeEnum.hero_image)

    result = generation_service.generate(agent_id=agent.id, user_id=auth_context.user_id)

    assert fake_images.edits[0]["image"] == fake_storage.download_bytes(key=product.storage_key)[0]
    assert fake_images.edits[0]["model"] == settings.IMAGE_EDIT_MODEL
    assert result.image_url.startswith("https://cdn.test/generated/hero-image/")
    db_session.refresh(agent)
    assert agent.status == AgentStatusEnum.ready
    assert agent.image_url == result.image_url
    assert agent.image_storage_key == fake_storage.stored[-1].key


def test_image_generation_without_product_image_fails_clearly(
    db_session, auth_context, project, generation_service
):
    bare = ProductsRepository(db_session).create(
        user_id=auth_context.user_id, project_id=project.id, canvas_position={"x": 0.0, "y": 0.0}
    )
    agent = AgentsRepository(db_session).create(
        user_id=auth_context.user_id,
        product_id=bare.id,
        project_id=project.id,
        agent_type=AgentTypeEnum.infographic,
        canvas_position={"x": 300.0, "y": 0.0},
    )

    with pytest.raises(GenerationError) as excinfo:
        generation_service.generate(agent_id=agent.id, user_id=auth_context.user_id)

    assert excinfo.value.message == NO_PRODUCT_IMAGES_MESSAGE
    db_session.refresh(agent)
    assert agent.status == AgentStatusEnum.error


def test_hero_refine_falls_back_to_generation_when_edit_fails(
    db_session, auth_context, generation_service, fake_images, make_agent
):
    agent = make_agent(AgentTypeEnum.hero_image)
    generation_service.generate(agent_id=agent.id, user_id=auth_context.user_id)
    fake_images.error = RuntimeError("edit endpoint unavailable")

    result = generation_service.refine(agent_id=agent.id, user_id=auth_context.user_id, message="Warmer lighting")

    assert fake_images.edits[-1]["model"] == settings.IMAGE_REFINE_EDIT_MODEL
    assert fake_images.generations[0]["model"] == settings.IMAGE_REFINE_GENERATE_MODEL
    assert "USER FEEDBACK: Warmer lighting" in fake_images.generations[0]["prompt"]
    assert result.content.startswith("The mug sits centered")
    db_session.refresh(agent)
    assert [entry["role"] for entry in agent.chat_history] == ["user", "ai"]


def test_lifestyle_refine_regenerates_with_user_request(auth_context, generation_service, fake_images, make_agent):
    agent = make_agent(AgentTypeEnum.lifestyle_image)

    generation_service.refine(agent_id=agent.id, user_id=auth_context.user_id, message="Show it on a desk")

    assert 'PRIMARY USER REQUEST: "Show it on a desk"' in fake_images.edits[-1]["prompt"]


@pytest.mark.parametrize(
    ("error", "refining", "expected"),
    [
        (RuntimeError("Your request was rejected: content_policy_violation"), False, GENERATE_CONTENT_POLICY_MESSAGE),
        (RuntimeError("Your request was rejected: content_policy_violation"), True, REFINE_CONTENT_POLICY_MESSAGE),
        (RuntimeError("You exceeded your current quota"), False, QUOTA_MESSAGE),
        (RuntimeError("socket closed"), False, "socket closed"),
        (RuntimeError(""), False, DEFAULT_FAILURE_MESSAGE),
    ],
)
def test_map_provider_error(error, refining, expected):
    assert map_provider_error(error, agent_type=AgentTypeEnum.hero_image, refining=refining) == expected


def test_missing_provider_configuration_message():
    message = map_provider_error(LLMClientConfigError("OPENAI_API_KEY not configured"), agent_type=AgentTypeEnum.title)
    assert message == not_configured_message(AgentTypeEnum.title)
    assert message.startswith("Title generation service is not configured")
