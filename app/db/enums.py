from enum import Enum


class AgentTypeEnum(str, Enum):
    title = "title"
    bullet_points = "bullet-points"
    hero_image = "hero-image"
    lifestyle_image = "lifestyle-image"
    infographic = "infographic"


IMAGE_AGENT_TYPES = frozenset(
    {AgentTypeEnum.hero_image, AgentTypeEnum.lifestyle_image, AgentTypeEnum.infographic}
)


class AgentStatusEnum(str, Enum):
    idle = "idle"
    generating = "generating"
    ready = "ready"
    error = "error"


class ChatRoleEnum(str, Enum):
    user = "user"
    ai = "ai"


class ProductImageRoleEnum(str, Enum):
    main = "main"
    angle = "angle"
    detail = "detail"


class PaletteTypeEnum(str, Enum):
    preset = "preset"
    custom = "custom"


class PalettePresetEnum(str, Enum):
    professional_blue = "professional-blue"
    warm_earth = "warm-earth"
    bold_modern = "bold-modern"


class CanvasNodeTypeEnum(str, Enum):
    product = "videoNode"
    agent = "agentNode"
    brand_kit = "brandKitNode"
