from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from app.config import settings
from app.db.enums import AgentTypeEnum
from app.llm.client import LLMGenerationParams
from app.services.prompt_variations import (
    HeroShot,
    LifestyleScene,
    apply_hero_variation,
    apply_lifestyle_variation,
    resolve_hero_conflicts,
    resolve_lifestyle_conflicts,
    select_lifestyle_variation,
)

logger = logging.getLogger(__name__)

_PROMPT_CACHE: Dict[str, Tuple[str, str]] = {}

_SYSTEM_PROMPT_FILES = {
    AgentTypeEnum.title: "title_system.md",
    AgentTypeEnum.bullet_points: "bullet_points_system.md",
}

_GENERATION_SETTINGS: dict[AgentTypeEnum, tuple[float, int]] = {
    AgentTypeEnum.title: (0.8, 100),
    AgentTypeEnum.bullet_points: (0.7, 600),
}
_DEFAULT_GENERATION_SETTINGS = (0.7, 300)

_INFO_HEADERS = {
    AgentTypeEnum.title: "PRODUCT INFORMATION FOR TITLE GENERATION:",
    AgentTypeEnum.bullet_points: "PRODUCT INFORMATION FOR BULLET POINTS GENERATION:",
    AgentTypeEnum.hero_image: "PRODUCT INFORMATION FOR HERO IMAGE GENERATION:",
    AgentTypeEnum.lifestyle_image: "PRODUCT INFORMATION FOR LIFESTYLE IMAGE GENERATION:",
    AgentTypeEnum.infographic: "PRODUCT INFORMATION FOR INFOGRAPHIC GENERATION:",
}

_SPEC_LABELS = (
    ("dimensions", "Dimensions"),
    ("weight", "Weight"),
    ("materials", "Materials"),
    ("color", "Color"),
    ("size", "Size"),
)


def load_prompt(name: str) -> Tuple[str, str]:
    """
    Load a listing prompt markdown file and compute its SHA256.
    """
    if name in _PROMPT_CACHE:
        return _PROMPT_CACHE[name]

    app_root = Path(__file__).resolve().parents[1]
    prompt_path = app_root / "prompts" / "listing" / name
    text = prompt_path.read_text(encoding="utf-8").strip()
    sha = hashlib.sha256(text.encode("utf-8")).hexdigest()
    _PROMPT_CACHE[name] = (text, sha)
    return text, sha


def system_prompt_for(agent_type: AgentTypeEnum) -> str:
    text, _sha = load_prompt(_SYSTEM_PROMPT_FILES.get(agent_type, _SYSTEM_PROMPT_FILES[AgentTypeEnum.title]))
    return text


def refine_system_prompt_for(agent_type: AgentTypeEnum) -> str:
    text, _sha = load_prompt("refine_system.md")
    sections: dict[str, str] = {}
    current: Optional[str] = None
    for line in text.splitlines():
        if line.startswith("## "):
            current = line[3:].strip()
            sections[current] = ""
        elif current is not None and line.strip():
            sections[current] = (sections[current] + " " + line.strip()).strip()
    return sections.get(agent_type.value) or sections[AgentTypeEnum.title.value]


def generation_params(agent_type: AgentTypeEnum) -> LLMGenerationParams:
    temperature, max_tokens = _GENERATION_SETTINGS.get(agent_type, _DEFAULT_GENERATION_SETTINGS)
    return LLMGenerationParams(model=settings.TEXT_MODEL, temperature=temperature, max_tokens=max_tokens)


def refine_params(agent_type: AgentTypeEnum) -> LLMGenerationParams:
    max_tokens = 500 if agent_type == AgentTypeEnum.bullet_points else 300
    return LLMGenerationParams(model=settings.REFINE_MODEL, temperature=0.7, max_tokens=max_tokens)


@dataclass
class ConnectedOutput:
    type: str
    content: str


@dataclass
class ProfileContext:
    brand_name: Optional[str] = None
    product_category: Optional[str] = None
    niche: Optional[str] = None
    tone: Optional[str] = None
    target_audience: Optional[str] = None


@dataclass
class PromptContext:
    """Every prompt field resolved once, highest-priority source first."""

    title: Optional[str] = None
    brand_name: Optional[str] = None
    brand_voice: Optional[str] = None
    product_name: Optional[str] = None
    key_features: Optional[str] = None
    target_keywords: Optional[str] = None
    target_audience: Optional[str] = None
    product_category: Optional[str] = None
    specifications: Optional[dict[str, Any]] = None
    niche: Optional[str] = None
    limited_context: bool = False
    has_profile: bool = False
    connected_outputs: list[ConnectedOutput] = field(default_factory=list)


def _clean(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _joined(values: Any) -> Optional[str]:
    if not values:
        return None
    items = [str(item).strip() for item in values if str(item).strip()]
    return ", ".join(items) or None


def _profile_context(profile: Any) -> Optional[ProfileContext]:
    if profile is None:
        return None
    return ProfileContext(
        brand_name=_clean(getattr(profile, "brand_name", None)),
        product_category=_clean(getattr(profile, "product_category", None)),
        niche=_clean(getattr(profile, "niche", None)),
        tone=_clean(getattr(profile, "tone", None)),
        target_audience=_clean(getattr(profile, "target_audience", None)),
    )


def build_prompt_context(
    product: Any,
    *,
    brand_kit: Any = None,
    profile: Any = None,
    connected_outputs: Optional[list[ConnectedOutput]] = None,
) -> PromptContext:
    profile_ctx = _profile_context(profile)
    ctx = PromptContext(
        title=_clean(getattr(product, "title", None)),
        has_profile=profile_ctx is not None,
        connected_outputs=[o for o in (connected_outputs or []) if _clean(o.content)],
    )

    brand_info = getattr(product, "brand_info", None) or {}
    if brand_kit is not None and _clean(getattr(brand_kit, "brand_name", None)):
        ctx.brand_name = _clean(brand_kit.brand_name)
        ctx.brand_voice = _clean(getattr(brand_kit, "brand_voice", None))
    elif _clean(brand_info.get("name")):
        ctx.brand_name = _clean(brand_info.get("name"))
    elif profile_ctx and profile_ctx.brand_name:
        ctx.brand_name = profile_ctx.brand_name
        ctx.brand_voice = profile_ctx.tone

    node_product_name = _clean(getattr(product, "product_name", None))
    ctx.product_name = node_product_name or ctx.title

    ctx.key_features = _clean(getattr(product, "key_features", None)) or _joined(
        getattr(product, "features", None)
    )
    ctx.target_keywords = _clean(getattr(product, "target_keywords", None)) or _joined(
        getattr(product, "keywords", None)
    )

    audience = _clean(getattr(product, "target_audience", None))
    custom_audience = _clean(getattr(product, "custom_target_audience", None))
    if audience == "Custom" and custom_audience:
        ctx.target_audience = custom_audience
    elif audience:
        ctx.target_audience = audience
    elif profile_ctx:
        ctx.target_audience = profile_ctx.target_audience

    ctx.product_category = _clean(getattr(product, "product_category", None)) or (
        profile_ctx.product_category if profile_ctx else None
    )
    ctx.specifications = getattr(product, "specifications", None) or None
    ctx.niche = profile_ctx.niche if profile_ctx else None
    ctx.limited_context = not node_product_name and not ctx.key_features
    return ctx


def _specification_lines(specifications: Optional[dict[str, Any]]) -> list[str]:
    if not specifications:
        return []
    lines = []
    for key, label in _SPEC_LABELS:
        value = specifications.get(key)
        if isinstance(value, list):
            value = _joined(value)
        if value:
            lines.append(f"- {label}: {value}")
    return ["Product Specifications:", *lines] if lines else []


def _product_information(agent_type: AgentTypeEnum, ctx: PromptContext) -> list[str]:
    lines = [_INFO_HEADERS[agent_type]]
    if agent_type in (AgentTypeEnum.title, AgentTypeEnum.bullet_points):
        if ctx.brand_name:
            lines.append(f"Brand Name: {ctx.brand_name}")
        if ctx.brand_voice:
            lines.append(f"Brand Tone of Voice: {ctx.brand_voice}")
    labelled = (
        ("Product Name", ctx.product_name),
        ("Key Features", ctx.key_features),
        ("Target Keywords", ctx.target_keywords),
        ("Target Audience", ctx.target_audience),
        ("Product Category", ctx.product_category),
    )
    lines.extend(f"{label}: {value}" for label, value in labelled if value)
    lines.extend(_specification_lines(ctx.specifications))
    return lines


def _title_instructions() -> list[str]:
    return [
        "GENERATE AN OPTIMIZED AMAZON PRODUCT TITLE:",
        "Using the product information above, create a compelling Amazon product title that:",
        "- Starts with the brand name and product name",
        "- Incorporates the key features naturally",
        "- Includes relevant target keywords for SEO",
        "- Matches the specified brand voice tone",
        "- Appeals to the target audience",
        "- Follows all Amazon title formatting guidelines",
        "- Is between 80-120 characters for optimal performance",
    ]


def _bullet_instructions() -> list[str]:
    return [
        "GENERATE AMAZON BULLET POINTS & DESCRIPTION:",
        "Using the product information above, create compelling Amazon listing content that:",
        "- Transform the key features into exactly 5 bullet points",
        "- Start each bullet with a feature name in Title Case followed by a colon",
        "- Include the target keywords naturally in the bullet points",
        "- Write in the specified brand voice tone",
        "- Appeal directly to the target audience's needs and pain points",
        "- Follow Amazon bullet point guidelines (140-200 characters each)",
        "- After the 5 bullet points, add one blank line",
        "- Then write exactly 1 product description paragraph (3-6 sentences)",
    ]


def _hero_instructions(shot: HeroShot) -> list[str]:
    lines = [
        "GENERATE AMAZON HERO IMAGE:",
        "You are a veteran e-commerce photographer who shoots Amazon MAIN images that dominate search results. "
        "Follow Amazon's image policy to the letter while maximizing click-through rate.",
        "",
        "Transform the user-supplied source_image into one perfect Amazon hero shot.",
        *shot.spec_lines(),
        "",
        "Hard requirements:",
        "1. Show the entire product exactly as in source_image, no missing parts, no added items.",
        "2. Center the product and fill ~85-90% of the frame.",
        "3. Background must be 100% pure white: no props, text, logos, watermarks, gradients, or reflections.",
        "4. Keep colors true to the source; preserve material textures.",
        "5. Output one ultra-sharp, photorealistic square JPEG, ≥ 3000 × 3000 px.",
        "6. Subtle depth-of-field is OK, but all product edges stay crisp.",
        "",
        "Negative prompt: extra objects, packaging variations, people, text, watermark, illustration style, "
        "low-resolution, noise.",
        "",
        "Return exactly one compliant, high-impact image ready for Amazon upload.",
    ]
    if shot.focus:
        lines += ["", shot.focus]
    return lines


def _lifestyle_instructions(ctx: PromptContext, scene: LifestyleScene) -> list[str]:
    return [
        "GENERATE AMAZON LIFESTYLE IMAGE:",
        "",
        "/* SYSTEM */",
        "You are a senior e-commerce photographer who creates Amazon LIFESTYLE images that (1) boost conversion "
        "and (2) deliver crystal-clear visual data to Amazon's Rufus AI. Follow Amazon image rules; keep scenes "
        "authentic, photorealistic, and information-rich, with no text overlays or brand-name props.",
        "",
        "/* USER */",
        "Generate one high-resolution lifestyle photo using the details below.",
        "",
        "Product (reference image): the supplied source image, do not alter",
        f"Product name: **{ctx.product_name or ''}**",
        f"Key features: {ctx.key_features or ''}",
        f"Target audience: {scene.audience}",
        f"Product category: {ctx.product_category or ''}",
        "",
        "**Scene guidance**",
        *scene.scene_lines,
        scene.interaction(),
        "• Add only props that reinforce those features (e.g., gardening gloves beside a lawn tool).",
        "",
        "**Hard requirements**",
        "1. Product looks identical to the source image: no extra parts, no missing details, true colors.",
        "2. Main subject: product + user; keep both fully visible and in clear focus.",
        "3. Lighting: natural and flattering for the setting (golden-hour sun for outdoors, soft window light for "
        "indoors). Avoid harsh shadows.",
        "4. Composition: rule of thirds or centered, whichever best emphasizes product use.",
        "5. Resolution ≥ 3000 × 3000 px, photorealistic, DSLR-level detail. Subtle depth-of-field OK, but product "
        "edges must stay sharp.",
        "6. Pure lifestyle photo only: **no** on-image text, logos, watermarks, or unrelated items.",
        "7. Deliver one square JPEG.",
        "",
        "The final image should instantly help shoppers (and Rufus) understand **who** it's for, **where** it's "
        "used, and **why** it matters.",
    ]


def _infographic_instructions(ctx: PromptContext) -> list[str]:
    return [
        "GENERATE AMAZON INFOGRAPHIC DESIGN:",
        "",
        "/* SYSTEM */",
        "You are a senior infographic designer who creates Amazon PRODUCT infographics that boost conversion rates "
        "and provide clear value propositions. Design clean, professional infographics that highlight key "
        "features, benefits, and specifications in an easy-to-read format.",
        "",
        "/* USER */",
        "Create one high-quality product infographic using the details below.",
        "",
        "Product (reference image): the supplied source image for reference",
        f"Product name: **{ctx.product_name or ''}**",
        f"Key features: {ctx.key_features or ''}",
        f"Target audience: {ctx.target_audience or ''}",
        f"Product category: {ctx.product_category or ''}",
        "",
        "**Design guidelines**",
        "• Create a clean, modern infographic layout with clear sections",
        "• Feature the product prominently with feature callouts and benefits",
        "• Use professional color scheme (blues, grays, whites work well for Amazon)",
        "• Include icons, arrows, and visual elements to guide the eye",
        "• Organize information in digestible chunks (features, benefits, specs)",
        "• Ensure text is large enough to read on mobile devices",
        "",
        "**Content structure**",
        "• Product image/photo as the central element",
        "• Key features with corresponding icons or visual callouts",
        "• Benefits that solve customer pain points",
        "• Technical specifications if relevant",
        "• Comparison points or competitive advantages",
        "• Clear hierarchy with the most important info prominently placed",
        "",
        "**Hard requirements**",
        "1. Clean, professional design suitable for Amazon product listings",
        "2. High contrast text that's easily readable",
        "3. Product should be clearly visible and well-integrated",
        "4. No competitor brands, logos, or trademarked content",
        "5. Resolution ≥ 1600 × 1600 px, square format for Amazon compatibility",
        "6. Modern, clean aesthetic that builds trust and credibility",
        "7. Information organized logically from most to least important",
        "8. Visual elements (icons, arrows, boxes) enhance rather than clutter",
        "",
        "The final infographic should help shoppers quickly understand the product's value proposition and key "
        "differentiators.",
    ]


def _limited_context_block(agent_type: AgentTypeEnum, ctx: PromptContext) -> list[str]:
    lines = ["LIMITED CONTEXT MODE - No product data available", ""]
    if ctx.title:
        lines.append(f"Product Title: {ctx.title}")
    lines += [
        f"Generate high-quality {agent_type.value} content based on the title and any connected content.",
        "Focus on creating compelling, clickable content that aligns with the title's topic.",
    ]
    return lines


def _brand_information(ctx: PromptContext) -> list[str]:
    if not ctx.has_profile:
        return []
    labelled = (
        ("Brand Name", ctx.brand_name),
        ("Product Category", ctx.product_category),
        ("Niche", ctx.niche),
        ("Tone", ctx.brand_voice),
        ("Target Audience", ctx.target_audience),
    )
    return ["Brand Information:", *(f"{label}: {value}" for label, value in labelled if value)]


def _connected_output_lines(ctx: PromptContext) -> list[str]:
    if not ctx.connected_outputs:
        return []
    return ["Related content from other agents:", *(f"{o.type}: {o.content}" for o in ctx.connected_outputs)]


def _user_request_lines(
    agent_type: AgentTypeEnum, request: str, *, translated: bool = False
) -> list[str]:
    if agent_type == AgentTypeEnum.hero_image:
        if translated:
            return [
                f'USER CONTEXT: User requested "{request}" - this has been translated into precise photography '
                "instructions above."
            ]
        return [
            f'PRIMARY USER REQUEST: "{request}"',
            "IMPORTANT: The user's request above is the PRIMARY instruction. Follow it precisely while maintaining "
            "Amazon compliance (white background, studio lighting, etc.).",
            "If there are any conflicts between the user's request and other instructions, ALWAYS prioritize the "
            "user's request.",
        ]
    if agent_type == AgentTypeEnum.lifestyle_image:
        return [
            f'PRIMARY USER REQUEST: "{request}"',
            "IMPORTANT: The user's request above is the PRIMARY instruction. Follow it precisely while maintaining "
            "lifestyle context and Amazon compliance.",
            "If there are any conflicts between the user's request and other instructions, ALWAYS prioritize the "
            "user's request.",
        ]
    if agent_type == AgentTypeEnum.infographic:
        return [
            f'USER REQUEST: The user specifically requested: "{request}"',
            "Please incorporate this request while maintaining the professional infographic design and Amazon "
            "compliance.",
        ]
    return [f'USER REQUEST: "{request}"', "Apply this request while following every formatting rule above."]


def _join_sections(sections: list[list[str]]) -> str:
    return "\n\n".join("\n".join(section) for section in sections if section) + "\n"


def build_prompt(
    agent_type: AgentTypeEnum,
    ctx: PromptContext,
    *,
    instance: int = 1,
    user_request: Optional[str] = None,
) -> str:
    """
    Render the generation prompt for one agent.

    `instance` is the agent's 1-based ordinal among same-type agents in its project and
    selects the hero angle or lifestyle story. `user_request` is free text from the
    generate call or chat that overrides template defaults.
    """
    request = (user_request or "").strip()
    sections: list[list[str]] = []
    translated = False

    if ctx.limited_context:
        sections.append(_limited_context_block(agent_type, ctx))
    else:
        sections.append(_product_information(agent_type, ctx))
        if agent_type == AgentTypeEnum.title:
            sections.append(_title_instructions())
        elif agent_type == AgentTypeEnum.bullet_points:
            sections.append(_bullet_instructions())
        elif agent_type == AgentTypeEnum.hero_image:
            shot = apply_hero_variation(HeroShot(), instance)
            if request:
                translated = resolve_hero_conflicts(shot, request)
            # The overhead requirement leads the whole prompt.
            if shot.preamble:
                sections.insert(0, list(shot.preamble))
            sections.append(_hero_instructions(shot))
            if shot.reminder:
                sections.append([shot.reminder])
        elif agent_type == AgentTypeEnum.lifestyle_image:
            scene = LifestyleScene(audience=ctx.target_audience or "")
            if 1 <= instance <= 4:
                variation = select_lifestyle_variation(
                    instance=instance,
                    target_audience=ctx.target_audience,
                    product_category=ctx.product_category,
                )
                apply_lifestyle_variation(scene, variation)
            if request:
                resolve_lifestyle_conflicts(scene, request)
            sections.append(_lifestyle_instructions(ctx, scene))
        elif agent_type == AgentTypeEnum.infographic:
            sections.append(_infographic_instructions(ctx))

    sections.append(_connected_output_lines(ctx))
    if ctx.limited_context:
        sections.append(_brand_information(ctx))
    if request:
        sections.append(_user_request_lines(agent_type, request, translated=translated))

    prompt = _join_sections(sections)
    logger.debug(
        "Built listing prompt",
        extra={"agent_type": agent_type.value, "instance": instance, "limited_context": ctx.limited_context},
    )
    return prompt


def build_refine_context(draft: str, ctx: PromptContext) -> str:
    lines = [f"Current draft: {draft}", ""]
    product_lines = [
        f"{label}: {value}"
        for label, value in (
            ("Title", ctx.product_name),
            ("Features", ctx.key_features),
            ("Keywords", ctx.target_keywords),
        )
        if value
    ]
    if product_lines:
        lines += ["Product Context:", *product_lines, ""]
    if ctx.connected_outputs:
        lines += ["Connected Agent Outputs:", *(f"{o.type}: {o.content}" for o in ctx.connected_outputs), ""]
    if ctx.brand_name or ctx.has_profile:
        brand = ctx.brand_name or ""
        if ctx.niche:
            brand = f"{brand} ({ctx.niche})".strip()
        lines.append("Brand Profile:")
        if brand:
            lines.append(f"Brand: {brand}")
        for label, value in (
            ("Product Category", ctx.product_category),
            ("Tone", ctx.brand_voice),
            ("Target Audience", ctx.target_audience),
        ):
            if value:
                lines.append(f"{label}: {value}")
    return "\n".join(lines).rstrip() + "\n"
