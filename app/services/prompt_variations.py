from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional

DEFAULT_LIFESTYLE_AUDIENCE = "general audience"
DEFAULT_LIFESTYLE_CATEGORY = "General Products"

HERO_BASE_ANGLE = "three-quarter (45°) front view"
_HERO_ANGLE_VARIATIONS: dict[int, tuple[str, str]] = {
    2: (
        "perfect side profile view (90° side angle)",
        "SIDE PROFILE FOCUS: Show the complete side silhouette of the product. Emphasize the product's "
        "profile, depth, and side details. Perfect for showing product thickness, side features, and overall "
        "side design.",
    ),
    3: (
        "straight-on front view (0° direct front)",
        "FRONT-FACING FOCUS: Show the product straight-on, completely centered and symmetrical. Perfect for "
        "displaying front branding, labels, and main product features directly facing the camera.",
    ),
    4: (
        "dramatic overhead view (60° bird's eye perspective)",
        "OVERHEAD PERSPECTIVE: Capture from above to show the top surface, opening, or interior details. "
        "Great for products with interesting top designs, lids, or internal features.",
    ),
}

_OVERHEAD_ANGLE = "TOP-DOWN OVERHEAD VIEW (90° directly above looking down)"
_OVERHEAD_PREAMBLE = (
    "CRITICAL: OVERHEAD SHOT REQUIRED - Position camera directly above product, looking straight down "
    "(90° top-down view). This is the PRIMARY requirement."
)
_OVERHEAD_REMINDER = (
    "REMINDER: This must be an OVERHEAD shot - camera positioned directly above the product, looking down."
)

_HERO_LINE_CONFLICTS = {
    "position": ("position", "placement", "center", "left", "right", "top", "bottom"),
    "lighting": ("lighting", "light", "bright", "dark", "shadow", "illumination"),
    "background": ("background", "backdrop", "surface", "setting"),
}


@dataclass
class HeroShot:
    """Line-level description of the hero photo brief, edited before rendering."""

    angle: str = HERO_BASE_ANGLE
    lighting: Optional[str] = "bright, even, pro-studio lighting"
    background: Optional[str] = "pure white (RGB 255,255,255)"
    shadow: str = "soft, natural shadow directly beneath product"
    position: Optional[str] = None
    preamble: list[str] = field(default_factory=list)
    focus: Optional[str] = None
    reminder: Optional[str] = None

    def spec_lines(self) -> list[str]:
        lines = []
        if self.position:
            lines.append(f"Position: {self.position}")
        lines.append(f"Angle: {self.angle}")
        if self.lighting:
            lines.append(f"Lighting: {self.lighting}")
        if self.background:
            lines.append(f"Background: {self.background}")
        lines.append(f"Shadow: {self.shadow}")
        return lines


def apply_hero_variation(shot: HeroShot, instance: int) -> HeroShot:
    variation = _HERO_ANGLE_VARIATIONS.get(instance)
    if variation is None:
        return shot
    shot.angle, shot.focus = variation
    return shot


def _words(text: str) -> set[str]:
    return set(re.findall(r"[a-z0-9']+", text.lower()))


def _resolve_hero_angle(user_lower: str) -> Optional[str]:
    if "front" in user_lower and ("facing" in user_lower or "view" in user_lower):
        return "straight-on front view (0° direct front)"
    if "side" in user_lower and ("profile" in user_lower or "view" in user_lower):
        return "perfect side profile view (90° side angle)"
    if any(term in user_lower for term in ("back", "behind", "rear")):
        return "straight-on back view (180° rear view)"
    if "left" in user_lower:
        return "left side view (45° left angle)"
    if "right" in user_lower:
        return "right side view (45° right angle)"
    if any(term in user_lower for term in ("overhead", "bird", "top")):
        return _OVERHEAD_ANGLE
    return None


def resolve_hero_conflicts(shot: HeroShot, instructions: str) -> bool:
    """
    Rewrite the hero brief so the user's words win over the defaults.

    Returns True when any line of the brief changed.
    """
    if not instructions.strip():
        return False
    user_lower = instructions.lower()
    changed = False

    angle = _resolve_hero_angle(user_lower)
    if angle is not None:
        if angle != shot.angle:
            changed = True
        shot.angle = angle
        if angle == _OVERHEAD_ANGLE:
            shot.preamble.insert(0, _OVERHEAD_PREAMBLE)
            shot.reminder = _OVERHEAD_REMINDER
            changed = True

    words = _words(instructions)
    for line, keywords in _HERO_LINE_CONFLICTS.items():
        if getattr(shot, line) and words.intersection(keywords):
            setattr(shot, line, None)
            changed = True
    return changed


@dataclass
class LifestyleVariation:
    person: str
    setting: str
    context: str
    focus: str


_LIFESTYLE_FAMILIES: list[tuple[tuple[str, ...], tuple[str, ...], list[tuple[str, str, str]]]] = [
    (
        ("golf", "golfer"),
        ("golf",),
        [
            (
                "golf course during active play",
                "mid-swing action shot showing product in dynamic use",
                "ACTION SHOT: Show {aud} in mid-golf swing or putting stance, with product clearly visible during "
                "athletic movement. Focus on dynamic motion and performance.",
            ),
            (
                "golf course preparation area with golf bag and equipment",
                "getting ready for golf, organizing gear and equipment",
                "PREPARATION SCENE: Show {aud} standing full-body next to golf bag, selecting clubs or organizing "
                "equipment, with product as part of complete golf outfit. Focus on the ritual of preparing for golf.",
            ),
            (
                "golf cart or clubhouse social environment",
                "social golf moment, interacting with others or enjoying break",
                "SOCIAL MOMENT: Show {aud} in golf cart between holes, or casual conversation at clubhouse, with "
                "product visible during social interaction. Focus on the community aspect of golf.",
            ),
            (
                "golf green during quiet moment",
                "close-up lifestyle moment, adjusting product or taking a break",
                "INTIMATE MOMENT: Close-up or portrait shot of {aud} adjusting product (like visor), taking a drink, "
                "or quiet moment of focus on the green. Show product as personal gear that enhances the experience.",
            ),
        ],
    ),
    (
        ("tennis",),
        ("tennis",),
        [
            (
                "tennis court during active play",
                "action shot during tennis match or practice",
                "ACTION SHOT: Show {aud} in mid-serve, forehand swing, or athletic movement, with product clearly "
                "visible during dynamic tennis action. Focus on performance and movement.",
            ),
            (
                "tennis court sideline with racquet and gear",
                "between sets, organizing equipment and taking break",
                "GEAR MOMENT: Show {aud} full-body with tennis racquet, towel, and equipment, with product as part "
                "of complete tennis outfit. Focus on the professional preparation aspect.",
            ),
            (
                "tennis club social area or bench",
                "post-match social interaction or rest",
                "SOCIAL MOMENT: Show {aud} sitting on bench, talking with partner, or casual moment at tennis club, "
                "with product visible during social interaction. Focus on tennis community.",
            ),
            (
                "tennis court close-up during break",
                "intimate moment adjusting product or hydrating",
                "PERSONAL MOMENT: Close-up shot of {aud} adjusting product, wiping sweat, or drinking water between "
                "games. Show product as essential personal gear.",
            ),
        ],
    ),
    (
        ("run", "fitness", "athlete"),
        ("fitness", "sports"),
        [
            (
                "outdoor trail or track during active workout",
                "mid-run or active exercise motion",
                "ACTION SHOT: Show {aud} in mid-stride running, jumping, or dynamic exercise movement, with product "
                "clearly visible during athletic performance. Focus on motion and energy.",
            ),
            (
                "gym or fitness facility with equipment",
                "strength training or workout preparation",
                "WORKOUT SCENE: Show {aud} full-body with weights, exercise equipment, or gym setup, with product as "
                "part of complete workout attire. Focus on serious training preparation.",
            ),
            (
                "post-workout recovery area or locker room",
                "cooling down, hydrating, or post-workout social moment",
                "RECOVERY MOMENT: Show {aud} stretching, drinking water, or casual conversation after workout, with "
                "product visible during recovery. Focus on the post-exercise lifestyle.",
            ),
            (
                "outdoor fitness environment during break",
                "checking fitness tracker, taking selfie, or quiet moment",
                "PERSONAL MOMENT: Close-up or portrait of {aud} checking phone/watch, adjusting product, or taking a "
                "break. Show product as personal fitness companion.",
            ),
        ],
    ),
    (
        ("cook", "chef"),
        ("kitchen", "cooking"),
        [
            (
                "kitchen during active cooking",
                "mid-cooking action, stirring, chopping, or preparing food",
                "ACTION SHOT: Show {aud} actively cooking, stirring pot, chopping vegetables, or hands-on food "
                "preparation, with product clearly visible during cooking action. Focus on culinary skill in motion.",
            ),
            (
                "kitchen with ingredients and cooking tools laid out",
                "meal planning and ingredient preparation",
                "PREPARATION SCENE: Show {aud} full-body organizing ingredients, reading recipe, or setting up "
                "cooking station, with product as part of complete cooking setup. Focus on the ritual of meal "
                "preparation.",
            ),
            (
                "dining area or kitchen island with finished meal",
                "presenting finished dish or sharing meal with others",
                "PRESENTATION MOMENT: Show {aud} serving food, setting table, or sharing meal with family/friends, "
                "with product visible during social dining. Focus on the joy of sharing food.",
            ),
            (
                "kitchen during quiet cooking moment",
                "tasting food, taking break, or enjoying cooking process",
                "INTIMATE MOMENT: Close-up of {aud} tasting food, adjusting seasoning, or peaceful moment during "
                "cooking, with product as personal cooking companion. Focus on the meditative aspect of cooking.",
            ),
        ],
    ),
    (
        ("parent", "mom", "dad", "family"),
        (),
        [
            (
                "home during busy family activity",
                "multitasking, helping children, or managing household tasks",
                "ACTION SHOT: Show {aud} in motion helping children, carrying items, or managing multiple tasks, "
                "with product clearly visible during active parenting. Focus on the dynamic nature of family life.",
            ),
            (
                "family space with children and family items",
                "family time, playing with children, or organizing family activities",
                "FAMILY SCENE: Show {aud} full-body with children, toys, or family gear, with product as part of "
                "complete family lifestyle. Focus on the joy of family interaction.",
            ),
            (
                "quiet family moment or evening routine",
                "bedtime routine, reading to children, or peaceful family time",
                "NURTURING MOMENT: Show {aud} reading to child, tucking in, or gentle family interaction, with "
                "product visible during tender moments. Focus on the caring aspect of parenting.",
            ),
            (
                "personal space during rare quiet moment",
                "self-care break, coffee time, or personal reflection",
                "PERSONAL MOMENT: Close-up of {aud} enjoying coffee, reading, or taking a personal break, with "
                "product as personal comfort item. Focus on the importance of self-care for parents.",
            ),
        ],
    ),
    (
        ("professional", "business", "office", "work"),
        (),
        [
            (
                "office during active work",
                "focused work session, presenting, or collaborative meeting",
                "ACTION SHOT: Show {aud} actively working at computer, presenting to colleagues, or engaged in "
                "dynamic work activity, with product clearly visible during professional performance. Focus on "
                "competence and focus.",
            ),
            (
                "office or workspace with professional tools",
                "workspace organization, planning, or preparing for work",
                "WORKSPACE SCENE: Show {aud} full-body with desk, documents, or professional equipment, with product "
                "as part of complete professional setup. Focus on preparation and organization.",
            ),
            (
                "business networking or meeting environment",
                "professional networking, client meeting, or business social event",
                "NETWORKING MOMENT: Show {aud} shaking hands, in conversation, or at business event, with product "
                "visible during professional interaction. Focus on professional relationships.",
            ),
            (
                "quiet office moment or break area",
                "coffee break, reflection, or personal moment at work",
                "PERSONAL MOMENT: Close-up of {aud} drinking coffee, looking out window, or quiet moment of "
                "reflection, with product as personal professional companion. Focus on work-life balance.",
            ),
        ],
    ),
]

_GENERIC_LIFESTYLE_VARIATIONS = [
    (
        "home environment during active use",
        "person actively using or interacting with product in daily routine",
        "ACTION SHOT: Show {aud} actively using the product in daily routine, with product clearly visible during "
        "functional use. Focus on practical application and everyday utility.",
    ),
    (
        "lifestyle environment with personal items",
        "product as part of complete lifestyle setup",
        "LIFESTYLE SCENE: Show {aud} full-body with product as part of complete personal style or setup, "
        "surrounded by relevant lifestyle items. Focus on how product fits into their world.",
    ),
    (
        "social environment with others",
        "sharing or enjoying product in social setting",
        "SOCIAL MOMENT: Show {aud} using product while interacting with others, sharing experience, or in "
        "community setting. Focus on social confidence and connection.",
    ),
    (
        "personal space during quiet moment",
        "intimate personal moment with product",
        "PERSONAL MOMENT: Close-up or portrait shot of {aud} in quiet moment with product, showing personal "
        "connection or satisfaction. Focus on emotional connection and personal value.",
    ),
]


def select_lifestyle_variation(
    *, instance: int, target_audience: Optional[str], product_category: Optional[str]
) -> LifestyleVariation:
    audience = target_audience or DEFAULT_LIFESTYLE_AUDIENCE
    category = product_category or DEFAULT_LIFESTYLE_CATEGORY
    audience_lower = audience.lower()
    category_lower = category.lower()

    variations = _GENERIC_LIFESTYLE_VARIATIONS
    for audience_terms, category_terms, family in _LIFESTYLE_FAMILIES:
        if any(term in audience_lower for term in audience_terms) or any(
            term in category_lower for term in category_terms
        ):
            variations = family
            break

    index = instance - 1 if 1 <= instance <= len(variations) else 0
    setting, context, focus = variations[index]
    return LifestyleVariation(person=audience, setting=setting, context=context, focus=focus.format(aud=audience))


LIFESTYLE_SCENE_GUIDANCE = [
    "• Pick a realistic environment that naturally fits the product category.",
    "  – Kitchen / dining area for Home & Kitchen",
    "  – Backyard / lawn for Lawn & Garden",
    "  – Gym / trail for Sports & Outdoors",
    "  – …(adapt as needed)",
]


@dataclass
class LifestyleScene:
    audience: str
    scene_lines: list[str] = field(default_factory=lambda: list(LIFESTYLE_SCENE_GUIDANCE))
    interaction_line: Optional[str] = None

    def interaction(self) -> str:
        if self.interaction_line:
            return self.interaction_line
        return (
            f"• Place a {self.audience} model using or interacting with the product in a way that spotlights "
            "at least one key feature."
        )


def apply_lifestyle_variation(scene: LifestyleScene, variation: LifestyleVariation) -> LifestyleScene:
    scene.audience = variation.person
    scene.scene_lines = [f"• Scene: {variation.setting}", f"• Story: {variation.context}"]
    scene.interaction_line = f"• {variation.focus}"
    return scene


_PERSON_KEYWORDS = (
    "person", "user", "model", "mom", "dad", "teen", "teenager", "senior", "woman", "man",
    "child", "adult", "elderly", "young", "professional", "athlete", "student",
)
_PERSON_RULES = (
    (("mom", "mother"), "mom (30s-40s)"),
    (("dad", "father"), "dad (30s-40s)"),
    (("teen", "teenager"), "teenager (16-19)"),
    (("senior", "elderly"), "senior adult (60+)"),
    (("professional",), "professional (25-45)"),
    (("athlete",), "athlete/fitness enthusiast (20s-30s)"),
    (("student",), "college student (18-25)"),
    (("young",), "young adult (20s-30s)"),
)
_SETTING_KEYWORDS = (
    "setting", "location", "place", "kitchen", "bedroom", "office", "gym", "beach", "park", "outdoor",
    "indoor", "backyard", "garden", "living room", "bathroom", "garage", "studio", "restaurant", "cafe",
    "home", "work",
)
_SETTING_RULES = (
    (("kitchen",), "modern kitchen with natural lighting"),
    (("bedroom",), "clean, well-lit bedroom"),
    (("office",), "professional office or home office space"),
    (("gym",), "well-equipped gym or fitness environment"),
    (("beach",), "beautiful beach or coastal outdoor setting"),
    (("park",), "scenic park or outdoor recreational area"),
    (("backyard", "garden"), "well-maintained backyard or garden space"),
    (("living room",), "comfortable, modern living room"),
    (("outdoor",), "appropriate outdoor environment"),
    (("indoor",), "suitable indoor environment"),
)
_ACTIVITY_KEYWORDS = (
    "activity", "action", "using", "holding", "doing", "performing", "exercise", "exercising", "work",
    "working", "play", "playing", "cook", "cooking", "clean", "cleaning", "relax", "relaxing", "study",
    "studying",
)
_ACTIVITY_RULES = (
    (("cook",), "cooking or meal preparation"),
    (("exercise", "exercising", "workout"), "exercising or working out"),
    (("work",), "working or being productive"),
    (("relax",), "relaxing or leisure activity"),
    (("clean",), "cleaning or organizing"),
    (("study",), "studying or learning"),
)


def _first_keyword(text: str, keywords: tuple[str, ...]) -> Optional[str]:
    return next((keyword for keyword in keywords if keyword in text), None)


def _apply_rules(text: str, rules, fallback: str) -> str:
    for terms, replacement in rules:
        if any(term in text for term in terms):
            return replacement
    return fallback


def resolve_lifestyle_conflicts(scene: LifestyleScene, instructions: str) -> bool:
    """Substitute person, setting and activity from the user's words. Returns True on any change."""
    if not instructions.strip():
        return False
    user_lower = instructions.lower()
    changed = False

    person = _first_keyword(user_lower, _PERSON_KEYWORDS)
    if person:
        scene.audience = _apply_rules(user_lower, _PERSON_RULES, f"{person} (appropriate age demographic)")
        changed = True

    setting = _first_keyword(user_lower, _SETTING_KEYWORDS)
    if setting:
        scene.scene_lines = [f"• Scene: {_apply_rules(user_lower, _SETTING_RULES, f'{setting} environment')}"]
        changed = True

    activity = _first_keyword(user_lower, _ACTIVITY_KEYWORDS)
    if activity:
        described = _apply_rules(user_lower, _ACTIVITY_RULES, activity)
        scene.interaction_line = (
            f"• Show the model {described} with the product in a way that highlights its key features."
        )
        changed = True
    return changed
