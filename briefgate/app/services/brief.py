"""Design brief generation.

Normalizes the loosely-shaped brief form (two payload shapes are accepted:
the current UI's ``copy``/``designDirection`` and the older
``content``/``direction``), builds the creative-director prompt with seasonal
context, and parses the model's JSON answer.
"""

import json
import math
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, model_validator

from briefgate.app.core.logging import get_logger
from briefgate.app.exceptions import InvalidUpstreamResponseError
from briefgate.app.providers.base import BaseProvider

logger = get_logger(__name__)

DesignType = Literal["flyer", "newsletter"]
FlyerFold = Literal["single", "bifold", "trifold"]
Audience = Literal["buyer", "seller", "realtor", "all"]
Density = Literal["minimal", "balanced", "dense"]

DEFAULT_LOCATION = "Sacramento, CA"
DEFAULT_TONE = "Bold Modern"
MIN_RENDER_SIDE = 256
MAX_RENDER_SIDE = 2048
MAX_KEY_POINTS = 6

ALTERNATIVE_GENERATORS = [
    {"name": "Microsoft Designer (Image Creator)", "url": "https://designer.microsoft.com/", "note": "Often free with Microsoft account."},
    {"name": "Adobe Firefly", "url": "https://firefly.adobe.com/", "note": "Has free credits depending on plan/account."},
    {"name": "Canva AI Image Generator", "url": "https://www.canva.com/", "note": "Magic Media / AI tools available depending on plan."},
    {"name": "Leonardo AI", "url": "https://leonardo.ai/", "note": "Has free tier options depending on account."},
]


def clamp_string(value: Any, max_len: int) -> str:
    """Non-strings become ``""``; strings are cut to ``max_len``."""
    if not isinstance(value, str):
        return ""
    return value[:max_len]


def _norm(value: Any) -> str:
    return value.strip().lower() if isinstance(value, str) else ""


def _truthy(value: Any) -> bool:
    # Empty containers still count as "set" in the browser payloads we receive
    if isinstance(value, (list, dict)):
        return True
    return bool(value)


def _first_present(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def normalize_design_type(value: Any) -> Optional[str]:
    s = _norm(value)
    return s if s in ("flyer", "newsletter") else None


def normalize_flyer_fold(value: Any) -> Optional[str]:
    s = re.sub(r"[\s-]", "", _norm(value))
    return s if s in ("single", "bifold", "trifold") else None


def normalize_audience(value: Any) -> str:
    s = _norm(value)
    return s if s in ("buyer", "seller", "realtor", "all") else "buyer"


def normalize_density(value: Any) -> str:
    s = _norm(value)
    return s if s in ("minimal", "balanced", "dense") else "balanced"


def _to_number(value: Any) -> Optional[Union[int, float]]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return int(number) if number.is_integer() else number


class RenderSize(BaseModel):
    width: Union[int, float]
    height: Union[int, float]


class BriefContent(BaseModel):
    surprise_copy: bool = False
    headline: str = ""
    subhead: str = ""
    cta: str = ""
    date_time: str = ""
    key_points: List[str] = Field(default_factory=list)


class BriefDirection(BaseModel):
    surprise_design: bool = False
    tone: str = DEFAULT_TONE
    density: Density = "balanced"
    brand_words: str = ""
    palette_hint: str = ""
    imagery_hint: str = ""


class BriefRequest(BaseModel):
    """Normalized brief request.

    Built from the raw JSON body; unknown enumerations fall back to defaults,
    free-text fields are clamped. Only ``designType``, ``format`` and
    ``renderSize`` are hard requirements.
    """

    mode: Literal["brief", "copy"] = "brief"
    design_type: DesignType
    flyer_fold: Optional[FlyerFold] = None
    format: str
    render_size: RenderSize
    location: str = DEFAULT_LOCATION
    audience: Audience = "buyer"
    content: BriefContent = Field(default_factory=BriefContent)
    direction: BriefDirection = Field(default_factory=BriefDirection)

    @model_validator(mode="before")
    @classmethod
    def normalize_payload(cls, data: Any) -> Dict[str, Any]:
        body = _as_dict(data)

        design_type = normalize_design_type(body.get("designType"))
        if design_type is None:
            raise ValueError("Invalid designType. Use flyer/newsletter (or Flyer/Newsletter).")

        fmt = clamp_string(body.get("format"), 40)
        if not fmt:
            raise ValueError("Missing format.")

        size = _as_dict(body.get("renderSize"))
        width, height = _to_number(size.get("width")), _to_number(size.get("height"))
        if (
            width is None or height is None
            or not MIN_RENDER_SIDE <= width <= MAX_RENDER_SIDE
            or not MIN_RENDER_SIDE <= height <= MAX_RENDER_SIDE
        ):
            raise ValueError("Invalid renderSize.")

        legacy_content = _as_dict(body.get("content"))
        legacy_direction = _as_dict(body.get("direction"))
        copy_src = _as_dict(_first_present(body.get("copy"), body.get("content")))
        dir_src = _as_dict(_first_present(body.get("designDirection"), body.get("direction")))

        raw_points = copy_src.get("keyPoints")
        key_points: List[str] = []
        if isinstance(raw_points, list):
            key_points = [p for p in (clamp_string(x, 100) for x in raw_points) if p][:MAX_KEY_POINTS]

        return {
            "mode": "copy" if body.get("mode") == "copy" else "brief",
            "design_type": design_type,
            "flyer_fold": normalize_flyer_fold(body.get("flyerFold")) if design_type == "flyer" else None,
            "format": fmt,
            "render_size": {"width": width, "height": height},
            "location": clamp_string(body.get("location") or DEFAULT_LOCATION, 80),
            "audience": normalize_audience(body.get("audience")),
            "content": {
                "surprise_copy": _truthy(_first_present(body.get("surpriseCopy"), legacy_content.get("surpriseCopy"))),
                "headline": clamp_string(copy_src.get("headline") or "", 140),
                "subhead": clamp_string(copy_src.get("subhead") or "", 200),
                "cta": clamp_string(copy_src.get("cta") or "", 100),
                "date_time": clamp_string(copy_src.get("dateTime") or "", 80),
                "key_points": key_points,
            },
            "direction": {
                "surprise_design": _truthy(_first_present(body.get("surpriseDesign"), legacy_direction.get("surpriseDesign"))),
                "tone": clamp_string(dir_src.get("tone") or DEFAULT_TONE, 50),
                "density": normalize_density(dir_src.get("density")),
                "brand_words": clamp_string(dir_src.get("brandWords") or "", 140),
                "palette_hint": clamp_string(dir_src.get("paletteHint") or "", 160),
                "imagery_hint": clamp_string(dir_src.get("imageryHint") or "", 180),
            },
        }


def days_until_month_day(now: datetime, month: int, day: int) -> int:
    """Whole days (rounded) from ``now`` until the next midnight of ``month``/``day``."""
    naive = now.replace(tzinfo=None)
    target = datetime(naive.year, month, day)
    if target < naive:
        target = datetime(naive.year + 1, month, day)
    return max(0, round((target - naive).total_seconds() / 86400))


def seasonal_context(now: datetime) -> Dict[str, Any]:
    """Season label and holiday hints used to steer theme suggestions."""
    month = now.month
    days_to_christmas = days_until_month_day(now, 12, 25)
    days_to_new_year = days_until_month_day(now, 1, 1)

    if month == 12:
        season = "Holiday Season (December)"
    elif month == 1:
        season = "New Year / Fresh Start (January)"
    elif 6 <= month <= 8:
        season = "Summer (June-August)"
    elif 9 <= month <= 11:
        season = "Fall (September-November)"
    else:
        season = "Spring (February-May)"

    hints: List[str] = []
    if month == 12 and now.day <= 25:
        hints.append(f"It is {days_to_christmas} day(s) before Christmas.")
        hints.append("Holiday attention span is short. Make the CTA extremely obvious.")
    if days_to_new_year <= 14:
        hints.append(f"New Year is coming in {days_to_new_year} day(s).")
        hints.append("'Fresh start' messaging can outperform generic promos.")

    return {
        "iso": now.isoformat(),
        "seasonLabel": season,
        "holidayHints": hints,
        "daysToChristmas": days_to_christmas,
        "daysToNewYear": days_to_new_year,
    }


BRIEF_SYSTEM_PROMPT = """
You are a senior graphic designer and creative director.
Your output must be extremely readable to a human editor who will actually build the design.
Return VALID JSON ONLY. No markdown. No code fences.

GOAL:
- Give practical instructions that a designer/editor can execute immediately.
- Write like: "Do this", "Avoid this", "If X then Y".
- Assume time is limited. Make decisions confidently.

Be context-aware:
- Consider today's date and proximity to holidays/season.
- Give theme suggestions as "Take it or leave it".

Never use em-dashes.

OUTPUT SHAPE (must include all keys):
{
  "mode": "brief" | "copy",
  "designType": "flyer"|"newsletter",
  "flyerFold": "single"|"bifold"|"trifold"|null,
  "format": string,
  "renderSize": { "width": number, "height": number },
  "location": string,
  "audience": "buyer"|"seller"|"realtor"|"all",
  "theme": { "seasonContext": string, "holidayReasoning": string[], "takeItOrLeaveItSuggestions": string[] },
  "copy": { "headline": string, "subhead": string, "cta": string, "dateTime": string, "keyPoints": string[] },
  "design": { "tone": string, "density": "minimal"|"balanced"|"dense", "palette": string, "imageryStyle": string, "layoutStyle": string },
  "prompt": string,
  "designerNotes": {
    "quickSummary": string, "doThis": string[], "avoidThis": string[], "hierarchy": string[],
    "spacingAndGrid": string[], "typography": string[], "colorLogic": string[], "imagery": string[],
    "foldAndPrintNotes": string[], "exportChecklist": string[]
  },
  "promptTransparency": { "whatTheModelOptimizedFor": string[], "whyThisWorks": string[], "risksAndTradeoffs": string[] }
}

RULES:
- If mode == "copy": focus on theme + copy + brief notes. Keep prompt + design fields present but simpler.
- If surpriseCopy is true, rewrite the copy strongly for the audience/location and season.
- If surpriseCopy is false, keep the user's copy, only lightly clean it (grammar + clarity).
- If surpriseDesign is true, pick palette/imagery/layout like a pro.
- If surpriseDesign is false, honor paletteHint/imageryHint and keep notes shorter.
- Optimize for mobile scan and print clarity (no tiny text).
- Key points: 3 to 6 max, scannable.
- For folds: mention safe margins and fold lines.
- prompt must be directly usable for an image generator (layout, typography vibe, spacing, color, imagery, no faces unless necessary).
"""


def build_user_payload(request: BriefRequest, now: datetime) -> Dict[str, Any]:
    ctx = seasonal_context(now)
    content, direction = request.content, request.direction
    return {
        "mode": request.mode,
        "todayISO": ctx["iso"],
        "seasonContext": ctx["seasonLabel"],
        "holidayHints": ctx["holidayHints"],
        "designType": request.design_type,
        "flyerFold": request.flyer_fold,
        "format": request.format,
        "renderSize": {"width": request.render_size.width, "height": request.render_size.height},
        "location": request.location,
        "audience": request.audience,
        "content": {
            "surpriseCopy": content.surprise_copy,
            "headline": content.headline,
            "subhead": content.subhead,
            "cta": content.cta,
            "dateTime": content.date_time,
            "keyPoints": content.key_points,
        },
        "direction": {
            "surpriseDesign": direction.surprise_design,
            "tone": direction.tone,
            "density": direction.density,
            "brandWords": direction.brand_words,
            "paletteHint": direction.palette_hint,
            "imageryHint": direction.imagery_hint,
        },
    }


_FENCE_RE = re.compile(r"```json|```")


def parse_model_json(text: str) -> Dict[str, Any]:
    """Parse the model's JSON answer, tolerating Markdown code fences.

    Raises:
        InvalidUpstreamResponseError: The text is not a JSON object
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        try:
            data = json.loads(_FENCE_RE.sub("", text).strip())
        except json.JSONDecodeError as e:
            raise InvalidUpstreamResponseError("Model returned invalid JSON.") from e
    if not isinstance(data, dict):
        raise InvalidUpstreamResponseError("Model returned JSON that is not an object.")
    return data


async def generate_brief(
    provider: BaseProvider,
    request: BriefRequest,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Produce the structured brief for a normalized request.

    Returns:
        ``{"brief": {...}}`` ready to merge into the success body
    """
    now = now or datetime.now(timezone.utc)
    user_payload = build_user_payload(request, now)
    logger.debug(
        f"Requesting {request.mode} for {request.design_type} "
        f"({request.render_size.width}x{request.render_size.height}, audience={request.audience})"
    )

    text = await provider.generate_text(BRIEF_SYSTEM_PROMPT, json.dumps(user_payload))
    brief = parse_model_json(text)

    # Some completions name the field imagePrompt
    if not brief.get("prompt") and brief.get("imagePrompt"):
        brief["prompt"] = brief["imagePrompt"]

    brief["alternativeGenerators"] = [dict(g) for g in ALTERNATIVE_GENERATORS]
    return {"brief": brief}
