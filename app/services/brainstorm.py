from __future__ import annotations

import enum
import json
import logging
import re
from typing import Dict, List

from openai import AsyncOpenAI, OpenAIError

from .models import BrainstormPrompt

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are a creative prompt generator that writes high quality prompts for AI image generation."

USER_TEMPLATE = """Write {count} creative image prompts about "{category}".
Each prompt must be a detailed description covering composition, style, lighting, colour and mood.
Prompts should be original, distinctive and easy to picture.
Return a strict JSON array where every element has a "description" field, for example:
[
  {{"description": "first prompt"}},
  {{"description": "second prompt"}}
]
Return only the JSON array, with no other explanation."""

_FENCED_JSON = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")
_BARE_ARRAY = re.compile(r"\[\s*\{[\s\S]*\}\s*\]")


class PromptCategory(str, enum.Enum):
    LANDSCAPES = "landscapes"
    CHARACTERS = "characters"
    ABSTRACT = "abstract"
    ANIMALS = "animals"
    FANTASY = "fantasy"
    SCIFI = "scifi"

    @property
    def display_name(self) -> str:
        return CATEGORY_DISPLAY_NAMES[self]


CATEGORY_DISPLAY_NAMES: Dict[PromptCategory, str] = {
    PromptCategory.LANDSCAPES: "Landscapes",
    PromptCategory.CHARACTERS: "Characters",
    PromptCategory.ABSTRACT: "Abstract",
    PromptCategory.ANIMALS: "Animals",
    PromptCategory.FANTASY: "Fantasy",
    PromptCategory.SCIFI: "Sci-fi",
}

FALLBACK_PROMPTS: Dict[PromptCategory, List[str]] = {
    PromptCategory.LANDSCAPES: [
        "Majestic mountain range at sunset, golden light breaking through the clouds, peaks in silhouette, high definition photography",
        "Tranquil lake at dawn wrapped in thin mist, mirror reflections of trees and mountains, dreamlike atmosphere",
        "Snow covered forest, sunbeams through the branches, snowflakes drifting slowly, winter fairytale",
        "Tropical beach at sunset, gold and violet sky, calm waves on the sand, palm tree silhouettes",
    ],
    PromptCategory.CHARACTERS: [
        "Mysterious witch in an ancient forest surrounded by glowing plants, holding a staff, richly detailed realistic style",
        "Future soldier with a half mechanical body standing in city ruins, neon lights behind, cyberpunk style",
        "Ancient general in ornate armour on a mountain top, battlefield mist below, epic atmosphere",
        "Deep sea explorer among glowing creatures in underwater ruins, high tech diving gear, blue glow",
    ],
    PromptCategory.ABSTRACT: [
        "Flowing swirl of colour mixing blue, purple and gold like a cosmic nebula, abstract expressionism",
        "City skyline built from geometric shapes, vivid neon palette, digital art, minimalism",
        "Fractal art, endlessly recursive spirals, colour gradients, where mathematics meets art",
        "Abstract sculpture of flowing liquid metal reflecting ambient light, surrealism",
    ],
    PromptCategory.ANIMALS: [
        "Close-up of a lion with golden eyes, mane moving in the wind, African savanna at sunset, wildlife photography",
        "Colourful hummingbird hovering before a tropical flower, blurred wings, fine feather texture, high speed photography",
        "Arctic fox in the snow, white fur blending in, only the blue eyes standing out, winter wilderness",
        "Octopus on a coral reef changing colour and texture to blend in, marine photography",
    ],
    PromptCategory.FANTASY: [
        "Ancient castle floating above the clouds, waterfalls pouring off the cliffs, rainbow bridge, fantasy art",
        "Crystal forest with energy flowing inside transparent trees, glowing plants and magical creatures, magic realism",
        "Fire dragon circling a volcano crater, scales reflecting lava light, drifting smoke, epic fantasy scene",
        "Magic library with books floating on their own, spiral stairs climbing forever, sparkling particles in the air",
    ],
    PromptCategory.SCIFI: [
        "Future city skyline with towering holographic adverts, flying cars, neon reflected in the rain, cyberpunk style",
        "Ring shaped space station with Earth behind it, sunlight casting long shadows, hard science fiction",
        "Robots and humans working together in an advanced lab, holographic data displays, futurist design, bright cool tones",
        "Alien landscape with several moons in the sky, glowing alien plants, strange architecture, sci-fi concept art",
    ],
}


class BrainstormParseError(ValueError):
    """Raised when the model response is not a JSON array of prompts."""


def preview_of(description: str) -> str:
    return re.split(r"[.,]", description, maxsplit=1)[0].strip() or description


def fallback_prompts(category: PromptCategory, count: int) -> List[BrainstormPrompt]:
    return [
        BrainstormPrompt(description=description, preview_prompt=preview_of(description))
        for description in FALLBACK_PROMPTS[category][:count]
    ]


def parse_prompts(content: str) -> List[BrainstormPrompt]:
    """Parse a model response into prompts, tolerating markdown code fences."""

    fenced = _FENCED_JSON.search(content)
    if fenced:
        payload = fenced.group(1)
    else:
        bare = _BARE_ARRAY.search(content)
        payload = bare.group(0) if bare else content
    try:
        parsed = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise BrainstormParseError("Model response is not valid JSON") from exc
    if not isinstance(parsed, list):
        raise BrainstormParseError("Model response is not a JSON array")

    prompts: List[BrainstormPrompt] = []
    for item in parsed:
        if not isinstance(item, dict) or not isinstance(item.get("description"), str):
            raise BrainstormParseError("Every prompt needs a description")
        description = item["description"].strip()
        if not description:
            raise BrainstormParseError("Prompt description must not be empty")
        preview = item.get("previewPrompt")
        if not isinstance(preview, str) or not preview.strip():
            preview = preview_of(description)
        prompts.append(BrainstormPrompt(description=description, preview_prompt=preview))
    return prompts


class BrainstormService:
    """Generate creative prompt ideas per category."""

    def __init__(self, client: AsyncOpenAI, *, model: str) -> None:
        self._client = client
        self._model = model

    async def generate_prompts(self, category: PromptCategory, count: int = 4) -> List[BrainstormPrompt]:
        logger.info("Generating creative prompts", extra={"category": category.value, "count": count})
        try:
            completion = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": USER_TEMPLATE.format(count=count, category=category.display_name)},
                ],
            )
            content = (completion.choices[0].message.content or "") if completion.choices else ""
            if not content.strip():
                raise BrainstormParseError("Model returned an empty response")
            prompts = parse_prompts(content)
        except (OpenAIError, BrainstormParseError) as exc:
            logger.warning(
                "Creative prompt generation failed, using fallback prompts",
                extra={"category": category.value, "error": str(exc)},
            )
            return fallback_prompts(category, count)

        logger.info("Creative prompts generated", extra={"category": category.value, "generated": len(prompts)})
        return prompts[:count]
