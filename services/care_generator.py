import json
from typing import List

import openai
from openai import AsyncOpenAI
from pydantic import ValidationError

from core.config import settings
from core.exceptions import CareGenerationError
from core.logger import app_logger
from schemas.care import CareInstructions, WateringGuidelines

CARE_SYSTEM_PROMPT = """You are a plant care expert. Provide consistent, practical care instructions for plants.
Always return a JSON object with the following structure:
{
  "watering": "Detailed watering instructions including frequency and method",
  "light": "Light requirements (direct, indirect, shade, etc.)",
  "temperature": "Temperature range in both Celsius and Fahrenheit",
  "humidity": "Humidity requirements",
  "soil": "Soil type and potting mix recommendations",
  "fertilizer": "Fertilizing schedule and type",
  "soilMoisture": {
    "minVWC": number (minimum volumetric water content percentage, 0-100),
    "maxVWC": number (maximum volumetric water content percentage, 0-100),
    "optimalVWC": number (optimal volumetric water content percentage, 0-100),
    "wateringThreshold": number (percentage when watering should be triggered)
  }
}

Guidelines:
- minVWC: typically 10-20% for most plants
- maxVWC: typically 40-60% for most plants
- optimalVWC: typically 25-35% for most plants
- wateringThreshold: typically 15-25% for most plants, between minVWC and optimalVWC
- Be specific but concise
- Use consistent terminology
- Include practical tips"""

GUIDELINES_SYSTEM_PROMPT = "You are a plant-care assistant. Return ONLY valid JSON with watering guidelines."

GENERIC_CARE = {
    "watering": "Water when the top 1-2 inches of soil feels dry to the touch. Ensure good drainage and avoid overwatering.",
    "light": "Provide bright, indirect light. Most plants thrive in filtered sunlight or near a bright window.",
    "temperature": "Maintain temperatures between 18-24°C (65-75°F). Avoid cold drafts and extreme temperature fluctuations.",
    "humidity": "Moderate humidity (40-60%) is ideal. Consider using a humidity tray or room humidifier.",
    "soil": "Use well-draining potting mix with good aeration. A mix of peat moss, perlite, and compost works well.",
    "fertilizer": "Feed with a balanced liquid fertilizer every 2-4 weeks during the growing season (spring to fall).",
    "soilMoisture": {"minVWC": 15, "maxVWC": 45, "optimalVWC": 30, "wateringThreshold": 20},
}

# checked in order, first match wins
CATEGORY_CARE = [
    (("succulent", "cactus"), {
        "watering": "Water sparingly, only when soil is completely dry. Allow soil to dry out between waterings.",
        "light": "Provide bright, direct light. These plants need full sun exposure.",
        "soil": "Use well-draining cactus or succulent mix with sand and perlite.",
        "soilMoisture": {"minVWC": 5, "maxVWC": 25, "optimalVWC": 15, "wateringThreshold": 8},
    }),
    (("fern", "moss"), {
        "watering": "Keep soil consistently moist but not soggy. These plants prefer high humidity.",
        "light": "Provide indirect or filtered light. Avoid direct sunlight.",
        "humidity": "High humidity (60-80%) is essential. Mist regularly or use a humidifier.",
        "soilMoisture": {"minVWC": 25, "maxVWC": 55, "optimalVWC": 40, "wateringThreshold": 30},
    }),
    (("orchid",), {
        "watering": "Water thoroughly when potting mix is nearly dry. Allow excess water to drain completely.",
        "light": "Provide bright, indirect light. Avoid direct sun exposure.",
        "humidity": "High humidity (50-70%) is important. Use humidity trays or mist regularly.",
        "soil": "Use specialized orchid mix with bark, sphagnum moss, and perlite.",
        "soilMoisture": {"minVWC": 20, "maxVWC": 50, "optimalVWC": 35, "wateringThreshold": 25},
    }),
]


def fallback_care_instructions(species_name: str) -> CareInstructions:
    name = (species_name or "").lower()
    care = dict(GENERIC_CARE)
    for keywords, overrides in CATEGORY_CARE:
        if any(keyword in name for keyword in keywords):
            care.update(overrides)
            break
    return CareInstructions.model_validate(care)


class CareInstructionGenerator:

    def __init__(self, client: AsyncOpenAI = None, models: List[str] = None):
        self.client = client or AsyncOpenAI(
            api_key=settings.OPENAI_API_KEY,
            base_url=settings.OPENAI_BASE_URL,
        )
        self.models = models or settings.OPENAI_MODELS

    async def _complete(self, model: str, system: str, user: str) -> dict:
        completion = await self.client.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            response_format={"type": "json_object"},
            temperature=0.7,
        )
        return json.loads(completion.choices[0].message.content)

    async def generate(self, species_name: str) -> CareInstructions:
        """Care profile for a species; falls back to the static table, never raises."""
        prompt = (
            f"Provide care instructions for {species_name}. "
            "Focus on practical, actionable advice that a home gardener can follow."
        )

        for model in self.models:
            try:
                app_logger.info(f"Getting care instructions for {species_name} using {model}")
                data = await self._complete(model, CARE_SYSTEM_PROMPT, prompt)
                care = CareInstructions.model_validate(data)
                app_logger.info(f"Care instructions generated for {species_name} using {model}")
                return care
            except openai.RateLimitError as e:
                app_logger.warning(f"OpenAI quota exceeded ({e}). Using fallback care instructions.")
                break
            except (openai.OpenAIError, ValidationError, ValueError, TypeError, IndexError, AttributeError) as e:
                app_logger.error(f"Error with {model}: {e}")
                continue

        app_logger.info(f"Providing fallback care instructions for: {species_name}")
        return fallback_care_instructions(species_name)

    async def watering_guidelines(self, species_name: str) -> WateringGuidelines:
        prompt = (
            f"Given species = '{species_name}', return JSON with minVWC, maxVWC, and waterIntervalDays."
        )

        last_error = None
        for model in self.models:
            try:
                data = await self._complete(model, GUIDELINES_SYSTEM_PROMPT, prompt)
                return WateringGuidelines.model_validate(data)
            except openai.RateLimitError as e:
                last_error = e
                break
            except (openai.OpenAIError, ValidationError, ValueError, TypeError, IndexError, AttributeError) as e:
                app_logger.error(f"Watering guidelines failed with {model}: {e}")
                last_error = e

        raise CareGenerationError(f"Could not get watering guidelines for {species_name}: {last_error}")

    async def check_connection(self):
        """Log which configured model answers. Called once at startup."""
        app_logger.info("Testing OpenAI connection...")

        for model in self.models:
            try:
                await self.client.chat.completions.create(
                    model=model,
                    messages=[{"role": "user", "content": "Hello, this is a test message."}],
                    max_tokens=10,
                )
                app_logger.info(f"OpenAI connection successful with {model}")
                return model
            except openai.AuthenticationError:
                app_logger.error("Invalid OpenAI API key. Check OPENAI_API_KEY.")
                return None
            except openai.RateLimitError:
                app_logger.error("OpenAI quota exceeded. Using fallback care instructions until quota resets.")
                return None
            except openai.OpenAIError as e:
                app_logger.error(f"OpenAI connection failed with {model}: {e}")

        app_logger.error("All OpenAI models failed. Using fallback care instructions.")
        return None
