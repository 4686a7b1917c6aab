import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

import requests
from starlette.concurrency import run_in_threadpool

from core.config import settings
from core.exceptions import IdentificationError
from core.logger import app_logger
from services.retry import invoke_with_retry, exponential_backoff

PLANTNET_TIMEOUT = 30


@dataclass
class Candidate:
    species: Dict[str, Any]
    score: float

    def to_dict(self):
        return {"species": self.species, "score": self.score}


@dataclass
class BestMatch:
    scientific_name: str
    common_name: str
    family: str
    confidence: float


def best_match_fields(candidate: Candidate) -> BestMatch:
    species = candidate.species or {}
    common_names = species.get("commonNames") or []
    family = species.get("family") or {}
    return BestMatch(
        scientific_name=species.get("scientificNameWithoutAuthor") or species.get("scientificName") or "",
        common_name=common_names[0] if common_names else "Unknown",
        family=family.get("scientificNameWithoutAuthor") or "Unknown",
        confidence=float(candidate.score or 0.0),
    )


class PlantNetClient:
    """Pl@ntNet identification API with a fixed three-attempt retry."""

    def __init__(
            self,
            api_key: str = None,
            base_url: str = None,
            project: str = None,
            session: requests.Session = None,
            attempts: int = 3,
            backoff: Callable[[int], float] = exponential_backoff,
            sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.api_key = api_key or settings.PLANTNET_API_KEY
        self.base_url = (base_url or settings.PLANTNET_API_URL).rstrip("/")
        self.project = project or settings.PLANTNET_PROJECT
        self.session = session or requests.Session()
        self.attempts = attempts
        self.backoff = backoff
        self.sleep = sleep

    @property
    def url(self):
        return f"{self.base_url}/identify/{self.project}"

    def _post(self, images: List[bytes]) -> List[Candidate]:
        files = [
            ('images', (f"plant_{index}.jpg", content, "image/jpeg"))
            for index, content in enumerate(images)
        ]
        data = {'organs': ['auto'] * len(images)}

        response = self.session.post(
            self.url,
            params={"api-key": self.api_key},
            files=files,
            data=data,
            headers={"accept": "application/json"},
            timeout=PLANTNET_TIMEOUT,
        )
        response.raise_for_status()

        try:
            body = response.json()
        except ValueError as e:
            raise IdentificationError("Invalid response from Pl@ntNet API") from e

        results = body.get("results") if isinstance(body, dict) else None
        if not results or not isinstance(results, list):
            raise IdentificationError("Invalid response from Pl@ntNet API")

        return [Candidate(species=r.get("species") or {}, score=r.get("score") or 0.0) for r in results]

    async def identify(self, images: List[bytes]) -> List[Candidate]:
        """Return candidates ordered best first, or raise IdentificationError once retries run out."""
        app_logger.info(f"Calling Pl@ntNet with {len(images)} image(s)")

        async def call():
            return await run_in_threadpool(self._post, images)

        outcome = await invoke_with_retry(
            call,
            attempts=self.attempts,
            backoff=self.backoff,
            sleep=self.sleep,
        )
        if not outcome.ok:
            app_logger.error(f"Pl@ntNet failed after {outcome.attempts} attempt(s): {outcome.error}")
            raise IdentificationError(
                f"Failed to identify plant after multiple attempts: {outcome.error}"
            ) from outcome.error

        app_logger.info(f"Pl@ntNet returned {len(outcome.value)} candidate(s)")
        return outcome.value


class PlantIdentifierService:
    """Identify, look up care, persist: the whole /api/identify flow after the quota check."""

    def __init__(self, processor, plantnet: PlantNetClient, care, store):
        self.processor = processor
        self.plantnet = plantnet
        self.care = care
        self.store = store

    async def identify_and_save(self, images: List[bytes], user_id: str) -> dict:
        processed = await self.processor.process_many(images)

        candidates = await self.plantnet.identify(processed)
        match = best_match_fields(candidates[0])
        app_logger.info(
            f"Best match for user {user_id}: {match.scientific_name} ({match.confidence:.2f})"
        )

        care_instructions = await self.care.generate(match.scientific_name)

        saved_plant: Optional[dict] = None
        try:
            saved_plant = await self.store.create(
                user_id=user_id,
                match=match,
                image=processed[0] if processed else None,
                care=care_instructions,
            )
        except Exception as e:
            app_logger.error(f"Failed to save plant for user {user_id}: {e}")

        return {
            "candidates": [c.to_dict() for c in candidates],
            "careInstructions": care_instructions.model_dump(),
            "savedPlant": saved_plant,
        }
