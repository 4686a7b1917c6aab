from fastapi import HTTPException, status
from tortoise.expressions import F

from core.config import settings
from core.logger import app_logger
from models.usage import UsageCounter


class UsageService:

    @staticmethod
    async def get_identify_count(user_id: str) -> int:
        counter = await UsageCounter.get_or_none(user_id=user_id)
        return counter.identify_count if counter else 0

    @staticmethod
    async def check_and_record_identify(user_id: str, limit: int = None):
        """
        Reject the request once the user has used up their identify quota,
        otherwise count this request against it.

        Read and increment are separate queries, so two concurrent requests
        can both pass the check.
        """
        if limit is None:
            limit = settings.IDENTIFY_LIMIT

        counter, _ = await UsageCounter.get_or_create(user_id=user_id)

        if counter.identify_count >= limit:
            app_logger.info(f"Identify quota reached for user {user_id} ({counter.identify_count}/{limit})")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"You have reached the maximum of {limit} plant identification requests."
            )

        await UsageCounter.filter(user_id=user_id).update(identify_count=F("identify_count") + 1)
        return True
