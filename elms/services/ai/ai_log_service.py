import json
import logging
from typing import Optional, Any
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from elms.models.ai_log import AILog


logger = logging.getLogger(__name__)


class AIAction:
    CHAT = "chat"
    AUTOFILL = "autofill"
    RECOMMENDATION = "recommendation"
    CONFLICT_DETECTION = "conflict_detection"


class AILogService:
    """
    Audit trail of AI calls. Callers pass data that is already masked.

    Writes never raise: a failed insert is rolled back to its savepoint
    and logged.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def _as_text(value: Any) -> Optional[str]:
        if value is None or isinstance(value, str):
            return value
        return json.dumps(value, default=str)

    async def log(
        self,
        user_id: Optional[uuid.UUID],
        action_type: str,
        request: Any,
        response: Any = None,
    ) -> Optional[AILog]:
        try:
            async with self.db.begin_nested():
                entry = AILog(
                    user_id=user_id,
                    action_type=action_type,
                    request_masked=self._as_text(request) or "",
                    response_data=self._as_text(response),
                )
                self.db.add(entry)
            return entry
        except Exception as e:
            logger.warning(f"Failed to write AI log ({action_type}): {e}")
            return None
