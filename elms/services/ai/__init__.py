"""
AI advisory helpers for the leave system.

- Leave assistant chat
- Natural-language leave form autofill
- Approval recommendations
- Team conflict detection

All of them mask personal data before it leaves the process and fall back
to safe defaults when the model is unavailable.
"""

from elms.services.ai.gemini_client import GeminiClient, AIServiceError
from elms.services.ai.leave_assistant import LeaveAssistantService

__all__ = [
    "GeminiClient",
    "AIServiceError",
    "LeaveAssistantService",
]
