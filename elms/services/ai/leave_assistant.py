"""
AI Leave Assistant

Advisory helpers backed by a generative model:
- chat: answers leave questions using the user's balances and stats
- autofill: turns a free-text request into leave form fields
- recommend: suggests approve/review/reject for a pending leave
- detect_conflicts: flags team coverage issues for planned dates

Personal data is masked before it is put into a prompt or the AI log.
None of these methods raise on model failures; each returns a fixed
fallback instead, and the masked request is still written to the AI log
with an empty response. Suggestions are advisory only, decisions stay with the
approvers.
"""
import json
import logging
from datetime import date, datetime, timezone
from typing import Optional, List, Dict, Any

from pydantic import ValidationError
from sqlalchemy import select, func, case
from sqlalchemy.ext.asyncio import AsyncSession

from elms.models.leave import Leave, LeaveStatus
from elms.models.user import User
from elms.schemas.ai import (
    AutofillData,
    AutofillResponse,
    ChatResponse,
    ConflictReport,
    ConflictResponse,
    Recommendation,
    RecommendationResponse,
)
from elms.services.ai.ai_log_service import AILogService, AIAction
from elms.services.ai.gemini_client import GeminiClient, AIServiceError, parse_json_reply
from elms.services.ai.masking import mask_data, mask_text
from elms.services.leave_service import LeaveNotFoundError
from elms.services.leave_workflow import balance_for


logger = logging.getLogger(__name__)


# ==================== Fallbacks ====================

CHAT_FALLBACK_MESSAGE = (
    "I apologize, but I'm having trouble processing your request. "
    "Please try again or contact HR directly."
)
AUTOFILL_FALLBACK_ERROR = "Could not parse leave request. Please fill in the form manually."
RECOMMENDATION_FALLBACK_REASON = "AI analysis unavailable. Please review manually."


# ==================== Prompts ====================

COMPANY_POLICY = """COMPANY POLICY:
- Annual leave: 20 days per year
- Sick leave: 10 days per year
- Casual leave: 5 days per year
- Leave requests need Team Lead + Admin approval
- Apply leaves at least 3 days in advance for planned leaves
- Sick leave can be applied on same day with medical certificate"""

CHAT_PROMPT = """You are a helpful Leave Management System assistant. Answer questions about leave policies, balances, and status.

CONTEXT (User's leave data):
- Annual Leave Balance: {annual} days
- Sick Leave Balance: {sick} days
- Casual Leave Balance: {casual} days
- Pending Leaves: {pending}
- Approved Leaves: {approved}

{policy}

USER MESSAGE: {message}

Provide a helpful, concise response. If asked about specific dates or calculations, be accurate. If unsure, say so."""

AUTOFILL_PROMPT = """Parse the following leave request and extract structured data.

TODAY'S DATE: {today}

USER INPUT: "{text}"

Extract the following fields and respond ONLY with a valid JSON object (no markdown, no explanation):
{{
    "leave_type": "annual" | "sick" | "casual" | "unpaid" | "maternity" | "paternity",
    "from_date": "YYYY-MM-DD",
    "to_date": "YYYY-MM-DD",
    "description": "Brief description"
}}

Rules:
- If "tomorrow" is mentioned, calculate the date
- If only one day mentioned, from_date = to_date
- Default leave type is "casual" if unclear
- Sick leave for illness/fever/doctor
- Annual leave for vacation/holiday"""

RECOMMEND_PROMPT = """As an HR AI assistant, analyze this leave request and provide a recommendation.

LEAVE REQUEST:
- Type: {leave_type}
- From: {from_date}
- To: {to_date}
- Duration: {total_days} days
- Reason: {description}

TEAM CONTEXT:
- Team members on leave during this period: {overlapping}
- Total team size: {team_size}
- Employee's remaining balance: {balance}

{policy}

Analyze and respond ONLY with a valid JSON object:
{{
    "suggestion": "approve" | "review" | "reject",
    "risk_level": "low" | "medium" | "high",
    "reason": "Brief explanation",
    "considerations": ["List", "of", "factors"]
}}

NOTE: This is advisory only. A human manager will make the final decision."""

CONFLICT_PROMPT = """Analyze potential conflicts for this leave request.

NEW LEAVE REQUEST:
- From: {from_date}
- To: {to_date}
- Type: {leave_type}

EXISTING TEAM LEAVES DURING THIS PERIOD:
{existing}

Identify conflicts and respond ONLY with valid JSON:
{{
    "has_conflicts": true | false,
    "warnings": [
        {{
            "type": "overlap" | "team_coverage" | "skill_gap",
            "severity": "low" | "medium" | "high",
            "message": "Description of the issue"
        }}
    ]
}}"""


class LeaveAssistantService:
    """AI helpers for applicants and approvers."""

    def __init__(self, db: AsyncSession, client: GeminiClient):
        self.db = db
        self.client = client
        self.ai_log = AILogService(db)

    async def _ask_json(self, prompt: str) -> Dict[str, Any]:
        return parse_json_reply(await self.client.generate(prompt))

    # ==================== Chat ====================

    async def _leave_context(self, user: User) -> Dict[str, Any]:
        row = (await self.db.execute(
            select(
                func.count(Leave.id).label("total"),
                func.coalesce(func.sum(case((Leave.status == LeaveStatus.PENDING.value, 1), else_=0)), 0).label("pending"),
                func.coalesce(func.sum(case((Leave.status == LeaveStatus.APPROVED.value, 1), else_=0)), 0).label("approved"),
            ).where(Leave.user_id == user.id)
        )).one()

        return {
            "balances": {
                "annual": user.leave_balance,
                "sick": user.sick_leave_balance,
                "casual": user.casual_leave_balance,
            },
            "stats": {
                "total": int(row.total or 0),
                "pending": int(row.pending or 0),
                "approved": int(row.approved or 0),
            },
        }

    async def chat(self, user: User, message: str) -> ChatResponse:
        context = await self._leave_context(user)
        masked_message = mask_text(message)
        prompt = CHAT_PROMPT.format(
            annual=context["balances"]["annual"],
            sick=context["balances"]["sick"],
            casual=context["balances"]["casual"],
            pending=context["stats"]["pending"],
            approved=context["stats"]["approved"],
            policy=COMPANY_POLICY,
            message=masked_message,
        )

        try:
            reply = (await self.client.generate(prompt)).strip()
        except AIServiceError as e:
            logger.warning(f"AI chat failed for user {user.id}: {e.message}")
            await self.ai_log.log(user.id, AIAction.CHAT, masked_message)
            return ChatResponse(success=False, message=CHAT_FALLBACK_MESSAGE)

        await self.ai_log.log(user.id, AIAction.CHAT, masked_message, reply)
        return ChatResponse(success=True, message=reply)

    # ==================== Autofill ====================

    async def autofill(self, user: User, text: str, today: Optional[date] = None) -> AutofillResponse:
        today = today or datetime.now(timezone.utc).date()
        masked_text = mask_text(text)
        prompt = AUTOFILL_PROMPT.format(today=today.isoformat(), text=masked_text)

        try:
            data = AutofillData.model_validate(await self._ask_json(prompt))
            if data.to_date < data.from_date:
                raise AIServiceError("Model returned an end date before the start date")
        except (AIServiceError, ValidationError) as e:
            logger.warning(f"AI autofill failed for user {user.id}: {e}")
            await self.ai_log.log(user.id, AIAction.AUTOFILL, masked_text)
            return AutofillResponse(success=False, error=AUTOFILL_FALLBACK_ERROR, data=None)

        await self.ai_log.log(user.id, AIAction.AUTOFILL, masked_text, data.model_dump(mode="json"))
        return AutofillResponse(success=True, data=data)

    # ==================== Recommendation ====================

    async def _team_context(self, leave: Leave, applicant: User) -> Dict[str, Any]:
        overlapping = 0
        team_size = 0
        if applicant.team_id is not None:
            overlapping = await self.db.scalar(
                select(func.count(Leave.id))
                .join(User, Leave.user_id == User.id)
                .where(
                    User.team_id == applicant.team_id,
                    Leave.id != leave.id,
                    Leave.status == LeaveStatus.APPROVED.value,
                    Leave.from_date <= leave.to_date,
                    Leave.to_date >= leave.from_date,
                )
            ) or 0
            team_size = await self.db.scalar(
                select(func.count(User.id)).where(User.team_id == applicant.team_id)
            ) or 0

        return {
            "overlapping": overlapping,
            "team_size": team_size,
            "balance": balance_for(applicant, leave.leave_type),
        }

    async def recommend(self, actor: User, leave_id) -> RecommendationResponse:
        """
        Raises:
            LeaveNotFoundError: unknown leave
        """
        leave = await self.db.get(Leave, leave_id)
        if leave is None:
            raise LeaveNotFoundError()
        applicant = await self.db.get(User, leave.user_id)

        masked_leave = mask_data({
            "leave_type": leave.leave_type,
            "from_date": leave.from_date.isoformat(),
            "to_date": leave.to_date.isoformat(),
            "total_days": leave.total_days,
            "description": leave.description,
        })
        team = await self._team_context(leave, applicant)
        prompt = RECOMMEND_PROMPT.format(
            leave_type=masked_leave["leave_type"],
            from_date=masked_leave["from_date"],
            to_date=masked_leave["to_date"],
            total_days=masked_leave["total_days"],
            description=masked_leave["description"] or "Not provided",
            overlapping=team["overlapping"],
            team_size=team["team_size"] or "Unknown",
            balance="Not applicable" if team["balance"] is None else team["balance"],
            policy=COMPANY_POLICY,
        )

        try:
            recommendation = Recommendation.model_validate(await self._ask_json(prompt))
        except (AIServiceError, ValidationError) as e:
            logger.warning(f"AI recommendation failed for leave {leave.id}: {e}")
            await self.ai_log.log(actor.id, AIAction.RECOMMENDATION, masked_leave)
            return RecommendationResponse(
                success=False,
                recommendation=Recommendation(
                    suggestion="review",
                    risk_level="medium",
                    reason=RECOMMENDATION_FALLBACK_REASON,
                    considerations=[],
                ),
            )

        await self.ai_log.log(
            actor.id, AIAction.RECOMMENDATION, masked_leave, recommendation.model_dump(mode="json")
        )
        return RecommendationResponse(success=True, recommendation=recommendation)

    # ==================== Conflicts ====================

    async def _teammate_leaves(self, user: User, from_date: date, to_date: date) -> List[Leave]:
        if user.team_id is None:
            return []
        result = await self.db.execute(
            select(Leave)
            .join(User, Leave.user_id == User.id)
            .where(
                User.team_id == user.team_id,
                Leave.user_id != user.id,
                Leave.status.in_([LeaveStatus.APPROVED.value, LeaveStatus.PENDING.value]),
                Leave.from_date <= to_date,
                Leave.to_date >= from_date,
            )
            .order_by(Leave.from_date)
        )
        return list(result.scalars().all())

    async def detect_conflicts(
        self,
        user: User,
        from_date: date,
        to_date: date,
        leave_type: Optional[str] = None,
    ) -> ConflictResponse:
        existing = await self._teammate_leaves(user, from_date, to_date)
        if not existing:
            return ConflictResponse(success=True, conflicts=ConflictReport())

        leave_data = {
            "from_date": from_date.isoformat(),
            "to_date": to_date.isoformat(),
            "leave_type": leave_type,
        }
        overlaps = [
            {
                "from": leave.from_date.isoformat(),
                "to": leave.to_date.isoformat(),
                "type": leave.leave_type,
                "status": leave.status,
            }
            for leave in existing
        ]
        prompt = CONFLICT_PROMPT.format(
            from_date=leave_data["from_date"],
            to_date=leave_data["to_date"],
            leave_type=leave_type or "unspecified",
            existing=json.dumps(overlaps),
        )

        try:
            report = ConflictReport.model_validate(await self._ask_json(prompt))
        except (AIServiceError, ValidationError) as e:
            logger.warning(f"AI conflict detection failed for user {user.id}: {e}")
            await self.ai_log.log(user.id, AIAction.CONFLICT_DETECTION, leave_data)
            return ConflictResponse(success=False, conflicts=ConflictReport())

        await self.ai_log.log(
            user.id, AIAction.CONFLICT_DETECTION, leave_data, report.model_dump(mode="json")
        )
        return ConflictResponse(success=True, conflicts=report)
