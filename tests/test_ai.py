import json
from datetime import date

import httpx
import pytest
from sqlalchemy import select

from elms.models.ai_log import AILog
from elms.services.ai.gemini_client import GeminiClient, AIServiceError, parse_json_reply
from elms.services.ai.leave_assistant import (
    CHAT_FALLBACK_MESSAGE,
    AUTOFILL_FALLBACK_ERROR,
    RECOMMENDATION_FALLBACK_REASON,
)
from elms.services.ai.masking import mask_text, mask_data


# ==================== Masking ====================

class TestMasking:

    def test_text(self):
        masked = mask_text("Mail jane.doe@corp.example.com or call 5551234567 today")
        assert masked == "Mail [EMAIL] or call [PHONE] today"

    def test_short_numbers_survive(self):
        assert mask_text("3 days from 2024-01-05") == "3 days from 2024-01-05"

    def test_nested_data(self):
        masked = mask_data({
            "email": "jane@elms.com",
            "name": "Jane Employee",
            "leave": {"user_name": "Jane", "note": "reach me at jane@home.org", "days": 3},
            "contacts": [{"phone": "5551234567"}],
        })
        assert masked == {
            "email": "[MASKED]",
            "name": "Employee",
            "leave": {"user_name": "Employee", "note": "reach me at [EMAIL]", "days": 3},
            "contacts": [{"phone": "[MASKED]"}],
        }


# ==================== Gemini client ====================

class TestGeminiClient:

    def test_parse_fenced_json(self):
        assert parse_json_reply('```json\n{"a": 1}\n```') == {"a": 1}

    @pytest.mark.parametrize("reply", ["not json", "[1, 2]"])
    def test_parse_rejects_non_objects(self, reply):
        with pytest.raises(AIServiceError):
            parse_json_reply(reply)

    async def test_generate(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["key"] = request.headers["x-goog-api-key"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": "Hello"}]}}]})

        client = GeminiClient("k-123", model="gemini-test", transport=httpx.MockTransport(handler))

        assert await client.generate("Hi there") == "Hello"
        assert seen["url"].endswith("/models/gemini-test:generateContent")
        assert seen["key"] == "k-123"
        assert seen["body"] == {"contents": [{"parts": [{"text": "Hi there"}]}]}

    async def test_http_error_status(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(500, json={"error": "boom"}))
        client = GeminiClient("k-123", transport=transport)

        with pytest.raises(AIServiceError) as exc:
            await client.generate("Hi")
        assert "500" in exc.value.message

    async def test_unexpected_shape(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"candidates": []}))
        with pytest.raises(AIServiceError):
            await GeminiClient("k-123", transport=transport).generate("Hi")

    async def test_missing_key(self):
        client = GeminiClient(None)
        assert not client.configured
        with pytest.raises(AIServiceError):
            await client.generate("Hi")


# ==================== Endpoints ====================

async def ai_logs(db):
    async with db() as session:
        return list((await session.execute(select(AILog))).scalars().all())


class TestChat:

    async def test_reply_is_logged_masked(self, client, auth, employee, fake_ai, db):
        fake_ai.reply_with("You have 20 annual days left.")

        response = await client.post(
            "/api/ai/chat",
            json={"message": "I am jane@elms.com, how many days do I have?"},
            headers=auth(employee),
        )

        assert response.json() == {"success": True, "message": "You have 20 annual days left."}
        prompt = fake_ai.prompts[0]
        assert "jane@elms.com" not in prompt
        assert "[EMAIL]" in prompt
        assert "Annual Leave Balance: 20 days" in prompt

        logs = await ai_logs(db)
        assert [log.action_type for log in logs] == ["chat"]
        assert logs[0].user_id == employee.id
        assert "jane@elms.com" not in logs[0].request_masked

    async def test_fallback(self, client, auth, employee, fake_ai, db):
        fake_ai.fail_with("quota exceeded")

        response = await client.post(
            "/api/ai/chat", json={"message": "hello, I am jane@elms.com"}, headers=auth(employee)
        )

        assert response.status_code == 200
        assert response.json() == {"success": False, "message": CHAT_FALLBACK_MESSAGE}

        logs = await ai_logs(db)
        assert [log.action_type for log in logs] == ["chat"]
        assert logs[0].request_masked == "hello, I am [EMAIL]"
        assert logs[0].response_data is None

    async def test_empty_message(self, client, auth, employee):
        response = await client.post("/api/ai/chat", json={"message": ""}, headers=auth(employee))
        assert response.status_code == 400


class TestAutofill:

    async def test_parses_camel_case_reply(self, client, auth, employee, fake_ai):
        fake_ai.reply_with(
            '```json\n{"leaveType": "sick", "fromDate": "2024-06-03", "toDate": "2024-06-04", '
            '"description": "Fever"}\n```'
        )

        response = await client.post("/api/ai/autofill", json={"input": "sick monday and tuesday"}, headers=auth(employee))

        body = response.json()
        assert body["success"] is True
        assert body["data"] == {
            "leave_type": "sick",
            "from_date": "2024-06-03",
            "to_date": "2024-06-04",
            "description": "Fever",
        }
        assert "TODAY'S DATE:" in fake_ai.prompts[0]

    @pytest.mark.parametrize("reply", [
        "Sure, take tomorrow off!",
        '{"leave_type": "holiday", "from_date": "2024-06-03", "to_date": "2024-06-03"}',
        '{"leave_type": "sick", "from_date": "2024-06-05", "to_date": "2024-06-03"}',
    ])
    async def test_unusable_reply_falls_back(self, client, auth, employee, fake_ai, reply):
        fake_ai.reply_with(reply)

        response = await client.post("/api/ai/autofill", json={"input": "day off"}, headers=auth(employee))

        assert response.json() == {"success": False, "data": None, "error": AUTOFILL_FALLBACK_ERROR}


class TestRecommend:

    async def leave_id(self, client, auth, employee):
        response = await client.post("/api/leaves", json={
            "leave_type": "annual", "from_date": "2024-01-01", "to_date": "2024-01-03",
            "description": "Call me on 5551234567",
        }, headers=auth(employee))
        return response.json()["leave_id"]

    async def test_recommendation(self, client, auth, employee, team_lead, fake_ai, db):
        leave_id = await self.leave_id(client, auth, employee)
        fake_ai.reply_with(json.dumps({
            "suggestion": "approve",
            "riskLevel": "low",
            "reason": "Nobody else is out",
            "considerations": ["balance is sufficient"],
        }))

        response = await client.get(f"/api/ai/recommend/{leave_id}", headers=auth(team_lead))

        assert response.json() == {
            "success": True,
            "recommendation": {
                "suggestion": "approve",
                "risk_level": "low",
                "reason": "Nobody else is out",
                "considerations": ["balance is sufficient"],
            },
        }
        prompt = fake_ai.prompts[0]
        assert "5551234567" not in prompt
        assert "Total team size: 2" in prompt
        assert "Employee's remaining balance: 20" in prompt

        logs = await ai_logs(db)
        assert logs[0].action_type == "recommendation"
        assert logs[0].user_id == team_lead.id

    async def test_fallback(self, client, auth, employee, admin, fake_ai, db):
        leave_id = await self.leave_id(client, auth, employee)
        fake_ai.fail_with()

        body = (await client.get(f"/api/ai/recommend/{leave_id}", headers=auth(admin))).json()

        assert body["success"] is False
        assert body["recommendation"]["suggestion"] == "review"
        assert body["recommendation"]["risk_level"] == "medium"
        assert body["recommendation"]["reason"] == RECOMMENDATION_FALLBACK_REASON

        logs = await ai_logs(db)
        assert [(log.action_type, log.user_id) for log in logs] == [("recommendation", admin.id)]
        assert logs[0].response_data is None
        assert "5551234567" not in logs[0].request_masked

    async def test_unknown_leave(self, client, auth, admin):
        response = await client.get("/api/ai/recommend/00000000-0000-0000-0000-000000000000", headers=auth(admin))
        assert response.status_code == 404

    async def test_employee_forbidden(self, client, auth, employee):
        leave_id = await self.leave_id(client, auth, employee)
        response = await client.get(f"/api/ai/recommend/{leave_id}", headers=auth(employee))
        assert response.status_code == 403


class TestConflicts:

    async def test_no_overlap_skips_model(self, client, auth, employee, fake_ai):
        response = await client.post("/api/ai/conflicts", json={
            "from_date": "2024-07-01", "to_date": "2024-07-05",
        }, headers=auth(employee))

        assert response.json() == {"success": True, "conflicts": {"has_conflicts": False, "warnings": []}}
        assert fake_ai.prompts == []

    async def test_teammate_overlap(self, client, auth, employee, make_user, team, fake_ai):
        teammate = await make_user("sam@elms.com", team=team)
        await client.post("/api/leaves", json={
            "leave_type": "annual", "from_date": "2024-07-03", "to_date": "2024-07-10",
        }, headers=auth(teammate))
        fake_ai.reply_with(
            '```\n{"hasConflicts": true, "warnings": '
            '[{"type": "team_coverage", "severity": "high", "message": "Two people out"}]}\n```'
        )

        response = await client.post("/api/ai/conflicts", json={
            "from_date": "2024-07-01", "to_date": "2024-07-05", "leave_type": "annual",
        }, headers=auth(employee))

        body = response.json()
        assert body["success"] is True
        assert body["conflicts"]["has_conflicts"] is True
        assert body["conflicts"]["warnings"][0]["severity"] == "high"
        assert "2024-07-03" in fake_ai.prompts[0]
        assert "sam@elms.com" not in fake_ai.prompts[0]

    async def test_own_leaves_are_not_conflicts(self, client, auth, employee, fake_ai):
        await client.post("/api/leaves", json={
            "leave_type": "annual", "from_date": "2024-07-01", "to_date": "2024-07-02",
        }, headers=auth(employee))

        response = await client.post("/api/ai/conflicts", json={
            "from_date": "2024-07-01", "to_date": "2024-07-05",
        }, headers=auth(employee))

        assert response.json()["conflicts"]["has_conflicts"] is False
        assert fake_ai.prompts == []

    async def test_model_failure(self, client, auth, employee, make_user, team, fake_ai):
        teammate = await make_user("sam@elms.com", team=team)
        await client.post("/api/leaves", json={
            "leave_type": "casual", "from_date": "2024-07-01", "to_date": "2024-07-01",
        }, headers=auth(teammate))
        fake_ai.fail_with()

        response = await client.post("/api/ai/conflicts", json={
            "from_date": "2024-07-01", "to_date": "2024-07-01",
        }, headers=auth(employee))

        assert response.json() == {"success": False, "conflicts": {"has_conflicts": False, "warnings": []}}

    async def test_reversed_dates(self, client, auth, employee):
        response = await client.post("/api/ai/conflicts", json={
            "from_date": "2024-07-05", "to_date": "2024-07-01",
        }, headers=auth(employee))
        assert response.status_code == 400


def test_autofill_data_defaults_to_casual():
    from elms.schemas.ai import AutofillData

    data = AutofillData.model_validate({"fromDate": "2024-01-02", "toDate": "2024-01-02"})
    assert data.leave_type.value == "casual"
    assert data.from_date == date(2024, 1, 2)
