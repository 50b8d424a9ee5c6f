"""API tests for leave application and the two-stage approval flow."""
import logging
import uuid

from sqlalchemy import select, func

import pytest

from elms.models.leave import Leave
from elms.models.notification import Notification
from elms.models.user import UserRoleType
from elms.services.notification_service import NotificationService, NotificationDispatcher


# 2024-01-01 is a Monday; 01-03 a Wednesday
ANNUAL_3_DAYS = {"leave_type": "annual", "from_date": "2024-01-01", "to_date": "2024-01-03", "description": "Family trip"}


async def apply(client, headers, payload=None):
    response = await client.post("/api/leaves", json=payload or ANNUAL_3_DAYS, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


async def notifications_for(client, headers):
    response = await client.get("/api/notifications", headers=headers)
    assert response.status_code == 200
    return response.json()


async def count_rows(db, model):
    async with db() as session:
        return await session.scalar(select(func.count()).select_from(model))


class TestApply:

    async def test_employee_apply(self, client, auth, employee, team_lead):
        body = await apply(client, auth(employee))

        assert body["total_days"] == 3
        assert body["leave_id"]

        leave = (await client.get(f"/api/leaves/{body['leave_id']}", headers=auth(employee))).json()
        assert leave["status"] == "pending"
        assert leave["team_lead_approval"] == "pending"
        assert leave["admin_approval"] == "pending"
        assert leave["user"]["name"] == "Jane Employee"

        lead_notes = await notifications_for(client, auth(team_lead))
        assert lead_notes["unread_count"] == 1
        assert lead_notes["notifications"][0]["message"] == "New leave request from your team member"
        assert lead_notes["notifications"][0]["type"] == "leave_applied"
        assert lead_notes["notifications"][0]["related_leave_id"] == body["leave_id"]

    async def test_team_lead_apply_notifies_admins(self, client, auth, team_lead, admin):
        body = await apply(client, auth(team_lead))

        leave = (await client.get(f"/api/leaves/{body['leave_id']}", headers=auth(team_lead))).json()
        assert leave["team_lead_approval"] == "na"

        admin_notes = await notifications_for(client, auth(admin))
        assert [n["message"] for n in admin_notes["notifications"]] == [
            "New leave request from Team Lead requires your approval"
        ]

    async def test_weekend_only_counts_one_day(self, client, auth, employee):
        body = await apply(client, auth(employee), {
            "leave_type": "casual", "from_date": "2024-01-06", "to_date": "2024-01-07",
        })
        assert body["total_days"] == 1

    async def test_end_before_start(self, client, auth, employee):
        response = await client.post("/api/leaves", json={
            "leave_type": "annual", "from_date": "2024-01-05", "to_date": "2024-01-01",
        }, headers=auth(employee))
        assert response.status_code == 400
        assert "error" in response.json()

    async def test_unknown_leave_type(self, client, auth, employee):
        response = await client.post("/api/leaves", json={
            "leave_type": "sabbatical", "from_date": "2024-01-01", "to_date": "2024-01-01",
        }, headers=auth(employee))
        assert response.status_code == 400

    async def test_requires_token(self, client):
        response = await client.post("/api/leaves", json=ANNUAL_3_DAYS)
        assert response.status_code == 401
        assert response.json() == {"error": "No token provided"}

    async def test_invalid_token(self, client):
        response = await client.get("/api/leaves/my", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401
        assert response.json() == {"error": "Invalid or expired token"}


class TestApprovalFlow:

    async def test_full_annual_flow(self, client, auth, employee, team_lead, admin, get_user):
        leave_id = (await apply(client, auth(employee)))["leave_id"]

        response = await client.put(
            f"/api/leaves/{leave_id}/approve", json={"comment": "ok"}, headers=auth(team_lead)
        )
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "pending"
        assert body["team_lead_approval"] == "approved"

        admin_notes = await notifications_for(client, auth(admin))
        assert admin_notes["notifications"][0]["message"] == (
            "Leave request approved by Team Lead, pending your final approval"
        )

        response = await client.put(f"/api/leaves/{leave_id}/approve", headers=auth(admin))
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "approved"
        assert body["admin_approval"] == "approved"

        refreshed = await get_user(employee.id)
        assert refreshed.leave_balance == 17
        assert refreshed.sick_leave_balance == 10
        assert refreshed.casual_leave_balance == 5

        messages = [n["message"] for n in (await notifications_for(client, auth(employee)))["notifications"]]
        assert "Your leave request has been approved by Team Lead, pending Admin approval" in messages
        assert "Your leave request has been approved!" in messages

        leave = (await client.get(f"/api/leaves/{leave_id}", headers=auth(employee))).json()
        assert leave["team_lead_comment"] == "ok"

    async def test_admin_cannot_skip_team_lead(self, client, auth, employee, admin):
        leave_id = (await apply(client, auth(employee)))["leave_id"]

        response = await client.put(f"/api/leaves/{leave_id}/approve", headers=auth(admin))
        assert response.status_code == 400
        assert response.json() == {"error": "Leave needs Team Lead approval first"}

        leave = (await client.get(f"/api/leaves/{leave_id}", headers=auth(admin))).json()
        assert leave["admin_approval"] == "pending"
        assert leave["status"] == "pending"

    async def test_balance_deducted_once(self, client, auth, team_lead, admin, get_user):
        leave_id = (await apply(client, auth(team_lead)))["leave_id"]

        first = await client.put(f"/api/leaves/{leave_id}/approve", headers=auth(admin))
        second = await client.put(f"/api/leaves/{leave_id}/approve", headers=auth(admin))

        assert first.status_code == 200
        assert second.status_code == 400
        assert second.json() == {"error": "Leave already processed by admin"}
        assert (await get_user(team_lead.id)).leave_balance == 17

    async def test_admin_rejects_team_lead_leave(self, client, auth, team_lead, admin):
        leave_id = (await apply(client, auth(team_lead)))["leave_id"]
        assert (await notifications_for(client, auth(admin)))["unread_count"] == 1

        response = await client.put(
            f"/api/leaves/{leave_id}/reject", json={"comment": "short-staffed"}, headers=auth(admin)
        )
        assert response.status_code == 200
        assert response.json()["status"] == "rejected"

        notes = (await notifications_for(client, auth(team_lead)))["notifications"]
        assert notes[0]["type"] == "leave_rejected"
        assert notes[0]["message"] == "Your leave request has been rejected. Reason: short-staffed"

    async def test_admin_rejects_approved_leave(self, client, auth, employee, team_lead, admin, get_user):
        leave_id = (await apply(client, auth(employee)))["leave_id"]
        await client.put(f"/api/leaves/{leave_id}/approve", headers=auth(team_lead))
        await client.put(f"/api/leaves/{leave_id}/approve", headers=auth(admin))

        response = await client.put(f"/api/leaves/{leave_id}/reject", json={"comment": "late"}, headers=auth(admin))

        assert response.status_code == 200
        assert response.json()["status"] == "rejected"
        assert response.json()["admin_approval"] == "rejected"
        assert (await get_user(employee.id)).leave_balance == 17

        notes = (await notifications_for(client, auth(employee)))["notifications"]
        assert notes[0]["message"] == "Your leave request has been rejected. Reason: late"

    async def test_team_lead_reject_is_final(self, client, auth, employee, team_lead, admin):
        leave_id = (await apply(client, auth(employee)))["leave_id"]

        response = await client.put(f"/api/leaves/{leave_id}/reject", headers=auth(team_lead))
        assert response.json()["status"] == "rejected"

        response = await client.put(f"/api/leaves/{leave_id}/approve", headers=auth(admin))
        assert response.status_code == 400

        response = await client.put(f"/api/leaves/{leave_id}/reject", headers=auth(team_lead))
        assert response.status_code == 400
        assert response.json() == {"error": "Leave already processed"}

    async def test_team_lead_cannot_approve_twice(self, client, auth, employee, team_lead):
        leave_id = (await apply(client, auth(employee)))["leave_id"]
        await client.put(f"/api/leaves/{leave_id}/approve", headers=auth(team_lead))

        response = await client.put(f"/api/leaves/{leave_id}/approve", headers=auth(team_lead))
        assert response.status_code == 400
        assert response.json() == {"error": "Leave already processed by team lead"}

    @pytest.mark.parametrize("leave_type,field,expected", [
        ("sick", "sick_leave_balance", 7),
        ("casual", "casual_leave_balance", 2),
        ("maternity", "leave_balance", 17),
    ])
    async def test_deducts_matching_balance(self, client, auth, team_lead, admin, get_user, leave_type, field, expected):
        payload = dict(ANNUAL_3_DAYS, leave_type=leave_type)
        leave_id = (await apply(client, auth(team_lead), payload))["leave_id"]

        await client.put(f"/api/leaves/{leave_id}/approve", headers=auth(admin))

        assert getattr(await get_user(team_lead.id), field) == expected

    async def test_unpaid_leaves_balances_alone(self, client, auth, team_lead, admin, get_user):
        payload = dict(ANNUAL_3_DAYS, leave_type="unpaid")
        leave_id = (await apply(client, auth(team_lead), payload))["leave_id"]

        response = await client.put(f"/api/leaves/{leave_id}/approve", headers=auth(admin))
        assert response.json()["status"] == "approved"

        user = await get_user(team_lead.id)
        assert (user.leave_balance, user.sick_leave_balance, user.casual_leave_balance) == (20, 10, 5)

    async def test_employee_cannot_approve(self, client, auth, employee):
        leave_id = (await apply(client, auth(employee)))["leave_id"]

        response = await client.put(f"/api/leaves/{leave_id}/approve", headers=auth(employee))
        assert response.status_code == 403
        assert response.json() == {"error": "Forbidden - Insufficient permissions"}

    async def test_unknown_leave(self, client, auth, admin):
        response = await client.put(
            "/api/leaves/00000000-0000-0000-0000-000000000000/approve", headers=auth(admin)
        )
        assert response.status_code == 404
        assert response.json() == {"error": "Leave not found"}


class TestNotificationFailures:

    async def test_failing_sink_does_not_roll_back(self, client, auth, employee, team_lead, admin, db, monkeypatch, get_user):
        async def broken_insert(self, *args, **kwargs):
            raise RuntimeError("notification store down")

        monkeypatch.setattr(NotificationService, "_insert", broken_insert)

        leave_id = (await apply(client, auth(employee)))["leave_id"]
        approve = await client.put(f"/api/leaves/{leave_id}/approve", headers=auth(team_lead))
        final = await client.put(f"/api/leaves/{leave_id}/approve", headers=auth(admin))

        assert approve.status_code == 200
        assert final.status_code == 200
        assert final.json()["status"] == "approved"
        assert (await get_user(employee.id)).leave_balance == 17
        assert await count_rows(db, Leave) == 1
        assert await count_rows(db, Notification) == 0

    async def test_database_error_in_dispatch_keeps_decision(
        self, client, auth, employee, team_lead, admin, db, monkeypatch, get_user, caplog
    ):
        resolve = NotificationDispatcher.recipients

        async def with_unknown_user(self, event):
            # Notification rows for this id fail the users foreign key
            return await resolve(self, event) + [uuid.uuid4()]

        monkeypatch.setattr(NotificationDispatcher, "recipients", with_unknown_user)

        with caplog.at_level(logging.ERROR, logger="elms.services.notification_service"):
            leave_id = (await apply(client, auth(employee)))["leave_id"]
            approve = await client.put(f"/api/leaves/{leave_id}/approve", headers=auth(team_lead))
            final = await client.put(f"/api/leaves/{leave_id}/approve", headers=auth(admin))

        assert approve.status_code == 200
        assert final.status_code == 200
        assert final.json()["status"] == "approved"
        assert (await get_user(employee.id)).leave_balance == 17

        # team lead on apply, admin and applicant on team lead approval, applicant on final approval
        assert await count_rows(db, Notification) == 4
        failures = [r for r in caplog.records if "Failed to create notification" in r.getMessage()]
        assert len(failures) == 4


class TestListings:

    async def test_my_leaves(self, client, auth, employee, team_lead):
        await apply(client, auth(employee))
        await apply(client, auth(team_lead))

        body = (await client.get("/api/leaves/my", headers=auth(employee))).json()
        assert body["total"] == 1
        assert body["page"] == 1
        assert body["items"][0]["user"]["email"] == "jane@elms.com"

    async def test_my_leaves_status_filter(self, client, auth, employee, team_lead):
        leave_id = (await apply(client, auth(employee)))["leave_id"]
        await apply(client, auth(employee))
        await client.put(f"/api/leaves/{leave_id}/reject", headers=auth(team_lead))

        body = (await client.get("/api/leaves/my?status=rejected", headers=auth(employee))).json()
        assert [item["id"] for item in body["items"]] == [leave_id]

    async def test_team_queue(self, client, auth, make_user, employee, team_lead):
        outsider = await make_user("outsider@elms.com")
        first = (await apply(client, auth(employee)))["leave_id"]
        second = (await apply(client, auth(employee)))["leave_id"]
        await apply(client, auth(outsider))
        await apply(client, auth(team_lead))
        await client.put(f"/api/leaves/{first}/approve", headers=auth(team_lead))

        everything = (await client.get("/api/leaves/team", headers=auth(team_lead))).json()
        assert everything["total"] == 2

        queue = (await client.get("/api/leaves/team?approval=pending", headers=auth(team_lead))).json()
        assert [item["id"] for item in queue["items"]] == [second]

    async def test_team_listing_forbidden_for_employee(self, client, auth, employee):
        response = await client.get("/api/leaves/team", headers=auth(employee))
        assert response.status_code == 403

    async def test_admin_queue(self, client, auth, employee, team_lead, admin):
        waiting_on_lead = (await apply(client, auth(employee)))["leave_id"]
        lead_leave = (await apply(client, auth(team_lead)))["leave_id"]

        queue = (await client.get("/api/leaves/all?approval=pending", headers=auth(admin))).json()
        ids = [item["id"] for item in queue["items"]]
        assert lead_leave in ids
        assert waiting_on_lead not in ids

        everything = (await client.get("/api/leaves/all", headers=auth(admin))).json()
        assert everything["total"] == 2

    async def test_all_forbidden_for_team_lead(self, client, auth, team_lead):
        response = await client.get("/api/leaves/all", headers=auth(team_lead))
        assert response.status_code == 403

    async def test_employee_cannot_read_others_leave(self, client, auth, make_user, employee, team):
        colleague = await make_user("colleague@elms.com", UserRoleType.EMPLOYEE, team=team)
        leave_id = (await apply(client, auth(colleague)))["leave_id"]

        response = await client.get(f"/api/leaves/{leave_id}", headers=auth(employee))
        assert response.status_code == 403

    async def test_pagination(self, client, auth, employee):
        for _ in range(3):
            await apply(client, auth(employee))

        body = (await client.get("/api/leaves/my?page=2&size=2", headers=auth(employee))).json()
        assert body["total"] == 3
        assert body["pages"] == 2
        assert len(body["items"]) == 1
