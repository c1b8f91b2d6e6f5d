from datetime import datetime, timezone
import io
from unittest.mock import AsyncMock, patch

import pytest
from openpyxl import load_workbook

from complaint_bot.admin import AdminCommandRouter
from complaint_bot.constants import Step
from complaint_bot.dispatcher import DeliveryDispatcher
from complaint_bot.errors import PersistenceError
from complaint_bot.i18n import t
from complaint_bot.models import Complaint
from complaint_bot.sessions import SessionStore

from conftest import ADMIN_ID, GROUP_ID, USER_ID, FakeTransport, make_event

NOW = datetime(2024, 5, 2, 12, 0, tzinfo=timezone.utc)


class DocumentTransport(FakeTransport):
    """Keeps the bytes of sent documents so reports can be opened."""

    def __init__(self):
        super().__init__()
        self.documents = {}

    async def send_document(self, chat_id, filename, content, caption=None):
        await super().send_document(chat_id, filename, content, caption)
        self.documents[filename] = content


@pytest.fixture
def transport():
    return DocumentTransport()


@pytest.fixture
def sessions():
    return SessionStore()


@pytest.fixture
def router(repository, transport, sessions):
    dispatcher = DeliveryDispatcher(transport, [ADMIN_ID], GROUP_ID)
    return AdminCommandRouter(repository, dispatcher, sessions, transport, [ADMIN_ID], clock=lambda: NOW)


async def seed(repository, complaint_id="42_1", submitter_id=USER_ID, section="Ichimlik suvi", created_at=NOW):
    return await repository.insert_complaint(
        Complaint(
            id=complaint_id,
            submitter_id=submitter_id,
            submitter_handle="citizen",
            full_name="Ali Valiev",
            address="Toshkent",
            phone="+998901234567",
            section=section,
            summary="Suv yo'q",
            created_at=created_at,
        )
    )


@pytest.mark.asyncio
async def test_non_admin_is_refused_and_audited(router, repository, transport):
    await seed(repository)

    handled = await router.handle_command("7", "status", ["42_1", "Resolved"])

    assert handled
    assert transport.texts_to("7") == [t("uz", "invalidCommand")]
    assert (await repository.get_complaint("42_1")).status == "Pending"
    audit = await repository.recent_audit(1)
    assert audit[0].action == "admin_denied"
    assert audit[0].actor_id == "7"


@pytest.mark.asyncio
async def test_unknown_command_is_not_claimed(router, transport):
    assert await router.handle_command(ADMIN_ID, "frobnicate", []) is False
    assert transport.sent == []


@pytest.mark.asyncio
async def test_status_outside_closed_set_is_rejected(router, repository, transport):
    await seed(repository)

    await router.handle_command(ADMIN_ID, "status", ["42_1", "Done"])

    assert transport.texts_to(ADMIN_ID) == [t("uz", "invalidStatusId")]
    assert transport.texts_to(USER_ID) == []
    assert (await repository.get_complaint("42_1")).status == "Pending"


@pytest.mark.asyncio
async def test_status_change_notifies_submitter_in_their_language(router, repository, transport, sessions):
    await seed(repository)
    sessions.set_language(USER_ID, "ru")

    await router.handle_command(ADMIN_ID, "status", ["42_1", "In", "Progress"])

    assert (await repository.get_complaint("42_1")).status == "In Progress"
    assert transport.texts_to(USER_ID) == [
        t("ru", "statusUpdated", complaint_id="42_1", status="In Progress")
    ]
    assert transport.last_text_to(ADMIN_ID) == t(
        "uz", "adminStatusUpdated", complaint_id="42_1", old_status="Pending", status="In Progress"
    )
    assert (await repository.recent_audit(1))[0].action == "status_change"


@pytest.mark.asyncio
async def test_status_change_still_notifies_when_audit_write_fails(router, repository, transport):
    await seed(repository)

    with patch.object(repository, "append_audit", AsyncMock(side_effect=PersistenceError("locked"))):
        await router.handle_command(ADMIN_ID, "status", ["42_1", "Resolved"])

    assert (await repository.get_complaint("42_1")).status == "Resolved"
    assert transport.texts_to(USER_ID) == [t("uz", "statusUpdated", complaint_id="42_1", status="Resolved")]
    assert t("uz", "genericError") not in transport.texts_to(ADMIN_ID)


@pytest.mark.asyncio
async def test_status_for_missing_complaint(router, transport):
    await router.handle_command(ADMIN_ID, "status", ["nope", "Resolved"])
    assert transport.texts_to(ADMIN_ID) == [t("uz", "complaintNotFound")]


@pytest.mark.asyncio
async def test_status_button_callback(router, repository, transport):
    await seed(repository)
    assert await router.handle_callback(ADMIN_ID, "status:resolved:42_1")
    assert (await repository.get_complaint("42_1")).status == "Resolved"
    assert transport.texts_to(USER_ID)


@pytest.mark.asyncio
async def test_block_ends_session_and_notifies_user(router, repository, transport, sessions):
    sessions.start("13", Step.ASK_ADDRESS)

    await router.handle_command(ADMIN_ID, "block", ["13", "spam"])

    assert await repository.is_blocked("13")
    assert "13" not in sessions
    assert transport.texts_to("13") == [t("uz", "blockedUser")]
    assert transport.last_text_to(ADMIN_ID) == t("uz", "blockSuccess", user_id="13")


@pytest.mark.asyncio
async def test_comment_requires_existing_complaint(router, repository, transport):
    await router.handle_command(ADMIN_ID, "comment", ["nope", "tekshirildi"])
    assert transport.texts_to(ADMIN_ID) == [t("uz", "complaintNotFound")]
    assert await repository.list_comments("nope") == []

    await seed(repository)
    await router.handle_command(ADMIN_ID, "comment", ["42_1", "tekshirildi", "joyida"])
    comments = await repository.list_comments("42_1")
    assert [c.text for c in comments] == ["tekshirildi joyida"]


@pytest.mark.asyncio
async def test_assign_and_delete(router, repository, transport):
    await seed(repository)

    await router.handle_command(ADMIN_ID, "assign", ["42_1", "Suvoqova", "MCHJ"])
    assert (await repository.get_complaint("42_1")).assignee == "Suvoqova MCHJ"

    await router.handle_command(ADMIN_ID, "delete", ["42_1"])
    assert not await repository.complaint_exists("42_1")
    assert transport.last_text_to(ADMIN_ID) == t("uz", "deleteSuccess", complaint_id="42_1")


@pytest.mark.asyncio
async def test_usage_messages(router, transport):
    await router.handle_command(ADMIN_ID, "assign", ["42_1"])
    await router.handle_command(ADMIN_ID, "delete", [])
    await router.handle_command(ADMIN_ID, "reply", [])
    assert transport.texts_to(ADMIN_ID) == [
        t("uz", "assignUsage"),
        t("uz", "deleteUsage"),
        t("uz", "replyUsage"),
    ]


@pytest.mark.asyncio
async def test_reply_reaches_submitter(router, repository, transport):
    await seed(repository)
    await router.handle_command(ADMIN_ID, "reply", ["42_1", "Ertaga", "tuzatiladi"])
    assert transport.texts_to(USER_ID) == [
        t("uz", "replyMessage", complaint_id="42_1", text="Ertaga tuzatiladi")
    ]


@pytest.mark.asyncio
async def test_stats_counts_today_in_local_time(router, repository, transport):
    await seed(repository, "a", created_at=NOW)
    await seed(repository, "b", created_at=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc))

    await router.handle_command(ADMIN_ID, "stats", [])

    assert transport.last_text_to(ADMIN_ID) == t("uz", "statsToday", day="2024-05-02", today=1, total=2)


@pytest.mark.asyncio
async def test_dashboard_shows_counts(router, repository, transport):
    await seed(repository, "a")
    await seed(repository, "b")
    await repository.update_status("b", "Resolved")

    await router.handle_command(ADMIN_ID, "dashboard", [])

    sent = transport.to(ADMIN_ID, "text")[-1]
    assert sent.body == t("uz", "adminDashboard", total=2, pending=1, in_progress=0, resolved=1)
    assert sent.keyboard is not None


@pytest.mark.asyncio
async def test_filter_lists_each_complaint_with_status_buttons(router, repository, transport):
    await seed(repository, "a")
    await seed(repository, "b")
    await seed(repository, "c", section="Ta‘lim")

    await router.handle_callback(ADMIN_ID, "filter:water")

    sent = transport.to(ADMIN_ID, "text")
    assert sent[0].body == t("uz", "filterHeader", section="Ichimlik suvi")
    items = sent[1:]
    assert len(items) == 2
    for item in items:
        payloads = [button.data for row in item.keyboard.rows for button in row]
        complaint_id = item.body.split("\n")[0].split(": ")[1]
        assert f"status:resolved:{complaint_id}" in payloads


@pytest.mark.asyncio
async def test_filter_with_no_matches(router, transport):
    await router.handle_callback(ADMIN_ID, "filter:health")
    assert transport.texts_to(ADMIN_ID) == [t("uz", "noComplaints")]


@pytest.mark.asyncio
async def test_export_sends_workbook(router, repository, transport):
    await seed(repository)

    await router.handle_command(ADMIN_ID, "export", [])

    documents = transport.to(ADMIN_ID, "document")
    assert len(documents) == 1
    assert documents[0].body.startswith("murojaatlar_")
    workbook = load_workbook(io.BytesIO(transport.documents[documents[0].body]))
    assert "Umumiy Hisobot" in workbook.sheetnames
    assert transport.last_text_to(ADMIN_ID) == t("uz", "exportSuccess")
    assert (await repository.recent_audit(1))[0].action == "export_report"


@pytest.mark.asyncio
async def test_export_failure_is_reported(router, transport):
    transport.fail_items.add((ADMIN_ID, "document"))
    assert await router.export_report(ADMIN_ID) is False
    assert transport.texts_to(ADMIN_ID) == [t("uz", "exportFailed")]


@pytest.mark.asyncio
async def test_two_phase_broadcast(router, repository, transport, sessions):
    await seed(repository, "a", submitter_id="42")
    await seed(repository, "b", submitter_id="7")
    transport.fail_targets.add("7")

    await router.handle_command(ADMIN_ID, "broadcast", [])
    assert sessions.get(ADMIN_ID).step is Step.BROADCAST

    await router.handle_broadcast_text(ADMIN_ID, "Ertaga suv o'chiriladi")
    assert transport.last_text_to(ADMIN_ID) == t("uz", "broadcastConfirm", message="Ertaga suv o'chiriladi")

    await router.handle_callback(ADMIN_ID, "send_broadcast")

    expected = t("uz", "broadcastMessage", message="Ertaga suv o'chiriladi")
    assert transport.texts_to("42") == [expected]
    assert transport.texts_to(GROUP_ID) == [expected]
    assert transport.last_text_to(ADMIN_ID) == t("uz", "broadcastPartial", count=1, targets="7")
    assert ADMIN_ID not in sessions


@pytest.mark.asyncio
async def test_send_broadcast_without_message(router, transport):
    await router.handle_command(ADMIN_ID, "broadcast", [])
    await router.handle_callback(ADMIN_ID, "send_broadcast")
    assert transport.last_text_to(ADMIN_ID) == t("uz", "broadcastEmpty")


@pytest.mark.asyncio
async def test_cancel_broadcast(router, transport, sessions):
    await router.handle_callback(ADMIN_ID, "start_broadcast")
    await router.handle_callback(ADMIN_ID, "cancel_broadcast")
    assert ADMIN_ID not in sessions
    assert transport.last_text_to(ADMIN_ID) == t("uz", "broadcastCancelled")


@pytest.mark.asyncio
async def test_view_shows_comments(router, repository, transport):
    await seed(repository)
    await repository.add_comment("42_1", ADMIN_ID, "Joyiga borildi")

    await router.handle_command(ADMIN_ID, "view", ["42_1"])

    detail = transport.last_text_to(ADMIN_ID)
    assert "Ali Valiev" in detail
    assert "Joyiga borildi" in detail


@pytest.mark.asyncio
async def test_audit_lists_recent_entries(router, repository, transport):
    await router.handle_command(ADMIN_ID, "audit", [])
    assert transport.last_text_to(ADMIN_ID) == t("uz", "auditEmpty")

    await repository.append_audit(ADMIN_ID, "export_report", "Exported complaints report")
    await router.handle_command(ADMIN_ID, "audit", ["5"])
    assert "export_report" in transport.last_text_to(ADMIN_ID)


@pytest.mark.asyncio
async def test_admin_commands_through_core(core, repository, transport):
    await seed(repository)
    await core.handle_inbound_event(make_event("/status 42_1 resolved", ADMIN_ID))
    assert (await repository.get_complaint("42_1")).status == "Resolved"
