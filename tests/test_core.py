from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest

from complaint_bot.constants import Step
from complaint_bot.core import ComplaintBotCore
from complaint_bot.errors import PersistenceError
from complaint_bot.i18n import t
from complaint_bot.models import Complaint
from complaint_bot.rate_limiter import RateLimiter

from conftest import ADMIN_ID, GROUP_ID, USER_ID, make_event, run_wizard


async def seed(repository, complaint_id="42_1", submitter_id=USER_ID, status="Pending", created_at=None):
    return await repository.insert_complaint(
        Complaint(
            id=complaint_id,
            submitter_id=submitter_id,
            full_name="Ali Valiev",
            address="Toshkent",
            phone="+998901234567",
            section="Yo‘l qurilishi",
            summary="Ko'chada chiroq yonmayapti",
            status=status,
            created_at=created_at or datetime.now(timezone.utc),
        )
    )


@pytest.mark.asyncio
async def test_full_submission_is_stored_then_delivered(core, repository, transport):
    await run_wizard(core)
    assert core.sessions.get(USER_ID).step is Step.ASK_CONFIRMATION

    await core.handle_inbound_event(make_event(callback="submit"))

    stored = await repository.list_by_user(USER_ID)
    assert len(stored) == 1
    complaint = stored[0]
    assert complaint.id.startswith(f"{USER_ID}_")
    assert complaint.full_name == "Ali Valiev"
    assert complaint.section == "Yo‘l qurilishi"
    assert complaint.media == [{"kind": "photo", "ref": "photo-1"}]

    for target in (ADMIN_ID, GROUP_ID):
        assert [s.kind for s in transport.to(target)] == ["text", "photo"]
    assert transport.last_text_to(USER_ID) == t("uz", "success", complaint_id=complaint.id)
    assert USER_ID not in core.sessions
    assert (await repository.recent_audit(1))[0].action == "submit_complaint"
    assert "cb-submit" in transport.answered


@pytest.mark.asyncio
async def test_blocked_user_is_refused_before_rate_limiter(core, repository, transport):
    await repository.set_blocked(USER_ID, "spam")

    with patch.object(core.rate_limiter, "allow", wraps=core.rate_limiter.allow) as allow:
        await core.handle_inbound_event(make_event("/start"))

    allow.assert_not_called()
    assert transport.texts_to(USER_ID) == [t("uz", "blockedUser")]
    assert USER_ID not in core.sessions


@pytest.mark.asyncio
async def test_blocked_lookup_failure_refuses_event(core, repository, transport):
    with patch.object(repository, "is_blocked", AsyncMock(side_effect=PersistenceError("down"))):
        await core.handle_inbound_event(make_event("/start"))
    assert transport.texts_to(USER_ID) == [t("uz", "genericError")]
    assert USER_ID not in core.sessions


@pytest.mark.asyncio
async def test_eleventh_event_in_window_is_rate_limited(core, transport):
    for _ in range(10):
        await core.handle_inbound_event(make_event("/help"))
    await core.handle_inbound_event(make_event("/help"))

    texts = transport.texts_to(USER_ID)
    assert texts.count(t("uz", "help")) == 10
    assert texts[-1] == t("uz", "rateLimit")


@pytest.mark.asyncio
async def test_rate_limit_is_per_user(core, transport):
    for _ in range(11):
        await core.handle_inbound_event(make_event("/help"))
    await core.handle_inbound_event(make_event("/help", "7"))
    assert transport.texts_to("7") == [t("uz", "help")]


@pytest.mark.asyncio
async def test_offensive_text_is_stopped_at_the_gate(core, repository, transport):
    await core.handle_inbound_event(make_event("/start"))

    await core.handle_inbound_event(make_event("Sen ahmoqsan"))

    session = core.sessions.get(USER_ID)
    assert session.step is Step.ASK_NAME
    assert session.draft.full_name is None
    assert transport.last_text_to(USER_ID) == t("uz", "offensiveWarning")
    notice = transport.last_text_to(ADMIN_ID)
    assert "Sen ahmoqsan" in notice
    assert USER_ID in notice
    assert (await repository.recent_audit(1))[0].action == "offensive_message"


@pytest.mark.asyncio
async def test_non_private_chats_are_ignored(core, transport):
    await core.handle_inbound_event(make_event("/start", chat_type="group"))
    assert transport.sent == []
    assert USER_ID not in core.sessions


@pytest.mark.asyncio
async def test_commands_are_never_step_input(core, transport):
    await core.handle_inbound_event(make_event("/start"))
    await core.handle_inbound_event(make_event("/help"))
    await core.handle_inbound_event(make_event("/nosuchthing"))

    session = core.sessions.get(USER_ID)
    assert session.step is Step.ASK_NAME
    assert session.draft.full_name is None
    assert transport.texts_to(USER_ID)[-2:] == [t("uz", "help"), t("uz", "unknownCommand")]


@pytest.mark.asyncio
async def test_text_without_session_is_ignored(core, transport):
    await core.handle_inbound_event(make_event("salom, yordam kerak"))
    assert transport.sent == []


@pytest.mark.asyncio
async def test_admin_command_from_citizen_is_refused(core, transport):
    await core.handle_inbound_event(make_event("/stats"))
    assert transport.texts_to(USER_ID) == [t("uz", "invalidCommand")]


@pytest.mark.asyncio
async def test_storage_failure_keeps_draft_for_retry(core, repository, transport):
    await run_wizard(core)
    transport.clear()

    with patch.object(repository, "insert_complaint", AsyncMock(side_effect=PersistenceError("locked"))):
        await core.handle_inbound_event(make_event(callback="submit"))

    assert transport.to(ADMIN_ID) == []
    assert transport.to(GROUP_ID) == []
    assert transport.last_text_to(USER_ID) == t("uz", "submitFailed")
    session = core.sessions.get(USER_ID)
    assert session.step is Step.ASK_CONFIRMATION
    assert session.draft.full_name == "Ali Valiev"

    await core.handle_inbound_event(make_event(callback="submit"))
    assert len(await repository.list_by_user(USER_ID)) == 1
    assert USER_ID not in core.sessions


@pytest.mark.asyncio
async def test_partial_delivery_is_reported_to_submitter(core, repository, transport):
    transport.fail_targets.add(GROUP_ID)
    await run_wizard(core)

    await core.handle_inbound_event(make_event(callback="submit"))

    complaint = (await repository.list_by_user(USER_ID))[0]
    assert [s.kind for s in transport.to(ADMIN_ID)] == ["text", "photo"]
    assert transport.last_text_to(USER_ID) == t(
        "uz", "partialSuccess", complaint_id=complaint.id, targets=GROUP_ID
    )
    assert USER_ID not in core.sessions


@pytest.mark.asyncio
async def test_cancel_discards_draft(core, repository, transport):
    await core.handle_inbound_event(make_event("/start"))
    await core.handle_inbound_event(make_event("Ali Valiev"))
    await core.handle_inbound_event(make_event(callback="cancel"))

    assert USER_ID not in core.sessions
    assert transport.last_text_to(USER_ID) == t("uz", "cancelled")
    assert await repository.list_by_user(USER_ID) == []


@pytest.mark.asyncio
async def test_start_restarts_wizard(core):
    await core.handle_inbound_event(make_event("/start"))
    await core.handle_inbound_event(make_event("Ali Valiev"))
    await core.handle_inbound_event(make_event("/start"))
    session = core.sessions.get(USER_ID)
    assert session.step is Step.ASK_NAME
    assert session.draft.full_name is None


@pytest.mark.asyncio
async def test_edit_own_complaint(core, repository, transport):
    await seed(repository)

    await core.handle_inbound_event(make_event("/edit 42_1"))
    assert core.sessions.get(USER_ID).step is Step.EDIT_SUMMARY
    assert transport.last_text_to(USER_ID) == t("uz", "editComplaint")

    await core.handle_inbound_event(make_event("Chiroq hali ham yonmayapti"))

    assert (await repository.get_complaint("42_1")).summary == "Chiroq hali ham yonmayapti"
    assert transport.last_text_to(USER_ID) == t("uz", "editSuccess", complaint_id="42_1")
    assert "Chiroq hali ham yonmayapti" in transport.last_text_to(ADMIN_ID)
    assert USER_ID not in core.sessions


@pytest.mark.asyncio
async def test_edit_someone_elses_complaint_is_refused(core, repository, transport):
    await seed(repository, submitter_id="7")

    await core.handle_inbound_event(make_event("/edit 42_1"))

    assert transport.texts_to(USER_ID) == [t("uz", "complaintNotFound")]
    assert USER_ID not in core.sessions


@pytest.mark.asyncio
async def test_my_complaints(core, repository, transport):
    await core.handle_inbound_event(make_event("/mycomplaints"))
    assert transport.last_text_to(USER_ID) == t("uz", "noUserComplaints")

    await seed(repository)
    await core.handle_inbound_event(make_event("/mycomplaints"))
    assert "42_1" in transport.last_text_to(USER_ID)


@pytest.mark.asyncio
async def test_language_switch_applies_to_prompts(core, transport):
    await core.handle_inbound_event(make_event("/language"))
    await core.handle_inbound_event(make_event(callback="lang:ru"))
    assert transport.last_text_to(USER_ID) == t("ru", "languageChanged")
    assert "cb-lang:ru" in transport.answered

    await core.handle_inbound_event(make_event("/start"))
    assert transport.last_text_to(USER_ID) == t("ru", "askName")


@pytest.mark.asyncio
async def test_unsupported_language_is_ignored(core, transport):
    await core.handle_inbound_event(make_event(callback="lang:de"))
    assert transport.texts_to(USER_ID) == []
    assert core.sessions.language_for(USER_ID) == "uz"


@pytest.mark.asyncio
async def test_daily_reminder_targets_pending_only(core, repository, transport):
    await seed(repository, "a", submitter_id="42")
    await seed(repository, "b", submitter_id="7", status="Resolved")
    await seed(repository, "c", submitter_id="8")
    transport.fail_targets.add("8")

    sent = await core.run_daily_reminder()

    assert sent == 1
    assert transport.texts_to("42") == [t("uz", "reminder", complaint_id="a")]
    assert transport.texts_to("7") == []


@pytest.mark.asyncio
async def test_weekly_stats_counts_last_seven_days(core, repository, transport):
    now = datetime.now(timezone.utc)
    await seed(repository, "a", created_at=now - timedelta(days=1))
    await seed(repository, "b", created_at=now - timedelta(days=10))

    count = await core.run_weekly_stats()

    assert count == 1
    assert transport.last_text_to(ADMIN_ID) == t("uz", "weeklyStats", count=1)


@pytest.mark.asyncio
async def test_membership_check_alerts_admins(core, transport):
    assert await core.run_membership_check() is True
    assert transport.sent == []

    transport.chat_ok = False
    assert await core.run_membership_check() is False
    assert transport.last_text_to(ADMIN_ID) == t("uz", "membershipLost")


@pytest.mark.asyncio
async def test_group_announcement(repository, transport):
    core = ComplaintBotCore(repository, transport, [ADMIN_ID], GROUP_ID)
    assert await core.run_group_announcement() is False
    assert transport.sent == []

    core = ComplaintBotCore(repository, transport, [ADMIN_ID], GROUP_ID, bot_username="murojaat_bot")
    assert await core.run_group_announcement() is True
    assert "@murojaat_bot" in transport.last_text_to(GROUP_ID)


@pytest.mark.asyncio
async def test_periodic_export_and_dataset(core, repository, transport):
    await seed(repository)

    rows = await core.get_complaint_dataset()
    assert [row["id"] for row in rows] == ["42_1"]

    await core.run_periodic_export()
    assert len(transport.to(ADMIN_ID, "document")) == 1
    assert transport.last_text_to(ADMIN_ID) == t("uz", "autoReport")


@pytest.mark.asyncio
async def test_housekeeping_evicts_idle_state(repository, transport):
    clock = {"now": 0.0}
    limiter = RateLimiter(clock=lambda: clock["now"])
    core = ComplaintBotCore(repository, transport, [ADMIN_ID], GROUP_ID, rate_limiter=limiter)
    await core.handle_inbound_event(make_event("/help"))

    clock["now"] = 120.0
    await core.run_housekeeping()
    assert limiter.purge_expired() == 0


@pytest.mark.asyncio
async def test_status_report(core, transport):
    await core.handle_inbound_event(make_event("/start"))
    await core.run_status_report()
    assert t("uz", "statusReport", hours=0, minutes=0, sessions=1, total=0) == transport.last_text_to(ADMIN_ID)
