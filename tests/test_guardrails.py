"""Tests for GuardrailContext checks, counters and day rollover."""

from datetime import UTC, datetime, timedelta

import pytest

from src.errors import ErrorCode, GuardrailError, InvalidInputError
from src.guardrails import GuardrailContext, MailPolicy, PolicyConfig, load_guardrails

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


class Clock:
    """Settable clock passed to GuardrailContext."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def _ctx(clock: Clock | None = None, **fields) -> GuardrailContext:
    return GuardrailContext(PolicyConfig(**fields), clock=clock or Clock())


def _code(excinfo) -> ErrorCode:
    return excinfo.value.code


# -- write limit -------------------------------------------------------------


class TestWriteLimit:
    def test_allows_up_to_limit(self):
        ctx = _ctx(daily_write_limit=3)
        for _ in range(3):
            ctx.check_write_limit()
            ctx.increment_write_counter()
        assert ctx.get_write_count() == 3

    def test_rejects_at_limit(self):
        ctx = _ctx(daily_write_limit=2)
        ctx.increment_write_counter(2)
        with pytest.raises(GuardrailError) as excinfo:
            ctx.check_write_limit()
        assert _code(excinfo) == ErrorCode.DAILY_LIMIT_REACHED
        assert "2/2" in excinfo.value.message

    def test_rejection_does_not_change_count(self):
        ctx = _ctx(daily_write_limit=1)
        ctx.increment_write_counter()
        for _ in range(3):
            with pytest.raises(GuardrailError):
                ctx.check_write_limit()
        assert ctx.get_write_count() == 1

    def test_check_alone_does_not_consume(self):
        ctx = _ctx(daily_write_limit=1)
        ctx.check_write_limit()
        ctx.check_write_limit()
        assert ctx.get_write_count() == 0

    def test_multi_step_cost(self):
        ctx = _ctx(daily_write_limit=1)
        with pytest.raises(GuardrailError) as excinfo:
            ctx.check_write_limit(2)
        assert _code(excinfo) == ErrorCode.DAILY_LIMIT_REACHED

    def test_zero_limit_blocks_everything(self):
        ctx = _ctx(daily_write_limit=0)
        with pytest.raises(GuardrailError):
            ctx.check_write_limit()


# -- day rollover ------------------------------------------------------------


class TestDayRollover:
    def test_counters_reset_on_new_utc_day(self):
        clock = Clock()
        ctx = _ctx(clock, daily_write_limit=1)
        ctx.increment_write_counter()
        ctx.increment_mail_send_counter()
        ctx.increment_mail_modify_counter()

        clock.now = NOW + timedelta(days=1)
        ctx.check_write_limit()
        assert ctx.get_write_count() == 0
        assert ctx.get_mail_send_count() == 0
        assert ctx.get_mail_modify_count() == 0

    def test_same_day_keeps_counters(self):
        clock = Clock(datetime(2026, 3, 10, 0, 1, tzinfo=UTC))
        ctx = _ctx(clock)
        ctx.increment_write_counter()
        clock.now = datetime(2026, 3, 10, 23, 59, tzinfo=UTC)
        ctx.check_write_limit()
        assert ctx.get_write_count() == 1

    def test_day_is_utc_not_local(self):
        # 23:30 at UTC-5 on the 10th is already the 11th in UTC
        clock = Clock(datetime(2026, 3, 10, 20, 0, tzinfo=UTC))
        ctx = _ctx(clock)
        ctx.increment_write_counter()
        clock.now = datetime(2026, 3, 10, 23, 30, tzinfo=UTC) + timedelta(hours=5)
        ctx.check_write_limit()
        assert ctx.get_write_count() == 0

    def test_increment_after_rollover_starts_fresh(self):
        clock = Clock()
        ctx = _ctx(clock)
        ctx.increment_write_counter(5)
        clock.now = NOW + timedelta(days=2)
        ctx.increment_write_counter()
        assert ctx.get_write_count() == 1


# -- protected resources -----------------------------------------------------


class TestProtectedResources:
    def test_protected_calendar(self):
        ctx = _ctx(protected_calendars=["family@example.com"])
        with pytest.raises(GuardrailError) as excinfo:
            ctx.check_protected_calendar("family@example.com")
        assert _code(excinfo) == ErrorCode.PROTECTED_RESOURCE
        ctx.check_protected_calendar("primary")

    def test_protected_task_list(self):
        ctx = _ctx(protected_task_lists=["P"])
        with pytest.raises(GuardrailError) as excinfo:
            ctx.check_protected_task_list("P")
        assert _code(excinfo) == ErrorCode.PROTECTED_RESOURCE
        ctx.check_protected_task_list("@default")

    def test_match_is_exact(self):
        ctx = _ctx(protected_task_lists=["P"])
        ctx.check_protected_task_list("p")
        ctx.check_protected_task_list("P ")


# -- past events -------------------------------------------------------------


class TestPastEventProtection:
    def test_recent_event_allowed(self):
        ctx = _ctx(past_event_protection_days=7)
        ctx.check_past_event_protection((NOW - timedelta(days=6, hours=23)).isoformat())

    def test_exactly_n_days_blocked(self):
        ctx = _ctx(past_event_protection_days=7)
        with pytest.raises(GuardrailError) as excinfo:
            ctx.check_past_event_protection((NOW - timedelta(days=7)).isoformat())
        assert _code(excinfo) == ErrorCode.PAST_EVENT_PROTECTED
        assert "7 days" in excinfo.value.message

    def test_older_event_blocked(self):
        ctx = _ctx(past_event_protection_days=7)
        with pytest.raises(GuardrailError):
            ctx.check_past_event_protection(NOW - timedelta(days=30))

    def test_future_event_allowed(self):
        ctx = _ctx()
        ctx.check_past_event_protection("2026-04-01T10:00:00Z")

    def test_date_only_end(self):
        ctx = _ctx(past_event_protection_days=7)
        with pytest.raises(GuardrailError):
            ctx.check_past_event_protection("2026-03-01")

    def test_naive_value_read_as_utc(self):
        ctx = _ctx(past_event_protection_days=1)
        with pytest.raises(GuardrailError):
            ctx.check_past_event_protection("2026-03-09T12:00:00")

    def test_zero_days_blocks_anything_already_ended(self):
        ctx = _ctx(past_event_protection_days=0)
        with pytest.raises(GuardrailError):
            ctx.check_past_event_protection(NOW - timedelta(minutes=1))

    def test_unparseable_end_fails_closed(self):
        ctx = _ctx()
        with pytest.raises(InvalidInputError) as excinfo:
            ctx.check_past_event_protection("last tuesday")
        assert excinfo.value.code == ErrorCode.VALIDATION_ERROR


# -- recurring series --------------------------------------------------------


class TestRecurringSeriesDelete:
    SERIES = {"id": "s1", "recurrence": ["RRULE:FREQ=WEEKLY"]}
    INSTANCE = {"id": "s1_20260310", "recurringEventId": "s1"}
    SINGLE = {"id": "e1"}

    def test_series_master_blocked(self):
        with pytest.raises(GuardrailError) as excinfo:
            _ctx().check_recurring_series_delete(self.SERIES)
        assert _code(excinfo) == ErrorCode.RECURRING_SERIES_BLOCKED

    def test_instance_allowed(self):
        _ctx().check_recurring_series_delete(self.INSTANCE)

    def test_instance_carrying_recurrence_allowed(self):
        # Instances can echo the master's rules; recurringEventId marks them as instances
        _ctx().check_recurring_series_delete(
            {"id": "s1_20260310", "recurrence": ["RRULE:FREQ=WEEKLY"], "recurringEventId": "s1"}
        )

    def test_single_event_allowed(self):
        _ctx().check_recurring_series_delete(self.SINGLE)

    def test_empty_recurrence_is_not_a_series(self):
        _ctx().check_recurring_series_delete({"id": "e1", "recurrence": []})

    def test_series_allowed_by_policy(self):
        _ctx(allow_recurring_series_delete=True).check_recurring_series_delete(self.SERIES)


# -- mail --------------------------------------------------------------------


class TestMailLimits:
    def test_send_limit(self):
        ctx = _ctx(mail=MailPolicy(daily_send_limit=1))
        ctx.check_mail_send_limit()
        ctx.increment_mail_send_counter()
        with pytest.raises(GuardrailError) as excinfo:
            ctx.check_mail_send_limit()
        assert _code(excinfo) == ErrorCode.SEND_LIMIT_REACHED

    def test_modify_limit(self):
        ctx = _ctx(mail=MailPolicy(daily_modify_limit=2))
        ctx.increment_mail_modify_counter(2)
        with pytest.raises(GuardrailError) as excinfo:
            ctx.check_mail_modify_limit()
        assert _code(excinfo) == ErrorCode.DAILY_LIMIT_REACHED

    def test_mail_counters_independent_of_write_counter(self):
        ctx = _ctx(daily_write_limit=0)
        ctx.check_mail_send_limit()
        ctx.check_mail_modify_limit()
        ctx.increment_mail_send_counter()
        assert ctx.get_write_count() == 0

    def test_send_approval_required(self):
        ctx = _ctx()
        with pytest.raises(GuardrailError) as excinfo:
            ctx.check_send_approval(False)
        assert _code(excinfo) == ErrorCode.VALIDATION_ERROR
        ctx.check_send_approval(True)

    def test_send_approval_optional_by_policy(self):
        _ctx(mail=MailPolicy(require_approval_for_send=False)).check_send_approval(False)


class TestAttachments:
    def test_size_limit_inclusive(self):
        ctx = _ctx(mail=MailPolicy(max_attachment_size_mb=1))
        ctx.check_attachment_size(1024 * 1024)
        with pytest.raises(GuardrailError) as excinfo:
            ctx.check_attachment_size(1024 * 1024 + 1)
        assert _code(excinfo) == ErrorCode.ATTACHMENT_TOO_LARGE

    def test_blocked_type(self):
        ctx = _ctx()
        with pytest.raises(GuardrailError) as excinfo:
            ctx.check_attachment_type("application/x-msdownload")
        assert _code(excinfo) == ErrorCode.BLOCKED_ATTACHMENT_TYPE
        ctx.check_attachment_type("application/pdf")

    def test_custom_blocked_types(self):
        ctx = _ctx(mail=MailPolicy(blocked_attachment_types=["application/zip"]))
        with pytest.raises(GuardrailError):
            ctx.check_attachment_type("application/zip")
        ctx.check_attachment_type("application/x-msdownload")


def test_load_guardrails(tmp_path):
    path = tmp_path / "guardrails.json"
    path.write_text('{"dailyWriteLimit": 4}')
    ctx = load_guardrails(path)
    assert ctx.config.daily_write_limit == 4
    assert ctx.get_write_count() == 0
