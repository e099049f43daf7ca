"""
RecurrenceEngine 단위 테스트

이 모듈은 날짜 전진, 발생 인스턴스 생성, 발생 시리즈를 테스트합니다.
"""

import pytest
from datetime import datetime, timedelta
from itertools import islice
from hypothesis import given, strategies as st

from ranchcore.core.errors import InvalidQuery, InvalidRecurrenceRule
from ranchcore.core.models import RecurrenceRule, ScheduledEvent
from ranchcore.core.recurrence import (
    DEFAULT_OCCURRENCE_CAP,
    generate_occurrences,
    is_bounded,
    next_date,
    next_occurrence,
    occurrence_dates,
    occurrence_series,
    validate_rule,
)


def _event(rule, scheduled=datetime(2025, 1, 15), **kw):
    return ScheduledEvent(id="base", subject_id="MX-001", scheduled_date=scheduled, recurrence=rule, **kw)


class TestNextDate:
    """날짜 전진 테스트"""

    def test_daily(self):
        rule = RecurrenceRule(type="DAILY", interval=3)
        assert next_date(datetime(2025, 1, 30), rule, 1) == datetime(2025, 2, 2)

    def test_weekly(self):
        rule = RecurrenceRule(type="WEEKLY", interval=2)
        assert next_date(datetime(2025, 1, 15), rule, 2) == datetime(2025, 2, 12)

    def test_month_end_clamped(self):
        """1월 31일 + 1개월 = 2월 말일"""
        rule = RecurrenceRule(type="MONTHLY")
        assert next_date(datetime(2025, 1, 31), rule, 1) == datetime(2025, 2, 28)
        assert next_date(datetime(2024, 1, 31), rule, 1) == datetime(2024, 2, 29)

    def test_month_end_does_not_drift(self):
        """기준에서 계산하므로 3월은 다시 31일"""
        rule = RecurrenceRule(type="MONTHLY")
        assert next_date(datetime(2025, 1, 31), rule, 2) == datetime(2025, 3, 31)

    def test_yearly_leap_day(self):
        rule = RecurrenceRule(type="YEARLY")
        assert next_date(datetime(2024, 2, 29), rule, 1) == datetime(2025, 2, 28)
        assert next_date(datetime(2024, 2, 29), rule, 4) == datetime(2028, 2, 29)

    def test_k_zero_is_base(self):
        rule = RecurrenceRule(type="DAILY")
        assert next_date(datetime(2025, 1, 15, 8, 30), rule, 0) == datetime(2025, 1, 15, 8, 30)

    def test_keeps_time_of_day(self):
        rule = RecurrenceRule(type="WEEKLY")
        assert next_date(datetime(2025, 1, 15, 6, 45), rule, 1) == datetime(2025, 1, 22, 6, 45)

    def test_negative_k(self):
        with pytest.raises(InvalidQuery):
            next_date(datetime(2025, 1, 15), RecurrenceRule(type="DAILY"), -1)

    @given(k=st.integers(min_value=0, max_value=500), interval=st.integers(min_value=1, max_value=12))
    def test_deterministic_from_base(self, k, interval):
        """같은 입력은 항상 같은 날짜, k+1번째는 k번째보다 늦음"""
        rule = RecurrenceRule(type="MONTHLY", interval=interval)
        base = datetime(2023, 1, 31)
        assert next_date(base, rule, k) == next_date(base, rule, k)
        assert next_date(base, rule, k + 1) > next_date(base, rule, k)


class TestValidateRule:
    """반복 규칙 검증 테스트"""

    def test_zero_interval(self):
        with pytest.raises(InvalidRecurrenceRule):
            validate_rule(RecurrenceRule(type="DAILY", interval=0))

    def test_negative_interval(self):
        with pytest.raises(InvalidRecurrenceRule):
            validate_rule(RecurrenceRule(type="WEEKLY", interval=-2))

    def test_zero_max_occurrences(self):
        with pytest.raises(InvalidRecurrenceRule):
            validate_rule(RecurrenceRule(type="WEEKLY", max_occurrences=0))

    def test_is_bounded(self):
        assert is_bounded(RecurrenceRule(type="NONE"))
        assert is_bounded(RecurrenceRule(type="DAILY", max_occurrences=3))
        assert is_bounded(RecurrenceRule(type="DAILY", end_date=datetime(2025, 2, 1)))
        assert not is_bounded(RecurrenceRule(type="DAILY"))


class TestGenerateOccurrences:
    """발생 인스턴스 생성 테스트"""

    def test_weekly_interval_two_max_three(self, base_event):
        """격주, 최대 3회: 기준 다음 2건"""
        drafts = list(generate_occurrences(base_event, base_event.recurrence))
        assert [d.scheduled_date for d in drafts] == [datetime(2025, 1, 29), datetime(2025, 2, 12)]

    def test_max_occurrences_counts_base(self):
        """최대 5회면 기준 포함 5건 (생성 4건)"""
        rule = RecurrenceRule(type="DAILY", max_occurrences=5)
        drafts = list(generate_occurrences(_event(rule)))
        assert len(drafts) == 4
        assert occurrence_series(_event(rule)).total == 5

    def test_end_date_inclusive(self):
        """종료일과 같은 날짜는 포함"""
        rule = RecurrenceRule(type="WEEKLY", end_date=datetime(2025, 2, 5))
        dates = [d.scheduled_date for d in generate_occurrences(_event(rule))]
        assert dates == [datetime(2025, 1, 22), datetime(2025, 1, 29), datetime(2025, 2, 5)]

    def test_first_bound_wins(self):
        """종료일과 최대 횟수 중 먼저 도달한 쪽에서 멈춤"""
        rule = RecurrenceRule(type="DAILY", end_date=datetime(2025, 1, 17), max_occurrences=10)
        assert len(list(generate_occurrences(_event(rule)))) == 2
        rule = RecurrenceRule(type="DAILY", end_date=datetime(2025, 3, 1), max_occurrences=3)
        assert len(list(generate_occurrences(_event(rule)))) == 2

    def test_end_date_before_base(self):
        rule = RecurrenceRule(type="DAILY", end_date=datetime(2025, 1, 1))
        assert list(generate_occurrences(_event(rule))) == []

    def test_none_generates_nothing(self):
        assert list(generate_occurrences(_event(RecurrenceRule(type="NONE")))) == []

    def test_no_rule_generates_nothing(self):
        assert list(generate_occurrences(_event(None))) == []

    def test_invalid_rule_raises_immediately(self):
        """지연 생성이지만 검증은 즉시"""
        with pytest.raises(InvalidRecurrenceRule):
            generate_occurrences(_event(RecurrenceRule(type="DAILY", interval=0)))

    def test_unbounded_is_lazy(self):
        """경계 없는 규칙도 필요한 만큼만 소비"""
        rule = RecurrenceRule(type="DAILY")
        first = list(islice(generate_occurrences(_event(rule)), 1000))
        assert len(first) == 1000
        assert first[-1].scheduled_date == datetime(2025, 1, 15) + timedelta(days=1000)

    def test_restart_from_k(self):
        """임의의 순번부터 다시 생성"""
        rule = RecurrenceRule(type="WEEKLY", max_occurrences=6)
        full = [d.scheduled_date for d in generate_occurrences(_event(rule))]
        tail = [d.scheduled_date for d in generate_occurrences(_event(rule), start=3)]
        assert tail == full[2:]

    def test_invalid_start(self):
        with pytest.raises(InvalidQuery):
            occurrence_dates(datetime(2025, 1, 15), RecurrenceRule(type="DAILY"), start=0)

    def test_draft_fields(self):
        """초안은 ID 없음, 부모 참조, 예정 상태, 진행 기록 초기화"""
        base = _event(
            RecurrenceRule(type="MONTHLY", max_occurrences=2),
            status="COMPLETED",
            category="TREATMENT",
            priority="HIGH",
            started_at=datetime(2025, 1, 15, 8),
            completed_at=datetime(2025, 1, 15, 9),
        )
        draft = next_occurrence(base)
        assert draft.id is None
        assert draft.parent_event_id == "base"
        assert draft.status == "SCHEDULED"
        assert draft.started_at is None and draft.completed_at is None
        assert draft.category == "TREATMENT"
        assert draft.priority == "HIGH"
        assert draft.subject_id == base.subject_id
        assert draft.recurrence == base.recurrence

    def test_parent_of_generated_base(self):
        """생성된 인스턴스에서 전개해도 원래 기준을 가리킴"""
        sibling = _event(RecurrenceRule(type="DAILY", max_occurrences=3)).model_copy(
            update={"id": "child-1", "parent_event_id": "base"})
        assert next_occurrence(sibling).parent_event_id == "base"

    def test_base_not_mutated(self, base_event):
        before = base_event.model_dump()
        list(generate_occurrences(base_event))
        assert base_event.model_dump() == before

    def test_next_occurrence_none(self):
        assert next_occurrence(_event(RecurrenceRule(type="DAILY", max_occurrences=1))) is None

    def test_explicit_rule_overrides_base(self, base_event):
        rule = RecurrenceRule(type="DAILY", max_occurrences=2)
        drafts = list(generate_occurrences(base_event, rule))
        assert [d.scheduled_date for d in drafts] == [datetime(2025, 1, 16)]


class TestOccurrenceSeries:
    """발생 시리즈 테스트"""

    def test_bounded_series(self, base_event):
        series = occurrence_series(base_event)
        assert series.base == base_event
        assert series.dates == [datetime(2025, 1, 29), datetime(2025, 2, 12)]
        assert series.total == 3

    def test_unbounded_default_cap(self):
        series = occurrence_series(_event(RecurrenceRule(type="YEARLY")))
        assert len(series.dates) == DEFAULT_OCCURRENCE_CAP

    def test_explicit_cap(self):
        series = occurrence_series(_event(RecurrenceRule(type="WEEKLY", max_occurrences=50)), cap=4)
        assert len(series.dates) == 4

    def test_no_rule(self):
        series = occurrence_series(_event(None))
        assert series.dates == []
        assert series.total == 1

    def test_recomputed_equal(self, base_event):
        """매번 다시 계산해도 같은 결과"""
        assert occurrence_series(base_event) == occurrence_series(base_event)
