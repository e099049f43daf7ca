"""
Recurrence expansion for RanchCore.

This module turns a base event and a recurrence rule into the
deterministic sequence of future occurrence dates and drafts. Every
date is computed from the base date (k * interval periods), never by
stepping from the previous occurrence, so month-end clamping does not
drift (Jan 31 -> Feb 28 -> Mar 31, not Mar 28).
"""

from datetime import datetime
from itertools import islice
from typing import Iterator, Optional

from dateutil.relativedelta import relativedelta

from ranchcore.core.errors import InvalidQuery, InvalidRecurrenceRule
from ranchcore.core.models import OccurrenceSeries, RecurrenceRule, ScheduledEvent
from ranchcore.observability.logging_setup import get_logger

log = get_logger("ranchcore.recurrence")

# 경계 없는 규칙을 목록으로 만들 때의 기본 상한
DEFAULT_OCCURRENCE_CAP = 10

# 반복 유형 -> relativedelta 인자
PERIOD_UNITS = {
    "DAILY": "days",
    "WEEKLY": "weeks",
    "MONTHLY": "months",
    "YEARLY": "years",
}

def validate_rule(rule: RecurrenceRule) -> RecurrenceRule:
    """
    반복 규칙을 검증합니다.

    Raises:
        InvalidRecurrenceRule: 알 수 없는 유형, 양수가 아닌 간격 또는 최대 발생 횟수
    """
    if rule.type != "NONE" and rule.type not in PERIOD_UNITS:
        raise InvalidRecurrenceRule(f"알 수 없는 반복 유형: {rule.type}")
    if rule.interval is None or rule.interval <= 0:
        raise InvalidRecurrenceRule(f"간격은 1 이상이어야 함: interval={rule.interval}")
    if rule.max_occurrences is not None and rule.max_occurrences <= 0:
        raise InvalidRecurrenceRule(f"최대 발생 횟수는 1 이상이어야 함: max_occurrences={rule.max_occurrences}")
    return rule

def is_bounded(rule: RecurrenceRule) -> bool:
    """규칙 자체로 생성이 끝나는지 확인합니다."""
    return rule.type == "NONE" or rule.end_date is not None or rule.max_occurrences is not None

def next_date(base: datetime, rule: RecurrenceRule, k: int) -> datetime:
    """
    기준 날짜를 k * interval 주기만큼 전진시킵니다.

    월/연 단위는 달력 기준으로 계산하며 존재하지 않는 날짜는 그 달의
    마지막 날로 맞춥니다 (1월 31일 + 1개월 = 2월 28일 또는 29일).

    Args:
        base: 기준 날짜
        rule: 반복 규칙
        k: 전진할 발생 순번 (0이면 기준 날짜)

    Returns:
        k번째 발생 날짜
    """
    validate_rule(rule)
    if k < 0:
        raise InvalidQuery(f"발생 순번은 음수일 수 없음: k={k}")
    if rule.type == "NONE" or k == 0:
        return base
    return base + relativedelta(**{PERIOD_UNITS[rule.type]: k * rule.interval})

def _iter_dates(base: datetime, rule: RecurrenceRule, start: int) -> Iterator[datetime]:
    if rule.type == "NONE":
        return
    k = start
    while True:
        # 최대 발생 횟수는 기준 이벤트를 포함한다
        if rule.max_occurrences is not None and k >= rule.max_occurrences:
            return
        d = next_date(base, rule, k)
        if rule.end_date is not None and d > rule.end_date:
            return
        yield d
        k += 1

def occurrence_dates(base: datetime, rule: RecurrenceRule, *, start: int = 1) -> Iterator[datetime]:
    """
    발생 날짜를 지연 생성합니다. 검증은 즉시 수행됩니다.

    Args:
        base: 기준 날짜
        rule: 반복 규칙
        start: 시작 순번 (1 = 기준 다음 발생)
    """
    validate_rule(rule)
    if start < 1:
        raise InvalidQuery(f"시작 순번은 1 이상이어야 함: start={start}")
    return _iter_dates(base, rule, start)

def _draft(base: ScheduledEvent, scheduled: datetime, parent_id: Optional[str]) -> ScheduledEvent:
    return base.model_copy(update={
        "id": None,
        "scheduled_date": scheduled,
        "parent_event_id": parent_id,
        "status": "SCHEDULED",
        "started_at": None,
        "completed_at": None,
    })

def generate_occurrences(base: ScheduledEvent, rule: Optional[RecurrenceRule] = None, *,
                         start: int = 1) -> Iterator[ScheduledEvent]:
    """
    기준 이벤트로부터 발생 인스턴스 초안을 지연 생성합니다.

    max_occurrences 또는 end_date 중 먼저 도달한 경계에서 멈추며, 둘 다 없으면
    끝나지 않으므로 호출자가 소비량을 제한해야 합니다. start를 지정하면 임의의
    순번부터 다시 생성할 수 있습니다.

    Args:
        base: 기준 이벤트
        rule: 반복 규칙 (없으면 base.recurrence)
        start: 시작 순번

    Returns:
        ID가 없는 ScheduledEvent 초안 이터레이터
    """
    rule = rule if rule is not None else base.recurrence
    if rule is None:
        return iter(())

    dates = occurrence_dates(base.scheduled_date, rule, start=start)
    # 체인은 한 단계만: 생성된 발생에서 다시 전개해도 원래 기준을 가리킨다
    parent_id = base.parent_event_id or base.id
    return (_draft(base, d, parent_id) for d in dates)

def next_occurrence(base: ScheduledEvent, rule: Optional[RecurrenceRule] = None) -> Optional[ScheduledEvent]:
    """다음 발생 초안 하나를 반환합니다. 없으면 None."""
    return next(generate_occurrences(base, rule), None)

def occurrence_series(base: ScheduledEvent, rule: Optional[RecurrenceRule] = None, *,
                      cap: Optional[int] = None) -> OccurrenceSeries:
    """
    기준 이벤트와 이후 발생 날짜의 파생 뷰를 만듭니다.

    Args:
        base: 기준 이벤트
        rule: 반복 규칙 (없으면 base.recurrence)
        cap: 생성 날짜 수 상한. 규칙에 경계가 없으면 DEFAULT_OCCURRENCE_CAP 적용
    """
    rule = rule if rule is not None else base.recurrence
    if rule is None:
        return OccurrenceSeries(base=base)

    dates = occurrence_dates(base.scheduled_date, rule)
    if cap is None and not is_bounded(rule):
        cap = DEFAULT_OCCURRENCE_CAP
    if cap is not None:
        if cap < 0:
            raise InvalidQuery(f"상한은 음수일 수 없음: cap={cap}")
        dates = islice(dates, cap)

    series = OccurrenceSeries(base=base, dates=list(dates))
    log.debug(f"발생 시리즈 계산 base:{base.id} type:{rule.type} total:{series.total}")
    return series
