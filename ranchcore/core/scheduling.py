"""
Scheduling coordination for RanchCore.

This module classifies stored events by urgency, reports overdue and
upcoming work, and drives recurrence expansion into an external
persistence sink. The current time is always passed in explicitly.
"""

from collections import Counter
from datetime import datetime, timedelta
from functools import partial
from itertools import islice
from typing import Iterable, Iterator, List, Optional, Tuple

from ranchcore.common.retry import retry_sync, retry_with_backoff
from ranchcore.core.errors import InvalidQuery
from ranchcore.core.models import (
    CalendarStats,
    ExpansionResult,
    PartialGenerationFailure,
    RecurrenceRule,
    ScheduledEvent,
    Urgency,
    UrgencyAssessment,
)
from ranchcore.core.recurrence import (
    DEFAULT_OCCURRENCE_CAP,
    generate_occurrences,
    is_bounded,
    occurrence_dates,
    validate_rule,
)
from ranchcore.observability.logging_setup import get_logger
from ranchcore.observability.metrics import (
    expansion_seconds,
    expansions_partial,
    occurrence_persist_failures,
    occurrences_generated,
)
from ranchcore.ports.sink import AsyncOccurrenceSinkPort, OccurrenceSinkPort
from ranchcore.settings import SchedulingConfig, StorageConfig

log = get_logger("ranchcore.scheduling")

URGENT_DAYS = 3.0
SOON_DAYS = 7.0

def classify_urgency(scheduled_date: datetime, now: datetime, *,
                     urgent_days: float = URGENT_DAYS,
                     soon_days: float = SOON_DAYS) -> Urgency:
    """
    예정일과 현재 시각의 차이로 긴급도를 분류합니다.

    경계는 포함입니다: 정확히 3일 뒤는 URGENT, 정확히 7일 뒤는 SOON.

    Args:
        scheduled_date: 예정일
        now: 현재 시각
        urgent_days: URGENT 기준 (일)
        soon_days: SOON 기준 (일)

    Returns:
        OVERDUE, URGENT, SOON, NORMAL 중 하나
    """
    if scheduled_date < now:
        return "OVERDUE"
    gap = scheduled_date - now
    if gap <= timedelta(days=urgent_days):
        return "URGENT"
    if gap <= timedelta(days=soon_days):
        return "SOON"
    return "NORMAL"

def _days_until(scheduled_date: datetime, now: datetime) -> float:
    return (scheduled_date - now).total_seconds() / 86400.0

def _by_date(event: ScheduledEvent):
    return (event.scheduled_date, event.id or "")

def assess_events(events: Iterable[ScheduledEvent], now: datetime, *,
                  urgent_days: float = URGENT_DAYS,
                  soon_days: float = SOON_DAYS) -> List[UrgencyAssessment]:
    """예정 상태 이벤트의 긴급도를 예정일 순으로 반환합니다."""
    return [
        UrgencyAssessment(
            event=e,
            urgency=classify_urgency(e.scheduled_date, now, urgent_days=urgent_days, soon_days=soon_days),
            days_until=_days_until(e.scheduled_date, now),
        )
        for e in sorted(events, key=_by_date)
        if e.status == "SCHEDULED"
    ]

def overdue_report(events: Iterable[ScheduledEvent], now: datetime) -> List[ScheduledEvent]:
    """
    기한이 지난 예정 이벤트를 오래된 순으로 반환합니다.

    Args:
        events: 이벤트 스냅샷
        now: 현재 시각

    Returns:
        status == SCHEDULED 이고 scheduled_date < now 인 이벤트 (동률은 ID 순)
    """
    overdue = [e for e in events if e.status == "SCHEDULED" and e.scheduled_date < now]
    return sorted(overdue, key=_by_date)

def upcoming_events(events: Iterable[ScheduledEvent], now: datetime, *,
                    within_days: float = 7.0,
                    limit: Optional[int] = 10) -> List[ScheduledEvent]:
    """
    지금부터 within_days 이내의 예정 이벤트를 가까운 순으로 반환합니다.

    Raises:
        InvalidQuery: 음수 기간 또는 음수 개수 제한
    """
    if within_days < 0:
        raise InvalidQuery(f"기간은 음수일 수 없음: within_days={within_days}")
    if limit is not None and limit < 0:
        raise InvalidQuery(f"개수 제한은 음수일 수 없음: limit={limit}")

    horizon = now + timedelta(days=within_days)
    upcoming = sorted(
        (e for e in events if e.status == "SCHEDULED" and now <= e.scheduled_date <= horizon),
        key=_by_date,
    )
    return upcoming if limit is None else upcoming[:limit]

def needs_follow_up(event: ScheduledEvent, now: datetime) -> bool:
    """후속 조치가 필요하고 후속 일자가 도래했는지 확인합니다."""
    if not event.follow_up_required:
        return False
    return event.follow_up_date is None or event.follow_up_date <= now

def calendar_stats(events: Iterable[ScheduledEvent], now: datetime,
                   start: datetime, end: datetime, *,
                   upcoming_days: float = 7.0,
                   upcoming_limit: int = 10) -> CalendarStats:
    """
    기간 [start, end] 안의 이벤트 통계를 계산합니다.

    Returns:
        분류/상태/우선순위별 개수, 기한 초과 수, 가까운 예정 이벤트
    """
    if start > end:
        raise InvalidQuery(f"기간 시작이 끝보다 늦음: {start} > {end}")

    in_range = [e for e in events if start <= e.scheduled_date <= end]
    return CalendarStats(
        total=len(in_range),
        by_category=dict(Counter(e.category for e in in_range)),
        by_status=dict(Counter(e.status for e in in_range)),
        by_priority=dict(Counter(e.priority for e in in_range)),
        overdue=len(overdue_report(in_range, now)),
        upcoming=upcoming_events(in_range, now, within_days=upcoming_days, limit=upcoming_limit),
        range_start=start,
        range_end=end,
    )

def _requested(base: ScheduledEvent, rule: RecurrenceRule, cap: Optional[int]) -> int:
    if rule.type == "NONE":
        return 0
    if rule.end_date is None and rule.max_occurrences is not None:
        # 기준 이벤트 포함 횟수이므로 생성 수는 하나 적다
        n = rule.max_occurrences - 1
        return n if cap is None else min(n, cap)
    dates = occurrence_dates(base.scheduled_date, rule)
    return sum(1 for _ in (dates if cap is None else islice(dates, cap)))

def _plan(base: ScheduledEvent, rule: Optional[RecurrenceRule],
          cap: Optional[int]) -> Tuple[str, int, Iterator[ScheduledEvent]]:
    rule = rule if rule is not None else base.recurrence
    if rule is None:
        return "NONE", 0, iter(())
    validate_rule(rule)
    if cap is None and not is_bounded(rule):
        cap = DEFAULT_OCCURRENCE_CAP
    if cap is not None and cap < 0:
        raise InvalidQuery(f"상한은 음수일 수 없음: cap={cap}")
    # 초안은 저장할 때마다 하나씩 만든다 (긴 체인도 메모리에 쌓지 않음)
    drafts = generate_occurrences(base, rule)
    return rule.type, _requested(base, rule, cap), (drafts if cap is None else islice(drafts, cap))

def _partial(base: ScheduledEvent, rule_type: str, result: ExpansionResult, error: Exception) -> ExpansionResult:
    occurrence_persist_failures.labels(recurrence_type=rule_type).inc()
    expansions_partial.inc()
    log.error(
        f"반복 전개 부분 실패 base:{base.id} generated:{result.generated}/{result.requested} "
        f"error:{type(error).__name__}: {error}"
    )
    return result.model_copy(update={"failure": PartialGenerationFailure(
        generated=result.generated,
        requested=result.requested,
        error_type=type(error).__name__,
        error_message=str(error),
        error=error,
    )})

def expand_and_persist(base: ScheduledEvent, rule: Optional[RecurrenceRule], sink: OccurrenceSinkPort, *,
                       cap: Optional[int] = None,
                       max_retries: int = 0,
                       base_delay: float = 0.5,
                       max_delay: float = 30.0) -> ExpansionResult:
    """
    반복 규칙을 전개해 각 초안을 싱크에 저장합니다.

    싱크가 처음 실패한 지점에서 멈추고 예외를 던지지 않고 부분 실패를 값으로
    반환합니다. 이미 저장된 초안은 되돌리지 않습니다.

    Args:
        base: 기준 이벤트
        rule: 반복 규칙 (없으면 base.recurrence)
        sink: save(draft)를 제공하는 저장 협력자
        cap: 전개 상한 (경계 없는 규칙은 기본 DEFAULT_OCCURRENCE_CAP)
        max_retries: 초안별 최대 재시도 횟수 (0이면 재시도 없음)

    Returns:
        ExpansionResult (실패 시 failure 채움)

    Raises:
        InvalidRecurrenceRule: 규칙이 잘못된 경우 (저장 전)
    """
    with expansion_seconds.time():
        rule_type, requested, drafts = _plan(base, rule, cap)
        result = ExpansionResult(requested=requested, generated=0)

        for draft in drafts:
            try:
                saved_id = retry_sync(
                    partial(sink.save, draft),
                    max_retries=max_retries,
                    base_delay=base_delay,
                    max_delay=max_delay,
                )
            except Exception as e:
                return _partial(base, rule_type, result, e)
            result.persisted_ids.append(saved_id)
            result.generated += 1
            occurrences_generated.labels(recurrence_type=rule_type).inc()

    log.info(f"반복 전개 완료 base:{base.id} generated:{result.generated}")
    return result

async def expand_and_persist_async(base: ScheduledEvent, rule: Optional[RecurrenceRule],
                                   sink: AsyncOccurrenceSinkPort, *,
                                   cap: Optional[int] = None,
                                   max_retries: int = 0,
                                   base_delay: float = 0.5,
                                   max_delay: float = 30.0) -> ExpansionResult:
    """
    expand_and_persist의 비동기 버전. 초안마다 지수 백오프로 재시도할 수 있습니다.
    """
    with expansion_seconds.time():
        rule_type, requested, drafts = _plan(base, rule, cap)
        result = ExpansionResult(requested=requested, generated=0)

        for draft in drafts:
            try:
                saved_id = await retry_with_backoff(
                    partial(sink.save, draft),
                    max_retries=max_retries,
                    base_delay=base_delay,
                    max_delay=max_delay,
                )
            except Exception as e:
                return _partial(base, rule_type, result, e)
            result.persisted_ids.append(saved_id)
            result.generated += 1
            occurrences_generated.labels(recurrence_type=rule_type).inc()

    log.info(f"반복 전개 완료 (async) base:{base.id} generated:{result.generated}")
    return result

class SchedulingCoordinator:
    """설정 값으로 묶은 일정 조정기"""

    def __init__(self, config: Optional[SchedulingConfig] = None, storage: Optional[StorageConfig] = None):
        self.config = config or SchedulingConfig()
        self.storage = storage or StorageConfig()

    def classify_urgency(self, scheduled_date: datetime, now: datetime) -> Urgency:
        return classify_urgency(scheduled_date, now,
                                urgent_days=self.config.urgent_days, soon_days=self.config.soon_days)

    def assess(self, events: Iterable[ScheduledEvent], now: datetime) -> List[UrgencyAssessment]:
        return assess_events(events, now, urgent_days=self.config.urgent_days, soon_days=self.config.soon_days)

    def overdue(self, events: Iterable[ScheduledEvent], now: datetime) -> List[ScheduledEvent]:
        return overdue_report(events, now)

    def upcoming(self, events: Iterable[ScheduledEvent], now: datetime) -> List[ScheduledEvent]:
        return upcoming_events(events, now,
                               within_days=self.config.upcoming_window_days, limit=self.config.upcoming_limit)

    def stats(self, events: Iterable[ScheduledEvent], now: datetime,
              start: datetime, end: datetime) -> CalendarStats:
        return calendar_stats(events, now, start, end,
                              upcoming_days=self.config.upcoming_window_days,
                              upcoming_limit=self.config.upcoming_limit)

    def expand(self, base: ScheduledEvent, sink: OccurrenceSinkPort,
               rule: Optional[RecurrenceRule] = None) -> ExpansionResult:
        cap = self._cap(rule if rule is not None else base.recurrence)
        return expand_and_persist(
            base, rule, sink,
            cap=cap,
            max_retries=self.storage.sink_max_retries,
            base_delay=self.storage.backoff_initial_sec,
            max_delay=self.storage.backoff_max_sec,
        )

    async def expand_async(self, base: ScheduledEvent, sink: AsyncOccurrenceSinkPort,
                           rule: Optional[RecurrenceRule] = None) -> ExpansionResult:
        cap = self._cap(rule if rule is not None else base.recurrence)
        return await expand_and_persist_async(
            base, rule, sink,
            cap=cap,
            max_retries=self.storage.sink_max_retries,
            base_delay=self.storage.backoff_initial_sec,
            max_delay=self.storage.backoff_max_sec,
        )

    def _cap(self, rule: Optional[RecurrenceRule]) -> Optional[int]:
        # 경계 있는 규칙은 규칙대로, 없는 규칙만 설정 상한 적용
        return None if rule is None or is_bounded(rule) else self.config.default_occurrence_cap
