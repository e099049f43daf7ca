"""
Event lifecycle transitions for RanchCore.

Every status change is an explicit call that returns a new event
record; nothing is stamped or transitioned implicitly on assignment.
"""

from datetime import datetime
from typing import Dict, FrozenSet, Optional

from ranchcore.core.errors import InvalidEventTransition, InvalidQuery
from ranchcore.core.models import EventStatus, ScheduledEvent
from ranchcore.observability.logging_setup import get_logger

log = get_logger("ranchcore.lifecycle")

# 허용 전이 표. COMPLETED, CANCELLED는 종료 상태
TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "SCHEDULED": frozenset({"IN_PROGRESS", "COMPLETED", "CANCELLED", "POSTPONED", "FAILED"}),
    "POSTPONED": frozenset({"IN_PROGRESS", "COMPLETED", "CANCELLED", "POSTPONED", "FAILED"}),
    "IN_PROGRESS": frozenset({"COMPLETED", "CANCELLED", "POSTPONED", "FAILED"}),
    "FAILED": frozenset({"POSTPONED", "CANCELLED"}),
    "COMPLETED": frozenset(),
    "CANCELLED": frozenset(),
}

def can_transition(current: EventStatus, target: EventStatus) -> bool:
    """current -> target 전이가 허용되는지 확인합니다."""
    return target in TRANSITIONS.get(current, frozenset())

def is_terminal(status: EventStatus) -> bool:
    return not TRANSITIONS.get(status)

def _check(event: ScheduledEvent, target: EventStatus) -> None:
    if not can_transition(event.status, target):
        raise InvalidEventTransition(event.status, target)

def _transition(event: ScheduledEvent, target: EventStatus, **changes) -> ScheduledEvent:
    _check(event, target)
    log.debug(f"상태 전이 event:{event.id} {event.status} -> {target}")
    return event.model_copy(update={"status": target, **changes})

def start_event(event: ScheduledEvent, at: datetime) -> ScheduledEvent:
    """
    이벤트를 진행 중으로 전환하고 시작 시각을 기록합니다.

    Args:
        event: 대상 이벤트
        at: 시작 시각

    Returns:
        IN_PROGRESS 상태의 새 이벤트
    """
    return _transition(event, "IN_PROGRESS", started_at=at)

def complete_event(event: ScheduledEvent, at: datetime, *,
                   follow_up_date: Optional[datetime] = None) -> ScheduledEvent:
    """
    이벤트를 완료 처리합니다.

    시작 기록이 없으면 완료 시각을 시작 시각으로도 사용합니다. follow_up_date를
    주면 후속 조치가 필요한 것으로 표시합니다.

    Raises:
        InvalidEventTransition: 종료 상태 등 허용되지 않는 전이
        InvalidQuery: 완료 시각이 시작 시각보다 이른 경우
    """
    _check(event, "COMPLETED")
    if event.started_at is not None and at < event.started_at:
        raise InvalidQuery(f"완료 시각이 시작 시각보다 이름: {at} < {event.started_at}")

    changes = {"completed_at": at, "started_at": event.started_at or at}
    if follow_up_date is not None:
        changes.update(follow_up_required=True, follow_up_date=follow_up_date)
    return _transition(event, "COMPLETED", **changes)

def cancel_event(event: ScheduledEvent) -> ScheduledEvent:
    """이벤트를 취소합니다."""
    return _transition(event, "CANCELLED")

def fail_event(event: ScheduledEvent, at: Optional[datetime] = None) -> ScheduledEvent:
    """이벤트를 실패 처리합니다. at이 주어지면 종료 시각으로 기록합니다."""
    return _transition(event, "FAILED", completed_at=at)

def postpone_event(event: ScheduledEvent, new_date: datetime) -> ScheduledEvent:
    """
    이벤트를 새 날짜로 연기합니다. 진행 기록은 지웁니다.

    Raises:
        InvalidQuery: 새 날짜가 현재 예정일보다 늦지 않은 경우
    """
    _check(event, "POSTPONED")
    if new_date <= event.scheduled_date:
        raise InvalidQuery(f"연기 날짜는 기존 예정일 이후여야 함: {new_date} <= {event.scheduled_date}")
    return _transition(event, "POSTPONED", scheduled_date=new_date, started_at=None, completed_at=None)
