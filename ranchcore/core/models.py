"""
Core domain models for RanchCore.

This module defines the value objects exchanged with the CRUD layer
(snapshots in, derived results out) using Pydantic v2. The models are
intentionally lenient: domain invariants are checked by the engine at
each entry point so that invalid input fails with a typed engine error.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field

# 열거형 타입 정의
RecurrenceType = Literal["NONE", "DAILY", "WEEKLY", "MONTHLY", "YEARLY"]
EventStatus = Literal["SCHEDULED", "IN_PROGRESS", "COMPLETED", "CANCELLED", "POSTPONED", "FAILED"]
EventPriority = Literal["LOW", "MEDIUM", "HIGH", "CRITICAL", "EMERGENCY"]
EventCategory = Literal[
    "VACCINATION", "DISEASE", "HEALTH_CHECK", "TREATMENT", "REPRODUCTION",
    "MOVEMENT", "FEEDING", "WEIGHING", "BIRTH", "DEATH", "INJURY",
    "QUARANTINE", "MEDICATION", "SURGERY", "INSPECTION", "OTHER",
]
EntityStatus = Literal["active", "inactive"]
GeofenceShape = Literal["circle", "polygon"]
Urgency = Literal["OVERDUE", "URGENT", "SOON", "NORMAL"]
TransitionKind = Literal["ENTRY", "EXIT"]
ActivityLevel = Literal["low", "moderate", "high"]
MovementPattern = Literal["GRAZING", "RESTING", "WALKING", "RUNNING", "UNKNOWN"]

CellKey = Tuple[int, int]


class Coordinate(BaseModel):
    """WGS84 좌표 (십진 도)"""
    model_config = ConfigDict(frozen=True)

    latitude: float
    longitude: float
    altitude: Optional[float] = None
    accuracy: Optional[float] = None
    captured_at: Optional[datetime] = None

    def same_position(self, other: "Coordinate") -> bool:
        """위도/경도가 같은지 확인합니다 (고도, 정확도 무시)."""
        return self.latitude == other.latitude and self.longitude == other.longitude


class LocatedEntity(BaseModel):
    """위치를 가진 추적 대상 (예: 개체 이표 번호)"""
    model_config = ConfigDict(frozen=True)

    id: str
    coordinate: Coordinate
    status: EntityStatus = "active"

    @property
    def is_active(self) -> bool:
        return self.status == "active"


class Geofence(BaseModel):
    """원형 또는 폴리곤 지오펜스"""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    shape: GeofenceShape
    center: Optional[Coordinate] = None
    radius_km: Optional[float] = None
    vertices: List[Coordinate] = Field(default_factory=list)
    alert_on_entry: bool = True
    alert_on_exit: bool = True
    active: bool = True


class RecurrenceRule(BaseModel):
    """반복 규칙"""
    model_config = ConfigDict(frozen=True)

    type: RecurrenceType = "NONE"
    interval: int = 1
    end_date: Optional[datetime] = None
    max_occurrences: Optional[int] = None


class ScheduledEvent(BaseModel):
    """일정 이벤트 (기준 이벤트 또는 생성된 발생 인스턴스)"""
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    subject_id: str
    category: EventCategory = "OTHER"
    title: Optional[str] = None
    description: Optional[str] = None
    scheduled_date: datetime
    status: EventStatus = "SCHEDULED"
    priority: EventPriority = "MEDIUM"
    recurrence: Optional[RecurrenceRule] = None
    parent_event_id: Optional[str] = None
    location: Optional[Coordinate] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    follow_up_required: bool = False
    follow_up_date: Optional[datetime] = None


class OccurrenceSeries(BaseModel):
    """기준 이벤트와 이후 발생 날짜 (저장하지 않는 파생 뷰)"""
    base: ScheduledEvent
    dates: List[datetime] = Field(default_factory=list)

    @property
    def total(self) -> int:
        """기준 이벤트를 포함한 전체 발생 수"""
        return 1 + len(self.dates)


class ProximityHit(BaseModel):
    """반경 질의 결과 항목"""
    entity: LocatedEntity
    distance_km: float

    @property
    def entity_id(self) -> str:
        return self.entity.id


class GeofenceTransition(BaseModel):
    """지오펜스 진입/이탈 전이"""
    entity_id: str
    geofence_id: str
    kind: TransitionKind
    coordinate: Coordinate


class UrgencyAssessment(BaseModel):
    """긴급도 분류 결과"""
    event: ScheduledEvent
    urgency: Urgency
    days_until: float


class PartialGenerationFailure(BaseModel):
    """싱크 오류로 반복 전개가 중단된 결과 값"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    generated: int
    requested: int
    error_type: str
    error_message: str
    error: Optional[BaseException] = Field(default=None, exclude=True)


class ExpansionResult(BaseModel):
    """expand_and_persist 결과"""
    requested: int
    generated: int
    persisted_ids: List[Any] = Field(default_factory=list)
    failure: Optional[PartialGenerationFailure] = None

    @property
    def complete(self) -> bool:
        return self.failure is None


class CalendarStats(BaseModel):
    """기간별 일정 통계"""
    total: int
    by_category: Dict[str, int] = Field(default_factory=dict)
    by_status: Dict[str, int] = Field(default_factory=dict)
    by_priority: Dict[str, int] = Field(default_factory=dict)
    overdue: int = 0
    upcoming: List[ScheduledEvent] = Field(default_factory=list)
    range_start: datetime
    range_end: datetime


class PathSample(BaseModel):
    """이동 경로의 단일 측정값"""
    coordinate: Coordinate
    timestamp: datetime


class MovementStats(BaseModel):
    """개체 이동 통계"""
    total_distance_km: float = 0.0
    average_speed_kmh: float = 0.0
    max_displacement_km: float = 0.0
    duration_minutes: float = 0.0
    max_speed_kmh: float = 0.0
    minutes_moving: float = 0.0
    minutes_resting: float = 0.0
    activity_level: ActivityLevel = "low"
    pattern: MovementPattern = "UNKNOWN"
    anomalies: List[str] = Field(default_factory=list)


class HeatmapCell(BaseModel):
    """히트맵 렌더링용 셀"""
    row: int
    col: int
    latitude: float
    longitude: float
    count: int
