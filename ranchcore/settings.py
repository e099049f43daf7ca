# ranchcore/settings.py
from __future__ import annotations
import os
from pydantic import BaseModel, Field

class GeoConfig(BaseModel):
    grid_cell_km: float = 1.0           # ProximityIndex 격자 셀 크기
    index_min_entities: int = 64        # 이 수 이상이면 격자 인덱스로 후보를 줄임
    density_cell_km: float = 0.5        # 히트맵 셀 크기

class SchedulingConfig(BaseModel):
    urgent_days: float = 3.0
    soon_days: float = 7.0
    default_occurrence_cap: int = 10    # 경계 없는 규칙의 기본 전개 상한
    upcoming_window_days: float = 7.0
    upcoming_limit: int = 10

class MovementConfig(BaseModel):
    moving_speed_kmh: float = 0.5
    high_speed_kmh: float = 15.0
    duplicate_window_sec: float = 60.0
    duplicate_distance_m: float = 5.0

class StorageConfig(BaseModel):
    events_db_path: str = "/data/events.db"
    sink_max_retries: int = 0
    backoff_initial_sec: float = 0.5
    backoff_max_sec: float = 30.0

class Observability(BaseModel):
    log_level: str = "INFO"
    json_logs: bool = False

class Settings(BaseModel):
    geo: GeoConfig = Field(default_factory=GeoConfig)
    scheduling: SchedulingConfig = Field(default_factory=SchedulingConfig)
    movement: MovementConfig = Field(default_factory=MovementConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    observability: Observability = Field(default_factory=Observability)

def _b(name, default=False): return os.getenv(name, str(default)).lower() in ("1","true","yes","on")

def build_settings() -> Settings:
    """기본 설정에 RANCH_* 환경변수를 덮어씁니다."""
    s = Settings()

    # 지리
    s.geo.grid_cell_km = float(os.getenv("RANCH_GRID_CELL_KM", s.geo.grid_cell_km))
    s.geo.index_min_entities = int(os.getenv("RANCH_INDEX_MIN_ENTITIES", s.geo.index_min_entities))
    s.geo.density_cell_km = float(os.getenv("RANCH_DENSITY_CELL_KM", s.geo.density_cell_km))

    # 일정
    s.scheduling.urgent_days = float(os.getenv("RANCH_URGENT_DAYS", s.scheduling.urgent_days))
    s.scheduling.soon_days = float(os.getenv("RANCH_SOON_DAYS", s.scheduling.soon_days))
    s.scheduling.default_occurrence_cap = int(os.getenv("RANCH_OCCURRENCE_CAP", s.scheduling.default_occurrence_cap))
    s.scheduling.upcoming_window_days = float(os.getenv("RANCH_UPCOMING_DAYS", s.scheduling.upcoming_window_days))
    s.scheduling.upcoming_limit = int(os.getenv("RANCH_UPCOMING_LIMIT", s.scheduling.upcoming_limit))

    # 이동
    s.movement.moving_speed_kmh = float(os.getenv("RANCH_MOVING_SPEED_KMH", s.movement.moving_speed_kmh))
    s.movement.high_speed_kmh = float(os.getenv("RANCH_HIGH_SPEED_KMH", s.movement.high_speed_kmh))
    s.movement.duplicate_window_sec = float(os.getenv("RANCH_DUPLICATE_WINDOW_SEC", s.movement.duplicate_window_sec))
    s.movement.duplicate_distance_m = float(os.getenv("RANCH_DUPLICATE_DISTANCE_M", s.movement.duplicate_distance_m))

    # 저장소
    s.storage.events_db_path = os.getenv("RANCH_EVENTS_DB", s.storage.events_db_path)
    s.storage.sink_max_retries = int(os.getenv("RANCH_SINK_MAX_RETRIES", s.storage.sink_max_retries))
    s.storage.backoff_initial_sec = float(os.getenv("RANCH_BACKOFF_INITIAL_SEC", s.storage.backoff_initial_sec))
    s.storage.backoff_max_sec = float(os.getenv("RANCH_BACKOFF_MAX_SEC", s.storage.backoff_max_sec))

    # 관측성
    s.observability.log_level = os.getenv("LOG_LEVEL", s.observability.log_level)
    s.observability.json_logs = _b("RANCH_JSON_LOGS", s.observability.json_logs)

    return s
