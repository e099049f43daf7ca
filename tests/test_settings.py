"""
설정 로딩 테스트

RANCH_* 환경변수가 기본 설정을 덮어쓰는지 확인합니다.
"""

import pytest

from ranchcore.settings import Settings, _b, build_settings


def test_defaults():
    """기본 설정 값"""
    s = Settings()
    assert s.scheduling.urgent_days == 3.0
    assert s.scheduling.soon_days == 7.0
    assert s.scheduling.default_occurrence_cap == 10
    assert s.movement.high_speed_kmh == 15.0
    assert s.storage.sink_max_retries == 0
    assert not s.observability.json_logs


def test_env_overrides(monkeypatch):
    """환경변수 덮어쓰기"""
    monkeypatch.setenv("RANCH_GRID_CELL_KM", "2.5")
    monkeypatch.setenv("RANCH_URGENT_DAYS", "1")
    monkeypatch.setenv("RANCH_OCCURRENCE_CAP", "25")
    monkeypatch.setenv("RANCH_EVENTS_DB", "/tmp/events.db")
    monkeypatch.setenv("RANCH_SINK_MAX_RETRIES", "3")
    monkeypatch.setenv("RANCH_JSON_LOGS", "yes")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")

    s = build_settings()
    assert s.geo.grid_cell_km == 2.5
    assert s.scheduling.urgent_days == 1.0
    assert s.scheduling.default_occurrence_cap == 25
    assert s.storage.events_db_path == "/tmp/events.db"
    assert s.storage.sink_max_retries == 3
    assert s.observability.json_logs
    assert s.observability.log_level == "DEBUG"


def test_build_without_env(monkeypatch):
    monkeypatch.delenv("RANCH_URGENT_DAYS", raising=False)
    monkeypatch.delenv("RANCH_JSON_LOGS", raising=False)
    s = build_settings()
    assert s.scheduling.urgent_days == 3.0
    assert not s.observability.json_logs


@pytest.mark.parametrize("raw,expected", [
    ("1", True), ("true", True), ("ON", True), ("Yes", True),
    ("0", False), ("false", False), ("off", False), ("", False),
])
def test_bool_env(monkeypatch, raw, expected):
    monkeypatch.setenv("RANCH_FLAG", raw)
    assert _b("RANCH_FLAG") is expected


def test_bool_env_default(monkeypatch):
    monkeypatch.delenv("RANCH_FLAG", raising=False)
    assert _b("RANCH_FLAG", True) is True


def test_duplicate_fix_env(monkeypatch):
    """중복 측정 기준 환경변수"""
    monkeypatch.setenv("RANCH_DUPLICATE_WINDOW_SEC", "120")
    monkeypatch.setenv("RANCH_DUPLICATE_DISTANCE_M", "2.5")
    s = build_settings()
    assert s.movement.duplicate_window_sec == 120.0
    assert s.movement.duplicate_distance_m == 2.5
