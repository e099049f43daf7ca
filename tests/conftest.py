"""
테스트 설정 및 픽스처

이 모듈은 pytest 설정과 공통 픽스처를 제공합니다.
"""

import pytest
import inspect
import tempfile
import os
from datetime import datetime
from ranchcore.core.models import Coordinate, LocatedEntity, RecurrenceRule, ScheduledEvent
from ranchcore.settings import Settings


@pytest.fixture
def temp_db_path():
    """임시 데이터베이스 파일 경로"""
    with tempfile.NamedTemporaryFile(suffix='.db', delete=False) as f:
        temp_path = f.name
    yield temp_path
    # 테스트 후 파일 정리
    if os.path.exists(temp_path):
        os.unlink(temp_path)


@pytest.fixture
def sample_settings():
    """테스트용 설정"""
    settings = Settings()
    settings.observability.log_level = "DEBUG"
    return settings


@pytest.fixture
def now():
    """고정된 현재 시각"""
    return datetime(2025, 1, 15, 9, 0, 0)


@pytest.fixture
def ranch_center():
    """테스트용 목장 중심 (Villahermosa 인근)"""
    return Coordinate(latitude=17.9869, longitude=-92.9303)


@pytest.fixture
def sample_herd():
    """테스트용 개체 스냅샷"""
    return [
        LocatedEntity(id="MX-001", coordinate=Coordinate(latitude=17.9880, longitude=-92.9320)),
        LocatedEntity(id="MX-002", coordinate=Coordinate(latitude=17.9869, longitude=-92.9303)),
        LocatedEntity(id="MX-003", coordinate=Coordinate(latitude=18.0500, longitude=-92.9000)),
        LocatedEntity(id="MX-004", coordinate=Coordinate(latitude=17.9872, longitude=-92.9310), status="inactive"),
    ]


@pytest.fixture
def sample_polygon():
    """테스트용 폴리곤 (경도 -93.0 ~ -92.9, 위도 17.9 ~ 18.0)"""
    return [
        Coordinate(latitude=17.9, longitude=-93.0),   # 좌하
        Coordinate(latitude=17.9, longitude=-92.9),   # 우하
        Coordinate(latitude=18.0, longitude=-92.9),   # 우상
        Coordinate(latitude=18.0, longitude=-93.0),   # 좌상
    ]


@pytest.fixture
def base_event():
    """테스트용 반복 기준 이벤트 (격주 백신, 최대 3회)"""
    return ScheduledEvent(
        id="evt-1",
        subject_id="MX-001",
        category="VACCINATION",
        title="Brucelosis booster",
        scheduled_date=datetime(2025, 1, 15),
        recurrence=RecurrenceRule(type="WEEKLY", interval=2, max_occurrences=3),
    )


# pytest 설정
def pytest_configure(config):
    """pytest 설정"""
    config.addinivalue_line(
        "markers", "asyncio: 비동기 테스트 마커"
    )
    config.addinivalue_line(
        "markers", "slow: 느린 테스트 마커"
    )
    config.addinivalue_line(
        "markers", "integration: 통합 테스트 마커"
    )


def pytest_collection_modifyitems(config, items):
    """테스트 아이템 수정"""
    for item in items:
        # 비동기 테스트에 asyncio 마커 추가
        if inspect.iscoroutinefunction(getattr(item, "function", None)):
            item.add_marker(pytest.mark.asyncio)

        # 느린 테스트 마커 추가
        if "performance" in item.name or "stress" in item.name:
            item.add_marker(pytest.mark.slow)

        # 통합 테스트 마커 추가
        if "integration" in item.name:
            item.add_marker(pytest.mark.integration)
