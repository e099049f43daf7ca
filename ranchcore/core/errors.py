"""
Typed errors for the RanchCore engine.

Validation errors are raised synchronously before any computation
and are never retried. Partial expansion failures are not raised;
they are returned as values (see models.PartialGenerationFailure).
"""


class RanchEngineError(Exception):
    """엔진 최상위 예외"""


class EngineValidationError(RanchEngineError, ValueError):
    """호출자 입력 검증 실패 (재시도 대상 아님)"""


class InvalidCoordinate(EngineValidationError):
    """위도/경도 누락 또는 범위 초과"""


class InvalidGeofence(EngineValidationError):
    """퇴화된 폴리곤 또는 양수가 아닌 반경"""


class InvalidRecurrenceRule(EngineValidationError):
    """양수가 아닌 간격 또는 최대 발생 횟수"""


class InvalidQuery(EngineValidationError):
    """음수 반경, 양수가 아닌 셀 크기 등 잘못된 질의 파라미터"""


class InvalidEventTransition(RanchEngineError):
    """허용되지 않는 일정 상태 전이"""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"상태 전이 불가: {current} -> {target}")
