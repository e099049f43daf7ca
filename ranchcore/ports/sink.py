"""
Occurrence sink port interfaces.

This module defines the protocols for the persistence collaborator
that assigns identity and durability to generated occurrence drafts.
"""

from typing import Any, Protocol

from ranchcore.core.models import ScheduledEvent

class OccurrenceSinkPort(Protocol):
    """발생 인스턴스 저장 포트 (동기)"""

    def save(self, draft: ScheduledEvent) -> Any:
        """
        초안을 저장합니다.

        Args:
            draft: ID가 없는 발생 인스턴스 초안

        Returns:
            저장소가 부여한 ID

        Raises:
            저장 실패 시 임의의 예외 (전개가 중단됨)
        """
        ...

class AsyncOccurrenceSinkPort(Protocol):
    """발생 인스턴스 저장 포트 (비동기)"""

    async def save(self, draft: ScheduledEvent) -> Any:
        """
        초안을 저장합니다.

        Args:
            draft: ID가 없는 발생 인스턴스 초안

        Returns:
            저장소가 부여한 ID
        """
        ...
