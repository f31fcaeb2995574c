"""
Per-room lock registry.

같은 채팅방에 대한 변경 작업을 직렬화합니다. 서로 다른 방은 독립적으로 병렬 처리됩니다.
사용 중인 방이 없으면 잠금 객체를 제거해 메모리가 계속 늘어나지 않도록 합니다.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict


class RoomLockRegistry:
    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._holders: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._holders[key] = self._holders.get(key, 0) + 1

        try:
            async with lock:
                yield
        finally:
            self._holders[key] -= 1
            if self._holders[key] == 0:
                del self._holders[key]
                del self._locks[key]

    def active_keys(self) -> int:
        return len(self._locks)
