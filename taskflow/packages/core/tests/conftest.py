"""packages/core 测试配置 -- 核心层 fixture"""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest_asyncio
from seed_data import RecordingNotifier, seed_workspace
from taskflow.core.service import TaskService
from taskflow.core.store import StoreGroup, create_store_group


@pytest_asyncio.fixture
async def core_db_path(tmp_path: Path) -> Path:
    """核心层临时数据库路径"""
    return tmp_path / "core_test.db"


@pytest_asyncio.fixture
async def stores(core_db_path: Path) -> AsyncGenerator[StoreGroup, None]:
    """已初始化并预置成员的 StoreGroup"""
    group = await create_store_group(str(core_db_path))
    await seed_workspace(group)
    yield group
    await group.close()


@pytest_asyncio.fixture
async def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest_asyncio.fixture
async def service(stores: StoreGroup, notifier: RecordingNotifier) -> TaskService:
    return TaskService(stores, notifier)
