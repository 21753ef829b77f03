"""
测试共享 Fixtures

提供所有测试模块共享的配置、存储、记录工厂和 Telegram mock 对象。
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
import respx
from zoneinfo import ZoneInfo

from harmony.config import Config
from harmony.journal_service import JournalService
from harmony.records import Record, RecordKind, Recurrence
from harmony.storage import LocalStore

# ═══════════════════════════════════════════════════════════
# 配置 Fixtures
# ═══════════════════════════════════════════════════════════


@pytest.fixture
def test_config(tmp_path: Path) -> Config:
    """创建测试配置（本地存储，写到临时目录）。"""
    return Config(
        store_backend="local",
        db_path=str(tmp_path / "harmony.db"),
        user_id="test_user",
        timezone=ZoneInfo("Asia/Seoul"),
        lunar_utc_offset=9.0,
        cell_preview_limit=2,
        telegram_token="test_telegram_token",
        allowed_user_ids=(123456789, 987654321),
        digest_hour=8,
    )


@pytest.fixture
def test_config_no_whitelist(test_config: Config) -> Config:
    """创建无白名单限制的测试配置。"""
    return Config(
        store_backend=test_config.store_backend,
        db_path=test_config.db_path,
        user_id=test_config.user_id,
        telegram_token=test_config.telegram_token,
        allowed_user_ids=(),
    )


@pytest.fixture
def cloud_config() -> Config:
    """创建云端存储测试配置。"""
    return Config(
        store_backend="cloud",
        supabase_url="https://test-project.supabase.co",
        supabase_key="test_anon_key_0123456789abcdef",
        supabase_access_token="test_user_jwt",
        user_id="user-123",
    )


# ═══════════════════════════════════════════════════════════
# 存储 / 服务 Fixtures
# ═══════════════════════════════════════════════════════════


@pytest.fixture
def local_store(test_config: Config) -> LocalStore:
    """临时目录下的 SQLite 存储。"""
    return LocalStore(test_config.db_path, user_id=test_config.user_id)


@pytest.fixture
def service(local_store: LocalStore, test_config: Config) -> JournalService:
    """基于临时 SQLite 的 JournalService。"""
    svc = JournalService(local_store, test_config)
    svc.refresh()
    return svc


@pytest.fixture
def supabase_api_mock() -> respx.MockRouter:
    """创建 Supabase REST API 的 mock 路由。"""
    with respx.mock(assert_all_called=False) as respx_mock:
        yield respx_mock


# ═══════════════════════════════════════════════════════════
# 记录工厂
# ═══════════════════════════════════════════════════════════


@pytest.fixture
def make_record():
    """工厂函数：创建 Record。"""
    counter = {"n": 0}

    def _create(
        anchor_date: date,
        recurrence: Recurrence | str = Recurrence.NONE,
        kind: RecordKind = RecordKind.IDEA,
        content: str | None = None,
        completed: bool = False,
        record_id: str | None = None,
    ) -> Record:
        counter["n"] += 1
        n = counter["n"]
        return Record(
            id=record_id or f"rec{n:05d}",
            anchor_date=anchor_date,
            kind=kind,
            content=content or f"记录 {n}",
            completed=completed,
            recurrence=recurrence,
            created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )

    return _create


# ═══════════════════════════════════════════════════════════
# Telegram Fixtures
# ═══════════════════════════════════════════════════════════


@pytest.fixture
def mock_telegram_user() -> MagicMock:
    """创建模拟 Telegram 用户。"""
    user = MagicMock()
    user.id = 123456789
    user.username = "test_user"
    user.first_name = "Test"
    return user


@pytest.fixture
def mock_telegram_bot() -> AsyncMock:
    """创建模拟 Telegram Bot。"""
    return AsyncMock()


@pytest.fixture
def create_mock_context():
    """工厂函数：创建模拟 Telegram Context。"""

    def _create(args: list[str] | None = None):
        context = MagicMock()
        context.args = args or []
        return context

    return _create


@pytest.fixture
def create_mock_update(mock_telegram_user: MagicMock):
    """工厂函数：创建模拟 Update 对象。"""

    def _create(text: str | None = None, user: MagicMock | None = None):
        message = MagicMock()
        message.text = text
        message.reply_text = AsyncMock()

        update = MagicMock()
        update.message = message
        update.effective_user = user or mock_telegram_user
        return update

    return _create
