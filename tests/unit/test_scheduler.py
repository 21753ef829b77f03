"""
DigestScheduler 单元测试
"""

from __future__ import annotations

from datetime import date, datetime
from unittest.mock import AsyncMock
from zoneinfo import ZoneInfo

import pytest

from harmony.config import Config
from harmony.journal_service import JournalService
from harmony.scheduler import DigestScheduler

KST = ZoneInfo("Asia/Seoul")


@pytest.mark.unit
class TestCheckAndSend:
    """测试到点推送。"""

    @pytest.mark.asyncio
    async def test_before_digest_hour(self, service: JournalService, test_config: Config,
                                      mock_telegram_bot: AsyncMock) -> None:
        scheduler = DigestScheduler(service, test_config, bot=mock_telegram_bot)

        sent = await scheduler.check_and_send(datetime(2024, 2, 10, 7, 59, tzinfo=KST))

        assert sent == 0
        mock_telegram_bot.send_message.assert_not_called()

    @pytest.mark.asyncio
    async def test_sends_once_per_day(self, service: JournalService, test_config: Config,
                                      mock_telegram_bot: AsyncMock) -> None:
        service.add_record("세배", date(2024, 2, 10))
        scheduler = DigestScheduler(service, test_config, bot=mock_telegram_bot)

        sent = await scheduler.check_and_send(datetime(2024, 2, 10, 8, 0, tzinfo=KST))
        again = await scheduler.check_and_send(datetime(2024, 2, 10, 20, 0, tzinfo=KST))

        assert sent == 2
        assert again == 0
        assert mock_telegram_bot.send_message.await_count == 2
        kwargs = mock_telegram_bot.send_message.call_args.kwargs
        assert kwargs["chat_id"] in test_config.allowed_user_ids
        assert "설날" in kwargs["text"]
        assert "세배" in kwargs["text"]

    @pytest.mark.asyncio
    async def test_next_day_sends_again(self, service: JournalService, test_config: Config,
                                        mock_telegram_bot: AsyncMock) -> None:
        scheduler = DigestScheduler(service, test_config, bot=mock_telegram_bot)

        await scheduler.check_and_send(datetime(2024, 2, 10, 9, 0, tzinfo=KST))
        sent = await scheduler.check_and_send(datetime(2024, 2, 11, 9, 0, tzinfo=KST))

        assert sent == 2

    @pytest.mark.asyncio
    async def test_send_failure_counted(self, service: JournalService, test_config: Config,
                                        mock_telegram_bot: AsyncMock) -> None:
        mock_telegram_bot.send_message.side_effect = [RuntimeError("blocked"), None]
        scheduler = DigestScheduler(service, test_config, bot=mock_telegram_bot)

        sent = await scheduler.check_and_send(datetime(2024, 2, 10, 9, 0, tzinfo=KST))

        assert sent == 1

    @pytest.mark.asyncio
    async def test_without_bot(self, service: JournalService, test_config: Config) -> None:
        scheduler = DigestScheduler(service, test_config)
        assert await scheduler.check_and_send(datetime(2024, 2, 10, 9, 0, tzinfo=KST)) == 0


@pytest.mark.unit
class TestLifecycle:
    """测试启动 / 停止。"""

    @pytest.mark.asyncio
    async def test_start_stop(self, service: JournalService, test_config: Config) -> None:
        scheduler = DigestScheduler(service, test_config, check_interval_minutes=60)

        await scheduler.start()
        assert scheduler._running
        assert scheduler._task is not None

        await scheduler.stop()
        assert not scheduler._running
        assert scheduler._task is None
