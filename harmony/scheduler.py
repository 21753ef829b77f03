"""
每日摘要调度器

定时刷新快照，并在每天 digest_hour 之后向白名单用户推送一次当日摘要。
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, timedelta
from typing import Any

from .config import Config
from .journal_service import JournalService

logger = logging.getLogger(__name__)


class DigestScheduler:
    """定时推送每日摘要"""

    def __init__(self, service: JournalService, config: Config, bot: Any = None,
                 check_interval_minutes: int = 5):
        self.service = service
        self.config = config
        self.bot = bot
        self.check_interval = timedelta(minutes=check_interval_minutes)
        self._running = False
        self._task: asyncio.Task | None = None
        self._last_sent_date: date | None = None

    async def start(self) -> None:
        """启动调度器"""
        if self._running:
            logger.warning("调度器已在运行")
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info(f"摘要调度器已启动，检查间隔: {self.check_interval}")

    async def stop(self) -> None:
        """停止调度器"""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("摘要调度器已停止")

    async def _run_loop(self) -> None:
        """主循环"""
        while self._running:
            try:
                await self.check_and_send()
            except Exception:
                logger.exception("推送每日摘要时出错")

            try:
                await asyncio.sleep(self.check_interval.total_seconds())
            except asyncio.CancelledError:
                break

    def _due(self, now: datetime) -> bool:
        return now.hour >= self.config.digest_hour and self._last_sent_date != now.date()

    async def check_and_send(self, now: datetime | None = None) -> int:
        """
        到点且今天尚未推送时，刷新快照并发送摘要

        Returns:
            成功发送的用户数
        """
        now = now or datetime.now(tz=self.config.timezone)
        if not self._due(now):
            return 0

        if self.bot is None or not self.config.allowed_user_ids:
            logger.debug("未配置 bot 或白名单，跳过推送")
            self._last_sent_date = now.date()
            return 0

        self.service.refresh()
        text = self.service.build_digest(now.date())

        sent = 0
        for user_id in self.config.allowed_user_ids:
            try:
                await self.bot.send_message(chat_id=user_id, text=text)
                sent += 1
            except Exception:
                logger.exception(f"向 {user_id} 推送摘要失败")

        self._last_sent_date = now.date()
        logger.info(f"{now.date()} 摘要已推送给 {sent} 位用户")
        return sent
