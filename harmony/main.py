"""
Telegram Bot 入口

使用 Long Polling 方式运行。
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from telegram.ext import ApplicationBuilder

from .config import Config, _require
from .handlers import BotHandlers
from .journal_service import JournalService
from .scheduler import DigestScheduler
from .storage import create_store

# 配置日志
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)
logger = logging.getLogger(__name__)


def main(env_path: str | Path | None = None) -> None:
    """主函数"""
    if env_path is None:
        env_path = os.getenv("HARMONY_ENV_PATH")

    # 加载配置
    config = Config.from_env(env_path=env_path)
    _require("TELEGRAM_BOT_TOKEN")
    logger.info(f"配置加载完成: store={config.store_backend}, tz={config.timezone.key}")

    # 初始化组件
    store = create_store(config)
    service = JournalService(store, config)
    service.refresh()
    handlers = BotHandlers(config, service)

    # 构建 Telegram Bot Application
    app = (
        ApplicationBuilder()
        .token(config.telegram_token)
        .build()
    )
    for handler in handlers.get_handlers():
        app.add_handler(handler)

    scheduler = DigestScheduler(service, config, bot=app.bot)

    # 启动调度器（在后台运行）
    async def start_scheduler(app):
        await scheduler.start()
        logger.info("🕐 调度器已启动")

    async def stop_scheduler(app):
        await scheduler.stop()
        logger.info("🕐 调度器已停止")

    app.post_init = start_scheduler
    app.post_shutdown = stop_scheduler

    # 启动 Bot（Long Polling）
    logger.info("🚀 Bot 启动中...")
    app.run_polling(allowed_updates=["message"])


if __name__ == "__main__":
    main()
