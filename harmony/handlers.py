"""
Telegram 消息处理器

- 文本消息 → 新建当天记录
- 标签解析：#할일 / #약속 决定类型，#매주 / #매월 / #매년 / #음력 决定重复规则
- /today /day /month → 查看日历
- /done /del → 切换完成 / 删除
"""

from __future__ import annotations

import logging
import re
from datetime import date

from telegram import Update
from telegram.ext import CommandHandler, ContextTypes, MessageHandler, filters

from .config import Config
from .journal_service import DayCell, JournalService, format_record
from .lunar.converter import OutOfRangeError
from .records import RecordKind, Recurrence
from .recurrence import as_day

logger = logging.getLogger(__name__)

TAG_PATTERN = r"#([\w\u4e00-\u9fa5]+)"

KIND_TAGS = {
    "할일": RecordKind.TASK,
    "todo": RecordKind.TASK,
    "待办": RecordKind.TASK,
    "약속": RecordKind.APPOINTMENT,
    "appt": RecordKind.APPOINTMENT,
    "约定": RecordKind.APPOINTMENT,
    "메모": RecordKind.IDEA,
    "idea": RecordKind.IDEA,
}

RECURRENCE_TAGS = {
    "매주": Recurrence.WEEKLY,
    "weekly": Recurrence.WEEKLY,
    "每周": Recurrence.WEEKLY,
    "매월": Recurrence.MONTHLY,
    "monthly": Recurrence.MONTHLY,
    "每月": Recurrence.MONTHLY,
    "매년": Recurrence.YEARLY_SOLAR,
    "yearly": Recurrence.YEARLY_SOLAR,
    "每年": Recurrence.YEARLY_SOLAR,
    "음력": Recurrence.YEARLY_LUNAR,
    "lunar": Recurrence.YEARLY_LUNAR,
    "农历": Recurrence.YEARLY_LUNAR,
}


def parse_entry(text: str) -> tuple[str, RecordKind, Recurrence]:
    """
    拆出正文、类型和重复规则。

    只有能识别的标签会从正文中去掉，其余 #标签 原样保留。
    """
    kind = RecordKind.IDEA
    recurrence = Recurrence.NONE

    def _consume(match: re.Match) -> str:
        nonlocal kind, recurrence
        tag = match.group(1).lower()
        if tag in KIND_TAGS:
            kind = KIND_TAGS[tag]
            return ""
        if tag in RECURRENCE_TAGS:
            recurrence = RECURRENCE_TAGS[tag]
            return ""
        return match.group(0)

    content = re.sub(TAG_PATTERN, _consume, text)
    content = re.sub(r"\s{2,}", " ", content).strip()
    return content, kind, recurrence


def _render_month(year: int, month: int, weeks: list[list[DayCell]]) -> str:
    """月历文本：只列出有节日、节气或记录的日子"""
    lines = [f"🗓️ {year}-{month:02d}"]
    for week in weeks:
        for cell in week:
            if not cell.in_month:
                continue
            marks = []
            if cell.details and cell.details.holiday:
                marks.append(cell.details.holiday.label)
            if cell.details and cell.details.solar_term:
                marks.append(cell.details.solar_term.label)
            if cell.total:
                marks.append(f"{cell.total}条")
            if marks:
                lunar = f"({cell.details.lunar.month}.{cell.details.lunar.day})" if cell.details else ""
                lines.append(f"{cell.day.day:02d} {lunar} {' · '.join(marks)}")
    return "\n".join(lines)


class BotHandlers:
    """Telegram Bot 处理器集合"""

    def __init__(self, config: Config, service: JournalService):
        self.config = config
        self.service = service

    def get_handlers(self):
        """获取所有处理器"""
        return [
            CommandHandler("start", self.handle_start),
            CommandHandler("help", self.handle_help),
            CommandHandler("today", self.handle_today),
            CommandHandler("day", self.handle_day),
            CommandHandler("month", self.handle_month),
            CommandHandler("done", self.handle_done),
            CommandHandler("del", self.handle_delete),
            MessageHandler(filters.TEXT & ~filters.COMMAND, self.handle_message),
        ]

    async def handle_start(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """处理 /start 命令"""
        await update.message.reply_text(
            "📔 Daily Harmony 日历笔记\n\n"
            "发送文字即可记录到今天。\n"
            "使用 #할일 / #약속 标记类型，#매주 #매월 #매년 #음력 设置重复。\n\n"
            "命令:\n"
            "/today - 今天\n"
            "/day YYYY-MM-DD - 指定日期\n"
            "/month [YYYY-MM] - 月历\n"
            "/help - 显示帮助"
        )

    async def handle_help(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """处理 /help 命令"""
        await update.message.reply_text(
            "📝 如何使用:\n\n"
            "1. 直接发送文字 → 记录到今天\n"
            "2. #할일 待办，#약속 约定，默认是灵感\n"
            "3. #매주 每周，#매월 每月，#매년 每年（公历），#음력 每年（农历）\n"
            "4. /done <id> 切换待办完成，/del <id> 删除\n\n"
            "示例:\n"
            "엄마 생신 #음력 #약속"
        )

    async def handle_today(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """处理 /today 命令"""
        if not await self._ensure_permission(update):
            return
        try:
            self.service.refresh()
            await update.message.reply_text(self.service.build_digest(self.service.today()))
        except Exception as e:
            logger.exception("处理 /today 失败")
            await update.message.reply_text(f"❌ 出错了: {e}")

    async def handle_day(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """处理 /day YYYY-MM-DD 命令"""
        if not await self._ensure_permission(update):
            return

        args = context.args or []
        try:
            day = as_day(args[0]) if args else self.service.today()
        except ValueError:
            await update.message.reply_text("⚠️ 日期格式应为 YYYY-MM-DD")
            return

        try:
            self.service.refresh()
            await update.message.reply_text(self.service.build_digest(day))
        except OutOfRangeError as e:
            await update.message.reply_text(f"⚠️ {e}")
        except Exception as e:
            logger.exception("处理 /day 失败")
            await update.message.reply_text(f"❌ 出错了: {e}")

    async def handle_month(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """处理 /month [YYYY-MM] 命令"""
        if not await self._ensure_permission(update):
            return

        args = context.args or []
        today = self.service.today()
        try:
            if args:
                year_str, month_str = args[0].split("-")
                year, month = int(year_str), int(month_str)
                date(year, month, 1)
            else:
                year, month = today.year, today.month
        except ValueError:
            await update.message.reply_text("⚠️ 月份格式应为 YYYY-MM")
            return

        try:
            self.service.refresh()
            weeks = self.service.month_grid(year, month)
            await update.message.reply_text(_render_month(year, month, weeks))
        except OutOfRangeError as e:
            await update.message.reply_text(f"⚠️ {e}")
        except Exception as e:
            logger.exception("处理 /month 失败")
            await update.message.reply_text(f"❌ 出错了: {e}")

    async def handle_done(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """处理 /done <id> 命令"""
        if not await self._ensure_permission(update):
            return
        args = context.args or []
        if not args:
            await update.message.reply_text("用法: /done <id>")
            return

        try:
            self.service.refresh()
            if self.service.toggle_record(args[0]):
                record = self.service.find_record(args[0])
                await update.message.reply_text(f"✅ 已更新\n{format_record(record)}" if record else "✅ 已更新")
            else:
                await update.message.reply_text("⚠️ 未找到该记录或更新失败")
        except Exception as e:
            logger.exception("处理 /done 失败")
            await update.message.reply_text(f"❌ 出错了: {e}")

    async def handle_delete(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """处理 /del <id> 命令"""
        if not await self._ensure_permission(update):
            return
        args = context.args or []
        if not args:
            await update.message.reply_text("用法: /del <id>")
            return

        try:
            self.service.refresh()
            if self.service.delete_record(args[0]):
                await update.message.reply_text("🗑️ 已删除")
            else:
                await update.message.reply_text("⚠️ 删除失败")
        except Exception as e:
            logger.exception("处理 /del 失败")
            await update.message.reply_text(f"❌ 出错了: {e}")

    async def handle_message(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """处理收到的文本消息"""
        if not await self._ensure_permission(update):
            return

        text = update.message.text or ""
        content, kind, recurrence = parse_entry(text)
        if not content:
            await update.message.reply_text("🤔 发送点什么吧～")
            return

        try:
            record = self.service.add_record(content, kind=kind, recurrence=recurrence)
            if record is None:
                await update.message.reply_text("⚠️ 保存失败，请稍后再试")
                return
            await update.message.reply_text(f"✅ 已记录\n\n{format_record(record)}")
        except Exception as e:
            logger.exception("处理消息失败")
            await update.message.reply_text(f"❌ 出错了: {e}")

    async def _ensure_permission(self, update: Update) -> bool:
        user_id = update.effective_user.id
        if self._check_permission(user_id):
            return True
        logger.warning(f"拒绝未授权用户: {user_id}")
        await update.message.reply_text("⚠️ 你没有权限使用这个 bot")
        return False

    def _check_permission(self, user_id: int) -> bool:
        """检查用户权限"""
        if not self.config.allowed_user_ids:
            return True
        return user_id in self.config.allowed_user_ids
