"""
集中配置管理

从环境变量 / .env 文件加载所有配置项，
并提供校验与默认值。
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

DEFAULT_TZ = "Asia/Seoul"


def _require(name: str) -> str:
    """读取必填环境变量，缺失时直接退出并给出提示。"""
    val = os.getenv(name, "").strip()
    if not val:
        print(f"[ERROR] 缺少必填环境变量: {name}，请检查 .env 文件。")
        sys.exit(1)
    return val


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        print(f"[WARN] {name}={raw!r} 不是整数，使用默认值 {default}")
        return default


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        print(f"[WARN] {name}={raw!r} 不是数字，使用默认值 {default}")
        return default


@dataclass(frozen=True)
class Config:
    """不可变配置对象，一次加载、全局使用。"""

    # ── 存储 ─────────────────────────────────────────────
    store_backend: str = "local"             # local | cloud
    db_path: str = "data/harmony.db"         # 本地 SQLite 文件
    supabase_url: str = ""
    supabase_key: str = ""                   # anon key
    supabase_access_token: str = ""          # 登录后的用户 JWT，可留空
    user_id: str = "local_user"

    # ── 日历 ─────────────────────────────────────────────
    timezone: ZoneInfo = field(default_factory=lambda: ZoneInfo(DEFAULT_TZ))
    lunar_utc_offset: float = 9.0            # 农历日界所用 UTC 偏移（小时）
    cell_preview_limit: int = 2              # 月历格子里最多显示几条

    # ── Telegram ─────────────────────────────────────────
    telegram_token: str = ""
    allowed_user_ids: tuple[int, ...] = ()   # 白名单，空表示不限制
    digest_hour: int = 8                     # 每日摘要推送时间（当地小时）

    @property
    def cloud_configured(self) -> bool:
        return "supabase.co" in self.supabase_url and len(self.supabase_key) > 20

    @classmethod
    def from_env(
        cls,
        env_path: str | Path | None = None,
        load_dotenv_file: bool = True,
    ) -> "Config":
        """从 .env 文件 + 环境变量构建 Config 实例。"""
        if env_path:
            load_dotenv(env_path, override=True)
        elif load_dotenv_file:
            # 优先级:
            # 1. 当前目录 .harmony/.env
            # 2. 当前目录 .env
            # 3. 项目根目录 .env
            # 4. ~/.harmony/.env
            project_root = Path(__file__).resolve().parent.parent
            candidates = [
                Path.cwd() / ".harmony" / ".env",
                Path.cwd() / ".env",
                project_root / ".env",
                Path.home() / ".harmony" / ".env",
            ]
            for candidate in candidates:
                if candidate.exists():
                    load_dotenv(candidate, override=True)
                    break

        # 白名单：逗号分隔的数字
        raw_ids = os.getenv("ALLOWED_USER_IDS", "").strip()
        allowed = tuple(int(x.strip()) for x in raw_ids.split(",") if x.strip()) if raw_ids else ()

        # 时区
        tz_name = os.getenv("HARMONY_TZ", DEFAULT_TZ).strip()
        try:
            tz = ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError):
            print(f"[WARN] 无法识别时区 '{tz_name}'，回退到 {DEFAULT_TZ}")
            tz = ZoneInfo(DEFAULT_TZ)

        supabase_url = os.getenv("SUPABASE_URL", "").strip()
        supabase_key = os.getenv("SUPABASE_ANON_KEY", "").strip()

        backend = os.getenv("HARMONY_STORE", "").strip().lower()
        if not backend:
            backend = "cloud" if supabase_url and supabase_key else "local"
        if backend not in ("local", "cloud"):
            print(f"[WARN] 未知的存储类型 '{backend}'，回退到 local")
            backend = "local"
        if backend == "cloud":
            supabase_url = _require("SUPABASE_URL")
            supabase_key = _require("SUPABASE_ANON_KEY")

        return cls(
            store_backend=backend,
            db_path=os.getenv("HARMONY_DB_PATH", "data/harmony.db").strip(),
            supabase_url=supabase_url,
            supabase_key=supabase_key,
            supabase_access_token=os.getenv("SUPABASE_ACCESS_TOKEN", "").strip(),
            user_id=os.getenv("HARMONY_USER_ID", "local_user").strip() or "local_user",
            timezone=tz,
            lunar_utc_offset=_float_env("LUNAR_UTC_OFFSET", 9.0),
            cell_preview_limit=max(0, _int_env("CELL_PREVIEW_LIMIT", 2)),
            telegram_token=os.getenv("TELEGRAM_BOT_TOKEN", "").strip(),
            allowed_user_ids=allowed,
            digest_hour=_int_env("DIGEST_HOUR", 8) % 24,
        )
