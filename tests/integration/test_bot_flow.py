"""
Bot 端到端流程集成测试

测试完整的用户交互流程：发消息记录 → 查看 → 完成 → 删除，
分别跑在本地 SQLite 和（mock 的）Supabase 上。
"""

from __future__ import annotations

import json
from datetime import date

import pytest
import respx
from httpx import Response

from harmony.config import Config
from harmony.handlers import BotHandlers
from harmony.journal_service import JournalService
from harmony.records import RecordKind, Recurrence
from harmony.storage import create_store


def _reply(update) -> str:
    return update.message.reply_text.call_args[0][0]


@pytest.mark.integration
class TestLocalFlow:
    """本地存储上的完整流程。"""

    @pytest.mark.asyncio
    async def test_full_flow(self, test_config: Config, create_mock_update, create_mock_context,
                             monkeypatch) -> None:
        service = JournalService(create_store(test_config), test_config)
        service.refresh()
        monkeypatch.setattr(service, "today", lambda: date(2024, 2, 10))
        handlers = BotHandlers(test_config, service)

        # 1. 发消息新建
        update = create_mock_update("세배 가기 #할일 #음력")
        await handlers.handle_message(update, create_mock_context())
        assert _reply(update).startswith("✅ 已记录")
        record = service.snapshot[0]
        assert record.kind is RecordKind.TASK
        assert record.recurrence is Recurrence.YEARLY_LUNAR

        # 2. 今天的摘要
        update = create_mock_update("/today")
        await handlers.handle_today(update, create_mock_context())
        assert "세배 가기" in _reply(update)
        assert "설날" in _reply(update)

        # 3. 明年春节仍然出现
        update = create_mock_update("/day 2025-01-29")
        await handlers.handle_day(update, create_mock_context(["2025-01-29"]))
        assert "세배 가기" in _reply(update)

        # 4. 完成
        short_id = record.id[:8]
        update = create_mock_update(f"/done {short_id}")
        await handlers.handle_done(update, create_mock_context([short_id]))
        assert service.find_record(record.id).completed

        # 5. 删除
        update = create_mock_update(f"/del {short_id}")
        await handlers.handle_delete(update, create_mock_context([short_id]))
        assert _reply(update) == "🗑️ 已删除"
        assert service.snapshot == ()


@pytest.fixture
def setup_supabase_api():
    """
    设置一个带内存表的 Supabase REST Mock。

    返回可以用于验证请求的路由对象。
    """
    rows: list[dict] = []
    url = r"https://test-project\.supabase\.co/rest/v1/memos.*"

    def _matches(request, row: dict) -> bool:
        params = request.url.params
        if row["id"] != params.get("id", "").removeprefix("eq."):
            return False
        owner = params.get("user_id")
        return owner is None or row["user_id"] == owner.removeprefix("eq.")

    def _select(request):
        return Response(200, json=sorted(rows, key=lambda r: r["created_at"], reverse=True))

    def _insert(request):
        payload = json.loads(request.content)
        created = []
        for item in payload:
            row = dict(item, id=f"cloud-{len(rows) + 1:04d}")
            rows.append(row)
            created.append(row)
        return Response(201, json=created)

    def _update(request):
        changes = json.loads(request.content)
        updated = [r for r in rows if _matches(request, r)]
        for r in updated:
            r.update(changes)
        return Response(200, json=updated)

    def _delete(request):
        deleted = [r for r in rows if _matches(request, r)]
        rows[:] = [r for r in rows if not _matches(request, r)]
        return Response(200, json=deleted)

    with respx.mock(assert_all_called=False) as mock:
        routes = {
            "select": mock.get(url__regex=url).mock(side_effect=_select),
            "insert": mock.post(url__regex=url).mock(side_effect=_insert),
            "update": mock.patch(url__regex=url).mock(side_effect=_update),
            "delete": mock.delete(url__regex=url).mock(side_effect=_delete),
            "rows": rows,
        }
        yield routes


@pytest.mark.integration
class TestCloudFlow:
    """云端存储上的完整流程。"""

    @pytest.mark.asyncio
    async def test_full_flow(self, cloud_config: Config, setup_supabase_api, create_mock_update,
                             create_mock_context, monkeypatch) -> None:
        service = JournalService(create_store(cloud_config), cloud_config)
        service.refresh()
        monkeypatch.setattr(service, "today", lambda: date(2024, 9, 17))
        handlers = BotHandlers(cloud_config, service)

        update = create_mock_update("송편 만들기 #약속")
        await handlers.handle_message(update, create_mock_context())

        assert setup_supabase_api["insert"].called
        assert len(setup_supabase_api["rows"]) == 1
        assert setup_supabase_api["rows"][0]["type"] == "appointment"

        update = create_mock_update("/today")
        await handlers.handle_today(update, create_mock_context())
        assert "송편 만들기" in _reply(update)
        assert "추석" in _reply(update)

        update = create_mock_update("/del cloud-9999")
        await handlers.handle_delete(update, create_mock_context(["cloud-9999"]))
        assert _reply(update) == "⚠️ 删除失败"
        assert len(setup_supabase_api["rows"]) == 1

        update = create_mock_update("/del cloud-0001")
        await handlers.handle_delete(update, create_mock_context(["cloud-0001"]))
        assert _reply(update) == "🗑️ 已删除"
        assert setup_supabase_api["rows"] == []
        assert service.snapshot == ()
