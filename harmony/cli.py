from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm
from rich.table import Table

from .config import Config
from .journal_service import JournalService, format_record
from .lunar.converter import OutOfRangeError, from_lunisolar, to_lunisolar
from .lunar.holidays import get_day_details
from .records import RecordKind, Recurrence
from .recurrence import as_day
from .storage import create_store

app = typer.Typer(help="Daily Harmony: 农历 / 节气 / 重复提醒日历笔记")
console = Console()

WEEK_HEADER = ["日", "一", "二", "三", "四", "五", "六"]


def _load_service(env_path: Optional[Path] = None) -> JournalService:
    config = Config.from_env(env_path=env_path)
    service = JournalService(create_store(config), config)
    service.refresh()
    return service


def _parse_day_arg(value: Optional[str], service: JournalService) -> date:
    if not value:
        return service.today()
    try:
        return as_day(value)
    except ValueError:
        console.print(f"[red]❌ 日期格式应为 YYYY-MM-DD: {value}[/red]")
        raise typer.Exit(1)


def _parse_month_arg(value: Optional[str], service: JournalService) -> tuple[int, int]:
    if not value:
        today = service.today()
        return today.year, today.month
    try:
        year_str, month_str = value.split("-")
        year, month = int(year_str), int(month_str)
        date(year, month, 1)
    except ValueError:
        console.print(f"[red]❌ 月份格式应为 YYYY-MM: {value}[/red]")
        raise typer.Exit(1)
    return year, month


@app.command()
def day(
    when: Optional[str] = typer.Argument(None, help="日期 YYYY-MM-DD，默认今天"),
):
    """查看某天的农历、节日、节气和记录"""
    service = _load_service()
    target = _parse_day_arg(when, service)

    try:
        view = service.day_view(target)
    except OutOfRangeError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(1)

    details = view.details
    header = f"[bold]{view.day.isoformat()}[/bold]  {details.lunar.label}"
    if details.holiday:
        header += f"  [red]{details.holiday.label}[/red]"
    if details.solar_term:
        header += f"  [green]{details.solar_term.label}[/green]"

    body = "\n".join(format_record(r) for r in view.records) if view.records else "📭 没有记录"
    console.print(Panel(f"{header}\n\n{body}", title="Daily Harmony", expand=False))


@app.command()
def month(
    when: Optional[str] = typer.Argument(None, help="月份 YYYY-MM，默认本月"),
):
    """月历视图"""
    service = _load_service()
    year, month_num = _parse_month_arg(when, service)

    try:
        weeks = service.month_grid(year, month_num)
    except OutOfRangeError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(1)

    table = Table(title=f"{year}-{month_num:02d}", show_lines=True)
    for i, name in enumerate(WEEK_HEADER):
        style = "red" if i == 0 else ("blue" if i == 6 else None)
        table.add_column(name, style=style, width=14, overflow="fold")

    for week in weeks:
        row = []
        for cell in week:
            if not cell.in_month:
                row.append(f"[dim]{cell.day.day}[/dim]")
                continue
            parts = [f"[bold]{cell.day.day}[/bold]"]
            if cell.details:
                parts[0] += f" [dim]{cell.details.lunar.month}.{cell.details.lunar.day}[/dim]"
                if cell.details.holiday:
                    parts.append(f"[red]{cell.details.holiday.label}[/red]")
                if cell.details.solar_term:
                    parts.append(f"[green]{cell.details.solar_term.label}[/green]")
            parts.extend(f"· {r.content[:10]}" for r in cell.preview)
            if cell.overflow:
                parts.append(f"[dim]+{cell.overflow}[/dim]")
            row.append("\n".join(parts))
        table.add_row(*row)

    console.print(table)


@app.command()
def add(
    content: str = typer.Argument(..., help="内容"),
    when: Optional[str] = typer.Option(None, "--date", "-d", help="日期 YYYY-MM-DD，默认今天"),
    kind: RecordKind = typer.Option(RecordKind.IDEA, "--kind", "-k", help="类型"),
    repeat: Recurrence = typer.Option(Recurrence.NONE, "--repeat", "-r", help="重复规则"),
    remind: Optional[str] = typer.Option(None, "--remind", help="提醒时间 HH:MM"),
):
    """新建记录"""
    service = _load_service()
    target = _parse_day_arg(when, service)

    try:
        record = service.add_record(content, target, kind=kind, recurrence=repeat, reminder_time=remind)
    except ValueError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(1)

    if record is None:
        console.print("[red]❌ 保存失败[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✅ 已记录: {format_record(record)}[/green]")


@app.command()
def edit(
    record_id: str = typer.Argument(..., help="记录 id（可用前缀）"),
    content: Optional[str] = typer.Option(None, "--content", "-c"),
    when: Optional[str] = typer.Option(None, "--date", "-d"),
    kind: Optional[RecordKind] = typer.Option(None, "--kind", "-k"),
    repeat: Optional[Recurrence] = typer.Option(None, "--repeat", "-r"),
):
    """修改记录"""
    service = _load_service()
    record = service.find_record(record_id)
    if record is None:
        console.print(f"[yellow]未找到记录: {record_id}[/yellow]")
        raise typer.Exit(1)

    anchor = _parse_day_arg(when, service) if when else None
    try:
        ok = service.edit_record(record.id, content=content, anchor_date=anchor, kind=kind, recurrence=repeat)
    except ValueError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(1)

    if ok:
        console.print("[green]✅ 已更新[/green]")
    else:
        console.print("[yellow]没有修改或更新失败[/yellow]")


@app.command()
def done(record_id: str = typer.Argument(..., help="记录 id（可用前缀）")):
    """切换待办完成状态"""
    service = _load_service()
    if service.toggle_record(record_id):
        console.print("[green]✅ 已更新[/green]")
    else:
        console.print(f"[yellow]未找到记录或更新失败: {record_id}[/yellow]")
        raise typer.Exit(1)


@app.command()
def rm(
    record_id: str = typer.Argument(..., help="记录 id（可用前缀）"),
    yes: bool = typer.Option(False, "--yes", "-y", help="不再确认"),
):
    """删除记录"""
    service = _load_service()
    record = service.find_record(record_id)
    if record is None:
        console.print(f"[yellow]未找到记录: {record_id}[/yellow]")
        raise typer.Exit(1)

    if not yes and not Confirm.ask(f"确定删除 {format_record(record)} ?"):
        return

    if service.delete_record(record.id):
        console.print("[green]🗑️ 已删除[/green]")
    else:
        console.print("[red]❌ 删除失败[/red]")
        raise typer.Exit(1)


@app.command()
def lunar(
    when: str = typer.Argument(..., help="日期 YYYY-MM-DD"),
    to_solar: bool = typer.Option(False, "--to-solar", help="把输入当作农历日期换算成公历"),
    leap: bool = typer.Option(False, "--leap", help="与 --to-solar 同用：闰月"),
):
    """公历 ⇄ 农历换算"""
    config = Config.from_env()
    offset = config.lunar_utc_offset

    try:
        if to_solar:
            year_str, month_str, day_str = when.split("-")
            solar = from_lunisolar(int(year_str), int(month_str), int(day_str), is_leap=leap, utc_offset=offset)
            console.print(f"{when}{' (闰)' if leap else ''} → [bold]{solar.isoformat()}[/bold]")
            return

        target = as_day(when)
        details = get_day_details(target, offset)
        lunar_date = to_lunisolar(target, offset)
    except OutOfRangeError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(1)
    except ValueError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(1)

    console.print(f"{target.isoformat()} → [bold]{lunar_date.year}年 {lunar_date.label}[/bold]")
    for annotation in details.annotations:
        console.print(f"  • {annotation.label} ({annotation.source.value})")


@app.command()
def upcoming(
    record_id: str = typer.Argument(..., help="记录 id（可用前缀）"),
    days: int = typer.Option(90, "--days", "-n", help="向后查看的天数"),
):
    """列出某条记录今后的生效日期"""
    service = _load_service()
    record = service.find_record(record_id)
    if record is None:
        console.print(f"[yellow]未找到记录: {record_id}[/yellow]")
        raise typer.Exit(1)

    dates = service.upcoming(record.id, days=days)
    console.print(format_record(record))
    if not dates:
        console.print(f"[yellow]今后 {days} 天内没有生效日期[/yellow]")
        return
    for d in dates:
        console.print(f"  • {d.isoformat()}")


@app.command()
def export(
    path: Optional[Path] = typer.Argument(None, help="备份文件路径"),
):
    """导出 JSON 备份"""
    service = _load_service()
    target = path or Path(f"daily-harmony-backup-{service.today().isoformat()}.json")
    written = service.export_backup(target)
    console.print(f"[green]✅ 已导出 {len(service.snapshot)} 条记录: {written}[/green]")


@app.command()
def bot(
    env: Optional[Path] = typer.Option(None, "--env", help=".env 文件路径"),
):
    """在前台启动 Telegram Bot (按 Ctrl+C 停止)"""
    console.print("[bold green]🚀 正在前台启动 Bot...[/bold green]")
    from .main import main

    try:
        main(env_path=env)
    except KeyboardInterrupt:
        console.print("\n[yellow]Bot 已停止[/yellow]")


if __name__ == "__main__":
    app()
