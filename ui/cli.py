# ui/cli.py
"""
Terminal front-end for the research workspace.
Run with: python -m ui.cli "your question" [--attach report.pdf ...]
"""

import argparse
import asyncio
import mimetypes
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.live import Live
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from utils.config import get_settings
from workspace.attachments import AttachmentTracker
from workspace.export import format_score
from workspace.research import FAILURE_MESSAGE, ResearchSession
from workspace.transport import AsyncProxyClient, ProxyClient

console = Console()

STATUS_STYLES = {
    "pending": ("○", "dim"),
    "active": ("◐", "bold yellow"),
    "completed": ("●", "green"),
}


def stage_table(session: ResearchSession) -> Table:
    """Current pipeline state as a Rich table."""
    table = Table(title="Research Pipeline", show_header=True, header_style="bold")
    table.add_column("", width=2)
    table.add_column("Stage")
    table.add_column("Latency", justify="right")
    table.add_column("Score", justify="right")

    for stage in session.stages:
        icon, style = STATUS_STYLES[stage.status]
        table.add_row(
            icon,
            f"[{style}]{stage.name}[/{style}]\n[dim]{stage.description}[/dim]",
            f"{stage.latency:.2f}s" if stage.latency is not None else "",
            f"{format_score(stage.score)}/10" if stage.score is not None else "",
        )
    return table


def render_result(session: ResearchSession):
    result = session.result
    console.print(Panel(Markdown(result.answer), title="Answer", border_style="green"))

    if result.sources:
        console.print("\n[bold]📚 Sources:[/bold]")
        for index, source in enumerate(result.sources, start=1):
            confidence = f" ({round(source.confidence * 100)}%)" if source.confidence is not None else ""
            console.print(f"  [{index}] {source.title or source.url}{confidence}")
            console.print(f"      [dim]{source.url}[/dim]")

    console.print(
        f"\n[bold]Total latency:[/bold] {result.total_latency:.2f}s   "
        f"[bold]Average score:[/bold] {result.average_score:.1f}/10"
    )
    if result.trace_url:
        console.print(f"[bold]Trace:[/bold] {result.trace_url}")


async def upload_files(tracker: AttachmentTracker, paths: List[Path]):
    """Upload every file concurrently and report each outcome."""
    results = await asyncio.gather(*(
        tracker.attach(path.name, path.read_bytes(), mimetypes.guess_type(path.name)[0])
        for path in paths
    ))
    for attachment in results:
        if attachment is None:
            continue
        if attachment.status == "ready":
            console.print(f"[green]✓ {attachment.filename}[/green] [dim]{attachment.document_id}[/dim]")
        else:
            console.print(f"[red]✗ {attachment.filename}: {attachment.error_message}[/red]")


async def run(args: argparse.Namespace) -> int:
    settings = get_settings()
    client = ProxyClient.from_settings(
        settings,
        user_id=args.user or settings.dev_user_id,
        email=args.email or settings.dev_user_email,
    )
    transport = AsyncProxyClient(client)

    tracker = AttachmentTracker(transport)
    await tracker.refresh_documents()
    if args.attach:
        await upload_files(tracker, [Path(p) for p in args.attach])

    session = ResearchSession(
        transport,
        dwell_seconds=settings.stage_dwell_seconds,
        settle_seconds=settings.stage_settle_seconds,
        document_ids_provider=lambda: tracker.ready_document_ids if args.documents else [],
        use_chat_history=not args.no_history,
        chat_session_id=args.chat_session,
    )

    console.print(f"\n[cyan]Research Query:[/cyan] {args.question}\n")
    with Live(stage_table(session), console=console, refresh_per_second=8) as live:
        session.on_change = lambda: live.update(stage_table(session))
        completed = await session.submit(args.question)

    if not completed:
        console.print(f"[red]{FAILURE_MESSAGE}[/red]\n[dim]{session.error}[/dim]")
        return 1

    render_result(session)

    if args.export:
        path = Path(args.export)
        if path.is_dir():
            path = path / session.export_filename()
        path.write_text(session.export_markdown(), encoding="utf-8")
        console.print(f"\n[green]📄 Report saved to: {path}[/green]")

    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run a research question through the workspace proxy.")
    parser.add_argument("question", help="Research question")
    parser.add_argument("--attach", nargs="*", default=[], help="Files to upload and attach")
    parser.add_argument("--no-documents", dest="documents", action="store_false",
                        help="Do not send stored documents with the question")
    parser.add_argument("--no-history", action="store_true", help="Disable chat history")
    parser.add_argument("--chat-session", default=None, help="Continue an existing chat session")
    parser.add_argument("--export", default=None, help="Write a markdown export to this file or directory")
    parser.add_argument("--user", default=None, help="User id sent to the proxy")
    parser.add_argument("--email", default=None, help="User email sent to the proxy")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    return asyncio.run(run(args))


if __name__ == "__main__":
    raise SystemExit(main())
