"""Rich console output and markdown transcript save for debate sessions."""

import logging
import re
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from roundtable.models import (
    DebateConfig,
    RankedEntry,
    ScoreRecord,
    ScoreStatistics,
    SessionSnapshot,
    Statement,
    StatementKind,
)

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def _preview(content: str, words: int = 60) -> str:
    all_words = content.split()
    preview = " ".join(all_words[:words])
    if len(all_words) > words:
        preview += "..."
    return preview


def print_statement(statement: Statement, speaker: str) -> None:
    """Print a formal statement as a panel. Empty statements show as skipped."""
    body = _preview(statement.content) if statement.content else "[dim](skipped)[/dim]"
    console.print(
        Panel(
            body,
            title=f"[bold]{speaker}[/bold]",
            subtitle=f"round {statement.round}",
            border_style="cyan",
        )
    )


def print_round_scores(round_number: int, records: Sequence[ScoreRecord], names: dict[str, str]) -> None:
    console.print(Rule(f"[bold cyan]Round {round_number} Scores[/bold cyan]"))
    if not records:
        console.print("[dim]No statements to score.[/dim]")
        return

    dimension_names = list(dict.fromkeys(name for r in records for name in r.dimensions))
    table = Table(show_header=True, header_style="bold")
    table.add_column("Speaker")
    for name in dimension_names:
        table.add_column(name.title(), justify="right")
    table.add_column("Total", justify="right", style="bold")
    table.add_column("Judge", style="dim")

    for record in records:
        table.add_row(
            names.get(record.participant_id, record.participant_id),
            *(f"{record.dimensions[n]:.0f}" if n in record.dimensions else "-" for n in dimension_names),
            f"{record.total_score:.1f}",
            record.judge_id,
        )
    console.print(table)


def print_rankings(entries: Sequence[RankedEntry]) -> None:
    console.print(Rule("[bold green]Final Rankings[/bold green]"))
    table = Table(show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("Speaker")
    table.add_column("Total", justify="right", style="bold")
    table.add_column("Average", justify="right")
    table.add_column("Statements", justify="right")
    for entry in entries:
        table.add_row(
            str(entry.rank),
            entry.name,
            f"{entry.total_score:.1f}",
            f"{entry.average_score:.1f}",
            str(entry.statement_count),
        )
    console.print(table)


def print_statistics(stats: ScoreStatistics) -> None:
    if not stats.dimensions:
        return
    table = Table(title="Score statistics", show_header=True, header_style="bold")
    table.add_column("Dimension")
    table.add_column("Avg", justify="right")
    table.add_column("High", justify="right")
    table.add_column("Low", justify="right")
    rows = list(stats.dimensions.items()) + [("overall", stats.overall)]
    for name, dim in rows:
        table.add_row(name, f"{dim.average:.1f}", f"{dim.highest:.1f}", f"{dim.lowest:.1f}")
    console.print(table)
    console.print(Text(f"Overall distribution: {stats.overall.distribution}", style="dim"))


def save_transcript(
    snapshot: SessionSnapshot,
    config: DebateConfig,
    rankings: Sequence[RankedEntry],
    output_dir: Path,
    duration_sec: float | None = None,
    slug_override: str | None = None,
) -> Path:
    """Save the full debate transcript as a markdown file.

    Args:
        snapshot: Final session snapshot.
        config: The session's configuration, for the header.
        rankings: Final rankings, written as a table at the end.
        output_dir: Directory to save the file in. Created if missing.
        duration_sec: Wall-clock duration, if measured.
        slug_override: Filename stem to use instead of the topic slug.

    Returns:
        Path to the saved file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    slug = slug_override if slug_override is not None else _slug(config.topic.title)
    filepath = output_dir / f"{timestamp}_{slug}.md"

    names = {p.id: p.name for p in config.participants}
    format_name = type(config.format).__name__.removesuffix("Format").lower()

    lines: list[str] = [
        f"# Debate: {config.topic.title}",
        "",
        f"**Date:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Format:** {format_name}",
        f"**Rounds:** {snapshot.round} of {snapshot.total_rounds} ({snapshot.status.value})",
        f"**Judge:** {config.judge.name}",
        f"**Speakers:** {', '.join(f'{p.name} ({p.role.value})' for p in config.participants)}",
    ]
    if duration_sec is not None:
        lines.append(f"**Duration:** {duration_sec:.1f}s")
    if config.topic.description:
        lines += ["", config.topic.description]
    lines += ["", "---", ""]

    scores_by_statement = {s.statement_id: s for s in snapshot.scores}
    for round_number in sorted({s.round for s in snapshot.statements}):
        lines += [f"## Round {round_number}", ""]
        for statement in snapshot.statements:
            if statement.round != round_number:
                continue
            speaker = names.get(statement.participant_id, statement.participant_id)
            if statement.kind == StatementKind.INNER_THOUGHTS:
                lines += [f"### {speaker}: inner thoughts", ""]
                lines += [f"> {line}" if line else ">" for line in statement.content.splitlines()]
                lines.append("")
                continue

            lines += [f"### {speaker}", "", statement.content or "*(skipped)*", ""]
            record = scores_by_statement.get(statement.id)
            if record is not None:
                dims = ", ".join(f"{k} {v:.0f}" for k, v in record.dimensions.items())
                lines.append(f"*Score: {record.total_score:.1f} ({dims}) by {record.judge_id}*")
                if record.comment:
                    lines.append(f"*{record.comment}*")
                lines.append("")

    if rankings:
        lines += [
            "## Rankings",
            "",
            "| # | Speaker | Total | Average | Statements |",
            "|---|---------|-------|---------|------------|",
        ]
        lines += [
            f"| {e.rank} | {e.name} | {e.total_score:.1f} | {e.average_score:.1f} | {e.statement_count} |"
            for e in rankings
        ]
        lines.append("")

    filepath.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Transcript saved to: %s", filepath)
    return filepath
