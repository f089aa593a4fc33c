"""Click CLI: loads config, checks providers, runs a debate session and saves the transcript."""

import asyncio
import logging
import sys
import time
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler

from config.config_loader import AppConfig, load_config, parse_format
from roundtable.debate_ai import DebateAI, ProviderDebateAI
from roundtable.healthcheck import ProviderHealth, providers_for, run_health_checks
from roundtable.models import (
    DebateConfig,
    DebateFormat,
    DebateRole,
    Participant,
    SessionEvent,
    SessionStatus,
    StatementKind,
    StreamSettings,
    Topic,
    TurnContext,
)
from roundtable.output import (
    print_rankings,
    print_round_scores,
    print_statement,
    print_statistics,
    save_transcript,
)
from roundtable.providers.base import AIProvider
from roundtable.providers.registry import build_providers
from roundtable.retry import GenerationExhausted
from roundtable.roles import assign_roles
from roundtable.scheduler import InvalidTransition, TurnScheduler

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _build_debate_config(
    config: AppConfig,
    topic: Topic,
    rounds: int,
    debate_format: DebateFormat,
    stream: bool,
) -> DebateConfig:
    """Split the roster into speakers and the judge, seating unassigned speakers.

    Raises ValueError if the judge is not on the roster.
    """
    judge = next((p for p in config.roster if p.id == config.defaults.judge), None)
    if judge is None:
        raise ValueError(f"Judge '{config.defaults.judge}' is not on the roster")

    streaming = config.streaming
    if not stream:
        streaming = StreamSettings(enabled=False, chunk_size=streaming.chunk_size, delay_sec=streaming.delay_sec)

    return DebateConfig(
        topic=topic,
        total_rounds=rounds,
        format=debate_format,
        participants=assign_roles([p for p in config.roster if p.id != judge.id]),
        judge=judge,
        dimensions=list(config.dimensions),
        retry_policy=config.retry,
        streaming=streaming,
        statement_rules=config.statement_rules,
    )


def _speakers_without_provider(debate_config: DebateConfig, providers: dict[str, AIProvider]) -> list[str]:
    return [
        f"{p.name} ({p.model or 'no model'})"
        for p in debate_config.participants
        if p.is_ai_controlled
        and p.role not in (DebateRole.JUDGE, DebateRole.OBSERVER)
        and p.model not in providers
    ]


def _check_and_filter_providers(
    providers: dict[str, AIProvider],
    debate_config: DebateConfig,
) -> dict[str, AIProvider]:
    """Ping the providers the debate uses and ask the user what to do on failures.

    Returns only the providers that answered. Exits if the user declines to
    continue or no providers pass.
    """
    console.print("\n[bold]Checking providers...[/bold]")
    people = [*debate_config.participants, debate_config.judge]
    results: dict[str, ProviderHealth] = asyncio.run(run_health_checks(providers, people))

    failed_names: list[str] = []
    for name in sorted(results):
        health = results[name]
        if health.ok:
            console.print(f"  [green]OK  [/green] {name} [dim]({health.latency_sec or 0.0:.1f}s)[/dim]")
        else:
            short_err = health.error.splitlines()[0][:120] if health.error else "unknown error"
            console.print(f"  [red]FAIL[/red] {name}: {short_err}")
            failed_names.append(name)

    working = {n: p for n, p in providers.items() if n in results and n not in failed_names}
    if not failed_names:
        console.print()
        return working

    if not working:
        console.print("\n[bold red]Error:[/bold red] No providers passed the health check.")
        sys.exit(1)

    console.print(f"\n[yellow]{len(failed_names)} provider(s) failed:[/yellow] {', '.join(failed_names)}")
    if not click.confirm("Continue with working providers only?", default=True):
        sys.exit(0)

    console.print()
    return working


async def _prompt_human(participant: Participant, context: TurnContext) -> str:
    """HumanInput that reads a formal statement from the terminal."""
    console.print(
        f"\n[bold magenta]{participant.name}[/bold magenta] ({participant.role.value}), "
        f"round {context.round} of {context.total_rounds}. Your statement:"
    )
    text = await asyncio.to_thread(click.prompt, ">", default="", show_default=False)
    return text.strip()


class _ConsoleListener:
    """Renders session events as they happen."""

    def __init__(self, names: dict[str, str]) -> None:
        self._names = names
        self._thinking: str | None = None

    def __call__(self, event: SessionEvent) -> None:
        if event.kind == "chunk":
            if self._thinking != event.participant_id:
                self._thinking = event.participant_id
                console.print(f"\n[dim]{self._names.get(event.participant_id, event.participant_id)} is thinking...[/dim]")
            console.print(event.payload, end="", style="dim italic", highlight=False, markup=False)
        elif event.kind == "statement":
            if event.payload.kind == StatementKind.FORMAL_STATEMENT:
                if self._thinking is not None:
                    console.print()
                    self._thinking = None
                print_statement(event.payload, self._names.get(event.participant_id, event.participant_id))
        elif event.kind == "scores":
            print_round_scores(event.round, event.payload, self._names)
        elif event.kind == "error":
            console.print(f"\n[bold red]Error:[/bold red] {event.payload}")


async def _run_session(
    debate_config: DebateConfig,
    ai: DebateAI,
    output_dir: Path,
) -> Path:
    names = {p.id: p.name for p in debate_config.participants}
    scheduler = TurnScheduler(debate_config, ai, human_input=_prompt_human)

    if scheduler.weight_warning is not None:
        console.print(f"[yellow]Warning:[/yellow] {scheduler.weight_warning}")

    console.print(
        f"\n[bold cyan]Roundtable[/bold cyan]: {debate_config.topic.title}\n"
        f"{debate_config.total_rounds} rounds, judge: {debate_config.judge.name}\n"
    )

    started = time.monotonic()
    async with scheduler:
        scheduler.subscribe(_ConsoleListener(names))
        scheduler.start()
        while scheduler.status != SessionStatus.COMPLETED:
            if scheduler.status == SessionStatus.ONGOING:
                try:
                    await scheduler.run_turn()
                except GenerationExhausted as exc:
                    speaker = names.get(exc.participant_id, exc.participant_id)
                    skip = await asyncio.to_thread(click.confirm, f"Skip {speaker} for this turn?", default=True)
                    if skip:
                        scheduler.skip_current_speaker()
            else:
                with console.status("[bold]Judging round...[/bold]"):
                    await scheduler.score_round()

    duration = time.monotonic() - started
    rankings = scheduler.rankings()
    print_rankings(rankings)
    print_statistics(scheduler.statistics())

    return save_transcript(scheduler.snapshot(), debate_config, rankings, output_dir, duration_sec=duration)


@click.command()
@click.argument("topic")
@click.option("--description", default="", help="Background text shown to every speaker")
@click.option("--rounds", default=None, type=int, help="Number of rounds (default: from config)")
@click.option("--format", "format_name", type=click.Choice(["structured", "free"]), default=None,
              help="Speaking order (default: from config)")
@click.option("--rotate", is_flag=True, default=False, help="Free format: rotate the first speaker each round")
@click.option("--no-stream", is_flag=True, default=False, help="Do not reveal inner thoughts")
@click.option("--output", "output_path", default=None, help="Output directory (default: from config)")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.option("--skip-health-check", is_flag=True, default=False,
              help="Skip the API connectivity check at startup")
def main(
    topic: str,
    description: str,
    rounds: int | None,
    format_name: str | None,
    rotate: bool,
    no_stream: bool,
    output_path: str | None,
    verbose: bool,
    skip_health_check: bool,
) -> None:
    """Roundtable -- multi-model formal debate with an AI judge.

    \b
    Examples:
      roundtable "Remote work beats office work" --rounds 2
      roundtable "Cities should ban cars" --format free --rotate
      roundtable "Nuclear power is green" --no-stream --skip-health-check
    """
    if sys.platform == "win32" and hasattr(sys.stdout, "reconfigure"):
        sys.stdout.reconfigure(encoding="utf-8", errors="replace")

    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config()
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    effective_rounds = rounds if rounds is not None else config.defaults.rounds
    if not 1 <= effective_rounds <= config.defaults.max_rounds:
        console.print(
            f"[bold red]Error:[/bold red] --rounds must be between 1 and {config.defaults.max_rounds}."
        )
        sys.exit(1)

    debate_format = parse_format(format_name, rotate) if format_name else config.defaults.format
    effective_output = Path(output_path) if output_path else config.defaults.output_dir

    try:
        debate_config = _build_debate_config(
            config,
            Topic(title=topic, description=description),
            effective_rounds,
            debate_format,
            stream=not no_stream,
        )
    except ValueError as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    required = providers_for([*debate_config.participants, debate_config.judge])
    providers = {n: p for n, p in build_providers(config).items() if n in required}

    if providers and not skip_health_check:
        providers = _check_and_filter_providers(providers, debate_config)

    missing = _speakers_without_provider(debate_config, providers)
    if missing:
        console.print(
            f"[bold red]Error:[/bold red] No working provider for: {', '.join(missing)}. "
            "Check API keys in .env or the roster in settings.yaml."
        )
        sys.exit(1)

    judge = debate_config.judge
    if judge.model not in providers:
        console.print(f"[yellow]Judge provider '{judge.model}' unavailable, using fallback scores.[/yellow]")

    names = {p.id: p.name for p in debate_config.participants}
    ai = ProviderDebateAI(providers, config.prompts, topic=debate_config.topic, speaker_names=names)

    try:
        saved = asyncio.run(_run_session(debate_config, ai, effective_output))
    except (InvalidTransition, ValueError) as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        sys.exit(1)

    console.print(f"\n[dim]Saved to: {saved}[/dim]")


if __name__ == "__main__":
    main()
