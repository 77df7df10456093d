"""CLI commands for memochat."""

from __future__ import annotations

import asyncio

import typer

from memochat import __version__
from memochat.agent.events import EVENT_DELTA, EVENT_DONE, EVENT_ERROR, StreamEvent
from memochat.agent.turn import ChatTurnRunner, UpstreamError
from memochat.channels.base import ClientTransport
from memochat.config.loader import load_config
from memochat.config.schema import Config
from memochat.logging import setup_logging
from memochat.memory.store import MemoryStore
from memochat.session.manager import SessionStore

app = typer.Typer(
    name="memochat",
    help="memochat - streaming chat with long-term memory",
    no_args_is_help=True,
)


class _ConsoleTransport(ClientTransport):
    """Print reply deltas as they arrive; errors go to stderr."""

    name = "console"

    async def send(self, event: StreamEvent) -> None:
        kind = event["type"]
        if kind == EVENT_DELTA:
            typer.echo(event["delta"], nl=False)
        elif kind == EVENT_ERROR:
            typer.echo(f"\nError: {event['error']}", err=True)
        elif kind == EVENT_DONE:
            typer.echo("")

    @property
    def is_connected(self) -> bool:
        return True


def _make_runner(config: Config) -> ChatTurnRunner:
    return ChatTurnRunner.from_config(config)


def version_callback(value: bool) -> None:
    if value:
        typer.echo(f"memochat v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(None, "--version", "-v", callback=version_callback, is_eager=True),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit JSON log lines on stderr"),
    log_level: str = typer.Option("WARNING", "--log-level", help="Log level for memochat loggers"),
) -> None:
    """memochat - streaming chat with long-term memory."""
    setup_logging(json_output=json_logs, level=log_level)


@app.command()
def chat(
    session: str = typer.Argument(..., help="Session id"),
    message: str = typer.Argument(..., help="Message to send"),
    no_stream: bool = typer.Option(False, "--no-stream", help="Wait for the full reply instead of streaming"),
) -> None:
    """Send one message and print the reply."""
    config = load_config()
    runner = _make_runner(config)

    if no_stream:
        try:
            result = asyncio.run(runner.run(session, message))
        except (ValueError, UpstreamError) as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1)
        typer.echo(result.reply)
    else:
        result = asyncio.run(runner.run_stream(session, message, _ConsoleTransport()))
        if result.error:
            raise typer.Exit(1)

    if result.memory_applied:
        applied = result.memory_applied
        typer.echo(
            f"[memory] +{applied['added']} -{applied['removed']} deduped {applied['deduped']}",
            err=True,
        )
    if result.summary_updated:
        typer.echo("[summary] updated", err=True)
    if result.meta_parse_error:
        typer.echo(f"[meta] parse error: {result.meta_parse_error}", err=True)


@app.command()
def memory() -> None:
    """Print the long-term memory with line numbers."""
    config = load_config()
    store = MemoryStore(config.data_path, max_lines=config.memory.max_lines)
    typer.echo(store.render_numbered(store.read_lines()))


@app.command()
def summary(session: str = typer.Argument(..., help="Session id")) -> None:
    """Print the rolling summary of a session."""
    config = load_config()
    text = SessionStore(config.data_path).read_summary(session).strip()
    typer.echo(text or "(no summary)")


@app.command()
def history(session: str = typer.Argument(..., help="Session id")) -> None:
    """Print a session transcript."""
    config = load_config()
    messages = SessionStore(config.data_path).read_messages(session)
    if not messages:
        typer.echo("(empty session)")
        return
    for msg in messages:
        typer.echo(f"[{msg.timestamp}] {msg.role.upper()}: {msg.content}")


if __name__ == "__main__":
    app()
