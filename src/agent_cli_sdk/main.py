"""CLI entrypoint for agent-cli-sdk."""

import logging
import sys
from pathlib import Path

import rich_click as click

from agent_cli_sdk import __version__
from agent_cli_sdk.controllers import (
    SUPPORTED_AGENTS,
    AgentCliController,
    ChatCommand,
    RunCommand,
)

click.rich_click.USE_MARKDOWN = True
CONTROLLER = AgentCliController()

_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


@click.group()
@click.version_option(version=__version__, prog_name="agent-cli")
@click.option(
    "--log-level",
    type=click.Choice(_LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Log level for SDK diagnostics written to stderr.",
)
def agent_cli(log_level: str) -> None:
    """Run Claude Code or Codex prompts through one streaming API."""

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


@agent_cli.command("run")
@click.argument("prompt")
@click.option(
    "--agent",
    type=click.Choice(list(SUPPORTED_AGENTS), case_sensitive=False),
    default="claude",
    show_default=True,
    help="Vendor CLI to drive.",
)
@click.option("--model", default=None, help="Model id passed to the vendor CLI.")
@click.option(
    "--timeout-seconds",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Kill the agent after this many seconds.",
)
@click.option(
    "--json",
    "as_json",
    is_flag=True,
    default=False,
    help="Extract a JSON value from the final answer and print it.",
)
@click.option("--session-id", default=None, help="Pin or resume this vendor session id.")
@click.option(
    "--resume",
    is_flag=True,
    default=False,
    help="Resume --session-id instead of starting it.",
)
@click.option(
    "--working-dir",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Working directory of the agent process.",
)
@click.option(
    "--log-path",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Directory for input.json / output.json / error.json audit files.",
)
def run(  # noqa: PLR0913
    prompt: str,
    agent: str,
    model: str | None,
    timeout_seconds: float | None,
    as_json: bool,
    session_id: str | None,
    resume: bool,
    working_dir: Path | None,
    log_path: Path | None,
) -> None:
    """Send one prompt and stream the answer to stdout."""

    result = CONTROLLER.run(
        RunCommand(
            agent=agent.lower(),
            prompt=prompt,
            model=model,
            timeout_seconds=timeout_seconds,
            as_json=as_json,
            session_id=session_id,
            resume=resume,
            working_dir=working_dir,
            log_path=log_path,
        ),
        write=_write_text,
    )
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException("Agent run failed.")


@agent_cli.command("chat")
@click.option(
    "--agent",
    type=click.Choice(list(SUPPORTED_AGENTS), case_sensitive=False),
    default="claude",
    show_default=True,
    help="Vendor CLI to drive.",
)
@click.option("--model", default=None, help="Model id passed to the vendor CLI.")
@click.option(
    "--timeout-seconds",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Kill the agent after this many seconds (per message).",
)
@click.option("--session-id", default=None, help="Pin the vendor session id of message 1.")
@click.option(
    "--working-dir",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Working directory of the agent process.",
)
@click.option(
    "--log-path",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Session audit directory; each message logs under message-<N>.",
)
def chat(  # noqa: PLR0913
    agent: str,
    model: str | None,
    timeout_seconds: float | None,
    session_id: str | None,
    working_dir: Path | None,
    log_path: Path | None,
) -> None:
    """Multi-turn conversation: one prompt per stdin line until EOF."""

    result = CONTROLLER.chat(
        ChatCommand(
            agent=agent.lower(),
            model=model,
            timeout_seconds=timeout_seconds,
            session_id=session_id,
            working_dir=working_dir,
            log_path=log_path,
        ),
        prompts=click.get_text_stream("stdin"),
        write=_write_text,
        emit=click.echo,
    )
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException("Agent chat failed.")


@agent_cli.command("detect")
def detect() -> None:
    """Report which vendor CLIs are installed."""

    result = CONTROLLER.detect()
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException("No supported agent CLI found.")


def _write_text(text: str) -> None:
    click.echo(text, nl=False)


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    agent_cli()
