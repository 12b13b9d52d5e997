"""
CLI entry point for reMIND.

Handles command-line arguments and initializes the voice companion.
"""

import asyncio
from pathlib import Path
from typing import Any

import click

from remind import __version__
from remind.config.loader import load_config, load_yaml_config
from remind.config.schema import RemindConfig
from remind.config.settings_store import SettingsStore
from remind.core.logging import setup_logging


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="remind")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Extra YAML configuration file (highest priority)",
)
@click.option(
    "--log-level",
    "-l",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Logging level",
)
@click.pass_context
def main(ctx: click.Context, config: Path | None, log_level: str | None) -> None:
    """
    reMIND - Voice companion

    Run without arguments to start an interactive voice session.
    """
    cli_overrides: dict[str, Any] = {}

    if config:
        cli_overrides.update(load_yaml_config(config))

    if log_level:
        cli_overrides["log_level"] = log_level

    app_config = load_config(cli_overrides)
    logger = setup_logging(app_config)

    ctx.ensure_object(dict)
    ctx.obj["config"] = app_config
    ctx.obj["logger"] = logger

    if ctx.invoked_subcommand is None:
        ctx.invoke(run)


@main.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show configuration and voice settings."""
    from rich.console import Console
    from rich.table import Table

    console = Console()
    config = ctx.obj["config"]
    settings = SettingsStore(config.settings_path, config.voice).snapshot()

    table = Table(title="reMIND Status")
    table.add_column("Component", style="cyan")
    table.add_column("Status", style="green")

    error = config.voicelive.validate_settings()
    if error:
        table.add_row("Voice Live", f"[red]{error}[/red]")
    else:
        table.add_row("Voice Live", "Configured")
        table.add_row("Endpoint", config.voicelive.websocket_url or "")

    table.add_row("Model", config.voicelive.model)
    table.add_row("API Version", config.voicelive.api_version)
    table.add_row("Voice", settings.voice_name)
    table.add_row("Speaking Rate", f"{settings.speaking_rate:.1f}x")
    table.add_row("Sample Rate", f"{config.audio.sample_rate}Hz")
    table.add_row("Input Device", config.audio.input_device or "[dim]System default[/dim]")
    table.add_row("Output Device", config.audio.output_device or "[dim]System default[/dim]")
    table.add_row("Log Level", config.log_level)

    console.print(table)


@main.command()
@click.argument("value", type=float)
@click.pass_context
def rate(ctx: click.Context, value: float) -> None:
    """Set the speaking rate (0.5 - 1.5)."""
    config = ctx.obj["config"]
    store = SettingsStore(config.settings_path, config.voice)
    settings = store.update_speaking_rate(value)
    click.echo(f"Speaking rate set to {settings.speaking_rate:.1f}x")


@main.command()
@click.pass_context
def run(ctx: click.Context) -> None:
    """
    Start an interactive voice session.

    Press Enter to tap the microphone (start/stop/cancel), q to quit.
    """
    config = ctx.obj["config"]
    try:
        asyncio.run(_run_session(config))
    except KeyboardInterrupt:
        pass


async def _run_session(config: RemindConfig) -> None:
    from rich.console import Console

    from remind.voice.controller import VoiceCallbacks, VoiceController

    console = Console()

    def on_state_change(state: Any) -> None:
        console.print(f"[bold cyan]{state.display_text}[/bold cyan]")

    def on_transcript(role: str, text: str) -> None:
        style = "green" if role == "assistant" else "yellow"
        console.print(f"[{style}]{role}:[/{style}] {text}")

    def on_error(message: str) -> None:
        console.print(f"[red]{message}[/red]")

    controller = VoiceController(
        config,
        callbacks=VoiceCallbacks(
            on_state_change=on_state_change,
            on_transcript=on_transcript,
            on_error=on_error,
        ),
    )

    console.print("[dim]Enter: tap microphone, q: quit[/dim]")
    await controller.connect()

    try:
        while True:
            line = await asyncio.to_thread(input)
            if line.strip().lower() in ("q", "quit", "exit"):
                break
            await controller.toggle()
    except EOFError:
        pass
    finally:
        await controller.disconnect()


if __name__ == "__main__":
    main()
