"""Main CLI application using Typer."""
import asyncio
import logging
from pathlib import Path

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..engine import ChatSession
from ..errors import ChatError
from ..llm.models import AspectRatio, ImageSize
from ..session.models import ChatMode, Message, Role
from ..session.uploads import load_upload
from .providers import get_config, get_persistence, get_store
from .rendering import render_message, render_uploads, save_image, short_id

# Load environment variables
load_dotenv()

# Create Typer app
app = typer.Typer(
    name="imagechat",
    help="Multi-turn image generation and editing chat",
    no_args_is_help=True,
    add_completion=True,
)

# Console for rich output
console = Console()

HELP_TEXT = """\
[bold]Commands[/bold]
  <text>                 Send a prompt (generate, or composite with uploads)
  /edit [text]           Edit the last generated image
  /search <text>         Generate using web search grounding
  /upload [path ...]     Attach image files, or list pending uploads
  /drop <id>             Remove a pending upload
  /delete <id>           Delete a message from the conversation
  /retry [id]            Resend a failed request (default: most recent)
  /ratio <value>         Set aspect ratio (1:1, 16:9, 4:3, 3:4, 9:16, 5:4)
  /size <value>          Set image size (1K, 2K, 4K)
  /guidance on|off       Toggle the force-image guidance prefix
  /restore               Restore the saved conversation
  /forget                Delete the saved conversation
  /reset                 Start a new conversation
  /save [id]             Save a generated image as PNG (default: the latest)
  /status                Show session settings
  /quit                  Exit
"""


@app.callback()
def main(
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        envvar="IMAGECHAT_LOG_LEVEL",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
):
    """Configure logging for all commands."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _resolve_message(session: ChatSession, token: str) -> Message | None:
    token = token.lstrip("#")
    if not token:
        return None
    return next((m for m in session.state.messages if m.id.endswith(token)), None)


def _latest_retryable(session: ChatSession) -> Message | None:
    return next(
        (m for m in reversed(session.state.messages) if m.retry_context is not None),
        None,
    )


def _show_new(session: ChatSession, shown: set[str], out: Path | None) -> list[Message]:
    """Render messages not displayed yet, saving generated images when out is set."""
    fresh = [m for m in session.state.messages if m.id not in shown]
    for message in fresh:
        saved_path = None
        if out is not None and message.role == Role.ASSISTANT and message.image_data:
            saved_path = save_image(message.image_data, out, stem=f"imagechat-{short_id(message.id)}")
        render_message(console, message, saved_path)
        shown.add(message.id)
    return fresh


def _show_status(session: ChatSession) -> None:
    state = session.state
    settings = session.settings

    table = Table(title="Session", show_header=False)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("API type", settings.api_type.value)
    table.add_row("Model", settings.model)
    table.add_row("Aspect ratio", state.options.aspect_ratio.value)
    table.add_row("Image size", state.options.image_size.value)
    table.add_row("Image guidance", "on" if state.options.force_image_guidance else "off")
    table.add_row("Messages", str(len(state.messages)))
    table.add_row("Pending uploads", str(len(state.uploads)))
    table.add_row("Has image", "yes" if state.last_image_data else "no")
    if state.saved_conversation_at:
        table.add_row("Saved at", state.saved_conversation_at.strftime("%Y-%m-%d %H:%M:%S"))
    console.print(table)


async def _handle_command(
    session: ChatSession,
    command: str,
    argument: str,
    shown: set[str],
    out: Path | None,
) -> bool:
    """Run one slash command. Returns False when the REPL should stop."""
    match command:
        case "/quit" | "/exit":
            return False

        case "/help":
            console.print(HELP_TEXT)

        case "/edit":
            await session.set_prompt(argument)
            with console.status("[dim]Editing image...[/dim]"):
                await session.send_prompt(ChatMode.EDIT)

        case "/search":
            await session.set_prompt(argument)
            with console.status("[dim]Searching and generating...[/dim]"):
                await session.send_prompt(ChatMode.SEARCH)

        case "/upload":
            if not argument:
                render_uploads(console, session.state.uploads)
                return True
            items = []
            for raw_path in argument.split():
                try:
                    items.append(load_upload(Path(raw_path).expanduser()))
                except (OSError, ValueError) as e:
                    console.print(f"[red]Error: {e}[/red]")
            admitted = await session.add_uploads(items)
            for item in admitted:
                console.print(f"[green]Attached {item.name}[/green] [dim]({short_id(item.id)})[/dim]")

        case "/drop":
            match_ = next((u for u in session.state.uploads if u.id.endswith(argument)), None) if argument else None
            if match_ is None:
                console.print(f"[yellow]No pending upload matches {argument!r}[/yellow]")
            else:
                await session.remove_upload(match_.id)
                console.print(f"[dim]Removed {match_.name}[/dim]")

        case "/delete":
            message = _resolve_message(session, argument)
            if message is None:
                console.print(f"[yellow]No message matches {argument!r}[/yellow]")
            else:
                await session.delete_message(message.id)
                console.print(f"[dim]Deleted #{short_id(message.id)}[/dim]")

        case "/retry":
            message = _resolve_message(session, argument) if argument else _latest_retryable(session)
            if message is None:
                console.print("[yellow]Nothing to retry[/yellow]")
            else:
                with console.status("[dim]Retrying...[/dim]"):
                    await session.retry(message.id)

        case "/ratio":
            try:
                await session.set_aspect_ratio(AspectRatio(argument))
                console.print(f"[dim]Aspect ratio: {argument}[/dim]")
            except ValueError:
                choices = ", ".join(r.value for r in AspectRatio)
                console.print(f"[red]Error: unknown aspect ratio {argument!r} (choose from {choices})[/red]")

        case "/size":
            try:
                await session.set_image_size(ImageSize(argument.upper()))
                console.print(f"[dim]Image size: {argument.upper()}[/dim]")
            except ValueError:
                choices = ", ".join(s.value for s in ImageSize)
                console.print(f"[red]Error: unknown image size {argument!r} (choose from {choices})[/red]")

        case "/guidance":
            if argument.lower() not in ("on", "off"):
                console.print("[red]Error: use /guidance on or /guidance off[/red]")
            else:
                await session.set_force_image_guidance(argument.lower() == "on")
                console.print(f"[dim]Image guidance: {argument.lower()}[/dim]")

        case "/restore":
            if await session.restore_saved():
                shown.clear()
                console.rule("[dim]Restored conversation[/dim]")

        case "/forget":
            await session.clear_saved()
            console.print("[dim]Saved conversation deleted[/dim]")

        case "/reset":
            await session.reset()
            shown.clear()
            console.rule("[dim]New conversation[/dim]")

        case "/save":
            if argument:
                message = _resolve_message(session, argument)
                image_data = message.image_data if message else None
            else:
                image_data = session.state.last_image_data
            if not image_data:
                console.print("[yellow]No image to save[/yellow]")
            else:
                path = save_image(image_data, out or Path.cwd())
                console.print(f"[green]Saved {path}[/green]")

        case "/status":
            try:
                _show_status(session)
            except ChatError as e:
                console.print(f"[red]Error: {e}[/red]")

        case _:
            console.print(f"[yellow]Unknown command {command}. Type /help for a list.[/yellow]")

    _show_new(session, shown, out)
    return True


@app.command()
def chat(
    out: Path | None = typer.Option(
        None,
        "--out",
        "-o",
        file_okay=False,
        dir_okay=True,
        help="Directory where generated images are saved automatically"
    ),
    restore: bool = typer.Option(
        False,
        "--restore",
        "-r",
        help="Restore the saved conversation on start"
    )
):
    """Start an interactive image chat."""
    async def _chat():
        store = get_store()
        try:
            await store.connect()
            session = await ChatSession.open(get_config(console), get_persistence(store))
            shown: set[str] = set()

            if restore:
                await session.restore_saved()
            elif session.state.has_saved_conversation:
                saved_at = session.state.saved_conversation_at
                when = saved_at.strftime("%Y-%m-%d %H:%M") if saved_at else "earlier"
                console.print(f"[dim]A conversation from {when} is saved. Type /restore to continue it.[/dim]")

            console.print("[dim]Type /help for commands, /quit to exit.[/dim]")
            _show_new(session, shown, out)

            while True:
                try:
                    line = await asyncio.to_thread(console.input, "[bold cyan]> [/bold cyan]")
                except (EOFError, KeyboardInterrupt):
                    break

                line = line.strip()
                if not line:
                    continue

                if line.startswith("/"):
                    command, _, argument = line.partition(" ")
                    if not await _handle_command(session, command.lower(), argument.strip(), shown, out):
                        break
                    continue

                await session.set_prompt(line)
                with console.status("[dim]Generating...[/dim]"):
                    await session.send_prompt(ChatMode.GENERATE)
                _show_new(session, shown, out)

        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1)
        finally:
            await store.disconnect()

    asyncio.run(_chat())


@app.command()
def send(
    prompt: str = typer.Argument("", help="Prompt text (may be empty in edit mode)"),
    mode: ChatMode = typer.Option(
        ChatMode.GENERATE,
        "--mode",
        "-m",
        help="Request mode: generate, edit, or search"
    ),
    upload: list[Path] = typer.Option(
        [],
        "--upload",
        "-u",
        exists=True,
        dir_okay=False,
        help="Image file to attach (repeatable)"
    ),
    resume: bool = typer.Option(
        False,
        "--resume",
        help="Continue the saved conversation"
    ),
    aspect_ratio: AspectRatio | None = typer.Option(
        None,
        "--ratio",
        help="Aspect ratio of the generated image"
    ),
    image_size: ImageSize | None = typer.Option(
        None,
        "--size",
        help="Size of the generated image"
    ),
    out: Path = typer.Option(
        Path("."),
        "--out",
        "-o",
        file_okay=False,
        dir_okay=True,
        help="Directory where the generated image is saved"
    )
):
    """Send a single prompt and save the resulting image."""
    async def _send():
        store = get_store()
        try:
            await store.connect()
            session = await ChatSession.open(get_config(console), get_persistence(store))
            if resume and session.state.has_saved_conversation:
                await session.restore_saved()
            shown = {m.id for m in session.state.messages}

            if aspect_ratio is not None:
                await session.set_aspect_ratio(aspect_ratio)
            if image_size is not None:
                await session.set_image_size(image_size)
            if upload:
                await session.add_uploads([load_upload(path) for path in upload])

            await session.set_prompt(prompt)
            with console.status(f"[dim]Sending {mode.value} request...[/dim]"):
                await session.send_prompt(mode)

            fresh = _show_new(session, shown, out)
            if not fresh:
                console.print("[yellow]Nothing was sent (empty prompt)[/yellow]")
                raise typer.Exit(code=1)
            if fresh[-1].is_error:
                raise typer.Exit(code=1)

        except typer.Exit:
            raise
        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1)
        finally:
            await store.disconnect()

    asyncio.run(_send())


@app.command()
def forget():
    """Delete the saved conversation."""
    async def _forget():
        store = get_store()
        try:
            await store.connect()
            persistence = get_persistence(store)
            if await persistence.load() is None:
                console.print("[dim]No saved conversation[/dim]")
                return
            await persistence.clear()
            console.print("[green]Saved conversation deleted[/green]")
        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1)
        finally:
            await store.disconnect()

    asyncio.run(_forget())


if __name__ == "__main__":
    app()
