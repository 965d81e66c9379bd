"""Main CLI application using Typer."""
import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date, datetime

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ..assistant import ChatOrchestrator, SendOutcome
from ..commands import extract_schedule_command
from ..context import format_schedule_datetime
from ..errors import PersistenceError
from ..storage import ChatSession, Message, ScheduleItem
from .providers import (
    configure_logging,
    get_calendar,
    get_completion_client,
    get_credentials,
    get_store,
    require_api_key,
)

# Load environment variables
load_dotenv()

# Create Typer app
app = typer.Typer(
    name="pocketpal",
    help="Personal assistant chat with profile-aware replies and local reminders",
    no_args_is_help=True,
    add_completion=True,
)
schedule_app = typer.Typer(help="Manage schedule items", no_args_is_help=True)
profile_app = typer.Typer(help="Show or edit the user profile", no_args_is_help=True)
history_app = typer.Typer(help="Browse saved conversations", no_args_is_help=True)
key_app = typer.Typer(help="Manage the stored API key", no_args_is_help=True)
app.add_typer(schedule_app, name="schedule")
app.add_typer(profile_app, name="profile")
app.add_typer(history_app, name="history")
app.add_typer(key_app, name="key")

# Console for rich output
console = Console()

_DATETIME_FORMATS = ["%Y-%m-%d %H:%M", "%Y-%m-%dT%H:%M", "%Y-%m-%d"]


@app.callback()
def _setup():
    configure_logging(console)


@asynccontextmanager
async def _assistant(require_key: bool = True) -> AsyncIterator[ChatOrchestrator]:
    """Open the store and run an orchestrator for the duration of a command."""
    credentials = require_api_key(console) if require_key else get_credentials()
    store = get_store()
    try:
        await store.connect()
    except PersistenceError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)

    client = get_completion_client()
    try:
        async with ChatOrchestrator(
            store,
            client,
            calendar=get_calendar(),
            credentials=credentials
        ) as assistant:
            yield assistant
    finally:
        await client.close()
        await store.disconnect()


def _print_message(message: Message) -> None:
    if message.is_user_message:
        console.print(f"[bold yellow]You:[/bold yellow] {escape(message.content)}")
    else:
        console.print(f"[bold green]PocketPal:[/bold green] {escape(message.content)}\n")


def _print_sessions(sessions: list[ChatSession]) -> None:
    if not sessions:
        console.print("[dim]No saved conversations[/dim]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim")
    table.add_column("Title", style="cyan")
    table.add_column("Messages", justify="right", width=8)
    table.add_column("Updated", style="green")

    for session in sessions:
        table.add_row(
            session.id,
            escape(session.title),
            str(len(session.messages)),
            session.updated_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


def _print_items(items: list[ScheduleItem]) -> None:
    if not items:
        console.print("[dim]No schedule items[/dim]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim")
    table.add_column("Title", style="cyan")
    table.add_column("When", style="green")
    table.add_column("Done", width=4)

    for item in items:
        table.add_row(
            item.id,
            escape(item.title),
            format_schedule_datetime(item.date_time),
            "x" if item.is_completed else "",
        )
    console.print(table)


def _report(outcome: SendOutcome, assistant: ChatOrchestrator) -> None:
    """Print what a send produced."""
    if outcome == SendOutcome.FAILED:
        error = assistant.ui_state.error or assistant.schedule_state.error
        console.print(f"[red]Error: {escape(error or 'Unknown error occurred')}[/red]")
    elif outcome in (SendOutcome.REPLIED, SendOutcome.LOCAL_COMMAND):
        _print_message(assistant.ui_state.messages[-1])


@app.command()
def chat():
    """Interactive chat with the assistant."""
    async def _chat():
        async with _assistant() as assistant:
            console.print("[bold cyan]PocketPal Chat[/bold cyan]")
            console.print(
                "[dim]Commands: /new, /history, /load <id>, /delete <id>, /quit[/dim]\n"
            )

            while True:
                try:
                    user_input = console.input("[bold yellow]You:[/bold yellow] ").strip()
                except (KeyboardInterrupt, EOFError):
                    console.print("\n[dim]Goodbye![/dim]")
                    break

                if not user_input:
                    continue

                if user_input.startswith("/"):
                    command, _, argument = user_input.partition(" ")
                    argument = argument.strip()

                    if command in ("/quit", "/exit"):
                        console.print("[dim]Goodbye![/dim]")
                        break
                    elif command == "/new":
                        await assistant.create_new_chat()
                        console.print("[dim]Started a new conversation[/dim]")
                    elif command == "/history":
                        _print_sessions(assistant.chat_history)
                    elif command == "/load" and argument:
                        if await assistant.load_chat_session(argument):
                            for message in assistant.ui_state.messages:
                                _print_message(message)
                        else:
                            console.print(f"[yellow]No conversation {escape(argument)}[/yellow]")
                    elif command == "/delete" and argument:
                        await assistant.delete_chat_session(argument)
                        console.print("[dim]Deleted[/dim]")
                    else:
                        console.print(f"[yellow]Unknown command: {escape(user_input)}[/yellow]")
                    continue

                with console.status("[dim]Thinking...[/dim]"):
                    outcome = await assistant.send_message(user_input)
                _report(outcome, assistant)
                if outcome == SendOutcome.FAILED:
                    await assistant.clear_error()

    asyncio.run(_chat())


@app.command()
def say(
    text: str = typer.Argument(..., help="Message to send")
):
    """Send one message in a new conversation and print the reply."""
    async def _say():
        async with _assistant() as assistant:
            outcome = await assistant.send_message(text)
            _report(outcome, assistant)
            if outcome == SendOutcome.FAILED:
                raise typer.Exit(code=1)

    asyncio.run(_say())


@app.command()
def parse(
    text: str = typer.Argument(..., help="Text to run through the command extractor")
):
    """Show how a message would be handled, without sending or saving anything."""
    command = extract_schedule_command(text)
    if command is None:
        console.print("[dim]Not a schedule command; would be sent to the assistant[/dim]")
        return

    table = Table(show_header=False, box=None)
    table.add_column("Field", style="bold cyan", width=12)
    table.add_column("Value")
    table.add_row("Title", escape(command.title))
    table.add_row("Description", escape(command.description) or "-")
    table.add_row("When", format_schedule_datetime(command.date_time))
    table.add_row("Date found", "yes" if command.date_found else "no (today)")
    table.add_row("Time found", "yes" if command.time_found else "no (current time)")
    console.print(table)


@schedule_app.command("list")
def schedule_list(
    upcoming: bool = typer.Option(
        False,
        "--upcoming",
        "-u",
        help="Only items that are not completed and not yet due"
    ),
    on: datetime | None = typer.Option(
        None,
        "--on",
        formats=["%Y-%m-%d"],
        help="Only items due on this day (YYYY-MM-DD)"
    )
):
    """List schedule items."""
    async def _list():
        store = get_store()
        try:
            await store.connect()
            if on is not None:
                items = await store.list_items_for_date(on.date())
            elif upcoming:
                items = await store.list_upcoming()
            else:
                items = await store.list_items()
            _print_items(items)
        except PersistenceError as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1)
        finally:
            await store.disconnect()

    asyncio.run(_list())


@schedule_app.command("add")
def schedule_add(
    title: str = typer.Argument(..., help="Item title"),
    at: datetime = typer.Option(
        ...,
        "--at",
        "-a",
        formats=_DATETIME_FORMATS,
        help="Due date and time (YYYY-MM-DD HH:MM)"
    ),
    description: str = typer.Option(
        "",
        "--description",
        "-d",
        help="Item description"
    )
):
    """Add a schedule item (also added to the calendar when configured)."""
    async def _add():
        async with _assistant(require_key=False) as assistant:
            item_id = await assistant.add_schedule_item(title, description, at)
            if item_id is None:
                console.print(f"[red]Error: {assistant.schedule_state.error}[/red]")
                raise typer.Exit(code=1)
            console.print(
                f"[green]Added \"{escape(title)}\" for {format_schedule_datetime(at)}[/green]"
            )
            console.print(f"[dim]{item_id}[/dim]")

    asyncio.run(_add())


@schedule_app.command("done")
def schedule_done(
    item_id: str = typer.Argument(..., help="Item ID"),
    undo: bool = typer.Option(False, "--undo", help="Mark as not completed")
):
    """Mark a schedule item as completed."""
    async def _done():
        async with _assistant(require_key=False) as assistant:
            await assistant.mark_schedule_item_completed(item_id, not undo)
            if assistant.schedule_state.error:
                console.print(f"[red]Error: {assistant.schedule_state.error}[/red]")
                raise typer.Exit(code=1)
            console.print("[green]Updated[/green]")

    asyncio.run(_done())


@schedule_app.command("delete")
def schedule_delete(
    item_id: str = typer.Argument(..., help="Item ID")
):
    """Delete a schedule item."""
    async def _delete():
        async with _assistant(require_key=False) as assistant:
            await assistant.delete_schedule_item(item_id)
            if assistant.schedule_state.error:
                console.print(f"[red]Error: {assistant.schedule_state.error}[/red]")
                raise typer.Exit(code=1)
            console.print("[green]Deleted[/green]")

    asyncio.run(_delete())


@profile_app.command("show")
def profile_show():
    """Show the user profile and preferences."""
    async def _show():
        store = get_store()
        try:
            await store.connect()
            profile = await store.get_profile()

            table = Table(show_header=False, box=None)
            table.add_column("Field", style="bold cyan", width=12)
            table.add_column("Value")
            table.add_row("Name", escape(profile.name) or "-")
            table.add_row("Birthday", escape(profile.birthday) or "-")
            table.add_row("Occupation", escape(profile.occupation) or "-")
            table.add_row("Hobbies", escape(profile.hobbies) or "-")
            for key, value in profile.preference_map().items():
                table.add_row(f"[dim]{escape(key)}[/dim]", escape(str(value)))
            console.print(Panel(table, title="Profile", border_style="cyan"))
        except PersistenceError as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1)
        finally:
            await store.disconnect()

    asyncio.run(_show())


@profile_app.command("set")
def profile_set(
    name: str | None = typer.Option(None, "--name", help="Your name"),
    birthday: str | None = typer.Option(None, "--birthday", help="Your birthday"),
    occupation: str | None = typer.Option(None, "--occupation", help="Your occupation"),
    hobbies: str | None = typer.Option(None, "--hobbies", help="Your hobbies")
):
    """Update profile fields; fields that are not given keep their value."""
    async def _set():
        async with _assistant(require_key=False) as assistant:
            current = assistant.profile_state
            await assistant.update_profile(
                name=current.name if name is None else name,
                birthday=current.birthday if birthday is None else birthday,
                occupation=current.occupation if occupation is None else occupation,
                hobbies=current.hobbies if hobbies is None else hobbies,
            )
            if assistant.profile_state.error:
                console.print(f"[red]Error: {assistant.profile_state.error}[/red]")
                raise typer.Exit(code=1)
            console.print("[green]Profile updated[/green]")

    asyncio.run(_set())


@profile_app.command("pref")
def profile_pref(
    key: str = typer.Argument(..., help="Preference key"),
    value: str | None = typer.Argument(None, help="New value (omit to show the current one)")
):
    """Show or set a single preference."""
    async def _pref():
        async with _assistant(require_key=False) as assistant:
            if value is None:
                current = await assistant.get_user_preference(key)
                console.print(escape(current) if current else "[dim]not set[/dim]")
                return
            await assistant.set_user_preference(key, value)
            if assistant.profile_state.error:
                console.print(f"[red]Error: {assistant.profile_state.error}[/red]")
                raise typer.Exit(code=1)
            console.print(f"[green]Set {escape(key)}[/green]")

    asyncio.run(_pref())


@history_app.command("list")
def history_list():
    """List saved conversations, most recent first."""
    async def _list():
        store = get_store()
        try:
            await store.connect()
            _print_sessions(await store.list_sessions())
        except PersistenceError as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1)
        finally:
            await store.disconnect()

    asyncio.run(_list())


@history_app.command("show")
def history_show(
    session_id: str = typer.Argument(..., help="Conversation ID")
):
    """Print a saved conversation."""
    async def _show():
        store = get_store()
        try:
            await store.connect()
            session = await store.get_session(session_id)
            if session is None:
                console.print(f"[red]Error: No conversation {escape(session_id)}[/red]")
                raise typer.Exit(code=1)

            console.print(f"[bold cyan]{escape(session.title)}[/bold cyan]\n")
            for message in session.messages:
                _print_message(message)
        except PersistenceError as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1)
        finally:
            await store.disconnect()

    asyncio.run(_show())


@history_app.command("delete")
def history_delete(
    session_id: str = typer.Argument(..., help="Conversation ID")
):
    """Delete a saved conversation."""
    async def _delete():
        async with _assistant(require_key=False) as assistant:
            await assistant.delete_chat_session(session_id)
            if assistant.ui_state.error:
                console.print(f"[red]Error: {assistant.ui_state.error}[/red]")
                raise typer.Exit(code=1)
            console.print("[green]Deleted[/green]")

    asyncio.run(_delete())


@key_app.command("set")
def key_set(
    value: str = typer.Option(
        ...,
        "--value",
        prompt="API key",
        hide_input=True,
        help="OpenAI API key"
    )
):
    """Store the API key in the .env file."""
    get_credentials().set(value.strip())
    console.print("[green]API key stored[/green]")


@key_app.command("clear")
def key_clear():
    """Remove the API key from the .env file."""
    get_credentials().clear()
    console.print("[green]API key removed[/green]")


@app.command()
def health():
    """Check store access, API key and calendar configuration."""
    async def _health():
        all_healthy = True

        store = get_store()
        try:
            await store.connect()
            sessions = await store.list_sessions()
            upcoming = await store.list_upcoming()
            console.print(f"[green]+[/green] Store ({store.backend_type}): OK")
            console.print(
                f"[dim]  {len(sessions)} conversations, {len(upcoming)} upcoming items "
                f"(today is {date.today():%a, %b %d})[/dim]"
            )
        except PersistenceError as e:
            console.print(f"[red]x[/red] Store: FAILED ({e})")
            all_healthy = False
        finally:
            await store.disconnect()

        if get_credentials().has():
            console.print("[green]+[/green] OpenAI API key: SET")
        else:
            console.print("[yellow]![/yellow] OpenAI API key: NOT SET")

        if get_calendar().has_permission():
            console.print("[green]+[/green] Calendar: WRITABLE")
        else:
            console.print("[yellow]![/yellow] Calendar: NOT CONFIGURED")

        if not all_healthy:
            raise typer.Exit(code=1)

    asyncio.run(_health())


def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
