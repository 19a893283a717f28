"""
BranchChat CLI - command-line interface for BranchChat.

Server management, account setup and a terminal chat front end that
drives the same ChatClient a graphical client would.
"""

import uuid
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from branchchat.auth import DatabaseAuthProvider
from branchchat.client.session import ChatClient
from branchchat.client.state import ClientState
from branchchat.config import settings
from branchchat.db.connection import db_session
from branchchat.exceptions import ChatError
from branchchat.logging_config import setup_logging
from branchchat.responders import create_responder_from_settings

app = typer.Typer(
    name="branchchat",
    help="BranchChat - branchable conversations with language models",
    no_args_is_help=True,
)

console = Console()

CHAT_HELP = """[bold]Commands:[/bold]
  /new                 start a new conversation
  /list                list conversations
  /open <n>            open conversation n
  /branches            list branches of this conversation
  /switch <n>          switch to branch n
  /edit <n> <text>     branch from message n with new text
  /rename <text>       rename the current branch
  /delete <n>          delete branch n
  /help                show this help
  /quit                exit"""


def _init_logging() -> None:
    try:
        setup_logging(context="cli")
    except PermissionError:
        import logging

        logging.basicConfig(level=logging.INFO)


@app.command()
def serve(
    host: str = typer.Option(settings.api_host, help="Host to bind to"),
    port: int = typer.Option(settings.api_port, help="Port to bind to"),
    reload: bool = typer.Option(False, help="Enable auto-reload"),
) -> None:
    """
    Start the FastAPI server.

    Runs the BranchChat API, including the server-mediated /chat endpoint.
    """
    import uvicorn

    console.print("[bold green]Starting BranchChat API server...[/bold green]")
    console.print(f"  Host: {host}")
    console.print(f"  Port: {port}")
    console.print(f"  Reload: {reload}")
    console.print(f"\n  API docs: http://{host}:{port}/docs")

    uvicorn.run(
        "branchchat.api.app:app",
        host=host,
        port=port,
        reload=reload,
    )


@app.command("init-db")
def init_db_command() -> None:
    """Create all tables directly from the models (use Alembic in production)."""
    from branchchat.db.connection import init_db

    init_db()
    console.print("[green]✓ Database tables created[/green]")


@app.command()
def signup(
    email: str = typer.Argument(..., help="Account email"),
    password: str = typer.Option(
        ..., prompt=True, hide_input=True, confirmation_prompt=True
    ),
    full_name: Optional[str] = typer.Option(None, help="Display name"),
) -> None:
    """Create an account."""
    _init_logging()
    try:
        with db_session() as session:
            user = DatabaseAuthProvider(session).sign_up(
                email, password, full_name=full_name
            )
            user_id = user.id
    except ChatError as e:
        console.print(f"[bold red]Error:[/bold red] {e.message}")
        raise typer.Exit(1)

    console.print(f"[green]✓ Account created[/green] {email} ({user_id})")


@app.command()
def conversations(
    email: str = typer.Argument(..., help="Account email"),
    password: str = typer.Option(..., prompt=True, hide_input=True),
) -> None:
    """List your conversations."""
    _init_logging()
    with db_session() as session:
        auth = DatabaseAuthProvider(session)
        try:
            auth.sign_in(email, password)
            user = auth.get_current_user()
            rows = user.conversations if user else []
        except ChatError as e:
            console.print(f"[bold red]Error:[/bold red] {e.message}")
            raise typer.Exit(1)

        if not rows:
            console.print("[yellow]No conversations yet[/yellow]")
            return

        table = Table(title="Conversations")
        table.add_column("#", justify="right")
        table.add_column("Title")
        table.add_column("Branches", justify="right")
        table.add_column("Created")
        ordered = sorted(rows, key=lambda c: c.created_at, reverse=True)
        for index, conversation in enumerate(ordered, start=1):
            table.add_row(
                str(index),
                conversation.title,
                str(len(conversation.branches)),
                conversation.created_at.strftime("%Y-%m-%d %H:%M"),
            )
        console.print(table)


def _print_notice(client: ChatClient) -> None:
    notice = client.state.error
    if notice is None:
        return
    console.print(f"[bold red]Error:[/bold red] {notice.message}")
    if notice.hint:
        console.print(f"  [yellow]{notice.hint}[/yellow]")
    client.state.dismiss_error()


def _print_messages(state: ClientState) -> None:
    for index, message in enumerate(state.messages, start=1):
        style = "cyan" if message.role == "user" else "green"
        console.print(f"[{style}]{index}. {message.role}:[/{style}] {message.content}")


def _print_branches(state: ClientState) -> None:
    for index, branch in enumerate(state.branches, start=1):
        marker = "*" if branch.id == state.active_branch_id else " "
        console.print(f"{marker} {index}. {branch.display_title}")


def _print_conversations(state: ClientState) -> None:
    for index, conversation in enumerate(state.conversations, start=1):
        marker = "*" if conversation.id == state.active_conversation_id else " "
        console.print(f"{marker} {index}. {conversation.title}")


def _pick(items: list, arg: str) -> Optional[uuid.UUID]:
    """Resolve a 1-based number from a listing to the item's id."""
    try:
        number = int(arg)
    except ValueError:
        number = 0
    # Negative numbers would index from the end of the list
    if not 1 <= number <= len(items):
        console.print(f"[yellow]No item {arg!r}[/yellow]")
        return None
    return items[number - 1].id


def _handle_command(client: ChatClient, line: str) -> bool:
    """Run one slash command. Returns False when the session should end."""
    state = client.state
    command, _, arg = line.partition(" ")
    arg = arg.strip()

    if command in ("/quit", "/exit"):
        return False
    if command == "/help":
        console.print(CHAT_HELP)
    elif command == "/new":
        if client.new_chat():
            console.print("[green]✓ New conversation[/green]")
    elif command == "/list":
        client.load_conversations()
        _print_conversations(state)
    elif command == "/open":
        conversation_id = _pick(state.conversations, arg)
        if conversation_id and client.select_conversation(conversation_id):
            _print_messages(state)
    elif command == "/branches":
        client.reload_branches()
        _print_branches(state)
    elif command == "/switch":
        branch_id = _pick(state.branches, arg)
        if branch_id and client.select_branch(branch_id):
            _print_messages(state)
    elif command == "/edit":
        number, _, text = arg.partition(" ")
        message_id = _pick(state.messages, number)
        if message_id and client.edit_message(message_id, text):
            _print_messages(state)
    elif command == "/rename":
        if state.active_branch_id:
            client.rename_branch(state.active_branch_id, arg)
    elif command == "/delete":
        branch_id = _pick(state.branches, arg)
        if branch_id and client.delete_branch(branch_id):
            console.print("[green]✓ Branch deleted[/green]")
    else:
        console.print(f"[yellow]Unknown command {command}[/yellow] (try /help)")
    return True


@app.command()
def chat(
    email: str = typer.Argument(..., help="Account email"),
    password: str = typer.Option(..., prompt=True, hide_input=True),
    provider: Optional[str] = typer.Option(
        None, help="Responder provider: openai, anthropic or http"
    ),
) -> None:
    """
    Chat in the terminal.

    Plain lines are sent to the active branch; lines starting with "/" are
    commands (see /help).
    """
    _init_logging()

    config = settings
    if provider:
        config = settings.model_copy(update={"responder_provider": provider})
    try:
        responder = create_responder_from_settings(config)
    except ValueError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    with db_session() as session:
        auth = DatabaseAuthProvider(session)
        try:
            auth.sign_in(email, password)
        except ChatError as e:
            console.print(f"[bold red]Error:[/bold red] {e.message}")
            raise typer.Exit(1)

        client = ChatClient(session, responder, auth)
        client.load_conversations()
        if client.state.active_conversation_id is None:
            client.new_chat()

        console.print(
            f"[bold blue]Signed in as[/bold blue] {email}. Type /help for commands."
        )
        _print_messages(client.state)

        while True:
            try:
                line = console.input("[bold]> [/bold]").strip()
            except (EOFError, KeyboardInterrupt):
                break
            if not line:
                continue
            if line.startswith("/"):
                keep_going = _handle_command(client, line)
            else:
                keep_going = True
                reply = client.send_message(line)
                if reply is not None:
                    console.print(f"[green]assistant:[/green] {reply.content}")
            _print_notice(client)
            if not keep_going:
                break


if __name__ == "__main__":
    app()
