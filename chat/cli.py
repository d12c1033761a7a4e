from __future__ import annotations

import asyncio
import mimetypes
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import click

from chat.core.models import Attachment, Message, Role, timestamp_label
from chat.core.storage import InMemoryStore, JsonFileStore
from chat.session import SessionController, build_session
from config.settings import get_settings


_STYLES = {
    Role.USER: dict(fg="cyan", bold=True),
    Role.ASSISTANT: dict(fg="green", bold=True),
    Role.SYSTEM: dict(fg="yellow"),
}
_LABELS = {Role.USER: "You", Role.ASSISTANT: "AI", Role.SYSTEM: "System"}

HELP = """\
Commands:
  /clear                 clear the conversation
  /attach PATH           attach a file
  /settings              show current settings
  /set KEY=VALUE         change a setting
  /reset-settings        restore default settings
  /export-settings PATH  write settings to a JSON file
  /import-settings PATH  load settings from a JSON file
  /logout                wipe stored settings and history
  /quit                  leave"""


class ConsoleView:
    """Terminal rendering of the chat; prints plain text, not markup."""

    def __init__(self) -> None:
        self.preferences: Dict[str, Any] = {}

    def apply_preferences(self, preferences: Mapping[str, Any]) -> None:
        self.preferences = dict(preferences)

    def add_message(self, message: Message, html: str) -> None:
        stamp = timestamp_label(message.created_at, self.preferences.get("timestamp_format"))
        click.secho(f"[{stamp}] {_LABELS[message.role]}: ", nl=False, **_STYLES[message.role])
        click.echo(message.text)

    def show_typing(self) -> None:
        click.secho("AI is typing...", dim=True)

    def hide_typing(self) -> None:
        pass

    def show_error(self, text: str) -> None:
        click.secho(f"Error: {text}", fg="red", err=True)

    def clear_messages(self) -> None:
        click.echo("-" * 40)

    def set_input(self, text: str) -> None:
        if text:
            click.echo(f"(input) {text}")


def parse_value(raw: str) -> Any:
    lowered = raw.strip().lower()
    if lowered in ("true", "yes", "on"):
        return True
    if lowered in ("false", "no", "off"):
        return False
    for cast in (int, float):
        try:
            return cast(raw)
        except ValueError:
            continue
    return raw.strip()


def read_attachment(path: Path) -> Attachment:
    content_type, _ = mimetypes.guess_type(path.name)
    return Attachment(
        name=path.name,
        content_type=content_type or "application/octet-stream",
        data=path.read_bytes(),
    )


async def handle_command(session: SessionController, line: str) -> bool:
    """Run one slash command. Returns False when the user wants to quit."""
    command, _, arg = line.partition(" ")
    arg = arg.strip()
    if command in ("/quit", "/exit"):
        return False
    if command == "/help":
        click.echo(HELP)
    elif command == "/clear":
        if click.confirm("Are you sure you want to clear the chat history?"):
            session.clear()
    elif command == "/attach":
        path = Path(arg).expanduser()
        if not path.is_file():
            session.view.show_error(f"No such file: {arg}")
        else:
            await session.submit_attachment(read_attachment(path))
    elif command == "/settings":
        click.echo(session.export_preferences())
    elif command == "/set":
        key, sep, value = arg.partition("=")
        if not sep or not key.strip():
            session.view.show_error("Usage: /set KEY=VALUE")
        else:
            session.update_preferences({key.strip(): parse_value(value)})
    elif command == "/reset-settings":
        session.reset_preferences()
    elif command == "/export-settings":
        try:
            Path(arg or "chatbot_settings.json").write_text(
                session.export_preferences(), encoding="utf-8"
            )
        except OSError as exc:
            session.view.show_error(str(exc))
    elif command == "/import-settings":
        try:
            blob = Path(arg).read_text(encoding="utf-8")
        except OSError as exc:
            session.view.show_error(str(exc))
        else:
            session.import_preferences(blob)
    elif command == "/logout":
        if click.confirm("Are you sure you want to logout?"):
            await session.logout()
    else:
        session.view.show_error(f"Unknown command {command}; try /help")
    return True


async def run_console(session: SessionController) -> None:
    await session.start()
    try:
        while True:
            try:
                line = click.prompt("", prompt_suffix="> ", default="", show_default=False)
            except (EOFError, click.Abort):
                break
            if line.startswith("/"):
                if not await handle_command(session, line):
                    break
                continue
            await session.submit(line)
    finally:
        backend_close = getattr(session.backend, "aclose", None)
        if backend_close is not None:
            await backend_close()


@click.command()
@click.option("--api-url", envvar="CHAT_API_URL", help="Base URL of the chat proxy.")
@click.option(
    "--storage",
    type=click.Path(dir_okay=False, path_type=Path),
    help="JSON file holding settings and history.",
)
@click.option("--ephemeral", is_flag=True, help="Keep settings and history in memory only.")
def main(api_url: Optional[str], storage: Optional[Path], ephemeral: bool) -> None:
    """Chat with the Gemini proxy from the terminal."""
    settings = get_settings()
    if api_url:
        settings.chat_api_url = api_url
    if ephemeral:
        store = InMemoryStore()
    else:
        store = JsonFileStore(storage or settings.storage_path)
    session = build_session(ConsoleView(), settings=settings, store=store)
    asyncio.run(run_console(session))


if __name__ == "__main__":
    main()
