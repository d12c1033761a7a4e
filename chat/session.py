"""
The single orchestration point for a chat session.

Owns the in-memory message sequence and the pending-request state, and
drives the view, the stores and the remote bridge:

    submit(text) -> user Message -> AWAITING_REPLY -> bridge.send
        success -> assistant Message (persisted) -> IDLE
        failure -> system notice (transient)     -> IDLE

Everything runs on one event loop. The only suspension point inside an
exchange is the bridge call, and ``state`` guarantees at most one is in
flight.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from chat.bridge import RemoteBridge
from chat.core import prompt
from chat.core.errors import (
    AttachmentError,
    ChatError,
    NetworkError,
    UpstreamError,
    ValidationError,
)
from chat.core.interfaces import ChatBackend, ChatView, KeyValueStore, SpeechInput, SpeechOutput
from chat.core.models import (
    SUPPORTED_FILE_TYPES,
    Attachment,
    Message,
    Role,
    SessionState,
)
from chat.core.storage import JsonFileStore
from chat.history import HistoryStore
from chat.preferences import PreferenceStore
from chat.renderer import MessageRenderer
from config.settings import Settings, get_settings


logger = logging.getLogger("geminichat.session")


class SessionController:
    def __init__(
        self,
        *,
        backend: ChatBackend,
        view: ChatView,
        store: KeyValueStore,
        history_limit: int = 100,
        max_file_size: int = 5 * 1024 * 1024,
        speech_output: Optional[SpeechOutput] = None,
        speech_input: Optional[SpeechInput] = None,
    ) -> None:
        self.backend = backend
        self.view = view
        self.store = store
        self.max_file_size = max_file_size
        self.speech_output = speech_output
        self.speech_input = speech_input
        self.preferences = PreferenceStore(store, view=view, speech=speech_output)
        self.history = HistoryStore(
            store,
            limit=history_limit,
            retain=lambda: bool(self.preferences.get("save_history", True)),
        )
        self.state = SessionState.IDLE
        self.input_buffer = ""
        self._messages: List[Message] = []

    @property
    def messages(self) -> Tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def busy(self) -> bool:
        return self.state is SessionState.AWAITING_REPLY

    @property
    def renderer(self) -> MessageRenderer:
        return MessageRenderer.for_preferences(
            bool(self.preferences.get("markdown_enabled", True))
        )

    # -- lifecycle -----------------------------------------------------

    async def start(self) -> None:
        """Load preferences and history, probe the backend, greet."""
        self.preferences.load()
        self._messages = []
        self.view.clear_messages()
        for message in self.history.load():
            self._display(message)
        logger.info("Session started with %s stored messages", len(self._messages))

        try:
            health = await self.backend.health()
        except ChatError as exc:
            logger.warning("Server health check failed: %s", exc)
            self._add_notice(prompt.SERVER_UNREACHABLE)
        else:
            if health.get("status") != "ok":
                logger.warning("Server health check reported %s", health)
                self._add_notice(prompt.SERVER_DEGRADED)

        if not any(m.role is not Role.SYSTEM for m in self._messages):
            self._add(Message(Role.ASSISTANT, prompt.GREETING))

    def clear(self) -> bool:
        if self.busy:
            logger.info("Clear ignored while a reply is pending")
            return False
        self._messages = []
        self.history.clear()
        self.view.clear_messages()
        self._add(Message(Role.ASSISTANT, prompt.GREETING))
        return True

    async def logout(self) -> bool:
        """Wipe every stored blob and start over with defaults."""
        if self.busy:
            return False
        self.store.clear()
        self.input_buffer = ""
        self.view.set_input("")
        await self.start()
        return True

    # -- input events --------------------------------------------------

    def set_input(self, text: str) -> None:
        self.input_buffer = text
        self.view.set_input(text)

    async def submit(self, text: Optional[str] = None) -> bool:
        if text is None:
            text = self.input_buffer
        text = text.strip()
        if not text or self.busy:
            return False
        try:
            self.backend.check(text)
        except ValidationError as exc:
            self.view.show_error(str(exc))
            return False

        self._add(Message(Role.USER, text))
        self.set_input("")
        await self._exchange(text)
        return True

    async def submit_attachment(self, attachment: Attachment) -> bool:
        if self.busy:
            return False
        prompt_text = prompt.attachment_prompt(attachment.name)
        try:
            self._check_attachment(attachment)
            self.backend.check(prompt_text)
        except ValidationError as exc:
            self.view.show_error(str(exc))
            return False

        logger.info("Attachment %s (%s bytes) submitted", attachment.name, attachment.size)
        self._add(Message(Role.USER, prompt.attachment_label(attachment.name)))
        await self._exchange(prompt_text)
        return True

    def _check_attachment(self, attachment: Attachment) -> None:
        if attachment.content_type not in SUPPORTED_FILE_TYPES:
            raise AttachmentError(prompt.ERROR_MESSAGES["FILE_TYPE"])
        if attachment.size > self.max_file_size:
            raise AttachmentError(prompt.ERROR_MESSAGES["FILE_SIZE"])

    async def dictate(self) -> bool:
        """Fill the input buffer from the speech input engine."""
        if self.speech_input is None or not self.speech_input.available:
            self.view.show_error(prompt.ERROR_MESSAGES["VOICE_UNAVAILABLE"])
            return False
        try:
            transcript = await self.speech_input.listen(
                str(self.preferences.get("language", "en"))
            )
        except ChatError as exc:
            logger.warning("Speech recognition error: %s", exc)
            self.view.show_error("Speech recognition failed. Please try again.")
            return False
        self.set_input(transcript)
        return True

    # -- response events -----------------------------------------------

    def receive_reply(self, text: str) -> None:
        self._finish()
        message = Message(Role.ASSISTANT, text)
        self._add(message)
        if self.preferences.get("voice_output") and self.speech_output is not None:
            if self.speech_output.available:
                self.speech_output.speak(text, str(self.preferences.get("language", "en")))

    def receive_failure(self, error: ChatError) -> None:
        logger.error("Error generating response: %s", error)
        self._finish()
        self._add_notice(prompt.CONNECTION_FAILURE)

    # -- preferences ---------------------------------------------------

    def update_preferences(
        self, partial: Optional[Mapping[str, Any]] = None, **changes: Any
    ) -> Dict[str, Any]:
        return self.preferences.update(partial, **changes)

    def reset_preferences(self) -> Dict[str, Any]:
        return self.preferences.reset()

    def export_preferences(self) -> str:
        return self.preferences.export()

    def import_preferences(self, blob: str) -> bool:
        ok = self.preferences.import_(blob)
        if not ok:
            self.view.show_error(prompt.ERROR_MESSAGES["SETTINGS_IMPORT"])
        return ok

    # -- internals -----------------------------------------------------

    async def _exchange(self, prompt_text: str) -> None:
        self.state = SessionState.AWAITING_REPLY
        if self.preferences.get("typing_indicator", True):
            self.view.show_typing()
        try:
            reply = await self.backend.send(prompt_text)
        except (NetworkError, UpstreamError) as exc:
            self.receive_failure(exc)
        except BaseException:
            self._finish()
            raise
        else:
            self.receive_reply(reply)

    def _finish(self) -> None:
        self.view.hide_typing()
        self.state = SessionState.IDLE

    def _add(self, message: Message) -> None:
        self._display(message)
        self.history.append(message)

    def _add_notice(self, text: str) -> None:
        self._display(Message(Role.SYSTEM, text))

    def _display(self, message: Message) -> None:
        self._messages.append(message)
        self.view.add_message(message, self.renderer.render(message.text))


def build_session(
    view: ChatView,
    *,
    settings: Optional[Settings] = None,
    store: Optional[KeyValueStore] = None,
    speech_output: Optional[SpeechOutput] = None,
    speech_input: Optional[SpeechInput] = None,
) -> SessionController:
    settings = settings or get_settings()
    bridge = RemoteBridge(
        settings.chat_api_url,
        max_message_length=settings.max_message_length,
        timeout=settings.message_timeout,
    )
    return SessionController(
        backend=bridge,
        view=view,
        store=store if store is not None else JsonFileStore(settings.storage_path),
        history_limit=settings.history_limit,
        max_file_size=settings.max_file_size,
        speech_output=speech_output,
        speech_input=speech_input,
    )
