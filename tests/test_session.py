import asyncio
import json

import pytest

from chat.core import prompt
from chat.core.errors import BadStatusError, MalformedPayloadError, NetworkError
from chat.core.models import Attachment, Role, SessionState
from chat.history import STORAGE_KEY as HISTORY_KEY
from chat.preferences import STORAGE_KEY as PREFS_KEY
from chat.session import SessionController

from tests.fakes import FakeBackend, FakeSpeech


def roles(session):
    return [m.role for m in session.messages]


def persisted(store):
    raw = store.get(HISTORY_KEY)
    return json.loads(raw) if raw else []


@pytest.mark.asyncio
async def test_start_seeds_greeting(session, surface, store):
    await session.start()
    assert [m.text for m in session.messages] == [prompt.GREETING]
    assert surface.messages[0].message.role is Role.ASSISTANT
    assert persisted(store)[0]["message"] == prompt.GREETING


@pytest.mark.asyncio
async def test_start_restores_history_without_greeting(session, store):
    await session.start()
    await session.submit("hello")

    restored = SessionController(backend=FakeBackend(), view=session.view, store=store)
    await restored.start()
    assert [m.text for m in restored.messages] == [prompt.GREETING, "hello", "Hi there!"]
    assert len(persisted(store)) == 3


@pytest.mark.asyncio
async def test_start_warns_when_server_unreachable(surface, store):
    session = SessionController(
        backend=FakeBackend(health=NetworkError("down")), view=surface, store=store
    )
    await session.start()
    assert [m.text for m in session.messages] == [prompt.SERVER_UNREACHABLE, prompt.GREETING]
    assert [r["message"] for r in persisted(store)] == [prompt.GREETING]


@pytest.mark.asyncio
async def test_start_warns_when_server_degraded(surface, store):
    session = SessionController(
        backend=FakeBackend(health={"status": "starting"}), view=surface, store=store
    )
    await session.start()
    assert session.messages[0].text == prompt.SERVER_DEGRADED
    assert session.messages[0].role is Role.SYSTEM


@pytest.mark.asyncio
async def test_submit_appends_user_then_assistant(session, backend, surface, store):
    await session.start()
    before = len(session.messages)
    assert await session.submit("  hello  ") is True

    assert backend.sent == ["hello"]
    assert roles(session)[before:] == [Role.USER, Role.ASSISTANT]
    assert [m.text for m in session.messages[before:]] == ["hello", "Hi there!"]
    assert session.state is SessionState.IDLE
    assert surface.typing is False
    assert [r["type"] for r in persisted(store)] == ["ai", "user", "ai"]


@pytest.mark.asyncio
async def test_user_message_recorded_before_bridge_call(session, backend):
    backend.gate = asyncio.Event()
    task = asyncio.create_task(session.submit("hello"))
    for _ in range(3):
        await asyncio.sleep(0)

    assert roles(session) == [Role.USER]
    assert session.state is SessionState.AWAITING_REPLY
    assert session.view.typing is True

    backend.gate.set()
    assert await task is True
    assert roles(session) == [Role.USER, Role.ASSISTANT]


@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["", "   ", "\n\t"])
async def test_blank_input_is_a_no_op(session, backend, text):
    assert await session.submit(text) is False
    assert session.messages == ()
    assert backend.sent == []


@pytest.mark.asyncio
async def test_submit_while_awaiting_reply_is_rejected(session, backend):
    backend.gate = asyncio.Event()
    first = asyncio.create_task(session.submit("first"))
    for _ in range(3):
        await asyncio.sleep(0)

    assert session.busy
    assert await session.submit("second") is False
    assert session.clear() is False
    assert backend.sent == ["first"]

    backend.gate.set()
    assert await first is True
    assert await session.submit("second") is True
    assert backend.sent == ["first", "second"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [
        NetworkError("refused"),
        BadStatusError("Failed", status_code=502, details="bad gateway"),
        MalformedPayloadError("Invalid response format"),
    ],
)
async def test_failure_adds_transient_system_notice(surface, store, error):
    session = SessionController(backend=FakeBackend(error=error), view=surface, store=store)
    assert await session.submit("hello") is True

    assert roles(session) == [Role.USER, Role.SYSTEM]
    assert session.messages[-1].text == prompt.CONNECTION_FAILURE
    assert session.state is SessionState.IDLE
    assert surface.typing is False
    assert [r["type"] for r in persisted(store)] == ["user"]


@pytest.mark.asyncio
async def test_unexpected_error_still_returns_to_idle(surface, store):
    session = SessionController(
        backend=FakeBackend(), view=surface, store=store
    )

    async def explode(text):
        raise RuntimeError("bug")

    session.backend.send = explode
    with pytest.raises(RuntimeError):
        await session.submit("hello")
    assert session.state is SessionState.IDLE
    assert surface.typing is False


@pytest.mark.asyncio
async def test_oversized_input_shows_banner_and_keeps_buffer(surface, store):
    backend = FakeBackend(max_length=10)
    session = SessionController(backend=backend, view=surface, store=store)
    session.set_input("x" * 11)

    assert await session.submit() is False
    assert session.messages == ()
    assert backend.sent == []
    assert session.input_buffer == "x" * 11
    assert len(surface.errors) == 1


@pytest.mark.asyncio
async def test_submit_uses_and_clears_input_buffer(session, backend, surface):
    session.set_input("from the box")
    assert await session.submit() is True
    assert backend.sent == ["from the box"]
    assert session.input_buffer == ""
    assert surface.input_text == ""


@pytest.mark.asyncio
async def test_reply_is_spoken_when_voice_output_enabled(session, speech):
    session.update_preferences(voice_output=True, language="de")
    await session.submit("hello")
    assert speech.spoken == [("Hi there!", "de")]


@pytest.mark.asyncio
async def test_reply_is_not_spoken_by_default(session, speech):
    await session.submit("hello")
    assert speech.spoken == []


@pytest.mark.asyncio
async def test_unavailable_speech_engine_is_skipped(surface, store):
    speech = FakeSpeech(available=False)
    session = SessionController(
        backend=FakeBackend(), view=surface, store=store, speech_output=speech
    )
    session.update_preferences(voice_output=True)
    await session.submit("hello")
    assert speech.spoken == []


@pytest.mark.asyncio
async def test_typing_indicator_preference(session, backend, surface):
    session.update_preferences(typing_indicator=False)
    backend.gate = asyncio.Event()
    task = asyncio.create_task(session.submit("hello"))
    for _ in range(3):
        await asyncio.sleep(0)
    assert surface.typing is False
    backend.gate.set()
    await task


@pytest.mark.asyncio
async def test_clear_empties_history_and_reseeds_greeting(session, store, surface):
    await session.start()
    await session.submit("hello")
    assert session.clear() is True

    assert [m.text for m in session.messages] == [prompt.GREETING]
    assert [r["message"] for r in persisted(store)] == [prompt.GREETING]
    assert [r.message.text for r in surface.messages] == [prompt.GREETING]


@pytest.mark.asyncio
async def test_history_disabled_keeps_memory_only(session, store):
    session.update_preferences(save_history=False)
    await session.submit("hello")
    assert len(session.messages) == 2
    assert persisted(store) == []


@pytest.mark.asyncio
async def test_history_respects_retention_limit(surface, store):
    session = SessionController(
        backend=FakeBackend(replies=[f"r{i}" for i in range(10)]),
        view=surface,
        store=store,
        history_limit=4,
    )
    for i in range(5):
        await session.submit(f"q{i}")
    assert len(session.messages) == 10
    assert [r["message"] for r in persisted(store)] == ["q3", "r3", "q4", "r4"]


@pytest.mark.asyncio
async def test_attachment_sends_describing_prompt(session, backend):
    attachment = Attachment("notes.txt", "text/plain", b"hello")
    assert await session.submit_attachment(attachment) is True
    assert session.messages[0].text == "[File Attached: notes.txt]"
    assert backend.sent == [prompt.attachment_prompt("notes.txt")]
    assert roles(session) == [Role.USER, Role.ASSISTANT]


@pytest.mark.asyncio
async def test_attachment_type_and_size_are_checked(surface, store, backend):
    session = SessionController(
        backend=backend, view=surface, store=store, max_file_size=4
    )
    assert await session.submit_attachment(Attachment("a.exe", "application/x-msdownload", b"")) is False
    assert await session.submit_attachment(Attachment("big.txt", "text/plain", b"12345")) is False
    assert backend.sent == []
    assert session.messages == ()
    assert surface.errors == [
        prompt.ERROR_MESSAGES["FILE_TYPE"],
        prompt.ERROR_MESSAGES["FILE_SIZE"],
    ]


@pytest.mark.asyncio
async def test_attachment_with_overlong_prompt_is_rejected_up_front(surface, store):
    backend = FakeBackend(max_length=100)
    session = SessionController(backend=backend, view=surface, store=store)
    name = "a" * 80 + ".txt"
    assert len(prompt.attachment_prompt(name)) > 100

    assert await session.submit_attachment(Attachment(name, "text/plain", b"x")) is False
    assert session.messages == ()
    assert backend.sent == []
    assert persisted(store) == []
    assert session.state is SessionState.IDLE
    assert len(surface.errors) == 1


@pytest.mark.asyncio
async def test_error_banners_expire(session, surface, clock):
    session.import_preferences("not json")
    assert surface.errors == [prompt.ERROR_MESSAGES["SETTINGS_IMPORT"]]
    clock.now += 5.0
    assert surface.errors == []


@pytest.mark.asyncio
async def test_dictate_without_engine_shows_banner(session, surface):
    assert await session.dictate() is False
    assert surface.errors == [prompt.ERROR_MESSAGES["VOICE_UNAVAILABLE"]]


@pytest.mark.asyncio
async def test_dictate_fills_input_buffer(surface, store):
    class Listener:
        available = True

        async def listen(self, language):
            return f"spoken in {language}"

    session = SessionController(
        backend=FakeBackend(), view=surface, store=store, speech_input=Listener()
    )
    assert await session.dictate() is True
    assert session.input_buffer == "spoken in en"
    assert surface.input_text == "spoken in en"


@pytest.mark.asyncio
async def test_logout_wipes_everything(session, store, surface):
    await session.start()
    session.update_preferences(theme="dark")
    await session.submit("hello")

    assert await session.logout() is True
    assert PREFS_KEY not in store
    assert [r["message"] for r in persisted(store)] == [prompt.GREETING]
    assert session.preferences.get("theme") == "light"
    assert [m.text for m in session.messages] == [prompt.GREETING]
    assert surface.theme == "light"


@pytest.mark.asyncio
async def test_markdown_preference_changes_rendering(session, surface):
    await session.submit("**hi**")
    assert surface.messages[0].html == "<strong>hi</strong>"

    session.update_preferences(markdown_enabled=False)
    await session.submit("**hi**")
    assert surface.messages[2].html == "**hi**"


@pytest.mark.asyncio
async def test_user_text_with_script_is_escaped(session, surface):
    await session.submit("<script>alert(1)</script>")
    assert "<script>" not in surface.to_html()
