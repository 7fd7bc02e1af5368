import anyio
import pytest

from chatrelay.bot import BotBuilder
from chatrelay.chat import ChatMessage
from chatrelay.dispatch import AUTH_PROMPT, FAILURE_NOTICE, failure_replies
from chatrelay.errors import (
    AuthRequired,
    BindingError,
    HandlerError,
    ParseError,
    SendTimeout,
)
from chatrelay.options import (
    with_mention,
    with_optional_arg,
    with_private_message,
    with_required_arg,
)
from chatrelay.platform import Connected, IncomingText
from tests.fakes import FakePlatform, RecordingHandler, serving, wait_until

USERS = {"U1": "alice"}
CHANNELS = {"C1": "general"}


def _text(text: str, **kwargs) -> IncomingText:
    values = {"channel_id": "C1", "user_id": "U1", "timestamp": "100.1"}
    values.update(kwargs)
    return IncomingText(text=text, **values)


def test_failure_replies_by_kind() -> None:
    assert failure_replies(AuthRequired("github"), "deploy") == [AUTH_PROMPT]
    assert failure_replies(BindingError("missing required argument x"), "deploy") == [
        "Could not read the arguments for `deploy`: missing required argument x"
    ]
    assert failure_replies(ParseError("double separator"), None) == [
        "Could not read the arguments for this message: double separator"
    ]
    assert failure_replies(RuntimeError("boom"), "deploy") == [
        FAILURE_NOTICE,
        "error: boom",
    ]
    assert failure_replies(SendTimeout(3, 10.0), "deploy")[0] == FAILURE_NOTICE


@pytest.mark.anyio
async def test_each_action_binds_its_own_arguments(
    builder: BotBuilder, fake_platform: FakePlatform
) -> None:
    first = RecordingHandler("first")
    second = RecordingHandler("second")
    builder.add_message_handler("greet", first, with_required_arg("name"))
    builder.add_message_handler(
        "greet", second, with_optional_arg("who"), with_optional_arg("times", "1")
    )
    bot = builder.build()

    async with serving(bot, fake_platform):
        fake_platform.feed(Connected(users=USERS, channels=CHANNELS), _text("greet Alice"))
        await first.called.wait()
        await second.called.wait()

    [first_msg] = first.messages
    [second_msg] = second.messages
    assert dict(first_msg.args) == {"name": "Alice"}
    assert dict(second_msg.args) == {"who": "Alice", "times": "1"}
    for msg in (first_msg, second_msg):
        assert msg.match == "greet"
        assert msg.raw_args == "Alice"
        assert msg.text == "greet Alice"
        assert msg.user.name == "alice"
        assert msg.channel.name == "general"


@pytest.mark.anyio
async def test_failing_action_does_not_stop_the_next_one(
    builder: BotBuilder, fake_platform: FakePlatform
) -> None:
    failing = RecordingHandler("failing", error=RuntimeError("boom"))
    after = RecordingHandler("after")
    builder.add_message_handler("deploy", failing)
    builder.add_message_handler("deploy", after)
    bot = builder.build()

    async with serving(bot, fake_platform):
        fake_platform.feed(_text("deploy now"))
        await after.called.wait()
        await fake_platform.wait_for_sends(2)

    assert fake_platform.texts == [FAILURE_NOTICE, "error: boom"]
    assert {call["channel_id"] for call in fake_platform.sent} == {"DU1"}
    assert len(after.messages) == 1


@pytest.mark.anyio
async def test_binding_failure_skips_the_handler(
    builder: BotBuilder, fake_platform: FakePlatform
) -> None:
    strict = RecordingHandler("strict")
    lenient = RecordingHandler("lenient")
    builder.add_message_handler("deploy", strict, with_required_arg("target"))
    builder.add_message_handler("deploy", lenient)
    bot = builder.build()

    async with serving(bot, fake_platform):
        fake_platform.feed(_text("deploy"))
        await lenient.called.wait()
        await fake_platform.wait_for_sends(1)

    assert strict.messages == []
    assert fake_platform.texts == [
        "Could not read the arguments for `deploy`: missing required argument target"
    ]
    assert fake_platform.sent[0]["channel_id"] == "DU1"


@pytest.mark.anyio
async def test_auth_required_prompts_privately(
    builder: BotBuilder, fake_platform: FakePlatform
) -> None:
    handler = RecordingHandler("secure", error=AuthRequired("github"))
    builder.add_message_handler("secure", handler)
    bot = builder.build()

    async with serving(bot, fake_platform):
        fake_platform.feed(_text("secure"))
        await fake_platform.wait_for_sends(1)

    assert fake_platform.texts == [AUTH_PROMPT]


@pytest.mark.anyio
async def test_unmatched_text_uses_default_handler(
    builder: BotBuilder, fake_platform: FakePlatform
) -> None:
    greet = RecordingHandler("greet")
    fallback = RecordingHandler("fallback")
    builder.add_message_handler("greet", greet)
    builder.set_default_handler(fallback)
    bot = builder.build()

    async with serving(bot, fake_platform):
        fake_platform.feed(_text("what is this"))
        await fallback.called.wait()

    [msg] = fallback.messages
    assert msg.match is None
    assert msg.raw_args == "what is this"
    assert greet.messages == []


@pytest.mark.anyio
async def test_action_flags_are_carried_on_the_message(
    builder: BotBuilder, fake_platform: FakePlatform
) -> None:
    handler = RecordingHandler("quiet")
    builder.add_message_handler(
        "quiet", handler, with_private_message(), with_mention(), with_optional_arg("x")
    )
    bot = builder.build()

    async with serving(bot, fake_platform):
        fake_platform.feed(_text("quiet"))
        await handler.called.wait()

    [msg] = handler.messages
    assert msg.flags is not None
    assert msg.flags.private is True
    assert msg.flags.mention_required is True
    assert [spec.name for spec in bot.table.actions_for("quiet")[0].args] == ["x"]


@pytest.mark.anyio
async def test_replies_are_correlated_with_acks(
    builder: BotBuilder, fake_platform: FakePlatform
) -> None:
    sent = []

    class Replier:
        name = "replier"

        async def on_message(self, msg: ChatMessage) -> None:
            sent.append(await msg.reply("plain"))
            sent.append(await msg.reply_in_thread("threaded"))
            sent.append(await msg.reply_with_mention("hey"))
            sent.append(await msg.reply_privately("psst"))

    builder.add_message_handler("talk", Replier())
    bot = builder.build()

    async with serving(bot, fake_platform):
        fake_platform.feed(_text("talk", thread_timestamp="99.9"))
        await wait_until(lambda: len(sent) == 4)

    calls = [
        (call["channel_id"], call["thread_id"], call["text"])
        for call in fake_platform.sent
    ]
    assert calls == [
        ("C1", None, "plain"),
        ("C1", "99.9", "threaded"),
        ("C1", None, "<@U1> hey"),
        ("DU1", None, "psst"),
    ]
    assert [message.timestamp for message in sent] == [
        f"ts-{call['local_id']}" for call in fake_platform.sent
    ]


@pytest.mark.anyio
async def test_thread_reply_starts_thread_on_top_level_message(
    builder: BotBuilder, fake_platform: FakePlatform
) -> None:
    class Replier:
        name = "replier"

        async def on_message(self, msg: ChatMessage) -> None:
            await msg.reply_in_thread("threaded")

    builder.add_message_handler("talk", Replier())
    bot = builder.build()

    async with serving(bot, fake_platform):
        fake_platform.feed(_text("talk"))
        await fake_platform.wait_for_sends(1)

    assert fake_platform.sent[0]["thread_id"] == "100.1"


@pytest.mark.anyio
async def test_timed_out_reply_is_reported(fake_platform: FakePlatform) -> None:
    fake_platform.auto_ack = False
    builder = BotBuilder(ack_timeout=0.05)
    handler_done = []

    class Replier:
        name = "replier"

        async def on_message(self, msg: ChatMessage) -> None:
            await msg.reply("hello")
            handler_done.append(True)

    builder.add_message_handler("talk", Replier())
    bot = builder.build()

    async with serving(bot, fake_platform):
        fake_platform.feed(_text("talk"))
        await fake_platform.wait_for_sends(2)
        # the notice is not acknowledged either, so the detail is never sent
        await anyio.sleep(0.2)

    assert handler_done == []
    assert fake_platform.texts == ["hello", FAILURE_NOTICE]
    assert fake_platform.sent[1]["channel_id"] == "DU1"


@pytest.mark.anyio
async def test_actions_without_arguments_take_free_text(
    builder: BotBuilder, fake_platform: FakePlatform
) -> None:
    handler = RecordingHandler("note")
    builder.add_message_handler("note", handler)
    bot = builder.build()

    async with serving(bot, fake_platform):
        fake_platform.feed(_text("note don't forget a=b=c"))
        await handler.called.wait()

    [msg] = handler.messages
    assert msg.raw_args == "don't forget a=b=c"
    assert dict(msg.args) == {}
    assert fake_platform.sent == []


@pytest.mark.anyio
async def test_malformed_arguments_are_reported(
    builder: BotBuilder, fake_platform: FakePlatform
) -> None:
    handler = RecordingHandler("greet")
    builder.add_message_handler("greet", handler, with_optional_arg("name"))
    bot = builder.build()

    async with serving(bot, fake_platform):
        fake_platform.feed(_text('greet "Alice'))
        await fake_platform.wait_for_sends(1)

    assert handler.messages == []
    assert fake_platform.texts == [
        "Could not read the arguments for `greet`: unbalanced quotes"
    ]


class NoDirectChannelPlatform(FakePlatform):
    async def open_direct_channel(self, user_id: str) -> str:
        raise ConnectionError(f"cannot open a direct channel with {user_id}")


@pytest.mark.anyio
async def test_unreportable_failure_does_not_stop_the_next_action(
    builder: BotBuilder,
) -> None:
    platform = NoDirectChannelPlatform()
    failing = RecordingHandler("failing", error=RuntimeError("boom"))
    after = RecordingHandler("after")
    builder.add_message_handler("deploy", failing)
    builder.add_message_handler("deploy", after)
    bot = builder.build()

    async with serving(bot, platform):
        platform.feed(_text("deploy now"))
        with anyio.fail_after(2):
            await after.called.wait()

    assert len(failing.messages) == 1
    assert len(after.messages) == 1
    assert platform.sent == []


@pytest.mark.anyio
async def test_handler_exceptions_are_wrapped(
    builder: BotBuilder, fake_platform: FakePlatform, monkeypatch
) -> None:
    boom = RuntimeError("boom")
    builder.add_message_handler("deploy", RecordingHandler("failing", error=boom))
    builder.add_message_handler(
        "deploy", RecordingHandler("secure", error=AuthRequired("github"))
    )
    bot = builder.build()
    reported: list[tuple[str, Exception]] = []

    async def record_failure(msg: ChatMessage, action, exc: Exception) -> None:
        _ = msg
        reported.append((action.name, exc))

    monkeypatch.setattr(bot.dispatcher, "report_failure", record_failure)

    async with serving(bot, fake_platform):
        fake_platform.feed(_text("deploy"))
        await wait_until(lambda: len(reported) == 2)

    [(first_name, wrapped), (second_name, auth)] = reported
    assert first_name == "failing"
    assert isinstance(wrapped, HandlerError)
    assert wrapped.handler == "failing"
    assert wrapped.cause is boom
    assert str(wrapped) == "boom"
    assert failure_replies(wrapped, "deploy") == [FAILURE_NOTICE, "error: boom"]
    assert second_name == "secure"
    assert isinstance(auth, AuthRequired)


@pytest.mark.anyio
async def test_awaited_work_returns_its_result(
    builder: BotBuilder, fake_platform: FakePlatform
) -> None:
    results: list[int] = []

    async def add(a: int, b: int) -> int:
        await anyio.sleep(0)
        return a + b

    class Adder:
        name = "adder"

        async def on_message(self, msg: ChatMessage) -> None:
            total = await msg.run(add, 2, 3)
            results.append(total)
            await msg.reply(f"total {total}")

    builder.add_message_handler("add", Adder())
    bot = builder.build()

    async with serving(bot, fake_platform):
        fake_platform.feed(_text("add"))
        await fake_platform.wait_for_sends(1)

    assert results == [5]
    assert fake_platform.texts == ["total 5"]


@pytest.mark.anyio
async def test_awaited_work_failure_is_reported(
    builder: BotBuilder, fake_platform: FakePlatform
) -> None:
    finished: list[bool] = []

    async def lookup(name: str) -> str:
        raise LookupError(f"no such host {name}")

    class Resolver:
        name = "resolver"

        async def on_message(self, msg: ChatMessage) -> None:
            await msg.run(lookup, msg.raw_args)
            finished.append(True)

    builder.add_message_handler("resolve", Resolver())
    bot = builder.build()

    async with serving(bot, fake_platform):
        fake_platform.feed(_text("resolve db1"))
        await fake_platform.wait_for_sends(2)

    assert finished == []
    assert fake_platform.texts == [FAILURE_NOTICE, "error: no such host db1"]
    assert {call["channel_id"] for call in fake_platform.sent} == {"DU1"}
