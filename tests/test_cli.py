"""Command-line flags and the interactive chat session."""
import pytest

from mitr.__main__ import parse_args
from mitr.config import CRISIS_RESOURCES
from mitr.errors import ModelCallError
from mitr.infrastructure.data.cache import MessageCache
from mitr.pipeline.models import Speaker
from mitr.pipeline.orchestrator import MitrOrchestrator
from mitr.pipeline.sentiment import SentimentAnalyzer
from mitr.pipeline.session import ChatSession
from mitr.pipeline.testing import MockLLMClient


def test_parse_args_defaults():
    assert parse_args([]) == {"fast": False, "serve": False, "host": None, "port": None, "log_level": None}


def test_parse_args_flags():
    options = parse_args(["--fast", "--serve", "--host=0.0.0.0", "--port=9000", "--log-level=debug", "--unknown"])
    assert options["fast"] and options["serve"]
    assert options["host"] == "0.0.0.0"
    assert options["port"] == 9000
    assert options["log_level"] == "DEBUG"


def test_parse_args_rejects_bad_port():
    with pytest.raises(ValueError, match="--port=8000"):
        parse_args(["--port=abc"])


class ScriptedInput:
    """Feeds canned lines, then signals end of input."""

    def __init__(self, lines):
        self.lines = list(lines)

    def __call__(self, prompt):
        if not self.lines:
            raise EOFError
        return self.lines.pop(0)


def make_session(mock_responses, lines=(), fast=False):
    output = []
    session = ChatSession(
        orchestrator=MitrOrchestrator(MockLLMClient(mock_responses)),
        sentiment_analyzer=SentimentAnalyzer(),
        message_cache=MessageCache(),
        fast=fast,
        input_fn=ScriptedInput(lines),
        output_fn=output.append,
    )
    return session, output


@pytest.mark.asyncio
async def test_handle_message_records_both_turns(mock_responses):
    session, output = make_session(mock_responses, fast=True)

    response = await session.handle_message("  I had a long day  ")

    assert response is not None
    assert [t.speaker for t in session.history] == [Speaker.USER, Speaker.AGENT]
    assert session.history[0].message == "I had a long day"
    assert len(session.message_cache.get_messages()) == 2
    assert any(line.startswith("   📊") for line in output)
    assert f"🤖 Mitr: {response.response}" in output


@pytest.mark.asyncio
async def test_history_is_sent_with_later_messages(mock_responses):
    client = MockLLMClient(mock_responses)
    session, _ = make_session(mock_responses, fast=True)
    session.orchestrator = MitrOrchestrator(client)

    await session.handle_message("first message")
    await session.handle_message("second message")

    assert "user: first message" in client.prompts_for("fast_therapist")[1]


@pytest.mark.asyncio
async def test_blank_message_is_ignored(mock_responses):
    session, output = make_session(mock_responses)
    assert await session.handle_message("   ") is None
    assert session.history == []
    assert output == []


@pytest.mark.asyncio
async def test_crisis_message_shows_resources(mock_responses):
    session, output = make_session(mock_responses, fast=True)

    await session.handle_message("I want to kill myself")

    assert any(line.startswith("🚨") for line in output)
    for resource in CRISIS_RESOURCES:
        assert f"   • {resource}" in output


@pytest.mark.asyncio
async def test_failure_still_shows_resources_for_flagged_message(mock_responses):
    mock_responses["safety_assessment"] = ModelCallError("timeout")
    session, output = make_session(mock_responses)

    assert await session.handle_message("I feel like there's no reason to live") is None

    assert any("couldn't process your message" in line for line in output)
    for resource in CRISIS_RESOURCES:
        assert f"   • {resource}" in output
    # The failed reply is not added to the history
    assert [t.speaker for t in session.history] == [Speaker.USER]


@pytest.mark.asyncio
async def test_run_until_exit_command(mock_responses):
    session, output = make_session(mock_responses, lines=["hello", "", "quit", "never read"], fast=True)

    await session.run()

    assert len(session.history) == 2
    assert output[-1] == "👋 Take care. Goodbye!"


@pytest.mark.asyncio
async def test_run_stops_at_end_of_input(mock_responses):
    session, output = make_session(mock_responses, lines=["hello"], fast=True)
    await session.run()
    assert output[-1] == "👋 Take care. Goodbye!"
