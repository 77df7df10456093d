import json
from pathlib import Path

from typer.testing import CliRunner

import memochat.cli.commands as commands_module
from memochat.agent.turn import ChatTurnRunner
from memochat.cli.commands import app
from memochat.config.schema import Config
from memochat.memory.store import MemoryStore
from memochat.providers.base import LLMProvider, LLMResponse
from memochat.session.manager import Message, SessionStore

REPLY = (
    "Nice to meet you, Max!<<<MEMORY_JSON>>>"
    + json.dumps({"memory": {"remove": [], "add": ["User's name is Max"]}, "summary": {"update": False, "text": ""}})
)


class _ScriptedProvider(LLMProvider):
    def __init__(self, text: str, error: bool = False) -> None:
        super().__init__()
        self.text = text
        self.error = error

    async def chat(self, messages, model=None, max_tokens=900, temperature=0.2):
        if self.error:
            return LLMResponse(content="Error calling LLM: HTTP 500", finish_reason="error")
        return LLMResponse(content=self.text)

    async def stream_chat(self, messages, model=None, max_tokens=900, temperature=0.2):
        if self.error:
            yield {"type": "done", "response": LLMResponse(content="Error calling LLM: HTTP 500", finish_reason="error")}
            return
        for i in range(0, len(self.text), 7):
            yield {"type": "text_delta", "delta": self.text[i:i + 7]}
        yield {"type": "done", "response": LLMResponse(content=self.text)}

    def get_default_model(self) -> str:
        return "test/model"


def _setup(monkeypatch, tmp_path: Path, provider: LLMProvider) -> Config:
    config = Config(data_dir=str(tmp_path), stream={"heartbeat_interval_s": 0})
    monkeypatch.setattr(commands_module, "load_config", lambda: config)
    monkeypatch.setattr(
        commands_module,
        "_make_runner",
        lambda cfg: ChatTurnRunner.from_config(cfg, provider=provider),
    )
    return config


def test_chat_streams_reply_and_updates_memory(monkeypatch, tmp_path: Path) -> None:
    _setup(monkeypatch, tmp_path, _ScriptedProvider(REPLY))

    result = CliRunner().invoke(app, ["chat", "s1", "Remember my name is Max."])

    assert result.exit_code == 0, result.output
    assert "Nice to meet you, Max!" in result.output
    assert "<<<MEMORY_JSON>>>" not in result.output
    assert "[memory] +1 -0 deduped 0" in result.output
    assert MemoryStore(tmp_path).read_lines() == ["User's name is Max"]


def test_chat_no_stream(monkeypatch, tmp_path: Path) -> None:
    _setup(monkeypatch, tmp_path, _ScriptedProvider(REPLY))

    result = CliRunner().invoke(app, ["chat", "s1", "hi", "--no-stream"])

    assert result.exit_code == 0, result.output
    assert result.output.startswith("Nice to meet you, Max!\n")


def test_chat_upstream_error_exits_nonzero(monkeypatch, tmp_path: Path) -> None:
    _setup(monkeypatch, tmp_path, _ScriptedProvider("", error=True))

    streamed = CliRunner().invoke(app, ["chat", "s1", "hi"])
    blocking = CliRunner().invoke(app, ["chat", "s1", "hi", "--no-stream"])

    assert streamed.exit_code == 1
    assert "HTTP 500" in streamed.output
    assert blocking.exit_code == 1
    assert [m.role for m in SessionStore(tmp_path).read_messages("s1")] == ["user", "user"]


def test_memory_summary_and_history_commands(monkeypatch, tmp_path: Path) -> None:
    _setup(monkeypatch, tmp_path, _ScriptedProvider(REPLY))
    runner = CliRunner()

    assert runner.invoke(app, ["memory"]).output.strip() == "(empty)"
    assert runner.invoke(app, ["summary", "s1"]).output.strip() == "(no summary)"
    assert runner.invoke(app, ["history", "s1"]).output.strip() == "(empty session)"

    MemoryStore(tmp_path).write_lines(["Likes tea"])
    sessions = SessionStore(tmp_path)
    sessions.write_summary("s1", "They said hi.")
    sessions.append_message("s1", Message(role="user", content="hi", timestamp="2024-01-01T00:00:00Z"))

    assert runner.invoke(app, ["memory"]).output.strip() == "1. Likes tea"
    assert runner.invoke(app, ["summary", "s1"]).output.strip() == "They said hi."
    assert runner.invoke(app, ["history", "s1"]).output.strip() == "[2024-01-01T00:00:00Z] USER: hi"


def test_version() -> None:
    result = CliRunner().invoke(app, ["--version"])

    assert result.exit_code == 0
    assert "memochat v" in result.output
