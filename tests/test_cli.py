import json
import logging

import pytest

from debatelib import ContentError, TopicDraft, ToolDescriptor, TransportError
from debatelib import cli
from debatelib.config import load_settings

GENERATED = TopicDraft(
    title="Counting Sort",
    description="Linear time with a catch",
    code="def counting_sort(a, k): ...",
    script=[{"id": "1", "speaker": "Tutor AI", "text": "What is k?"}],
    invariants=["counts are non-negative"],
)


class FakeClient:
    instances = []
    error = None

    def __init__(self, base_url, **kwargs):
        self.base_url = base_url
        self.kwargs = kwargs
        FakeClient.instances.append(self)

    def fetch_topic(self):
        if FakeClient.error is not None:
            raise FakeClient.error
        return GENERATED

    def list_tools(self):
        if FakeClient.error is not None:
            raise FakeClient.error
        return [
            ToolDescriptor(name="get_debate_topic", description="Generate a debate topic"),
            ToolDescriptor(name="ping"),
        ]


@pytest.fixture(autouse=True)
def isolated(monkeypatch, tmp_path):
    FakeClient.instances = []
    FakeClient.error = None
    monkeypatch.setattr(cli, "ToolServerClient", FakeClient)
    monkeypatch.setattr(cli, "load_settings", lambda **kw: load_settings(dotenv=False, user_config=False, **kw))
    for var in ("DEBATE_MCP_URL", "DEBATE_STORAGE", "DEBATE_LOG_LEVEL", "DEBATE_REMOTE_URL", "DEBATE_REMOTE_KEY",
                "SUPABASE_URL", "SUPABASE_ANON_KEY", "VITE_SUPABASE_URL", "VITE_SUPABASE_ANON_KEY"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("DEBATE_SQLITE_PATH", str(tmp_path / "store" / "debates.db"))
    level = logging.getLogger("debatelib").level
    yield
    logging.getLogger("debatelib").setLevel(level)


class TestCommands:
    def test_tools(self, capsys):
        assert cli.main(["tools"]) == 0
        out = capsys.readouterr().out
        assert out == "get_debate_topic: Generate a debate topic\nping\n"

    def test_url_flag(self):
        cli.main(["--url", "http://tools:9000", "tools"])
        assert FakeClient.instances[0].base_url == "http://tools:9000"

    def test_url_from_environment(self, monkeypatch):
        monkeypatch.setenv("DEBATE_MCP_URL", "http://env:9000")
        cli.main(["tools"])
        assert FakeClient.instances[0].base_url == "http://env:9000"

    def test_timeouts_passed_to_client(self, monkeypatch):
        monkeypatch.setenv("DEBATE_CALL_TIMEOUT", "4")
        cli.main(["tools"])
        assert FakeClient.instances[0].kwargs["call_timeout"] == 4.0

    def test_topic(self, capsys):
        assert cli.main(["topic"]) == 0
        printed = json.loads(capsys.readouterr().out)
        assert printed["title"] == "Counting Sort"
        assert printed["invariants"] == ["counts are non-negative"]
        assert "id" not in printed

    def test_topic_save(self, capsys):
        assert cli.main(["topic", "--save"]) == 0
        printed = json.loads(capsys.readouterr().out)
        # A new store starts with the three built-in debates
        assert printed["id"] == 4
        assert printed["title"] == "Counting Sort"

    def test_saved_topic_survives_between_runs(self, capsys):
        assert cli.main(["topic", "--save"]) == 0
        capsys.readouterr()
        assert cli.main(["topics"]) == 0
        assert capsys.readouterr().out.splitlines()[-1] == "   4  Counting Sort"
        assert cli.main(["show", "4"]) == 0
        out = capsys.readouterr().out
        assert out.startswith("Counting Sort\n")
        assert "Tutor AI: What is k?" in out

    def test_topics(self, capsys):
        assert cli.main(["topics"]) == 0
        lines = capsys.readouterr().out.splitlines()
        assert len(lines) == 3
        assert lines[0] == "   1  Bubble Sort: Efficiency vs Simplicity"

    def test_show(self, capsys):
        assert cli.main(["show", "2"]) == 0
        out = capsys.readouterr().out
        assert out.startswith("Quick Sort: The Pivot Problem\n")
        assert "Tutor AI: " in out
        assert "Student AI: " in out

    def test_show_missing(self, capsys):
        assert cli.main(["show", "42"]) == 1
        assert capsys.readouterr().err == "No topic with id 42\n"


class TestErrors:
    def test_tool_server_unreachable(self, capsys):
        FakeClient.error = TransportError("Connection to tool server failed.")
        assert cli.main(["topic"]) == 1
        captured = capsys.readouterr()
        assert captured.out == ""
        assert captured.err == "Error: Connection to tool server failed.\n"

    def test_bad_topic(self, capsys):
        FakeClient.error = ContentError("No content in tool response")
        assert cli.main(["topic", "--save"]) == 1
        assert "No content in tool response" in capsys.readouterr().err

    def test_invalid_configuration(self, monkeypatch, capsys):
        monkeypatch.setenv("DEBATE_STORAGE", "redis")
        assert cli.main(["topics"]) == 2
        assert capsys.readouterr().err.startswith("Invalid configuration: storage must be")

    def test_remote_storage_without_key(self, monkeypatch, capsys):
        monkeypatch.setenv("DEBATE_STORAGE", "remote")
        monkeypatch.setenv("DEBATE_REMOTE_URL", "https://db.example.co")
        assert cli.main(["topics"]) == 2
        assert capsys.readouterr().err == "Invalid configuration: remote storage needs DEBATE_REMOTE_KEY\n"

    def test_remote_storage_bad_url(self, monkeypatch, capsys):
        monkeypatch.setenv("DEBATE_STORAGE", "remote")
        monkeypatch.setenv("DEBATE_REMOTE_URL", "db.example.co")
        monkeypatch.setenv("DEBATE_REMOTE_KEY", "k")
        assert cli.main(["show", "1"]) == 2
        assert "DEBATE_REMOTE_URL" in capsys.readouterr().err

    def test_command_required(self):
        with pytest.raises(SystemExit):
            cli.main([])


class TestLogging:
    def test_verbosity(self):
        cli.main(["-v", "tools"])
        assert logging.getLogger("debatelib").level == logging.INFO
        cli.main(["-vv", "tools"])
        assert logging.getLogger("debatelib").level == logging.DEBUG

    def test_level_from_settings(self, monkeypatch):
        monkeypatch.setenv("DEBATE_LOG_LEVEL", "error")
        cli.main(["tools"])
        assert logging.getLogger("debatelib").level == logging.ERROR
