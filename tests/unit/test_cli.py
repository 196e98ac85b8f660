"""Tests for the command line entry point."""
import asyncio

import pytest

from docsqa import cli

from fakes import FakeStore


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    monkeypatch.setattr(cli, "configure_logging", lambda level: None)


def test_query_arguments():
    args = cli.build_parser().parse_args(["query", "What is X?", "--collection", "handbook"])

    assert args.handler is cli.run_query
    assert args.question == "What is X?"
    assert args.collection == "handbook"
    assert args.interactive is False


def test_ingest_arguments():
    args = cli.build_parser().parse_args(
        ["ingest", "--source", "notion", "--backend", "faiss", "--rebuild"]
    )

    assert args.handler is cli.run_ingest
    assert args.source == "notion"
    assert args.backend == "faiss"
    assert args.rebuild is True


def test_unknown_backend_is_rejected():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args(["query", "--backend", "chroma"])


def test_command_is_required():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args([])


def test_main_returns_handler_exit_code(monkeypatch):
    seen = []

    async def fake_check(args):
        seen.append(args.collection)
        return 0

    monkeypatch.setattr(cli, "run_check", fake_check)

    assert cli.main(["check", "--collection", "docs"]) == 0
    assert seen == ["docs"]


def test_main_reports_errors(monkeypatch, capsys):
    async def broken(args):
        raise ConnectionError("Ollama is down")

    monkeypatch.setattr(cli, "run_query", broken)

    assert cli.main(["query", "hi"]) == 1
    assert "Ollama is down" in capsys.readouterr().err


class RecordingPipeline:
    instances = []

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.questions = []
        RecordingPipeline.instances.append(self)

    async def ask(self, question):
        self.questions.append(question)


@pytest.fixture
def recording_pipeline(monkeypatch):
    RecordingPipeline.instances = []
    monkeypatch.setattr(cli, "QueryPipeline", RecordingPipeline)
    monkeypatch.setattr(cli, "get_vector_store", lambda backend=None: FakeStore([]))
    return RecordingPipeline


def prompt_answers(monkeypatch, answers):
    answers = list(answers)

    async def read(prompt="Prompt: "):
        return answers.pop(0) if answers else None

    monkeypatch.setattr(cli, "_read_question", read)


def test_query_prompts_once_without_question(monkeypatch, recording_pipeline):
    prompt_answers(monkeypatch, ["  What is X?  ", "ignored"])
    args = cli.build_parser().parse_args(["query"])

    assert asyncio.run(cli.run_query(args)) == 0
    assert recording_pipeline.instances[0].questions == ["What is X?"]


def test_interactive_query_stops_on_empty_line(monkeypatch, recording_pipeline):
    prompt_answers(monkeypatch, ["first", "second", "", "never"])
    args = cli.build_parser().parse_args(["query", "-i"])

    asyncio.run(cli.run_query(args))

    assert recording_pipeline.instances[0].questions == ["first", "second"]


def test_interactive_query_stops_on_eof(monkeypatch, recording_pipeline):
    prompt_answers(monkeypatch, ["only"])
    args = cli.build_parser().parse_args(["query", "--interactive"])

    asyncio.run(cli.run_query(args))

    assert recording_pipeline.instances[0].questions == ["only"]


def test_check_reports_missing_model(monkeypatch, capsys):
    async def fake_check_models(required):
        return {name: name != "deepseek-r1:1.5b" for name in required}

    monkeypatch.setattr(cli, "check_models", fake_check_models)
    monkeypatch.setattr(cli.config, "CHAT_MODEL", "deepseek-r1:1.5b")
    monkeypatch.setattr(cli, "get_vector_store", lambda backend=None: FakeStore([]))
    args = cli.build_parser().parse_args(["check"])

    assert asyncio.run(cli.run_check(args)) == 1

    out = capsys.readouterr().out
    assert "deepseek-r1:1.5b is not installed" in out
    assert "on fake" in out


def test_check_passes_when_everything_is_ready(monkeypatch):
    async def fake_check_models(required):
        return {name: True for name in required}

    monkeypatch.setattr(cli, "check_models", fake_check_models)
    monkeypatch.setattr(cli, "get_vector_store", lambda backend=None: FakeStore([]))
    args = cli.build_parser().parse_args(["check"])

    assert asyncio.run(cli.run_check(args)) == 0


def test_ingest_exit_code_reflects_failures(monkeypatch, tmp_path):
    class FakeIngest:
        def __init__(self, **kwargs):
            self.kwargs = kwargs

        async def run(self, rebuild=False, progress_callback=None):
            progress_callback(1, 1, "a.md")
            return {
                "documents_processed": 0,
                "documents_failed": 1,
                "chunks_created": 0,
                "embeddings_generated": 0,
            }

    monkeypatch.setattr(cli, "IngestPipeline", FakeIngest)
    monkeypatch.setattr(cli, "get_vector_store", lambda backend=None: FakeStore([]))
    args = cli.build_parser().parse_args(["ingest", "--docs-dir", str(tmp_path)])

    assert asyncio.run(cli.run_ingest(args)) == 1
