import pytest

import run
from constants.llm import ENV_LLM_API_BASE_URL
from utils.errors import InputValidationError, PipelineFailed


def test_parser_defaults():
    args = run.build_parser().parse_args(["--dir", "."])
    assert args.output == "tutorial"
    assert args.max_files == 100
    assert args.max_abstractions == 10
    assert args.retries == 1
    assert args.no_cache is False


def test_missing_directory_exits_with_error(tmp_path, capsys):
    assert run.main(["--dir", str(tmp_path / "nope")]) == 1
    assert "Directory does not exist" in capsys.readouterr().out


def test_unconfigured_provider_exits_before_crawling(tmp_path, monkeypatch):
    def no_provider():
        raise InputValidationError("No LLM provider configured")

    monkeypatch.setattr(run, "get_llm_provider", no_provider)
    monkeypatch.setattr(run, "create_tutorial_flow", pytest.fail)
    assert run.main(["--dir", str(tmp_path)]) == 1


def test_pipeline_failure_is_reported(tmp_path, monkeypatch, capsys):
    class FailingFlow:
        def run(self, shared):
            raise PipelineFailed("order_chapters", ValueError("bad order"))

    monkeypatch.setenv(ENV_LLM_API_BASE_URL, "http://localhost:8000")
    monkeypatch.setattr(run, "create_tutorial_flow", lambda **kwargs: FailingFlow())

    assert run.main(["--dir", str(tmp_path), "--output", str(tmp_path / "out")]) == 1
    out = capsys.readouterr().out
    assert "failed in stage 'order_chapters'" in out
    assert "ValueError: bad order" in out
