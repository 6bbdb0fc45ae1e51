import os
import tempfile

# Keep the LLM log file out of the source tree; must be set before utils.call_llm is imported
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="tutorial-llm-logs-"))

import pytest


class ScriptedLLM:
    """Stand-in for call_llm: returns canned responses in order and records every call."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def __call__(self, prompt, use_cache=True, system_instruction=None):
        self.calls.append({
            "prompt": prompt,
            "use_cache": use_cache,
            "system_instruction": system_instruction,
        })
        if not self.responses:
            raise AssertionError(f"Unexpected LLM call #{len(self.calls)}")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    @property
    def prompts(self):
        return [call["prompt"] for call in self.calls]


@pytest.fixture
def scripted_llm():
    return ScriptedLLM


@pytest.fixture
def repo_dir(tmp_path):
    """A three-file repository: a.py, b.py, c.py (indices 0, 1, 2)."""
    root = tmp_path / "sample_repo"
    root.mkdir()
    (root / "a.py").write_text("class Node:\n    pass\n", encoding="utf-8")
    (root / "b.py").write_text("def connect(node):\n    return node\n", encoding="utf-8")
    (root / "c.py").write_text("class Runner:\n    def run(self):\n        return 1\n", encoding="utf-8")
    return root
