import os

import pytest

from constants.llm import (
    SYSTEM_ANALYZE_RELATIONSHIPS,
    SYSTEM_IDENTIFY_ABSTRACTIONS,
    SYSTEM_ORDER_CHAPTERS,
    SYSTEM_WRITE_CHAPTER,
)
from flow import create_shared_store, create_tutorial_flow
from utils.errors import (
    DuplicateIndexError,
    GeneratorError,
    InputValidationError,
    PipelineFailed,
    ReferenceOutOfBoundsError,
)
from utils.models import PipelineState


ABSTRACTIONS_RESPONSE = """Here are the abstractions:

```yaml
- name: Graph Node
  description: |
    A single unit of work.
  file_indices:
    - 0 # a.py
    - 1 # b.py
- name: Flow Runner
  description: |
    Drives nodes from start to finish.
  file_indices:
    - 2 # c.py
```
"""

RELATIONSHIPS_RESPONSE = """```yaml
summary: |
  A tiny library for running **graphs** of work.
relationships:
  - from_abstraction: 1 # Flow Runner
    to_abstraction: 0 # Graph Node
    label: "Runs"
```"""

ORDER_RESPONSE = "```yaml\n- 1 # Flow Runner\n- 0 # Graph Node\n```"

RUNNER_CHAPTER = "```markdown\n# Flow Runner\n\nThe runner walks the graph one node at a time.\n```"
NODE_CHAPTER = "# Graph Node\n\nA node is one step of work."


def _run(shared, llm, **flow_kwargs):
    create_tutorial_flow(llm=llm, **flow_kwargs).run(shared)
    return shared


def test_three_file_repository_end_to_end(repo_dir, tmp_path, scripted_llm):
    output_dir = tmp_path / "out"
    llm = scripted_llm(
        ABSTRACTIONS_RESPONSE, RELATIONSHIPS_RESPONSE, ORDER_RESPONSE, RUNNER_CHAPTER, NODE_CHAPTER
    )
    shared = create_shared_store(str(repo_dir), output_dir=str(output_dir), include_patterns={"*.py"})

    _run(shared, llm)

    assert shared["state"] is PipelineState.DONE
    assert shared["project_name"] == "sample_repo"
    assert [f.path for f in shared["files"]] == ["a.py", "b.py", "c.py"]
    assert [a.file_indices for a in shared["abstractions"]] == [(0, 1), (2,)]
    assert shared["chapter_order"] == (1, 0)
    assert shared["chapters_completed"] == 2

    assert [c["system_instruction"] for c in llm.calls] == [
        SYSTEM_IDENTIFY_ABSTRACTIONS,
        SYSTEM_ANALYZE_RELATIONSHIPS,
        SYSTEM_ORDER_CHAPTERS,
        SYSTEM_WRITE_CHAPTER,
        SYSTEM_WRITE_CHAPTER,
    ]

    first_prompt, second_prompt = llm.prompts[3], llm.prompts[4]
    assert "PREVIOUSLY COVERED" not in first_prompt
    assert "Graph Node" not in first_prompt
    assert "PREVIOUSLY COVERED" in second_prompt
    assert "- Flow Runner: Flow Runner\n\nThe runner walks the graph" in second_prompt

    runner_path = output_dir / "01_flow_runner.md"
    node_path = output_dir / "02_graph_node.md"
    index_path = output_dir / "index.md"
    assert shared["files_written"] == [str(runner_path), str(node_path), str(index_path)]
    assert shared["final_output_dir"] == str(output_dir)

    assert runner_path.read_text(encoding="utf-8").startswith("# Flow Runner")
    assert node_path.read_text(encoding="utf-8") == NODE_CHAPTER

    index = index_path.read_text(encoding="utf-8")
    assert index.startswith("# Tutorial: sample_repo")
    assert "A tiny library for running **graphs** of work." in index
    assert 'A1 -- "Runs" --> A0' in index
    assert "1. [Flow Runner](01_flow_runner.md)" in index
    assert "2. [Graph Node](02_graph_node.md)" in index


def test_duplicate_chapter_order_fails_before_writing(repo_dir, tmp_path, scripted_llm):
    output_dir = tmp_path / "out"
    llm = scripted_llm(ABSTRACTIONS_RESPONSE, RELATIONSHIPS_RESPONSE, "```yaml\n[0, 0]\n```")
    shared = create_shared_store(str(repo_dir), output_dir=str(output_dir), include_patterns={"*.py"})

    with pytest.raises(PipelineFailed) as exc_info:
        _run(shared, llm)

    failure = exc_info.value
    assert failure.stage == "order_chapters"
    assert isinstance(failure.cause, DuplicateIndexError)
    assert failure.cause.value == 0
    assert shared["state"] is PipelineState.FAILED
    assert shared["chapters"] == ()
    assert shared["files_written"] == []
    assert len(llm.calls) == 3
    assert not output_dir.exists()


def test_relationship_to_unknown_abstraction_fails(repo_dir, tmp_path, scripted_llm):
    bad_relationships = (
        "summary: s\nrelationships:\n"
        "  - from_abstraction: 0\n    to_abstraction: 2\n    label: Uses\n"
    )
    llm = scripted_llm(ABSTRACTIONS_RESPONSE, bad_relationships)
    shared = create_shared_store(str(repo_dir), output_dir=str(tmp_path / "out"), include_patterns={"*.py"})

    with pytest.raises(PipelineFailed) as exc_info:
        _run(shared, llm)

    assert exc_info.value.stage == "analyze_relationships"
    assert isinstance(exc_info.value.cause, ReferenceOutOfBoundsError)
    assert "relationship 0 (to_abstraction)" in str(exc_info.value)


def test_empty_corpus_fails_without_calling_the_llm(tmp_path, scripted_llm):
    empty_repo = tmp_path / "empty_repo"
    empty_repo.mkdir()
    (empty_repo / "notes.txt").write_text("nothing to see", encoding="utf-8")
    llm = scripted_llm()
    shared = create_shared_store(str(empty_repo), output_dir=str(tmp_path / "out"), include_patterns={"*.py"})

    with pytest.raises(PipelineFailed) as exc_info:
        _run(shared, llm)

    assert exc_info.value.stage == "fetch_repo"
    assert isinstance(exc_info.value.cause, InputValidationError)
    assert llm.calls == []


def test_generator_failure_mid_composition_writes_nothing(repo_dir, tmp_path, scripted_llm):
    output_dir = tmp_path / "out"
    llm = scripted_llm(
        ABSTRACTIONS_RESPONSE,
        RELATIONSHIPS_RESPONSE,
        ORDER_RESPONSE,
        RUNNER_CHAPTER,
        GeneratorError("backend unavailable"),
    )
    shared = create_shared_store(str(repo_dir), output_dir=str(output_dir), include_patterns={"*.py"})

    with pytest.raises(PipelineFailed) as exc_info:
        _run(shared, llm)

    assert exc_info.value.stage == "write_chapters"
    assert isinstance(exc_info.value.cause, GeneratorError)
    assert shared["chapters"] == ()
    assert shared["chapters_completed"] == 1
    assert shared["state"] is PipelineState.FAILED
    assert not output_dir.exists()


def test_retries_recover_from_a_malformed_response(repo_dir, tmp_path, scripted_llm):
    llm = scripted_llm(
        "I could not decide, sorry.\n```json\n{}\n```",
        ABSTRACTIONS_RESPONSE,
        RELATIONSHIPS_RESPONSE,
        ORDER_RESPONSE,
        RUNNER_CHAPTER,
        NODE_CHAPTER,
    )
    shared = create_shared_store(
        str(repo_dir), output_dir=str(tmp_path / "out"), include_patterns={"*.py"}, use_cache=True
    )

    _run(shared, llm, max_retries=2)

    assert shared["state"] is PipelineState.DONE
    assert [c["use_cache"] for c in llm.calls[:3]] == [True, False, True]
    assert os.path.exists(os.path.join(str(tmp_path / "out"), "index.md"))


def test_shared_store_defaults(tmp_path):
    shared = create_shared_store(str(tmp_path), max_file_count=None, max_abstraction_num=None)
    assert shared["state"] is PipelineState.INIT
    assert shared["max_file_count"] == 100
    assert shared["max_abstraction_num"] == 10
    assert "*.py" in shared["include_patterns"]
    assert shared["chapters"] == ()
