"""
================================================================================
CODEBASE TUTORIAL PIPELINE - PROCESSING NODES
================================================================================
All the Node classes that make up the tutorial pipeline, plus the parsing and
validation helpers they rely on.

NODE ARCHITECTURE (PocketFlow Pattern):
=======================================
Each node follows the prep → exec → post lifecycle:

    prep(shared)                     - READ from shared store, build context
         ↓
    exec(prep_res)                   - one LLM call, then parse + validate
         ↓
    post(shared, prep_res, exec_res) - WRITE validated records to shared store

PIPELINE STATE:
===============
Every node derives from PipelineNode, which drives a linear state machine in
shared["state"]:

    INIT → CORPUS_READY → ABSTRACTIONS_READY → RELATIONSHIPS_READY
         → PLAN_READY → COMPOSING → DONE

A node only starts when the state equals the one it requires. Any exception
escaping a node moves the run to FAILED and is re-raised as
PipelineFailed(stage, cause). CombineTutorial only runs from DONE, so a failed
run never writes chapters.

SHARED STORE STRUCTURE:
=======================
    shared = {
        # Input (see flow.create_shared_store)
        "local_dir": str,
        "project_name": str or None,
        "output_dir": str,
        "include_patterns": set,
        "exclude_patterns": set,
        "max_file_size": int,
        "max_file_count": int,
        "max_abstraction_num": int,
        "use_cache": bool,

        # Output (populated by nodes)
        "state": PipelineState,
        "files": tuple[SourceFile],
        "abstractions": tuple[Abstraction],
        "relationships": RelationshipGraph,
        "chapter_order": tuple[int],
        "chapters": tuple[Chapter],
        "chapters_completed": int,
        "files_written": list[str],
        "final_output_dir": str,
        "failure": PipelineFailed,    # only on failure
    }
================================================================================
"""

import logging
import os

from pocketflow import Node

from utils.call_llm import call_llm
from utils.crawl_local_files import crawl_local_files
from utils.errors import (
    DuplicateIndexError,
    InputValidationError,
    PipelineFailed,
    PipelineStateError,
    PlanIncompleteError,
    ResponseParseError,
)
from utils.models import (
    Abstraction,
    Chapter,
    ChapterSummary,
    PipelineState,
    Relationship,
    RelationshipGraph,
    SourceFile,
    next_state,
)
from utils.references import resolve_reference
from utils.structured_response import parse_structured_response, strip_outer_fence
from utils.write_markdown_files import chapter_filename, write_markdown_files

from constants.defaults import (
    ABSTRACTION_FILE_CHAR_LIMIT,
    CHAPTER_FILE_CHAR_LIMIT,
    CHAPTER_SUMMARY_CHAR_LIMIT,
    DEFAULT_MAX_ABSTRACTIONS,
    DEFAULT_MAX_FILE_COUNT,
    DEFAULT_PROJECT_NAME,
    MERMAID_MAX_LABEL_LEN,
    RELATIONSHIP_SAMPLE_CHAR_LIMIT,
)
from constants.llm import (
    SYSTEM_ANALYZE_RELATIONSHIPS,
    SYSTEM_IDENTIFY_ABSTRACTIONS,
    SYSTEM_ORDER_CHAPTERS,
    SYSTEM_WRITE_CHAPTER,
)
from constants.paths import INDEX_FILE_NAME

logger = logging.getLogger(__name__)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def truncate(content, limit, marker):
    """Cut `content` to `limit` characters, appending `marker` if anything was cut."""
    if len(content) <= limit:
        return content
    return content[:limit] + marker


def get_content_for_indices(files, indices):
    """
    Map "index # path" -> content for the given file indices.

    The "index # path" key mirrors the reference format the LLM is asked to
    use, so prompts and answers talk about files the same way.
    """
    content_map = {}
    for i in indices:
        if 0 <= i < len(files):
            source = files[i]
            content_map[f"{source.index} # {source.path}"] = source.content
    return content_map


def derive_project_name(local_dir):
    """Final path segment of the repository path, or a fallback for '.' and '/'."""
    name = os.path.basename(os.path.normpath(local_dir or ""))
    if name in ("", ".", "..", os.sep):
        return DEFAULT_PROJECT_NAME
    return name


def _require_keys(item, keys, what, raw_response):
    if not isinstance(item, dict) or not all(k in item for k in keys):
        raise ResponseParseError(f"Missing keys in {what}: {item}", raw_response=raw_response)


def _require_str(item, key, what, raw_response):
    if not isinstance(item[key], str):
        raise ResponseParseError(f"{key} is not a string in {what}: {item}", raw_response=raw_response)
    return item[key].strip()


def parse_abstractions(response, file_count, max_abstractions):
    """
    Validate the abstraction list returned by the LLM.

    Entries past `max_abstractions` are dropped before validation. Every file
    index must fall inside the corpus. Indices are reassigned by position, so
    whatever numbering the LLM used is ignored.

    Returns:
        tuple[Abstraction]
    """
    raw_items = parse_structured_response(response, list)
    if not raw_items:
        raise ResponseParseError("No abstractions identified", raw_response=response)

    if len(raw_items) > max_abstractions:
        print(f"LLM returned {len(raw_items)} abstractions; keeping the first {max_abstractions}.")
        raw_items = raw_items[:max_abstractions]

    abstractions = []
    for position, item in enumerate(raw_items):
        what = f"abstraction item {position}"
        _require_keys(item, ("name", "description", "file_indices"), what, response)
        name = _require_str(item, "name", what, response)
        description = _require_str(item, "description", what, response)
        if not name:
            raise ResponseParseError(f"Empty name in {what}: {item}", raw_response=response)

        file_indices = item["file_indices"]
        if file_indices is None:
            file_indices = []
        if not isinstance(file_indices, list):
            raise ResponseParseError(f"file_indices is not a list in {what}: {item}", raw_response=response)

        validated = {
            resolve_reference(entry, file_count, f"abstraction '{name}' file_indices")
            for entry in file_indices
        }
        abstractions.append(Abstraction(
            index=position,
            name=name,
            description=description,
            file_indices=tuple(sorted(validated)),
        ))

    return tuple(abstractions)


def parse_relationships(response, num_abstractions):
    """
    Validate the project summary and relationship edges returned by the LLM.

    Both endpoints of every edge must be valid abstraction indices. Cycles,
    self-references and repeated edges are kept as given.

    Returns:
        RelationshipGraph
    """
    data = parse_structured_response(response, dict)
    _require_keys(data, ("summary", "relationships"), "relationship output", response)
    summary = _require_str(data, "summary", "relationship output", response)
    raw_edges = data["relationships"]
    if raw_edges is None:
        raw_edges = []
    if not isinstance(raw_edges, list):
        raise ResponseParseError("relationships is not a list", raw_response=response)

    edges = []
    for position, rel in enumerate(raw_edges):
        what = f"relationship {position}"
        _require_keys(rel, ("from_abstraction", "to_abstraction", "label"), what, response)
        label = _require_str(rel, "label", what, response)
        from_idx = resolve_reference(rel["from_abstraction"], num_abstractions, f"{what} (from_abstraction)")
        to_idx = resolve_reference(rel["to_abstraction"], num_abstractions, f"{what} (to_abstraction)")
        edges.append(Relationship(from_index=from_idx, to_index=to_idx, label=label))

    return RelationshipGraph(summary=summary, edges=tuple(edges))


def parse_chapter_order(response, num_abstractions):
    """
    Validate the teaching order returned by the LLM.

    Checks, in order: each entry is an in-range index; no index repeats (the
    first repeated position is reported); and no index is missing (the whole
    missing set is reported).

    Returns:
        tuple[int]: a permutation of range(num_abstractions)
    """
    raw_entries = parse_structured_response(response, list)

    ordered_indices = []
    seen_indices = set()
    for position, entry in enumerate(raw_entries):
        idx = resolve_reference(entry, num_abstractions, f"chapter order position {position}")
        if idx in seen_indices:
            raise DuplicateIndexError(idx, position)
        seen_indices.add(idx)
        ordered_indices.append(idx)

    missing = sorted(set(range(num_abstractions)) - seen_indices)
    if missing:
        raise PlanIncompleteError(
            f"Ordered list length ({len(ordered_indices)}) does not match "
            f"number of abstractions ({num_abstractions}). Missing indices: {missing}",
            missing=missing,
        )
    return tuple(ordered_indices)


def summarize_chapter(chapter):
    """
    Cheap summary of a chapter for the prompts of later chapters.

    First CHAPTER_SUMMARY_CHAR_LIMIT characters with heading markers removed.
    Never shown to readers.
    """
    summary = truncate(chapter.content, CHAPTER_SUMMARY_CHAR_LIMIT, "...")
    summary = summary.replace("#", "").strip()
    return ChapterSummary(name=chapter.title, summary=summary)


def build_chapter_prompt(abstraction, files, previous_chapters, project_name, chapter_number):
    """Prompt for one chapter. Prior chapters appear only when there are any."""
    if not abstraction.name or not abstraction.name.strip():
        raise InputValidationError("Abstraction name is required to write a chapter")

    file_sections = []
    for idx in abstraction.file_indices:
        if not 0 <= idx < len(files):
            continue
        source = files[idx]
        content = truncate(source.content, CHAPTER_FILE_CHAR_LIMIT, "\n... (truncated for brevity)")
        file_sections.append(f"### File: {source.path}\n```\n{content}\n```")
    if file_sections:
        file_context = "Related code files:\n\n" + "\n\n".join(file_sections)
    else:
        file_context = "No specific code files are associated with this concept."

    previous_context = ""
    if previous_chapters:
        lines = [f"- {prev.name}: {prev.summary}" for prev in previous_chapters]
        previous_context = (
            "PREVIOUSLY COVERED CONCEPTS (already covered, do not repeat):\n"
            + "\n".join(lines)
            + "\n\n"
        )

    return f"""You are writing Chapter {chapter_number} of a tutorial for the "{project_name}" project.

TARGET AUDIENCE: Developers new to this codebase who want to understand it quickly.

ABSTRACTION TO EXPLAIN:
Name: {abstraction.name}
Description: {abstraction.description}

{file_context}

{previous_context}Your task: Write a beginner-friendly tutorial chapter explaining this abstraction.

REQUIREMENTS:
1. Use clear, simple language
2. Include code examples from the provided files. Keep each code block BELOW 10 lines
3. Use analogies or real-world examples where helpful
4. Explain WHY this abstraction exists, not just WHAT it does
5. Break down complex concepts into digestible parts
6. Format as markdown

STRUCTURE YOUR CHAPTER:
# {abstraction.name}

[Brief introduction - what is this and why does it matter?]

## What It Does

[Clear explanation of the abstraction's purpose]

## Key Code

[Show relevant code snippets with explanations]

## How It Works

[Step-by-step explanation of the implementation]

## Key Takeaways

- [Important point 1]
- [Important point 2]
- [Important point 3]

OUTPUT: Return ONLY the markdown content, no meta-commentary (DON'T wrap it in ```markdown``` tags).
"""


def write_chapter(llm, abstraction, files, previous_chapters, project_name, chapter_number, use_cache=True):
    """
    Write one chapter with a single LLM call.

    Args:
        llm: Callable with the call_llm signature
        abstraction: The Abstraction this chapter explains
        files: The full corpus (tuple of SourceFile)
        previous_chapters: ChapterSummary for every chapter already written
        project_name: Name of the project
        chapter_number: 1-based position in the chapter order
        use_cache: Passed through to the LLM call

    Returns:
        Chapter
    """
    prompt = build_chapter_prompt(abstraction, files, previous_chapters, project_name, chapter_number)
    response = llm(prompt, use_cache=use_cache, system_instruction=SYSTEM_WRITE_CHAPTER)
    return Chapter(
        number=chapter_number,
        title=abstraction.name,
        content=strip_outer_fence(response),
    )


# =============================================================================
# BASE NODE: state machine + failure reporting
# =============================================================================

class PipelineNode(Node):
    """
    Node that takes part in the pipeline state machine.

    Subclasses set:
        stage    - name used in failure reports
        requires - state shared["state"] must hold before prep() runs
        produces - state entered once post() has stored the results
    """

    stage = None
    requires = None
    produces = None

    def __init__(self, llm=None, max_retries=1, wait=0):
        super().__init__(max_retries=max_retries, wait=wait)
        self.llm = llm or call_llm

    def _run(self, shared):
        current = shared.setdefault("state", PipelineState.INIT)
        try:
            if self.requires is not None and current != self.requires:
                raise PipelineStateError(
                    f"Stage '{self.stage}' needs state {self.requires.value}, "
                    f"but the pipeline is in {current.value}"
                )
            action = super()._run(shared)
            if self.produces is not None:
                self.advance(shared, self.produces)
        except Exception as exc:
            failure = PipelineFailed(self.stage, exc)
            shared["state"] = PipelineState.FAILED
            shared["failure"] = failure
            logger.error("Pipeline failed in stage %s: %s", self.stage, exc)
            raise failure from exc
        return action

    def advance(self, shared, target):
        """Move shared["state"] one step forward; anything else is a bug."""
        current = shared["state"]
        if next_state(current) != target:
            raise PipelineStateError(f"Illegal state transition {current.value} -> {target.value}")
        shared["state"] = target
        logger.info("Pipeline state: %s -> %s", current.value, target.value)


# =============================================================================
# NODE 1: FetchRepo - Read the source tree into an indexed corpus
# =============================================================================

class FetchRepo(PipelineNode):
    """
    Reads the repository into an immutable, indexed list of SourceFile.

    Output (to shared):
        - files: tuple of SourceFile, index == position
        - project_name: derived from local_dir when not provided
    """

    stage = "fetch_repo"
    requires = PipelineState.INIT
    produces = PipelineState.CORPUS_READY

    def prep(self, shared):
        local_dir = shared.get("local_dir")
        if not local_dir:
            raise InputValidationError("Repository path (local_dir) is required")

        if not shared.get("project_name"):
            shared["project_name"] = derive_project_name(local_dir)

        return {
            "local_dir": local_dir,
            "include_patterns": shared.get("include_patterns"),
            "exclude_patterns": shared.get("exclude_patterns"),
            "max_file_size": shared.get("max_file_size"),
            "max_file_count": shared.get("max_file_count") or DEFAULT_MAX_FILE_COUNT,
        }

    def exec(self, prep_res):
        print(f"Crawling directory: {prep_res['local_dir']}...")
        result = crawl_local_files(
            directory=prep_res["local_dir"],
            include_patterns=prep_res["include_patterns"],
            exclude_patterns=prep_res["exclude_patterns"],
            max_file_size=prep_res["max_file_size"],
            use_relative_paths=True,
            max_file_count=prep_res["max_file_count"],
        )

        files = tuple(
            SourceFile(index=i, path=path, content=content)
            for i, (path, content) in enumerate(result.get("files", {}).items())
        )
        if not files:
            raise InputValidationError("No files found in repository - no files matched the patterns")
        print(f"Fetched {len(files)} files.")
        return files

    def post(self, shared, prep_res, exec_res):
        shared["files"] = exec_res


# =============================================================================
# NODE 2: IdentifyAbstractions - Use LLM to find core concepts
# =============================================================================

class IdentifyAbstractions(PipelineNode):
    """
    Asks the LLM for the core abstractions of the codebase.

    Each file's content is capped at ABSTRACTION_FILE_CHAR_LIMIT characters so
    the prompt stays bounded however large the corpus is.

    Output (to shared):
        - abstractions: tuple of Abstraction, index == position
    """

    stage = "identify_abstractions"
    requires = PipelineState.CORPUS_READY
    produces = PipelineState.ABSTRACTIONS_READY

    def prep(self, shared):
        files = shared.get("files") or ()
        if not files:
            raise InputValidationError("No files provided")

        context = ""
        for source in files:
            content = truncate(source.content, ABSTRACTION_FILE_CHAR_LIMIT, "\n... (truncated)")
            context += f"--- File Index {source.index}: {source.path} ---\n{content}\n\n"

        file_listing = "\n".join(f"- {source.index} # {source.path}" for source in files)

        return (
            context,
            file_listing,
            len(files),
            shared["project_name"],
            shared.get("max_abstraction_num") or DEFAULT_MAX_ABSTRACTIONS,
            shared.get("use_cache", True),
        )

    def exec(self, prep_res):
        (
            context,
            file_listing,
            file_count,
            project_name,
            max_abstraction_num,
            use_cache,
        ) = prep_res

        print("Identifying abstractions using LLM...")

        prompt = f"""
For the project `{project_name}`:

Codebase Context:
{context}

Analyze the codebase context.
Identify the top 5-{max_abstraction_num} core most important abstractions to help those new to the codebase.

For each abstraction, provide:
1. A concise `name`.
2. A beginner-friendly `description` explaining what it is with a simple analogy, in around 100 words.
3. A list of relevant `file_indices` (integers) using the format `idx # path/comment`.

List of file indices and paths present in the context:
{file_listing}

Format the output as a YAML list of dictionaries:

```yaml
- name: "Query Processing"
  description: |
    Explains what the abstraction does.
    It's like a central dispatcher routing requests.
  file_indices:
    - 0 # path/to/file1.py
    - 3 # path/to/related.py
- name: "Query Optimization"
  description: |
    Another core concept, similar to a blueprint for objects.
  file_indices:
    - 5 # path/to/another.js
# ... up to {max_abstraction_num} abstractions
```

Return ONLY the YAML, no other text."""

        response = self.llm(
            prompt,
            use_cache=(use_cache and self.cur_retry == 0),
            system_instruction=SYSTEM_IDENTIFY_ABSTRACTIONS,
        )
        abstractions = parse_abstractions(response, file_count, max_abstraction_num)
        print(f"Identified {len(abstractions)} abstractions.")
        return abstractions

    def post(self, shared, prep_res, exec_res):
        shared["abstractions"] = exec_res


# =============================================================================
# NODE 3: AnalyzeRelationships - Use LLM to find how concepts relate
# =============================================================================

class AnalyzeRelationships(PipelineNode):
    """
    Asks the LLM for a project summary and the relationships between
    abstractions. Each related file is shown as a short sample only
    (RELATIONSHIP_SAMPLE_CHAR_LIMIT characters).

    Output (to shared):
        - relationships: RelationshipGraph
    """

    stage = "analyze_relationships"
    requires = PipelineState.ABSTRACTIONS_READY
    produces = PipelineState.RELATIONSHIPS_READY

    def prep(self, shared):
        abstractions = shared.get("abstractions") or ()
        files = shared["files"]
        if not abstractions:
            raise InputValidationError("No abstractions provided")

        abstraction_listing = "\n".join(
            f"- {a.index} # {a.name}: {a.description}" for a in abstractions
        )

        code_context = ""
        for a in abstractions:
            code_context += f"\n### Abstraction {a.index}: {a.name}\nRelated files:\n"
            for idx_path, content in get_content_for_indices(files, a.file_indices).items():
                sample = truncate(content, RELATIONSHIP_SAMPLE_CHAR_LIMIT, "...")
                code_context += f"  File {idx_path}:\n{sample}\n\n"

        return (
            abstraction_listing,
            code_context,
            len(abstractions),
            shared["project_name"],
            shared.get("use_cache", True),
        )

    def exec(self, prep_res):
        (
            abstraction_listing,
            code_context,
            num_abstractions,
            project_name,
            use_cache,
        ) = prep_res

        print("Analyzing relationships using LLM...")

        prompt = f"""
Based on the following abstractions and relevant code snippets from the project `{project_name}`:

List of Abstraction Indices and Names:
{abstraction_listing}

Code Context (samples of each abstraction's files):
{code_context}

Please provide:
1. A high-level `summary` of the project's main purpose and functionality in a few beginner-friendly sentences. Use markdown formatting with **bold** and *italic* text to highlight important concepts.
2. A list (`relationships`) describing the key interactions between these abstractions. For each relationship, specify:
    - `from_abstraction`: Index of the source abstraction (e.g., `0 # AbstractionName1`)
    - `to_abstraction`: Index of the target abstraction (e.g., `1 # AbstractionName2`)
    - `label`: A brief label for the interaction **in just a few words** (e.g., "Manages", "Inherits", "Uses").
    Ideally the relationship should be backed by one abstraction calling or passing parameters to another.
    Simplify the relationship and exclude those non-important ones.

IMPORTANT: Make sure EVERY abstraction is involved in at least ONE relationship (either as source or target).

Format the output as YAML:

```yaml
summary: |
  A brief, simple explanation of the project.
  Can span multiple lines with **bold** and *italic* for emphasis.
relationships:
  - from_abstraction: 0 # AbstractionName1
    to_abstraction: 1 # AbstractionName2
    label: "Manages"
  - from_abstraction: 2 # AbstractionName3
    to_abstraction: 0 # AbstractionName1
    label: "Provides config"
  # ... other relationships
```

Now, provide the YAML output:
"""
        response = self.llm(
            prompt,
            use_cache=(use_cache and self.cur_retry == 0),
            system_instruction=SYSTEM_ANALYZE_RELATIONSHIPS,
        )
        graph = parse_relationships(response, num_abstractions)
        print(f"Generated project summary and {len(graph.edges)} relationships.")
        return graph

    def post(self, shared, prep_res, exec_res):
        shared["relationships"] = exec_res


# =============================================================================
# NODE 4: OrderChapters - Use LLM to determine the teaching order
# =============================================================================

class OrderChapters(PipelineNode):
    """
    Asks the LLM for the order in which to teach the abstractions and checks
    the answer is a permutation of every abstraction index.

    Output (to shared):
        - chapter_order: tuple of abstraction indices in teaching order
    """

    stage = "order_chapters"
    requires = PipelineState.RELATIONSHIPS_READY
    produces = PipelineState.PLAN_READY

    def prep(self, shared):
        abstractions = shared["abstractions"]
        relationships = shared["relationships"]
        if not abstractions:
            raise InputValidationError("No abstractions provided")

        abstraction_listing = "\n".join(f"- {a.index} # {a.name}" for a in abstractions)

        context = f"Project Summary:\n{relationships.summary}\n\n"
        context += "Relationships (Indices refer to abstractions above):\n"
        for rel in relationships.edges:
            from_name = abstractions[rel.from_index].name
            to_name = abstractions[rel.to_index].name
            context += f"- From {rel.from_index} ({from_name}) to {rel.to_index} ({to_name}): {rel.label}\n"

        return (
            abstraction_listing,
            context,
            len(abstractions),
            shared["project_name"],
            shared.get("use_cache", True),
        )

    def exec(self, prep_res):
        (
            abstraction_listing,
            context,
            num_abstractions,
            project_name,
            use_cache,
        ) = prep_res

        print("Determining chapter order using LLM...")

        prompt = f"""
Given the following project abstractions and their relationships for the project `{project_name}`:

Abstractions (Index # Name):
{abstraction_listing}

Context about relationships and project summary:
{context}

If you are going to make a tutorial for `{project_name}`, what is the best order to explain these abstractions, from first to last?
Ideally, first explain those that are the most important or foundational, perhaps user-facing concepts or entry points. Then move to more detailed, lower-level implementation details or supporting concepts.
Make sure dependencies are explained before they're used.

Output the ordered list of abstraction indices, including the name in a comment for clarity. Use the format `idx # AbstractionName`.
IMPORTANT: Include ALL abstractions exactly once.

```yaml
- 2 # FoundationalConcept
- 0 # CoreClassA
- 1 # CoreClassB (uses CoreClassA)
- ...
```

Now, provide the YAML output:
"""
        response = self.llm(
            prompt,
            use_cache=(use_cache and self.cur_retry == 0),
            system_instruction=SYSTEM_ORDER_CHAPTERS,
        )
        ordered_indices = parse_chapter_order(response, num_abstractions)
        print(f"Determined chapter order (indices): {list(ordered_indices)}")
        return ordered_indices

    def post(self, shared, prep_res, exec_res):
        shared["chapter_order"] = exec_res


# =============================================================================
# NODE 5: WriteChapters - Write each chapter, strictly in order
# =============================================================================

class WriteChapters(PipelineNode):
    """
    Writes one chapter per entry of the chapter order.

    Chapters are written one after another: chapter k+1's prompt lists the
    summaries of chapters 1..k as "already covered", so the order of the
    loop is part of the result. The summary list lives only inside exec().

    Output (to shared):
        - chapters: tuple of Chapter in teaching order
        - chapters_completed: chapters written so far, updated after each one
    """

    stage = "write_chapters"
    requires = PipelineState.PLAN_READY
    produces = PipelineState.DONE

    def prep(self, shared):
        self.advance(shared, PipelineState.COMPOSING)

        def report_progress(count):
            shared["chapters_completed"] = count

        return (
            shared["chapter_order"],
            shared["abstractions"],
            shared["files"],
            shared["project_name"],
            shared.get("use_cache", True),
            report_progress,
        )

    def exec(self, prep_res):
        chapter_order, abstractions, files, project_name, use_cache, report_progress = prep_res

        print(f"Preparing to write {len(chapter_order)} chapters...")
        report_progress(0)
        previous_chapters = []
        chapters = []
        for chapter_number, abstraction_index in enumerate(chapter_order, start=1):
            abstraction = abstractions[abstraction_index]
            print(f"Writing chapter {chapter_number}/{len(chapter_order)} for: {abstraction.name} using LLM...")
            chapter = write_chapter(
                self.llm,
                abstraction,
                files,
                tuple(previous_chapters),
                project_name,
                chapter_number,
                use_cache=(use_cache and self.cur_retry == 0),
            )
            chapters.append(chapter)
            previous_chapters.append(summarize_chapter(chapter))
            report_progress(len(chapters))
        return tuple(chapters)

    def post(self, shared, prep_res, exec_res):
        shared["chapters"] = exec_res
        print(f"Finished writing {len(exec_res)} chapters.")


# =============================================================================
# NODE 6: CombineTutorial - Hand the finished chapters to the writer
# =============================================================================

class CombineTutorial(PipelineNode):
    """
    Writes the chapter files plus an index.md with the project summary, a
    Mermaid diagram of the relationships and links to every chapter.

    Output (to shared):
        - files_written: chapter paths in order, then the index path
        - final_output_dir: the output directory
    """

    stage = "combine_tutorial"
    requires = PipelineState.DONE

    def prep(self, shared):
        project_name = shared["project_name"]
        abstractions = shared["abstractions"]
        relationships = shared["relationships"]
        chapters = shared["chapters"]

        mermaid_lines = ["flowchart TD"]
        for a in abstractions:
            sanitized_name = a.name.replace('"', "")
            mermaid_lines.append(f'    A{a.index}["{sanitized_name}"]')
        for rel in relationships.edges:
            edge_label = rel.label.replace('"', "").replace("\n", " ")
            if len(edge_label) > MERMAID_MAX_LABEL_LEN:
                edge_label = edge_label[:MERMAID_MAX_LABEL_LEN - 3] + "..."
            mermaid_lines.append(f'    A{rel.from_index} -- "{edge_label}" --> A{rel.to_index}')

        index_content = f"# Tutorial: {project_name}\n\n"
        index_content += f"{relationships.summary}\n\n"
        index_content += "```mermaid\n" + "\n".join(mermaid_lines) + "\n```\n\n"
        index_content += "## Chapters\n\n"
        for chapter in chapters:
            index_content += f"{chapter.number}. [{chapter.title}]({chapter_filename(chapter.number, chapter.title)})\n"

        return {
            "output_dir": shared.get("output_dir"),
            "index_content": index_content,
            "chapters": chapters,
        }

    def exec(self, prep_res):
        output_dir = prep_res["output_dir"]
        print(f"Combining tutorial into directory: {output_dir}")

        files_written = write_markdown_files(output_dir, prep_res["chapters"])
        for path in files_written:
            print(f"  - Wrote {path}")

        index_filepath = os.path.join(output_dir, INDEX_FILE_NAME)
        with open(index_filepath, "w", encoding="utf-8") as f:
            f.write(prep_res["index_content"])
        print(f"  - Wrote {index_filepath}")

        return files_written + [index_filepath]

    def post(self, shared, prep_res, exec_res):
        shared["files_written"] = exec_res
        shared["final_output_dir"] = prep_res["output_dir"]
        print(f"\nTutorial generation complete! Files are in: {prep_res['output_dir']}")
