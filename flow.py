"""
================================================================================
CODEBASE TUTORIAL PIPELINE - FLOW DEFINITION
================================================================================
This file defines the PocketFlow workflow that orchestrates tutorial
generation.

FLOW ARCHITECTURE:
==================
The tutorial generation follows a 6-node pipeline:

    FetchRepo → IdentifyAbstractions → AnalyzeRelationships →
    OrderChapters → WriteChapters → CombineTutorial

The ">>" operator connects nodes, creating a linear flow. Each node checks
and advances shared["state"] (see nodes.PipelineNode), so a node can never
run on incomplete input, and a failure anywhere stops the flow before
anything is written.
================================================================================
"""

from pocketflow import Flow

from nodes import (
    FetchRepo,              # Step 1: Read files from the local directory
    IdentifyAbstractions,   # Step 2: Use LLM to identify core concepts
    AnalyzeRelationships,   # Step 3: Use LLM to find how concepts relate
    OrderChapters,          # Step 4: Use LLM to determine teaching order
    WriteChapters,          # Step 5: Use LLM to write each chapter, in order
    CombineTutorial,        # Step 6: Write chapters and index to disk
)
from constants.defaults import (
    DEFAULT_EXCLUDE_PATTERNS,
    DEFAULT_INCLUDE_PATTERNS,
    DEFAULT_MAX_ABSTRACTIONS,
    DEFAULT_MAX_FILE_COUNT,
    DEFAULT_MAX_FILE_SIZE,
)
from constants.paths import DEFAULT_OUTPUT_DIR
from utils.models import PipelineState


def create_shared_store(
    local_dir,
    output_dir=DEFAULT_OUTPUT_DIR,
    project_name=None,
    include_patterns=None,
    exclude_patterns=None,
    max_file_size=DEFAULT_MAX_FILE_SIZE,
    max_file_count=DEFAULT_MAX_FILE_COUNT,
    max_abstraction_num=DEFAULT_MAX_ABSTRACTIONS,
    use_cache=True,
):
    """
    Build the shared dictionary a tutorial flow runs on.

    Unset limits fall back to the defaults (100 files, 10 abstractions).
    """
    return {
        "local_dir": local_dir,
        "project_name": project_name,
        "output_dir": output_dir,
        "include_patterns": set(include_patterns) if include_patterns else DEFAULT_INCLUDE_PATTERNS,
        "exclude_patterns": set(exclude_patterns) if exclude_patterns else DEFAULT_EXCLUDE_PATTERNS,
        "max_file_size": max_file_size,
        "max_file_count": max_file_count or DEFAULT_MAX_FILE_COUNT,
        "max_abstraction_num": max_abstraction_num or DEFAULT_MAX_ABSTRACTIONS,
        "use_cache": use_cache,
        # Outputs will be populated by the nodes
        "state": PipelineState.INIT,
        "files": (),
        "abstractions": (),
        "relationships": None,
        "chapter_order": (),
        "chapters": (),
        "chapters_completed": 0,
        "files_written": [],
        "final_output_dir": None,
    }


def create_tutorial_flow(llm=None, max_retries=1, wait=0):
    """
    Creates and returns the codebase tutorial generation flow.

    Args:
        llm: Callable with the utils.call_llm.call_llm signature. Defaults to
             call_llm; tests pass a deterministic stub.
        max_retries: Attempts per LLM node. The default of 1 means a bad
             response fails the run; raise it to let PocketFlow re-run a
             stage from the same input.
        wait: Seconds between attempts.

    Returns:
        Flow: A PocketFlow Flow object ready to be run with shared data
    """
    # FetchRepo and CombineTutorial only touch the file system: no retries
    fetch_repo = FetchRepo()
    identify_abstractions = IdentifyAbstractions(llm=llm, max_retries=max_retries, wait=wait)
    analyze_relationships = AnalyzeRelationships(llm=llm, max_retries=max_retries, wait=wait)
    order_chapters = OrderChapters(llm=llm, max_retries=max_retries, wait=wait)
    write_chapters = WriteChapters(llm=llm, max_retries=max_retries, wait=wait)
    combine_tutorial = CombineTutorial()

    fetch_repo >> identify_abstractions
    identify_abstractions >> analyze_relationships
    analyze_relationships >> order_chapters
    order_chapters >> write_chapters
    write_chapters >> combine_tutorial

    return Flow(start=fetch_repo)
