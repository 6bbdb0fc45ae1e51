"""
Typed records passed between pipeline stages.

The shared store used to carry plain dicts and tuples; these frozen dataclasses
replace them so every stage reads the same field names and nothing downstream
can mutate an upstream result.
"""

from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True)
class SourceFile:
    index: int
    path: str
    content: str


@dataclass(frozen=True)
class Abstraction:
    index: int
    name: str
    description: str
    file_indices: tuple = field(default_factory=tuple)


@dataclass(frozen=True)
class Relationship:
    from_index: int
    to_index: int
    label: str


@dataclass(frozen=True)
class RelationshipGraph:
    summary: str
    edges: tuple = field(default_factory=tuple)


@dataclass(frozen=True)
class ChapterSummary:
    """Short, lossy view of a finished chapter used as context for later ones."""
    name: str
    summary: str


@dataclass(frozen=True)
class Chapter:
    number: int  # 1-based position in the chapter order
    title: str
    content: str


class PipelineState(Enum):
    INIT = "init"
    CORPUS_READY = "corpus_ready"
    ABSTRACTIONS_READY = "abstractions_ready"
    RELATIONSHIPS_READY = "relationships_ready"
    PLAN_READY = "plan_ready"
    COMPOSING = "composing"
    DONE = "done"
    FAILED = "failed"


# Linear order of the non-failure states; each state's successor is the next entry.
STATE_SEQUENCE = (
    PipelineState.INIT,
    PipelineState.CORPUS_READY,
    PipelineState.ABSTRACTIONS_READY,
    PipelineState.RELATIONSHIPS_READY,
    PipelineState.PLAN_READY,
    PipelineState.COMPOSING,
    PipelineState.DONE,
)


def next_state(state: PipelineState) -> PipelineState | None:
    """Return the state that follows `state`, or None for DONE and FAILED."""
    if state not in STATE_SEQUENCE:
        return None
    position = STATE_SEQUENCE.index(state)
    if position + 1 >= len(STATE_SEQUENCE):
        return None
    return STATE_SEQUENCE[position + 1]
