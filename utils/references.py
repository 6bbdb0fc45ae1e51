"""
Index references coming back from the LLM.

Prompts ask the model to write indices as `idx # name` so it can keep track of
what each number means. YAML drops an unquoted `# name` as a comment, but a
quoted one survives as a string, so every index that crosses the LLM boundary
may be either an int or an annotated string. Both go through parse_reference.
"""

from .errors import InvalidReferenceError, ReferenceOutOfBoundsError


def parse_reference(value) -> int:
    """
    Turn a reference into an int.

    Accepts an int, or a string of the form "3" or "3 # Anything". Text after
    the first '#' is ignored. Raises InvalidReferenceError otherwise.
    """
    # bool is an int subclass; `true` in YAML is not an index
    if isinstance(value, bool):
        raise InvalidReferenceError(value)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        head = value.split("#", 1)[0].strip()
        try:
            return int(head)
        except ValueError:
            raise InvalidReferenceError(value) from None
    raise InvalidReferenceError(value)


def resolve_reference(value, size: int, context: str) -> int:
    """Parse a reference and check 0 <= index < size."""
    idx = parse_reference(value)
    if not 0 <= idx < size:
        raise ReferenceOutOfBoundsError(idx, size, context)
    return idx
