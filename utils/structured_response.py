"""
Pull a YAML payload out of a free-text LLM response.

LLMs wrap their answer in prose and markdown fences no matter how the prompt
asks. The lookup order is:

    1. the first fenced block tagged `yaml` (or `yml`)
    2. the first untagged fenced block
    3. the whole response, but only when it contains no fence at all

Malformed YAML is reported, never repaired: the caller gets a
ResponseParseError carrying the raw response and decides whether to re-run.
"""

import re
import textwrap

import yaml

from .errors import ResponseParseError

_FENCE = "```"

# What may follow an opening fence on its line: an optional language tag.
_TAG_RE = re.compile(r"[ \t]*([\w.+-]*)[ \t]*")

_TAG_ALIASES = {
    "yaml": {"yaml", "yml"},
}

_WRAPPER_TAGS = {"", "markdown", "md"}


def iter_fenced_blocks(text: str):
    """
    Yield (tag, body) for each fenced block in order.

    Fences are found anywhere in a line ("Sure! ```yaml", "- 0```") and
    paired as they appear: opener, closer, opener, closer... The tag is the
    rest of the opener's line; if that is not a bare tag the block is
    untagged and starts right after the backticks. An opener without a
    closer runs to the end of the text.
    """
    pos = 0
    while True:
        start = text.find(_FENCE, pos)
        if start == -1:
            return

        after = start + len(_FENCE)
        line_end = text.find("\n", after)
        if line_end == -1:
            line_end = len(text)

        tag_match = _TAG_RE.fullmatch(text, after, line_end)
        if tag_match:
            tag = tag_match.group(1).lower()
            body_start = min(line_end + 1, len(text))
        else:
            tag = ""
            body_start = after

        end = text.find(_FENCE, body_start)
        if end == -1:
            yield tag, text[body_start:]
            return
        yield tag, text[body_start:end]
        pos = end + len(_FENCE)


def extract_structured_block(text: str, tag: str = "yaml") -> str:
    """Return the structured payload of `text` as a string, fences removed."""
    if text is None:
        raise ResponseParseError("LLM response is empty", raw_response=text)

    accepted_tags = _TAG_ALIASES.get(tag, {tag})
    blocks = list(iter_fenced_blocks(text))

    body = None
    for block_tag, block_body in blocks:
        if block_tag in accepted_tags:
            body = block_body
            break
    if body is None:
        for block_tag, block_body in blocks:
            if block_tag == "":
                body = block_body
                break
    if body is None:
        if blocks:
            found = ", ".join(sorted({t for t, _ in blocks}))
            raise ResponseParseError(
                f"No ```{tag} or untagged code block in LLM response (found: {found})",
                raw_response=text,
            )
        body = text

    return textwrap.dedent(body).strip()


def parse_structured_response(text: str, expected_type, tag: str = "yaml"):
    """
    Extract and parse the YAML payload of an LLM response.

    Args:
        text: Raw LLM response
        expected_type: Type (or tuple of types) the top-level value must have
        tag: Fence language tag to look for first

    Returns:
        The parsed document

    Raises:
        ResponseParseError: No block found, invalid YAML, or wrong top-level type
    """
    block = extract_structured_block(text, tag)
    try:
        data = yaml.safe_load(block)
    except yaml.YAMLError as e:
        raise ResponseParseError(f"Failed to parse YAML response: {e}", raw_response=text) from e

    if not isinstance(data, expected_type):
        expected = (
            " or ".join(t.__name__ for t in expected_type)
            if isinstance(expected_type, tuple)
            else expected_type.__name__
        )
        raise ResponseParseError(
            f"LLM output is not a {expected} (got {type(data).__name__})",
            raw_response=text,
        )
    return data


def strip_outer_fence(text: str) -> str:
    """
    Remove one markdown fence wrapped around the whole text.

    Only strips when the text both opens and closes with a fence and the
    opening tag is empty, `markdown` or `md`, so a chapter that merely starts
    with a code sample is left alone.
    """
    content = text.strip()
    if not content.startswith("```") or not content.endswith("```"):
        return content

    first_line, _, rest = content.partition("\n")
    if first_line[3:].strip().lower() not in _WRAPPER_TAGS or not rest:
        return content
    return rest[:-3].strip()
