import pytest

from utils.errors import InvalidReferenceError, ReferenceOutOfBoundsError, ResponseParseError
from utils.references import parse_reference, resolve_reference


@pytest.mark.parametrize("value", [3, "3", "3 # Foo", " 3#Foo", "3 # ### not checked"])
def test_parse_reference_accepts_int_and_annotated_string(value):
    assert parse_reference(value) == 3


def test_parse_reference_negative_string_parses_but_fails_bounds():
    assert parse_reference("-1 # nope") == -1
    with pytest.raises(ReferenceOutOfBoundsError):
        resolve_reference("-1 # nope", 3, "test")


@pytest.mark.parametrize("value", [True, None, 2.0, "two", "# 2", "", [1]])
def test_parse_reference_rejects_everything_else(value):
    with pytest.raises(InvalidReferenceError) as exc_info:
        parse_reference(value)
    assert exc_info.value.value == value


def test_invalid_reference_is_a_parse_failure():
    with pytest.raises(ResponseParseError):
        parse_reference("abc")


def test_resolve_reference_in_bounds():
    assert resolve_reference("2 # c.py", 3, "files") == 2
    assert resolve_reference(0, 1, "files") == 0


def test_resolve_reference_out_of_bounds_names_context():
    with pytest.raises(ReferenceOutOfBoundsError) as exc_info:
        resolve_reference("3 # d.py", 3, "abstraction 'Runner' file_indices")

    err = exc_info.value
    assert err.value == 3
    assert err.size == 3
    assert "abstraction 'Runner' file_indices" in str(err)
    assert "0..2" in str(err)
