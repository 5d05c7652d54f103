import pytest

from ircchat.config import ALLOWED_CHARS, SPECIAL_CHARS, is_allowed_input


@pytest.mark.parametrize("text", ["abcXYZ019", "user_1", "!#%?*()_-+=<>", "Z"])
def test_allowed_inputs(text):
    assert is_allowed_input(text) is True


@pytest.mark.parametrize("text", ["abc def", "привет", "a@b", "tab\t", "dot."])
def test_rejected_inputs(text):
    assert is_allowed_input(text) is False


def test_every_special_char_is_allowed():
    assert all(is_allowed_input(char) for char in SPECIAL_CHARS)


def test_whole_allowed_set_is_accepted():
    assert is_allowed_input("".join(sorted(ALLOWED_CHARS))) is True


def test_ascii_has_exactly_75_allowed_chars():
    # 10 digits, 52 English letters and 13 special characters
    allowed = [chr(code) for code in range(128) if is_allowed_input(chr(code))]
    assert len(allowed) == 75
    assert all(33 <= ord(char) < 127 for char in allowed)