from __future__ import annotations

import pytest

from pydefaults.exceptions import DefaultsError, InvalidKeyError
from pydefaults.keys import Key


def test_keys_compare_and_hash_by_raw_name() -> None:
    a = Key("theme", str)
    b = Key("theme", int, default=3)

    assert a == b
    assert hash(a) == hash(b)
    assert {a: 1}[b] == 1
    assert Key("theme", str) != Key("accent", str)
    assert str(a) == "theme"


def test_key_is_immutable() -> None:
    key = Key("theme", str)
    with pytest.raises(AttributeError):
        key.name = "other"  # type: ignore[misc]


@pytest.mark.parametrize("name", ["window.frame", ".hidden", "trailing."])
def test_key_name_with_path_separator_is_rejected(name: str) -> None:
    with pytest.raises(InvalidKeyError) as excinfo:
        Key(name, str)
    assert excinfo.value.name == name


def test_empty_or_non_string_key_name_is_rejected() -> None:
    with pytest.raises(InvalidKeyError):
        Key("", str)
    with pytest.raises(InvalidKeyError):
        Key(42, str)  # type: ignore[arg-type]


def test_invalid_key_error_is_a_value_error() -> None:
    with pytest.raises(ValueError):
        Key("a.b")
    with pytest.raises(DefaultsError):
        Key("a.b")
