"""Tests for diagnostics collection."""

import pytest

from tsbean.core.diagnostics import Diagnostics, UnmappableTypeError


def test_duplicates_are_collapsed() -> None:
    diagnostics = Diagnostics()
    diagnostics.report("Monster", "pos", "Vector9")
    diagnostics.report("Monster", "pos", "Vector9")
    diagnostics.report("Monster", "rot", "Quat")

    assert len(diagnostics) == 2
    assert [d.field for d in diagnostics] == ["pos", "rot"]


def test_empty_collection_does_not_raise() -> None:
    diagnostics = Diagnostics()
    assert not diagnostics
    diagnostics.raise_if_any()


def test_raise_carries_every_diagnostic() -> None:
    diagnostics = Diagnostics()
    diagnostics.report("Monster", "pos", "Vector9")
    diagnostics.report("Hit", None, "IOne, ITwo", kind="ambiguous-parent")

    with pytest.raises(UnmappableTypeError) as excinfo:
        diagnostics.raise_if_any()

    assert len(excinfo.value.diagnostics) == 2
    assert "2 unmappable" in str(excinfo.value)


def test_describe() -> None:
    diagnostics = Diagnostics()
    diagnostics.report("Monster", "pos", "Vector9")
    diagnostics.report("Hit", None, "IOne, ITwo", kind="ambiguous-parent")

    described = [d.describe() for d in diagnostics]

    assert described == [
        "Monster.pos: cannot map type 'Vector9'",
        "Hit: ambiguous parent among interfaces IOne, ITwo",
    ]
