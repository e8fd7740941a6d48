"""Tests for shared value types and result variants."""

from __future__ import annotations

import pytest

from ao_coverage.errors import BranchNotFound, InvalidReportDocument, is_error
from ao_coverage.models import HeadContext


def test_head_context_decodes_legacy_commit_string() -> None:
    head = HeadContext.from_document("fae10429d")

    assert head == HeadContext(commit="fae10429d", format="tarpaulin")


def test_head_context_decodes_structured_document() -> None:
    head = HeadContext.from_document({"commit": "yay", "format": "cobertura"})

    assert head == HeadContext(commit="yay", format="cobertura")
    assert head.to_document() == {"commit": "yay", "format": "cobertura"}


@pytest.mark.parametrize("raw", [None, 12, {"commit": "abc"}, {"commit": 1, "format": "x"}])
def test_head_context_rejects_unknown_shapes(raw: object) -> None:
    with pytest.raises(ValueError):
        HeadContext.from_document(raw)


def test_is_error_discriminates_variants() -> None:
    assert is_error(BranchNotFound()) is True
    assert is_error(InvalidReportDocument()) is True
    assert is_error(HeadContext(commit="fae10429d", format="15-minute quarters")) is False
    assert is_error(42.0) is False


def test_error_variants_carry_expected_messages() -> None:
    assert BranchNotFound().message == "Branch not found"
    assert InvalidReportDocument().message == "Invalid report document"
