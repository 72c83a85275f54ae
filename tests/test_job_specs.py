"""
tests/test_job_specs.py -- Tests for schemas/job_specs.py

Covers the job_type discriminator, rejection of unknown keys, booklet
page rules, and the document summary.

Called by: pytest
Depends on: schemas/job_specs.py, pydantic
"""

import pytest
from pydantic import ValidationError

from printflow.schemas.job_specs import (
    BookletPlusCoverSpecs,
    BookletSelfCoverSpecs,
    FlatSpecs,
    FoldedSpecs,
    page_count,
    parse_specs,
    summarize_specs,
)


class TestParse:
    @pytest.mark.parametrize("job_type,cls", [
        ("FLAT", FlatSpecs),
        ("FOLDED", FoldedSpecs),
        ("BOOKLET_SELF_COVER", BookletSelfCoverSpecs),
        ("BOOKLET_PLUS_COVER", BookletPlusCoverSpecs),
    ])
    def test_discriminator(self, job_type, cls):
        assert isinstance(parse_specs({"job_type": job_type}), cls)

    def test_empty_specs(self):
        assert parse_specs(None) is None
        assert parse_specs({}) is None

    def test_unknown_job_type(self):
        with pytest.raises(ValidationError):
            parse_specs({"job_type": "POSTER"})

    def test_variant_fields_not_shared(self):
        # fold_type belongs to FOLDED only
        with pytest.raises(ValidationError):
            parse_specs({"job_type": "FLAT", "fold_type": "tri-fold"})

    def test_misspelled_field_rejected(self):
        with pytest.raises(ValidationError):
            parse_specs({"job_type": "FLAT", "flatsize": "6 x 9"})

    def test_binding_type_limited(self):
        with pytest.raises(ValidationError):
            parse_specs({"job_type": "BOOKLET_SELF_COVER", "binding_type": "spiral"})

    def test_cover_pages_must_be_four(self):
        with pytest.raises(ValidationError):
            parse_specs({"job_type": "BOOKLET_PLUS_COVER", "cover_pages": 8})
        assert parse_specs({"job_type": "BOOKLET_PLUS_COVER", "cover_pages": 4}).cover_pages == 4

    def test_page_counts_positive(self):
        with pytest.raises(ValidationError):
            parse_specs({"job_type": "BOOKLET_SELF_COVER", "total_pages": 0})


class TestPageCount:
    def test_self_cover(self):
        assert page_count(parse_specs({"job_type": "BOOKLET_SELF_COVER", "total_pages": 16})) == 16

    def test_plus_cover_adds_cover(self):
        assert page_count(parse_specs({"job_type": "BOOKLET_PLUS_COVER", "interior_pages": 24})) == 28

    def test_flat_has_none(self):
        assert page_count(parse_specs({"job_type": "FLAT"})) is None


class TestSummary:
    def test_order_and_blanks_dropped(self):
        specs = parse_specs({
            "job_type": "FOLDED", "flat_size": "17 x 11", "folded_size": "8.5 x 11",
            "fold_type": "half", "paper": "", "colors": "4/4",
        })
        summary = summarize_specs(specs)
        assert list(summary) == ["Type", "Flat size", "Folded size", "Fold", "Colors"]
        assert summary["Type"] == "Folded"

    def test_none(self):
        assert summarize_specs(None) == {}
