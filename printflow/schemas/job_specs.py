"""
schemas/job_specs.py — Tagged job specifications per product type

One model per job type, discriminated by job_type. Each variant declares
its own optional fields; unknown keys are rejected so misspelled fields
surface as validation errors instead of disappearing into a free-form
blob.

Business Rules:
- job_type is FLAT, FOLDED, BOOKLET_SELF_COVER or BOOKLET_PLUS_COVER
- Booklet page counts are positive; a plus-cover booklet always has 4
  cover pages
- Binding is saddle-stitch or perfect-bound
- Jobs without specs (standard size-table jobs) carry none

Called by: schemas/jobs.py, services/job_service.py, services/document_service.py
Depends on: pydantic
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

BindingType = Literal["saddle-stitch", "perfect-bound"]


class _CommonSpecs(BaseModel):
    model_config = ConfigDict(extra="forbid")

    description: str | None = None
    paper: str | None = None
    colors: str | None = None
    quantity: int | None = Field(default=None, gt=0)
    delivery_date: str | None = None
    order_date: str | None = None
    pickup_date: str | None = None
    pool_date: str | None = None
    samples: str | None = None
    sample_instructions: str | None = None
    notes: str | None = None
    raw_po_text: str | None = None


class FlatSpecs(_CommonSpecs):
    """Postcards, flyers, and other unfolded pieces."""
    job_type: Literal["FLAT"] = "FLAT"
    flat_size: str | None = None
    bleeds: str | None = None
    coverage: str | None = None
    stock: str | None = None
    coating: str | None = None


class FoldedSpecs(_CommonSpecs):
    """Brochures and folded mailers."""
    job_type: Literal["FOLDED"] = "FOLDED"
    flat_size: str | None = None
    folded_size: str | None = None
    fold_type: str | None = None
    bleeds: str | None = None
    finishing: str | None = None
    stock: str | None = None
    coating: str | None = None
    coverage: str | None = None


class BookletSelfCoverSpecs(_CommonSpecs):
    """Booklet printed on one stock throughout."""
    job_type: Literal["BOOKLET_SELF_COVER"] = "BOOKLET_SELF_COVER"
    total_pages: int | None = Field(default=None, gt=0)
    page_size: str | None = None
    binding_type: BindingType | None = None
    text_stock: str | None = None
    bleeds: str | None = None
    coverage: str | None = None
    coating: str | None = None


class BookletPlusCoverSpecs(_CommonSpecs):
    """Booklet with a separate, heavier cover stock."""
    job_type: Literal["BOOKLET_PLUS_COVER"] = "BOOKLET_PLUS_COVER"
    interior_pages: int | None = Field(default=None, gt=0)
    cover_pages: Literal[4] | None = None
    page_size: str | None = None
    text_stock: str | None = None
    cover_stock: str | None = None
    binding_type: BindingType | None = None
    text_bleeds: str | None = None
    cover_bleeds: str | None = None
    text_coverage: str | None = None
    cover_coverage: str | None = None
    text_coating: str | None = None
    cover_coating: str | None = None


JobSpecs = Annotated[
    Union[FlatSpecs, FoldedSpecs, BookletSelfCoverSpecs, BookletPlusCoverSpecs],
    Field(discriminator="job_type"),
]

_adapter = TypeAdapter(JobSpecs)


def parse_specs(data: dict | None):
    """Validate a stored or submitted spec dict into its variant (None passes through)."""
    if not data:
        return None
    return _adapter.validate_python(data)


def page_count(specs) -> int | None:
    """Total printed pages for booklets; None for flat and folded pieces."""
    if isinstance(specs, BookletSelfCoverSpecs):
        return specs.total_pages
    if isinstance(specs, BookletPlusCoverSpecs):
        if specs.interior_pages is None:
            return None
        return specs.interior_pages + (specs.cover_pages or 4)
    return None


def summarize_specs(specs) -> dict:
    """Label → value pairs for documents, in a fixed order per variant."""
    if specs is None:
        return {}
    if isinstance(specs, FlatSpecs):
        rows = [("Type", "Flat"), ("Flat size", specs.flat_size), ("Stock", specs.stock),
                ("Coverage", specs.coverage), ("Coating", specs.coating), ("Bleeds", specs.bleeds)]
    elif isinstance(specs, FoldedSpecs):
        rows = [("Type", "Folded"), ("Flat size", specs.flat_size), ("Folded size", specs.folded_size),
                ("Fold", specs.fold_type), ("Finishing", specs.finishing), ("Stock", specs.stock),
                ("Coverage", specs.coverage), ("Coating", specs.coating)]
    elif isinstance(specs, BookletSelfCoverSpecs):
        rows = [("Type", "Booklet (self cover)"), ("Pages", specs.total_pages), ("Page size", specs.page_size),
                ("Binding", specs.binding_type), ("Text stock", specs.text_stock),
                ("Coverage", specs.coverage), ("Coating", specs.coating)]
    else:
        rows = [("Type", "Booklet (plus cover)"), ("Pages", page_count(specs)), ("Page size", specs.page_size),
                ("Binding", specs.binding_type), ("Text stock", specs.text_stock),
                ("Cover stock", specs.cover_stock), ("Text coverage", specs.text_coverage),
                ("Cover coverage", specs.cover_coverage)]
    rows += [("Paper", specs.paper), ("Colors", specs.colors), ("Delivery", specs.delivery_date),
             ("Notes", specs.notes)]
    return {label: value for label, value in rows if value not in (None, "")}
