"""Pydantic models for harvested pins and their enrichment."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class _ExportModel(BaseModel):
    """Base for models handed to the export stage (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ShoppingLink(_ExportModel):
    item: str
    url: str


class LinkCandidate(BaseModel):
    """One identified item as returned by the inference service."""

    item: str = Field(min_length=1)
    exact_url: str = ""
    preferred_url: str | None = None

    @field_validator("exact_url", mode="before")
    @classmethod
    def _null_url_is_missing(cls, value):
        return "" if value is None else value


class Record(_ExportModel):
    """One harvested pin."""

    link: str = Field(description="Canonical absolute URL of the pin")
    media_url: str = Field(description="Absolute URL of the primary image")
    secondary_media_url: str | None = Field(
        default=None,
        description="Video URL for the same pin, if any",
    )
    title: str = ""
    description: str = ""

    # Enrichment, attached in place by the pipeline
    analysis_items: list[str] | None = None
    direct_links: list[ShoppingLink] | None = None
    preferred_links: list[ShoppingLink] | None = None

    @property
    def analysis_summary(self) -> str:
        return ", ".join(self.analysis_items or [])

    @property
    def enriched(self) -> bool:
        return bool(self.analysis_items)


class PreferenceHints(BaseModel):
    target_audience: str = ""
    preferred_brands: str = ""

    def render(self) -> str:
        """Human-readable hint string, e.g. 'Target Audience: Women, Preferred Brands: Cos'."""
        parts = []
        if self.target_audience.strip():
            parts.append(f"Target Audience: {self.target_audience.strip()}")
        if self.preferred_brands.strip():
            parts.append(f"Preferred Brands: {self.preferred_brands.strip()}")
        return ", ".join(parts)

    def __bool__(self) -> bool:
        return bool(self.render())


class HarvestResult(_ExportModel):
    """Final output of one harvest (and, after enrichment, of one run)."""

    source_url: str = Field(description="Board URL that was harvested")
    board_label: str = ""
    records: list[Record] = Field(default_factory=list)
    passes: int = Field(default=0, description="Extractor passes run")
    truncated: bool = Field(
        default=False,
        description="True when the scroll loop hit its iteration ceiling",
    )
