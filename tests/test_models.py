"""Tests for board_harvester.models module."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from board_harvester.models import (
    HarvestResult,
    LinkCandidate,
    PreferenceHints,
    Record,
    ShoppingLink,
)


class TestRecord:
    def test_defaults(self):
        r = Record(link="https://p.com/pin/1/", media_url="https://i.pinimg.com/1.jpg")
        assert r.title == ""
        assert r.description == ""
        assert r.secondary_media_url is None
        assert r.analysis_items is None
        assert r.enriched is False
        assert r.analysis_summary == ""

    def test_requires_media_url(self):
        with pytest.raises(ValidationError):
            Record(link="https://p.com/pin/1/")

    def test_accepts_camel_case_input(self):
        r = Record.model_validate({
            "link": "https://p.com/pin/1/",
            "mediaUrl": "https://i.pinimg.com/1.jpg",
            "secondaryMediaUrl": "https://v.pinimg.com/1.mp4",
        })
        assert r.secondary_media_url == "https://v.pinimg.com/1.mp4"

    def test_export_uses_camel_case(self):
        r = Record(
            link="https://p.com/pin/1/",
            media_url="https://i.pinimg.com/1.jpg",
            analysis_items=["Hat"],
            direct_links=[ShoppingLink(item="Hat", url="https://x.com/h")],
        )
        dumped = r.model_dump(by_alias=True, exclude_none=True)
        assert dumped["mediaUrl"] == "https://i.pinimg.com/1.jpg"
        assert dumped["analysisItems"] == ["Hat"]
        assert dumped["directLinks"] == [{"item": "Hat", "url": "https://x.com/h"}]
        assert "preferredLinks" not in dumped

    def test_mutable_for_enrichment(self):
        r = Record(link="https://p.com/pin/1/", media_url="https://i.pinimg.com/1.jpg")
        r.analysis_items = ["Scarf", "Coat"]
        assert r.enriched is True
        assert r.analysis_summary == "Scarf, Coat"


class TestLinkCandidate:
    def test_preferred_optional(self):
        c = LinkCandidate.model_validate({"item": "Hat", "exact_url": "https://x.com"})
        assert c.preferred_url is None

    def test_item_required(self):
        with pytest.raises(ValidationError):
            LinkCandidate.model_validate({"exact_url": "https://x.com"})


class TestPreferenceHints:
    def test_empty_is_falsy(self):
        assert not PreferenceHints()
        assert not PreferenceHints(target_audience="  ")
        assert PreferenceHints().render() == ""

    def test_render_both(self):
        hints = PreferenceHints(target_audience="Men", preferred_brands="Uniqlo")
        assert hints
        assert hints.render() == "Target Audience: Men, Preferred Brands: Uniqlo"

    def test_render_brands_only(self):
        assert PreferenceHints(preferred_brands="COS").render() == "Preferred Brands: COS"


class TestHarvestResult:
    def test_defaults(self):
        result = HarvestResult(source_url="https://p.com/jane/board/")
        assert result.records == []
        assert result.passes == 0
        assert result.truncated is False

    def test_dump_by_alias(self):
        result = HarvestResult(source_url="https://p.com/b/", board_label="B")
        dumped = result.model_dump(by_alias=True)
        assert dumped["sourceUrl"] == "https://p.com/b/"
        assert dumped["boardLabel"] == "B"
