"""Tests for the quality tier tables."""

import pytest

from fileshrink.quality import (
    Quality,
    audio_bitrate,
    extract_audio_bitrate,
    image_quality,
    palette_colors,
    parse_quality,
    pdf_preset,
    video_crf,
)


@pytest.mark.parametrize(
    "lookup, expected",
    [
        (pdf_preset, ("/screen", "/ebook", "/printer")),
        (video_crf, (28, 23, 18)),
        (audio_bitrate, ("64k", "128k", "192k")),
        (extract_audio_bitrate, ("96k", "192k", "320k")),
        (image_quality, (50, 80, 95)),
        (palette_colors, (64, 128, 256)),
    ],
)
def test_tier_tables(lookup, expected):
    assert (lookup(Quality.SMALL), lookup(Quality.MEDIUM), lookup(Quality.LARGE)) == expected


class TestParseQuality:
    @pytest.mark.parametrize("value", ["small", "medium", "large"])
    def test_known_values(self, value):
        assert parse_quality(value).value == value

    @pytest.mark.parametrize("value", [None, "", "huge", "0", "best"])
    def test_unknown_falls_back_to_medium(self, value):
        assert parse_quality(value) is Quality.MEDIUM

    def test_case_and_whitespace_ignored(self):
        assert parse_quality("  LARGE ") is Quality.LARGE

    def test_default_maps_to_medium_settings(self):
        q = parse_quality(None)
        assert pdf_preset(q) == "/ebook"
        assert video_crf(q) == 23
        assert extract_audio_bitrate(q) == "192k"
