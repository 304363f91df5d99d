"""Tests for text segmentation"""
import re

import pytest

from pagetranslate.segmenter import join_segments, split_into_segments


def long_paragraph(count=52):
    return "".join(
        f"This is sentence number {i:03d} in a long paragraph. " for i in range(count)
    ).strip()


def _words(text):
    return re.sub(r"\s+", "", text)


class TestSplitIntoSegments:
    """Boundary priority and size bounds"""

    def test_short_text_is_single_segment(self):
        assert split_into_segments("  Hello world.  ", 100, 10) == ["Hello world."]

    def test_empty_text_yields_nothing(self):
        assert split_into_segments("", 100, 10) == []
        assert split_into_segments(" \n\n \n", 100, 10) == []

    def test_paragraphs_split_on_blank_lines(self):
        text = "First paragraph.\n\nSecond paragraph.\n   \nThird."
        assert split_into_segments(text, 100, 0) == [
            "First paragraph.",
            "Second paragraph.",
            "Third.",
        ]

    def test_sentence_punctuation_stays_with_sentence(self):
        text = "Alpha beta gamma. Delta epsilon zeta! Eta theta?"
        assert split_into_segments(text, 20, 0) == [
            "Alpha beta gamma.",
            "Delta epsilon zeta!",
            "Eta theta?",
        ]

    def test_cjk_sentence_punctuation(self):
        text = "今天天气很好。我们去公园散步吧！你觉得怎么样？"
        assert split_into_segments(text, 10, 0) == [
            "今天天气很好。",
            "我们去公园散步吧！",
            "你觉得怎么样？",
        ]

    def test_short_accumulator_falls_back_to_clauses(self):
        """A run below min_length absorbs comma-delimited clauses"""
        text = "Short one. aaa, bbb, ccc, ddd, eee, fff, ggg."
        assert split_into_segments(text, 20, 15) == [
            "Short one. aaa,",
            "bbb, ccc, ddd, eee,",
            "fff, ggg.",
        ]

    def test_cjk_clause_punctuation(self):
        text = "第一部分内容，第二部分内容；第三部分内容，第四部分内容"
        segments = split_into_segments(text, 14, 0)
        assert segments == ["第一部分内容，第二部分内容；", "第三部分内容，第四部分内容"]

    def test_whitespace_fallback_without_punctuation(self):
        assert split_into_segments("aaaa bbbb cccc dddd", 10, 0) == ["aaaa bbbb", "cccc dddd"]

    def test_indivisible_token_is_kept_oversized(self):
        token = "x" * 50
        assert split_into_segments(f"ab {token} cd", 10, 0) == ["ab", token, "cd"]

    @pytest.mark.parametrize("lead", ["。", "，", ", ", "! "])
    def test_leading_punctuation_is_split_off(self, lead):
        """Only the indivisible token may exceed max_length"""
        token = "x" * 30 + "."
        segments = split_into_segments(lead + token, 27, 0)

        assert segments == [lead.strip(), token]

    def test_trailing_remainder_below_min_is_kept(self):
        text = long_paragraph(30) + " End."
        segments = split_into_segments(text, 500, 50)
        assert segments[-1].endswith("End.")
        assert _words("".join(segments)) == _words(text)

    def test_long_text_scenario(self):
        """A 2500+ char paragraph becomes at least three segments <= 1000"""
        text = long_paragraph()
        assert len(text) > 2500

        segments = split_into_segments(text, 1000, 50)

        assert len(segments) >= 3
        assert all(len(segment) <= 1000 for segment in segments)
        assert all(len(segment) >= 50 for segment in segments)
        assert _words("".join(segments)) == _words(text)

    @pytest.mark.parametrize("max_length", [5, 17, 40, 120, 1000])
    @pytest.mark.parametrize("text", [
        long_paragraph(20),
        "第一句话很长很长很长。第二句话，有逗号；还有分号！第三句？" * 5,
        "no punctuation at all just many plain words " * 10,
        "Mixed. 中文句子。Another one, with commas; and more!\n\nNew paragraph " * 4,
        "supercalifragilisticexpialidocious " * 3,
    ])
    def test_segments_respect_max_length(self, text, max_length):
        """Only a single unsplittable token may exceed max_length"""
        segments = split_into_segments(text, max_length, max_length // 3)

        for segment in segments:
            assert segment == segment.strip() and segment
            if len(segment) > max_length:
                assert not re.search(r"\s", segment)
        assert _words("".join(segments)) == _words(text)

    def test_invalid_max_length(self):
        with pytest.raises(ValueError):
            split_into_segments("text", 0)


class TestJoinSegments:
    """Rejoining translated segments"""

    def test_latin_segments_joined_with_space(self):
        assert join_segments(["Hello there.", "General Kenobi."]) == "Hello there. General Kenobi."

    def test_cjk_segments_joined_without_space(self):
        assert join_segments(["你好。", "世界！"]) == "你好。世界！"

    def test_empty_parts_ignored(self):
        assert join_segments(["", "One.", ""]) == "One."
