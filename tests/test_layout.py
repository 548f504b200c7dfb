"""Tests for right-to-left layout reconstruction."""

from fakes import word

from dua_vault.ocr.engine import RecognitionOutput, RecognizedWord
from dua_vault.ocr.layout import (
    LayoutReconstructor,
    LayoutTier,
    is_valid_extraction,
    normalize_arabic_lines,
    sanitize_arabic,
)


class TestSanitize:
    def test_strips_latin_and_digits(self):
        assert sanitize_arabic("بسم abc 123 الله") == "بسم الله"

    def test_keeps_arabic_punctuation(self):
        assert sanitize_arabic("الله؟ نعم، لا؛") == "الله؟ نعم، لا؛"

    def test_keeps_tatweel(self):
        assert sanitize_arabic("الـله") == "الـله"

    def test_noise_becomes_space(self):
        assert sanitize_arabic("بسم|الله") == "بسم الله"

    def test_normalize_drops_latin_lines(self):
        text = "Title line\nبسم الله\n12345\nالرحمن الرحيم"
        assert normalize_arabic_lines(text) == "بسم الله الرحمن الرحيم"


class TestValidityPredicate:
    def test_latin_rejected(self):
        assert is_valid_extraction("ab") is False

    def test_eight_arabic_chars_accepted(self):
        assert is_valid_extraction("بسم الله") is True  # 8 chars

    def test_seven_chars_rejected(self):
        assert is_valid_extraction("بسمالله") is False  # 7 chars

    def test_whitespace_collapsed_before_counting(self):
        assert is_valid_extraction("بسم      ") is False

    def test_long_latin_rejected(self):
        assert is_valid_extraction("abcdefghijkl") is False


class TestLayoutReconstructor:
    def setup_method(self):
        self.reconstructor = LayoutReconstructor()

    def test_right_to_left_order(self):
        words = [
            word("الرحمن", x0=10, x1=60),
            word("بسم", x0=140, x1=180),
            word("الله", x0=80, x1=120),
        ]
        assert self.reconstructor.from_layout(words) == "بسم الله الرحمن"

    def test_lines_sorted_top_to_bottom(self):
        words = [
            word("الرحيم", x0=10, x1=60, y0=60, y1=80),
            word("الرحمن", x0=80, x1=140, y0=60, y1=80),
            word("بسم", x0=80, x1=120, y0=10, y1=30),
            word("الله", x0=10, x1=60, y0=10, y1=30),
        ]
        assert self.reconstructor.from_layout(words) == "بسم الله الرحمن الرحيم"

    def test_tokens_within_tolerance_share_line(self):
        words = [
            word("الله", x0=10, x1=60, y0=10, y1=30),   # centre 20
            word("بسم", x0=80, x1=120, y0=25, y1=45),   # centre 35, 15 px away
        ]
        assert self.reconstructor.from_layout(words) == "بسم الله"

    def test_grouping_follows_order_of_appearance(self):
        # Running centre drifts as tokens join: 20 → (20+36)/2 = 28, so a token
        # at 44 joins the first line even though it is 24 px from the first word.
        words = [
            word("أ", x0=10, x1=20, y0=10, y1=30),    # centre 20
            word("ب", x0=30, x1=40, y0=26, y1=46),    # centre 36
            word("ج", x0=50, x1=60, y0=34, y1=54),    # centre 44
        ]
        assert self.reconstructor.from_layout(words) == "ج ب أ"

    def test_low_confidence_words_dropped(self):
        words = [
            word("بسم", x0=140, x1=180, conf=90),
            word("الله", x0=80, x1=120, conf=34),
        ]
        assert self.reconstructor.from_layout(words) == "بسم"

    def test_non_arabic_words_dropped(self):
        words = [word("hello", x0=140, x1=180), word("الله", x0=80, x1=120)]
        assert self.reconstructor.from_layout(words) == "الله"

    def test_all_low_confidence_falls_through_to_raw_text(self):
        output = RecognitionOutput(
            words=[
                word("بسم", x0=140, x1=180, conf=20),
                word("الله", x0=80, x1=120, conf=10),
            ],
            raw_text="Page 1\nبسم الله الرحمن\n",
            confidence=15,
        )
        assert self.reconstructor.from_layout(output.words) == ""
        assert self.reconstructor.from_words(output.words) == ""

        result = self.reconstructor.reconstruct(output)
        assert result.tier == LayoutTier.RAW
        assert result.text == "بسم الله الرحمن"

    def test_missing_boxes_fall_back_to_flat_join(self):
        output = RecognitionOutput(
            words=[
                RecognizedWord("بسم", 90),
                RecognizedWord("الله", 90),
            ],
            raw_text="",
            confidence=90,
        )
        result = self.reconstructor.reconstruct(output)
        assert result.tier == LayoutTier.FLAT
        assert result.text == "بسم الله"

    def test_layout_tier_preferred(self):
        output = RecognitionOutput(
            words=[word("الله", x0=10, x1=60), word("بسم", x0=80, x1=120)],
            raw_text="الله بسم",
            confidence=90,
        )
        result = self.reconstructor.reconstruct(output)
        assert result.tier == LayoutTier.LAYOUT
        assert result.text == "بسم الله"

    def test_nothing_usable(self):
        output = RecognitionOutput(words=[], raw_text="Hello", confidence=0)
        result = self.reconstructor.reconstruct(output)
        assert result.tier == LayoutTier.NONE
        assert result.text == ""

    def test_is_valid_uses_eight_char_gate(self):
        assert self.reconstructor.is_valid("بسم الله") is True
        assert self.reconstructor.is_valid("بسمالله") is False
