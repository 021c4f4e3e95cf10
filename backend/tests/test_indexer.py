"""
Fireside Backend — Offset Indexer Tests
=========================================

What we test:
    ✅ Sentence splitting: boundaries, trailing fragments, gapless coverage
    ✅ UTF-16 offsets for characters outside the BMP
    ✅ Selection → range: forward, backward, multi-node, rejected selections
    ✅ Utf16Text offset/index conversion
"""

import pytest

from fireside.exceptions import ValidationError
from fireside.offsets import Utf16Text, utf16_len
from fireside.schemas.highlight import SelectionPoint
from fireside.services.indexer import selection_to_range, sentence_at, sentence_ranges


def point(node_index, offset):
    return SelectionPoint(node_index=node_index, offset=offset)


class TestUtf16Text:

    def test_length_counts_surrogate_pairs_twice(self):
        assert utf16_len("abc") == 3
        assert utf16_len("😀") == 2
        assert len(Utf16Text("a😀b")) == 4

    def test_offset_inside_surrogate_pair_rounds_down(self):
        indexed = Utf16Text("😀a")
        assert indexed.to_index(1) == 0
        assert indexed.to_index(2) == 1

    def test_slice_uses_utf16_offsets(self):
        indexed = Utf16Text("😀 joy")
        assert indexed.slice(3, 6) == "joy"
        assert indexed.slice(0, 2) == "😀"

    def test_out_of_range_offsets_are_clamped(self):
        indexed = Utf16Text("abc")
        assert indexed.to_index(-4) == 0
        assert indexed.to_index(99) == 3
        assert indexed.to_offset(99) == 3


class TestSentenceRanges:

    def test_splits_after_terminators(self):
        ranges = sentence_ranges("Hello world. How are you? Fine!")
        assert [r.text for r in ranges] == ["Hello world.", " How are you?", " Fine!"]
        assert [(r.start, r.end) for r in ranges] == [(0, 12), (12, 25), (25, 31)]
        assert [r.index for r in ranges] == [0, 1, 2]

    def test_empty_text_has_no_sentences(self):
        assert sentence_ranges("") == []

    def test_trailing_fragment_is_a_sentence(self):
        ranges = sentence_ranges("One. Two")
        assert [r.text for r in ranges] == ["One.", " Two"]

    def test_repeated_punctuation_ends_each_sentence(self):
        assert [r.text for r in sentence_ranges("Wait!!")] == ["Wait!", "!"]

    @pytest.mark.parametrize("text", [
        "A. B! C? D",
        "No punctuation at all",
        "...",
        "Line one.\nLine two.\n",
        "Grace 😀 abounds. Peace 🕊️ too!",
    ])
    def test_ranges_are_gapless_and_cover_the_text(self, text):
        ranges = sentence_ranges(text)
        assert "".join(r.text for r in ranges) == text
        assert ranges[0].start == 0
        assert ranges[-1].end == utf16_len(text)
        for prev, nxt in zip(ranges, ranges[1:]):
            assert prev.end == nxt.start

    def test_offsets_are_utf16(self):
        ranges = sentence_ranges("Hi 😀. Bye.")
        assert [(r.start, r.end) for r in ranges] == [(0, 6), (6, 11)]

    def test_sentence_at_out_of_range(self):
        with pytest.raises(ValidationError) as exc_info:
            sentence_at("Only one.", 1)
        assert exc_info.value.field == "sentence_index"

    def test_trimmed_drops_surrounding_whitespace(self):
        sentence = sentence_at("Hello world. How are you?", 1).trimmed()
        assert sentence.text == "How are you?"
        assert (sentence.start, sentence.end) == (13, 25)
        text_range = sentence.to_text_range()
        assert (text_range.start, text_range.length) == (13, 12)

    def test_trimmed_blank_sentence_is_empty(self):
        sentence = sentence_at("Done.   ", 1).trimmed()
        assert sentence.text == ""
        assert sentence.start == sentence.end


class TestSelectionToRange:

    TEXT = "Hello world"
    NODES = ["Hello ", "world"]

    def test_forward_selection_across_nodes(self):
        rng = selection_to_range(self.TEXT, self.NODES, point(0, 0), point(1, 5))
        assert (rng.start, rng.length, rng.text) == (0, 11, "Hello world")

    def test_backward_selection_is_normalized(self):
        rng = selection_to_range(self.TEXT, self.NODES, point(1, 3), point(0, 2))
        assert (rng.start, rng.length, rng.text) == (2, 7, "llo wor")

    def test_collapsed_selection_is_ignored(self):
        assert selection_to_range(self.TEXT, self.NODES, point(1, 2), point(1, 2)) is None

    def test_selection_outside_container_is_ignored(self):
        assert selection_to_range(self.TEXT, self.NODES, point(2, 0), point(0, 1)) is None
        assert selection_to_range(self.TEXT, self.NODES, point(0, 7), point(0, 1)) is None

    def test_nodes_not_matching_text_are_ignored(self):
        assert selection_to_range(self.TEXT, ["Hello"], point(0, 0), point(0, 5)) is None

    def test_whitespace_only_selection_is_ignored(self):
        assert selection_to_range("a   b", ["a   b"], point(0, 1), point(0, 4)) is None

    def test_offsets_after_emoji(self):
        rng = selection_to_range("😀 joy", ["😀 joy"], point(0, 3), point(0, 6))
        assert (rng.start, rng.length, rng.text) == (3, 3, "joy")
