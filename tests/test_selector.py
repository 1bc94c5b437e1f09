"""Tests for stage A: selection and index parsing."""

import asyncio

import pytest

from agents.selector import Selector, build_selection_prompt, parse_indices
from errors import GenerationError

from conftest import FakeGenerator, FailingGenerator, make_item


class TestParseIndices:
    def test_plain_list(self):
        assert parse_indices("1, 3, 7, 12, 15") == [1, 3, 7, 12, 15]

    def test_no_numbers(self):
        assert parse_indices("no numbers here") == []

    def test_prefix_text_removed_duplicates_kept(self):
        assert parse_indices("Articles: 2,2,99") == [2, 2, 99]

    def test_zero_dropped(self):
        assert parse_indices("0, 1, 2") == [1, 2]

    def test_surrounding_noise(self):
        assert parse_indices("Selected: [4, 5, 6].") == [4, 5, 6]

    def test_empty_pieces_skipped(self):
        assert parse_indices(",, 3 ,,4,") == [3, 4]

    def test_piece_with_inner_whitespace_dropped(self):
        assert parse_indices("1 2, 3") == [3]

    def test_newline_separated_is_one_piece(self):
        assert parse_indices("1\n2") == []

    def test_non_ascii_digits_ignored(self):
        assert parse_indices("١, 2") == [2]

    def test_empty_response(self):
        assert parse_indices("") == []


class TestSelectionPrompt:
    def test_lists_items_with_one_based_numbers(self):
        items = [make_item(i) for i in range(1, 4)]
        prompt = build_selection_prompt(items, target_count=2)

        assert "From the following 3 articles, select exactly 2" in prompt
        assert "1. Story 1" in prompt
        assert "3. Story 3" in prompt
        assert "comma-separated numbers" in prompt

    def test_long_description_truncated(self):
        items = [make_item(1, description="x" * 400)]
        prompt = build_selection_prompt(items, target_count=1)
        assert "x" * 151 not in prompt

    def test_special_instructions_included(self):
        items = [make_item(1)]
        prompt = build_selection_prompt(items, 1, special_instructions="Only robotics")
        assert "Only robotics" in prompt

    def test_no_instructions_paragraph_when_empty(self):
        prompt = build_selection_prompt([make_item(1)], 1)
        assert "special instructions" not in prompt


class TestSelector:
    def test_at_or_below_threshold_passes_through(self):
        items = [make_item(i) for i in range(1, 9)]
        generator = FakeGenerator()
        selection = asyncio.run(Selector(generator, threshold=10).select(items))

        assert selection.items == items
        assert selection.degraded is False
        assert generator.calls == []

    def test_exactly_threshold_passes_through(self):
        items = [make_item(i) for i in range(1, 11)]
        generator = FakeGenerator()
        asyncio.run(Selector(generator, threshold=10).select(items))
        assert generator.calls == []

    def test_selects_in_response_order(self):
        items = [make_item(i) for i in range(1, 16)]
        generator = FakeGenerator("3, 1, 15")
        selection = asyncio.run(Selector(generator, threshold=10, target_count=3).select(items))

        assert [item.title for item in selection.items] == ["Story 3", "Story 1", "Story 15"]
        assert selection.degraded is False
        assert len(generator.calls) == 1

    def test_out_of_range_filtered_duplicates_kept(self):
        items = [make_item(i) for i in range(1, 12)]
        generator = FakeGenerator("Articles: 2,2,99")
        selection = asyncio.run(Selector(generator, threshold=10).select(items))

        assert [item.title for item in selection.items] == ["Story 2", "Story 2"]

    def test_generation_failure_falls_back_to_all(self):
        items = [make_item(i) for i in range(1, 12)]
        selection = asyncio.run(Selector(FailingGenerator(), threshold=10).select(items))

        assert selection.items == items
        assert selection.degraded is True

    @pytest.mark.parametrize("response", ["no numbers here", "0", "42, 99"])
    def test_unusable_response_falls_back_to_all(self, response):
        items = [make_item(i) for i in range(1, 12)]
        selection = asyncio.run(Selector(FakeGenerator(response), threshold=10).select(items))

        assert selection.items == items
        assert selection.degraded is True

    def test_timeout_passed_to_generator(self):
        items = [make_item(i) for i in range(1, 12)]
        generator = FakeGenerator("1")
        asyncio.run(Selector(generator, threshold=10, timeout=42).select(items))
        assert generator.calls[0]["timeout"] == 42

    def test_does_not_modify_input(self):
        items = [make_item(i) for i in range(1, 12)]
        before = list(items)
        asyncio.run(Selector(FakeGenerator(GenerationError("boom")), threshold=10).select(items))
        assert items == before
