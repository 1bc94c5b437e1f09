"""Tests for stage B: per-item fact extraction."""

import asyncio

from agents.extractor import Extractor, build_extraction_prompt
from errors import GenerationError

from conftest import FakeGenerator, FailingGenerator, make_item


class TestExtractionPrompt:
    def test_uses_description(self):
        prompt = build_extraction_prompt(make_item(1, description="Desc", content="Body"))
        assert "Content: Desc" in prompt
        assert "Title: Story 1" in prompt

    def test_falls_back_to_content(self):
        prompt = build_extraction_prompt(make_item(1, description="", content="Body"))
        assert "Content: Body" in prompt


class TestExtractor:
    def test_replaces_text_with_cleaned_facts(self):
        items = [make_item(1)]
        generator = FakeGenerator("  <b>Fact one.</b> Fact two.  ")
        cleaned = asyncio.run(Extractor(generator).extract(items))

        assert cleaned[0].description == "Fact one. Fact two."
        assert cleaned[0].content == "Fact one. Fact two."
        assert cleaned[0].title == "Story 1"
        assert cleaned[0].link == items[0].link

    def test_does_not_modify_input_items(self):
        items = [make_item(1)]
        original = items[0].description
        asyncio.run(Extractor(FakeGenerator("Facts.")).extract(items))
        assert items[0].description == original

    def test_failure_keeps_original_text(self):
        items = [make_item(1), make_item(2)]
        generator = FakeGenerator(GenerationError("timeout"), "Facts about two.")
        extractor = Extractor(generator)
        cleaned = asyncio.run(extractor.extract(items))

        assert cleaned[0].description == items[0].description
        assert cleaned[1].description == "Facts about two."
        assert extractor.fallbacks == 1

    def test_markup_only_response_keeps_original_text(self):
        items = [make_item(1)]
        extractor = Extractor(FakeGenerator("<p> </p><br/>"))
        cleaned = asyncio.run(extractor.extract(items))

        assert cleaned[0].description == items[0].description
        assert extractor.fallbacks == 1

    def test_all_failures_keep_every_item(self):
        items = [make_item(i) for i in range(1, 4)]
        extractor = Extractor(FailingGenerator())
        cleaned = asyncio.run(extractor.extract(items))

        assert [item.description for item in cleaned] == [item.description for item in items]
        assert extractor.fallbacks == 3

    def test_empty_item_uses_title_without_call(self):
        items = [make_item(1, description="", content="")]
        generator = FakeGenerator()
        cleaned = asyncio.run(Extractor(generator).extract(items))

        assert cleaned[0].description == "Story 1"
        assert generator.calls == []

    def test_order_preserved_with_concurrency(self):
        items = [make_item(i) for i in range(1, 6)]

        class EchoGenerator(FakeGenerator):
            async def generate(self, prompt, system=None, profile=None, timeout=None):
                self.calls.append({"prompt": prompt})
                title = prompt.split("Title: ")[1].split("\n")[0]
                # Later items finish first
                await asyncio.sleep(0.001 * (10 - int(title.split()[-1])))
                return f"Facts for {title}."

        cleaned = asyncio.run(Extractor(EchoGenerator(), concurrency=5).extract(items))
        assert [item.description for item in cleaned] == [f"Facts for Story {i}." for i in range(1, 6)]

    def test_concurrency_bound_respected(self):
        items = [make_item(i) for i in range(1, 7)]
        active = 0
        peak = 0

        class SlowGenerator(FakeGenerator):
            async def generate(self, prompt, system=None, profile=None, timeout=None):
                nonlocal active, peak
                active += 1
                peak = max(peak, active)
                await asyncio.sleep(0.001)
                active -= 1
                return "Facts."

        asyncio.run(Extractor(SlowGenerator(), concurrency=2).extract(items))
        assert peak == 2
