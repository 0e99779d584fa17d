"""Tests for TextInjector."""

import pytest
from unittest.mock import AsyncMock

from prism_autofill.autofill import scripts
from prism_autofill.autofill.injector import TextInjector, create_text_injector
from prism_autofill.core.models import ElementRef, InputStrategy

from conftest import FakeWebView, make_input


class TestTextInjector:
    """Test cases for TextInjector."""

    @pytest.fixture
    def injector(self, fast_settings):
        return create_text_injector(fast_settings)

    @pytest.fixture
    def page(self):
        return FakeWebView(
            "https://gemini.google.com/app",
            inputs=[
                make_input("1", ".ql-editor", tag="div"),
                make_input("2", "textarea", tag="textarea"),
            ],
        )

    @pytest.mark.asyncio
    async def test_content_editable_dispatches_each_event_once(self, injector, page):
        element = ElementRef(ref="1", tag="div", content_editable=True)

        assert await injector.inject(page, element, "こんにちは", InputStrategy.CONTENT_EDITABLE_REGION)

        assert page.values["1"] == "こんにちは"
        assert page.events["1"] == ["focus", "input", "change"]
        arg = page.calls_to("fill")[0]
        assert arg["strategy"] == "content-editable-region"
        assert arg["fallback_selector"] is None

    @pytest.mark.asyncio
    async def test_react_field_dispatches_key_events(self, injector, page):
        element = ElementRef(ref="2", tag="textarea")

        assert await injector.inject(page, element, "hello", InputStrategy.REACT_CONTROLLED_FIELD)

        assert page.values["2"] == "hello"
        assert page.events["2"] == ["input", "change", "keydown", "keyup"]

    @pytest.mark.asyncio
    async def test_text_travels_as_argument(self, injector):
        handle = AsyncMock()
        handle.run_script.return_value = {"ok": True, "events": []}
        text = "quote ' double \" backslash \\ newline \n `tick` ${x}"

        await injector.inject(handle, ElementRef(ref="1"), text, InputStrategy.REACT_CONTROLLED_FIELD)

        script, arg = handle.run_script.call_args.args
        assert script is scripts.FILL_INPUT
        assert arg["text"] == text
        assert text not in script

    @pytest.mark.asyncio
    async def test_fallback_reference_uses_selector(self, injector, page):
        element = ElementRef(selector=".ql-editor", selector_index=0, fallback=True)

        assert await injector.inject(page, element, "hi", InputStrategy.CONTENT_EDITABLE_REGION)
        assert page.calls_to("fill")[0]["fallback_selector"] == ".ql-editor"
        assert page.values["1"] == "hi"

    @pytest.mark.asyncio
    async def test_missing_element_reports_failure(self, injector, page):
        element = ElementRef(selector="#nothing-here", fallback=True)
        assert await injector.inject(page, element, "hi", InputStrategy.CONTENT_EDITABLE_REGION) is False

    @pytest.mark.asyncio
    async def test_verify_compares_normalized_prefix(self, injector, page):
        element = ElementRef(ref="1", tag="div", content_editable=True)
        page.values["1"] = "Summarize   this\narticle for me please"

        assert await injector.verify(page, element, "Summarize this article for me please")

    @pytest.mark.asyncio
    async def test_verify_detects_mismatch(self, injector, page):
        element = ElementRef(ref="1", tag="div", content_editable=True)
        page.values["1"] = ""

        assert await injector.verify(page, element, "hello world") is False

    @pytest.mark.asyncio
    async def test_verify_missing_element(self, injector, page):
        element = ElementRef(ref="404")
        assert await injector.verify(page, element, "hello") is False

    def test_defaults(self):
        injector = TextInjector()
        assert injector.settings.verify_prefix_length == 10
