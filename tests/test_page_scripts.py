"""Tests that run the in-page scripts inside a real Chromium page."""

import pytest
import pytest_asyncio
from playwright.async_api import Error as PlaywrightError, async_playwright

from prism_autofill.autofill import scripts
from prism_autofill.autofill.catalog import CHATGPT_SELECTORS, CLAUDE_SELECTORS
from prism_autofill.autofill.dispatcher import create_submit_dispatcher
from prism_autofill.autofill.injector import create_text_injector
from prism_autofill.autofill.keepalive import create_background_keepalive
from prism_autofill.autofill.locator import ElementLocator, qualifies_as_input
from prism_autofill.browser.webview import PlaywrightWebView
from prism_autofill.core.models import ElementRef, InputStrategy


@pytest_asyncio.fixture
async def browser_page():
    async with async_playwright() as playwright:
        try:
            browser = await playwright.chromium.launch(headless=True)
        except PlaywrightError as e:
            pytest.skip(f"Chromium is not installed: {e}")
        page = await browser.new_page()
        yield page
        await browser.close()


@pytest.fixture
def view(browser_page):
    return PlaywrightWebView(browser_page, script_timeout=5.0)


@pytest.fixture
def locator(fast_settings):
    return ElementLocator(settings=fast_settings)


def fill_payload(selector, text, strategy=InputStrategy.CONTENT_EDITABLE_REGION):
    return {"ref": None, "fallback_selector": selector, "text": text, "strategy": strategy.value}


class TestSnapshotInputs:
    """SNAPSHOT_INPUTS together with the locator's qualification rules."""

    @pytest.mark.asyncio
    async def test_hidden_match_is_passed_over(self, browser_page, view, locator):
        await browser_page.set_content("""
            <textarea id="prompt-textarea" data-role="stale" style="display:none"></textarea>
            <main><textarea id="prompt-textarea" data-role="live"></textarea></main>
        """)

        snapshot = await view.run_script(scripts.SNAPSHOT_INPUTS, {"selectors": ["#prompt-textarea"], "max_matches": 20})
        assert [qualifies_as_input(c) for c in snapshot["candidates"]] == [False, True]

        element = await locator.locate_input(view, CHATGPT_SELECTORS)
        role = await browser_page.get_attribute(f"[data-prism-ref='{element.ref}']", "data-role")
        assert role == "live"
        assert element.tag == "textarea"

    @pytest.mark.asyncio
    async def test_disabled_and_read_only_inputs_do_not_qualify(self, browser_page, view, locator):
        await browser_page.set_content("""
            <textarea id="prompt-textarea" disabled></textarea>
            <textarea placeholder="Message ChatGPT" readonly></textarea>
            <div contenteditable="true" role="textbox" hidden></div>
        """)

        assert await locator.locate_input(view, CHATGPT_SELECTORS) is None

    @pytest.mark.asyncio
    async def test_selector_order_beats_document_order(self, browser_page, view, locator):
        await browser_page.set_content("""
            <div contenteditable="true" role="textbox">first in the document</div>
            <textarea placeholder="Message ChatGPT"></textarea>
        """)

        element = await locator.locate_input(view, CHATGPT_SELECTORS)

        assert element.tag == "textarea"
        assert element.selector == "textarea[placeholder*='Message']"

    @pytest.mark.asyncio
    async def test_invalid_selectors_are_reported(self, browser_page, view):
        await browser_page.set_content("<textarea></textarea>")

        snapshot = await view.run_script(scripts.SNAPSHOT_INPUTS, {"selectors": ["textarea[", "textarea"], "max_matches": 20})

        assert snapshot["invalid_selectors"] == ["textarea["]
        assert len(snapshot["candidates"]) == 1
        assert snapshot["candidates"][0]["selector_index"] == 1


class TestFillInput:
    """FILL_INPUT on content-editable regions and native fields."""

    EDITOR = """
        <div id="editor" contenteditable="true" role="textbox"></div>
        <script>
          window.synthetic = [];
          const editor = document.getElementById('editor');
          ['focus', 'input', 'change'].forEach((type) => editor.addEventListener(type, (event) => {
            if (!event.isTrusted) window.synthetic.push(type);
          }));
        </script>
    """

    @pytest.mark.asyncio
    async def test_multiline_prompt_keeps_editing_command_result(self, browser_page, view, fast_settings):
        await browser_page.set_content(self.EDITOR)

        result = await view.run_script(scripts.FILL_INPUT, fill_payload("#editor", "hi\nthere\nthird line"))

        assert result["ok"] is True
        assert result["method"] == "execCommand"
        assert result["events"] == ["focus", "input", "change"]
        text = await browser_page.inner_text("#editor")
        assert " ".join(text.split()) == "hi there third line"
        injector = create_text_injector(fast_settings)
        assert await injector.verify(view, ElementRef(selector="#editor", fallback=True), "hi\nthere\nthird line")

    @pytest.mark.asyncio
    async def test_synthetic_events_fire_once_in_order(self, browser_page, view):
        await browser_page.set_content(self.EDITOR)

        await view.run_script(scripts.FILL_INPUT, fill_payload("#editor", "こんにちは"))

        assert await browser_page.evaluate("() => window.synthetic") == ["focus", "input", "change"]

    @pytest.mark.asyncio
    async def test_existing_content_is_replaced(self, browser_page, view):
        await browser_page.set_content(self.EDITOR)
        await browser_page.evaluate("() => { document.getElementById('editor').textContent = 'old draft'; }")

        await view.run_script(scripts.FILL_INPUT, fill_payload("#editor", "new prompt"))

        assert (await browser_page.inner_text("#editor")).strip() == "new prompt"

    @pytest.mark.asyncio
    async def test_direct_assignment_when_command_is_refused(self, browser_page, view):
        await browser_page.set_content(self.EDITOR)
        await browser_page.evaluate("() => { document.execCommand = () => false; }")

        result = await view.run_script(scripts.FILL_INPUT, fill_payload("#editor", "fallback text"))

        assert result["method"] == "direct"
        assert await browser_page.text_content("#editor") == "fallback text"
        assert await browser_page.evaluate("() => window.synthetic") == ["focus", "input", "change"]

    @pytest.mark.asyncio
    async def test_native_setter_bypasses_framework_setter(self, browser_page, view):
        await browser_page.set_content("""
            <textarea id="field"></textarea>
            <script>
              window.intercepted = [];
              window.seen = [];
              const field = document.getElementById('field');
              Object.defineProperty(field, 'value', {
                configurable: true,
                get() { return 'stale'; },
                set(value) { window.intercepted.push(value); },
              });
              ['input', 'change', 'keydown', 'keyup'].forEach((type) => {
                field.addEventListener(type, () => window.seen.push(type));
              });
            </script>
        """)

        result = await view.run_script(
            scripts.FILL_INPUT,
            fill_payload("#field", "hello", InputStrategy.REACT_CONTROLLED_FIELD),
        )

        assert result["method"] == "native-setter"
        assert result["strategy"] == "react-controlled-field"
        assert await browser_page.evaluate("() => window.intercepted") == []
        native_value = await browser_page.evaluate("""() => Object.getOwnPropertyDescriptor(
            HTMLTextAreaElement.prototype, 'value').get.call(document.getElementById('field'))""")
        assert native_value == "hello"
        assert await browser_page.evaluate("() => window.seen") == ["input", "change", "keydown", "keyup"]

    @pytest.mark.asyncio
    async def test_element_decides_strategy(self, browser_page, view):
        await browser_page.set_content("<textarea id='field'></textarea>")

        result = await view.run_script(scripts.FILL_INPUT, fill_payload("#field", "hello"))

        assert result["strategy"] == "react-controlled-field"
        assert result["requested"] == "content-editable-region"
        assert await browser_page.input_value("#field") == "hello"

    @pytest.mark.asyncio
    async def test_missing_element(self, browser_page, view):
        await browser_page.set_content("<p>no inputs</p>")

        result = await view.run_script(scripts.FILL_INPUT, {"ref": "404", "fallback_selector": None, "text": "x"})

        assert result == {"ok": False, "reason": "not-found", "events": []}


class TestSnapshotButtons:
    """SNAPSHOT_BUTTONS together with send control selection."""

    COMPOSER = """
        <form>
          <div>
            <div><textarea id="prompt-textarea"></textarea></div>
            <button type="button" id="mic" aria-label="Start voice mode" data-testid="composer-speech-button">
              <svg width="16" height="16"></svg>
            </button>
            <button type="button" id="send" aria-label="Send prompt" data-testid="send-button" {send_state}>
              <svg width="16" height="16" aria-hidden="true"></svg>
            </button>
          </div>
        </form>
        <div style="margin-top: 600px"><button type="button" id="share">Share</button></div>
    """

    async def snapshot(self, view, locator, input_ref):
        return await view.run_script(scripts.SNAPSHOT_BUTTONS, {
            "submit_selectors": list(CHATGPT_SELECTORS.submit_selectors),
            "input_ref": input_ref.ref,
            "ancestor_levels": locator.policy.ancestor_levels,
            "max_matches": 20,
            "max_candidates": 300,
        })

    @pytest.mark.asyncio
    async def test_describes_sources_and_geometry(self, browser_page, view, locator):
        await browser_page.set_content(self.COMPOSER.format(send_state=""))
        input_ref = await locator.locate_input(view, CHATGPT_SELECTORS)

        snapshot = await self.snapshot(view, locator, input_ref)

        assert snapshot["primary_found"] is True
        by_id = {c["element_id"]: c for c in snapshot["candidates"]}
        assert set(by_id) == {"mic", "send", "share"}
        kinds = {element_id: {s["kind"] for s in c["sources"]} for element_id, c in by_id.items()}
        assert kinds["send"] == {"selector", "nearby", "global"}
        assert kinds["share"] == {"nearby", "global"}

        def nearest(element_id):
            return min(s["depth"] for s in by_id[element_id]["sources"] if s["kind"] == "nearby")

        assert nearest("send") == nearest("mic") == 2
        assert nearest("share") == 4
        assert by_id["send"]["has_small_svg"] and by_id["send"]["has_hidden_svg"]
        assert by_id["mic"]["distance_to_primary"] < 150
        assert by_id["share"]["distance_to_primary"] > 150

    @pytest.mark.asyncio
    async def test_selects_send_over_microphone(self, browser_page, view, locator):
        await browser_page.set_content(self.COMPOSER.format(send_state=""))
        input_ref = await locator.locate_input(view, CHATGPT_SELECTORS)

        element = await locator.locate_submit(view, CHATGPT_SELECTORS, input_ref)

        assert element.source == "selector"
        assert element.ref == await browser_page.get_attribute("#send", "data-prism-ref")

    @pytest.mark.asyncio
    async def test_disabled_send_is_never_guessed(self, browser_page, view, locator):
        await browser_page.set_content(self.COMPOSER.format(send_state="disabled"))
        input_ref = await locator.locate_input(view, CHATGPT_SELECTORS)

        assert await locator.locate_submit(view, CHATGPT_SELECTORS, input_ref) is None


class TestClickElement:
    """CLICK_ELEMENT through the dispatcher."""

    @pytest.mark.asyncio
    async def test_native_click_then_event_wave(self, browser_page, view, fast_settings):
        await browser_page.set_content("""
            <button id="send" data-prism-ref="77" aria-label="Send message">Send</button>
            <script>
              window.seen = [];
              const send = document.getElementById('send');
              ['pointerdown', 'pointerup', 'mousedown', 'mouseup', 'click', 'keydown', 'keyup']
                .forEach((type) => send.addEventListener(type, (event) => window.seen.push(type + ':' + event.key)));
            </script>
        """)
        dispatcher = create_submit_dispatcher(settings=fast_settings)

        assert await dispatcher.click(view, ElementRef(ref="77")) is True

        seen = await browser_page.evaluate("() => window.seen")
        assert [entry.split(":")[0] for entry in seen] == [
            "click", "pointerdown", "pointerup", "mousedown", "mouseup", "click", "keydown", "keyup",
        ]
        assert seen[-2:] == ["keydown:Enter", "keyup:Enter"]

    @pytest.mark.asyncio
    async def test_stale_reference(self, browser_page, view, fast_settings):
        await browser_page.set_content("<button>Send</button>")
        dispatcher = create_submit_dispatcher(settings=fast_settings)

        assert await dispatcher.click(view, ElementRef(ref="999")) is False


class TestKeepAliveScript:
    """KEEP_ALIVE applied through BackgroundKeepAlive."""

    @pytest.mark.asyncio
    async def test_applied_twice_installs_once(self, browser_page, view, fast_settings):
        await browser_page.set_content("<p>chat</p>")
        keepalive = create_background_keepalive(fast_settings)

        assert await keepalive.ensure_applied(view, "claude") is True
        assert await keepalive.ensure_applied(view, "claude") is True

        assert keepalive.install_counts == {"claude": 1}
        state = await browser_page.evaluate("() => [document.hidden, document.visibilityState]")
        assert state == [False, "visible"]

    @pytest.mark.asyncio
    async def test_visibility_listeners_are_wrapped_and_removable(self, browser_page, view, fast_settings):
        await browser_page.set_content("<p>chat</p>")
        await create_background_keepalive(fast_settings).ensure_applied(view, "chatgpt")

        calls = await browser_page.evaluate("""() => {
            let calls = 0;
            const listener = () => { calls += 1; };
            document.addEventListener('visibilitychange', listener);
            document.dispatchEvent(new Event('visibilitychange'));
            document.removeEventListener('visibilitychange', listener);
            document.dispatchEvent(new Event('visibilitychange'));
            return calls;
        }""")

        assert calls == 1


class TestPageHelpers:
    """CHECK_READY and ACTIVATE_PAGE."""

    @pytest.mark.asyncio
    async def test_ready_check_reports_wait_selector(self, browser_page, view):
        await browser_page.set_content("<div contenteditable='true' role='textbox'></div>")

        matched = await view.run_script(scripts.CHECK_READY, {"wait_selector": CLAUDE_SELECTORS.wait_selector})
        invalid = await view.run_script(scripts.CHECK_READY, {"wait_selector": "div["})

        assert matched["complete"] is True and matched["matched"] is True
        assert invalid["matched"] is False

    @pytest.mark.asyncio
    async def test_activation_refreshes_editables(self, browser_page, view):
        await browser_page.set_content("<div contenteditable='true' role='textbox'></div>")

        result = await view.run_script(scripts.ACTIVATE_PAGE, {"refresh_editables": True})

        assert result["activated"] is True
        assert result["refreshed"] == 1


class TestScriptSources:
    """Static properties of the script sources."""

    ALL_SCRIPTS = [
        scripts.CHECK_READY,
        scripts.SNAPSHOT_INPUTS,
        scripts.SNAPSHOT_BUTTONS,
        scripts.FILL_INPUT,
        scripts.READ_INPUT,
        scripts.CLICK_ELEMENT,
        scripts.ACTIVATE_PAGE,
        scripts.KEEP_ALIVE,
    ]

    def test_scripts_are_single_argument_functions(self):
        for script in self.ALL_SCRIPTS:
            assert script.startswith("(payload) =>") or script.startswith("async (payload) =>")
            assert script.rstrip().endswith("}")

    def test_scripts_are_distinct(self):
        assert len(set(self.ALL_SCRIPTS)) == len(self.ALL_SCRIPTS)

    def test_elements_are_stamped_with_ref_attribute(self):
        assert scripts.REF_ATTRIBUTE in scripts.SNAPSHOT_INPUTS
        assert scripts.REF_ATTRIBUTE in scripts.SNAPSHOT_BUTTONS
