"""Shared fixtures: in-memory pages that answer the autofill page scripts."""

from typing import Any, Dict, List, Optional

import pytest

from prism_autofill.autofill import scripts
from prism_autofill.config import Settings
from prism_autofill.core.errors import ChannelUnavailableError, ScriptExecutionError
from prism_autofill.core.services import CustomServiceManager, KeyValueStorage, ServiceRegistry


SCRIPT_NAMES = {
    scripts.CHECK_READY: "ready",
    scripts.SNAPSHOT_INPUTS: "snapshot_inputs",
    scripts.SNAPSHOT_BUTTONS: "snapshot_buttons",
    scripts.FILL_INPUT: "fill",
    scripts.READ_INPUT: "read",
    scripts.CLICK_ELEMENT: "click",
    scripts.ACTIVATE_PAGE: "activate",
    scripts.KEEP_ALIVE: "keepalive",
}


def make_input(ref: str, selector: str, tag: str = "textarea", **overrides: Any) -> Dict[str, Any]:
    """Describe an input element the way SNAPSHOT_INPUTS would."""
    element = {
        "ref": ref,
        "selector": selector,
        "tag": tag,
        "content_editable": tag == "div",
        "read_only": False,
        "role": "textbox" if tag == "div" else None,
        "width": 600.0,
        "height": 44.0,
        "has_box": True,
        "visibility": "visible",
        "display": "block",
        "pointer_events": "auto",
        "hidden": False,
        "disabled": False,
    }
    element.update(overrides)
    return element


def make_button(
    ref: str,
    matches: Optional[List[str]] = None,
    near_ref: Optional[str] = None,
    depth: Optional[int] = None,
    **overrides: Any,
) -> Dict[str, Any]:
    """Describe a button; ``matches`` lists submit selectors that select it."""
    button = {
        "ref": ref,
        "tag": "button",
        "text": "",
        "aria_label": "",
        "title": "",
        "class_name": "",
        "test_id": "",
        "width": 32.0,
        "height": 32.0,
        "has_box": True,
        "visibility": "visible",
        "display": "inline-flex",
        "pointer_events": "auto",
        "hidden": False,
        "disabled": False,
        "has_svg": False,
        "icon_hints": "",
        "distance_to_input": None,
        "distance_to_primary": None,
        "dom_order": int(ref) if ref.isdigit() else 0,
        "_matches": list(matches or []),
        "_near_ref": near_ref,
        "_depth": depth,
    }
    button.update(overrides)
    return button


class FakeWebView:
    """
    WebViewHandle double that interprets the page scripts over plain dicts.

    ``failures`` maps a script name to how many calls should raise
    ScriptExecutionError before the script starts answering.
    """

    def __init__(
        self,
        url: Optional[str],
        inputs: Optional[List[Dict[str, Any]]] = None,
        buttons: Optional[List[Dict[str, Any]]] = None,
        complete: bool = True,
        matched: bool = True,
        echo_input: bool = True,
    ):
        self.url = url
        self.inputs = inputs or []
        self.buttons = buttons or []
        self.complete = complete
        self.matched = matched
        self.echo_input = echo_input
        self.values: Dict[str, str] = {}
        self.events: Dict[str, List[str]] = {}
        self.clicked: List[str] = []
        self.calls: List[tuple] = []
        self.failures: Dict[str, int] = {}
        self.keepalive_installs = 0
        self.closed = False

    def calls_to(self, name: str) -> List[Any]:
        return [arg for script, arg in self.calls if script == name]

    async def run_script(self, script: str, arg: Any = None) -> Any:
        name = SCRIPT_NAMES[script]
        self.calls.append((name, arg))
        if self.closed:
            raise ChannelUnavailableError("Page is closed")
        if self.failures.get(name, 0) > 0:
            self.failures[name] -= 1
            raise ScriptExecutionError(f"{name} failed")
        return getattr(self, f"_{name}")(arg)

    def current_url(self) -> Optional[str]:
        return self.url

    def _find_input(self, arg: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if arg.get("ref"):
            return next((el for el in self.inputs if el["ref"] == arg["ref"]), None)
        if arg.get("fallback_selector"):
            return next((el for el in self.inputs if el["selector"] == arg["fallback_selector"]), None)
        return None

    def _ready(self, arg):
        return {
            "ready_state": "complete" if self.complete else "loading",
            "complete": self.complete,
            "matched": self.matched,
        }

    def _snapshot_inputs(self, arg):
        candidates = []
        for selector_index, selector in enumerate(arg["selectors"]):
            matches = [el for el in self.inputs if el["selector"] == selector]
            for match_index, element in enumerate(matches[:arg["max_matches"]]):
                candidate = dict(element)
                candidate.update(selector_index=selector_index, match_index=match_index)
                candidates.append(candidate)
        return {"ready_state": "complete", "candidates": candidates, "invalid_selectors": []}

    def _snapshot_buttons(self, arg):
        candidates = []
        for button in self.buttons:
            sources = []
            for selector_index, selector in enumerate(arg["submit_selectors"]):
                if selector in button["_matches"]:
                    sources.append({"kind": "selector", "selector": selector, "selector_index": selector_index})
            if arg.get("input_ref") and button["_near_ref"] == arg["input_ref"]:
                sources.append({"kind": "nearby", "depth": button["_depth"]})
            sources.append({"kind": "global"})
            described = {k: v for k, v in button.items() if not k.startswith("_")}
            described["sources"] = sources
            candidates.append(described)
        return {"primary_found": bool(arg.get("input_ref")), "candidates": candidates}

    def _fill(self, arg):
        element = self._find_input(arg)
        if element is None:
            return {"ok": False, "reason": "not-found", "events": []}
        if element["content_editable"]:
            events = ["focus", "input", "change"]
            strategy = "content-editable-region"
        else:
            events = ["input", "change", "keydown", "keyup"]
            strategy = "react-controlled-field"
        if self.echo_input:
            self.values[element["ref"]] = arg["text"]
        self.events.setdefault(element["ref"], []).extend(events)
        return {"ok": True, "method": "native-setter", "strategy": strategy, "events": events}

    def _read(self, arg):
        element = self._find_input(arg)
        if element is None:
            return {"found": False, "content": ""}
        return {"found": True, "content": self.values.get(element["ref"], "")[:arg["max_length"]]}

    def _click(self, arg):
        if not any(button["ref"] == arg["ref"] for button in self.buttons):
            return {"clicked": False, "reason": "stale-ref", "events": []}
        self.clicked.append(arg["ref"])
        return {"clicked": True, "events": ["native-click", "pointerdown", "pointerup", "mousedown",
                                             "mouseup", "click", "keydown", "keyup"]}

    def _activate(self, arg):
        return {"activated": True, "visibility": "visible", "refreshed": 0}

    def _keepalive(self, arg):
        if self.keepalive_installs:
            return {"applied": False, "already_applied": True}
        self.keepalive_installs += 1
        return {"applied": True, "already_applied": False}


class FakeProvider:
    """WebViewProvider double keeping an ordered log of what happened."""

    def __init__(self, handles: Optional[Dict[str, FakeWebView]] = None, ready: Optional[Dict[str, bool]] = None):
        self.handles = handles or {}
        self.ready = ready or {}
        self.log: List[tuple] = []

    def handle(self, service_id: str) -> Optional[FakeWebView]:
        return self.handles.get(service_id)

    def is_loading(self, service_id: str) -> bool:
        return not self.ready.get(service_id, True)

    async def wait_until_ready(self, service_id: str, timeout: float) -> bool:
        self.log.append(("wait", service_id))
        return self.ready.get(service_id, True)

    async def activate(self, service_id: str) -> None:
        self.log.append(("activate", service_id))


@pytest.fixture
def fast_settings(tmp_path) -> Settings:
    """Settings with every delay zeroed and small retry bounds."""
    return Settings(
        storage_path=str(tmp_path / "settings.json"),
        wait_timeout=0.1,
        wait_attempts=2,
        wait_interval=0.0,
        locate_attempts=3,
        locate_interval=0.0,
        settle_delay=0.0,
        verify_delay=0.0,
        click_focus_delay=0.0,
        click_wave_delay=0.0,
        script_retries=3,
        script_retry_backoff=0.0,
        service_switch_delay=0.0,
        activation_delay=0.0,
        cooldown_delay=0.0,
        keepalive_initial_delay=0.0,
        dom_settle_delay=0.0,
    )


@pytest.fixture
def storage(tmp_path) -> KeyValueStorage:
    return KeyValueStorage(str(tmp_path / "settings.json"))


@pytest.fixture
def registry(storage) -> ServiceRegistry:
    return ServiceRegistry(CustomServiceManager(storage, max_services=3))


@pytest.fixture
def chatgpt_page() -> FakeWebView:
    return FakeWebView(
        "https://chatgpt.com/",
        inputs=[make_input("1", "#prompt-textarea", tag="textarea")],
        buttons=[
            make_button("20", aria_label="Start voice mode", test_id="composer-speech-button", has_svg=True,
                        near_ref="1", depth=2, distance_to_input=8.0, distance_to_primary=8.0),
            make_button("21", matches=["[data-testid='send-button']", "button[data-testid='send-button']"],
                        aria_label="Send prompt", test_id="send-button", has_svg=True,
                        near_ref="1", depth=2, distance_to_input=8.0, distance_to_primary=8.0),
        ],
    )


@pytest.fixture
def gemini_page() -> FakeWebView:
    return FakeWebView(
        "https://gemini.google.com/app",
        inputs=[make_input("2", ".ql-editor", tag="div")],
        buttons=[
            make_button("30", matches=["button[aria-label*='Send message']", "button[aria-label*='Send']"],
                        aria_label="Send message", has_svg=True, distance_to_input=4.0),
        ],
    )


@pytest.fixture
def claude_page() -> FakeWebView:
    return FakeWebView(
        "https://claude.ai/new",
        inputs=[make_input("3", "div[contenteditable='true'][role='textbox']", tag="div")],
        buttons=[
            make_button("40", matches=["button[aria-label*='Send message']"],
                        aria_label="Send message", has_svg=True, distance_to_input=6.0),
        ],
    )
