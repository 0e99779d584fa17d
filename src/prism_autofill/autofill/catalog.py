"""Per-service selector catalog for ChatGPT, Gemini and Claude.

These sites change their frontend without notice. When autofill breaks for a
service, update its selectors here; ordering matters, earlier entries win.
Selectors last checked against the January 2025 markup.
"""

from typing import Dict, List, Optional, Tuple
from urllib.parse import urlparse

from prism_autofill.core.models import InputStrategy, SelectorSet


CHATGPT_HOST = "chatgpt.com"
GEMINI_HOST = "gemini.google.com"
CLAUDE_HOST = "claude.ai"

# Substring of the page host -> normalized catalog host
HOST_ALIASES: List[Tuple[str, str]] = [
    ("chatgpt.com", CHATGPT_HOST),
    ("openai.com", CHATGPT_HOST),
    ("gemini.google.com", GEMINI_HOST),
    ("bard.google.com", GEMINI_HOST),
    ("claude.ai", CLAUDE_HOST),
    ("anthropic.com", CLAUDE_HOST),
]

SERVICE_HOSTS: Dict[str, str] = {
    "chatgpt": CHATGPT_HOST,
    "gemini": GEMINI_HOST,
    "claude": CLAUDE_HOST,
}

CHATGPT_SELECTORS = SelectorSet(
    name="ChatGPT",
    input_selectors=[
        "#prompt-textarea",
        "[data-testid='prompt-textarea']",
        "[contenteditable='true'][data-testid*='prompt']",
        "textarea[placeholder*='Message']",
        "div[contenteditable='true'][role='textbox']",
        ".ProseMirror",
        "[data-id='root'] textarea",
        "div[contenteditable='true'][data-id*='prompt']",
    ],
    submit_selectors=[
        "[data-testid='send-button']",
        "button[data-testid='send-button']",
        "button[aria-label*='Send message']",
        "button[aria-label*='Send']",
        "[data-testid='fruitjuice-send-button']",
        ".absolute.z-10 button",
        ".flex.h-8.w-8 button",
        "button[class*='rounded-lg'][class*='bg-black']",
        "button:has(svg[data-icon='arrow-up'])",
        ".absolute.rounded-lg button",
        "form button[type='button']:not([disabled])",
    ],
    input_strategy=InputStrategy.REACT_CONTROLLED_FIELD,
    wait_selector="#prompt-textarea, [data-testid='prompt-textarea']",
)

GEMINI_SELECTORS = SelectorSet(
    name="Gemini",
    input_selectors=[
        ".ql-editor",
        "[contenteditable='true'][aria-label*='prompt']",
        "[contenteditable='true'][role='textbox']",
        ".message-input",
        "rich-textarea .ql-editor",
        "[jsname*='input']",
        "div[contenteditable='true'][data-test-id='input-area']",
        "[contenteditable='true'][data-placeholder*='Enter a prompt']",
        ".ql-container .ql-editor",
    ],
    submit_selectors=[
        "button[aria-label*='Send message']",
        "button[aria-label*='Send']",
        "[data-test-id='send-button']",
        "button[jsname*='send']",
        ".send-button",
        "button[type='submit']",
        "button[class*='send']",
        "[role='button'][aria-label*='Send']",
        "div[role='button'][jsname*='send']",
    ],
    input_strategy=InputStrategy.CONTENT_EDITABLE_REGION,
    wait_selector=".ql-editor, [contenteditable='true'][role='textbox']",
)

CLAUDE_SELECTORS = SelectorSet(
    name="Claude",
    input_selectors=[
        "div[contenteditable='true'][role='textbox']",
        "div[contenteditable='true']",
        "[role='textbox'][contenteditable='true']",
        "[contenteditable='true'][data-lexical-editor='true']",
        ".ProseMirror",
        ".ProseMirror[contenteditable='true']",
        "div[contenteditable='true']:not([aria-hidden='true'])",
        "[contenteditable='true']:not([readonly]):not([disabled]):not([aria-hidden='true'])",
        "[data-testid*='input']",
        "[data-testid*='chat']",
        "[role='textbox']",
        "textarea",
        "input[type='text']",
    ],
    submit_selectors=[
        "button[aria-label*='Send Message']",
        "button[aria-label*='Send message']",
        "[data-testid='send-button']",
        "button[type='submit'][aria-label*='Send']",
        ".send-button",
        "button.inline-flex[type='submit']",
        "button:has(svg[data-testid='send-icon'])",
        "button[type='submit']:has(svg)",
        "form button:has(svg[class*='lucide'])",
        "button[class*='bg-accent']:not([disabled])",
    ],
    input_strategy=InputStrategy.CONTENT_EDITABLE_REGION,
    wait_selector="[contenteditable='true'][role='textbox'], .ProseMirror",
)


class SelectorCatalog:
    """Read-only lookup from page host to the service's selector set."""

    def __init__(self, entries: Optional[Dict[str, SelectorSet]] = None):
        self.entries: Dict[str, SelectorSet] = dict(entries) if entries is not None else {
            CHATGPT_HOST: CHATGPT_SELECTORS,
            GEMINI_HOST: GEMINI_SELECTORS,
            CLAUDE_HOST: CLAUDE_SELECTORS,
        }

    @staticmethod
    def normalize_host(host: str) -> Optional[str]:
        host = (host or "").strip().lower()
        if not host:
            return None
        for alias, normalized in HOST_ALIASES:
            if alias in host:
                return normalized
        return None

    def resolve(self, host: str) -> Optional[SelectorSet]:
        """Selector set for a page host, or None when autofill is unsupported there."""
        normalized = self.normalize_host(host)
        if normalized is None:
            return None
        return self.entries.get(normalized)

    def resolve_url(self, url: Optional[str]) -> Optional[SelectorSet]:
        if not url:
            return None
        host = urlparse(url).hostname
        if not host:
            return None
        return self.resolve(host)

    def host_for_service(self, service_id: str) -> Optional[str]:
        return SERVICE_HOSTS.get(service_id)


def create_selector_catalog() -> SelectorCatalog:
    """Factory function to create the built-in selector catalog."""
    return SelectorCatalog()
