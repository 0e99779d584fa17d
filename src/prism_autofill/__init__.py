"""
Prism Autofill: send one prompt to several AI chat services at once.

Each service runs in its own browser page. The autofill core finds the
page's message box, types the prompt so the page's framework notices it,
and presses the real send button while ignoring look-alike controls.
"""

__version__ = "0.1.0"

from prism_autofill.app import PromptController, build_controller
from prism_autofill.autofill.catalog import SelectorCatalog
from prism_autofill.autofill.orchestrator import AutofillOrchestrator
from prism_autofill.browser.store import WebViewStore

__all__ = [
    "AutofillOrchestrator",
    "PromptController",
    "SelectorCatalog",
    "WebViewStore",
    "build_controller",
]
