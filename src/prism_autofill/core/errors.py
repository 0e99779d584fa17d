"""Autofill error taxonomy."""


class AutofillError(Exception):
    """Base exception for the autofill subsystem"""
    kind = "autofill-error"


class UnsupportedHostError(AutofillError):
    """Page host has no selector catalog entry; treated as a skip"""
    kind = "unsupported-host"


class ElementNotFoundError(AutofillError):
    """No qualifying input element after all locate attempts"""
    kind = "element-not-found"


class ScriptExecutionError(AutofillError):
    """The script channel itself failed (navigation mid-call, page error, timeout)"""
    kind = "script-execution"


class SubmitNotFoundError(AutofillError):
    """No high-confidence send control on the page"""
    kind = "submit-not-found"


class WaitTimeoutError(AutofillError):
    """Waiting for the page to become ready exceeded its bound"""
    kind = "timeout"


class ChannelUnavailableError(AutofillError):
    """The web view collaborator is gone (page closed, browser disconnected)"""
    kind = "channel-unavailable"
