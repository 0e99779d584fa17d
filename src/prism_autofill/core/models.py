"""Core data models for Prism Autofill."""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


class InputStrategy(str, Enum):
    """How text is written into a chat service's message box."""
    REACT_CONTROLLED_FIELD = "react-controlled-field"
    CONTENT_EDITABLE_REGION = "content-editable-region"


class AutofillStage(str, Enum):
    """Stages of a single autofill attempt, in execution order."""
    WAITING = "waiting"
    LOCATING = "locating"
    INJECTING = "injecting"
    SETTLING = "settling"
    SUBMITTING = "submitting"
    DONE = "done"


class AutofillOutcome(str, Enum):
    """Terminal outcome of an autofill attempt."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMEOUT = "timeout"
    SKIPPED = "skipped"


class ServiceProfile(BaseModel):
    """A target chat service shown in its own web view."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Stable service identifier")
    display_name: str = Field(..., description="Short user-facing label")
    origin_url: str = Field(..., description="Base navigation URL")
    is_custom: bool = Field(False, description="User-configured, display-only service")


class CustomService(BaseModel):
    """User-defined service entry as persisted in storage."""
    id: str = Field(default_factory=lambda: uuid4().hex, description="Generated identifier")
    name: str = Field("", description="Display name (max 10 characters)")
    url: str = Field("", description="Service URL")

    @property
    def is_valid(self) -> bool:
        return bool(self.name) and bool(self.url) and len(self.name) <= 10

    @property
    def display_name(self) -> str:
        return self.name or "Untitled"

    def to_profile(self) -> ServiceProfile:
        return ServiceProfile(
            id=self.id,
            display_name=self.display_name,
            origin_url=self.url or "about:blank",
            is_custom=True,
        )


class SelectorSet(BaseModel):
    """Candidate selectors for one built-in service, most specific first."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Service display name used by site-specific heuristics")
    input_selectors: List[str] = Field(..., description="Message input selectors in priority order")
    submit_selectors: List[str] = Field(..., description="Send control selectors in priority order")
    input_strategy: InputStrategy = Field(..., description="Default injection strategy")
    wait_selector: Optional[str] = Field(None, description="Selector that must match before autofill starts")

    @field_validator("input_selectors", "submit_selectors")
    @classmethod
    def _non_empty(cls, value: List[str]) -> List[str]:
        if not value:
            raise ValueError("selector list must not be empty")
        return value


class ElementRef(BaseModel):
    """Reference to an element inside the host page."""
    ref: Optional[str] = Field(None, description="data-prism-ref stamp, None for a best-effort fallback")
    selector: Optional[str] = Field(None, description="Selector that produced the element")
    selector_index: Optional[int] = Field(None, description="Position of the selector in its list")
    tag: Optional[str] = Field(None, description="Lower-cased tag name")
    content_editable: bool = Field(False, description="Element is a content-editable region")
    source: str = Field("selector", description="How the element was found")
    score: Optional[int] = Field(None, description="Heuristic score for send controls")
    fallback: bool = Field(False, description="Unverified best-effort target")


class AutofillAttempt(BaseModel):
    """State of one autofill invocation against one service. Not persisted."""
    service_id: str
    text: str
    stage: AutofillStage = AutofillStage.WAITING
    outcome: Optional[AutofillOutcome] = None
    retries: Dict[str, int] = Field(default_factory=dict)
    input_found: bool = False
    injected: bool = False
    verified: Optional[bool] = None
    submitted: bool = False
    errors: List[str] = Field(default_factory=list)
    notice: Optional[str] = None
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome == AutofillOutcome.SUCCEEDED

    def record_retry(self, stage: AutofillStage) -> None:
        self.retries[stage.value] = self.retries.get(stage.value, 0) + 1

    def record_error(self, kind: str) -> None:
        if kind not in self.errors:
            self.errors.append(kind)

    def finish(self, outcome: AutofillOutcome) -> "AutofillAttempt":
        self.stage = AutofillStage.DONE
        self.outcome = outcome
        self.finished_at = datetime.now(timezone.utc)
        return self


class SequentialReport(BaseModel):
    """Aggregate result of a multi-service autofill run."""
    attempts: List[AutofillAttempt] = Field(default_factory=list)
    skipped: Dict[str, str] = Field(default_factory=dict)

    @property
    def results(self) -> Dict[str, bool]:
        return {attempt.service_id: attempt.succeeded for attempt in self.attempts}

    @property
    def success_count(self) -> int:
        return sum(1 for attempt in self.attempts if attempt.succeeded)

    @property
    def any_succeeded(self) -> bool:
        return self.success_count > 0
