"""
Send-control heuristics over button snapshots.

The page script only describes candidate buttons; every decision about which
one is the real send control happens here. The numbers in ScoringPolicy were
tuned against the ChatGPT, Gemini and Claude markup at one point in time.
Those sites change without notice, so treat them as best-effort knobs.
"""

import math
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from prism_autofill.config import Settings, settings as default_settings


EXCLUSION_KEYWORDS: List[str] = [
    "cancel", "close", "back", "menu", "settings", "profile", "login", "signup",
    "share", "copy", "edit", "delete", "like", "dislike", "thumb", "star",
    "bookmark", "microphone", "mic", "voice", "dictate", "record", "audio",
    "attach", "upload", "stop",
]

LOCALIZED_EXCLUSION_KEYWORDS: List[str] = [
    "キャンセル", "閉じる", "戻る", "メニュー", "設定", "ログイン", "共有", "コピー",
    "編集", "削除", "マイク", "音声", "録音", "添付", "停止",
]

# Only these are checked against SVG icon names and classes
ICON_EXCLUSION_KEYWORDS: List[str] = ["microphone", "mic", "voice", "dictate", "audio", "waveform"]

SUBMIT_KEYWORDS: List[str] = ["send", "submit", "送信"]
LITERAL_SEND_TEXTS = {"send", "送信"}
CLASS_HINTS: List[str] = ["send", "submit"]

_SEND_WORD = re.compile(r"\bsend\b", re.IGNORECASE)


def _keyword_pattern(keywords: Iterable[str]) -> "re.Pattern[str]":
    alternatives = "|".join(re.escape(keyword) for keyword in keywords)
    return re.compile(r"\b(?:%s)s?\b" % alternatives, re.IGNORECASE)


_EXCLUSION_PATTERN = _keyword_pattern(EXCLUSION_KEYWORDS)
_ICON_EXCLUSION_PATTERN = _keyword_pattern(ICON_EXCLUSION_KEYWORDS)


@dataclass
class ScoringPolicy:
    """Tunable thresholds and weights for send-control selection."""
    score_threshold: int = 3
    near_input_px: float = 150.0
    primary_input_px: float = 100.0
    small_button_px: float = 40.0
    icon_button_px: float = 50.0
    compact_button_px: float = 60.0
    ancestor_levels: int = 5
    exact_match_weight: int = 5
    literal_text_weight: int = 4
    partial_match_weight: int = 2
    class_hint_weight: int = 1
    proximity_weight: int = 1
    exclusion_penalty: int = -5

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "ScoringPolicy":
        settings = settings or default_settings
        return cls(
            score_threshold=settings.submit_score_threshold,
            near_input_px=settings.near_input_px,
        )


class CandidateSource(BaseModel):
    """Why a button ended up in the snapshot."""
    model_config = ConfigDict(extra="ignore")

    kind: str = Field(..., description="selector, nearby or global")
    selector: Optional[str] = None
    selector_index: Optional[int] = None
    depth: Optional[int] = None


class ButtonCandidate(BaseModel):
    """One button as described by the SNAPSHOT_BUTTONS page script."""
    model_config = ConfigDict(extra="ignore")

    ref: str
    tag: str = "button"
    text: str = ""
    aria_label: str = ""
    title: str = ""
    class_name: str = ""
    test_id: str = ""
    element_id: str = ""
    jsname: str = ""
    type: str = ""
    width: float = 0.0
    height: float = 0.0
    has_box: bool = True
    visibility: str = "visible"
    display: str = "inline-block"
    pointer_events: str = "auto"
    hidden: bool = False
    disabled: bool = False
    has_svg: bool = False
    has_small_svg: bool = False
    has_hidden_svg: bool = False
    icon_hints: str = ""
    distance_to_input: Optional[float] = None
    distance_to_primary: Optional[float] = None
    in_form_with_editable: bool = False
    dom_order: int = 0
    sources: List[CandidateSource] = Field(default_factory=list)

    @property
    def selector_index(self) -> Optional[int]:
        indexes = [s.selector_index for s in self.sources if s.kind == "selector" and s.selector_index is not None]
        return min(indexes) if indexes else None

    @property
    def selector(self) -> Optional[str]:
        matches = [s for s in self.sources if s.kind == "selector" and s.selector_index is not None]
        if not matches:
            return None
        return min(matches, key=lambda s: s.selector_index).selector

    @property
    def nearby_depth(self) -> Optional[int]:
        depths = [s.depth for s in self.sources if s.kind == "nearby" and s.depth is not None]
        return min(depths) if depths else None

    @property
    def size(self) -> float:
        return max(self.width, self.height)

    @property
    def labels(self) -> List[str]:
        return [self.text, self.aria_label, self.title]


@dataclass
class SubmitChoice:
    """The selected send control and the precedence step that chose it."""
    candidate: ButtonCandidate
    source: str
    score: Optional[int] = None


def _contains(value: str, needle: str) -> bool:
    return needle.lower() in (value or "").lower()


def is_usable(candidate: ButtonCandidate) -> bool:
    """Visible and enabled: rendered, not hidden, and clickable."""
    if candidate.width <= 0 or candidate.height <= 0 or not candidate.has_box:
        return False
    if candidate.hidden or candidate.visibility == "hidden" or candidate.display == "none":
        return False
    if candidate.disabled or candidate.pointer_events == "none":
        return False
    class_tokens = candidate.class_name.lower().split()
    return not any(token == "disabled" or token.endswith("-disabled") for token in class_tokens)


def exclusion_hits(candidate: ButtonCandidate) -> List[str]:
    """Exclusion keywords present in the candidate's labels or icon names."""
    hits: List[str] = []
    for label in candidate.labels:
        if not label:
            continue
        for match in _EXCLUSION_PATTERN.finditer(label):
            word = match.group(0).lower()
            if word not in hits:
                hits.append(word)
        for keyword in LOCALIZED_EXCLUSION_KEYWORDS:
            if keyword in label and keyword not in hits:
                hits.append(keyword)
    for match in _ICON_EXCLUSION_PATTERN.finditer(candidate.icon_hints):
        word = match.group(0).lower()
        if word not in hits:
            hits.append(word)
    return hits


def is_vetoed(candidate: ButtonCandidate) -> bool:
    return bool(exclusion_hits(candidate))


def score(candidate: ButtonCandidate, policy: Optional[ScoringPolicy] = None) -> int:
    """Point score used by the global search."""
    policy = policy or ScoringPolicy()
    total = 0

    exact = bool(_SEND_WORD.search(candidate.test_id) or _SEND_WORD.search(candidate.aria_label))
    literal = candidate.text.strip().lower() in LITERAL_SEND_TEXTS
    if exact:
        total += policy.exact_match_weight
    if literal:
        total += policy.literal_text_weight
    if not exact and not literal:
        haystacks = candidate.labels + [candidate.test_id]
        if any(_contains(value, keyword) for value in haystacks for keyword in SUBMIT_KEYWORDS):
            total += policy.partial_match_weight

    if any(_contains(candidate.class_name, hint) for hint in CLASS_HINTS):
        total += policy.class_hint_weight
    if candidate.distance_to_input is not None and candidate.distance_to_input <= policy.near_input_px:
        total += policy.proximity_weight

    if is_vetoed(candidate):
        total += policy.exclusion_penalty
    return total


def is_likely_submit(
    candidate: ButtonCandidate,
    service_name: str = "",
    policy: Optional[ScoringPolicy] = None,
) -> bool:
    """Site-specific and generic rules for buttons found next to the input."""
    policy = policy or ScoringPolicy()
    if is_vetoed(candidate):
        return False

    aria = candidate.aria_label
    near_primary = (
        candidate.distance_to_primary is not None
        and candidate.distance_to_primary <= policy.primary_input_px
    )
    service = service_name.lower()

    if service == "chatgpt":
        if _contains(candidate.test_id, "send") or _contains(aria, "send"):
            return True
        if candidate.has_small_svg:
            return True
        if near_primary and candidate.size <= policy.compact_button_px:
            return True
    elif service == "gemini":
        if _contains(aria, "send") or _contains(candidate.text, "send"):
            return True
        if _contains(candidate.class_name, "vfppkd-lgbsse") and near_primary:
            return True
        if candidate.has_hidden_svg and candidate.size <= policy.icon_button_px:
            return True
    elif service == "claude":
        if _contains(aria, "send") or _contains(candidate.test_id, "send"):
            return True
        if _contains(candidate.class_name, "bg-accent"):
            return True
        if _contains(candidate.icon_hints, "lucide"):
            return True
        if candidate.in_form_with_editable and candidate.has_svg:
            return True

    if candidate.type.lower() == "submit":
        return True
    if any(_contains(value, keyword) for value in (candidate.text, aria) for keyword in SUBMIT_KEYWORDS):
        return True
    return (
        candidate.has_svg
        and candidate.size <= policy.small_button_px
        and candidate.distance_to_input is not None
        and candidate.distance_to_input <= policy.near_input_px
    )


def _is_nearby(candidate: ButtonCandidate, policy: ScoringPolicy) -> bool:
    depth = candidate.nearby_depth
    if depth is not None and depth <= policy.ancestor_levels:
        return True
    return candidate.distance_to_primary is not None and candidate.distance_to_primary <= policy.near_input_px


def choose_submit(
    candidates: List[ButtonCandidate],
    service_name: str = "",
    policy: Optional[ScoringPolicy] = None,
) -> Optional[SubmitChoice]:
    """
    Pick the send control by precedence: catalog selector, then a likely
    submit button near the input, then the best global score.

    Args:
        candidates: Button snapshots from the page
        service_name: Selector set name, enables site-specific rules
        policy: Thresholds and weights

    Returns:
        SubmitChoice, or None when nothing reaches the score threshold
    """
    policy = policy or ScoringPolicy()
    eligible = [c for c in candidates if is_usable(c) and not is_vetoed(c)]

    by_selector = sorted(
        (c for c in eligible if c.selector_index is not None),
        key=lambda c: (c.selector_index, c.dom_order),
    )
    if by_selector:
        return SubmitChoice(candidate=by_selector[0], source="selector")

    nearby = sorted(
        (c for c in eligible if _is_nearby(c, policy) and is_likely_submit(c, service_name, policy)),
        key=lambda c: (
            c.nearby_depth if c.nearby_depth is not None else policy.ancestor_levels + 1,
            c.distance_to_primary if c.distance_to_primary is not None else math.inf,
            c.dom_order,
        ),
    )
    if nearby:
        return SubmitChoice(candidate=nearby[0], source="nearby")

    best: Optional[SubmitChoice] = None
    for candidate in sorted(eligible, key=lambda c: c.dom_order):
        points = score(candidate, policy)
        if points < policy.score_threshold:
            continue
        if best is None or points > best.score:
            best = SubmitChoice(candidate=candidate, source="global", score=points)
    return best
