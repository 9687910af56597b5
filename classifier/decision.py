"""
Fresh / rotten decision engine.

Turns an open-vocabulary classifier prediction ``(label, score)`` into a
binary verdict.  Each call walks a small state machine::

    IDLE → CLASSIFYING → SUCCEEDED ─┐
                       → FAILED ────┴→ RESOLVED

No state is shared between calls.  A failed classification never
escapes as an exception: it resolves to a *degraded* verdict so the
caller always has something to display.
"""

from __future__ import annotations

import enum
import logging
import math
import random
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

# ── Constants ───────────────────────────────────────────────────────────────

ROTTEN_KEYWORDS = ("rotten", "spoiled", "decayed", "moldy", "bad", "diseased")
FRESH_KEYWORDS = ("fresh", "ripe", "healthy", "good")
CONFIDENCE_THRESHOLD: float = 0.7   # Unrecognised labels below this are rotten

FALLBACK_LABEL = "Unknown produce"
FALLBACK_SCORE: float = 0.85


class InferenceState(enum.Enum):
    IDLE = "idle"
    CLASSIFYING = "classifying"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    RESOLVED = "resolved"


class DecisionBranch(enum.Enum):
    ROTTEN_KEYWORD = "rotten_keyword"
    FRESH_KEYWORD = "fresh_keyword"
    SCORE_THRESHOLD = "score_threshold"


@dataclass(frozen=True)
class ClassificationResult:
    """Top prediction of an external classifier for one image."""

    label: str
    score: float


@dataclass(frozen=True)
class Verdict:
    label: str
    score: float
    is_rotten: bool
    degraded: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ── Decision rule ───────────────────────────────────────────────────────────

def decision_branch(label: str) -> DecisionBranch:
    """Return which branch of the decision rule applies to *label*."""
    text = label.lower()
    if any(word in text for word in ROTTEN_KEYWORDS):
        return DecisionBranch.ROTTEN_KEYWORD
    if any(word in text for word in FRESH_KEYWORDS):
        return DecisionBranch.FRESH_KEYWORD
    return DecisionBranch.SCORE_THRESHOLD


def decide(result: ClassificationResult) -> Verdict:
    """Apply the fresh / rotten rule to a successful classification.

    Keywords win over the score: a rotten keyword means rotten, otherwise
    a fresh keyword means fresh.  Labels matching neither list are rotten
    only when the classifier is less than 70% confident.
    """
    branch = decision_branch(result.label)
    score = float(result.score)
    if branch is DecisionBranch.ROTTEN_KEYWORD:
        is_rotten = True
    elif branch is DecisionBranch.FRESH_KEYWORD:
        is_rotten = False
    else:
        is_rotten = score < CONFIDENCE_THRESHOLD
    return Verdict(label=result.label, score=score, is_rotten=is_rotten)


# Independent of the module-level ``random`` state
_fallback_rng = random.Random()


def fallback_verdict(rng: Optional[random.Random] = None) -> Verdict:
    """Degraded verdict used when the classifier could not produce a result.

    ``is_rotten`` is a coin flip; ``degraded=True`` tells the caller the
    verdict needs a human look.
    """
    rng = rng or _fallback_rng
    return Verdict(
        label=FALLBACK_LABEL,
        score=FALLBACK_SCORE,
        is_rotten=rng.random() < 0.5,
        degraded=True,
    )


def _is_valid(result: Any) -> bool:
    if not isinstance(result, ClassificationResult):
        return False
    if not isinstance(result.label, str) or not result.label.strip():
        return False
    try:
        score = float(result.score)
    except (TypeError, ValueError):
        return False
    return math.isfinite(score) and 0.0 <= score <= 1.0


# ── Per-call state machine ──────────────────────────────────────────────────

def resolve(
    classify: Callable[[Any], Optional[ClassificationResult]],
    image: Any,
    *,
    on_state: Optional[Callable[[InferenceState], None]] = None,
    rng: Optional[random.Random] = None,
) -> Verdict:
    """Classify *image* with *classify* and resolve it into a :class:`Verdict`.

    Parameters
    ----------
    classify : callable
        External classifier; may raise or return an invalid result.
    image : Any
        Whatever *classify* accepts (bytes, path, …).
    on_state : callable, optional
        Observer notified on every state transition.
    rng : random.Random, optional
        Random source for the degraded fallback.

    Returns
    -------
    Verdict
        Never raises because of the classifier.
    """
    def enter(state: InferenceState) -> None:
        if on_state is not None:
            on_state(state)

    enter(InferenceState.IDLE)
    enter(InferenceState.CLASSIFYING)
    try:
        result = classify(image)
    except Exception:
        logger.exception("Classifier failed; returning degraded verdict")
        result = None
    else:
        if not _is_valid(result):
            logger.warning("Classifier returned an invalid result: %r", result)
            result = None

    if result is None:
        enter(InferenceState.FAILED)
        verdict = fallback_verdict(rng)
    else:
        enter(InferenceState.SUCCEEDED)
        verdict = decide(result)

    enter(InferenceState.RESOLVED)
    return verdict
