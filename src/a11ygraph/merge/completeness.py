# src/a11ygraph/merge/completeness.py
import logging
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..model import Confidence, ConfidenceBand

logger = logging.getLogger(__name__)


class CompletenessSettings(BaseModel):
    """
    Tunable constants of the completeness heuristic.
    Every constant is constrained so that fewer fragments and more resolved
    references can never lower the score.
    """
    model_config = ConfigDict(frozen=True)

    fragment_penalty: float = Field(0.1, ge=0.0)
    floor: float = Field(0.3, ge=0.0, le=1.0)
    reference_weight: float = Field(0.3, ge=0.0)
    high_threshold: float = Field(0.9, le=1.0)
    medium_threshold: float = Field(0.5, ge=0.0)

    @model_validator(mode='after')
    def check_bands(self) -> "CompletenessSettings":
        if self.medium_threshold > self.high_threshold:
            raise ValueError("medium_threshold must not exceed high_threshold")
        return self

    @classmethod
    def from_config(cls, config: Any) -> "CompletenessSettings":
        """Reads the 'completeness' section of a ConfigManager-like object."""
        section = config.get_nested("completeness", {}) or {}
        return cls(**{k: v for k, v in section.items() if k in cls.model_fields})


class CompletenessScore(BaseModel):
    model_config = ConfigDict(frozen=True)

    fragments: int
    resolved: int
    unresolved: int
    score: float
    band: ConfidenceBand
    reason: str

    @property
    def resolution_rate(self) -> float:
        total = self.resolved + self.unresolved
        return self.resolved / total if total else 0.0

    def confidence(self) -> Confidence:
        return Confidence(score=self.score, band=self.band, reason=self.reason)


def band_for(score: float, settings: Optional[CompletenessSettings] = None) -> ConfidenceBand:
    settings = settings or CompletenessSettings()
    if score >= settings.high_threshold:
        return "HIGH"
    if score >= settings.medium_threshold:
        return "MEDIUM"
    return "LOW"


class CompletenessScorer:
    """Scores how much of the intended UI tree the analyzed fragment set covers."""

    def __init__(self, settings: Optional[CompletenessSettings] = None):
        self.settings = settings or CompletenessSettings()

    def base(self, fragments: int) -> float:
        if fragments == 1:
            return 1.0
        return max(self.settings.floor, 1.0 - self.settings.fragment_penalty * fragments)

    def score(self, fragments: int, resolved: int, unresolved: int) -> CompletenessScore:
        total = resolved + unresolved
        rate = resolved / total if total else 0.0
        value = round(min(1.0, self.base(fragments) + self.settings.reference_weight * rate), 6)
        result = CompletenessScore(
            fragments=fragments,
            resolved=resolved,
            unresolved=unresolved,
            score=value,
            band=band_for(value, self.settings),
            reason=self._reason(fragments, rate, total),
        )
        logger.debug("Completeness %.2f (%s): %s", result.score, result.band, result.reason)
        return result

    @staticmethod
    def _reason(fragments: int, rate: float, total: int) -> str:
        if fragments == 1:
            tree = "complete tree, 1 fragment"
        elif fragments == 0:
            tree = "no markup, 0 fragments"
        else:
            tree = f"partial tree, {fragments} fragments"
        refs = f"{round(rate * 100)}% references resolved" if total else "no references"
        return f"{tree}, {refs}"


def degrade(score: CompletenessScore, factor: float, settings: Optional[CompletenessSettings] = None) -> Confidence:
    """Confidence for a single-fragment fallback analysis."""
    value = round(score.score * factor, 6)
    return Confidence(score=value, band=band_for(value, settings), reason=f"{score.reason}, degraded single-fragment view")
