"""
Fact-check result models for AI-generated summaries.

The FactVerificationGuard compares numbers, dates and named entities in a
summary against its source articles and reports how much of it is grounded.

The result is advisory: it sets needs_review on the stored summary and
never aborts the pipeline. Downstream review decides publication.
"""

from typing import Dict, List

from pydantic import BaseModel, Field, field_validator


class VerifiedCount(BaseModel):
    """Verified vs total facts of one class (numbers, dates, entities)."""
    verified: int = 0
    total: int = 0

    @property
    def unverified(self) -> int:
        return self.total - self.verified


class FactCheckResult(BaseModel):
    """
    Outcome of checking one summary against its sources.

    confidence is verified / total over all checked facts, 1.0 when the
    summary carries no checkable facts. needs_review is set when confidence
    is under the threshold or any number/date could not be found in the sources.
    """
    needs_review: bool = False
    confidence: float = Field(ge=0.0, le=1.0, default=1.0)
    issues: List[str] = Field(default_factory=list)
    verified_counts: Dict[str, VerifiedCount] = Field(default_factory=dict)
    unverified_entities: List[str] = Field(default_factory=list)
    script: str = "latin"
    checks_run: List[str] = Field(default_factory=list)  # "numbers", "dates", "entities"

    @field_validator("confidence", mode="before")
    @classmethod
    def clamp_confidence(cls, v):
        if v is None:
            return 0.0
        return max(0.0, min(1.0, float(v)))

    @property
    def total_facts(self) -> int:
        return sum(c.total for c in self.verified_counts.values())

    @property
    def verified_facts(self) -> int:
        return sum(c.verified for c in self.verified_counts.values())

    def summary(self) -> str:
        """One-line summary for logging."""
        status = "REVIEW" if self.needs_review else "OK"
        return (
            f"[{status}] confidence={self.confidence:.2f}, "
            f"facts={self.verified_facts}/{self.total_facts}, "
            f"issues={len(self.issues)}, script={self.script}"
        )
