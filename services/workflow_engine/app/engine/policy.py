"""
Confidence policy for AI-generated change proposals.

Sole owner of the auto-approval decision. Callers that decide whether to
bypass the approval queue entirely apply their own, looser threshold (0.8 in
the dashboard's direct-apply path); that one is not configured here.
"""
from __future__ import annotations

from dataclasses import dataclass

DEFAULT_AUTO_APPROVE_THRESHOLD = 0.85


@dataclass(frozen=True)
class PolicyDecision:
    auto_approve: bool


@dataclass(frozen=True)
class ConfidencePolicy:
    threshold: float = DEFAULT_AUTO_APPROVE_THRESHOLD

    def decide(self, confidence: float | None) -> PolicyDecision:
        # A missing score is treated as low confidence
        if confidence is None:
            return PolicyDecision(auto_approve=False)
        return PolicyDecision(auto_approve=confidence > self.threshold)
