"""Combine per-field check results into a scored three-way decision."""

from __future__ import annotations

from typing import Dict, Mapping, Optional

from reentry_map.models import CheckName, Decision, VerificationCheckResult, VerificationDecision
from reentry_map.settings import get_settings

# Checks whose failure on a supplied field rejects the candidate outright.
CRITICAL_CHECKS = frozenset({CheckName.ADDRESS_GEOCODABLE.value})

_FIELD_LABELS = {
    CheckName.URL_REACHABLE.value: "website",
    CheckName.PHONE_VALID.value: "phone",
    CheckName.ADDRESS_GEOCODABLE.value: "address",
    CheckName.WEBSITE_CONTENT_MATCHES.value: "website content",
}

# Field conflicts more different than this send the candidate to a human.
HIGH_CONFLICT_CONFIDENCE = 0.7


def _describe(names: list[str]) -> str:
    return ", ".join(f"{_FIELD_LABELS.get(name, name)} check ({name})" for name in names)


def _high_confidence_conflicts(checks: Mapping[str, VerificationCheckResult]) -> list[str]:
    fields: list[str] = []
    for check in checks.values():
        for conflict in check.details.get("conflicts") or []:
            if conflict.get("confidence", 0.0) > HIGH_CONFLICT_CONFIDENCE and conflict.get("field") not in fields:
                fields.append(conflict["field"])
    return fields


class DecisionEngine:
    """Score checks and pick ``auto_approve``, ``auto_reject`` or ``flag_for_human``.

    The overall score is the weighted mean of the conclusive checks that
    were actually run; absent or inconclusive checks are left out of the
    denominator. Rules are applied in order:

    1. nothing conclusive to score -> flag
    2. a critical check failed -> reject
    3. a check was inconclusive (collaborator down) -> flag
    4. score below the reject threshold -> reject
    5. a submitted field conflicts strongly with the website -> flag
    6. a non-critical check failed -> flag (the website-down safety valve)
    7. score at or above the approve threshold -> approve
    8. otherwise -> flag
    """

    def __init__(
        self,
        *,
        weights: Optional[Mapping[str, float]] = None,
        approve_threshold: Optional[float] = None,
        reject_threshold: Optional[float] = None,
    ) -> None:
        verification = get_settings().verification
        self._weights: Dict[str, float] = dict(weights or verification.weights.model_dump())
        self._approve = approve_threshold if approve_threshold is not None else verification.approve_threshold
        self._reject = reject_threshold if reject_threshold is not None else verification.reject_threshold

    def score(self, checks: Mapping[str, VerificationCheckResult]) -> Optional[float]:
        """Weighted mean confidence of conclusive checks, or ``None`` when none ran."""

        total_weight = 0.0
        weighted = 0.0
        for name, check in checks.items():
            if check.inconclusive:
                continue
            weight = self._weights.get(name, 0.0)
            if weight <= 0:
                continue
            total_weight += weight
            weighted += weight * check.confidence
        if total_weight == 0:
            return None
        return round(weighted / total_weight, 4)

    def decide(self, checks: Mapping[str, VerificationCheckResult]) -> VerificationDecision:
        score = self.score(checks)
        conclusive = {name: check for name, check in checks.items() if not check.inconclusive}
        inconclusive = sorted(name for name, check in checks.items() if check.inconclusive)
        failed = sorted(name for name, check in conclusive.items() if not check.passed)
        critical_failed = [name for name in failed if name in CRITICAL_CHECKS]

        def _decision(decision: Decision, reason: str) -> VerificationDecision:
            return VerificationDecision(
                overall_score=score if score is not None else 0.0,
                decision=decision,
                reason=reason,
                checks=dict(checks),
            )

        if score is None:
            if inconclusive:
                return _decision(
                    Decision.FLAG_FOR_HUMAN,
                    f"Checks inconclusive (collaborator unavailable): {', '.join(inconclusive)}",
                )
            return _decision(Decision.FLAG_FOR_HUMAN, "No verifiable fields; manual review required")

        if critical_failed:
            return _decision(
                Decision.AUTO_REJECT,
                f"Critical check failed: {_describe(critical_failed)} (score {score:.2f})",
            )

        if inconclusive:
            return _decision(
                Decision.FLAG_FOR_HUMAN,
                f"Checks inconclusive (collaborator unavailable): {', '.join(inconclusive)} (score {score:.2f})",
            )

        if score < self._reject:
            return _decision(Decision.AUTO_REJECT, f"Confidence {score:.2f} below reject threshold {self._reject:.2f}")

        conflicts = _high_confidence_conflicts(conclusive)
        if conflicts:
            return _decision(
                Decision.FLAG_FOR_HUMAN,
                f"{len(conflicts)} high-confidence conflict(s) detected: {', '.join(conflicts)} (score {score:.2f})",
            )

        if failed:
            passed_critical = any(name in CRITICAL_CHECKS for name in conclusive)
            suffix = " while critical checks passed" if passed_critical else ""
            return _decision(Decision.FLAG_FOR_HUMAN, f"{_describe(failed)} failed{suffix} (score {score:.2f})")

        if score >= self._approve:
            return _decision(Decision.AUTO_APPROVE, f"All checks passed with confidence {score:.2f}")

        return _decision(
            Decision.FLAG_FOR_HUMAN,
            f"Confidence {score:.2f} between reject {self._reject:.2f} and approve {self._approve:.2f} thresholds",
        )


__all__ = ["DecisionEngine", "CRITICAL_CHECKS", "HIGH_CONFLICT_CONFIDENCE"]
