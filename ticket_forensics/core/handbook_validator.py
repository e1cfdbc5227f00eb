"""
Handbook Validator

Re-checks a verdict against the deterministic Handbook rules. Violations are
observational: they are returned as ConstraintViolation records and turned
into warnings, and the verdict itself is never modified.
"""

import re
from typing import List

from ticket_forensics.core.errors import ConstraintViolation
from ticket_forensics.models.verdict import AIVerdict, NineMonthCheckResult, StrategyType

CAUSATION_PATTERN = re.compile(r"\b(?:caused by|resulted in|led to|proves that)\b")
CAUSATION_EXEMPTION_PATTERN = re.compile(r"\b(?:experiment|control group)")
CALCULATION_PATTERN = re.compile(
    r"\b(?:i calculated|let me calculate|calculating|dividing|multiplying|adding up)\b"
)
SCOPE_PATTERNS = (
    re.compile(r"\bguarantee(?:d|s)?\b"),
    re.compile(r"\bwe promise\b|\bi promise\b"),
    re.compile(r"\b(?:will|going to) (?:be )?(?:rank|back) (?:#?1|number one|first|on page one)\b"),
    re.compile(r"\bwithin \d+ (?:days|weeks)\b.*\brank"),
)
CODE_PATTERNS = (
    re.compile(r"```"),
    re.compile(r"\btool_code\b"),
)
_REFRESH_PATTERN = re.compile(r"content[\s_-]*refresh|refresh(?:ing)? (?:the )?content", re.IGNORECASE)


def _verdict_text(verdict: AIVerdict) -> str:
    parts = [verdict.root_cause, verdict.draft_email, verdict.strategy or "", *verdict.evidence]
    return "\n".join(parts)


def recommends_content_refresh(strategy: str | None) -> bool:
    return bool(strategy) and bool(_REFRESH_PATTERN.search(strategy))


def names_allowed_strategy(strategy: str) -> bool:
    normalized = re.sub(r"[\s\-]+", "_", strategy.upper())
    return any(member.value in normalized for member in StrategyType)


def check_text_constraints(text: str) -> List[ConstraintViolation]:
    """
    Handbook rules that apply to any generated text, verdict or chat reply.

    Rules:
        STATISTICAL_RIGOR: causal language without experiment/control-group reference
        NO_MANUAL_MATH: the model describes doing arithmetic itself
        CODE_OUTPUT: code fences or tool-call syntax
    """
    violations: List[ConstraintViolation] = []
    lowered = text.lower()

    if CAUSATION_PATTERN.search(lowered) and not CAUSATION_EXEMPTION_PATTERN.search(lowered):
        violations.append(ConstraintViolation(
            rule="STATISTICAL_RIGOR",
            message="Causal language used without experiment or control-group evidence",
        ))

    if CALCULATION_PATTERN.search(lowered):
        violations.append(ConstraintViolation(
            rule="NO_MANUAL_MATH",
            message="Response describes manual calculation instead of using pre-computed figures",
        ))

    if any(pattern.search(text) for pattern in CODE_PATTERNS):
        violations.append(ConstraintViolation(
            rule="CODE_OUTPUT",
            message="Response contains code fences or tool-call syntax",
        ))

    return violations


def validate_against_handbook(
    verdict: AIVerdict,
    nine_month: NineMonthCheckResult,
) -> List[ConstraintViolation]:
    """
    Check a verdict against the Handbook.

    Rules:
        NINE_MONTH_RULE: content refresh proposed for a locked page
        STATISTICAL_RIGOR: causal language without experiment/control-group reference
        NO_MANUAL_MATH: the model describes doing arithmetic itself
        CODE_OUTPUT: code fences or tool-call syntax in any text field
        SCOPE: the draft email promises or guarantees outcomes
        UNKNOWN_STRATEGY: strategy names none of the allowed strategies

    Returns:
        Violations in rule order (empty when the verdict is clean)
    """
    violations: List[ConstraintViolation] = []
    text = _verdict_text(verdict)

    if nine_month.is_locked and recommends_content_refresh(verdict.strategy):
        violations.append(ConstraintViolation(
            rule="NINE_MONTH_RULE",
            message=f"Content refresh recommended for a locked page ({nine_month.reason})",
        ))

    violations.extend(check_text_constraints(text))

    draft = verdict.draft_email.lower()
    if any(pattern.search(draft) for pattern in SCOPE_PATTERNS):
        violations.append(ConstraintViolation(
            rule="SCOPE",
            message="Draft email promises or guarantees an outcome",
        ))

    if verdict.strategy and not names_allowed_strategy(verdict.strategy):
        violations.append(ConstraintViolation(
            rule="UNKNOWN_STRATEGY",
            message=f"Strategy '{verdict.strategy}' is not one of the allowed strategies",
        ))

    return violations
