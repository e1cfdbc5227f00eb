"""
Fallback Responses for Unparseable Model Output

Predefined safe verdict used when the model answered but its output could
not be turned into an AIVerdict. It never asserts a diagnosis and routes the
ticket to manual review.
"""

from ticket_forensics.models.verdict import AIVerdict, VerdictType

PARSE_FAILURE_WARNING = "AI response parsing failed - using fallback response"


def get_fallback_verdict() -> AIVerdict:
    """
    Safe verdict when the model response cannot be parsed.

    Returns NEEDS_INVESTIGATION with low confidence and no strategy,
    so nothing downstream acts on it automatically.
    """
    return AIVerdict(
        verdict=VerdictType.NEEDS_INVESTIGATION,
        root_cause="Unable to parse AI response. Manual review required.",
        strategy=None,
        evidence=["AI response parsing failed"],
        confidence=0.3,
        draft_email="I need to review this ticket manually and will get back to you shortly.",
    )
