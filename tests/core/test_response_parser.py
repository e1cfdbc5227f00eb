"""
Tests for the two-stage model output parser.
"""
import json
import pytest

from ticket_forensics.core.errors import ResponseParseError
from ticket_forensics.core.response_parser import (
    extract_json_object,
    parse_model_output,
    validate_verdict_shape,
)
from ticket_forensics.models.verdict import VerdictType
from ticket_forensics.utils.fallback_responses import PARSE_FAILURE_WARNING

from conftest import VALID_VERDICT

SCENARIO_B = (
    'Here is my analysis: { "verdict": "ALGO_IMPACT", "rootCause": "...", "strategy": null, '
    '"evidence": [], "confidence": 0.8, "draftEmail": "..." } Thanks.'
)


class TestExtractJsonObject:

    def test_object_inside_prose(self):
        data = extract_json_object(SCENARIO_B)

        assert data["verdict"] == "ALGO_IMPACT"
        assert data["confidence"] == 0.8

    def test_object_inside_code_fence(self):
        raw = "```json\n" + json.dumps(VALID_VERDICT) + "\n```"

        assert extract_json_object(raw) == VALID_VERDICT

    def test_braces_inside_strings(self):
        payload = {"rootCause": "Template used {city} placeholder", "note": "closing } brace"}
        raw = "Result: " + json.dumps(payload) + " done"

        assert extract_json_object(raw) == payload

    def test_skips_unbalanced_prefix(self):
        raw = 'Set {broken to fix. {"verdict": "FALSE_ALARM"}'

        assert extract_json_object(raw) == {"verdict": "FALSE_ALARM"}

    def test_first_object_wins(self):
        raw = '{"a": 1} and then {"b": 2}'

        assert extract_json_object(raw) == {"a": 1}

    @pytest.mark.parametrize("raw", ["", "no json here", "[1, 2, 3]", "{not json}"])
    def test_no_object_raises(self, raw):
        with pytest.raises(ResponseParseError):
            extract_json_object(raw)

    def test_deep_nesting_raises_parse_error(self):
        with pytest.raises(ResponseParseError):
            extract_json_object('{"a": ' * 100000)


class TestValidateVerdictShape:

    def test_clean_verdict_has_no_repairs(self):
        verdict, repairs = validate_verdict_shape(VALID_VERDICT)

        assert verdict.verdict == VerdictType.ALGO_IMPACT
        assert verdict.strategy == "DIGITAL_PR"
        assert repairs == []

    def test_repairs_verdict_label(self):
        verdict, repairs = validate_verdict_shape({**VALID_VERDICT, "verdict": "algo impact"})

        assert verdict.verdict == VerdictType.ALGO_IMPACT
        assert repairs == ["Repaired verdict label 'algo impact' to ALGO_IMPACT"]

    def test_repairs_single_evidence_string(self):
        verdict, repairs = validate_verdict_shape({**VALID_VERDICT, "evidence": "Core update rolled out"})

        assert verdict.evidence == ["Core update rolled out"]
        assert repairs == ["Repaired evidence: wrapped single string in a list"]

    @pytest.mark.parametrize("raw,clamped", [(1.4, 1.0), (-0.2, 0.0), (85, 1.0)])
    def test_clamps_confidence(self, raw, clamped):
        verdict, repairs = validate_verdict_shape({**VALID_VERDICT, "confidence": raw})

        assert verdict.confidence == clamped
        assert repairs == [f"Repaired confidence {raw} to {clamped}"]

    def test_unknown_verdict_rejected(self):
        with pytest.raises(ResponseParseError):
            validate_verdict_shape({**VALID_VERDICT, "verdict": "MOON_PHASE"})

    def test_missing_field_rejected(self):
        data = {k: v for k, v in VALID_VERDICT.items() if k != "draftEmail"}

        with pytest.raises(ResponseParseError):
            validate_verdict_shape(data)

    def test_non_numeric_confidence_rejected(self):
        with pytest.raises(ResponseParseError):
            validate_verdict_shape({**VALID_VERDICT, "confidence": "high"})


class TestParseModelOutput:

    def test_scenario_prose_wrapped(self):
        parsed = parse_model_output(SCENARIO_B)

        assert parsed.used_fallback is False
        assert parsed.verdict.verdict == VerdictType.ALGO_IMPACT
        assert parsed.verdict.confidence == 0.8
        assert parsed.verdict.strategy is None
        assert parsed.warnings == []

    def test_repairs_become_warnings(self):
        raw = json.dumps({**VALID_VERDICT, "confidence": 72})

        parsed = parse_model_output(raw)

        assert parsed.used_fallback is False
        assert parsed.warnings == ["Repaired confidence 72 to 1.0"]

    def test_confidence_too_large_for_float_is_clamped(self):
        raw = json.dumps(VALID_VERDICT).replace('"confidence": 0.72', '"confidence": 1' + "0" * 400)

        parsed = parse_model_output(raw)

        assert parsed.used_fallback is False
        assert parsed.verdict.confidence == 1.0
        assert len(parsed.warnings) == 1
        assert parsed.warnings[0].endswith("to 1.0")

    @pytest.mark.parametrize("raw", [
        "",
        "I could not analyze this ticket.",
        '{"verdict": "ALGO_IMPACT"}',
        '{"verdict": "ALGO_IMPACT", "rootCause": "x", "evidence": [], "confidence": 0.5, "draftEmail": ',
        '{"verdict": "ALGO_IMPACT", "confidence": ' + "9" * 5000 + "}",
        '{"a": ' * 100000,
    ], ids=["empty", "prose", "missing-fields", "truncated", "oversized-integer", "deep-nesting"])
    def test_malformed_output_uses_fallback(self, raw):
        parsed = parse_model_output(raw)

        assert parsed.used_fallback is True
        assert parsed.verdict.verdict == VerdictType.NEEDS_INVESTIGATION
        assert parsed.verdict.confidence == 0.3
        assert parsed.warnings == [PARSE_FAILURE_WARNING]
