"""
Response Parser

Turns untrusted free-form model output into an AIVerdict in two stages:

1. extract_json_object: find the first JSON object embedded in the text,
   tolerating prose or code fences around it.
2. validate_verdict_shape: apply a few light repairs, then validate
   strictly against the AIVerdict schema.

parse_model_output wraps both and is total: on any failure it returns the
fallback verdict plus a warning.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from loguru import logger
from pydantic import ValidationError

from ticket_forensics.core.errors import ResponseParseError
from ticket_forensics.models.verdict import AIVerdict, VerdictType
from ticket_forensics.utils.fallback_responses import PARSE_FAILURE_WARNING, get_fallback_verdict

_decoder = json.JSONDecoder()


def extract_json_object(raw_text: str) -> Dict[str, Any]:
    """
    Decode the first balanced JSON object in raw_text.

    Every '{' is tried in order with raw_decode, which is string and escape
    aware, so braces inside string values never unbalance the scan.

    Raises:
        ResponseParseError: If no position decodes to a JSON object
    """
    if not raw_text:
        raise ResponseParseError("Empty model response")

    position = raw_text.find("{")
    while position != -1:
        try:
            value, _ = _decoder.raw_decode(raw_text, position)
        except RecursionError as e:
            raise ResponseParseError("Model response nests too deeply to decode") from e
        except ValueError:
            position = raw_text.find("{", position + 1)
            continue
        if isinstance(value, dict):
            return value
        position = raw_text.find("{", position + 1)

    raise ResponseParseError("No JSON object found in model response")


def _normalize_verdict_label(label: str) -> str:
    return re.sub(r"[\s\-]+", "_", label.strip()).upper()


def validate_verdict_shape(data: Dict[str, Any]) -> Tuple[AIVerdict, List[str]]:
    """
    Repair and strictly validate a decoded object.

    Repairs (each reported back as a warning):
    - verdict label in the wrong case or with spaces/hyphens
    - evidence given as a single string
    - numeric confidence outside [0, 1]

    Returns:
        (verdict, repairs)

    Raises:
        ResponseParseError: If the object still does not match AIVerdict
    """
    data = dict(data)
    repairs: List[str] = []

    verdict = data.get("verdict")
    if isinstance(verdict, str) and verdict not in VerdictType.__members__:
        normalized = _normalize_verdict_label(verdict)
        if normalized in VerdictType.__members__:
            data["verdict"] = normalized
            repairs.append(f"Repaired verdict label '{verdict}' to {normalized}")

    evidence = data.get("evidence")
    if isinstance(evidence, str):
        data["evidence"] = [evidence]
        repairs.append("Repaired evidence: wrapped single string in a list")

    confidence = data.get("confidence")
    if isinstance(confidence, (int, float)) and not isinstance(confidence, bool):
        try:
            clamped = min(max(float(confidence), 0.0), 1.0)
        except OverflowError:
            clamped = 1.0 if confidence > 0 else 0.0
        if clamped != confidence:
            data["confidence"] = clamped
            repairs.append(f"Repaired confidence {confidence} to {clamped}")

    try:
        parsed = AIVerdict.model_validate(data)
    except ValidationError as e:
        raise ResponseParseError(f"Model output does not match the verdict schema: {e}") from e

    return parsed, repairs


@dataclass
class ParsedVerdict:
    verdict: AIVerdict
    warnings: List[str] = field(default_factory=list)
    used_fallback: bool = False


def parse_model_output(raw_text: str) -> ParsedVerdict:
    """
    Total parse of model output. Never raises.

    Returns:
        ParsedVerdict with the model's verdict, or the fallback verdict and
        a parse-failure warning
    """
    try:
        data = extract_json_object(raw_text)
        verdict, repairs = validate_verdict_shape(data)
    except ResponseParseError as e:
        logger.warning(f"Falling back to manual-review verdict: {e}")
        return ParsedVerdict(
            verdict=get_fallback_verdict(),
            warnings=[PARSE_FAILURE_WARNING],
            used_fallback=True,
        )

    for repair in repairs:
        logger.warning(repair)
    return ParsedVerdict(verdict=verdict, warnings=repairs)
