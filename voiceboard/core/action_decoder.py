"""Decode-and-sanitize step for raw action-translation output."""

import json
import logging
import re
from dataclasses import dataclass, field

from pydantic import ValidationError

from .actions import SketchAction, is_hallucinated
from .exceptions import InvalidMessageError

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


@dataclass
class DecodedActions:
    """Actions that survived sanitizing, plus how many were dropped."""
    actions: list[SketchAction] = field(default_factory=list)
    filtered: int = 0


def extract_json_text(content: str) -> str:
    """
    Pull the JSON payload out of model output that may carry prose or markdown.

    Order of preference: a fenced block, then a bare array, then the
    outermost object.
    """
    match = _FENCE_RE.search(content)
    if match:
        return match.group(1).strip()

    stripped = content.strip()
    if stripped.startswith("["):
        return stripped

    start = stripped.find("{")
    end = stripped.rfind("}")
    if start != -1 and end > start:
        return stripped[start:end + 1]
    return stripped


def decode_actions(content: str | list | dict) -> DecodedActions:
    """
    Decode model output into actions.

    Accepts text, a bare list of actions, or an object wrapping them under
    "actions". Entries that are not objects, fail to parse, or name an
    unknown action/node type are dropped and counted.
    Raises InvalidMessageError when no JSON can be recovered at all.
    """
    payload = content
    if isinstance(content, str):
        text = extract_json_text(content)
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as e:
            raise InvalidMessageError(f"Action payload is not JSON: {e}") from e

    if isinstance(payload, dict):
        payload = payload.get("actions", [])
    if not isinstance(payload, list):
        raise InvalidMessageError(f"Expected a list of actions, got {type(payload).__name__}")

    decoded = DecodedActions()
    for raw in payload:
        if not isinstance(raw, dict):
            decoded.filtered += 1
            continue
        try:
            action = SketchAction.model_validate(raw)
        except ValidationError:
            decoded.filtered += 1
            logger.debug(f"Dropped undecodable action: {raw!r}")
            continue
        if is_hallucinated(action):
            decoded.filtered += 1
            logger.info(f"Dropped hallucinated action: {action.action} (type={action.type})")
            continue
        decoded.actions.append(action)

    if decoded.filtered:
        logger.info(f"Decoded {len(decoded.actions)} actions, filtered {decoded.filtered}")
    return decoded
