"""Reconcile raw model output with the description template.

Two helpers live here:

* :func:`normalize_to_template` turns an arbitrary parsed JSON value into a
  value with exactly the template's shape, filling gaps with defaults.
* :func:`merge_pose_update` applies a pose-only model answer to an existing
  description without touching anything outside ``pose``.
"""

import copy
import logging
from typing import Any, Dict, Optional

from sprite_lab.descriptions import CharacterDescription

logger = logging.getLogger(__name__)

UNKNOWN = "unknown"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_string_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(item, str) for item in value)


def normalize_to_template(template: Any, value: Any) -> Any:
    """Return ``value`` coerced to the shape of ``template``.

    Rules are chosen by the template node's type:

    * object: recurse per template key, dropping unknown input keys; a missing
      key recurses with ``None``.
    * array: the input list when it is a list, otherwise the template list.
    * string: the input when it is a non-blank string, otherwise ``"unknown"``.
      The template's own text is an example and is never used as a value.
    * bool / number: the input when its type matches, otherwise the template value.
    * anything else: the input when present, otherwise the template value.
    """
    if isinstance(template, dict):
        source = value if isinstance(value, dict) else {}
        return {key: normalize_to_template(child, source.get(key)) for key, child in template.items()}

    if isinstance(template, list):
        if isinstance(value, list):
            return list(value)
        return list(template)

    if isinstance(template, str):
        if isinstance(value, str) and value.strip():
            return value
        return UNKNOWN

    if isinstance(template, bool):
        return value if isinstance(value, bool) else template

    if _is_number(template):
        return value if _is_number(value) else template

    return value if value is not None else template


def _pose_candidate(response: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(response, dict):
        return None
    nested = response.get("pose")
    if isinstance(nested, dict):
        return nested
    return response


def _accepts(original: Any, candidate: Any) -> bool:
    if isinstance(original, bool):
        return isinstance(candidate, bool)
    if isinstance(original, str):
        return isinstance(candidate, str) and bool(candidate.strip())
    if isinstance(original, list):
        return _is_string_list(original) and _is_string_list(candidate)
    return False


def merge_pose_update(original: CharacterDescription, response: Any) -> CharacterDescription:
    """Copy type-compatible pose fields from ``response`` onto a copy of ``original``.

    ``response`` may be either ``{"pose": {...}}`` or the pose object itself.
    The original pose defines the field set: fields the model adds are ignored
    and fields whose type does not match keep their original value.
    """
    merged = copy.deepcopy(original)
    pose = merged.get("pose")
    candidate = _pose_candidate(response)
    if not isinstance(pose, dict) or candidate is None:
        logger.warning("Pose update response carried no usable pose object; keeping original pose.")
        return merged

    rejected = []
    for field, current in pose.items():
        if field not in candidate:
            continue
        proposed = candidate[field]
        if _accepts(current, proposed):
            pose[field] = list(proposed) if isinstance(proposed, list) else proposed
        else:
            rejected.append(field)

    if rejected:
        logger.debug("Ignored pose fields with mismatched types: %s", ", ".join(rejected))
    return merged
