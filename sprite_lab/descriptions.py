"""Character description schema, resources and structural validation.

A character description is kept as a plain JSON object (``dict``) whose shape
is defined by ``resources/character_description_template.json``.  The template
doubles as the prompt skeleton sent to the model and as the reference shape for
:func:`sprite_lab.normalizer.normalize_to_template`.
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, Field

RESOURCES_DIR = Path(__file__).resolve().parent / "resources"
DEFAULT_TEMPLATE_PATH = RESOURCES_DIR / "character_description_template.json"
DEFAULT_PROMPT_PATH = RESOURCES_DIR / "prompts" / "character_description_v1.json"

TEMPLATE_PLACEHOLDER = "{{TEMPLATE_JSON}}"

CharacterDescription = Dict[str, Any]

REQUIRED_FIELDS = (
    "character_id",
    "one_line_summary",
    "pose",
    "art_style",
    "body_base",
    "head_and_face",
    "hair",
    "outfit",
    "equipment_and_props",
    "color_palette",
    "rendering_constraints",
)

REQUIRED_POSE_FIELDS = (
    "overall_pose",
    "action",
    "motion_state",
    "is_airborne",
    "movement_direction",
    "speed_or_intensity",
    "ground_contact_points",
    "weight_shift_and_balance",
    "body_orientation",
    "head_orientation",
    "gaze_direction",
    "arm_positions",
    "leg_positions",
    "facial_expression",
    "camera_movement_or_zoom",
)


class PromptDefinition(BaseModel):
    """Prompt pair used for the description request."""

    developer: str = Field(description="Developer/system message sent alongside the image.")
    user_template: str = Field(
        description="User message; ``{{TEMPLATE_JSON}}`` is replaced by the description template."
    )
    version: int = Field(default=1)

    def render_user_prompt(self, template: CharacterDescription) -> str:
        return self.user_template.replace(TEMPLATE_PLACEHOLDER, to_json(template, pretty=True))


def load_template(path: Optional[Union[str, Path]] = None) -> CharacterDescription:
    """Read the description template JSON."""
    template_path = Path(path) if path is not None else DEFAULT_TEMPLATE_PATH
    with open(template_path, "r", encoding="utf-8") as handle:
        return json.load(handle)


def load_prompt_definition(path: Optional[Union[str, Path]] = None) -> PromptDefinition:
    """Read and validate the description prompt JSON."""
    prompt_path = Path(path) if path is not None else DEFAULT_PROMPT_PATH
    with open(prompt_path, "r", encoding="utf-8") as handle:
        return PromptDefinition.model_validate_json(handle.read())


def _is_object(value: Any) -> bool:
    return isinstance(value, dict)


def is_character_description(value: Any) -> bool:
    """Return True when ``value`` carries every required top-level and pose key."""
    if not _is_object(value):
        return False
    if not all(key in value for key in REQUIRED_FIELDS):
        return False
    pose = value["pose"]
    if not _is_object(pose):
        return False
    return all(key in pose for key in REQUIRED_POSE_FIELDS)


def to_json(description: Any, pretty: bool = False) -> str:
    """Serialize a description.

    The compact form sorts keys so that equal descriptions always serialize
    identically; it is the form used for cache fingerprints.
    """
    if pretty:
        return json.dumps(description, indent=2, ensure_ascii=False)
    return json.dumps(description, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
