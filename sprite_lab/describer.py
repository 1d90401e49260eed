"""Uncached character describer backed by a generative model.

:class:`CharacterImageDescriber` is the target wrapped by
:class:`~sprite_lab.describer_proxy.CachingCharacterImageDescriberProxy`.  It
turns a sprite image into a complete character description and applies
pose-only edits to existing descriptions.
"""

import json
import logging
import re
from pathlib import Path
from typing import Any, Optional, Protocol, Union

from sprite_lab.descriptions import (
    CharacterDescription,
    load_prompt_definition,
    load_template,
    to_json,
)
from sprite_lab.errors import MalformedResponseError
from sprite_lab.llm_utils import GenerativeBackend, ImageDetail, encode_image, mime_type_for
from sprite_lab.normalizer import merge_pose_update, normalize_to_template
from sprite_lab.prompts import POSE_UPDATE_TEMPLATE, SYSTEM_MSG_POSE_EDITOR

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^\s*```(?:json)?\s*(.*?)\s*```\s*$", re.DOTALL | re.IGNORECASE)


class CharacterImageDescriberApi(Protocol):
    """Operations shared by the describer and its caching proxy."""

    def describe_from_base64(
        self, image_base64: str, mime_type: str = "image/png"
    ) -> CharacterDescription: ...

    def describe_from_path(self, file_path: Union[str, Path]) -> CharacterDescription: ...

    def update_pose_description(
        self, description: CharacterDescription, pose_prompt: str
    ) -> CharacterDescription: ...


def parse_json_response(text: Optional[str]) -> Any:
    """Parse model output as a JSON object, tolerating a Markdown code fence."""
    if not text or not text.strip():
        raise MalformedResponseError("Model returned an empty response.")

    match = _FENCE_RE.match(text)
    payload = match.group(1) if match else text.strip()
    try:
        parsed = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise MalformedResponseError(f"Model response is not valid JSON: {exc}") from exc

    if not isinstance(parsed, dict):
        raise MalformedResponseError(
            f"Model response must be a JSON object, got {type(parsed).__name__}."
        )
    return parsed


class CharacterImageDescriber:
    """Describe sprites and update poses through a :class:`GenerativeBackend`."""

    def __init__(
        self,
        backend: GenerativeBackend,
        template_path: Optional[Union[str, Path]] = None,
        prompt_path: Optional[Union[str, Path]] = None,
        detail: ImageDetail = "high",
    ) -> None:
        self.backend = backend
        self.template_path = template_path
        self.prompt_path = prompt_path
        self.detail = detail

    def describe_from_base64(
        self,
        image_base64: str,
        detail: Optional[ImageDetail] = None,
        mime_type: str = "image/png",
    ) -> CharacterDescription:
        """Request a description of ``image_base64`` and normalize it against the template.

        Raises:
            UpstreamError: the model call failed or returned nothing.
            MalformedResponseError: the returned text is not a JSON object.
        """
        # Resources are re-read on every call.
        template = load_template(self.template_path)
        prompt_def = load_prompt_definition(self.prompt_path)
        user_prompt = prompt_def.render_user_prompt(template)

        text = self.backend.generate_text(
            user_prompt,
            image_base64=image_base64,
            system_message=prompt_def.developer,
            detail=detail or self.detail,
            mime_type=mime_type,
        )
        raw = parse_json_response(text)
        return normalize_to_template(template, raw)

    def describe_from_path(
        self, file_path: Union[str, Path], detail: Optional[ImageDetail] = None
    ) -> CharacterDescription:
        return self.describe_from_base64(
            encode_image(file_path), detail=detail, mime_type=mime_type_for(file_path)
        )

    def update_pose_description(
        self, description: CharacterDescription, pose_prompt: str
    ) -> CharacterDescription:
        """Ask the model for a new pose and merge it into a copy of ``description``."""
        prompt = POSE_UPDATE_TEMPLATE.format(
            description_json=to_json(description, pretty=True),
            pose_prompt=pose_prompt.strip(),
        )
        text = self.backend.generate_text(prompt, system_message=SYSTEM_MSG_POSE_EDITOR)
        response = parse_json_response(text)
        return merge_pose_update(description, response)
