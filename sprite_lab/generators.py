"""Sprite image generators: new poses, character variants and keyframe sheets.

Generators are stateless and uncached; each call sends one request to the
backend and returns the first image it produced.
"""

import base64
import logging
from pathlib import Path
from typing import Optional, Sequence, Tuple, Union

from pydantic import BaseModel, Field

from sprite_lab.descriptions import CharacterDescription, to_json
from sprite_lab.llm_utils import GenerativeBackend, encode_image, mime_type_for
from sprite_lab.prompts import (
    JUMP_KEYFRAMES,
    NEW_POSE_DESCRIPTION_HEADER,
    VARIANT_RULES,
    build_keyframe_prompt,
)

logger = logging.getLogger(__name__)


class GeneratedImage(BaseModel):
    """Image returned by a generator, both as base64 and decoded bytes."""

    base64: str = Field(description="Base64-encoded image as returned by the provider.")
    raw: bytes = Field(description="Decoded image bytes.")

    @classmethod
    def from_base64(cls, image_base64: str) -> "GeneratedImage":
        return cls(base64=image_base64, raw=base64.b64decode(image_base64))

    def save(self, path: Union[str, Path]) -> Path:
        """Write the image bytes to ``path``, creating parent directories."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(self.raw)
        logger.info("Wrote %s (%d bytes)", target, len(self.raw))
        return target


class CharacterImageGenerator:
    """Redraw a character in a new pose, guided by its description."""

    def __init__(self, backend: GenerativeBackend) -> None:
        self.backend = backend

    def build_prompt(self, prompt: str, character_description: CharacterDescription) -> str:
        description_text = to_json(character_description, pretty=True)
        return f"{prompt.strip()}\n\n{NEW_POSE_DESCRIPTION_HEADER}\n{description_text}"

    def generate_new_pose(
        self,
        input_path: Union[str, Path],
        prompt: str,
        character_description: CharacterDescription,
    ) -> GeneratedImage:
        image_base64 = encode_image(input_path)
        full_prompt = self.build_prompt(prompt, character_description)
        result = self.backend.generate_image(full_prompt, image_base64, mime_type_for(input_path))
        return GeneratedImage.from_base64(result)


class CharacterVariantGenerator:
    """Produce a variant sprite from a base sprite and two descriptions."""

    def __init__(self, backend: GenerativeBackend) -> None:
        self.backend = backend

    def build_prompt(
        self,
        original_description: CharacterDescription,
        variant_description: CharacterDescription,
    ) -> str:
        return (
            f"{VARIANT_RULES}\n"
            f"Original character JSON:\n{to_json(original_description, pretty=True)}\n\n"
            f"Target variant JSON:\n{to_json(variant_description, pretty=True)}\n"
        )

    def generate_character_variant(
        self,
        input_path: Union[str, Path],
        original_description: CharacterDescription,
        variant_description: CharacterDescription,
    ) -> GeneratedImage:
        image_base64 = encode_image(input_path)
        prompt = self.build_prompt(original_description, variant_description)
        result = self.backend.generate_image(prompt, image_base64, mime_type_for(input_path))
        return GeneratedImage.from_base64(result)


class KeyframeSheetGenerator:
    """Render an animation keyframe sheet from a single sprite."""

    def __init__(self, backend: GenerativeBackend, size: str = "1024x1024") -> None:
        self.backend = backend
        self.size = size

    def generate_keyframes(
        self,
        input_path: Union[str, Path],
        frames: Sequence[Tuple[int, str]],
        motion: str,
    ) -> GeneratedImage:
        path = Path(input_path)
        mime_type = mime_type_for(path)
        prompt = build_keyframe_prompt(frames, motion=motion)
        result = self.backend.edit_image(
            prompt,
            path.read_bytes(),
            filename=path.name,
            mime_type=mime_type,
            size=self.size,
        )
        return GeneratedImage.from_base64(result)

    def generate_jump_keyframes(
        self,
        input_path: Union[str, Path],
        frames: Optional[Sequence[Tuple[int, str]]] = None,
    ) -> GeneratedImage:
        return self.generate_keyframes(input_path, frames or JUMP_KEYFRAMES, motion="jumping")
