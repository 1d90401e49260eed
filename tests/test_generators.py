import base64
import json

import pytest

from sprite_lab.errors import UpstreamError
from sprite_lab.generators import (
    CharacterImageGenerator,
    CharacterVariantGenerator,
    GeneratedImage,
    KeyframeSheetGenerator,
)
from sprite_lab.prompts import JUMP_KEYFRAMES, NEW_POSE_DESCRIPTION_HEADER, VARIANT_RULES

OUT_B64 = base64.b64encode(b"generated-png").decode("ascii")


def test_generated_image_decodes_and_saves(tmp_path):
    image = GeneratedImage.from_base64(OUT_B64)

    target = image.save(tmp_path / "nested" / "out.png")

    assert image.raw == b"generated-png"
    assert target.read_bytes() == b"generated-png"


def test_new_pose_prompt_embeds_description(make_backend, sprite_path, sprite_base64, complete_description):
    backend = make_backend(images=[OUT_B64])

    image = CharacterImageGenerator(backend).generate_new_pose(
        sprite_path, "  Make the character wave.  ", complete_description
    )

    assert image.raw == b"generated-png"
    call = backend.image_calls[0]
    assert call["image_base64"] == sprite_base64
    assert call["mime_type"] == "image/png"
    expected = (
        "Make the character wave.\n\n"
        f"{NEW_POSE_DESCRIPTION_HEADER}\n"
        f"{json.dumps(complete_description, indent=2)}"
    )
    assert call["prompt"] == expected


def test_variant_prompt_contains_both_descriptions(make_backend, sprite_path, complete_description):
    variant = json.loads(json.dumps(complete_description))
    variant["hair"]["color"] = "silver"
    backend = make_backend(images=[OUT_B64])

    CharacterVariantGenerator(backend).generate_character_variant(sprite_path, complete_description, variant)

    prompt = backend.image_calls[0]["prompt"]
    assert prompt.startswith(VARIANT_RULES)
    original_at = prompt.index("Original character JSON:")
    variant_at = prompt.index("Target variant JSON:")
    assert original_at < variant_at
    assert '"color": "silver"' in prompt[variant_at:]
    assert '"color": "silver"' not in prompt[original_at:variant_at]


def test_generation_errors_propagate(make_backend, sprite_path, complete_description):
    backend = make_backend(images=[UpstreamError("No image data returned from image generation.")])

    with pytest.raises(UpstreamError):
        CharacterImageGenerator(backend).generate_new_pose(sprite_path, "wave", complete_description)


def test_jump_keyframes_use_edit_endpoint(make_backend, sprite_path):
    backend = make_backend(images=[OUT_B64])

    image = KeyframeSheetGenerator(backend).generate_jump_keyframes(sprite_path)

    assert image.raw == b"generated-png"
    call = backend.edit_calls[0]
    assert call["filename"] == "sprite.png"
    assert call["mime_type"] == "image/png"
    assert call["size"] == "1024x1024"
    assert call["image_bytes"] == sprite_path.read_bytes()
    assert "4 keyframes" in call["prompt"]
    assert "jumping character" in call["prompt"]
    for index, text in JUMP_KEYFRAMES:
        assert f"frame {index}: {text}" in call["prompt"]


def test_keyframes_reject_unsupported_extension(make_backend, tmp_path):
    path = tmp_path / "sprite.gif"
    path.write_bytes(b"GIF89a")
    backend = make_backend(images=[OUT_B64])

    with pytest.raises(ValueError):
        KeyframeSheetGenerator(backend).generate_jump_keyframes(path)
    assert backend.edit_calls == []
