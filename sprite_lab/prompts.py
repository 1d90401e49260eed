"""Prompt text for pose updates and image generation.

The description prompt itself lives in ``resources/prompts`` because it is
versioned together with the description template.
"""

# ==================== POSE UPDATE ====================

SYSTEM_MSG_POSE_EDITOR = """You are a game animation assistant that edits structured character descriptions.

You receive the JSON description of a 2D character and an instruction describing a new pose.
Rewrite ONLY the "pose" object so that it describes the requested pose.

Rules:
- Respond with a single JSON object of the form {"pose": {...}} and nothing else.
- Keep exactly the same pose keys; do not add or remove keys.
- Keep strings as strings, booleans as booleans and lists as lists of strings.
- Do not describe clothing, colors, equipment or art style; those must stay unchanged.
"""

POSE_UPDATE_TEMPLATE = """Current character description:
{description_json}

Requested pose:
{pose_prompt}

Return the updated "pose" object as JSON."""

# ==================== IMAGE GENERATION ====================

NEW_POSE_DESCRIPTION_HEADER = (
    "Character description (JSON for the character whose pose you must change, "
    "keep all invariant details consistent):"
)

VARIANT_RULES = (
    "You are a game art assistant that generates a new 2D character sprite variant from a base sprite.\n\n"
    "You are given:\n"
    "- A reference sprite image (the input image).\n"
    "- A JSON description of the original character that matches the reference sprite.\n"
    "- A JSON description of the desired character variant.\n\n"
    "Rules:\n"
    "- Use the original JSON and image as the canonical source of style and invariant details.\n"
    "- Compare the original and variant JSON objects.\n"
    "- Only change visual aspects that differ between the original and variant JSON.\n"
    "- Keep all other visual details identical (art style, proportions, colors, etc.).\n"
    "- The output should be a full-body sprite of the variant character on a transparent background "
    "in the same style as the reference image.\n"
)

JUMP_KEYFRAMES = (
    (1, "character takes off"),
    (2, "character reaches the peak of its jump"),
    (3, "character is landing"),
    (4, "character has landed"),
)

KEYFRAME_SHEET_HEADER = (
    "You are an animation assistant. Create image with {count} keyframes for the animation sequence "
    "of a {motion} character that I attached. "
    "- output a square image "
    "- make sure that all frames fit into the image "
    "- make sure that the anatomy of the character is accurate "
    "- follow this sequence: "
)


def build_keyframe_prompt(frames=JUMP_KEYFRAMES, motion: str = "jumping") -> str:
    """Render the keyframe sheet instruction for an ordered list of (index, description)."""
    sequence = " ".join(f"frame {index}: {text}" for index, text in frames)
    return KEYFRAME_SHEET_HEADER.format(count=len(frames), motion=motion) + sequence
