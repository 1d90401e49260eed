"""Describe, re-pose and vary 2D character sprites with hosted generative models."""

from sprite_lab.describer import CharacterImageDescriber, CharacterImageDescriberApi
from sprite_lab.describer_proxy import CachingCharacterImageDescriberProxy
from sprite_lab.errors import (
    ConfigurationError,
    MalformedResponseError,
    SpriteLabError,
    UpstreamError,
)
from sprite_lab.generators import (
    CharacterImageGenerator,
    CharacterVariantGenerator,
    GeneratedImage,
    KeyframeSheetGenerator,
)

__all__ = [
    "CachingCharacterImageDescriberProxy",
    "CharacterImageDescriber",
    "CharacterImageDescriberApi",
    "CharacterImageGenerator",
    "CharacterVariantGenerator",
    "ConfigurationError",
    "GeneratedImage",
    "KeyframeSheetGenerator",
    "MalformedResponseError",
    "SpriteLabError",
    "UpstreamError",
]

__version__ = "0.1.0"
