"""Caching proxy in front of a character describer.

Describing an image and updating a pose are pure functions of their inputs and
cost a paid model call each, so results are memoized on disk.  The proxy is a
drop-in replacement for the describer it wraps: same methods, same results,
same exceptions.

Keys are content fingerprints::

    describe:     sha256("describeFromBase64|img=" + sha256(image_base64))
    pose update:  sha256("updatePoseDescription|desc=" + sha256(json) + "|prompt=" + sha256(prompt))

Entries older than the TTL, unreadable files, and values missing any required
description field are treated as misses and replaced by a fresh call.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from sprite_lab.cache import Clock, DescriptionCache, sha256_hex
from sprite_lab.describer import CharacterImageDescriberApi
from sprite_lab.descriptions import CharacterDescription, is_character_description, to_json
from sprite_lab.llm_utils import encode_image, mime_type_for

logger = logging.getLogger(__name__)

CHARACTER_IMAGE_DESCRIBER_CACHE_TTL_MINUTES = 60
CACHE_SUBDIR = "character-image-describer"
DEFAULT_CACHE_ROOT = Path(".cache")


def describer_cache_dir(cache_root_dir: Optional[Union[str, Path]] = None) -> Path:
    root = Path(cache_root_dir) if cache_root_dir is not None else DEFAULT_CACHE_ROOT
    return root / CACHE_SUBDIR


class CachingCharacterImageDescriberProxy:
    """Wrap a :class:`CharacterImageDescriberApi` with a file-backed TTL cache.

    Args:
        target: The describer that performs the real model calls.
        cache_ttl_ms: Maximum entry age; defaults to 60 minutes.
        cache_root_dir: Root directory; entries live under
            ``<root>/character-image-describer``.
        clock: Callable returning epoch milliseconds, for deterministic tests.
    """

    def __init__(
        self,
        target: CharacterImageDescriberApi,
        cache_ttl_ms: Optional[int] = None,
        cache_root_dir: Optional[Union[str, Path]] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.target = target
        if cache_ttl_ms is None:
            cache_ttl_ms = CHARACTER_IMAGE_DESCRIBER_CACHE_TTL_MINUTES * 60 * 1000
        self.cache_ttl_ms = cache_ttl_ms
        self.cache = DescriptionCache(describer_cache_dir(cache_root_dir), cache_ttl_ms, clock=clock)

    @property
    def cache_dir(self) -> Path:
        return self.cache.cache_dir

    def cache_key_for_image(self, image_base64: str) -> str:
        image_fingerprint = sha256_hex(image_base64)
        return sha256_hex(f"describeFromBase64|img={image_fingerprint}")

    def cache_key_for_pose_update(self, description: CharacterDescription, pose_prompt: str) -> str:
        description_fingerprint = sha256_hex(to_json(description))
        prompt_fingerprint = sha256_hex(pose_prompt)
        return sha256_hex(
            f"updatePoseDescription|desc={description_fingerprint}|prompt={prompt_fingerprint}"
        )

    def _cached(self, key: str) -> Optional[CharacterDescription]:
        return self.cache.get(key, validator=is_character_description)

    def describe_from_base64(
        self, image_base64: str, mime_type: str = "image/png"
    ) -> CharacterDescription:
        key = self.cache_key_for_image(image_base64)
        cached = self._cached(key)
        if cached is not None:
            logger.info("Using cached character description %s", key[:12])
            return cached

        result = self.target.describe_from_base64(image_base64, mime_type=mime_type)
        self.cache.set(key, result)
        return result

    def describe_from_path(self, file_path: Union[str, Path]) -> CharacterDescription:
        image_base64 = encode_image(file_path)
        return self.describe_from_base64(image_base64, mime_type=mime_type_for(file_path))

    def update_pose_description(
        self, description: CharacterDescription, pose_prompt: str
    ) -> CharacterDescription:
        key = self.cache_key_for_pose_update(description, pose_prompt)
        cached = self._cached(key)
        if cached is not None:
            logger.info("Using cached pose update %s", key[:12])
            return cached

        updated = self.target.update_pose_description(description, pose_prompt)
        self.cache.set(key, updated)
        return updated
