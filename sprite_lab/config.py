import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

from google import genai
from openai import OpenAI

from sprite_lab.cache import Clock
from sprite_lab.describer import CharacterImageDescriber, CharacterImageDescriberApi
from sprite_lab.describer_proxy import (
    CHARACTER_IMAGE_DESCRIBER_CACHE_TTL_MINUTES,
    CachingCharacterImageDescriberProxy,
    describer_cache_dir,
)
from sprite_lab.errors import ConfigurationError
from sprite_lab.generators import (
    CharacterImageGenerator,
    CharacterVariantGenerator,
    KeyframeSheetGenerator,
)
from sprite_lab.llm_utils import GeminiBackend, GenerativeBackend, OpenAIBackend

PROVIDERS = ("openai", "gemini")


@dataclass
class OpenAISettings:
    describe_model: str = "gpt-4.1-mini"
    pose_model: str = "gpt-5"
    variant_model: str = "gpt-5.2"
    edit_model: str = "gpt-image-1"
    base_url: Optional[str] = None


@dataclass
class GeminiSettings:
    text_model: str = "gemini-2.5-flash"
    image_model: str = "gemini-2.5-flash-image"


@dataclass
class CacheSettings:
    cache_dir: Path = field(default_factory=lambda: Path(".cache"))
    ttl_minutes: float = CHARACTER_IMAGE_DESCRIBER_CACHE_TTL_MINUTES

    @property
    def ttl_ms(self) -> int:
        return int(self.ttl_minutes * 60 * 1000)


class ModelConfig:
    """Provider, model and cache settings read from the environment."""

    def __init__(self, env: Optional[Mapping[str, str]] = None) -> None:
        env = os.environ if env is None else env

        self.provider: str = env.get("SPRITE_LAB_PROVIDER", "openai").lower()
        self.openai = OpenAISettings(
            describe_model=env.get("OPENAI_DESCRIBE_MODEL", "gpt-4.1-mini"),
            pose_model=env.get("OPENAI_POSE_MODEL", "gpt-5"),
            variant_model=env.get("OPENAI_VARIANT_MODEL", "gpt-5.2"),
            edit_model=env.get("OPENAI_EDIT_MODEL", "gpt-image-1"),
            base_url=env.get("OPENAI_BASE_URL") or None,
        )
        self.gemini = GeminiSettings(
            text_model=env.get("GEMINI_TEXT_MODEL", "gemini-2.5-flash"),
            image_model=env.get("GEMINI_IMAGE_MODEL", "gemini-2.5-flash-image"),
        )
        self.cache = CacheSettings(
            cache_dir=Path(env.get("SPRITE_LAB_CACHE_DIR", ".cache")),
            ttl_minutes=self._parse_ttl(
                env.get("SPRITE_LAB_CACHE_TTL_MINUTES", str(CHARACTER_IMAGE_DESCRIBER_CACHE_TTL_MINUTES))
            ),
        )

    @staticmethod
    def _parse_ttl(raw: Any) -> float:
        try:
            ttl = float(raw)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Cache TTL must be a number of minutes, got {raw!r}.") from exc
        if ttl < 0:
            raise ConfigurationError(f"Cache TTL must not be negative, got {ttl}.")
        return ttl

    def _get_attr(self, cfg: Any, key: str, default: Any = None) -> Any:
        if cfg is None:
            return default
        if isinstance(cfg, Mapping):
            return cfg.get(key, default)
        return getattr(cfg, key, default)

    def update_from_config(self, cfg: Any) -> None:
        """Apply overrides from a Hydra/OmegaConf ``model`` section (or a plain mapping)."""
        if cfg is None:
            return

        provider = self._get_attr(cfg, "provider", None)
        if provider:
            self.provider = str(provider).lower()

        for key in ("describe_model", "pose_model", "variant_model", "edit_model", "base_url"):
            value = self._get_attr(cfg, f"openai_{key}", None)
            if value:
                setattr(self.openai, key, value)

        for key in ("text_model", "image_model"):
            value = self._get_attr(cfg, f"gemini_{key}", None)
            if value:
                setattr(self.gemini, key, value)

        cache_dir = self._get_attr(cfg, "cache_dir", None)
        if cache_dir:
            self.cache.cache_dir = Path(str(cache_dir))

        ttl = self._get_attr(cfg, "cache_ttl_minutes", None)
        if ttl is not None:
            self.cache.ttl_minutes = self._parse_ttl(ttl)


class AppContainer:
    """Build SDK clients lazily and wire the describer, proxy and generators."""

    def __init__(
        self,
        env: Optional[Mapping[str, str]] = None,
        model_config: Optional[ModelConfig] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.env = os.environ if env is None else env
        self.model_config = model_config or ModelConfig(self.env)
        self.clock = clock
        self._openai_client = None
        self._gemini_client = None

    def _require(self, name: str) -> str:
        value = self.env.get(name)
        if not value:
            raise ConfigurationError(f"Missing {name}. Add it to a .env file or your environment.")
        return value

    def openai_client(self) -> OpenAI:
        if self._openai_client is None:
            api_key = self._require("OPENAI_API_KEY")
            base_url = self.model_config.openai.base_url
            if base_url:
                self._openai_client = OpenAI(api_key=api_key, base_url=base_url)
            else:
                self._openai_client = OpenAI(api_key=api_key)
        return self._openai_client

    def gemini_client(self) -> genai.Client:
        if self._gemini_client is None:
            self._gemini_client = genai.Client(api_key=self._require("GOOGLE_API_KEY"))
        return self._gemini_client

    def backend(self) -> GenerativeBackend:
        """Backend for text requests and new-pose images on the configured provider."""
        provider = self.model_config.provider
        if provider == "openai":
            settings = self.model_config.openai
            return OpenAIBackend(
                self.openai_client(),
                text_model=settings.describe_model,
                image_model=settings.pose_model,
                edit_model=settings.edit_model,
            )
        if provider == "gemini":
            settings = self.model_config.gemini
            return GeminiBackend(
                self.gemini_client(),
                text_model=settings.text_model,
                image_model=settings.image_model,
            )
        raise ConfigurationError(f"Unknown provider: {provider}. Expected one of {', '.join(PROVIDERS)}.")

    def cache_dir(self) -> Path:
        return describer_cache_dir(self.model_config.cache.cache_dir)

    def character_image_describer(self) -> CharacterImageDescriberApi:
        describer = CharacterImageDescriber(self.backend())
        return CachingCharacterImageDescriberProxy(
            describer,
            cache_ttl_ms=self.model_config.cache.ttl_ms,
            cache_root_dir=self.model_config.cache.cache_dir,
            clock=self.clock,
        )

    def character_image_generator(self) -> CharacterImageGenerator:
        return CharacterImageGenerator(self.backend())

    def character_variant_generator(self) -> CharacterVariantGenerator:
        backend = self.backend()
        if self.model_config.provider == "openai":
            backend = backend.with_image_model(self.model_config.openai.variant_model)
        return CharacterVariantGenerator(backend)

    def keyframe_sheet_generator(self) -> KeyframeSheetGenerator:
        return KeyframeSheetGenerator(self.backend())
