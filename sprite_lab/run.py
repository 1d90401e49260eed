"""Hydra entry point wiring the describer, pose updates and image generators."""

import json
import sys
from pathlib import Path
from typing import Callable, Dict, Optional

import hydra
from dotenv import load_dotenv
from hydra.utils import to_absolute_path
from omegaconf import DictConfig, OmegaConf

from sprite_lab.cache import DescriptionCache
from sprite_lab.config import AppContainer, ModelConfig
from sprite_lab.descriptions import to_json
from sprite_lab.errors import SpriteLabError


def _input_path(cfg: DictConfig) -> Path:
    return Path(to_absolute_path(str(cfg.input_path)))


def _output_path(cfg: DictConfig, default_name: str) -> Path:
    name = cfg.get("output_name") or default_name
    return Path(to_absolute_path(str(cfg.output_dir))) / name


def run_describe(cfg: DictConfig, container: AppContainer) -> None:
    describer = container.character_image_describer()
    description = describer.describe_from_path(_input_path(cfg))
    print("🧾 Character description:")
    print(to_json(description, pretty=True))


def run_new_pose(cfg: DictConfig, container: AppContainer) -> None:
    input_path = _input_path(cfg)
    describer = container.character_image_describer()
    description = describer.describe_from_path(input_path)
    posed = describer.update_pose_description(description, cfg.pose_prompt)
    print("🧍 Updated pose:")
    print(to_json(posed["pose"], pretty=True))

    generator = container.character_image_generator()
    image = generator.generate_new_pose(input_path, cfg.pose_prompt, posed)
    target = image.save(_output_path(cfg, "character_new_pose.png"))
    print(f"✅ Wrote: {target}")


def run_variant(cfg: DictConfig, container: AppContainer) -> None:
    if not cfg.get("variant_description_path"):
        raise SpriteLabError("task=variant requires variant_description_path=<json file>.")

    input_path = _input_path(cfg)
    with open(to_absolute_path(str(cfg.variant_description_path)), "r", encoding="utf-8") as handle:
        variant_description = json.load(handle)

    original_description = container.character_image_describer().describe_from_path(input_path)
    generator = container.character_variant_generator()
    image = generator.generate_character_variant(input_path, original_description, variant_description)
    target = image.save(_output_path(cfg, "character_variant.png"))
    print(f"✅ Wrote: {target}")


def run_jump_keyframes(cfg: DictConfig, container: AppContainer) -> None:
    generator = container.keyframe_sheet_generator()
    image = generator.generate_jump_keyframes(_input_path(cfg))
    target = image.save(_output_path(cfg, "jump_keyframes_4frames.png"))
    print(f"✅ Wrote: {target}")


def run_clear_cache(cfg: DictConfig, container: AppContainer) -> None:
    cache_dir = container.cache_dir()
    cache = DescriptionCache(cache_dir, container.model_config.cache.ttl_ms)
    if not cache.clear():
        print(f"ℹ️ No cache directory found at: {cache_dir}")
        return
    print(f"🗑️ Cleared CharacterImageDescriber cache at: {cache_dir}")


TASKS: Dict[str, Callable[[DictConfig, AppContainer], None]] = {
    "describe": run_describe,
    "new_pose": run_new_pose,
    "variant": run_variant,
    "jump_keyframes": run_jump_keyframes,
    "clear_cache": run_clear_cache,
}


def build_container(cfg: DictConfig) -> AppContainer:
    model_config = ModelConfig()
    model_config.update_from_config(cfg.get("model"))
    if not model_config.cache.cache_dir.is_absolute():
        model_config.cache.cache_dir = Path(to_absolute_path(str(model_config.cache.cache_dir)))
    return AppContainer(model_config=model_config)


def run_task(cfg: DictConfig, container: Optional[AppContainer] = None) -> None:
    task = cfg.task
    handler = TASKS.get(task)
    if handler is None:
        raise SpriteLabError(f"Unknown task: {task}. Expected one of: {', '.join(TASKS)}.")
    handler(cfg, container or build_container(cfg))


@hydra.main(config_path="configs", config_name="config", version_base=None)
def main(cfg: DictConfig) -> None:
    """Hydra-driven execution entry point for sprite-lab."""
    load_dotenv()
    print(f"🎨 sprite-lab task: {cfg.task}")
    print(OmegaConf.to_yaml(cfg.model))

    try:
        run_task(cfg)
    except SpriteLabError as exc:
        print(f"❌ {type(exc).__name__}: {exc}")
        sys.exit(1)


if __name__ == "__main__":
    main()
