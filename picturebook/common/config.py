"""
Process-wide settings for PictureBook, resolved once at startup.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping

import yaml

DEFAULT_STORY_MODEL = "openrouter/deepseek/deepseek-chat-v3-0324:free"
DEFAULT_IMAGE_MODEL = "black-forest-labs/flux-schnell"
DEFAULT_SITE_URL = "http://localhost:3000"
DEFAULT_APP_TITLE = "AI Story Generator"
DEFAULT_PROMPT_PREFIX_CHARS = 100
VALID_LENGTHS = ("short", "medium", "long")


@dataclass(frozen=True)
class PictureBookSettings:
    """
    Credentials and tuning knobs passed explicitly into provider constructors.
    """

    openrouter_api_key: str | None = None
    story_model: str = DEFAULT_STORY_MODEL
    site_url: str = DEFAULT_SITE_URL
    app_title: str = DEFAULT_APP_TITLE
    story_temperature: float = 0.8
    replicate_api_token: str | None = None
    image_model: str = DEFAULT_IMAGE_MODEL
    image_output_dir: str = "public/generated_images"
    image_public_prefix: str = "/generated_images"
    illustration_prefix_chars: int = DEFAULT_PROMPT_PREFIX_CHARS
    max_concurrent_images: int | None = None
    default_length: str = "medium"

    def __post_init__(self) -> None:
        if self.illustration_prefix_chars <= 0:
            raise ValueError("illustration_prefix_chars must be a positive integer.")
        if self.max_concurrent_images is not None and self.max_concurrent_images <= 0:
            raise ValueError("max_concurrent_images must be a positive integer when set.")
        if self.default_length not in VALID_LENGTHS:
            raise ValueError(
                f"default_length must be one of {', '.join(VALID_LENGTHS)}, "
                f"received {self.default_length!r}."
            )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "PictureBookSettings":
        """
        Build settings from environment variables, falling back to defaults.
        """
        env = os.environ if environ is None else environ

        return cls(
            openrouter_api_key=_optional(env.get("OPENROUTER_API_KEY")),
            story_model=env.get("PICTUREBOOK_STORY_MODEL") or DEFAULT_STORY_MODEL,
            site_url=(
                env.get("PICTUREBOOK_SITE_URL")
                or env.get("NEXT_PUBLIC_SITE_URL")
                or DEFAULT_SITE_URL
            ),
            app_title=env.get("PICTUREBOOK_APP_TITLE") or DEFAULT_APP_TITLE,
            story_temperature=_parse_float(env, "PICTUREBOOK_STORY_TEMPERATURE", 0.8),
            replicate_api_token=_optional(env.get("REPLICATE_API_TOKEN")),
            image_model=env.get("PICTUREBOOK_IMAGE_MODEL") or DEFAULT_IMAGE_MODEL,
            image_output_dir=env.get("PICTUREBOOK_IMAGE_DIR") or "public/generated_images",
            image_public_prefix=env.get("PICTUREBOOK_IMAGE_PREFIX") or "/generated_images",
            illustration_prefix_chars=_parse_int(
                env, "PICTUREBOOK_PROMPT_PREFIX_CHARS", DEFAULT_PROMPT_PREFIX_CHARS
            ),
            max_concurrent_images=_parse_int(env, "PICTUREBOOK_MAX_CONCURRENT_IMAGES", None),
            default_length=(env.get("PICTUREBOOK_STORY_LENGTH") or "medium").strip().lower(),
        )

    @classmethod
    def from_file(
        cls,
        path: Path | str,
        *,
        environ: Mapping[str, str] | None = None,
    ) -> "PictureBookSettings":
        """
        Load YAML or JSON overrides on top of the environment-derived settings.
        """
        overrides = _load_mapping_file(Path(path))
        return cls.from_env(environ).with_overrides(overrides)

    def with_overrides(self, overrides: Mapping[str, Any]) -> "PictureBookSettings":
        known = {item.name for item in fields(self)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ValueError(f"Unknown settings keys: {', '.join(unknown)}.")
        coerced = {name: _coerce_override(name, value) for name, value in overrides.items()}
        return replace(self, **coerced)


def _optional(value: str | None) -> str | None:
    if value is None:
        return None
    text = value.strip()
    return text or None


def _parse_int(env: Mapping[str, str], name: str, default: int | None) -> int | None:
    raw = _optional(env.get(name))
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}.") from exc


def _parse_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = _optional(env.get(name))
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}.") from exc


_INT_FIELDS = ("illustration_prefix_chars", "max_concurrent_images")
_FLOAT_FIELDS = ("story_temperature",)


def _coerce_override(name: str, value: Any) -> Any:
    if value is None:
        return None
    if name in _INT_FIELDS:
        if isinstance(value, bool):
            raise ValueError(f"{name} must be an integer, got {value!r}.")
        return _parse_int({name: str(value)}, name, None)
    if name in _FLOAT_FIELDS:
        if isinstance(value, bool):
            raise ValueError(f"{name} must be a number, got {value!r}.")
        return _parse_float({name: str(value)}, name, 0.0)
    return str(value)


def _load_mapping_file(path: Path) -> Mapping[str, Any]:
    text = path.read_text(encoding="utf-8")
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        data = yaml.safe_load(text) or {}
    elif suffix == ".json":
        data = json.loads(text)
    else:
        raise ValueError("Unsupported settings file format. Use YAML or JSON.")

    if not isinstance(data, Mapping):
        raise ValueError("Settings file must deserialize to a mapping.")
    return data
