"""Layering of configuration sources into a validated ``LifespeedConfig``."""

from __future__ import annotations

from collections.abc import Mapping as MappingABC
from copy import deepcopy
from typing import Any, Dict, Mapping, Optional

import yaml
from pydantic import ValidationError

from .exceptions import ConfigError
from .models import LifespeedConfig

ENV_PREFIX = "LIFESPEED__"


def resolve_with_precedence(
    *,
    defaults: LifespeedConfig,
    file_overrides: Optional[Mapping[str, Any]] = None,
    env_overrides: Optional[Mapping[str, Any]] = None,
    cli_overrides: Optional[Mapping[str, Any]] = None,
) -> LifespeedConfig:
    """Layer configuration sources: defaults < file < environment < CLI.

    Every source may use dotted keys (``cache.sync_batch_size``) or nested
    mappings interchangeably.

    Raises:
        ConfigError: If a source is malformed or the result fails validation.
    """
    layers = [defaults.model_dump(mode="python")]
    for source_name, source in (
        ("file", file_overrides),
        ("environment", env_overrides),
        ("cli", cli_overrides),
    ):
        if source is not None:
            layers.append(expand_dotted(source, source_name=source_name))

    try:
        return LifespeedConfig.model_validate(merge_layers(*layers))
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration values: {exc}") from exc


def expand_dotted(source: Mapping[str, Any], *, source_name: str = "config") -> dict[str, Any]:
    """Return ``source`` as a nested mapping with dotted keys split into sections.

    Raises:
        ConfigError: If ``source`` is not a mapping, has non-string keys, or
            assigns both a value and a section to the same key.
    """
    label = source_name.capitalize()
    if not isinstance(source, MappingABC):
        raise ConfigError(f"{label} overrides must be a mapping.")

    expanded: dict[str, Any] = {}
    for key, value in source.items():
        if not isinstance(key, str):
            raise ConfigError(f"{label} override keys must be strings.")
        segments = [segment for segment in key.split(".") if segment] or [key]
        node: Any = value
        if isinstance(value, MappingABC):
            node = expand_dotted(value, source_name=source_name)
        for segment in reversed(segments):
            node = {segment: node}
        try:
            expanded = merge_layers(expanded, node, strict=True)
        except ConfigError as exc:
            raise ConfigError(
                f"{label} override for {key} conflicts with an existing value."
            ) from exc
    return expanded


def merge_layers(*layers: Mapping[str, Any], strict: bool = False) -> dict[str, Any]:
    """Deep-merge mappings left to right; later layers win.

    Args:
        layers: Nested mappings ordered from lowest to highest precedence.
        strict: Raise instead of replacing a section with a plain value.
    """
    merged: dict[str, Any] = {}
    for layer in layers:
        for key, value in layer.items():
            current = merged.get(key)
            if isinstance(value, MappingABC) and isinstance(current, MappingABC):
                merged[key] = merge_layers(current, value, strict=strict)
            elif strict and key in merged and isinstance(current, MappingABC) != isinstance(
                value, MappingABC
            ):
                raise ConfigError(f"Conflicting value for {key!r}.")
            else:
                merged[key] = deepcopy(value)
    return merged


def parse_env(env: Mapping[str, str]) -> dict[str, Any]:
    """Decode ``LIFESPEED__SECTION__KEY`` variables into a nested mapping.

    Values are parsed as YAML scalars, so ``25`` becomes an integer and
    ``[a, b]`` a list; unparseable text is kept verbatim.
    """
    dotted: dict[str, Any] = {}
    for name, raw in env.items():
        if not name.startswith(ENV_PREFIX):
            continue
        segments = [part.lower() for part in name[len(ENV_PREFIX) :].split("__") if part]
        if not segments:
            continue
        try:
            dotted[".".join(segments)] = yaml.safe_load(raw)
        except yaml.YAMLError:
            dotted[".".join(segments)] = raw
    return expand_dotted(dotted, source_name="environment")


def flatten_for_env(config: LifespeedConfig) -> Dict[str, str]:
    """Render ``config`` as the ``LIFESPEED__`` variables that reproduce it."""
    flat: Dict[str, str] = {}
    pending: list[tuple[tuple[str, ...], Any]] = [((), config.model_dump(mode="python"))]
    while pending:
        path, value = pending.pop()
        if isinstance(value, dict):
            pending.extend((path + (str(key),), child) for key, child in value.items())
            continue
        name = ENV_PREFIX + "__".join(part.upper() for part in path)
        if isinstance(value, list):
            flat[name] = yaml.safe_dump(value, default_flow_style=True).strip()
        else:
            flat[name] = "null" if value is None else str(value)
    return flat


__all__ = [
    "ENV_PREFIX",
    "expand_dotted",
    "flatten_for_env",
    "merge_layers",
    "parse_env",
    "resolve_with_precedence",
]
