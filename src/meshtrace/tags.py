"""Custom span tag resolution."""

from __future__ import annotations

from typing import Mapping

from meshtrace.types import CustomTag, EnvironmentTag, TagSource

# (tag, environment variable, default value)
BUILTIN_TAGS: tuple[tuple[str, str, str], ...] = (
    ("istio.canonical_revision", "CANONICAL_REVISION", "latest"),
    ("istio.canonical_service", "CANONICAL_SERVICE", "unknown"),
    ("istio.mesh_id", "ISTIO_META_MESH_ID", "unknown"),
    ("istio.namespace", "POD_NAMESPACE", "default"),
)


def builtin_tags() -> list[CustomTag]:
    """Environment-sourced tags describing the workload."""
    return [
        CustomTag(tag=tag, source=EnvironmentTag(name=env, default_value=default))
        for tag, env, default in BUILTIN_TAGS
    ]


def convert_tags(tags: Mapping[str, TagSource]) -> list[CustomTag]:
    return [CustomTag(tag=name, source=source) for name, source in tags.items()]


def resolve_custom_tags(
    directive_tags: Mapping[str, TagSource] | None,
    legacy_tags: Mapping[str, TagSource] | None,
    include_builtins: bool,
) -> tuple[CustomTag, ...]:
    """Merge built-in, directive and legacy tags.

    Directive tags replace legacy tags entirely when any are given. The
    result is sorted by tag name so that equal inputs always produce the
    same sequence, whatever the iteration order of the input mappings.

    Args:
        directive_tags: Tags from the telemetry directive.
        legacy_tags: Tags from the proxy configuration.
        include_builtins: Prepend the built-in mesh tags.

    Returns:
        Tags sorted ascending by name.
    """
    tags: list[CustomTag] = []
    if include_builtins:
        tags.extend(builtin_tags())

    if directive_tags:
        tags.extend(convert_tags(directive_tags))
    else:
        tags.extend(convert_tags(legacy_tags or {}))

    # stable sort keeps built-ins ahead of a same-named user tag
    tags.sort(key=lambda t: t.tag)
    return tuple(tags)
