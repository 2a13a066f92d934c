"""
Embeddable text - Build the text that represents an entity in vector space.

Each entity kind maps to an ordered list of field extractors. Empty parts
are dropped and the rest joined with ". ".
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

__all__ = ["EMBEDDABLE_FIELDS", "prepare_for_embedding"]

Extractor = Callable[[dict[str, Any]], Any]

SEPARATOR = ". "


def _path(*keys: str) -> Extractor:
    def extract(entity: dict[str, Any]) -> Any:
        value: Any = entity
        for key in keys:
            if not isinstance(value, dict):
                return None
            value = value.get(key)
        return value

    return extract


def _skills(entity: dict[str, Any]) -> str | None:
    skills = entity.get("skills") or []
    names = [s.get("name") if isinstance(s, dict) else s for s in skills]
    return ", ".join(str(n) for n in names if n) or None


def _category(entity: dict[str, Any]) -> str | None:
    category = entity.get("category")
    if isinstance(category, list):
        return ", ".join(str(c) for c in category if c) or None
    return category


EMBEDDABLE_FIELDS: dict[str, list[Extractor]] = {
    "activity": [
        _path("title"),
        _path("description"),
        _path("organization", "name"),
        _path("organization", "mission"),
        _skills,
        _category,
        _path("location", "address", "city"),
        _path("location", "address", "country"),
    ],
    "organization": [
        _path("name"),
        _path("mission"),
        _path("description"),
        _category,
        _path("location", "address", "city"),
        _path("location", "address", "country"),
    ],
}


def prepare_for_embedding(kind: str, entity: dict[str, Any]) -> str:
    """
    Build the embeddable text for an entity.

    Args:
        kind: Entity kind ("activity" or "organization")
        entity: Entity document

    Returns:
        Non-empty parts joined with ". "

    Raises:
        ValueError: Unknown entity kind

    Example:
        >>> prepare_for_embedding("activity", {"title": "Beach cleanup", "category": "environment"})
        'Beach cleanup. environment'
    """
    try:
        extractors = EMBEDDABLE_FIELDS[kind]
    except KeyError:
        raise ValueError(f"Unknown entity kind: {kind}") from None

    parts = []
    for extract in extractors:
        value = extract(entity)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            parts.append(text)
    return SEPARATOR.join(parts)
