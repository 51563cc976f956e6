from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from budgey.services.category_cache import CategoryCache
from budgey.services.errors import BreakdownError, classify_exception, invalid_input, require_user_id
from budgey.services.sources import CategorySource

logger = logging.getLogger(__name__)

MAX_CATEGORY_NAME_LENGTH = 50
HEX_COLOR_PATTERN = re.compile(r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$")


@dataclass(slots=True)
class NewCategory:
    user_id: str
    name: str
    icon: str | None = None
    color: str | None = None
    description: str | None = None


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


def validate_new_category(
    user_id: str,
    name: str,
    icon: str | None = None,
    color: str | None = None,
    description: str | None = None,
) -> NewCategory:
    cleaned_name = (name or "").strip()
    if not cleaned_name:
        raise invalid_input("Category name cannot be empty")
    if len(cleaned_name) > MAX_CATEGORY_NAME_LENGTH:
        raise invalid_input(f"Category name cannot exceed {MAX_CATEGORY_NAME_LENGTH} characters")

    user_id = require_user_id(user_id)

    cleaned_color = _clean(color)
    if cleaned_color is not None and not HEX_COLOR_PATTERN.match(cleaned_color):
        raise invalid_input("Color must be in hex format (#RRGGBB or #RGB)")

    return NewCategory(
        user_id=user_id,
        name=cleaned_name,
        icon=_clean(icon),
        color=cleaned_color,
        description=_clean(description),
    )


async def is_duplicate_name(cache: CategoryCache, user_id: str, name: str) -> bool:
    result = await cache.get(user_id, force_refresh=True)
    if not result.ok:
        # An unavailable list must not block creation; the store's unique constraint still applies.
        logger.warning("Duplicate check skipped for %r: %s", name, result.error)
        return False
    lowered = name.casefold()
    return any(category.name.casefold() == lowered for category in result.categories or ())


async def add_category(
    source: CategorySource,
    cache: CategoryCache,
    user_id: str,
    name: str,
    icon: str | None = None,
    color: str | None = None,
    description: str | None = None,
) -> str:
    category = validate_new_category(user_id, name, icon=icon, color=color, description=description)

    if await is_duplicate_name(cache, category.user_id, category.name):
        raise invalid_input("A category with this name already exists")

    try:
        category_id = await source.create(
            category.user_id,
            category.name,
            icon=category.icon,
            color=category.color,
            description=category.description,
        )
    except BreakdownError:
        raise
    except Exception as exc:
        raise classify_exception(exc) from exc

    cache.invalidate()
    return category_id
