from __future__ import annotations

import re
from functools import cache
from importlib import resources
from typing import Any

import yaml

from repo2pdf.logging import logger

DEFAULT_LOCALE = "en"
SUPPORTED_LOCALES: tuple[str, ...] = ("en", "tr")

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


@cache
def load_catalog(locale: str) -> dict[str, Any]:
    """Load the label catalog shipped for ``locale``.

    Raises:
        FileNotFoundError: if no catalog exists for ``locale``.
    """
    resource = resources.files("repo2pdf").joinpath("locales", f"{locale}.yaml")
    if not resource.is_file():
        msg = f"No catalog for locale {locale!r}"
        raise FileNotFoundError(msg)
    data = yaml.safe_load(resource.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        msg = f"Catalog for locale {locale!r} is not a mapping"
        raise TypeError(msg)
    return data


class Translator:
    """Look up document and console labels for one locale."""

    def __init__(self, locale: str = DEFAULT_LOCALE) -> None:
        if locale not in SUPPORTED_LOCALES:
            logger.warning("locale_not_supported", locale=locale, fallback=DEFAULT_LOCALE)
            locale = DEFAULT_LOCALE
        self.locale = locale
        self._catalog = load_catalog(locale)

    def t(self, key: str, **params: Any) -> str:
        """Translate a dotted key, substituting ``{name}`` placeholders.

        Unknown keys come back unchanged; unknown placeholders are left in place.

        Args:
            key (str): dotted key, e.g. ``"pdf.metadata.size"``
            **params: placeholder values

        Returns:
            str: the translated label
        """
        value: Any = self._catalog
        for part in key.split("."):
            if not isinstance(value, dict) or part not in value:
                return key
            value = value[part]
        if not isinstance(value, str):
            return key
        return _PLACEHOLDER.sub(lambda m: str(params.get(m.group(1), m.group(0))), value)
