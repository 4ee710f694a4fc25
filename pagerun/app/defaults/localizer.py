"""
Message catalog localization.

Audits may emit message placeholders instead of final text, of the form

    "<module> | <key>"        e.g. "audits/viewport.js | title"
    "<module> | <key> # <n>"  (instance-numbered)

The localizer replaces placeholders found anywhere in the report payload
with text from a per-locale catalog and reports which paths were
substituted, so a renderer can re-localize the record later.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Mapping, Optional

logger = logging.getLogger(__name__)

MESSAGE_PLACEHOLDER = re.compile(
    r"^(?P<id>[^|#\s][^|#]*? \| [^|#]+?)(?: # (?P<instance>\d+))?$"
)

Catalog = Mapping[str, Mapping[str, str]]


class NullLocalizer:
    """Leaves every string untouched."""

    def get_formatted_strings(self, locale: Optional[str]) -> Dict[str, str]:
        return {}

    def replace_placeholders(
        self,
        payload: Dict[str, Any],
        locale: Optional[str],
    ) -> Dict[str, List[str]]:
        return {}


class CatalogLocalizer:
    def __init__(
        self,
        messages: Optional[Catalog] = None,
        renderer_strings: Optional[Catalog] = None,
        default_locale: str = "en-US",
    ) -> None:
        self._messages = messages or {}
        self._renderer_strings = renderer_strings or {}
        self._default_locale = default_locale

    # ------------------------------------------------------------------
    # Locale resolution
    # ------------------------------------------------------------------

    def _candidates(self, locale: Optional[str]) -> List[str]:
        """Exact locale, then its base language, then the default."""
        candidates: List[str] = []
        if locale:
            candidates.append(locale)
            language = locale.split("-", 1)[0]
            if language != locale:
                candidates.append(language)
        if self._default_locale not in candidates:
            candidates.append(self._default_locale)
        return candidates

    def lookup(self, message_id: str, locale: Optional[str]) -> Optional[str]:
        for candidate in self._candidates(locale):
            text = self._messages.get(candidate, {}).get(message_id)
            if text is not None:
                return text
        return None

    # ------------------------------------------------------------------
    # Localizer interface
    # ------------------------------------------------------------------

    def get_formatted_strings(self, locale: Optional[str]) -> Dict[str, str]:
        strings: Dict[str, str] = {}
        for candidate in reversed(self._candidates(locale)):
            strings.update(self._renderer_strings.get(candidate, {}))
        return strings

    def replace_placeholders(
        self,
        payload: Dict[str, Any],
        locale: Optional[str],
    ) -> Dict[str, List[str]]:
        paths: Dict[str, List[str]] = {}
        self._walk(payload, "", locale, paths)
        return paths

    def _walk(
        self,
        node: Any,
        path: str,
        locale: Optional[str],
        paths: Dict[str, List[str]],
    ) -> None:
        if isinstance(node, dict):
            items = [(key, f"{path}.{key}" if path else str(key)) for key in node]
        elif isinstance(node, list):
            items = [(index, f"{path}[{index}]") for index in range(len(node))]
        else:
            return

        for key, child_path in items:
            value = node[key]
            if isinstance(value, str):
                match = MESSAGE_PLACEHOLDER.match(value)
                if match is None:
                    continue
                message_id = match.group("id")
                text = self.lookup(message_id, locale)
                if text is None:
                    logger.debug("No translation for %s at %s", message_id, child_path)
                    continue
                node[key] = text
                paths.setdefault(message_id, []).append(child_path)
            else:
                self._walk(value, child_path, locale, paths)
