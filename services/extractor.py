"""Occupancy extraction from the aquapark status page."""

from __future__ import annotations

import logging
import re
import unicodedata
from typing import Callable, Iterable, Optional

from bs4 import BeautifulSoup, Tag

logger = logging.getLogger(__name__)

CHART_NAME_CLASS = "aq-chart-name"
CHART_VALUE_CLASS = "aq-chart-value"
POOL_LABELS = ("Bazen", "Bazén")

_PLAIN_INTEGER = re.compile(r"\+?[0-9]+")
# largest value the occupancy column holds
MAX_OCCUPANCY = 2**31 - 1


def _normalize_label(text: str) -> str:
    return unicodedata.normalize("NFC", text.strip()).casefold()


def _has_class(class_name: str) -> Callable[[Tag], bool]:
    def matcher(tag: Tag) -> bool:
        return class_name in (tag.get("class") or ())

    return matcher


class OccupancyExtractor:
    """Pure HTML to occupancy parser.

    The page is treated as untrusted input. Every failure path yields ``None``
    rather than raising, so callers only need to distinguish "value" from
    "no value".

    A chart is a name element (``aq-chart-name``) followed, at the same tree
    level, by a value element (``aq-chart-value``). Only the first name element
    on the page is read; when it is not labelled with one of ``labels`` there
    is no value. A value element that precedes its name element is never
    matched.
    """

    def __init__(
        self,
        name_class: str = CHART_NAME_CLASS,
        value_class: str = CHART_VALUE_CLASS,
        labels: Iterable[str] = POOL_LABELS,
    ) -> None:
        self.name_class = name_class
        self.value_class = value_class
        self._labels = frozenset(_normalize_label(label) for label in labels)

    def extract(self, html: Optional[str]) -> Optional[int]:
        if not html or not html.strip():
            logger.debug("Empty page content", extra={"reason": "empty"})
            return None

        try:
            soup = BeautifulSoup(html, "html.parser")
        except Exception:  # noqa: BLE001 - html.parser rejects some markup outright
            logger.debug("Page markup rejected by parser", extra={"reason": "unparseable"})
            return None

        name_node = self._find_pool_chart(soup)
        if name_node is None:
            return None

        value_node = name_node.find_next_sibling(_has_class(self.value_class))
        if value_node is None:
            logger.debug("Pool chart has no value element", extra={"reason": "missing_value"})
            return None

        return self._parse_count(value_node.get_text())

    def _find_pool_chart(self, soup: BeautifulSoup) -> Optional[Tag]:
        node = soup.find(_has_class(self.name_class))
        if node is None:
            logger.debug("No chart name element found", extra={"reason": "missing_name"})
            return None

        if _normalize_label(node.get_text()) not in self._labels:
            logger.debug(
                "First chart is not labelled as the pool",
                extra={"reason": "unexpected_label"},
            )
            return None
        return node

    @staticmethod
    def _parse_count(raw: str) -> Optional[int]:
        text = raw.strip()
        if not text:
            logger.debug("Pool chart value is empty", extra={"reason": "empty_value"})
            return None
        if not _PLAIN_INTEGER.fullmatch(text):
            logger.debug("Pool chart value is not an integer", extra={"reason": "not_integer"})
            return None
        value = int(text)
        if value > MAX_OCCUPANCY:
            logger.debug("Pool chart value is out of range", extra={"reason": "out_of_range"})
            return None
        return value


_default_extractor = OccupancyExtractor()


def extract_occupancy(html: Optional[str]) -> Optional[int]:
    """Extract the pool occupancy using the default chart markers."""
    return _default_extractor.extract(html)
