"""
Name-based sheet classification.

Rules are checked in order; the first category whose markers occur in the
lower-cased, trimmed sheet name wins. Anything unmatched is an expense sheet.
"""

from __future__ import annotations

import re
import unicodedata
from typing import Tuple

from quotex.models import Category

SUMMARY_MARKERS: Tuple[str, ...] = ("resumen", "summary")

EQUIPMENT_MARKERS: Tuple[str, ...] = (
    "equipo",
    "equipment",
    "material",
    "suministro",
    "tablero",
)

# "mat" and "mat." as an abbreviation, never as part of a longer word
RE_MAT_TOKEN = re.compile(r"\bmat\b")

SERVICES_MARKERS: Tuple[str, ...] = (
    "servicio",
    "service",
    "mano de obra",
    "ingenieria",
    "hh",
    "horas",
    "montaje",
    "instalacion",
)

CLASSIFICATION_RULES: Tuple[Tuple[Category, Tuple[str, ...]], ...] = (
    (Category.SUMMARY, SUMMARY_MARKERS),
    (Category.EQUIPMENT, EQUIPMENT_MARKERS),
    (Category.SERVICES, SERVICES_MARKERS),
)


def _normalize_name(name: str) -> str:
    # Strip accents so "INGENIERÍA" and "Instalación" match their markers
    decomposed = unicodedata.normalize("NFKD", name or "")
    plain = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return plain.strip().lower()


def classify(name: str) -> Category:
    """Map a sheet name to its :class:`Category`. Total and deterministic."""
    normalized = _normalize_name(name)
    for category, markers in CLASSIFICATION_RULES:
        if any(marker in normalized for marker in markers):
            return category
        if category == Category.EQUIPMENT and RE_MAT_TOKEN.search(normalized):
            return category
    return Category.EXPENSES
