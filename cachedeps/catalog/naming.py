"""
catalog/naming.py - Type and relationship naming conventions

Singular/plural snake-case forms are what the inverse resolver guesses
relationship names from (``Account`` -> ``account`` / ``accounts``).
"""

from __future__ import annotations
from typing import Dict
import re


IRREGULAR_PLURALS: Dict[str, str] = {
    "person": "people",
    "man": "men",
    "woman": "women",
    "child": "children",
    "datum": "data",
    "medium": "media",
    "criterion": "criteria",
    "index": "indices",
    "matrix": "matrices",
    "vertex": "vertices",
}

IRREGULAR_SINGULARS: Dict[str, str] = {v: k for k, v in IRREGULAR_PLURALS.items()}

UNCOUNTABLE = frozenset({"equipment", "information", "news", "series", "species", "metadata"})

_CAMEL_BOUNDARY_1 = re.compile(r"([A-Z]+)([A-Z][a-z])")
_CAMEL_BOUNDARY_2 = re.compile(r"([a-z\d])([A-Z])")


def underscore(name: str) -> str:
    """``PaymentGate`` -> ``payment_gate``."""
    name = _CAMEL_BOUNDARY_1.sub(r"\1_\2", name)
    name = _CAMEL_BOUNDARY_2.sub(r"\1_\2", name)
    return name.replace("-", "_").lower()


def camelize(name: str) -> str:
    """``payment_gate`` -> ``PaymentGate``."""
    return "".join(part[:1].upper() + part[1:] for part in name.split("_") if part)


def _split_last(word: str):
    head, sep, last = word.rpartition("_")
    return head + sep, last


def pluralize(word: str) -> str:
    """Pluralize the last segment of a snake-case word."""
    prefix, last = _split_last(word)
    if not last or last in UNCOUNTABLE or last in IRREGULAR_SINGULARS:
        return word
    if last in IRREGULAR_PLURALS:
        return prefix + IRREGULAR_PLURALS[last]
    if last.endswith("y") and len(last) > 1 and last[-2] not in "aeiou":
        return prefix + last[:-1] + "ies"
    if last.endswith(("s", "x", "z", "ch", "sh")):
        return prefix + last + "es"
    return prefix + last + "s"


def singularize(word: str) -> str:
    """Singularize the last segment of a snake-case word."""
    prefix, last = _split_last(word)
    if not last or last in UNCOUNTABLE or last in IRREGULAR_PLURALS:
        return word
    if last in IRREGULAR_SINGULARS:
        return prefix + IRREGULAR_SINGULARS[last]
    if last.endswith("ies") and len(last) > 3:
        return prefix + last[:-3] + "y"
    if last.endswith(("sses", "xes", "zes", "ches", "shes")):
        return prefix + last[:-2]
    if last.endswith("s") and not last.endswith("ss"):
        return prefix + last[:-1]
    return word
