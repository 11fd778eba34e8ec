from __future__ import annotations

import dataclasses
import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Sequence, Union

from .models import StreamRecord

# Filtres sur les attributs des flux : ET logique entre prédicats, OU entre les valeurs d'un prédicat.


class MatchMode(str, Enum):
    EXACT = "exact"
    SUBSTRING = "substring"
    REGEX = "regex"


_FIELD_ALIASES = {
    "group-title": "category",
    "group": "category",
    "tvg-logo": "logo",
    "tvg.logo": "logo",
    "tvg_logo": "logo",
    "name": "title",
}


def field_value(record: StreamRecord, name: str) -> Optional[str]:
    """
    Résout un nom de champ vers sa valeur texte, None si le champ est absent.
    Accepte title, url, logo, category/group-title, status, duration,
    tvg-<x> / tvg.<x> / tvg_<x>, country[.code|.name], language[.code|.name]
    et toute clé d'attribut supplémentaire.
    """
    key = (name or "").strip().lower()
    key = _FIELD_ALIASES.get(key, key)

    if key in ("title", "url", "logo", "category"):
        value = getattr(record, key)
        return value if value else None
    if key == "status":
        return record.status.value
    if key == "duration":
        return None if record.duration is None else f"{record.duration:g}"

    for prefix in ("tvg-", "tvg.", "tvg_"):
        if key.startswith(prefix) and len(key) > len(prefix):
            return record.tvg.get(key[len(prefix):]) or None

    for nested in ("country", "language"):
        if key == nested or key.startswith(nested + "."):
            info = getattr(record, nested)
            sub = key[len(nested) + 1:] or "code"
            return info.get(sub) or None

    if key in record.extra_attributes:
        return record.extra_attributes[key]
    return None


@dataclass
class FilterPredicate:
    """
    Un critère sur un champ. Les valeurs sont alternatives (OU).
    EXACT/SUBSTRING ignorent la casse, REGEX utilise re.search tel quel.
    exclude=True garde les flux qui ne correspondent PAS.
    """
    field: str
    values: Union[str, Sequence[str]]
    mode: MatchMode = MatchMode.SUBSTRING
    exclude: bool = False
    _patterns: list[re.Pattern] = dataclasses.field(default_factory=list, init=False, repr=False, compare=False)

    def __post_init__(self):
        if isinstance(self.values, str):
            self.values = [self.values]
        else:
            self.values = list(self.values)
        self.mode = MatchMode(self.mode)
        if self.mode is MatchMode.REGEX:
            try:
                self._patterns = [re.compile(v) for v in self.values]
            except re.error as e:
                raise ValueError(f"invalid regex for field {self.field!r}: {e}") from e

    def matches(self, record: StreamRecord) -> bool:
        value = field_value(record, self.field)
        if value is None:
            return False
        if self.mode is MatchMode.REGEX:
            return any(p.search(value) for p in self._patterns)
        folded = value.casefold()
        if self.mode is MatchMode.EXACT:
            return any(folded == v.casefold() for v in self.values)
        return any(v.casefold() in folded for v in self.values)

    def accepts(self, record: StreamRecord) -> bool:
        return self.matches(record) != self.exclude


def filter_records(records: Iterable[StreamRecord], predicates: Sequence[FilterPredicate] = ()) -> list[StreamRecord]:
    """Garde les flux qui satisfont tous les prédicats, dans l'ordre d'origine."""
    return [r for r in records if all(p.accepts(r) for p in predicates)]


def sort_key(name: str):
    """Clé de tri stable : les valeurs absentes passent en premier."""
    def key(record: StreamRecord):
        value = field_value(record, name)
        return (value is not None, (value or "").casefold())
    return key
