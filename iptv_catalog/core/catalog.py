from __future__ import annotations

import random
import re
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence

from loguru import logger

from .exceptions import EmptyPlaylistError, MalformedBlockError
from .export import save_text, to_json, to_structured
from .filters import FilterPredicate, MatchMode, filter_records, sort_key
from .m3u import parse_header, parse_m3u, to_m3u
from .models import StreamRecord, StreamStatus
from ..sources import read_source
from ..workers.probe import Probe, ProbeResult, check_availability


class Catalog:
    """
    Collection ordonnée des flux d'une playlist.

    parse() remplace le contenu, filter() renvoie un nouveau Catalog (copies),
    apply_filter()/sort_by()/remove_bad() modifient sur place, reset() revient
    au dernier parse.
    """

    def __init__(self, records: Optional[Iterable[StreamRecord]] = None, enforce_schema: bool = False):
        self.enforce_schema = enforce_schema
        self.header: dict[str, str] = {}
        self.issues: List[MalformedBlockError] = []
        self._records: List[StreamRecord] = list(records or [])
        self._snapshot: List[StreamRecord] = [r.copy() for r in self._records]

    def __len__(self):
        return len(self._records)

    def __iter__(self):
        return iter(self._records)

    def __repr__(self):
        return f"Catalog({len(self._records)} records, {len(self.categories())} categories)"

    # -------------------------
    # Parsing
    # -------------------------
    def parse(self, source_text: str, enforce_schema: Optional[bool] = None) -> None:
        """
        Remplace le contenu par les flux du texte M3U.
        Les blocs invalides sont ignorés (voir self.issues) ; lève EmptyPlaylistError
        si aucun flux valide n'a été trouvé.
        """
        if enforce_schema is None:
            enforce_schema = self.enforce_schema
        issues: List[MalformedBlockError] = []
        records = parse_m3u(source_text or "", enforce_schema=enforce_schema, issues=issues)

        self.issues = issues
        if not records:
            self.header = {}
            self._records = []
            self._snapshot = []
            raise EmptyPlaylistError(len(issues))

        self.header = parse_header(source_text)
        self._records = records
        self._snapshot = [r.copy() for r in records]
        logger.info("Parsed {} streams ({} block(s) skipped)", len(records), len(issues))

    def load(self, source: str, fetch: Optional[Callable[[str], str]] = None, enforce_schema: Optional[bool] = None) -> None:
        """Lit la source (URL ou fichier) puis parse. RetrievalError remonte telle quelle."""
        fetch = fetch or read_source
        self.parse(fetch(source), enforce_schema=enforce_schema)

    @classmethod
    def from_text(cls, source_text: str, enforce_schema: bool = False) -> "Catalog":
        catalog = cls(enforce_schema=enforce_schema)
        catalog.parse(source_text)
        return catalog

    # -------------------------
    # Lecture
    # -------------------------
    @property
    def records(self) -> List[StreamRecord]:
        return list(self._records)

    def categories(self) -> List[str]:
        """Catégories distinctes, dans l'ordre de première apparition."""
        return list(dict.fromkeys(r.category for r in self._records))

    def random_stream(self, shuffle: bool = False) -> Optional[StreamRecord]:
        if not self._records:
            logger.warning("No streams available, cannot pick a random one")
            return None
        if shuffle:
            random.shuffle(self._records)
        return random.choice(self._records)

    # -------------------------
    # Filtres / tri
    # -------------------------
    def filter(self, predicates: Sequence[FilterPredicate] = ()) -> "Catalog":
        """Nouveau Catalog avec des copies des flux qui satisfont tous les prédicats."""
        view = Catalog([r.copy() for r in filter_records(self._records, predicates)], self.enforce_schema)
        view.header = dict(self.header)
        return view

    def apply_filter(self, predicates: Sequence[FilterPredicate] = ()) -> int:
        """Filtre sur place, renvoie le nombre de flux retirés."""
        kept = filter_records(self._records, predicates)
        removed = len(self._records) - len(kept)
        self._records = kept
        return removed

    def filter_by(
        self,
        field: str,
        values: str | Sequence[str],
        mode: MatchMode | str = MatchMode.REGEX,
        retrieve: bool = True,
    ) -> int:
        """Raccourci : un seul prédicat, appliqué sur place (retrieve=False pour exclure)."""
        return self.apply_filter([FilterPredicate(field, values, mode=mode, exclude=not retrieve)])

    def retrieve_by_category(self, categories: Sequence[str]) -> int:
        return self.filter_by("category", categories, MatchMode.EXACT, retrieve=True)

    def remove_by_category(self, categories: Sequence[str]) -> int:
        return self.filter_by("category", categories, MatchMode.EXACT, retrieve=False)

    def retrieve_by_extension(self, extensions: Sequence[str]) -> int:
        return self.filter_by("url", _extension_patterns(extensions), MatchMode.REGEX, retrieve=True)

    def remove_by_extension(self, extensions: Sequence[str]) -> int:
        return self.filter_by("url", _extension_patterns(extensions), MatchMode.REGEX, retrieve=False)

    def sort_by(self, field: str, ascending: bool = True) -> None:
        self._records.sort(key=sort_key(field), reverse=not ascending)

    def reset(self) -> None:
        """Annule filtres, tris et suppressions depuis le dernier parse."""
        self._records = [r.copy() for r in self._snapshot]

    # -------------------------
    # Disponibilité
    # -------------------------
    def check_availability(
        self,
        concurrency_limit: int = 8,
        timeout: float = 5.0,
        total_timeout: Optional[float] = None,
        probe: Optional[Probe] = None,
        remove_bad: bool = False,
        **kwargs,
    ) -> List[ProbeResult]:
        """
        Teste chaque flux (statut GOOD/BAD mis à jour sur place).
        remove_bad=True retire ensuite les flux BAD du catalogue.
        """
        results = check_availability(
            self._records,
            concurrency_limit=concurrency_limit,
            timeout=timeout,
            total_timeout=total_timeout,
            probe=probe,
            **kwargs,
        )
        if remove_bad:
            self.remove_bad()
        return results

    def remove_bad(self) -> int:
        before = len(self._records)
        self._records = [r for r in self._records if r.status is not StreamStatus.BAD]
        removed = before - len(self._records)
        if removed:
            logger.info("Removed {} unreachable stream(s)", removed)
        return removed

    # -------------------------
    # Export
    # -------------------------
    def to_m3u(self) -> str:
        return to_m3u(self._records, self.header)

    def to_structured(self) -> list[dict]:
        return to_structured(self._records)

    def to_json(self, pretty: bool = True) -> str:
        return to_json(self._records, pretty=pretty)

    def to_file(self, filename: str | Path, format: str = "m3u") -> Path:
        """
        Écrit le catalogue au format m3u ou json. L'extension du fichier, si présente,
        l'emporte sur `format` ; sinon elle est ajoutée.
        """
        path = Path(filename)
        suffix = path.suffix.lower().lstrip(".")
        fmt = (suffix or format).lower()
        if fmt == "m3u8":
            fmt = "m3u"
        if fmt not in ("m3u", "json"):
            raise ValueError(f"unrecognised format: {fmt}")
        if not suffix:
            path = path.with_name(f"{path.name}.{fmt}")
        if not self._records:
            logger.warning("Catalog is empty, writing an empty {} export to {}", fmt, path)

        text = self.to_json() if fmt == "json" else self.to_m3u()
        return save_text(path, text)


def _extension_patterns(extensions: Iterable[str]) -> List[str]:
    out = []
    for ext in extensions:
        ext = ext.strip().lstrip(".")
        if ext:
            out.append(rf"(?i)\.{re.escape(ext)}(?:$|[?#])")
    return out
