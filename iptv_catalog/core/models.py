from __future__ import annotations

import copy
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .iso_codes import country_name, language_code

# Structures de données partagées entre parser, filtres, workers et export.

UNCATEGORIZED = "Uncategorized"

_LANG_SPLIT_RE = re.compile(r"[;,|]")


class StreamStatus(str, Enum):
    UNKNOWN = "UNKNOWN"
    GOOD = "GOOD"
    BAD = "BAD"


@dataclass
class StreamRecord:
    """Une entrée de playlist (bloc #EXTINF + URL) après extraction des attributs."""
    url: str
    title: Optional[str] = None
    logo: Optional[str] = None
    category: str = UNCATEGORIZED
    # Tous les attributs tvg-*, indexés sans le préfixe ("id", "name", "logo", ...)
    tvg: dict[str, str] = field(default_factory=dict)
    extra_attributes: dict[str, str] = field(default_factory=dict)
    duration: Optional[float] = None
    # Options VLC associées au flux (lignes #EXTVLCOPT:... entre EXTINF et URL)
    vlc_opts: list[str] = field(default_factory=list)
    status: StreamStatus = StreamStatus.UNKNOWN

    @property
    def tvg_id(self) -> Optional[str]:
        return self.tvg.get("id")

    @property
    def tvg_name(self) -> Optional[str]:
        return self.tvg.get("name")

    @property
    def country(self) -> dict[str, str]:
        code = (self.tvg.get("country") or "").strip()
        return {"code": code, "name": country_name(code) if code else ""}

    @property
    def language(self) -> dict[str, str]:
        name = (self.tvg.get("language") or "").strip()
        first = _LANG_SPLIT_RE.split(name, 1)[0] if name else ""
        return {"code": language_code(first), "name": name}

    def copy(self) -> "StreamRecord":
        return copy.deepcopy(self)
