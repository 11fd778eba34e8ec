from __future__ import annotations

from .core.catalog import Catalog
from .core.exceptions import (
    CatalogError,
    EmptyPlaylistError,
    MalformedBlockError,
    ParseError,
    ProbeError,
    RetrievalError,
)
from .core.export import to_json, to_structured
from .core.filters import FilterPredicate, MatchMode, filter_records
from .core.m3u import iter_blocks, parse_extinf, parse_m3u, to_m3u
from .core.models import StreamRecord, StreamStatus
from .sources import read_source
from .workers.probe import ProbeResult, check_availability, probe_url

__version__ = "0.3.0"

__all__ = [
    "Catalog",
    "CatalogError",
    "EmptyPlaylistError",
    "FilterPredicate",
    "MalformedBlockError",
    "MatchMode",
    "ParseError",
    "ProbeError",
    "ProbeResult",
    "RetrievalError",
    "StreamRecord",
    "StreamStatus",
    "check_availability",
    "filter_records",
    "iter_blocks",
    "parse_extinf",
    "parse_m3u",
    "probe_url",
    "read_source",
    "to_json",
    "to_m3u",
    "to_structured",
]
