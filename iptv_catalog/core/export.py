from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable

from loguru import logger

from .models import StreamRecord

# Export structuré (dict/JSON) et écriture texte sur disque.


def record_to_dict(record: StreamRecord) -> dict:
    return {
        "title": record.title or "",
        "logo": record.logo or "",
        "url": record.url,
        "category": record.category,
        "tvg": dict(record.tvg),
        "country": record.country,
        "language": record.language,
        "duration": record.duration,
        "status": record.status.value,
        "attributes": dict(record.extra_attributes),
    }


def to_structured(records: Iterable[StreamRecord]) -> list[dict]:
    """Une entrée (dict simple, sérialisable JSON) par flux, dans l'ordre de la playlist."""
    out = []
    for record in records:
        if not record.url:
            logger.warning("Record without URL skipped during export: {!r}", record.title)
            continue
        out.append(record_to_dict(record))
    return out


def to_json(records: Iterable[StreamRecord], pretty: bool = True) -> str:
    return json.dumps(to_structured(records), indent=2 if pretty else None, ensure_ascii=False)


def save_text(path: str | Path, text: str) -> Path:
    """Écrit un contenu déjà sérialisé (UTF-8), en créant le dossier parent si besoin."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    logger.info("Saved to file: {}", path)
    return path
