from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional

from loguru import logger

from .exceptions import MalformedBlockError
from .models import UNCATEGORIZED, StreamRecord

# Parsing/écriture des playlists M3U : découpage en blocs (EXTINF + URL), scanner d'attributs, rendu texte.

EXTM3U_PREFIX = "#EXTM3U"
EXTINF_PREFIX = "#EXTINF:"
EXTGRP_PREFIX = "#EXTGRP:"
EXTVLCOPT_PREFIX = "#EXTVLCOPT:"

_DURATION_RE = re.compile(r"\s*([+-]?(?:\d+(?:\.\d*)?|\.\d+))(?=[\s,]|$)")
# Jeton de durée invalide ("abc", "1x"), sauté tant qu'il ne ressemble pas à un attribut.
_BAD_DURATION_RE = re.compile(r"\s*[^\s,=\"]+(?=[\s,]|$)")
# Après un guillemet : fin de ligne, virgule ou début d'un autre key=
_VALUE_END_RE = re.compile(r"\s*(?:$|,|[^\s=,\"]+=)")

_URL_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*://\S+$")
_ACESTREAM_RE = re.compile(r"^acestream://[A-Za-z0-9]+$")
_FILE_RE = re.compile(r"^(?:[A-Za-z]:\\|\.{0,2}/)\S*\.\w{2,5}$")

# Etats du scanner d'attributs
_IDLE, _IN_KEY, _EXPECT_QUOTE, _IN_VALUE, _IN_BARE = range(5)


@dataclass
class RawBlock:
    """Lignes brutes d'une entrée : l'EXTINF, ses métadonnées et l'URL (None si absente)."""
    extinf: str
    line_no: int
    url: Optional[str] = None
    extgrp: list[str] = field(default_factory=list)
    vlc_opts: list[str] = field(default_factory=list)


@dataclass
class ExtInf:
    duration: Optional[float]
    title: Optional[str]
    attributes: dict[str, str]


def _scan_attributes(text: str, pos: int = 0) -> tuple[dict[str, str], Optional[str]]:
    """
    Tolerant key="value" scanner.
    Returns (attributes, title) where title is whatever follows the first comma
    met outside a value. Keys are lowercased, last duplicate wins.
    """
    attrs: dict[str, str] = {}
    title: Optional[str] = None
    state = _IDLE
    key: list[str] = []
    value: list[str] = []
    n = len(text)
    i = pos

    def store():
        k = "".join(key).strip().lower()
        if k:
            attrs[k] = "".join(value)

    while i < n:
        ch = text[i]
        if state == _IDLE:
            if ch == ",":
                title = text[i + 1:].strip() or None
                return attrs, title
            if not ch.isspace():
                key, value = [ch], []
                state = _IN_KEY
        elif state == _IN_KEY:
            if ch == "=":
                state = _EXPECT_QUOTE
            elif ch.isspace():
                # mot isolé sans "=": ignoré
                state = _IDLE
            elif ch == ",":
                state = _IDLE
                continue
            else:
                key.append(ch)
        elif state == _EXPECT_QUOTE:
            if ch == '"':
                state = _IN_VALUE
            elif ch.isspace() or ch == ",":
                store()
                state = _IDLE
                continue
            else:
                value.append(ch)
                state = _IN_BARE
        elif state == _IN_VALUE:
            if ch == "\\" and i + 1 < n and text[i + 1] in ('"', "\\"):
                value.append(text[i + 1])
                i += 2
                continue
            # Un guillemet ne ferme la valeur que s'il est suivi d'un séparateur,
            # ou s'il n'y a plus aucun autre guillemet sur la ligne.
            if ch == '"' and (_VALUE_END_RE.match(text, i + 1) or text.find('"', i + 1) == -1):
                store()
                state = _IDLE
            else:
                value.append(ch)
        elif state == _IN_BARE:
            if ch.isspace() or ch == ",":
                store()
                state = _IDLE
                continue
            value.append(ch)
        i += 1

    # Valeur non terminée en fin de ligne: on garde ce qui a été lu.
    if state in (_EXPECT_QUOTE, _IN_VALUE, _IN_BARE):
        store()
    return attrs, title


def parse_extinf(extinf: str) -> ExtInf:
    """Extrait durée, attributs et titre depuis une ligne #EXTINF."""
    body = extinf[len(EXTINF_PREFIX):] if extinf.upper().startswith(EXTINF_PREFIX) else extinf
    duration: Optional[float] = None
    pos = 0

    m = _DURATION_RE.match(body)
    if m:
        duration = float(m.group(1))
        pos = m.end()
    else:
        bad = _BAD_DURATION_RE.match(body)
        if bad:
            pos = bad.end()

    attrs, title = _scan_attributes(body, pos)
    return ExtInf(duration=duration, title=title, attributes=attrs)


def parse_header(text: str) -> dict[str, str]:
    """Attributs de la ligne #EXTM3U (url-tvg, x-tvg-url...), vide si pas d'en-tête."""
    for raw in text.splitlines():
        line = raw.strip().lstrip("\ufeff")
        if not line:
            continue
        if line.upper().startswith(EXTM3U_PREFIX):
            attrs, _ = _scan_attributes(line, len(EXTM3U_PREFIX))
            return attrs
        return {}
    return {}


def iter_blocks(text: str) -> Iterator[RawBlock]:
    """
    Découpe le texte en blocs. Un bloc commence sur #EXTINF et se termine sur la
    première ligne non vide qui n'est pas un commentaire (l'URL).
    """
    current: Optional[RawBlock] = None
    for line_no, raw in enumerate(text.splitlines(), 1):
        line = raw.strip().lstrip("\ufeff")
        if not line:
            continue
        upper = line[:len(EXTVLCOPT_PREFIX)].upper()

        if upper.startswith(EXTINF_PREFIX):
            if current is not None:
                yield current
            current = RawBlock(extinf=line, line_no=line_no)
            continue

        if line.startswith("#"):
            if current is None:
                continue
            if upper.startswith(EXTGRP_PREFIX):
                current.extgrp.append(line[len(EXTGRP_PREFIX):].strip())
            elif upper.startswith(EXTVLCOPT_PREFIX):
                opt = line[len(EXTVLCOPT_PREFIX):].strip()
                if opt:
                    current.vlc_opts.append(opt)
            continue

        if current is None:
            logger.debug("line {}: URL without #EXTINF ignored", line_no)
            continue
        current.url = line
        yield current
        current = None

    if current is not None:
        yield current


def merge_category(group_title: Optional[str], extgrp: Iterable[str] = ()) -> str:
    """
    Fusion ordonnée des catégories dans l'ordre du fichier: group-title puis
    chaque #EXTGRP. La dernière valeur non vide l'emporte.
    """
    category = ""
    for candidate in (group_title, *extgrp):
        candidate = (candidate or "").strip()
        if candidate:
            category = candidate
    return category or UNCATEGORIZED


def is_stream_location(url: str) -> bool:
    """True pour une URL avec schéma, un lien acestream:// ou un chemin de fichier local."""
    return bool(_URL_RE.match(url) or _ACESTREAM_RE.match(url) or _FILE_RE.match(url))


def build_record(block: RawBlock, enforce_schema: bool = False) -> Optional[StreamRecord]:
    if not block.url:
        return None
    if enforce_schema and not is_stream_location(block.url):
        return None

    info = parse_extinf(block.extinf)
    tvg: dict[str, str] = {}
    extra: dict[str, str] = {}
    group_title = None
    for key, value in info.attributes.items():
        if key == "group-title":
            group_title = value
        elif key.startswith("tvg-") and len(key) > 4:
            tvg[key[4:]] = value
        else:
            extra[key] = value

    return StreamRecord(
        url=block.url,
        title=info.title,
        logo=tvg.get("logo") or None,
        category=merge_category(group_title, block.extgrp),
        tvg=tvg,
        extra_attributes=extra,
        duration=info.duration,
        vlc_opts=list(block.vlc_opts),
    )


def parse_m3u(
    text: str,
    enforce_schema: bool = False,
    issues: Optional[List[MalformedBlockError]] = None,
) -> List[StreamRecord]:
    """
    Convertit le texte M3U en StreamRecord. Les blocs invalides sont ignorés
    et ajoutés à `issues` si une liste est fournie.
    """
    out: List[StreamRecord] = []
    for block in iter_blocks(text):
        record = build_record(block, enforce_schema=enforce_schema)
        if record is not None:
            out.append(record)
            continue

        reason = "missing URL" if not block.url else f"not a stream location: {block.url}"
        issue = MalformedBlockError(block.line_no, reason, block.extinf)
        logger.warning("Skipping block at {}", issue)
        if issues is not None:
            issues.append(issue)
    return out


def _quote(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _attr(key: str, value: str) -> str:
    return f' {key}="{_quote(value)}"'


def format_extinf(record: StreamRecord) -> str:
    line = "#EXTINF:-1"
    for key in ("id", "name"):
        if record.tvg.get(key):
            line += _attr(f"tvg-{key}", record.tvg[key])
    if record.logo:
        line += _attr("tvg-logo", record.logo)
    if record.category and record.category != UNCATEGORIZED:
        line += _attr("group-title", record.category)
    for key, value in record.tvg.items():
        if key not in ("id", "name", "logo") and value:
            line += _attr(f"tvg-{key}", value)
    for key, value in record.extra_attributes.items():
        line += _attr(key, value)
    if record.title:
        line += f",{record.title}"
    return line


def to_m3u(records: Iterable[StreamRecord], header: Optional[dict[str, str]] = None) -> str:
    """Rend une playlist M3U complète (en-tête, EXTINF, EXTVLCOPT, URL)."""
    head = EXTM3U_PREFIX + "".join(_attr(k, v) for k, v in (header or {}).items())
    lines = [head]
    for record in records:
        if not record.url:
            logger.warning("Record without URL skipped during serialization: {!r}", record.title)
            continue
        lines.append(format_extinf(record))
        for opt in record.vlc_opts:
            opt = str(opt).strip()
            if opt:
                lines.append(f"{EXTVLCOPT_PREFIX}{opt}")
        lines.append(record.url)
    return "\n".join(lines) + "\n"
