from __future__ import annotations

import gzip
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import requests
from loguru import logger

from .core.exceptions import RetrievalError

"""
Lecture d'une playlist depuis une URL (http/https) ou un chemin local, avec support .gz.
Toute erreur devient une RetrievalError, sans nouvelle tentative.
"""

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/111.0.0.0 Safari/537.36"
)


def is_remote(source: str) -> bool:
    return urlparse(source).scheme.lower() in ("http", "https")


def decode_playlist(data: bytes, source: str = "") -> str:
    """Décompresse si gzip puis décode en UTF-8 (BOM retiré), repli Latin-1."""
    if data[:2] == b"\x1f\x8b":
        try:
            data = gzip.decompress(data)
        except (OSError, EOFError) as e:
            raise RetrievalError(source, f"invalid gzip payload ({e})") from e
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        logger.debug("{}: not UTF-8, falling back to latin-1", source)
        return data.decode("latin-1")


def _download(url: str, timeout: float, session: Optional[requests.Session], user_agent: str) -> bytes:
    http = session or requests.Session()
    try:
        with http.get(url, timeout=timeout, headers={"User-Agent": user_agent}, stream=True) as r:
            r.raise_for_status()
            buf = bytearray()
            for chunk in r.iter_content(chunk_size=64 * 1024):
                if chunk:
                    buf.extend(chunk)
            return bytes(buf)
    except requests.exceptions.HTTPError as e:
        raise RetrievalError(url, f"HTTP {e.response.status_code}") from e
    except requests.exceptions.RequestException as e:
        raise RetrievalError(url, f"network error ({type(e).__name__})") from e
    finally:
        if session is None:
            http.close()


def read_source(
    source: str,
    timeout: float = 20.0,
    session: Optional[requests.Session] = None,
    user_agent: str = DEFAULT_USER_AGENT,
) -> str:
    """
    Retourne le texte brut d'une playlist.
    `source` est une URL http(s) ou un chemin de fichier (.m3u, .m3u8, .gz).
    """
    source = (source or "").strip()
    if not source:
        raise RetrievalError(source, "empty source")

    if is_remote(source):
        logger.info("Downloading playlist {}", source)
        data = _download(source, timeout, session, user_agent)
    else:
        path = Path(source).expanduser()
        if not path.is_file():
            raise RetrievalError(source, "file not found")
        try:
            data = path.read_bytes()
        except OSError as e:
            raise RetrievalError(source, f"unreadable file ({e})") from e

    return decode_playlist(data, source)
