from __future__ import annotations

# Erreurs du catalogue : seules EmptyPlaylistError et RetrievalError remontent à l'appelant.


class CatalogError(Exception):
    """Base class for every error raised by iptv_catalog."""


class ParseError(CatalogError):
    pass


class EmptyPlaylistError(ParseError):
    """No valid #EXTINF + URL block was found in the playlist text."""

    def __init__(self, issues: int = 0):
        self.issues = issues
        msg = "no valid stream found in playlist"
        if issues:
            msg += f" ({issues} malformed block(s) skipped)"
        super().__init__(msg)


class MalformedBlockError(ParseError):
    """
    One block could not be turned into a record.
    Recorded in Catalog.issues, never raised by Catalog.parse().
    """

    def __init__(self, line_no: int, reason: str, extinf: str = ""):
        self.line_no = line_no
        self.reason = reason
        self.extinf = extinf
        super().__init__(f"line {line_no}: {reason}")


class RetrievalError(CatalogError):
    """The playlist source could not be read (missing file, HTTP error, undecodable bytes)."""

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"{source}: {reason}")


class ProbeError(CatalogError):
    """Transport failure while probing one stream URL."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"{url}: {reason}")
