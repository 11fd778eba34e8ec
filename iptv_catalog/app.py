from __future__ import annotations

import argparse
import sys
from functools import partial
from pathlib import Path

from loguru import logger

from .config import load_settings
from .core.catalog import Catalog
from .core.exceptions import EmptyPlaylistError, RetrievalError
from .core.filters import FilterPredicate, MatchMode
from .logs import setup_logging
from .sources import read_source
from .workers.probe import probe_url

# Point d'entrée ligne de commande : lecture, filtres, test des flux puis export m3u/json.


def _predicate(arg: str, mode: MatchMode, exclude: bool) -> FilterPredicate:
    field, sep, value = arg.partition("=")
    if not sep or not field.strip():
        raise argparse.ArgumentTypeError(f"expected FIELD=VALUE, got {arg!r}")
    return FilterPredicate(field.strip(), value, mode=mode, exclude=exclude)


def _output_format(output: str, requested: str | None) -> str:
    """Format d'écriture : extension de -o (m3u, m3u8, json) ou --format, qui doivent concorder."""
    suffix = Path(output).suffix.lower().lstrip(".") if output else ""
    from_suffix = "m3u" if suffix in ("m3u", "m3u8") else suffix
    if from_suffix and from_suffix not in ("m3u", "json"):
        raise argparse.ArgumentTypeError(f"unsupported output extension .{suffix} (use .m3u, .m3u8 or .json)")
    if from_suffix and requested and requested != from_suffix:
        raise argparse.ArgumentTypeError(f"--format {requested} conflicts with output file {output}")
    return from_suffix or requested or "m3u"


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="iptv-catalog", description="Parse, filter and check M3U playlists.")
    ap.add_argument("source", help="URL http(s) ou chemin de la playlist (.m3u, .m3u8, .gz)")
    ap.add_argument("--filter", action="append", default=[], metavar="FIELD=VALUE", help="garder les flux correspondants")
    ap.add_argument("--exclude", action="append", default=[], metavar="FIELD=VALUE", help="retirer les flux correspondants")
    match = ap.add_mutually_exclusive_group()
    match.add_argument("--regex", action="store_true", help="valeurs de filtre = expressions régulières")
    match.add_argument("--exact", action="store_true", help="égalité stricte (insensible à la casse)")
    ap.add_argument("--check", action="store_true", help="tester la disponibilité de chaque flux")
    ap.add_argument("--remove-bad", action="store_true", default=None, help="retirer les flux injoignables après --check")
    ap.add_argument("--concurrency", type=int, default=None)
    ap.add_argument("--timeout", type=float, default=None, help="timeout par flux (s)")
    ap.add_argument("--total-timeout", type=float, default=None, help="durée max du test complet (s)")
    ap.add_argument("--enforce-schema", action="store_true", default=None, help="ignorer les URLs non valides")
    ap.add_argument("--sort", default="", metavar="FIELD")
    ap.add_argument("--desc", action="store_true")
    ap.add_argument("-o", "--output", default="", help="fichier de sortie (stdout si absent)")
    ap.add_argument("--format", choices=("m3u", "json"), default=None, help="m3u par défaut, ou déduit de l'extension de -o")
    ap.add_argument("--config", default=None, help="fichier de configuration JSON")
    ap.add_argument("--log-level", default=None)
    return ap


def main(argv: list[str] | None = None) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)

    settings = load_settings(args.config)
    setup_logging(args.log_level or settings.log_level)

    mode = MatchMode.REGEX if args.regex else MatchMode.EXACT if args.exact else MatchMode.SUBSTRING
    try:
        predicates = [_predicate(s, mode, False) for s in args.filter]
        predicates += [_predicate(s, mode, True) for s in args.exclude]
        out_format = _output_format(args.output, args.format)
    except (argparse.ArgumentTypeError, ValueError) as e:
        ap.error(str(e))

    enforce = settings.enforce_schema if args.enforce_schema is None else args.enforce_schema
    catalog = Catalog(enforce_schema=enforce)
    try:
        catalog.load(args.source, fetch=partial(read_source, timeout=settings.fetch_timeout, user_agent=settings.user_agent))
    except RetrievalError as e:
        logger.error("Cannot read playlist: {}", e)
        return 1
    except EmptyPlaylistError as e:
        logger.error("{}: {}", args.source, e)
        return 2

    if predicates:
        removed = catalog.apply_filter(predicates)
        logger.info("Filters removed {} stream(s), {} left", removed, len(catalog))

    if args.check:
        catalog.check_availability(
            concurrency_limit=args.concurrency or settings.concurrency,
            timeout=args.timeout or settings.timeout,
            total_timeout=args.total_timeout if args.total_timeout is not None else settings.total_timeout,
            probe=partial(probe_url, user_agent=settings.user_agent),
            remove_bad=settings.remove_bad if args.remove_bad is None else args.remove_bad,
        )

    if args.sort:
        catalog.sort_by(args.sort, ascending=not args.desc)

    if args.output:
        catalog.to_file(args.output, format=out_format)
    else:
        sys.stdout.write(catalog.to_json() + "\n" if out_format == "json" else catalog.to_m3u())
    return 0


if __name__ == "__main__":
    sys.exit(main())
