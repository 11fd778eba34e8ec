from __future__ import annotations

import os
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import dataclass
from time import monotonic
from typing import Callable, Optional, Sequence, Union
from urllib.parse import urlparse

import requests
from loguru import logger

from ..core.exceptions import ProbeError
from ..core.models import StreamRecord, StreamStatus
from ..sources import DEFAULT_USER_AGENT

# Test de joignabilité des URLs de flux (HEAD puis GET partiel) via un pool borné.


@dataclass
class ProbeResult:
    ok: bool
    status_code: Optional[int] = None
    reason: str = ""

    def __str__(self):
        return ("OK" if self.ok else "KO") + (f" ({self.reason})" if self.reason else "")


Probe = Callable[[str, float], Union[ProbeResult, bool]]
ResultCallback = Callable[[int, ProbeResult], None]

_SUCCESS = range(200, 400)


def probe_url(
    url: str,
    timeout_s: float,
    session: Optional[requests.Session] = None,
    user_agent: str = DEFAULT_USER_AGENT,
) -> ProbeResult:
    """
    Vérifie un flux sans le lire : HEAD d'abord, puis GET limité au premier Ko.
    Les liens acestream:// et les fichiers locaux ne passent pas par le réseau.
    Lève ProbeError sur échec de transport.
    """
    url = (url or "").strip()
    scheme = urlparse(url).scheme.lower()

    if scheme == "acestream":
        return ProbeResult(True, reason="acestream")
    if scheme in ("", "file") or (len(scheme) == 1 and url[1:3] in (":\\", ":/")):
        path = urlparse(url).path if scheme == "file" else url
        if os.path.exists(path):
            return ProbeResult(True, reason="local file")
        return ProbeResult(False, reason="file not found")
    if scheme not in ("http", "https"):
        return ProbeResult(False, reason=f"unsupported scheme {scheme}")

    http = session or requests.Session()
    headers = {"User-Agent": user_agent}
    try:
        try:
            r = http.head(url, headers=headers, allow_redirects=True, timeout=timeout_s)
            if r.status_code in _SUCCESS:
                return ProbeResult(True, r.status_code, f"HEAD {r.status_code}")
        except requests.exceptions.RequestException as e:
            # Beaucoup de serveurs IPTV refusent HEAD: on retente en GET.
            logger.debug("HEAD {} failed: {}", url, type(e).__name__)

        try:
            with http.get(
                url,
                headers={**headers, "Range": "bytes=0-1023"},
                allow_redirects=True,
                timeout=timeout_s,
                stream=True,
            ) as r:
                if r.status_code in _SUCCESS:
                    return ProbeResult(True, r.status_code, f"GET {r.status_code}")
                return ProbeResult(False, r.status_code, f"GET {r.status_code}")
        except requests.exceptions.Timeout as e:
            raise ProbeError(url, "timeout") from e
        except requests.exceptions.InvalidURL as e:
            raise ProbeError(url, "invalid url") from e
        except requests.exceptions.RequestException as e:
            raise ProbeError(url, type(e).__name__) from e
    finally:
        if session is None:
            http.close()


def _as_result(verdict: Union[ProbeResult, bool]) -> ProbeResult:
    if isinstance(verdict, ProbeResult):
        return verdict
    return ProbeResult(bool(verdict))


def _safe_probe(probe: Probe, url: str, timeout_s: float) -> ProbeResult:
    try:
        return _as_result(probe(url, timeout_s))
    except ProbeError as e:
        return ProbeResult(False, reason=e.reason)
    except Exception as e:
        return ProbeResult(False, reason=type(e).__name__)


def check_availability(
    records: Sequence[StreamRecord],
    concurrency_limit: int = 8,
    timeout: float = 5.0,
    total_timeout: Optional[float] = None,
    probe: Optional[Probe] = None,
    on_result: Optional[ResultCallback] = None,
    should_stop: Optional[Callable[[], bool]] = None,
) -> list[ProbeResult]:
    """
    Probes every record URL concurrently and sets record.status to GOOD or BAD in place.

    - at most `concurrency_limit` probes run at once;
    - `timeout` is handed to each probe, `total_timeout` bounds the whole pass;
    - a failing probe only marks its own record BAD;
    - probes still pending when the pass times out or `should_stop()` turns
      true are abandoned and their records marked BAD.

    Statuses are written from the calling thread, by record index, so the
    order of `records` never depends on network timing.
    Returns one ProbeResult per record, in the same order.
    """
    probe = probe or probe_url
    workers = max(1, int(concurrency_limit))
    total = len(records)
    results: list[Optional[ProbeResult]] = [None] * total
    deadline = monotonic() + total_timeout if total_timeout is not None else None

    def resolve(idx: int, result: ProbeResult):
        results[idx] = result
        records[idx].status = StreamStatus.GOOD if result.ok else StreamStatus.BAD
        if on_result:
            on_result(idx, result)

    executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="probe")
    pending = {}
    try:
        for idx, record in enumerate(records):
            url = (record.url or "").strip()
            if not url:
                resolve(idx, ProbeResult(False, reason="no url"))
                continue
            pending[executor.submit(_safe_probe, probe, url, float(timeout))] = idx

        while pending:
            if should_stop and should_stop():
                logger.info("Availability check stopped, {} probe(s) abandoned", len(pending))
                break
            remaining = None
            if deadline is not None:
                remaining = deadline - monotonic()
                if remaining <= 0:
                    logger.warning("Availability check timed out, {} probe(s) abandoned", len(pending))
                    break
            # Réveil périodique pour pouvoir honorer should_stop.
            wait_for = 0.5 if should_stop else remaining
            if remaining is not None and wait_for is not None:
                wait_for = min(wait_for, remaining)
            done, _ = wait(pending, timeout=wait_for, return_when=FIRST_COMPLETED)
            for fut in done:
                idx = pending.pop(fut)
                resolve(idx, fut.result())
    finally:
        executor.shutdown(wait=not pending, cancel_futures=True)

    for fut, idx in pending.items():
        fut.cancel()
        resolve(idx, ProbeResult(False, reason="abandoned"))

    good = sum(1 for r in results if r is not None and r.ok)
    logger.info("Availability check: {}/{} streams reachable", good, total)
    return [r if r is not None else ProbeResult(False, reason="abandoned") for r in results]
