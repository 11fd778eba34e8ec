"""Tests for the availability checker and the default HTTP probe."""

import threading
import time
from unittest.mock import MagicMock

import pytest
import requests

from iptv_catalog import ProbeError, ProbeResult, StreamRecord, StreamStatus, check_availability, probe_url


def _records(*urls):
    return [StreamRecord(url=u, title=str(i)) for i, u in enumerate(urls)]


def test_good_and_bad_statuses_follow_record_order():
    records = _records("http://a/1", "http://a/2", "http://a/3")

    results = check_availability(records, probe=lambda url, timeout: url != "http://a/2")

    assert [r.status for r in records] == [StreamStatus.GOOD, StreamStatus.BAD, StreamStatus.GOOD]
    assert [r.ok for r in results] == [True, False, True]


def test_probe_failures_mark_only_that_record_bad():
    def probe(url, timeout):
        if url.endswith("boom"):
            raise RuntimeError("boom")
        if url.endswith("transport"):
            raise ProbeError(url, "timeout")
        return ProbeResult(True, 200)

    records = _records("http://a/boom", "http://a/ok", "http://a/transport")
    results = check_availability(records, probe=probe)

    assert [r.status for r in records] == [StreamStatus.BAD, StreamStatus.GOOD, StreamStatus.BAD]
    assert results[0].reason == "RuntimeError"
    assert results[2].reason == "timeout"


def test_empty_url_is_bad_without_probing():
    calls = []
    records = _records("", "http://a/1")

    check_availability(records, probe=lambda url, timeout: calls.append(url) or True)

    assert calls == ["http://a/1"]
    assert records[0].status is StreamStatus.BAD


def test_concurrency_is_bounded():
    lock = threading.Lock()
    state = {"running": 0, "peak": 0}

    def probe(url, timeout):
        with lock:
            state["running"] += 1
            state["peak"] = max(state["peak"], state["running"])
        time.sleep(0.05)
        with lock:
            state["running"] -= 1
        return True

    records = _records(*[f"http://a/{i}" for i in range(8)])
    check_availability(records, concurrency_limit=2, probe=probe)

    assert state["peak"] <= 2
    assert all(r.status is StreamStatus.GOOD for r in records)


def test_timeout_is_passed_to_probe():
    seen = []
    check_availability(_records("http://a/1"), timeout=1.5, probe=lambda url, t: seen.append(t) or True)

    assert seen == [1.5]


def test_total_timeout_marks_pending_records_bad():
    release = threading.Event()

    def probe(url, timeout):
        if url.endswith("slow"):
            release.wait(5)
        return True

    records = _records("http://a/fast", "http://a/slow")
    try:
        started = time.monotonic()
        results = check_availability(records, concurrency_limit=2, total_timeout=0.3, probe=probe)
        elapsed = time.monotonic() - started
    finally:
        release.set()

    assert elapsed < 3
    assert records[0].status is StreamStatus.GOOD
    assert records[1].status is StreamStatus.BAD
    assert results[1].reason == "abandoned"


def test_should_stop_abandons_everything_pending():
    records = _records("http://a/1", "http://a/2")

    check_availability(records, probe=lambda url, timeout: True, should_stop=lambda: True)

    assert [r.status for r in records] == [StreamStatus.BAD, StreamStatus.BAD]


def test_on_result_is_called_once_per_record():
    seen = {}
    records = _records("http://a/1", "http://a/2")

    check_availability(records, probe=lambda url, timeout: True, on_result=lambda i, r: seen.setdefault(i, r))

    assert sorted(seen) == [0, 1]
    assert all(r.ok for r in seen.values())


def test_probe_url_acestream_and_local_files(tmp_path):
    clip = tmp_path / "clip.ts"
    clip.write_bytes(b"\x47")

    assert probe_url("acestream://abc", 1).ok
    assert probe_url(str(clip), 1).ok
    assert probe_url(clip.as_uri(), 1).ok
    assert not probe_url(str(tmp_path / "missing.ts"), 1).ok
    assert probe_url("rtmp://live/stream", 1).reason == "unsupported scheme rtmp"


def _session(head=None, head_exc=None, get=None, get_exc=None):
    session = MagicMock()
    if head_exc:
        session.head.side_effect = head_exc
    else:
        session.head.return_value = MagicMock(status_code=head)
    if get_exc:
        session.get.side_effect = get_exc
    else:
        session.get.return_value.__enter__.return_value = MagicMock(status_code=get)
    return session


def test_probe_url_head_success_skips_get():
    session = _session(head=200)

    result = probe_url("http://a/1", 2, session=session)

    assert result == ProbeResult(True, 200, "HEAD 200")
    session.get.assert_not_called()


def test_probe_url_falls_back_to_ranged_get():
    session = _session(head=405, get=206)

    result = probe_url("http://a/1", 2, session=session)

    assert result.ok and result.status_code == 206
    headers = session.get.call_args.kwargs["headers"]
    assert headers["Range"] == "bytes=0-1023"
    assert session.get.call_args.kwargs["timeout"] == 2


def test_probe_url_head_error_then_get_failure_status():
    session = _session(head_exc=requests.exceptions.ConnectionError(), get=404)

    result = probe_url("http://a/1", 2, session=session)

    assert result == ProbeResult(False, 404, "GET 404")


def test_probe_url_transport_errors_raise_probe_error():
    session = _session(head=500, get_exc=requests.exceptions.ReadTimeout())

    with pytest.raises(ProbeError, match="timeout"):
        probe_url("http://a/1", 2, session=session)


def test_default_probe_failure_is_downgraded_to_bad(monkeypatch):
    def fake_probe(url, timeout):
        raise ProbeError(url, "ConnectionError")

    monkeypatch.setattr("iptv_catalog.workers.probe.probe_url", fake_probe)
    records = _records("http://unreachable.invalid/")

    check_availability(records)

    assert records[0].status is StreamStatus.BAD


def test_out_of_order_completion_keeps_results_by_index():
    delays = {"http://a/slow": 0.2, "http://a/mid": 0.1, "http://a/fast": 0.0}
    finished = []

    def check(url, timeout):
        time.sleep(delays[url])
        finished.append(url)
        return ProbeResult(url != "http://a/mid", reason=url)

    records = _records("http://a/slow", "http://a/mid", "http://a/fast")
    results = check_availability(records, concurrency_limit=3, probe=check)

    assert finished[0] == "http://a/fast"
    assert [r.reason for r in results] == ["http://a/slow", "http://a/mid", "http://a/fast"]
    assert [r.status for r in records] == [StreamStatus.GOOD, StreamStatus.BAD, StreamStatus.GOOD]
