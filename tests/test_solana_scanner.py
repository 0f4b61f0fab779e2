from __future__ import annotations

import pytest

from burn_watch.chains.solana import SignatureScanner, TransactionFetcher, parse_transaction
from burn_watch.errors import MalformedTransaction, TransactionNotFound
from burn_watch.models import Cursor
from conftest import KEYS, TOKEN_PROGRAM, FakeClient, burn_ix, ix, sig_items, tx_json


def names(infos):
    return [i.signature for i in infos]


def test_first_scan_reads_lookback_window_oldest_first():
    client = FakeClient(signatures=sig_items("s5", "s4", "s3", "s2", "s1"))
    scanner = SignatureScanner(client=client, initial_lookback=3)
    assert names(scanner.scan("mint", None)) == ["s3", "s4", "s5"]
    assert client.scan_calls[0]["limit"] == 3
    assert client.scan_calls[0]["until"] is None


def test_scan_pages_back_to_cursor():
    client = FakeClient(signatures=sig_items("s5", "s4", "s3", "s2", "s1"))
    scanner = SignatureScanner(client=client, page_limit=2)
    out = scanner.scan("mint", Cursor(signature="s2"))
    assert names(out) == ["s3", "s4", "s5"]
    assert [c["before"] for c in client.scan_calls] == [None, "s4"]
    assert all(c["until"] == "s2" for c in client.scan_calls)


def test_scan_stops_at_cursor_when_until_ignored():
    class IgnoresUntil(FakeClient):
        def get_signatures_for_address(self, address, *, limit=1000, before=None, until=None, commitment="confirmed"):
            return super().get_signatures_for_address(address, limit=limit, before=before, commitment=commitment)

    client = IgnoresUntil(signatures=sig_items("s5", "s4", "s3", "s2", "s1"))
    scanner = SignatureScanner(client=client, page_limit=10)
    assert names(scanner.scan("mint", Cursor(signature="s3"))) == ["s4", "s5"]


def test_scan_range_flags_truncation_at_max_pages():
    client = FakeClient(signatures=sig_items("s5", "s4", "s3", "s2", "s1"))
    scanner = SignatureScanner(client=client, page_limit=1, max_pages=2)
    result = scanner.scan_range("mint", Cursor(signature="s1"))
    assert names(result.signatures) == ["s4", "s5"]
    assert result.truncated
    assert len(client.scan_calls) == 2

    # The older remainder is read by starting below the oldest collected one
    rest = scanner.scan_range("mint", Cursor(signature="s1"), before="s4")
    assert names(rest.signatures) == ["s2", "s3"]
    assert client.scan_calls[2]["before"] == "s4"
    assert client.scan_calls[2]["until"] == "s1"


def test_scan_range_reaching_cursor_is_not_truncated():
    client = FakeClient(signatures=sig_items("s3", "s2", "s1"))
    scanner = SignatureScanner(client=client, page_limit=1, max_pages=5)
    result = scanner.scan_range("mint", Cursor(signature="s1"))
    assert names(result.signatures) == ["s2", "s3"]
    assert not result.truncated


def test_scan_no_new_activity():
    client = FakeClient(signatures=sig_items("s2", "s1"))
    scanner = SignatureScanner(client=client)
    assert scanner.scan("mint", Cursor(signature="s2")) == []


def test_scan_skips_items_without_signature():
    client = FakeClient(signatures=[{"slot": 1}, {"signature": "a", "slot": 2, "err": None}])
    scanner = SignatureScanner(client=client)
    assert names(scanner.scan("mint", None)) == ["a"]


def test_parse_transaction_with_inner_instructions():
    res = tx_json(
        [ix(4, [], b"\x02\x00"), ix(4, [], b"\x03")],
        inner=[{"index": 1, "instructions": [burn_ix(10), burn_ix(20, decimals=6)]}],
        slot=42,
    )
    tx = parse_transaction("sigA", res)
    assert tx.slot == 42
    assert not tx.failed
    assert [i.position for i in tx.instructions] == ["0", "1", "1.0", "1.1"]
    assert tx.instructions[2].program_id == TOKEN_PROGRAM
    assert tx.instructions[2].accounts == (KEYS[1], KEYS[2], KEYS[0])
    assert tx.instructions[3].data[0] == 15


def test_parse_transaction_resolves_loaded_addresses():
    lookup = "LookupWritab1e111111111111111111111111111111"
    res = tx_json([ix(3, [len(KEYS), 2, 0], b"\x08" + (5).to_bytes(8, "little"))], loaded={"writable": [lookup], "readonly": []})
    tx = parse_transaction("sigB", res)
    assert tx.instructions[0].accounts[0] == lookup


def test_parse_transaction_failed_flag():
    tx = parse_transaction("sigC", tx_json([burn_ix(1)], err={"InstructionError": [0, "Custom"]}))
    assert tx.failed


@pytest.mark.parametrize(
    "res",
    [
        {"slot": 1, "meta": {}, "transaction": ["AQID", "base64"]},
        {"slot": 1, "meta": {}},
        tx_json([{"programIdIndex": 99, "accounts": [], "data": ""}]),
        tx_json([{"programIdIndex": 3, "accounts": [0], "data": "0OIl"}]),
    ],
)
def test_parse_transaction_malformed(res):
    with pytest.raises(MalformedTransaction):
        parse_transaction("bad", res)


def test_fetch_missing_transaction_is_not_found():
    fetcher = TransactionFetcher(client=FakeClient(txs={}))
    with pytest.raises(TransactionNotFound):
        fetcher.fetch("gone")


def test_fetch_returns_parsed_transaction():
    fetcher = TransactionFetcher(client=FakeClient(txs={"s1": tx_json([burn_ix(7)])}))
    tx = fetcher.fetch("s1")
    assert tx.signature == "s1"
    assert len(tx.instructions) == 1
