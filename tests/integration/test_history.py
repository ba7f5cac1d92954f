from __future__ import annotations

from fake_chain import FakeChain
from stakeledger.integration.history import StakeEventKind, fetch_stake_history


PKG = "0xpkg"


def _event(ts: int, digest: str, **parsed) -> dict:
    return {"id": {"txDigest": digest, "eventSeq": "0"}, "timestampMs": str(ts), "parsedJson": parsed}


def _chain() -> FakeChain:
    chain = FakeChain(epoch=1)
    chain.events[f"{PKG}::native_pool::StakedEvent"] = [
        _event(300, "d3", staker="0xa", iota_amount="1000", cert_amount="990"),
        _event(100, "d1", staker="0xb", iota_amount="5", cert_amount="5"),
    ]
    chain.events[f"{PKG}::native_pool::StakedToValidatorsEvent"] = [
        _event(250, "d2", staker="0xa", iota_amount="7", cert_amount="7", validators=["0xv1", "0xv2"]),
    ]
    chain.events[f"{PKG}::native_pool::UnstakedEvent"] = [
        _event(400, "d4", staker="0xc", iota_amount="50", cert_amount="48"),
    ]
    return chain


def test_history_is_merged_newest_first() -> None:
    history = fetch_stake_history(_chain(), PKG)

    assert [e.tx_digest for e in history] == ["d4", "d3", "d2", "d1"]
    assert history[0].kind is StakeEventKind.UNSTAKE
    assert history[0].native_amount == 50
    assert history[0].cert_amount == 48
    assert history[2].validators == ("0xv1", "0xv2")
    assert history[1].validators is None


def test_failing_event_kind_is_skipped() -> None:
    chain = _chain()
    chain.fail_events.add(f"{PKG}::native_pool::UnstakedEvent")
    history = fetch_stake_history(chain, PKG)
    assert [e.tx_digest for e in history] == ["d3", "d2", "d1"]


def test_malformed_event_is_skipped() -> None:
    chain = _chain()
    chain.events[f"{PKG}::native_pool::StakedEvent"].append({"id": {"txDigest": "bad"}, "timestampMs": "1"})
    chain.events[f"{PKG}::native_pool::UnstakedEvent"].append(_event(2, "bad2", iota_amount="-5"))
    history = fetch_stake_history(chain, PKG)
    assert len(history) == 4


def test_limit_is_passed_per_kind() -> None:
    history = fetch_stake_history(_chain(), PKG, limit=1)
    assert [e.tx_digest for e in history] == ["d4", "d3", "d2"]
