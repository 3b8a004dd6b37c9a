# /test/test_state.py
from autoswap.core.state import BalanceSnapshot, CycleResult, SessionState


def test_recorders_return_updated_copies():
    state = SessionState()
    result = CycleResult(success=2, failure=1)

    recorded = state.record_pair_result("USDT/ETH", result)
    replenished = recorded.record_replenishment("USDT/ETH", "USDT", True)

    assert state.pair_results == {}
    assert recorded.pair_results == {"USDT/ETH": result}
    assert recorded.replenishments == []
    assert replenished.replenishments == [{"pair": "USDT/ETH", "asset": "USDT", "ok": True}]
    assert replenished.session_id == state.session_id


def test_totals_sum_every_pair():
    state = (
        SessionState()
        .record_pair_result("USDT/ETH", CycleResult(success=3, failure=0))
        .record_pair_result("USDT/BTC", CycleResult(success=1, failure=2))
    )
    assert state.totals == CycleResult(success=4, failure=2)
    assert SessionState().totals == CycleResult()


def test_missing_after_snapshot_keeps_field_empty():
    before = BalanceSnapshot(native=10**18, tokens={"USDT": 5})
    state = SessionState().with_balances(before=before).with_balances(after=None)

    assert state.balances_before == before
    assert state.balances_after is None
    assert state.balances_before.get("BTC") == 0
