"""
Tests for v3_adapter.contracts.oracle: spot vs TWAP selection.
"""

import pytest
from unittest.mock import MagicMock

from v3_adapter.contracts.oracle import PoolOracle, should_use_twap
from v3_adapter.exceptions import InvalidInputError

from conftest import POOL, call_returning

NOW = 1_700_000_000


def make_oracle(mock_w3, monkeypatch, slot0, observations, tick_cumulatives=(0, 0)):
    """
    slot0: (sqrtPriceX96, tick, observationIndex, observationCardinality)
    observations: index -> (blockTimestamp, tickCumulative, secondsPerLiquidity, initialized)
    """
    pool = MagicMock()
    pool.functions.observations = MagicMock(
        side_effect=lambda i: MagicMock(call=MagicMock(return_value=observations[i]))
    )
    pool.functions.observe = call_returning([list(tick_cumulatives), [0, 0]])
    mock_w3.eth.contract.return_value = pool
    mock_w3.set_timestamp(NOW)

    monkeypatch.setattr('v3_adapter.contracts.oracle.read_slot0', lambda w3, address: slot0)
    return PoolOracle(mock_w3), pool


# ===================================================================
# Policy
# ===================================================================
class TestShouldUseTwap:

    def test_history_shorter_than_window_uses_spot(self):
        assert should_use_twap(599, 600) is False

    def test_history_equal_to_window_uses_twap(self):
        assert should_use_twap(600, 600) is True

    def test_history_longer_than_window_uses_twap(self):
        assert should_use_twap(86_400, 600) is True

    def test_empty_history_uses_spot(self):
        assert should_use_twap(0, 600) is False


# ===================================================================
# Oldest observation
# ===================================================================
class TestOldestObservationAge:

    def test_full_ring_buffer_uses_next_slot(self, mock_w3, monkeypatch):
        # index=2, cardinality=5 -> самое старое в слоте 3
        observations = {3: (NOW - 1000, 0, 0, True), 0: (NOW - 50, 0, 0, True)}
        oracle, pool = make_oracle(mock_w3, monkeypatch, (0, 0, 2, 5), observations)
        assert oracle.oldest_observation_age(POOL) == 1000
        pool.functions.observations.assert_called_once_with(3)

    def test_uninitialized_next_slot_falls_back_to_zero(self, mock_w3, monkeypatch):
        observations = {
            3: (0, 0, 0, False),
            0: (NOW - 700, 0, 0, True),
        }
        oracle, pool = make_oracle(mock_w3, monkeypatch, (0, 0, 2, 10), observations)
        assert oracle.oldest_observation_age(POOL) == 700

    def test_index_wraps_around(self, mock_w3, monkeypatch):
        observations = {0: (NOW - 42, 0, 0, True)}
        oracle, pool = make_oracle(mock_w3, monkeypatch, (0, 0, 4, 5), observations)
        assert oracle.oldest_observation_age(POOL) == 42
        pool.functions.observations.assert_called_once_with(0)

    def test_uninitialized_pool(self, mock_w3, monkeypatch):
        oracle, _ = make_oracle(mock_w3, monkeypatch, (0, 0, 0, 0), {})
        with pytest.raises(InvalidInputError):
            oracle.oldest_observation_age(POOL)


# ===================================================================
# consult
# ===================================================================
class TestConsult:

    def test_mean_tick(self, mock_w3, monkeypatch):
        oracle, pool = make_oracle(mock_w3, monkeypatch, (0, 0, 0, 1), {}, tick_cumulatives=(1_000, 61_000))
        assert oracle.consult(POOL, 600) == 100
        pool.functions.observe.assert_called_once_with([600, 0])

    def test_negative_mean_rounds_down(self, mock_w3, monkeypatch):
        # -1000 / 600 = -1.67 -> -2
        oracle, _ = make_oracle(mock_w3, monkeypatch, (0, 0, 0, 1), {}, tick_cumulatives=(0, -1_000))
        assert oracle.consult(POOL, 600) == -2

    def test_zero_window_rejected(self, mock_w3, monkeypatch):
        oracle, _ = make_oracle(mock_w3, monkeypatch, (0, 0, 0, 1), {})
        with pytest.raises(InvalidInputError):
            oracle.consult(POOL, 0)


# ===================================================================
# select_tick
# ===================================================================
class TestSelectTick:

    @pytest.mark.parametrize("age, expect_twap", [(599, False), (600, True), (601, True)])
    def test_threshold(self, mock_w3, monkeypatch, age, expect_twap):
        observations = {1: (NOW - age, 0, 0, True)}
        spot_tick = 777
        oracle, pool = make_oracle(
            mock_w3, monkeypatch, (0, spot_tick, 0, 2), observations, tick_cumulatives=(0, 600 * 123)
        )
        result = oracle.select_tick(POOL, 600)

        assert result.is_twap is expect_twap
        assert result.oldest_observation_age == age
        assert result.tick == (123 if expect_twap else spot_tick)
        if expect_twap:
            pool.functions.observe.assert_called_once_with([600, 0])
        else:
            pool.functions.observe.assert_not_called()
