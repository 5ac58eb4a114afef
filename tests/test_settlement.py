"""
Tests for v3_adapter.settlement: pull / approve / refund around one operation.
"""

import logging

import pytest
from unittest.mock import MagicMock

from v3_adapter.exceptions import PrecisionViolationError
from v3_adapter.settlement import RefundFailure, Settlement, SettlementLeg, legs_for

from conftest import OPERATOR, PAYER, TOKEN_A, TOKEN_B

NPM = "0xC36442b4a4522E871399CD717aBDD847Ab11FE88"


@pytest.fixture
def tokens():
    return {TOKEN_A: MagicMock(name='token_a'), TOKEN_B: MagicMock(name='token_b')}


@pytest.fixture
def settlement(mock_w3, mock_account, tokens):
    return Settlement(mock_w3, mock_account, token_factory=lambda address: tokens[address])


def make_legs(amount_a=1000, amount_b=2000):
    return legs_for((TOKEN_A, TOKEN_B), (amount_a, amount_b))


class TestPull:

    def test_pulls_full_desired(self, settlement, tokens):
        settlement.pull(PAYER, make_legs())

        tokens[TOKEN_A].transfer_from.assert_called_once_with(PAYER, OPERATOR, 1000)
        tokens[TOKEN_B].transfer_from.assert_called_once_with(PAYER, OPERATOR, 2000)

    def test_zero_leg_skipped(self, settlement, tokens):
        settlement.pull(PAYER, make_legs(amount_b=0))
        tokens[TOKEN_B].transfer_from.assert_not_called()

    @pytest.mark.parametrize("payer", [None, OPERATOR, OPERATOR.lower()])
    def test_operator_is_payer(self, settlement, tokens, payer):
        settlement.pull(payer, make_legs())
        tokens[TOKEN_A].transfer_from.assert_not_called()
        tokens[TOKEN_B].transfer_from.assert_not_called()

    def test_fail_fast(self, settlement, tokens):
        """Ошибка первого transferFrom останавливает операцию."""
        tokens[TOKEN_A].transfer_from.side_effect = ValueError("insufficient allowance")

        with pytest.raises(ValueError):
            settlement.pull(PAYER, make_legs())
        tokens[TOKEN_B].transfer_from.assert_not_called()


class TestApprove:

    def test_approves_exact_desired(self, settlement, tokens):
        settlement.approve(NPM, make_legs())

        tokens[TOKEN_A].approve.assert_called_once_with(NPM, 1000)
        tokens[TOKEN_B].approve.assert_called_once_with(NPM, 2000)

    def test_prepare_for_operator_still_approves(self, settlement, tokens):
        settlement.prepare(None, NPM, make_legs())

        tokens[TOKEN_A].transfer_from.assert_not_called()
        tokens[TOKEN_A].approve.assert_called_once_with(NPM, 1000)


class TestRefund:

    def test_refunds_unused(self, settlement, tokens):
        """desired (1000, 2000), consumed (900, 2000) -> возврат (100, 0)."""
        outcome = settlement.refund(PAYER, make_legs(), (900, 2000))

        assert outcome.refunds == [100, 0]
        assert outcome.failures == []
        tokens[TOKEN_A].transfer.assert_called_once_with(PAYER, 100)
        tokens[TOKEN_B].transfer.assert_not_called()

    def test_operator_keeps_unused(self, settlement, tokens):
        outcome = settlement.refund(None, make_legs(), (900, 1500))

        assert outcome.refunds == [100, 500]
        tokens[TOKEN_A].transfer.assert_not_called()
        tokens[TOKEN_B].transfer.assert_not_called()

    def test_failed_refund_recorded(self, settlement, tokens, caplog):
        tokens[TOKEN_A].transfer.side_effect = ValueError("transfer paused")

        with caplog.at_level(logging.ERROR, logger='v3_adapter.settlement'):
            outcome = settlement.refund(PAYER, make_legs(), (900, 1500))

        # второй токен возвращается независимо от первого
        tokens[TOKEN_B].transfer.assert_called_once_with(PAYER, 500)
        assert outcome.refunds == [100, 500]
        assert outcome.failures == [
            RefundFailure(token=TOKEN_A, recipient=PAYER, amount=100, error="transfer paused")
        ]
        assert "Refund of 100" in caplog.text

    def test_overconsumption_before_any_transfer(self, settlement, tokens):
        with pytest.raises(PrecisionViolationError):
            settlement.refund(PAYER, make_legs(), (900, 2001))

        tokens[TOKEN_A].transfer.assert_not_called()
        tokens[TOKEN_B].transfer.assert_not_called()


def test_legs_for():
    assert legs_for((TOKEN_A, TOKEN_B), (1, 2)) == [SettlementLeg(TOKEN_A, 1), SettlementLeg(TOKEN_B, 2)]
