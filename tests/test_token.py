"""
Tests for ERC20Token and the ContractClient transaction path.
"""

import pytest

from v3_adapter.contracts.token import ERC20Token
from v3_adapter.exceptions import AdapterError, TransactionRevertedError
from v3_adapter.utils import NonceManager

from conftest import OPERATOR, PAYER, TOKEN_A, call_returning

NPM = "0xC36442b4a4522E871399CD717aBDD847Ab11FE88"


@pytest.fixture
def token(mock_w3, mock_account, mock_erc20_contract):
    mock_w3.eth.contract.return_value = mock_erc20_contract
    return ERC20Token(mock_w3, TOKEN_A, account=mock_account, nonce_manager=NonceManager(mock_w3, OPERATOR))


class TestApprove:

    def test_approve_exact_amount(self, token, mock_erc20_contract, mock_w3):
        receipt = token.approve(NPM, 1234)

        mock_erc20_contract.functions.approve.assert_called_once_with(NPM, 1234)
        mock_w3.eth.send_raw_transaction.assert_called_once_with(b'signed_tx')
        assert receipt['status'] == 1

    def test_approve_skipped_when_allowance_equal(self, token, mock_erc20_contract, mock_w3):
        mock_erc20_contract.functions.allowance = call_returning(1234)

        assert token.approve(NPM, 1234) == {}
        mock_erc20_contract.functions.approve.assert_not_called()
        mock_w3.eth.send_raw_transaction.assert_not_called()

    def test_approve_resets_larger_allowance(self, token, mock_erc20_contract):
        """Больший allowance тоже перезаписывается точной суммой."""
        mock_erc20_contract.functions.allowance = call_returning(10 ** 30)

        token.approve(NPM, 1234)
        mock_erc20_contract.functions.approve.assert_called_once_with(NPM, 1234)

    def test_approve_without_account(self, mock_w3, mock_erc20_contract):
        mock_w3.eth.contract.return_value = mock_erc20_contract
        with pytest.raises(AdapterError, match="Account not configured"):
            ERC20Token(mock_w3, TOKEN_A).approve(NPM, 1)


class TestTransfers:

    def test_transfer_from(self, token, mock_erc20_contract):
        token.transfer_from(PAYER, OPERATOR, 500)
        mock_erc20_contract.functions.transferFrom.assert_called_once_with(PAYER, OPERATOR, 500)

    def test_transfer(self, token, mock_erc20_contract):
        token.transfer(PAYER, 7)
        mock_erc20_contract.functions.transfer.assert_called_once_with(PAYER, 7)

    def test_reads(self, token):
        assert token.decimals() == 18
        assert token.allowance(OPERATOR, NPM) == 0


class TestTransactionLifecycle:

    def test_nonce_confirmed_after_mining(self, token):
        token.transfer(PAYER, 1)
        assert not token.nonce_manager._pending_nonces

    def test_reverted_receipt(self, token, mock_w3, mock_receipt_fail):
        mock_w3.eth.wait_for_transaction_receipt.return_value = mock_receipt_fail

        with pytest.raises(TransactionRevertedError) as exc_info:
            token.transfer(PAYER, 1)

        assert exc_info.value.operation == 'transfer'
        # nonce потрачен даже при откате
        assert not token.nonce_manager._pending_nonces
        assert token.nonce_manager.get_next_nonce() == 101

    def test_nonce_released_when_send_fails(self, token, mock_w3):
        mock_w3.eth.send_raw_transaction.side_effect = ConnectionError("rpc down")

        with pytest.raises(ConnectionError):
            token.transfer(PAYER, 1)

        assert token.nonce_manager.get_next_nonce() == 100

    def test_eip1559_gas_params(self, token, mock_erc20_contract):
        token.transfer(PAYER, 1)

        tx_params = mock_erc20_contract.functions.transfer.return_value.build_transaction.call_args[0][0]
        assert tx_params['maxPriorityFeePerGas'] == 1_000_000_000
        assert tx_params['maxFeePerGas'] == 2 * 3_000_000_000 + 1_000_000_000
        assert tx_params['gas'] == int(65_000 * 1.2)
        assert tx_params['nonce'] == 100

    def test_legacy_gas_without_base_fee(self, token, mock_w3, mock_erc20_contract):
        mock_w3.eth.get_block.return_value = {'timestamp': 1}

        token.transfer(PAYER, 1)

        tx_params = mock_erc20_contract.functions.transfer.return_value.build_transaction.call_args[0][0]
        assert tx_params['gasPrice'] == 5_000_000_000
        assert 'maxFeePerGas' not in tx_params

    def test_without_nonce_manager_reads_pending_count(self, mock_w3, mock_account, mock_erc20_contract):
        mock_w3.eth.contract.return_value = mock_erc20_contract
        mock_w3.set_nonce(77)
        token = ERC20Token(mock_w3, TOKEN_A, account=mock_account)

        token.transfer(PAYER, 1)

        tx_params = mock_erc20_contract.functions.transfer.return_value.build_transaction.call_args[0][0]
        assert tx_params['nonce'] == 77
