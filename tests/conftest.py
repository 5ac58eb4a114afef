"""
Shared fixtures for all tests.
"""

import pytest
from unittest.mock import Mock, MagicMock
from web3 import Web3


class MockWeb3:
    """Переиспользуемый мок Web3 для тестов."""

    def __init__(self, initial_nonce: int = 100):
        self._nonce = initial_nonce
        self.eth = MagicMock()
        self.eth.get_transaction_count = MagicMock(return_value=self._nonce)
        self.eth.gas_price = 5_000_000_000  # 5 gwei
        self.eth.max_priority_fee = 1_000_000_000
        self.eth.chain_id = 56
        self.eth.block_number = 40_000_000
        self.eth.get_block = MagicMock(return_value={
            'timestamp': 1_700_000_000,
            'baseFeePerGas': 3_000_000_000,
        })
        self.eth.send_raw_transaction = MagicMock(return_value=b'\x12\x34' * 16)
        self.eth.wait_for_transaction_receipt = MagicMock(return_value={
            'status': 1,
            'gasUsed': 300_000,
            'logs': [],
            'transactionHash': b'\x12\x34' * 16
        })
        self.eth.call = MagicMock(return_value=b'\x00' * 32)
        self.eth.contract = MagicMock()

    def set_nonce(self, nonce: int):
        self._nonce = nonce
        self.eth.get_transaction_count.return_value = nonce

    def set_timestamp(self, timestamp: int):
        self.eth.get_block.return_value = {'timestamp': timestamp, 'baseFeePerGas': 3_000_000_000}


def call_returning(value):
    """contract.functions.x(...) -> объект с .call() == value."""
    return Mock(return_value=Mock(call=Mock(return_value=value)))


def tx_function(gas: int = 100_000):
    """contract.functions.x -> функция с estimate_gas/build_transaction."""
    return Mock(return_value=Mock(
        estimate_gas=Mock(return_value=gas),
        build_transaction=Mock(return_value={'to': '0x', 'data': '0x'}),
    ))


def event_returning(args_list):
    """contract.events.X -> X().process_receipt(...) == [{'args': ...}, ...]."""
    return Mock(return_value=Mock(
        process_receipt=Mock(return_value=[{'args': args} for args in args_list])
    ))


@pytest.fixture
def mock_w3():
    """Мок Web3 instance."""
    return MockWeb3()


@pytest.fixture
def mock_account():
    """Мок LocalAccount."""
    account = Mock()
    account.address = OPERATOR
    account.sign_transaction = Mock(return_value=Mock(raw_transaction=b'signed_tx'))
    return account


@pytest.fixture
def mock_erc20_contract():
    """Мок ERC20 контракта."""
    contract = MagicMock()
    contract.functions.balanceOf = call_returning(1000 * 10**18)
    contract.functions.decimals = call_returning(18)
    contract.functions.allowance = call_returning(0)
    contract.functions.approve = tx_function(60_000)
    contract.functions.transfer = tx_function(65_000)
    contract.functions.transferFrom = tx_function(80_000)
    return contract


@pytest.fixture
def mock_receipt_success():
    """Успешный receipt транзакции."""
    return {
        'status': 1,
        'gasUsed': 300_000,
        'logs': [],
        'transactionHash': b'\x12\x34' * 16,
        'blockNumber': 40_000_000,
    }


@pytest.fixture
def mock_receipt_fail():
    """Неуспешный receipt транзакции."""
    return {
        'status': 0,
        'gasUsed': 300_000,
        'logs': [],
        'transactionHash': b'\xde\xad' * 16,
        'blockNumber': 40_000_000,
    }


# Тестовые адреса (TOKEN_A < TOKEN_B по числовому значению)
TOKEN_A = "0x1111111111111111111111111111111111111111"
TOKEN_B = "0x9999999999999999999999999999999999999999"
OPERATOR = "0x1234567890123456789012345678901234567890"
PAYER = "0x2222222222222222222222222222222222222222"
POOL = "0x4444444444444444444444444444444444444444"
USDT_BSC = Web3.to_checksum_address("0x55d398326f99059fF775485246999027B3197955")
WBNB = Web3.to_checksum_address("0xbb4CdB9CBd36B01bD1cBaEBF2De08d9173bc095c")
