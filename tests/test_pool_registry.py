"""
Tests for v3_adapter.contracts.pool_registry.
"""

import pytest
from unittest.mock import MagicMock, Mock
from eth_abi.exceptions import InsufficientDataBytes
from web3.exceptions import BadFunctionCallOutput, ContractLogicError

from v3_adapter.config import PANCAKESWAP_V3_INIT_CODE_HASH, UNISWAP_V3_INIT_CODE_HASH
from v3_adapter.contracts.pool_registry import (
    PoolRegistry,
    PoolSnapshot,
    compute_pool_address,
    read_slot0,
)
from v3_adapter.exceptions import InvalidInputError

from conftest import POOL, TOKEN_A, TOKEN_B, call_returning

UNISWAP_FACTORY = "0x1F98431c8aD98523631AE4a59f267346ea31F984"
USDC_ETH = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
WETH_ETH = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def word(value: int) -> bytes:
    return (value % 2 ** 256).to_bytes(32, 'big')


# ===================================================================
# CREATE2
# ===================================================================
class TestComputePoolAddress:

    def test_usdc_weth_005(self):
        address = compute_pool_address(UNISWAP_FACTORY, USDC_ETH, WETH_ETH, 500, UNISWAP_V3_INIT_CODE_HASH)
        assert address == "0x88e6A0c2dDD26FEEb64F039a2c41296FcB3f5640"

    def test_usdc_weth_03(self):
        address = compute_pool_address(UNISWAP_FACTORY, USDC_ETH, WETH_ETH, 3000, UNISWAP_V3_INIT_CODE_HASH)
        assert address == "0x8ad599c3A0ff1De082011EFDDc58f1908eb6e6D8"

    def test_order_invariant(self):
        a = compute_pool_address(UNISWAP_FACTORY, USDC_ETH, WETH_ETH, 500, UNISWAP_V3_INIT_CODE_HASH)
        b = compute_pool_address(UNISWAP_FACTORY, WETH_ETH, USDC_ETH, 500, UNISWAP_V3_INIT_CODE_HASH)
        assert a == b

    def test_hash_without_prefix(self):
        a = compute_pool_address(UNISWAP_FACTORY, USDC_ETH, WETH_ETH, 500, UNISWAP_V3_INIT_CODE_HASH)
        b = compute_pool_address(UNISWAP_FACTORY, USDC_ETH, WETH_ETH, 500, UNISWAP_V3_INIT_CODE_HASH[2:])
        assert a == b

    def test_fee_changes_address(self):
        a = compute_pool_address(UNISWAP_FACTORY, TOKEN_A, TOKEN_B, 500, UNISWAP_V3_INIT_CODE_HASH)
        b = compute_pool_address(UNISWAP_FACTORY, TOKEN_A, TOKEN_B, 3000, UNISWAP_V3_INIT_CODE_HASH)
        assert a != b

    def test_equal_tokens(self):
        with pytest.raises(InvalidInputError):
            compute_pool_address(UNISWAP_FACTORY, TOKEN_A, TOKEN_A, 500, UNISWAP_V3_INIT_CODE_HASH)


# ===================================================================
# PoolRegistry
# ===================================================================
class TestPoolRegistry:

    @pytest.fixture
    def factory(self, mock_w3):
        factory = MagicMock()
        mock_w3.eth.contract.return_value = factory
        return factory

    def test_get_pool_address_canonical_order(self, mock_w3, factory):
        factory.functions.getPool = call_returning(POOL)
        registry = PoolRegistry(mock_w3, UNISWAP_FACTORY)

        assert registry.get_pool_address(TOKEN_B, TOKEN_A, 500) == POOL
        factory.functions.getPool.assert_called_once_with(TOKEN_A, TOKEN_B, 500)

    def test_get_pool_address_missing(self, mock_w3, factory):
        factory.functions.getPool = call_returning(ZERO_ADDRESS)
        registry = PoolRegistry(mock_w3, UNISWAP_FACTORY)

        assert registry.get_pool_address(TOKEN_A, TOKEN_B, 500) is None

    def test_compute_uses_deployer(self, mock_w3, factory):
        deployer = "0x41ff9AA7e16B8B1a8a8dc4f0eFacd93D02d071c9"
        registry = PoolRegistry(
            mock_w3,
            "0x0BFbCF9fa4f9C56B0F40a671Ad40E0805A091865",
            init_code_hash=PANCAKESWAP_V3_INIT_CODE_HASH,
            pool_deployer=deployer
        )
        expected = compute_pool_address(deployer, TOKEN_A, TOKEN_B, 500, PANCAKESWAP_V3_INIT_CODE_HASH)
        assert registry.compute_pool_address(TOKEN_A, TOKEN_B, 500) == expected

    def test_compute_without_hash(self, mock_w3, factory):
        registry = PoolRegistry(mock_w3, UNISWAP_FACTORY)
        with pytest.raises(InvalidInputError):
            registry.compute_pool_address(TOKEN_A, TOKEN_B, 500)

    def test_tick_spacing_from_table(self, mock_w3, factory):
        registry = PoolRegistry(mock_w3, UNISWAP_FACTORY)
        assert registry.get_tick_spacing(3000) == 60
        factory.functions.feeAmountTickSpacing.assert_not_called()

    def test_tick_spacing_from_factory(self, mock_w3, factory):
        factory.functions.feeAmountTickSpacing = call_returning(20)
        registry = PoolRegistry(mock_w3, UNISWAP_FACTORY)
        assert registry.get_tick_spacing(400) == 20

    def test_unknown_fee_tier(self, mock_w3, factory):
        factory.functions.feeAmountTickSpacing = call_returning(0)
        registry = PoolRegistry(mock_w3, UNISWAP_FACTORY)
        with pytest.raises(InvalidInputError):
            registry.get_tick_spacing(1234)

    def test_pool_snapshot(self, mock_w3, factory):
        pool = factory  # один мок на все контракты
        pool.functions.token0 = call_returning(TOKEN_A)
        pool.functions.token1 = call_returning(TOKEN_B)
        pool.functions.fee = call_returning(500)
        pool.functions.tickSpacing = call_returning(10)
        pool.functions.liquidity = call_returning(10 ** 20)
        pool.functions.slot0 = call_returning((2 ** 96, -5, 3, 10, 10, 0, True))

        snapshot = PoolRegistry(mock_w3, UNISWAP_FACTORY).get_pool_snapshot(POOL)

        assert snapshot == PoolSnapshot(
            address=POOL,
            token0=TOKEN_A,
            token1=TOKEN_B,
            fee=500,
            tick_spacing=10,
            sqrt_price_x96=2 ** 96,
            tick=-5,
            liquidity=10 ** 20,
            observation_index=3,
            observation_cardinality=10,
        )
        assert snapshot.initialized


class TestReadSlot0:

    def test_raw_fallback_decodes_negative_tick(self, mock_w3):
        pool = MagicMock()
        pool.functions.slot0 = Mock(return_value=Mock(call=Mock(side_effect=BadFunctionCallOutput("decode"))))
        mock_w3.eth.contract.return_value = pool
        mock_w3.eth.call.return_value = word(2 ** 96) + word(-887) + word(1) + word(2) + word(2) + word(0) + word(1)

        assert read_slot0(mock_w3, POOL) == (2 ** 96, -887, 1, 2)

    def test_raw_fallback_short_response(self, mock_w3):
        pool = MagicMock()
        pool.functions.slot0 = Mock(return_value=Mock(call=Mock(side_effect=BadFunctionCallOutput("decode"))))
        mock_w3.eth.contract.return_value = pool
        mock_w3.eth.call.return_value = b'\x00' * 32

        with pytest.raises(InvalidInputError):
            read_slot0(mock_w3, POOL)

    def test_raw_fallback_on_short_abi_data(self, mock_w3):
        pool = MagicMock()
        pool.functions.slot0 = Mock(return_value=Mock(call=Mock(side_effect=InsufficientDataBytes("short"))))
        mock_w3.eth.contract.return_value = pool
        mock_w3.eth.call.return_value = word(2 ** 96) + word(60) + word(0) + word(1)

        assert read_slot0(mock_w3, POOL) == (2 ** 96, 60, 0, 1)

    @pytest.mark.parametrize("error", [ConnectionError("rpc down"), ContractLogicError("execution reverted")])
    def test_rpc_errors_propagate(self, mock_w3, error):
        """Только ошибки декодирования уходят в сырой eth_call."""
        pool = MagicMock()
        pool.functions.slot0 = Mock(return_value=Mock(call=Mock(side_effect=error)))
        mock_w3.eth.contract.return_value = pool

        with pytest.raises(type(error)):
            read_slot0(mock_w3, POOL)
        mock_w3.eth.call.assert_not_called()
