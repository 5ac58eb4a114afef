"""
Configuration for the V3 liquidity adapter.

Адреса контрактов Uniswap V3 и форков по сетям плюс загрузка
настроек из окружения (.env).
"""

import os
from dataclasses import dataclass, field
from typing import Dict, Optional

from dotenv import load_dotenv

from .exceptions import InvalidInputError

UNISWAP_V3_INIT_CODE_HASH = "0xe34f199b19b2b4f47f68442619d555527d244f78a3297ea89325f843f87b8b54"
PANCAKESWAP_V3_INIT_CODE_HASH = "0x6ce8eb472fa82df5469c6ab6d485f17c3ad13c8cd7af59b3d4a8026c5ce0f7e2"

DEFAULT_TWAP_WINDOW = 600  # секунд


@dataclass
class V3Deployment:
    """Адреса одного V3 DEX в одной сети."""
    name: str
    factory: str
    position_manager: str
    quoter: str
    pool_init_code_hash: str
    swap_router: str = ""  # SwapRouter (v1, deadline в структуре); "" = нет в сети
    pool_deployer: str = ""  # PancakeSwap V3: пулы деплоит отдельный контракт


# ============================================================
# DEPLOYMENTS
# ============================================================

UNISWAP_V3_ETHEREUM = V3Deployment(
    name="Uniswap V3",
    factory="0x1F98431c8aD98523631AE4a59f267346ea31F984",
    position_manager="0xC36442b4a4522E871399CD717aBDD847Ab11FE88",
    quoter="0x61fFE014bA17989E743c5F6cB21bF9697530B21e",  # QuoterV2
    pool_init_code_hash=UNISWAP_V3_INIT_CODE_HASH,
    swap_router="0xE592427A0AEce92De3Edee1F18E0157C05861564",
)

# Arbitrum: те же адреса, что и в Ethereum
UNISWAP_V3_ARBITRUM = V3Deployment(
    name="Uniswap V3",
    factory="0x1F98431c8aD98523631AE4a59f267346ea31F984",
    position_manager="0xC36442b4a4522E871399CD717aBDD847Ab11FE88",
    quoter="0x61fFE014bA17989E743c5F6cB21bF9697530B21e",
    pool_init_code_hash=UNISWAP_V3_INIT_CODE_HASH,
    swap_router="0xE592427A0AEce92De3Edee1F18E0157C05861564",
)

# Base: только SwapRouter02 (без deadline в структуре), свопы не настроены
UNISWAP_V3_BASE = V3Deployment(
    name="Uniswap V3",
    factory="0x33128a8fC17869897dcE68Ed026d694621f6FDfD",
    position_manager="0x03a520b32C04BF3bEEf7BEb72E919cf822Ed34f1",
    quoter="0x3d4e44Eb1374240CE5F1B871ab261CD16335B76a",
    pool_init_code_hash=UNISWAP_V3_INIT_CODE_HASH,
)

PANCAKESWAP_V3_BSC = V3Deployment(
    name="PancakeSwap V3",
    factory="0x0BFbCF9fa4f9C56B0F40a671Ad40E0805A091865",
    position_manager="0x46A15B0b27311cedF172AB29E4f4766fbE7F4364",
    quoter="0xB048Bbc1Ee6b733FFfCFb9e9CeF7375518e25997",
    pool_init_code_hash=PANCAKESWAP_V3_INIT_CODE_HASH,
    swap_router="0x1b81D678ffb9C0263b24A7847620C99d213eB14E",
    pool_deployer="0x41ff9AA7e16B8B1a8a8dc4f0eFacd93D02d071c9",
)

UNISWAP_V3_BSC = V3Deployment(
    name="Uniswap V3",
    factory="0xdB1d10011AD0Ff90774D0C6Bb92e5C5c8b4461F7",
    position_manager="0x7b8A01B39D58278b5DE7e48c8449c9f4F5170613",
    quoter="0x78D78E420Da98ad378D7799bE8f4AF69033EB077",
    pool_init_code_hash=UNISWAP_V3_INIT_CODE_HASH,
)

# chain_id -> {dex key -> deployment}; первый ключ: DEX по умолчанию
V3_DEPLOYMENTS: Dict[int, Dict[str, V3Deployment]] = {
    1: {"uniswap": UNISWAP_V3_ETHEREUM},
    42161: {"uniswap": UNISWAP_V3_ARBITRUM},
    8453: {"uniswap": UNISWAP_V3_BASE},
    56: {"pancakeswap": PANCAKESWAP_V3_BSC, "uniswap": UNISWAP_V3_BSC},
}

DEFAULT_RPC_URLS = {
    1: "https://eth.llamarpc.com",
    42161: "https://arb1.arbitrum.io/rpc",
    8453: "https://mainnet.base.org",
    56: "https://bsc-dataseed.binance.org/",
}


@dataclass
class AdapterConfig:
    """Настройки одного экземпляра адаптера."""
    chain_id: int
    rpc_url: str
    factory: str
    position_manager: str
    quoter: str
    swap_router: str = ""
    pool_init_code_hash: str = ""
    pool_deployer: str = ""
    twap_window: int = DEFAULT_TWAP_WINDOW
    tx_timeout: int = 300
    gas_buffer_percent: int = 20
    private_key: Optional[str] = field(default=None, repr=False)

    @classmethod
    def from_deployment(cls, chain_id: int, rpc_url: str, deployment: V3Deployment, **overrides) -> 'AdapterConfig':
        values = dict(
            chain_id=chain_id,
            rpc_url=rpc_url,
            factory=deployment.factory,
            position_manager=deployment.position_manager,
            quoter=deployment.quoter,
            swap_router=deployment.swap_router,
            pool_init_code_hash=deployment.pool_init_code_hash,
            pool_deployer=deployment.pool_deployer,
        )
        values.update(overrides)
        return cls(**values)


def get_deployment(chain_id: int, dex: str = None) -> V3Deployment:
    """
    Деплоймент V3 для сети.

    Raises:
        InvalidInputError: сеть или DEX не поддерживается
    """
    if chain_id not in V3_DEPLOYMENTS:
        raise InvalidInputError(f"Unsupported chain ID: {chain_id}")

    deployments = V3_DEPLOYMENTS[chain_id]
    if dex is None:
        return next(iter(deployments.values()))

    key = dex.lower()
    if key not in deployments:
        raise InvalidInputError(
            f"Unknown DEX '{dex}' for chain {chain_id}. Available: {list(deployments)}"
        )
    return deployments[key]


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise InvalidInputError(f"{name} must be an integer, got {value!r}")


def load_config(chain_id: int = None, dex: str = None, env_file: str = None) -> AdapterConfig:
    """
    Загрузка конфигурации из окружения / .env.

    Адреса, не заданные в окружении, берутся из V3_DEPLOYMENTS.

    Переменные: RPC_URL, CHAIN_ID, DEX, FACTORY, NONFUNGIBLE_POSITION_MANAGER,
    SWAP_ROUTER, QUOTER, POOL_INIT_CODE_HASH, POOL_DEPLOYER, TWAP_WINDOW,
    TX_TIMEOUT, GAS_BUFFER_PERCENT, PRIVATE_KEY.
    """
    load_dotenv(env_file)

    if chain_id is None:
        chain_id = _env_int("CHAIN_ID", 56)
    dex = dex or os.getenv("DEX") or None
    deployment = get_deployment(chain_id, dex)

    rpc_url = os.getenv("RPC_URL") or DEFAULT_RPC_URLS.get(chain_id)
    if not rpc_url:
        raise InvalidInputError(f"RPC_URL is not set and chain {chain_id} has no default RPC")

    twap_window = _env_int("TWAP_WINDOW", DEFAULT_TWAP_WINDOW)
    if twap_window <= 0:
        raise InvalidInputError(f"TWAP_WINDOW must be positive, got {twap_window}")

    return AdapterConfig.from_deployment(
        chain_id,
        rpc_url,
        deployment,
        factory=os.getenv("FACTORY") or deployment.factory,
        position_manager=os.getenv("NONFUNGIBLE_POSITION_MANAGER") or deployment.position_manager,
        quoter=os.getenv("QUOTER") or deployment.quoter,
        swap_router=os.getenv("SWAP_ROUTER") or deployment.swap_router,
        pool_init_code_hash=os.getenv("POOL_INIT_CODE_HASH") or deployment.pool_init_code_hash,
        pool_deployer=os.getenv("POOL_DEPLOYER") or deployment.pool_deployer,
        twap_window=twap_window,
        tx_timeout=_env_int("TX_TIMEOUT", 300),
        gas_buffer_percent=_env_int("GAS_BUFFER_PERCENT", 20),
        private_key=os.getenv("PRIVATE_KEY") or None,
    )
