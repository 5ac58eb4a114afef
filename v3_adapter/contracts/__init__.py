"""
Uniswap V3 contract wrappers: factory/pool registry, oracle, position manager,
swap router, quoter and ERC20.
"""
