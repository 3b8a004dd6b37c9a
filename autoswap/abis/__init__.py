from autoswap.abis.erc20 import ERC20_ABI
from autoswap.abis.swap_router import SWAP_ROUTER_ABI

__all__ = ["ERC20_ABI", "SWAP_ROUTER_ABI"]
