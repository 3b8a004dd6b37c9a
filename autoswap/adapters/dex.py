# /autoswap/adapters/dex.py
# Single-transaction executors (approve, swap) submitted through the sequencer.
import asyncio
import time
from functools import partial
from typing import Dict, NamedTuple, Tuple

from web3 import Web3

from autoswap.abis import ERC20_ABI, SWAP_ROUTER_ABI
from autoswap.core.assets import AssetConfig, format_units
from autoswap.core.config import settings
from autoswap.core.errors import UnknownDirectionError, classify_error
from autoswap.core.fee_policy import FeeParameters
from autoswap.core.logger import get_logger
from autoswap.core.sequencer import TransactionSequencer
from autoswap.core.tx import CallSpec

log = get_logger(__name__)


class SwapDirection(NamedTuple):
    token_in: str
    token_out: str

    @classmethod
    def parse(cls, value: "str | SwapDirection | Tuple[str, str]") -> "SwapDirection":
        """Accepts ``"USDT->ETH"`` or any 2-tuple of symbols."""
        if isinstance(value, str):
            parts = value.split("->")
            if len(parts) != 2:
                raise UnknownDirectionError(f"Unknown swap direction: {value!r}")
            return cls(parts[0].strip().upper(), parts[1].strip().upper())
        parts = tuple(value) if isinstance(value, (tuple, list)) else ()
        if len(parts) != 2:
            raise UnknownDirectionError(f"Unknown swap direction: {value!r}")
        return cls(str(parts[0]).upper(), str(parts[1]).upper())

    def __str__(self):
        return f"{self.token_in}->{self.token_out}"


class DexAdapter:
    def __init__(self, chain, sequencer: TransactionSequencer, fees: FeeParameters,
                 assets: Dict[str, AssetConfig], router_address: str, config=settings):
        self.chain = chain
        self.sequencer = sequencer
        self.fees = fees
        self.assets = assets
        self.router_address = Web3.to_checksum_address(router_address)
        self.fee_tier = config.SWAP_FEE_TIER
        self.deadline_seconds = config.SWAP_DEADLINE_SECONDS
        self.amount_out_minimum = config.SWAP_AMOUNT_OUT_MINIMUM
        self.approval_gas_limit = config.APPROVAL_GAS_LIMIT
        self.swap_gas_limit = config.SWAP_GAS_LIMIT

        # ABI encoding only; no provider traffic goes through this instance.
        codec = Web3()
        self._router = codec.eth.contract(address=self.router_address, abi=SWAP_ROUTER_ABI)
        self._token = codec.eth.contract(abi=ERC20_ABI)

    # -----------------------------------------------------------
    # Call builders
    # -----------------------------------------------------------

    def resolve_direction(self, direction) -> Tuple[AssetConfig, AssetConfig]:
        parsed = SwapDirection.parse(direction)
        if parsed.token_in == parsed.token_out or parsed.token_in not in self.assets or parsed.token_out not in self.assets:
            raise UnknownDirectionError(f"Unknown swap direction: {parsed}")
        return self.assets[parsed.token_in], self.assets[parsed.token_out]

    def build_approve_call(self, asset: AssetConfig, amount: int) -> CallSpec:
        return CallSpec(
            to=Web3.to_checksum_address(asset.address),
            data=self._token.encode_abi("approve", args=[self.router_address, amount]),
            gas=self.approval_gas_limit,
            function="approve",
            args={"spender": self.router_address, "amount": amount},
        )

    def build_swap_call(self, token_in: AssetConfig, token_out: AssetConfig, amount_in: int) -> CallSpec:
        params = {
            "tokenIn": Web3.to_checksum_address(token_in.address),
            "tokenOut": Web3.to_checksum_address(token_out.address),
            "fee": self.fee_tier,
            "recipient": Web3.to_checksum_address(self.chain.address),
            "deadline": int(time.time()) + self.deadline_seconds,
            "amountIn": amount_in,
            "amountOutMinimum": self.amount_out_minimum,
            "sqrtPriceLimitX96": 0,
        }
        return CallSpec(
            to=self.router_address,
            data=self._router.encode_abi("exactInputSingle", args=[tuple(params.values())]),
            gas=self.swap_gas_limit,
            function="exactInputSingle",
            args=params,
        )

    # -----------------------------------------------------------
    # Sequenced operations
    # -----------------------------------------------------------

    async def get_allowance(self, asset: AssetConfig) -> int:
        return await self.chain.get_allowance(asset.address, self.chain.address, self.router_address)

    async def ensure_allowance(self, asset: AssetConfig, amount: int, settle_seconds: float = 0) -> bool:
        """Approves exactly *amount* only when the current allowance is short of it."""
        allowance = await self.get_allowance(asset)
        if allowance >= amount:
            log.info("APPROVAL_NOT_NEEDED", asset=asset.symbol, allowance=allowance, required=amount)
            return True
        log.info("APPROVAL_REQUIRED", asset=asset.symbol, allowance=allowance, required=amount)
        if not await self.approve(asset, amount):
            return False
        if settle_seconds:
            await asyncio.sleep(settle_seconds)
        return True

    async def approve(self, asset: AssetConfig, amount: int) -> bool:
        return await self.sequencer.submit(
            partial(self.execute_approve, asset, amount),
            f"Approve {asset.format(amount)}",
        )

    async def swap(self, direction, amount_in: int) -> bool:
        """Queues one exact-input swap; an unknown direction raises before anything is queued."""
        token_in, token_out = self.resolve_direction(direction)
        return await self.sequencer.submit(
            partial(self.execute_swap, token_in, token_out, amount_in),
            f"Swap {token_in.format(amount_in)} -> {token_out.symbol}",
        )

    # -----------------------------------------------------------
    # Executors (invoked by the sequencer with the assigned nonce)
    # -----------------------------------------------------------

    async def execute_approve(self, asset: AssetConfig, amount: int, nonce: int) -> bool:
        call = self.build_approve_call(asset, amount)
        log.info("APPROVAL_SENDING", asset=asset.symbol, amount=format_units(amount, asset.decimals), nonce=nonce)
        try:
            tx_hash = await self.chain.submit_transaction(call, nonce, self.fees)
            await self.chain.await_confirmation(tx_hash)
        except Exception as e:
            self._handle_failure("APPROVAL_FAILED", e, nonce, asset=asset.symbol)
            return False
        log.info("APPROVAL_CONFIRMED", asset=asset.symbol, tx_hash=tx_hash, nonce=nonce)
        return True

    async def execute_swap(self, token_in: AssetConfig, token_out: AssetConfig, amount_in: int, nonce: int) -> bool:
        call = self.build_swap_call(token_in, token_out, amount_in)
        if self.amount_out_minimum == 0:
            log.warning("SWAP_WITHOUT_MIN_OUTPUT", direction=f"{token_in.symbol}->{token_out.symbol}")
        log.info("SWAP_SENDING", token_in=token_in.symbol, token_out=token_out.symbol,
                 amount_in=format_units(amount_in, token_in.decimals), nonce=nonce)
        try:
            tx_hash = await self.chain.submit_transaction(call, nonce, self.fees)
            receipt = await self.chain.await_confirmation(tx_hash)
        except Exception as e:
            self._handle_failure("SWAP_FAILED", e, nonce, direction=f"{token_in.symbol}->{token_out.symbol}")
            return False
        fee = receipt.fee_paid(self.fees.price_ceiling)
        log.info("SWAP_CONFIRMED", tx_hash=tx_hash, nonce=nonce, gas_used=receipt.gas_used, fee_native=format_units(fee, 18, 8))
        return True

    def _handle_failure(self, event: str, error: Exception, nonce: int, **fields):
        kind = classify_error(error)
        log.error(event, nonce=nonce, kind=kind.value, error=str(error), **fields)
        if kind.is_nonce_error:
            log.warning("NONCE_ERROR_DETECTED", nonce=nonce, kind=kind.value)
            self.sequencer.invalidate_nonce(f"{kind.value} at nonce {nonce}")
