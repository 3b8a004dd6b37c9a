# /autoswap/core/tx.py
# Chain client: reads, signing, broadcast and confirmation over the resilient provider.
# Nonces are NOT managed here; the sequencer passes one into every submission.
from typing import Any, Dict

from pydantic import BaseModel, Field
from web3 import AsyncWeb3, Web3
from web3.exceptions import ContractLogicError, TimeExhausted

from autoswap.abis import ERC20_ABI
from autoswap.core.config import settings
from autoswap.core.decorators import retriable_network_call
from autoswap.core.errors import ErrorKind, TransactionError, classify_error
from autoswap.core.fee_policy import FeeEstimate, FeeParameters
from autoswap.core.logger import TX_ERRORS, get_logger
from autoswap.core.resilient_rpc import ResilientWeb3Provider

log = get_logger(__name__)

DEFAULT_PRIORITY_FEE_WEI = 10**9  # 1 gwei, for nodes without eth_maxPriorityFeePerGas


class CallSpec(BaseModel):
    """A fully encoded contract call, plus its decoded arguments for logs and mocks."""
    to: str
    data: str
    gas: int
    value: int = 0
    function: str
    args: Dict[str, Any] = Field(default_factory=dict)


class Receipt(BaseModel):
    tx_hash: str
    status: int = 1
    gas_used: int = 0
    effective_gas_price: int | None = None
    block_number: int | None = None

    def fee_paid(self, fallback_price: int | None = None) -> int:
        """Realized fee in the native asset; reporting only."""
        price = self.effective_gas_price or fallback_price or 0
        return self.gas_used * price


class TransactionManager:
    """Implements the chain-client boundary the sequencer and executors rely on."""
    def __init__(self, provider: ResilientWeb3Provider | None = None):
        self.provider = provider or ResilientWeb3Provider()
        self.account = self.provider.account
        self.address = self.provider.address
        self.w3: AsyncWeb3 | None = None
        self.chain_id = settings.CHAIN_ID
        self.is_initialized = False

    async def initialize(self):
        if self.is_initialized:
            return
        await self.provider.initialize()
        self.w3 = self.provider.get_primary_provider()
        if self.chain_id is None:
            self.chain_id = await self.w3.eth.chain_id
        self.is_initialized = True
        log.info("TRANSACTION_MANAGER_INITIALIZED", address=self.address, chain_id=self.chain_id)

    def _erc20(self, token: str):
        return self.w3.eth.contract(address=Web3.to_checksum_address(token), abi=ERC20_ABI)

    @retriable_network_call
    async def get_balance(self, address: str, token: str | None = None) -> int:
        """Native balance when *token* is None, else the ERC-20 balance."""
        owner = Web3.to_checksum_address(address)
        if token is None:
            return await self.w3.eth.get_balance(owner)
        return await self._erc20(token).functions.balanceOf(owner).call()

    @retriable_network_call
    async def get_allowance(self, token: str, owner: str, spender: str) -> int:
        return await self._erc20(token).functions.allowance(
            Web3.to_checksum_address(owner), Web3.to_checksum_address(spender)
        ).call()

    @retriable_network_call
    async def get_pending_transaction_count(self, address: str) -> int:
        return await self.w3.eth.get_transaction_count(Web3.to_checksum_address(address), "pending")

    async def get_fee_estimate(self) -> FeeEstimate:
        """Collects whatever fee data the node offers; missing pieces stay None."""
        gas_price = base_fee = priority_fee = None
        try:
            gas_price = await self.w3.eth.gas_price
        except Exception as e:
            log.warning("GAS_PRICE_RPC_FAILED", error=str(e))
        try:
            latest_block = await self.w3.eth.get_block("latest")
            base_fee = latest_block.get("baseFeePerGas")
        except Exception as e:
            log.warning("LATEST_BLOCK_RPC_FAILED", error=str(e))

        max_fee = None
        if base_fee is not None:
            try:
                priority_fee = await self.w3.eth.max_priority_fee
            except Exception:
                log.warning("MAX_PRIORITY_FEE_RPC_UNSUPPORTED_FALLING_BACK")
                priority_fee = DEFAULT_PRIORITY_FEE_WEI
            # Double the base fee so the ceiling survives a few full blocks.
            max_fee = base_fee * 2 + priority_fee

        return FeeEstimate(gas_price=gas_price, max_fee_per_gas=max_fee, max_priority_fee_per_gas=priority_fee)

    async def submit_transaction(self, call: CallSpec, nonce: int, fees: FeeParameters) -> str:
        """Signs and broadcasts *call* with an explicit nonce. Never retried."""
        tx_params = {
            "from": self.address,
            "to": Web3.to_checksum_address(call.to),
            "data": call.data,
            "value": call.value,
            "gas": call.gas,
            "nonce": nonce,
            "chainId": self.chain_id,
            **fees.to_tx_params(),
        }
        try:
            signed_tx = self.account.sign_transaction(tx_params)
            tx_hash = await self.w3.eth.send_raw_transaction(signed_tx.raw_transaction)
        except Exception as e:
            kind = classify_error(e)
            TX_ERRORS.labels(kind.value).inc()
            log.error("TRANSACTION_SUBMIT_FAILED", nonce=nonce, function=call.function, kind=kind.value, error=str(e))
            raise TransactionError(str(e), kind=kind) from e

        tx_hash_hex = Web3.to_hex(tx_hash)
        log.info("TRANSACTION_BROADCASTED", tx_hash=tx_hash_hex, nonce=nonce, function=call.function)
        return tx_hash_hex

    async def await_confirmation(self, tx_hash: str) -> Receipt:
        try:
            receipt = await self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=settings.CONFIRMATION_TIMEOUT_SECONDS
            )
        except TimeExhausted as e:
            TX_ERRORS.labels(ErrorKind.TIMEOUT.value).inc()
            raise TransactionError(str(e), kind=ErrorKind.TIMEOUT, tx_hash=tx_hash) from e
        except ContractLogicError as e:
            TX_ERRORS.labels(ErrorKind.REVERTED.value).inc()
            raise TransactionError(str(e), kind=ErrorKind.REVERTED, tx_hash=tx_hash) from e
        except Exception as e:
            kind = classify_error(e)
            TX_ERRORS.labels(kind.value).inc()
            raise TransactionError(str(e), kind=kind, tx_hash=tx_hash) from e

        result = Receipt(
            tx_hash=tx_hash,
            status=receipt["status"],
            gas_used=receipt["gasUsed"],
            effective_gas_price=receipt.get("effectiveGasPrice"),
            block_number=receipt.get("blockNumber"),
        )
        if result.status != 1:
            TX_ERRORS.labels(ErrorKind.REVERTED.value).inc()
            raise TransactionError(f"Transaction {tx_hash} reverted on-chain", kind=ErrorKind.REVERTED, tx_hash=tx_hash)
        return result

    def close(self):
        log.info("TRANSACTION_MANAGER_CLOSED", address=self.address)
