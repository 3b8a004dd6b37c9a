# /autoswap/core/resilient_rpc.py
# Multi-endpoint AsyncWeb3 provider: the first reachable endpoint becomes primary.
from typing import List

from web3 import AsyncWeb3
from web3.middleware import ExtraDataToPOAMiddleware

from autoswap.core.config import settings
from autoswap.core.logger import get_logger

log = get_logger(__name__)


class ResilientWeb3Provider:
    def __init__(self, rpc_urls: List[str] | None = None, private_key: str | None = None):
        self.rpc_urls = rpc_urls if rpc_urls is not None else settings.rpc_endpoints
        if not self.rpc_urls:
            raise ConnectionError("No RPC endpoint configured.")
        if len(self.rpc_urls) < 2:
            log.warning("RESILIENCE_DEGRADED_LT_2_RPCS", count=len(self.rpc_urls))

        self.candidates: List[AsyncWeb3] = []
        for url in self.rpc_urls:
            w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(url, request_kwargs={"timeout": 10}))
            w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
            self.candidates.append(w3)

        if private_key is None and settings.EXECUTOR_PRIVATE_KEY is not None:
            private_key = settings.EXECUTOR_PRIVATE_KEY.get_secret_value()
        if not private_key:
            raise ValueError("EXECUTOR_PRIVATE_KEY is not configured.")
        self.account = self.candidates[0].eth.account.from_key(private_key)
        self.address = self.account.address

        self.providers: List[AsyncWeb3] = []
        self.primary_provider: AsyncWeb3 | None = None

    async def initialize(self):
        """Connects to every endpoint; only reachable ones are kept."""
        self.providers = []
        for url, w3 in zip(self.rpc_urls, self.candidates):
            try:
                connected = await w3.is_connected()
            except Exception as e:
                log.error("RPC_ENDPOINT_UNREACHABLE", url=url, error=str(e))
                connected = False
            if connected:
                self.providers.append(w3)
            else:
                log.warning("RPC_UNREACHABLE", url=url)

        if not self.providers:
            raise ConnectionError("All RPC nodes are unreachable.")
        self.primary_provider = self.providers[0]
        log.info("RESILIENT_WEB3_PROVIDER_INITIALIZED", rpc_count=len(self.providers), address=self.address)

    def get_primary_provider(self) -> AsyncWeb3:
        """Returns the primary provider, used for reads and for sending transactions."""
        if self.primary_provider is None:
            raise RuntimeError("Provider not initialized; call initialize() first.")
        return self.primary_provider
