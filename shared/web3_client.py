from aiohttp import ClientTimeout
from web3 import AsyncWeb3
from web3.middleware import ExtraDataToPOAMiddleware


def get_web3(rpc_url: str, timeout: int = 30) -> AsyncWeb3:
    w3 = AsyncWeb3(
        AsyncWeb3.AsyncHTTPProvider(
            rpc_url, request_kwargs={"timeout": ClientTimeout(total=timeout)}
        )
    )
    # Testnet RPCs may return PoA-sized extraData in block headers
    w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
    return w3
