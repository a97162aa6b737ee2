"""EVM JSON-RPC client with fallback support."""
import logging
import ssl
from typing import Any

import aiohttp
import certifi
from eth_abi import decode, encode
from eth_utils import function_signature_to_4byte_selector, is_address, to_checksum_address

from ...config import ChainConfig
from ...models import TokenInfo

logger = logging.getLogger(__name__)

_SYMBOL_SELECTOR = function_signature_to_4byte_selector("symbol()")
_DECIMALS_SELECTOR = function_signature_to_4byte_selector("decimals()")
_BALANCE_OF_SELECTOR = function_signature_to_4byte_selector("balanceOf(address)")


def _to_int(value: Any) -> int:
    if isinstance(value, str):
        return int(value, 16) if value.startswith(("0x", "0X")) else int(value)
    return int(value)


class EvmClient:
    """EVM RPC client with automatic endpoint fallback."""

    def __init__(self, config: ChainConfig) -> None:
        self.endpoints = [url for url in config.rpc_endpoints if url]
        self.timeout = config.rpc_timeout
        self.chain_id = config.chain_id
        self.current_rpc_index = 0

    async def rpc_call(self, method: str, params: list[Any]) -> Any:
        """Make RPC call with fallback to alternative endpoints."""
        payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}

        ssl_context = ssl.create_default_context(cafile=certifi.where())

        last_error: Exception | None = None
        for attempt in range(len(self.endpoints)):
            rpc_index = (self.current_rpc_index + attempt) % len(self.endpoints)
            rpc_url = self.endpoints[rpc_index]

            try:
                connector = aiohttp.TCPConnector(ssl=ssl_context)
                async with aiohttp.ClientSession(connector=connector) as session:
                    async with session.post(
                        rpc_url,
                        json=payload,
                        timeout=aiohttp.ClientTimeout(total=self.timeout),
                    ) as response:
                        result = await response.json()
                        if "error" in result:
                            raise RuntimeError(f"RPC Error: {result['error']}")

                        if rpc_index != self.current_rpc_index:
                            logger.info("Switched to RPC endpoint: %s", rpc_url)
                            self.current_rpc_index = rpc_index

                        return result.get("result")
            except Exception as e:
                last_error = e
                logger.warning("RPC endpoint %s failed: %s", rpc_url, e)
                if attempt < len(self.endpoints) - 1:
                    logger.info("Trying next endpoint...")
                continue

        raise RuntimeError(f"All RPC endpoints failed. Last error: {last_error}")

    async def get_balance(self, address: str) -> int:
        """Native balance in wei."""
        result = await self.rpc_call("eth_getBalance", [address, "latest"])
        return _to_int(result)

    async def call(self, to: str, data: bytes) -> bytes:
        """Read-only contract call; returns the raw return data."""
        result = await self.rpc_call(
            "eth_call", [{"to": to, "data": "0x" + data.hex()}, "latest"]
        )
        if not result or result == "0x":
            raise RuntimeError(f"Empty eth_call result from {to}")
        return bytes.fromhex(result[2:] if result.startswith("0x") else result)

    async def get_token_balance(self, token_address: str, owner: str) -> int:
        """ERC-20 ``balanceOf`` for ``owner``."""
        if not is_address(owner):
            raise ValueError(f"Invalid address: {owner}")
        data = _BALANCE_OF_SELECTOR + encode(["address"], [to_checksum_address(owner)])
        raw = await self.call(token_address, data)
        return decode(["uint256"], raw)[0]

    async def _get_symbol(self, token_address: str) -> str:
        raw = await self.call(token_address, _SYMBOL_SELECTOR)
        try:
            return decode(["string"], raw)[0]
        except Exception:
            # Older tokens return bytes32 instead of string.
            return decode(["bytes32"], raw)[0].rstrip(b"\x00").decode("utf-8")

    async def _get_decimals(self, token_address: str) -> int:
        raw = await self.call(token_address, _DECIMALS_SELECTOR)
        return int(decode(["uint8"], raw)[0])

    async def get_token_info(self, token_address: str) -> TokenInfo:
        """Token symbol and decimals; each falls back to its default on failure."""
        defaults = TokenInfo()
        if not token_address:
            return defaults

        try:
            symbol = await self._get_symbol(token_address)
        except Exception as e:
            logger.warning("Error fetching symbol for %s: %s", token_address, e)
            symbol = defaults.symbol

        try:
            decimals = await self._get_decimals(token_address)
        except Exception as e:
            logger.warning("Error fetching decimals for %s: %s", token_address, e)
            decimals = defaults.decimals

        return TokenInfo(symbol=symbol or defaults.symbol, decimals=decimals)
