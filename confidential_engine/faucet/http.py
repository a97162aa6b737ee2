"""HTTP faucet client."""
import logging
import ssl
from typing import Any

import aiohttp
import certifi

from ..config import FaucetConfig
from ..models import FaucetResult

logger = logging.getLogger(__name__)


def _result_from_payload(status: int, data: dict[str, Any]) -> FaucetResult:
    hashes = tuple(data.get("hashes") or ())
    tx_hash = data.get("hash") or (hashes[0] if hashes else None)

    if 200 <= status < 300 and data.get("success", True) and not data.get("error"):
        return FaucetResult(
            success=True,
            hash=tx_hash,
            hashes=hashes or ((tx_hash,) if tx_hash else ()),
            message=data.get("message"),
        )

    return FaucetResult(
        success=False,
        error=data.get("error") or f"Faucet request failed (HTTP {status})",
    )


class HttpFaucet:
    """Request test funds from a faucet endpoint that accepts ``{"address": ...}``."""

    def __init__(self, config: FaucetConfig) -> None:
        self.url = config.url
        self.timeout = config.timeout

    async def request(self, address: str) -> FaucetResult:
        """POST the address; transport failures come back as ``success=False``."""
        if not self.url:
            logger.warning("Faucet url not configured")
            return FaucetResult(success=False, error="Faucet configuration missing")

        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        try:
            async with aiohttp.ClientSession(connector=connector) as session:
                async with session.post(
                    self.url,
                    json={"address": address},
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as response:
                    try:
                        data = await response.json(content_type=None)
                    except ValueError:
                        data = {}
                    if not isinstance(data, dict):
                        data = {}
                    result = _result_from_payload(response.status, data)
        except Exception as e:
            logger.error("Faucet request to %s failed: %s", self.url, e)
            return FaucetResult(success=False, error=str(e) or "Internal server error")

        if result.success:
            logger.info("Faucet funded %s (tx %s)", address, result.hash)
        else:
            logger.warning("Faucet refused %s: %s", address, result.error)
        return result
