"""Remote signing of typed data by an external wallet or node."""

from __future__ import annotations

import itertools
import json
import logging
from typing import Any, Protocol

import aiohttp

logger = logging.getLogger(__name__)


class RemoteSignerError(Exception):
    """Error returned by, or while talking to, a remote signer."""


class RemoteSigner(Protocol):
    """Signs EIP-712 typed data for addresses whose keys are held elsewhere.

    May suspend for an unbounded time (user approval, network round trip);
    timeout policy belongs to the implementation.
    """

    async def sign(self, address: str, typed_data: dict[str, Any]) -> str:
        """Return a 0x-prefixed 65-byte signature of typed_data by address."""
        ...


class JsonRpcRemoteSigner:
    """Remote signer backed by an Ethereum JSON-RPC endpoint.

    Sends eth_signTypedData{method_suffix}(address, data). Some wallets expect
    the typed data as a JSON string rather than an object; set
    json_stringify_request for those.
    """

    def __init__(
        self,
        url: str,
        method_suffix: str = "_v4",
        json_stringify_request: bool = False,
        timeout: float = 60.0,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._url = url
        self._method = f"eth_signTypedData{method_suffix}"
        self._json_stringify_request = json_stringify_request
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._ids = itertools.count(1)

    @property
    def method(self) -> str:
        return self._method

    def _build_request(self, address: str, typed_data: dict[str, Any]) -> dict[str, Any]:
        data: Any = json.dumps(typed_data) if self._json_stringify_request else typed_data
        return {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": self._method,
            "params": [address, data],
        }

    async def _post(self, session: aiohttp.ClientSession, payload: dict[str, Any]) -> Any:
        async with session.post(self._url, json=payload, timeout=self._timeout) as resp:
            if resp.status != 200:
                text = await resp.text()
                raise RemoteSignerError(f"HTTP {resp.status} from remote signer: {text[:200]}")
            return await resp.json(content_type=None)

    async def sign(self, address: str, typed_data: dict[str, Any]) -> str:
        payload = self._build_request(address, typed_data)
        logger.debug(f"Requesting {self._method} for {address} from {self._url}")
        try:
            if self._session is not None:
                body = await self._post(self._session, payload)
            else:
                async with aiohttp.ClientSession() as session:
                    body = await self._post(session, payload)
        except aiohttp.ClientError as e:
            raise RemoteSignerError(f"Remote signer request failed: {e!r}") from e
        except TimeoutError as e:
            raise RemoteSignerError(f"Remote signer timed out after {self._timeout.total}s") from e
        except json.JSONDecodeError as e:
            raise RemoteSignerError(f"Invalid JSON from remote signer: {e}") from e

        if not isinstance(body, dict):
            raise RemoteSignerError("Malformed JSON-RPC response")
        error = body.get("error")
        if error is not None:
            message = error.get("message") if isinstance(error, dict) else error
            raise RemoteSignerError(f"Remote signer error: {message}")
        result = body.get("result")
        if not isinstance(result, str):
            raise RemoteSignerError(f"Remote signer returned non-string result: {result!r}")
        return result
