"""
RPC service for Solana blockchain communication.

This module provides the data gateway used by the analyzers: JSON-RPC calls
against Helius (or a public endpoint when no key is configured) and REST
calls against the Helius enhanced API. Every failure surfaces as an
``RpcError`` subclass so callers can treat them uniformly.
"""

import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from sivic.config import HeliusConfig, get_helius_config
from sivic.services.base_service import BaseService
from sivic.utils.errors import (
    NotConfiguredError,
    RpcConnectionError,
    RpcError,
    RpcHttpError,
    RpcTimeoutError
)

# Configure logger
logger = logging.getLogger(__name__)


class RPCService(BaseService):
    """Service for making RPC requests to the Solana blockchain."""

    def __init__(
        self,
        config: Optional[HeliusConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the RPC service.

        Args:
            config: Helius configuration (defaults to the environment)
            client: Shared HTTP client, created when not given
            logger: Optional logger instance
        """
        self.config = config or get_helius_config()
        super().__init__(timeout=self.config.timeout, logger=logger)
        self.client = client or httpx.AsyncClient(timeout=self.config.timeout)
        self.logger.info(
            f"RPCService initialized ({'helius' if self.is_configured else 'public'} endpoint)"
        )

    @property
    def is_configured(self) -> bool:
        """True when a Helius API key is configured."""
        return self.config.is_configured

    @property
    def rpc_url(self) -> str:
        return self.config.rpc_endpoint

    async def call(self, method: str, params: List[Any], timeout: Optional[float] = None) -> Any:
        """
        Make a JSON-RPC request.

        Args:
            method: RPC method name
            params: RPC method parameters
            timeout: Optional per-call timeout in seconds

        Returns:
            The ``result`` member of the response

        Raises:
            RpcTimeoutError: If the request times out
            RpcConnectionError: If the endpoint cannot be reached
            RpcHttpError: If the endpoint answers with a non-2xx status
            RpcError: If the response carries a JSON-RPC error object
        """
        payload = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": method,
            "params": params
        }
        timeout_value = timeout or self.timeout

        async with self.log_timing(f"rpc_request.{method}"):
            try:
                response = await self.client.post(
                    self.rpc_url,
                    json=payload,
                    headers={"Content-Type": "application/json"},
                    timeout=timeout_value
                )
            except httpx.TimeoutException as e:
                raise RpcTimeoutError(
                    message=f"RPC call {method} timed out after {timeout_value}s",
                    timeout=timeout_value,
                    rpc_error={"method": method, "error": str(e)}
                )
            except httpx.RequestError as e:
                raise RpcConnectionError(
                    message=f"Connection error during RPC request: {str(e)}",
                    rpc_error={"method": method, "error": str(e)}
                )

            if not response.is_success:
                raise RpcHttpError(
                    message=f"RPC request {method} failed with HTTP {response.status_code}",
                    http_status=response.status_code
                )

            try:
                result = response.json()
            except ValueError:
                raise RpcError(
                    message=f"RPC response for {method} is not valid JSON",
                    rpc_error={"method": method}
                )

            if not isinstance(result, dict):
                raise RpcError(
                    message=f"RPC response for {method} is not a JSON object",
                    rpc_error={"method": method}
                )

            error = result.get("error")
            if error:
                if not isinstance(error, dict):
                    error = {"message": str(error)}
                message = f"Solana RPC error: {error.get('message', 'RPC Error')}"
                if "data" in error:
                    message += f" - {json.dumps(error['data'])}"
                raise RpcError(message=message, rpc_error=error)

            return result.get("result")

    async def fetch_enhanced(self, path: str, body: Dict[str, Any],
                             timeout: Optional[float] = None) -> Any:
        """
        POST to the Helius enhanced REST API.

        Args:
            path: API path below the base URL, e.g. ``token-metadata``
            body: JSON request body
            timeout: Optional per-call timeout in seconds

        Returns:
            Parsed JSON response

        Raises:
            NotConfiguredError: If no Helius API key is configured
            RpcError: On timeout, transport or HTTP failure
        """
        if not self.is_configured:
            raise NotConfiguredError("Helius")

        url = f"{self.config.api_url}/{path.lstrip('/')}"
        timeout_value = timeout or self.timeout

        async with self.log_timing(f"helius_api.{path}"):
            try:
                response = await self.client.post(
                    url,
                    params={"api-key": self.config.api_key},
                    json=body,
                    timeout=timeout_value
                )
            except httpx.TimeoutException as e:
                raise RpcTimeoutError(
                    message=f"Helius {path} timed out after {timeout_value}s",
                    timeout=timeout_value,
                    rpc_error={"path": path, "error": str(e)}
                )
            except httpx.RequestError as e:
                raise RpcConnectionError(
                    message=f"Connection error during Helius request: {str(e)}",
                    rpc_error={"path": path, "error": str(e)}
                )

            if not response.is_success:
                raise RpcHttpError(
                    message=f"Helius {path} failed with HTTP {response.status_code}",
                    http_status=response.status_code
                )

            try:
                return response.json()
            except ValueError:
                raise RpcError(
                    message=f"Helius {path} response is not valid JSON",
                    rpc_error={"path": path}
                )

    # Solana RPC methods

    async def get_account_info(self, address: str) -> Optional[Dict[str, Any]]:
        """
        Get parsed account info.

        Returns:
            The account ``value`` object, or None if the account does not exist
        """
        result = await self.call("getAccountInfo", [address, {"encoding": "jsonParsed"}])
        if not result:
            return None
        return result.get("value")

    async def get_token_largest_accounts(self, mint: str) -> List[Dict[str, Any]]:
        """Get the largest token accounts of a mint."""
        result = await self.call("getTokenLargestAccounts", [mint])
        if not result:
            return []
        return result.get("value") or []

    async def get_signatures_for_address(self, address: str, limit: int = 100) -> List[Dict[str, Any]]:
        """Get recent signatures for an address, newest first."""
        result = await self.call("getSignaturesForAddress", [address, {"limit": limit}])
        return result or []

    async def get_transaction(self, signature: str) -> Optional[Dict[str, Any]]:
        """
        Get a parsed transaction by signature.

        Returns:
            The transaction, or None if it is not known to the node
        """
        return await self.call(
            "getTransaction",
            [signature, {"encoding": "jsonParsed", "maxSupportedTransactionVersion": 0}]
        )

    async def get_token_metadata(self, mint: str) -> Optional[Dict[str, Any]]:
        """
        Get token metadata from the Helius enhanced API.

        Returns:
            The metadata record, or None when Helius is not configured or
            has no record for the mint
        """
        if not self.is_configured:
            return None
        data = await self.fetch_enhanced(
            "token-metadata",
            {"mintAccounts": [mint], "includeOffChain": True}
        )
        if not data:
            return None
        return data[0] or None
