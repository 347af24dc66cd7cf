"""
Image Generation Backend - Provider Dispatcher
Runs normalized inputs against the hosted generation service
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Protocol

import httpx

from .errors import ProviderError, TransportError, UpstreamError

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = ("succeeded", "failed", "canceled")


class ProviderClient(Protocol):
    """Anything that can run a model on the provider and return its output."""

    async def run(self, model_id: str, input: Dict[str, Any]) -> Any:
        ...


class ReplicateClient:
    """
    Client for the Replicate predictions API.

    Creates a prediction and polls it until it reaches a terminal status,
    then returns its output untouched. Makes no retries and imposes no
    timeout of its own.
    """

    def __init__(
        self,
        api_token: str,
        base_url: str = "https://api.replicate.com/v1",
        poll_interval: float = 1.0,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        """
        Initialize the client.

        Args:
            api_token: Provider API token
            base_url: API root, without trailing slash
            poll_interval: Seconds between prediction status checks
            http_client: Pre-built httpx client (owned by the caller)
        """
        self.base_url = base_url.rstrip("/")
        self.poll_interval = poll_interval
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=None)
        self._headers = {
            "Authorization": f"Bearer {api_token}",
            "Content-Type": "application/json",
            "Prefer": "wait",
        }

    def _prediction_request(self, model_id: str, input: Dict[str, Any]) -> tuple[str, Dict[str, Any]]:
        """URL and body for creating a prediction of `owner/name[:version]`."""
        if ":" in model_id:
            _, version = model_id.split(":", 1)
            return f"{self.base_url}/predictions", {"version": version, "input": input}

        owner, _, name = model_id.partition("/")
        if not owner or not name:
            raise TransportError(f"Invalid model identifier: {model_id}")
        return f"{self.base_url}/models/{owner}/{name}/predictions", {"input": input}

    async def _send(self, method: str, url: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            response = await self._client.request(method, url, json=json, headers=self._headers)
        except httpx.RequestError as e:
            raise TransportError(f"Request to provider failed: {e}") from e

        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = response.text
            raise UpstreamError(response.status_code, body)

        try:
            return response.json()
        except ValueError as e:
            raise TransportError(f"Provider returned an unreadable response: {e}") from e

    async def run(self, model_id: str, input: Dict[str, Any]) -> Any:
        """
        Run a model and wait for its output.

        Args:
            model_id: `owner/name` or `owner/name:version`
            input: Provider input object

        Returns:
            The prediction output as returned by the provider

        Raises:
            UpstreamError: The provider rejected the request or the prediction failed
            TransportError: The provider could not be reached or understood
        """
        url, body = self._prediction_request(model_id, input)
        prediction = await self._send("POST", url, json=body)
        logger.info(f"Prediction {prediction.get('id')} created for {model_id}: {prediction.get('status')}")

        while prediction.get("status") not in TERMINAL_STATUSES:
            await asyncio.sleep(self.poll_interval)
            poll_url = (prediction.get("urls") or {}).get("get") or f"{self.base_url}/predictions/{prediction['id']}"
            prediction = await self._send("GET", poll_url)

        status = prediction.get("status")
        if status != "succeeded":
            error = prediction.get("error") or f"Prediction {status}"
            raise UpstreamError(500, error)

        return prediction.get("output")

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()


async def dispatch(client: ProviderClient, provider_input: Dict[str, Any], model_id: str) -> Any:
    """
    Send a normalized input to the provider.

    Args:
        client: Provider client to use
        provider_input: Output of the request normalizer
        model_id: Provider model identifier of the selected profile

    Returns:
        Provider output, unmodified

    Raises:
        UpstreamError: Structured provider failure (status and body preserved)
        TransportError: Any other failure, reported as status 500
    """
    try:
        return await client.run(model_id, provider_input)
    except ProviderError:
        raise
    except Exception as e:
        raise TransportError(str(e) or e.__class__.__name__) from e
