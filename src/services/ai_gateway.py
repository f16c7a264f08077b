"""AI gateway client - OpenAI-compatible chat completions over httpx.

Script generation and image generation both go through one chat-completions
gateway. Non-2xx answers are mapped onto the pipeline error taxonomy:
429 becomes RateLimited, 402 becomes QuotaExceeded, anything else becomes
UpstreamError. Requests are sent exactly once; retrying is the caller's call.
"""

import logging

import httpx

from utils.errors import PipelineError, QuotaExceeded, RateLimited, UpstreamError

logger = logging.getLogger(__name__)

DEFAULT_GATEWAY_URL = "https://openrouter.ai/api/v1"


def error_for_response(response: httpx.Response, service: str) -> PipelineError:
    """Map a non-2xx gateway response to a pipeline error.

    The raw body is logged; it is kept on ``detail`` but never in the
    user-facing message.
    """
    body = response.text[:500] if response.text else ""
    logger.warning(f"{service} returned HTTP {response.status_code}: {body}")

    if response.status_code == 429:
        return RateLimited(f"{service} rate limited: {body}")
    if response.status_code == 402:
        return QuotaExceeded(f"{service} payment required: {body}")
    return UpstreamError(
        f"{service} error {response.status_code}: {body}",
        status_code=response.status_code,
    )


class AIGatewayClient:
    """Thin async client for an OpenAI-compatible ``/chat/completions`` endpoint."""

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_GATEWAY_URL,
        timeout: float = 60.0,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize the gateway client.

        Args:
            api_key: Bearer token for the gateway
            base_url: Gateway base URL (the ``/chat/completions`` path is appended)
            timeout: Per-request timeout in seconds
            client: Optional preconfigured httpx client (used by tests)
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def chat_completion(self, payload: dict, service: str = "AI gateway") -> dict:
        """POST a chat completion request and return the decoded JSON body.

        Args:
            payload: Request body (model, messages, and optional modalities)
            service: Name used in logs and error details

        Returns:
            Parsed JSON response

        Raises:
            RateLimited: On HTTP 429
            QuotaExceeded: On HTTP 402
            UpstreamError: On any other non-2xx status, transport failure or timeout,
                or a body that is not JSON
        """
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            response = await self.client.post(
                f"{self.base_url}/chat/completions",
                headers=headers,
                json=payload,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise error_for_response(e.response, service) from e
        except httpx.TimeoutException as e:
            logger.warning(f"{service} timed out after {self.timeout}s")
            raise UpstreamError(f"{service} timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            logger.warning(f"{service} request failed: {e}")
            raise UpstreamError(f"{service} request failed: {e}") from e

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(f"{service} returned a non-JSON body") from e

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()
