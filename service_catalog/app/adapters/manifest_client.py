"""
Remote manifest client.
"""

from typing import Any, Dict, Optional

import httpx

from shared.circuit_breaker import CircuitBreaker, CircuitBreakerOpenException
from shared.errors import ManifestFormatError, TransientFetchError
from shared.logging import get_logger
from shared.retry import RetryConfig, RetryError, call_with_retry

from ..manifest.models import Manifest


class ManifestClient:
    """Fetches the published manifest document over HTTP."""

    def __init__(
        self,
        manifest_url: str,
        *,
        timeout: float = 10.0,
        max_attempts: int = 2,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.manifest_url = manifest_url
        self.timeout = timeout
        self.logger = get_logger("catalog.manifest_client")
        self._client = client

        self.circuit_breaker = CircuitBreaker(
            failure_threshold=3,
            recovery_timeout=30.0,
            name="manifest_endpoint",
        )

        self.retry_config = RetryConfig(
            max_attempts=max_attempts,
            base_delay=0.2,
            max_delay=2.0,
            exponential_base=2.0,
            jitter=True
        )

    async def close(self) -> None:
        """Close an injected HTTP client."""
        if self._client is not None:
            await self._client.aclose()

    async def fetch_manifest(self) -> Manifest:
        """
        Fetch and parse the remote manifest.

        Every failure mode (network error, timeout, non-2xx status, open
        circuit, malformed document) surfaces as TransientFetchError.
        """
        try:
            payload = await self.circuit_breaker.call(
                call_with_retry,
                self._get_document,
                exceptions=(httpx.TransportError,),
                config=self.retry_config,
            )
        except TransientFetchError:
            raise
        except CircuitBreakerOpenException as exc:
            raise TransientFetchError(str(exc), {"url": self.manifest_url}) from exc
        except RetryError as exc:
            self.logger.error(
                "Manifest endpoint unreachable",
                url=self.manifest_url,
                attempts=exc.attempts,
                error=str(exc.last_exception),
            )
            raise TransientFetchError(
                f"Manifest endpoint unreachable: {exc.last_exception}",
                {"url": self.manifest_url, "attempts": exc.attempts},
            ) from exc
        except Exception as exc:
            self.logger.error("Manifest fetch error", url=self.manifest_url, error=str(exc))
            raise TransientFetchError(str(exc), {"url": self.manifest_url}) from exc

        try:
            manifest = Manifest.from_dict(payload)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            self.logger.error("Manifest document rejected", url=self.manifest_url, error=str(exc))
            raise ManifestFormatError(str(exc), {"url": self.manifest_url}) from exc

        self.logger.debug(
            "Manifest retrieved",
            url=self.manifest_url,
            version=manifest.version,
            products=len(manifest.products),
        )
        return manifest

    async def _get_document(self) -> Dict[str, Any]:
        if self._client is not None:
            response = await self._client.get(self.manifest_url, timeout=self.timeout)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(self.manifest_url)

        if response.status_code != 200:
            self.logger.error(
                "Manifest request failed",
                url=self.manifest_url,
                status_code=response.status_code,
            )
            raise TransientFetchError(
                f"Failed to fetch manifest: {response.status_code}",
                {"url": self.manifest_url, "status_code": response.status_code},
            )

        try:
            return response.json()
        except ValueError as exc:
            raise ManifestFormatError("Manifest response is not JSON", {"url": self.manifest_url}) from exc
