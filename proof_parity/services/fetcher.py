"""Async proof fetching from DAS-compatible JSON-RPC endpoints."""

import asyncio
import itertools
import logging
from typing import Any, Dict

import aiohttp

from ..config import ValidatorConfig, DEFAULT_VALIDATOR_CONFIG
from ..errors import FetchError
from ..models.proof import FetchOutcome, ProofBundle
from ..models.tree import Endpoint

logger = logging.getLogger(__name__)

_request_ids = itertools.count(1)


class ProofFetcher:
    """Fetches asset proofs from one endpoint.

    Every failure (transport, HTTP status, JSON-RPC error, malformed payload)
    comes back as a failed FetchOutcome rather than an exception, so one bad
    endpoint cannot disturb the rest of the run.
    """

    def __init__(self,
                 endpoint: Endpoint,
                 session: aiohttp.ClientSession,
                 config: ValidatorConfig = DEFAULT_VALIDATOR_CONFIG):
        """Initialize proof fetcher.

        Args:
            endpoint: Endpoint to query
            session: Shared aiohttp session
            config: Validator configuration
        """
        self.endpoint = endpoint
        self.session = session
        self.config = config

    @property
    def label(self) -> str:
        return self.endpoint.label

    async def fetch(self, asset_id: str) -> FetchOutcome:
        """Fetch the inclusion proof for an asset.

        Args:
            asset_id: Base58 asset identifier

        Returns:
            FetchOutcome holding either the decoded proof or an error message
        """
        try:
            result = await self._call('getAssetProof', {'id': asset_id})
            return FetchOutcome.success(self._parse(result))
        except asyncio.TimeoutError:
            message = f"Timeout after {self.config.request_timeout}s"
        except aiohttp.ClientError as e:
            message = f"{type(e).__name__}: {e}"
        except FetchError as e:
            message = str(e)
        except (KeyError, TypeError, ValueError) as e:
            message = f"Malformed proof: {type(e).__name__}: {e}"

        logger.debug("Proof fetch failed on %s for %s: %s", self.label, asset_id, message)
        return FetchOutcome.failure(message)

    async def _call(self, method: str, params: Dict[str, Any]) -> Any:
        """Send a JSON-RPC request and return its result member."""
        payload = {
            'jsonrpc': '2.0',
            'id': next(_request_ids),
            'method': method,
            'params': params,
        }
        async with self.session.post(
            self.endpoint.url,
            json=payload,
            headers={'User-Agent': self.config.user_agent},
        ) as response:
            if response.status >= 400:
                text = await response.text()
                raise FetchError(f"HTTP {response.status}: {text[:200]}")
            body = await response.json(content_type=None)

        if not isinstance(body, dict):
            raise FetchError(f"Unexpected response: {str(body)[:200]}")
        if body.get('error') is not None:
            error = body['error']
            if isinstance(error, dict):
                raise FetchError(
                    f"RPC error {error.get('code')}: {error.get('message')}",
                )
            raise FetchError(f"RPC error: {error}")
        if body.get('result') is None:
            raise FetchError("RPC response has no result")
        return body['result']

    def _parse(self, result: Any) -> ProofBundle:
        if not isinstance(result, dict):
            raise TypeError(f"result must be an object, got {type(result).__name__}")
        return ProofBundle.from_rpc(result)


def create_session(config: ValidatorConfig = DEFAULT_VALIDATOR_CONFIG,
                   concurrency: int = 100) -> aiohttp.ClientSession:
    """Create the aiohttp session shared by all fetchers of a run.

    Must be called from inside a running event loop.
    """
    connector = aiohttp.TCPConnector(limit=concurrency)
    timeout = aiohttp.ClientTimeout(total=config.request_timeout)
    return aiohttp.ClientSession(connector=connector, timeout=timeout)
