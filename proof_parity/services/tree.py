"""Tree metadata retrieval over Solana JSON-RPC."""

import base64
import logging
from typing import Any, Dict, Optional

import requests

from .asset_id import find_tree_config
from ..config import (
    BUBBLEGUM_PROGRAM_ID,
    TREE_CONFIG_NUM_MINTED_OFFSET,
    ValidatorConfig,
    DEFAULT_VALIDATOR_CONFIG,
)
from ..errors import SetupError
from ..models.tree import TreeReference

logger = logging.getLogger(__name__)


class TreeMetadataClient:
    """Reads the Bubblegum tree config to learn how many leaves a tree has."""

    def __init__(self,
                 rpc_url: str,
                 config: ValidatorConfig = DEFAULT_VALIDATOR_CONFIG,
                 session: Optional[requests.Session] = None,
                 program_id: str = BUBBLEGUM_PROGRAM_ID):
        """Initialize tree metadata client.

        Args:
            rpc_url: Solana RPC url
            config: Validator configuration
            session: Optional requests session (a new one is created otherwise)
            program_id: Bubblegum program id
        """
        self.rpc_url = rpc_url
        self.config = config
        self.session = session or requests.Session()
        self.program_id = program_id

    def fetch_tree(self, tree_id: str) -> TreeReference:
        """Fetch the tree reference for a Merkle tree.

        Args:
            tree_id: Base58 Merkle tree address

        Returns:
            TreeReference with the number of minted leaves

        Raises:
            SetupError: the tree config cannot be read or decoded
        """
        try:
            config_address = find_tree_config(tree_id, self.program_id)
        except ValueError as e:
            raise SetupError(f"Invalid tree address {tree_id!r}: {e}") from e

        logger.info("Fetching tree config %s for tree %s", config_address, tree_id)
        account = self._get_account_info(config_address)
        if account is None:
            raise SetupError(f"Tree config account {config_address} not found")

        num_leaves = self._decode_num_minted(account, config_address)
        logger.info("Tree %s has %d minted leaves", tree_id, num_leaves)
        return TreeReference(tree_id=tree_id, num_leaves=num_leaves)

    def _get_account_info(self, address: str) -> Optional[Dict[str, Any]]:
        payload = {
            'jsonrpc': '2.0',
            'id': 1,
            'method': 'getAccountInfo',
            'params': [
                address,
                {'encoding': 'base64', 'commitment': self.config.commitment},
            ],
        }
        try:
            response = self.session.post(
                self.rpc_url,
                json=payload,
                timeout=self.config.request_timeout,
                headers={'User-Agent': self.config.user_agent},
            )
            response.raise_for_status()
            body = response.json()
        except requests.RequestException as e:
            raise SetupError(f"Failed to fetch tree config from {self.rpc_url}: {e}") from e
        except ValueError as e:
            raise SetupError(f"RPC returned invalid JSON: {e}") from e

        if body.get('error'):
            raise SetupError(f"RPC error fetching tree config: {body['error']}")
        result = body.get('result') or {}
        return result.get('value')

    @staticmethod
    def _decode_num_minted(account: Dict[str, Any], address: str) -> int:
        try:
            encoded, encoding = account['data']
            if encoding != 'base64':
                raise ValueError(f"unexpected encoding {encoding!r}")
            data = base64.b64decode(encoded)
        except (KeyError, TypeError, ValueError) as e:
            raise SetupError(f"Cannot decode tree config {address}: {e}") from e

        end = TREE_CONFIG_NUM_MINTED_OFFSET + 8
        if len(data) < end:
            raise SetupError(
                f"Tree config {address} is too short ({len(data)} bytes)"
            )
        return int.from_bytes(data[TREE_CONFIG_NUM_MINTED_OFFSET:end], 'little')
