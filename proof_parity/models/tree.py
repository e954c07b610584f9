"""Tree and endpoint models."""

import re
from dataclasses import dataclass
from typing import List, Sequence

from ..config import RESERVED_LABELS

ENDPOINT_DESCRIPTION = (
    'Each endpoint must be passed in as `<label>,<url>`, separated by a single comma.'
)

_HTTP_URL_RE = re.compile(r'^https?:')


@dataclass(frozen=True)
class TreeReference:
    """The compressed Merkle tree being validated."""
    tree_id: str
    num_leaves: int


@dataclass(frozen=True)
class Endpoint:
    """A proof source. The first endpoint of a run is the canonical one."""
    label: str
    url: str

    @classmethod
    def parse(cls, value: str) -> 'Endpoint':
        """Parse ``label,url``.

        Raises:
            ValueError: wrong shape, empty label or non-http(s) url
        """
        parts = value.strip().split(',')
        if len(parts) != 2:
            raise ValueError(ENDPOINT_DESCRIPTION)
        label, url = parts[0].strip(), parts[1].strip()
        if not label:
            raise ValueError('Endpoint label must not be empty.')
        if not is_http_url(url):
            raise ValueError('Endpoint URL must start with `http:` or `https:`.')
        return cls(label=label, url=url)


def is_http_url(url: str) -> bool:
    return bool(_HTTP_URL_RE.match(url))


def validate_endpoints(endpoints: Sequence[Endpoint]) -> List[Endpoint]:
    """Check an endpoint list can label the columns of a comparison artifact.

    Raises:
        ValueError: empty list, duplicate label or reserved label
    """
    if not endpoints:
        raise ValueError('At least one endpoint is required.')
    seen = set()
    for endpoint in endpoints:
        if endpoint.label in RESERVED_LABELS:
            raise ValueError(f'Endpoint label {endpoint.label!r} is reserved.')
        if endpoint.label in seen:
            raise ValueError(f'Duplicate endpoint label {endpoint.label!r}.')
        seen.add(endpoint.label)
    return list(endpoints)
