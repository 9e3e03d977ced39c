"""Link-local (APIPA) address book for BGP sessions inside tunnels.

Every BGP-speaking tunnel needs a /30 whose two hosts are the session
endpoints.  Both sides of a link must agree on those addresses before either
side is created (Azure even bakes them into the gateway itself), so they are
handed out from fixed, configured blocks instead of being read back from the
peer's realized outputs.

Tunnel ``t`` of connection ``c`` always maps to the /30 at offset
``2 * c + t`` inside the pair's block, which keeps addresses stable across
re-runs.
"""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field
from typing import Mapping

from .errors import ConfigurationError
from .models import Pair

LINK_LOCAL = ipaddress.ip_network("169.254.0.0/16")

# Azure only accepts custom APIPA addresses from this range
AZURE_APIPA_RANGE = (
    ipaddress.ip_address("169.254.21.0"),
    ipaddress.ip_address("169.254.22.255"),
)

DEFAULT_BLOCKS = {
    "aws-google": "169.254.10.0/24",
    "aws-azure": "169.254.21.0/24",
    "google-azure": "169.254.22.0/24",
}


@dataclass(frozen=True)
class LinkAddresses:
    """A /30 and its two usable hosts.

    ``first`` belongs to the provider that owns the "cloud" end of the link
    (the AWS virtual private gateway, or Google toward Azure); ``second`` is
    the customer end.
    """

    cidr: str
    first: str
    second: str

    @property
    def first_cidr(self) -> str:
        return f"{self.first}/30"

    @property
    def second_cidr(self) -> str:
        return f"{self.second}/30"


@dataclass(frozen=True)
class ApipaBook:
    """Configured link-local blocks, one per provider pair."""

    blocks: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_BLOCKS))

    def __post_init__(self) -> None:
        for key, block in self.blocks.items():
            try:
                network = ipaddress.ip_network(block)
            except ValueError as e:
                raise ConfigurationError(f"Invalid APIPA block for {key}: {e}") from e
            if not network.subnet_of(LINK_LOCAL):
                raise ConfigurationError(
                    f"APIPA block {block} for {key} is outside {LINK_LOCAL}"
                )
            if network.prefixlen > 30:
                raise ConfigurationError(f"APIPA block {block} for {key} cannot hold a /30")

    def capacity(self, pair: Pair) -> int:
        """Number of /30 links available to ``pair``."""
        return self._network(pair).num_addresses // 4

    def link(self, pair: Pair, connection: int, tunnel: int = 0) -> LinkAddresses:
        """Return the /30 assigned to ``tunnel`` of ``connection`` on ``pair``."""
        network = self._network(pair)
        offset = 2 * connection + tunnel
        if offset >= self.capacity(pair):
            raise ConfigurationError(
                f"APIPA block {network} for {pair.key} is exhausted: "
                f"link {offset} requested, {self.capacity(pair)} available"
            )
        base = network.network_address + 4 * offset
        return LinkAddresses(cidr=f"{base}/30", first=str(base + 1), second=str(base + 2))

    def _network(self, pair: Pair) -> ipaddress.IPv4Network:
        try:
            return ipaddress.ip_network(self.blocks[pair.key])
        except KeyError:
            raise ConfigurationError(f"No APIPA block configured for {pair.key}") from None


def is_azure_apipa(address: str) -> bool:
    value = ipaddress.ip_address(address)
    return AZURE_APIPA_RANGE[0] <= value <= AZURE_APIPA_RANGE[1]
