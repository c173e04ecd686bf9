"""Address-block pool with overlap detection.

Used by validation to reject conflicting network ranges. Pools are built
fresh per validation call and hold at most a few tens of blocks, so
insertion is a linear scan.
"""
import ipaddress
from typing import Union

IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]


class OverlapError(ValueError):
    """A CIDR overlaps a block already in the pool."""

    def __init__(self, existing: IPNetwork, added: IPNetwork):
        self.existing = existing
        self.added = added
        super().__init__(f"CIDRs {existing} and {added} overlap")


def parse_cidr(cidr: str) -> IPNetwork:
    """Parse a CIDR string, tolerating host bits set (``10.0.0.1/8``).

    Raises:
        ValueError: If the string is not a valid CIDR
    """
    if "/" not in str(cidr):
        raise ValueError(f"{cidr!r} is not a CIDR")
    return ipaddress.ip_network(str(cidr).strip(), strict=False)


def net_includes(outer: IPNetwork, inner: IPNetwork) -> bool:
    """True if ``outer`` contains the first or last address of ``inner``."""
    if outer.version != inner.version:
        return False
    return inner.network_address in outer or inner.broadcast_address in outer


def nets_overlap(a: IPNetwork, b: IPNetwork) -> bool:
    """Two blocks overlap if either contains an edge of the other."""
    return net_includes(a, b) or net_includes(b, a)


class IPPool:
    """A set of non-overlapping address blocks."""

    def __init__(self):
        self._networks: list[IPNetwork] = []

    def add(self, cidr: Union[str, IPNetwork]) -> IPNetwork:
        """
        Add a block to the pool.

        Args:
            cidr: CIDR string or parsed network

        Returns:
            The parsed network that was added

        Raises:
            ValueError: If a string CIDR cannot be parsed
            OverlapError: If the block overlaps one already in the pool
        """
        network = parse_cidr(cidr) if isinstance(cidr, str) else cidr
        for existing in self._networks:
            if nets_overlap(existing, network):
                raise OverlapError(existing, network)
        self._networks.append(network)
        return network

    def __len__(self) -> int:
        return len(self._networks)

    @property
    def networks(self) -> list[IPNetwork]:
        return list(self._networks)
