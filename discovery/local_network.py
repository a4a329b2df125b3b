"""Local network detection.

Suggests a default scan range from the machine's own active IPv4
interfaces, so a first scan can start without typing a range.
"""
from typing import List, Optional, Tuple

import psutil

from config import get_logger
from discovery.ip_utils import from_ordinal, parse_address
from discovery.range_normalizer import IPRange

logger = get_logger(__name__)


def get_active_ipv4_addresses() -> List[Tuple[str, str]]:
    """List ``(interface, address)`` pairs for interfaces that are up.

    Loopback and link-local (169.254.x.x) addresses are skipped.
    """
    active = []
    addrs = psutil.net_if_addrs()
    stats = psutil.net_if_stats()

    for iface, addr_list in addrs.items():
        # Skip loopback and inactive interfaces
        if iface.startswith('lo'):
            continue
        if iface not in stats or not stats[iface].isup:
            continue

        for addr in addr_list:
            if addr.family.name != 'AF_INET':
                continue
            if addr.address.startswith('127.') or addr.address.startswith('169.254.'):
                continue
            if parse_address(addr.address) is None:
                continue
            active.append((iface, addr.address))

    return active


def suggest_local_range() -> Optional[IPRange]:
    """The /24 of the first active interface, e.g. 192.168.1.0 - 192.168.1.255.

    Returns:
        None when no usable interface is found or psutil cannot read them.
    """
    try:
        active = get_active_ipv4_addresses()
    except (OSError, psutil.Error) as e:
        logger.warning(f"Could not read network interfaces: {e}")
        return None

    if not active:
        logger.debug("No active IPv4 interface found")
        return None

    iface, address = active[0]
    network = parse_address(address).ordinal & 0xFFFFFF00
    ip_range = IPRange(start=from_ordinal(network), end=from_ordinal(network | 0xFF))
    logger.info(f"Local network on {iface}: {ip_range}")
    return ip_range
