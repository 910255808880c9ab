"""Manual DNS configuration prompt.

When DNS is not managed by the provisioner, the operator has to create the
records by hand before the API server name resolves. The entries come from
the provisioner output `dns_entries`.
"""

import logging
import socket
from dataclasses import dataclass, field
from typing import Callable

logger = logging.getLogger(__name__)

MANUAL = 'manual'
PROVIDERS = ('manual', 'route53', 'cloudflare')

_SEPARATOR = '-' * 72


@dataclass(frozen=True)
class DNSEntry:
    name: str
    ttl: int
    type: str
    records: tuple = field(default_factory=tuple)

    @classmethod
    def from_dict(cls, data: dict) -> 'DNSEntry':
        return cls(
            name=data['name'],
            ttl=int(data.get('ttl', 300)),
            type=data.get('type', 'A'),
            records=tuple(data.get('records') or ()),
        )


def parse_dns_entries(raw) -> list[DNSEntry]:
    """Parse the provisioner's `dns_entries` output."""
    return [DNSEntry.from_dict(item) for item in raw or []]


def format_dns_entries(entries: list[DNSEntry]) -> str:
    lines = [_SEPARATOR]
    for entry in entries:
        lines.append(f"Name: {entry.name}")
        lines.append(f"Type: {entry.type}")
        lines.append(f"TTL: {entry.ttl}")
        lines.append("Records:")
        lines.extend(f"- {record}" for record in entry.records)
        lines.append(_SEPARATOR)
    return '\n'.join(lines)


def check_dns_entries(entries: list[DNSEntry]) -> bool:
    """True if every entry resolves to exactly its records."""
    for entry in entries:
        try:
            _, _, ips = socket.gethostbyname_ex(entry.name)
        except OSError:
            logger.debug(f"{entry.name} does not resolve")
            return False
        if sorted(ips) != sorted(entry.records):
            logger.debug(f"{entry.name} resolves to {sorted(ips)}, want {sorted(entry.records)}")
            return False
    return True


def manual_dns_prompt(entries: list[DNSEntry], zone: str,
                      input_fn: Callable[[str], str] = input) -> bool:
    """Ask the operator to configure entries, then check them.

    Enter checks the entries, "skip" continues without checking.

    Returns:
        True if entries were verified, False if skipped
    """
    print(f"Please configure the following DNS entries at the DNS provider which hosts {zone!r}:")
    print(format_dns_entries(entries))

    while True:
        value = input_fn('Press Enter to check the entries or type "skip" to continue the installation: ').strip()
        if value == 'skip':
            return False
        if value:
            continue
        if check_dns_entries(entries):
            return True
        print("Entries are not correctly configured, please verify.")
