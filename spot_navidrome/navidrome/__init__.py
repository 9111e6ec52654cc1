"""
Navidrome integration for spot-navidrome.

Song lookup, playlist writes and starring against a Navidrome server.
"""

from spot_navidrome.navidrome.client import NavidromeClient, retry_delay

__all__ = [
    "NavidromeClient",
    "retry_delay",
]
