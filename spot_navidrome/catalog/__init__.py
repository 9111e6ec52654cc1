"""
Catalog module for spot-navidrome.

Models of both sides of an export and the capability interfaces that the
Spotify and Navidrome clients implement:
    - SourceTrack, SourcePlaylist: Spotify side
    - CandidateSong, DestinationPlaylist: Navidrome side
    - ExportDescriptor: link stored in Navidrome playlist comments
    - SourceCatalog, DestinationCatalog: abstract clients
"""

from spot_navidrome.catalog.base import DestinationCatalog, SourceCatalog
from spot_navidrome.catalog.descriptor import ExportDescriptor
from spot_navidrome.catalog.models import (
    CandidateSong,
    DestinationPlaylist,
    SourcePlaylist,
    SourceTrack,
)

__all__ = [
    "SourceTrack",
    "SourcePlaylist",
    "CandidateSong",
    "DestinationPlaylist",
    "ExportDescriptor",
    "SourceCatalog",
    "DestinationCatalog",
]
