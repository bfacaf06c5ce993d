"""Provider orchestrators, one per indexing site."""

from __future__ import annotations

from .animepahe import AnimePaheProvider
from .base import IntermediateLink, ProviderBase, SearchHit, filter_streams
from .dramadrip import DramaDripProvider
from .fourkhdhub import FourKHDHubProvider
from .hdhub4u import HDHub4uProvider
from .moviebox import MovieBoxProvider
from .moviesdrive import MoviesDriveProvider
from .moviesmod import MoviesModProvider
from .registry import ProviderRegistry, build_default_providers
from .showbox import ShowBoxProvider
from .topmovies import TopMoviesProvider
from .uhdmovies import UHDMoviesProvider

__all__ = [
    "AnimePaheProvider",
    "DramaDripProvider",
    "FourKHDHubProvider",
    "HDHub4uProvider",
    "IntermediateLink",
    "MovieBoxProvider",
    "MoviesDriveProvider",
    "MoviesModProvider",
    "ProviderBase",
    "ProviderRegistry",
    "SearchHit",
    "ShowBoxProvider",
    "TopMoviesProvider",
    "UHDMoviesProvider",
    "build_default_providers",
    "filter_streams",
]
