from .cache import CachePort
from .link_resolver import LinkResolverPort
from .metadata import MetadataPort
from .provider import ProviderPort

__all__ = ["CachePort", "LinkResolverPort", "MetadataPort", "ProviderPort"]
