from .base import (
    AllProvidersFailed,
    BaseProvider,
    MediaReference,
    ProviderAttempt,
    ProviderError,
    ProviderResponse,
    ResolvedMedia,
)
from .chain import ProviderChainResolver
from .http import RetryPolicy
from .providers import (
    SnapTikProvider,
    SSSTikProvider,
    TiklyDownProvider,
    TikmateProvider,
    TikWMProvider,
    YtDlpProvider,
    build_providers,
)

__all__ = [
    "AllProvidersFailed",
    "BaseProvider",
    "MediaReference",
    "ProviderAttempt",
    "ProviderChainResolver",
    "ProviderError",
    "ProviderResponse",
    "ResolvedMedia",
    "RetryPolicy",
    "SnapTikProvider",
    "SSSTikProvider",
    "TiklyDownProvider",
    "TikmateProvider",
    "TikWMProvider",
    "YtDlpProvider",
    "build_providers",
]
