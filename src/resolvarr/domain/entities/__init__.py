from .media import (
    CodecExclusion,
    MediaMetadata,
    MediaRef,
    MediaType,
    ProviderSite,
    RequestConfig,
)
from .resolution import (
    BehaviorHints,
    ChainStep,
    ErrorInfo,
    ErrorKind,
    ResolutionError,
    ResolutionHints,
    ResolutionRequest,
    SessionContext,
    StepKind,
    StreamDescriptor,
    StructuralParseError,
    UpstreamRejectionError,
    ValidationFailureError,
)

__all__ = [
    "BehaviorHints",
    "ChainStep",
    "CodecExclusion",
    "ErrorInfo",
    "ErrorKind",
    "MediaMetadata",
    "MediaRef",
    "MediaType",
    "ProviderSite",
    "RequestConfig",
    "ResolutionError",
    "ResolutionHints",
    "ResolutionRequest",
    "SessionContext",
    "StepKind",
    "StreamDescriptor",
    "StructuralParseError",
    "UpstreamRejectionError",
    "ValidationFailureError",
]
