"""Domain entities for link resolution chains.

Pure value objects, no framework dependencies, no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any


class StepKind(str, Enum):
    """Outcome of a single hop in a resolution chain."""

    TERMINAL = "terminal"
    REDIRECT = "redirect"
    FORM_POST = "form_post"
    FAILURE = "failure"


class ErrorKind(str, Enum):
    """Failure taxonomy for chain hops."""

    TRANSIENT_NETWORK = "transient_network"
    STRUCTURAL_PARSE = "structural_parse"
    UPSTREAM_REJECTION = "upstream_rejection"
    VALIDATION_FAILURE = "validation_failure"


@dataclass(frozen=True)
class ErrorInfo:
    kind: ErrorKind
    message: str = ""


@dataclass
class SessionContext:
    """Mutable state owned by exactly one in-flight chain.

    Cookies are scoped per host. A context is created per chain invocation
    and handed down explicitly; it is never stored on shared objects.
    """

    cookies: dict[str, dict[str, str]] = field(default_factory=dict)
    referer: str | None = None
    tokens: dict[str, str] = field(default_factory=dict)

    def cookies_for(self, host: str) -> dict[str, str]:
        """Cookies applicable to *host* (exact host plus parent domains)."""
        merged: dict[str, str] = {}
        host = host.lower()
        for domain, jar in self.cookies.items():
            if host == domain or host.endswith("." + domain):
                merged.update(jar)
        return merged

    def set_cookie(self, host: str, name: str, value: str) -> None:
        self.cookies.setdefault(host.lower().lstrip("."), {})[name] = value

    def cookie_header(self, host: str) -> str:
        return "; ".join(f"{k}={v}" for k, v in self.cookies_for(host).items())


@dataclass(frozen=True)
class ResolutionHints:
    """Metadata scraped before the chain starts (used for display)."""

    quality: str | None = None
    file_name: str | None = None
    size: str | None = None


@dataclass(frozen=True)
class ResolutionRequest:
    """Input to one hop. A fresh request is built for every hop."""

    url: str
    referer: str | None = None
    session: SessionContext | None = None
    hints: ResolutionHints = field(default_factory=ResolutionHints)

    def next_hop(self, url: str, *, referer: str | None = None) -> ResolutionRequest:
        """Request for the following hop, carrying session and hints forward."""
        return replace(self, url=url, referer=referer if referer else self.url)

    def with_hints(self, **changes: Any) -> ResolutionRequest:
        return replace(self, hints=replace(self.hints, **changes))


@dataclass(frozen=True)
class BehaviorHints:
    binge_group: str | None = None
    # Request headers a player must send for the URL (``proxyHeaders``).
    proxy_headers: tuple[tuple[str, str], ...] = ()
    not_web_ready: bool = False

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.binge_group:
            data["bingeGroup"] = self.binge_group
        if self.proxy_headers:
            data["proxyHeaders"] = {"request": dict(self.proxy_headers)}
        if self.not_web_ready:
            data["notWebReady"] = True
        return data


@dataclass(frozen=True)
class StreamDescriptor:
    """Normalized output unit handed to the addon layer.

    ``url`` is always a directly fetchable media resource. ``codecs`` and
    ``file_name`` feed filtering and formatting only and are not serialized.
    """

    name: str
    title: str
    url: str
    quality: str
    size: str | None = None
    codecs: tuple[str, ...] = ()
    behavior_hints: BehaviorHints | None = None
    file_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the addon JSON shape (optional keys omitted)."""
        data: dict[str, Any] = {
            "name": self.name,
            "title": self.title,
            "url": self.url,
            "quality": self.quality,
        }
        if self.size:
            data["size"] = self.size
        hints = self.behavior_hints.to_dict() if self.behavior_hints is not None else {}
        if hints:
            data["behaviorHints"] = hints
        return data


@dataclass(frozen=True)
class ChainStep:
    """One hop's outcome. Chains stop on TERMINAL or FAILURE."""

    kind: StepKind
    next_request: ResolutionRequest | None = None
    descriptor: StreamDescriptor | None = None
    error: ErrorInfo | None = None

    @classmethod
    def terminal(cls, descriptor: StreamDescriptor) -> ChainStep:
        return cls(kind=StepKind.TERMINAL, descriptor=descriptor)

    @classmethod
    def redirect(cls, request: ResolutionRequest) -> ChainStep:
        return cls(kind=StepKind.REDIRECT, next_request=request)

    @classmethod
    def form_post(cls, request: ResolutionRequest) -> ChainStep:
        return cls(kind=StepKind.FORM_POST, next_request=request)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str = "") -> ChainStep:
        return cls(kind=StepKind.FAILURE, error=ErrorInfo(kind=kind, message=message))

    @property
    def is_final(self) -> bool:
        return self.kind in (StepKind.TERMINAL, StepKind.FAILURE)


class ResolutionError(Exception):
    """Base error raised by hops. Converted to a FAILURE step by the chain runner."""

    kind: ErrorKind = ErrorKind.STRUCTURAL_PARSE


class StructuralParseError(ResolutionError):
    """An expected selector, regex match or form field is missing."""

    kind = ErrorKind.STRUCTURAL_PARSE


class UpstreamRejectionError(ResolutionError):
    """A terminal API answered without a usable URL."""

    kind = ErrorKind.UPSTREAM_REJECTION


class ValidationFailureError(ResolutionError):
    """Reachability probe of a final URL failed."""

    kind = ErrorKind.VALIDATION_FAILURE
