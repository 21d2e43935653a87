"""
Error taxonomy for the decode-and-assemble pipeline.

None of these is allowed to abort a whole wallet query except
UpstreamUnavailable raised while listing signatures.
"""


class SwapTraceError(Exception):
    pass


class DecodeError(SwapTraceError):
    """Malformed instruction or event payload. Skipped at the item level."""


class UpstreamUnavailable(SwapTraceError):
    """The RPC node could not serve the request."""


class RateLimitError(UpstreamUnavailable):
    """The RPC node throttled the request (HTTP 429 or equivalent)."""


class MetadataMissingError(SwapTraceError):
    """No decimals could be determined for a mint."""


class AssemblyError(SwapTraceError):
    """A trade cannot be formatted because an endpoint token is unresolved."""
