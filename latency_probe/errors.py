"""Failure taxonomy for a single probe attempt."""

from __future__ import annotations


class ProbeError(Exception):
    """Base class for a classified probe failure."""

    reason = "probe_error"


class ResolutionError(ProbeError):
    reason = "resolution_error"


class NetworkError(ProbeError):
    reason = "network_error"


class ConnectionRefused(NetworkError):
    reason = "connection_refused"


class ProbeTimeout(ProbeError):
    reason = "timeout"


class RequestError(ProbeError):
    """HTTP failure above the transport (connect, TLS, protocol)."""

    reason = "request_error"
