"""Latency probe agent: periodic ICMP/TCP/HTTP/UDP-echo probes exported as Prometheus metrics."""

__version__ = "0.1.0"
