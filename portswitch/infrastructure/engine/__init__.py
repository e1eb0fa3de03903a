"""
Socket-level forwarding engine.
"""

from .tcp_forwarder import TcpForwardEngine, hostport

__all__ = [
    "TcpForwardEngine",
    "hostport",
]
