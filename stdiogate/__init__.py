"""Bridge a stdio JSON-RPC subprocess to many SSE clients."""

__version__ = "0.1.0"
