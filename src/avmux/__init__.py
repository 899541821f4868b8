"""avmux: HTTP service that merges a remote video and a remote audio stream."""

__version__ = "1.0.0"
