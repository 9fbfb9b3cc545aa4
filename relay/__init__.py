"""Progress relay: an HTTP façade that lets clients poll a streaming chat turn."""

__version__ = "1.0.0"
