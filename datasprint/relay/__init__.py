"""
Object relay: the HTTP forwarder for submission files and its client.

The server side (`create_app`) needs the FastAPI stack; the client side only
needs requests. Importing this package loads the client alone.
"""

from .client import RelayClient, UploadResult

__all__ = ["RelayClient", "UploadResult"]
