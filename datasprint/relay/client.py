"""
Client for the object relay.

Uploads are never retried automatically: a POST that reached the relay may
already have produced a stored object, so a failure is reported to the
caller instead. Only idempotent requests (the health check) are retried.
"""

import logging
import mimetypes
import os
from dataclasses import dataclass
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..config import get_relay_base_url, get_relay_timeout
from ..exceptions import RelayError

logger = logging.getLogger("datasprint.relay.client")


@dataclass
class UploadResult:
    """Reference to a file stored through the relay"""
    file_id: str
    file_url: str = ""


class RelayClient:
    """
    Uploads submission files to the object relay.

    Features:
    - Automatic relay URL discovery
    - Bounded per-request timeout
    - Structured RelayError for every failure mode
    """

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[int] = None):
        """
        Initialize the relay client.

        Args:
            base_url: Optional explicit relay URL. If None, will auto-discover.
            timeout: Request timeout in seconds (default: DATASPRINT_RELAY_TIMEOUT or 30)
        """
        self.base_url = (base_url or get_relay_base_url()).rstrip("/")
        self.timeout = timeout or get_relay_timeout()
        self.session = self._create_session()
        logger.info(f"RelayClient initialized with base URL: {self.base_url}")

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        retry_strategy = Retry(
            total=3,
            backoff_factor=1,
            status_forcelist=[502, 503, 504],
            allowed_methods=["HEAD", "GET", "OPTIONS"],
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        return session

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            return self.session.request(method, url, timeout=kwargs.pop("timeout", self.timeout), **kwargs)
        except requests.exceptions.Timeout as e:
            raise RelayError(f"Relay request timed out after {self.timeout}s: {e}")
        except requests.exceptions.ConnectionError as e:
            raise RelayError(f"Could not reach relay at {self.base_url}: {e}")
        except requests.exceptions.RequestException as e:
            raise RelayError(f"Relay request failed: {e}")

    def health(self) -> bool:
        response = self._request("GET", "/healthz")
        return response.status_code == 200

    def upload(self, file_path: str, content_type: Optional[str] = None) -> UploadResult:
        """
        Send one file to the relay.

        Args:
            file_path: Local path of the file to upload
            content_type: MIME type; guessed from the filename when omitted

        Returns:
            UploadResult with the provider's file id and URL

        Raises:
            RelayError: On transport failure, timeout, non-2xx status or a
                        response that does not report success
        """
        filename = os.path.basename(file_path)
        content_type = content_type or mimetypes.guess_type(filename)[0] or "application/octet-stream"

        with open(file_path, "rb") as f:
            response = self._request("POST", "/upload", files={"file": (filename, f, content_type)})

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if not 200 <= response.status_code < 300:
            message = body.get("error") or response.text or response.reason
            raise RelayError(f"Relay rejected upload ({response.status_code}): {message}",
                             status_code=response.status_code)
        if not body.get("success") or not body.get("fileId"):
            raise RelayError(f"Relay did not report success: {body.get('error') or response.text}",
                             status_code=response.status_code)

        logger.info(f"Uploaded {filename} via relay as {body['fileId']}")
        return UploadResult(file_id=body["fileId"], file_url=body.get("fileUrl") or "")
