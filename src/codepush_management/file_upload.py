"""
Chunked asset upload for release packages.

The management API hands out an asset id, upload domain and token; the
file is then sent to that domain in numbered chunks.
"""

import logging
import math
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import requests

from .exceptions import CodePushError, GatewayTimeoutError, error_for_status

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]


class FileUploadClient:
    """
    Upload a local file to an asset placeholder.

    Args:
        proxy: Optional proxy URL used for both http and https
        timeout: Seconds to wait for each request
    """

    TIMEOUT = 120
    BINARY_CONTENT_TYPE = "application/x-binary"

    def __init__(self, proxy: Optional[str] = None, timeout: Optional[float] = None):
        self._proxy = proxy
        self._timeout = timeout or self.TIMEOUT

    def upload(
        self,
        asset_id: str,
        asset_domain: str,
        asset_token: str,
        file_path: Union[str, Path],
        on_progress: Optional[ProgressCallback] = None,
    ) -> Dict[str, Any]:
        """
        Upload ``file_path`` and wait until the transfer is finished.

        Args:
            asset_id: Asset placeholder id returned by the uploads endpoint
            asset_domain: Base URL of the upload service
            asset_token: Token authorizing the upload
            file_path: Local file to send
            on_progress: Called with the percentage completed after each chunk

        Returns:
            The upload service's final response body
        """
        path = Path(file_path)
        file_size = path.stat().st_size
        base_url = f"{asset_domain.rstrip('/')}/upload"

        metadata = self._post(
            f"{base_url}/set_metadata/{asset_id}",
            params={"file_name": path.name, "file_size": file_size, "token": asset_token},
        )
        chunk_size = int(metadata.get("chunk_size") or file_size or 1)
        chunk_count = max(1, math.ceil(file_size / chunk_size))
        chunk_list: List[int] = metadata.get("chunk_list") or list(range(1, chunk_count + 1))
        logger.info(
            f"upload: Sending {path.name} ({file_size} bytes) in {len(chunk_list)} chunks"
        )

        with open(path, "rb") as f:
            for index, block_number in enumerate(chunk_list, 1):
                f.seek((block_number - 1) * chunk_size)
                chunk = f.read(chunk_size)
                self._post(
                    f"{base_url}/upload_chunk/{asset_id}",
                    params={"token": asset_token, "block_number": block_number},
                    data=chunk,
                    headers={"Content-Type": self.BINARY_CONTENT_TYPE},
                )
                if on_progress:
                    on_progress(index * 100.0 / len(chunk_list))

        result = self._post(f"{base_url}/finished/{asset_id}", params={"token": asset_token})
        if result.get("error"):
            raise CodePushError(
                f"Upload of {path.name} failed: {result.get('message', 'unknown error')}"
            )
        return result

    def _post(self, url: str, **kwargs: Any) -> Dict[str, Any]:
        if self._proxy:
            kwargs["proxies"] = {"http": self._proxy, "https": self._proxy}
        try:
            response = requests.post(url, timeout=self._timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            logger.error(f"upload: Request to {url} failed: {e}")
            raise GatewayTimeoutError(f"Upload failed: {e}")

        if not response.ok:
            raise error_for_status(response.status_code, response.text or response.reason)

        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}
