"""Statement extraction via a remote HTTP service.

The service accepts ``POST {url}`` with a JSON body::

    {"file": "data:<media>;base64,...", "filename": ..., "mediaType": ...,
     "fileType": "document"|"image", "categories": [{id, name, type}],
     "password": ...}

and answers with ``{"transactions": [...]}``. A ``401`` whose body carries
``{"code": "PASSWORD_REQUIRED", "error": ...}`` means the service could not
open the document; the ``error`` text distinguishes a missing from an
incorrect password.
"""

from __future__ import annotations

import os
from typing import Any

import httpx

from ..errors import PASSWORD_REQUIRED, ExtractionError, PasswordRequiredError
from ..logging_setup import get_logger
from .base import ExtractionRequest

_URL_ENV = "STATEMENT_IMPORT_EXTRACTOR_URL"

_logger = get_logger("statement_import.extractors.http")


def _json_body(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


class HttpStatementExtractor:
    """Post statements to an extraction service.

    ``url`` defaults to ``$STATEMENT_IMPORT_EXTRACTOR_URL``. A preconfigured
    ``client`` may be injected (tests pass one built on
    :class:`httpx.MockTransport`).
    """

    def __init__(
        self,
        url: str | None = None,
        *,
        timeout_seconds: float = 120.0,
        headers: dict[str, str] | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        resolved = url or os.getenv(_URL_ENV)
        if not resolved:
            raise ValueError(
                f"HttpStatementExtractor needs a service URL (argument or ${_URL_ENV})"
            )
        self.url = resolved
        # connect/write/pool stay short; the read budget covers model latency.
        self._client = client or httpx.Client(
            timeout=httpx.Timeout(
                connect=10.0,
                read=float(timeout_seconds),
                write=30.0,
                pool=10.0,
            ),
            headers=headers,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> HttpStatementExtractor:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _payload(self, request: ExtractionRequest) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "file": request.data_url(),
            "filename": request.filename,
            "mediaType": request.media_type,
            "fileType": request.kind,
            "categories": [c.to_prompt_dict() for c in request.categories],
        }
        if request.password:
            payload["password"] = request.password
        return payload

    def extract(self, request: ExtractionRequest) -> str:
        _logger.info(
            "extract:http_request url=%s kind=%s bytes=%d",
            self.url,
            request.kind,
            len(request.data),
        )
        try:
            response = self._client.post(self.url, json=self._payload(request))
            if response.status_code == 401:
                body = _json_body(response)
                if body.get("code") == PASSWORD_REQUIRED:
                    raise PasswordRequiredError(
                        str(body.get("error") or "PDF is password protected")
                    )
            response.raise_for_status()
        except httpx.TimeoutException as e:
            _logger.warning("extract:http_timeout url=%s", self.url)
            raise ExtractionError("Extraction service timed out") from e
        except httpx.HTTPStatusError as e:
            body = _json_body(e.response)
            _logger.error(
                "extract:http_status status=%d url=%s", e.response.status_code, self.url
            )
            message = body.get("error") or f"Extraction service returned {e.response.status_code}"
            raise ExtractionError(str(message), raw_text=e.response.text) from e
        except httpx.RequestError as e:
            _logger.error("extract:http_failed error=%s url=%s", e.__class__.__name__, self.url)
            raise ExtractionError(f"Extraction service request failed: {e}") from e

        _logger.info("extract:http_done status=%d chars=%d", response.status_code, len(response.text))
        return response.text


__all__ = ["HttpStatementExtractor"]
