"""Statement extraction via the OpenAI Responses API.

No side effects occur at import time (no client creation, no environment
reads). The client is created lazily on the first call via
:func:`_create_client`, which tests replace by monkeypatching ``OpenAI``.
"""

from __future__ import annotations

import os
import time
from typing import Any

from openai import OpenAI, OpenAIError

from .. import prompting
from ..errors import ExtractionError
from ..logging_setup import get_logger
from .base import ExtractionRequest

# ---- Tunables (private) ------------------------------------------------------

_MODEL_DEFAULT: str = "gpt-5"
_MODEL_ENV = "STATEMENT_IMPORT_MODEL"

_logger = get_logger("statement_import.extractors.openai")


# ---- Internal helpers --------------------------------------------------------


def _create_client() -> OpenAI:
    return OpenAI()


def _extract_response_text(resp: Any) -> str:
    """Locate the text output on a Responses SDK result.

    Prefer ``resp.output_text``; fall back to ``resp.output[0].content[0].text``.
    """

    text: str | None = getattr(resp, "output_text", None)
    if not text:
        try:
            first = resp.output[0] if getattr(resp, "output", None) else None
            content = getattr(first, "content", None)
            if content and len(content) > 0:
                txt_obj = getattr(content[0], "text", None)
                if isinstance(txt_obj, str):
                    text = txt_obj
                else:
                    maybe_val = getattr(txt_obj, "value", None)
                    if isinstance(maybe_val, str):
                        text = maybe_val
        except Exception:  # noqa: BLE001 - tolerate SDK shape differences
            text = None
    if not text or not isinstance(text, str):
        raise ExtractionError("Unexpected Responses API shape; unable to locate text output")
    return text


def _payload_part(request: ExtractionRequest) -> dict[str, Any]:
    if request.is_text:
        return {
            "type": "input_text",
            "text": f"BEGIN_STATEMENT_TEXT\n{request.text()}\nEND_STATEMENT_TEXT",
        }
    if request.kind == "image":
        return {"type": "input_image", "image_url": request.data_url()}
    return {"type": "input_file", "filename": request.filename, "file_data": request.data_url()}


def build_input(request: ExtractionRequest) -> list[dict[str, Any]]:
    """Compose the Responses ``input``: task text first, then the statement."""

    return [
        {
            "role": "user",
            "content": [
                {
                    "type": "input_text",
                    "text": prompting.build_user_content(
                        request.categories, filename=request.filename
                    ),
                },
                _payload_part(request),
            ],
        }
    ]


# ---- Public API --------------------------------------------------------------


class OpenAIStatementExtractor:
    """Send a statement to a vision-capable model and return its text output.

    ``model`` defaults to ``$STATEMENT_IMPORT_MODEL`` (read at call time) and
    then ``gpt-5``. There are no retries; any SDK failure surfaces as
    :class:`ExtractionError`.
    """

    def __init__(self, *, model: str | None = None) -> None:
        self._model = model
        self._client: OpenAI | None = None

    @property
    def model(self) -> str:
        return self._model or os.getenv(_MODEL_ENV) or _MODEL_DEFAULT

    def _get_client(self) -> OpenAI:
        if self._client is None:
            try:
                self._client = _create_client()
            except OpenAIError as e:
                raise ExtractionError(f"OpenAI client could not be created: {e}") from e
        return self._client

    def extract(self, request: ExtractionRequest) -> str:
        client = self._get_client()
        model = self.model
        _logger.info(
            "extract:llm_request model=%s kind=%s bytes=%d categories=%d",
            model,
            request.kind,
            len(request.data),
            len(request.categories),
        )

        t0 = time.perf_counter()
        try:
            resp = client.responses.create(
                model=model,
                instructions=prompting.build_system_instructions(),
                input=build_input(request),
            )
        except OpenAIError as e:
            _logger.error(
                "extract:llm_failed latency_ms=%.2f error=%s",
                (time.perf_counter() - t0) * 1000.0,
                e.__class__.__name__,
            )
            raise ExtractionError(f"Extraction request failed: {e}") from e

        text = _extract_response_text(resp)
        _logger.info(
            "extract:llm_done latency_ms=%.2f chars=%d",
            (time.perf_counter() - t0) * 1000.0,
            len(text),
        )
        return text


__all__ = ["OpenAIStatementExtractor", "build_input"]
