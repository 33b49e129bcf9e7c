"""Test helpers to stub the OpenAI Responses client used by the extractor.

The stub records every ``responses.create`` call and answers with a fixed
``output_text`` (or raises a prepared exception) so tests can assert on the
request shape without a network.
"""

from __future__ import annotations

from typing import Any


class OpenAIStub:
    """Minimal stub matching the ``openai.OpenAI`` shape used by the extractor.

    Parameters
    ----------
    output_text:
        The text every call returns.
    error:
        When set, every call raises it instead.
    calls_out:
        A list that will be appended with each call's kwargs.
    """

    def __init__(
        self,
        output_text: str = "[]",
        *,
        error: Exception | None = None,
        calls_out: list[dict[str, Any]] | None = None,
    ) -> None:
        self._output_text = output_text
        self._error = error
        self._calls = calls_out if calls_out is not None else []

        class _Responses:
            def __init__(self, outer: OpenAIStub) -> None:
                self._outer = outer

            def create(self, **kwargs):
                self._outer._calls.append(kwargs)
                if self._outer._error is not None:
                    raise self._outer._error

                class _Resp:
                    output_text: str

                resp = _Resp()
                resp.output_text = self._outer._output_text
                return resp

        self.responses = _Responses(self)

    # Expose the captured calls list for assertions
    @property
    def calls(self) -> list[dict[str, Any]]:
        return self._calls


def stub_factory(stub: OpenAIStub):
    """Return a callable usable in place of ``openai.OpenAI`` that yields ``stub``."""

    def _factory(*_a: Any, **_kw: Any) -> OpenAIStub:
        return stub

    return _factory
