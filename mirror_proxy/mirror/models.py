from dataclasses import dataclass
from typing import AsyncIterator, Optional, Tuple, Union

import httpx
from fastapi.responses import Response, StreamingResponse

Body = Union[bytes, AsyncIterator[bytes]]


@dataclass
class MirroredResponse:
    """
    Final response handed back to the caller.

    ``body`` is either the fully materialized (possibly rewritten) bytes of the
    text path or the untouched upstream stream of the passthrough path. Only
    one of the two ever exists for a given upstream response.
    """

    status_code: int
    headers: httpx.Headers
    body: Body
    reason_phrase: str = ""
    content_rewritten: bool = False
    rewritten_location: Optional[str] = None

    @property
    def is_streaming(self) -> bool:
        return not isinstance(self.body, (bytes, bytearray))

    def to_response(self) -> Response:
        if self.is_streaming:
            response = StreamingResponse(self.body, status_code=self.status_code)
            skip = ()
        else:
            # Starlette computes content-length for materialized bodies
            response = Response(content=bytes(self.body), status_code=self.status_code)
            skip = (b"content-length",)

        response.raw_headers.extend(
            (name.lower(), value)
            for name, value in self.headers.raw
            if name.lower() not in skip
        )
        return response


@dataclass(frozen=True)
class CachedResponse:
    """Snapshot of a MirroredResponse as it was returned to the caller."""

    status_code: int
    headers: Tuple[Tuple[bytes, bytes], ...]
    body: bytes
    reason_phrase: str = ""

    @classmethod
    def from_mirrored(cls, mirrored: MirroredResponse, body: bytes) -> "CachedResponse":
        return cls(
            status_code=mirrored.status_code,
            headers=tuple(mirrored.headers.raw),
            body=body,
            reason_phrase=mirrored.reason_phrase,
        )

    def to_mirrored(self) -> MirroredResponse:
        return MirroredResponse(
            status_code=self.status_code,
            headers=httpx.Headers(list(self.headers)),
            body=self.body,
            reason_phrase=self.reason_phrase,
        )
