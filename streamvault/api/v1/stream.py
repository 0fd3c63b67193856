"""Playback routes — decrypted progressive stream and HLS files."""

import uuid

from fastapi import APIRouter, Depends, Header, status
from fastapi.responses import FileResponse, StreamingResponse
from starlette.types import Receive, Scope, Send

from streamvault.container import AppServices
from streamvault.dependencies import get_services
from streamvault.services.encryption_service import DecryptedStream

router = APIRouter(prefix="/stream", tags=["stream"])

HLS_MEDIA_TYPES = {
    ".m3u8": "application/vnd.apple.mpegurl",
    ".ts": "video/mp2t",
}


class DecryptedStreamResponse(StreamingResponse):
    """Streams a DecryptedStream and closes it however the response ends.

    Starlette skips background tasks when the client disconnects, so the
    stream is released here instead.
    """

    def __init__(self, stream: DecryptedStream, **kwargs):
        super().__init__(stream, **kwargs)
        self.stream = stream

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            await self.stream.aclose()


@router.get("/{video_id}")
async def stream_video(
    video_id: uuid.UUID,
    range_header: str | None = Header(None, alias="Range"),
    services: AppServices = Depends(get_services),
):
    playback = await services.playback.open_stream(video_id, range_header)
    headers = {
        "Accept-Ranges": "bytes",
        "Content-Length": str(playback.length),
    }
    if playback.partial:
        headers["Content-Range"] = playback.content_range

    return DecryptedStreamResponse(
        playback.stream,
        status_code=status.HTTP_206_PARTIAL_CONTENT if playback.partial else status.HTTP_200_OK,
        media_type="video/mp4",
        headers=headers,
    )


@router.get("/{video_id}/hls/{filename}")
async def hls_file(video_id: uuid.UUID, filename: str, services: AppServices = Depends(get_services)):
    path = await services.playback.hls_file(video_id, filename)
    return FileResponse(path, media_type=HLS_MEDIA_TYPES.get(path.suffix, "application/octet-stream"))
