"""HLS transcoders. Called synchronously from a worker thread."""

import logging
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path

from streamvault.errors import ConfigurationError, TranscodeError

logger = logging.getLogger(__name__)

PLAYLIST_NAME = "playlist.m3u8"


class Transcoder(ABC):
    @abstractmethod
    def transcode(self, input_path: Path, output_dir: Path) -> Path:
        """Write an HLS playlist and its segments into output_dir. Returns the playlist path."""


class FFmpegTranscoder(Transcoder):
    def __init__(self, binary: str = "ffmpeg", timeout: int = 30 * 60):
        self.binary = binary
        self.timeout = timeout

    def transcode(self, input_path: Path, output_dir: Path) -> Path:
        output_dir.mkdir(parents=True, exist_ok=True)
        playlist = output_dir / PLAYLIST_NAME
        cmd = [
            self.binary, "-y", "-i", str(input_path),
            "-c:v", "libx264", "-crf", "23", "-preset", "medium",
            "-c:a", "aac", "-b:a", "128k",
            "-f", "hls",
            "-hls_time", "10",
            "-hls_list_size", "0",
            "-hls_segment_filename", str(output_dir / "segment_%03d.ts"),
            str(playlist),
        ]
        logger.info("Transcoding %s to HLS in %s", input_path.name, output_dir)
        try:
            result = subprocess.run(
                cmd, capture_output=True, text=True, errors="replace", timeout=self.timeout
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise TranscodeError(f"ffmpeg could not run: {e}") from e

        if result.returncode != 0:
            tail = result.stderr.strip().splitlines()[-5:]
            raise TranscodeError(f"ffmpeg exited with {result.returncode}", details={"stderr": tail})
        if not playlist.exists():
            raise TranscodeError("ffmpeg finished without writing a playlist")
        return playlist


class SimulatedTranscoder(Transcoder):
    """Writes a fixed two-segment playlist. For development without ffmpeg."""

    PLAYLIST = (
        "#EXTM3U\n"
        "#EXT-X-VERSION:3\n"
        "#EXT-X-TARGETDURATION:10\n"
        "#EXT-X-MEDIA-SEQUENCE:0\n"
        "#EXTINF:10.000000,\n"
        "segment0.ts\n"
        "#EXTINF:10.000000,\n"
        "segment1.ts\n"
        "#EXT-X-ENDLIST\n"
    )

    def transcode(self, input_path: Path, output_dir: Path) -> Path:
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
            playlist = output_dir / PLAYLIST_NAME
            playlist.write_text(self.PLAYLIST)
            for i in range(2):
                (output_dir / f"segment{i}.ts").write_bytes(f"Segment {i} data".encode())
        except OSError as e:
            raise TranscodeError(f"Could not write simulated HLS output: {e}") from e
        return playlist


class NullTranscoder(Transcoder):
    def transcode(self, input_path: Path, output_dir: Path) -> Path:
        raise TranscodeError("Transcoding is disabled")


def get_transcoder(name: str, ffmpeg_binary: str = "ffmpeg", timeout: int = 30 * 60) -> Transcoder:
    if name == "ffmpeg":
        return FFmpegTranscoder(ffmpeg_binary, timeout)
    if name == "simulated":
        return SimulatedTranscoder()
    if name == "disabled":
        return NullTranscoder()
    raise ConfigurationError(f"Unknown transcoder: {name}")
