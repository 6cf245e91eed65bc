"""
Copyright © 2026 Vladimir Vaulin-Belskii. All rights reserved.

ffprobe/ffmpeg wrappers used to probe, normalize and cut audio files.
"""
from __future__ import annotations

import asyncio.subprocess as aio_subprocess
import logging
import math
from pathlib import Path

from .errors import ConversionFailed, DurationUnknown

logger = logging.getLogger(__name__)

CANONICAL_EXTENSION = ".wav"
CANONICAL_CODEC = "pcm_s16le"
PCM_SAMPLE_WIDTH_BYTES = 2
STDERR_TAIL_CHARS = 500


async def _run(args: list[str]) -> tuple[int, bytes, bytes]:
    """Run a command to completion and return (returncode, stdout, stderr)."""

    logger.debug("Running %s", " ".join(args))
    process = await aio_subprocess.create_subprocess_exec(
        *args,
        stdin=aio_subprocess.DEVNULL,
        stdout=aio_subprocess.PIPE,
        stderr=aio_subprocess.PIPE,
    )
    stdout, stderr = await process.communicate()
    return process.returncode, stdout, stderr


def _stderr_tail(stderr: bytes) -> str:
    return stderr.decode(errors="ignore").strip()[-STDERR_TAIL_CHARS:]


def parse_duration(raw: str) -> float:
    """Parse ffprobe's duration output, rejecting anything but a finite positive number."""

    try:
        value = float(raw.strip())
    except ValueError as exc:
        raise DurationUnknown(f"Unparseable duration output: {raw.strip()!r}") from exc
    if not math.isfinite(value) or value <= 0:
        raise DurationUnknown(f"Invalid duration value: {value}")
    return value


class MediaTranscoder:
    """Invoke ffprobe and ffmpeg as external processes."""

    def __init__(
        self,
        *,
        ffmpeg_binary: str = "ffmpeg",
        ffprobe_binary: str = "ffprobe",
        sample_rate: int = 16000,
        channels: int = 1,
    ) -> None:
        self.ffmpeg_binary = ffmpeg_binary
        self.ffprobe_binary = ffprobe_binary
        self.sample_rate = sample_rate
        self.channels = channels

    @property
    def canonical_bytes_per_second(self) -> int:
        return self.sample_rate * self.channels * PCM_SAMPLE_WIDTH_BYTES

    async def probe_duration(self, path: str | Path) -> float:
        """Return the duration of ``path`` in seconds or raise :class:`DurationUnknown`."""

        args = [
            self.ffprobe_binary,
            "-v",
            "error",
            "-show_entries",
            "format=duration",
            "-of",
            "default=noprint_wrappers=1:nokey=1",
            str(path),
        ]
        try:
            returncode, stdout, stderr = await _run(args)
        except OSError as exc:
            raise DurationUnknown(f"Could not run {self.ffprobe_binary}: {exc}") from exc

        if returncode != 0:
            raise DurationUnknown(f"ffprobe exited with {returncode}: {_stderr_tail(stderr)}")
        return parse_duration(stdout.decode(errors="ignore"))

    async def transcode(
        self,
        source: str | Path,
        output: str | Path,
        *,
        start: float | None = None,
        span: float | None = None,
        stream_copy: bool = False,
    ) -> Path:
        """Write ``source`` (or the ``[start, start+span)`` slice of it) to ``output``.

        Without ``stream_copy`` the audio is re-encoded to mono PCM WAV at the configured
        sample rate. Raises :class:`ConversionFailed` on any ffmpeg failure.
        """

        args = [self.ffmpeg_binary, "-nostdin", "-hide_banner", "-loglevel", "error", "-y"]
        if start is not None:
            args.extend(["-ss", f"{start:.3f}"])
        if span is not None:
            args.extend(["-t", f"{span:.3f}"])
        args.extend(["-i", str(source), "-vn"])
        if stream_copy:
            args.extend(["-c", "copy"])
        else:
            args.extend([
                "-ac",
                str(self.channels),
                "-ar",
                str(self.sample_rate),
                "-c:a",
                CANONICAL_CODEC,
            ])
        args.append(str(output))

        try:
            returncode, _, stderr = await _run(args)
        except OSError as exc:
            raise ConversionFailed(str(source), f"could not run {self.ffmpeg_binary}: {exc}") from exc

        output = Path(output)
        if returncode != 0:
            raise ConversionFailed(str(source), f"ffmpeg exited with {returncode}: {_stderr_tail(stderr)}")
        if not output.exists() or output.stat().st_size == 0:
            raise ConversionFailed(str(source), "ffmpeg produced no output")
        return output

    async def normalize(self, source: str | Path, output: str | Path) -> Path:
        """Convert a whole file to the canonical mono PCM WAV format."""
        return await self.transcode(source, output)

    async def extract_segment(
        self,
        source: str | Path,
        output: str | Path,
        start: float,
        span: float,
        *,
        stream_copy: bool = True,
    ) -> Path:
        return await self.transcode(source, output, start=start, span=span, stream_copy=stream_copy)
