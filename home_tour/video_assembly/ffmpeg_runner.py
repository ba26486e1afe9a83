"""Async wrapper around the ffmpeg / ffprobe executables"""

import asyncio
import logging
from fractions import Fraction
from pathlib import Path
from typing import Any, Dict, List, Optional

import ffmpeg

from ..errors import AssemblyError
from .video_models import MediaInfo

# Keep error payloads readable; ffmpeg banners can be long
MAX_DIAGNOSTIC_CHARS = 4000


def _tail(text: str, limit: int = MAX_DIAGNOSTIC_CHARS) -> str:
    text = text.strip()
    return text if len(text) <= limit else text[-limit:]


def _parse_rate(rate: Optional[str]) -> float:
    if not rate or rate in ("0/0", "N/A"):
        return 0.0
    try:
        return float(Fraction(rate))
    except (ValueError, ZeroDivisionError):
        return 0.0


def media_info_from_probe(data: Dict[str, Any]) -> MediaInfo:
    """Convert an ffprobe JSON document into MediaInfo"""
    streams = data.get('streams', [])
    fmt = data.get('format', {})
    video = next((s for s in streams if s.get('codec_type') == 'video'), None)
    has_audio = any(s.get('codec_type') == 'audio' for s in streams)

    duration = fmt.get('duration') or (video or {}).get('duration') or 0.0
    return MediaInfo(
        duration=float(duration),
        width=int((video or {}).get('width', 0)),
        height=int((video or {}).get('height', 0)),
        fps=_parse_rate((video or {}).get('r_frame_rate')),
        bitrate=int(fmt.get('bit_rate') or 0),
        has_audio=has_audio,
        has_video=video is not None,
    )


class FFmpegRunner:
    """Runs ffmpeg as a subprocess without blocking the event loop"""

    def __init__(self, binary: str = 'ffmpeg'):
        self.binary = binary
        self.logger = logging.getLogger(__name__)

    async def run(self, args: List[str], description: str = 'ffmpeg') -> str:
        """
        Run ffmpeg with the given arguments (binary name excluded).

        Returns:
            Captured stderr text

        Raises:
            AssemblyError: non-zero exit status or missing executable
        """
        cmd = [self.binary, *args]
        self.logger.debug(f"Running {description}: {' '.join(cmd)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE
            )
        except FileNotFoundError as e:
            raise AssemblyError(f"{description} could not start", f"executable not found: {self.binary}") from e

        _, stderr = await process.communicate()
        diagnostics = stderr.decode(errors='replace') if stderr else ''

        if process.returncode != 0:
            self.logger.error(f"{description} failed with exit code {process.returncode}")
            raise AssemblyError(f"{description} failed (exit {process.returncode})", _tail(diagnostics))

        return diagnostics

    async def probe(self, path: Path) -> MediaInfo:
        """Read duration, frame size, fps, bitrate and audio presence"""
        try:
            data = await asyncio.to_thread(ffmpeg.probe, str(path))
        except ffmpeg.Error as e:
            diagnostics = e.stderr.decode(errors='replace') if e.stderr else str(e)
            raise AssemblyError(f"ffprobe failed for {path}", _tail(diagnostics)) from e
        return media_info_from_probe(data)

    async def extract_frame(self, video_path: Path, timestamp: float, output_path: Path) -> Path:
        """Write a single high-quality still taken at `timestamp` seconds"""
        output_path.parent.mkdir(parents=True, exist_ok=True)
        args = (
            ffmpeg
            .input(str(video_path), ss=max(0.0, timestamp))
            .output(str(output_path), vframes=1, **{'q:v': 2})
            .overwrite_output()
            .get_args()
        )
        await self.run(args, description=f"frame extraction for {video_path.name}")
        return output_path
