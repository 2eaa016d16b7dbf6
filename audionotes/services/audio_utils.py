from __future__ import annotations

import json
import logging
import subprocess
import tempfile
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from audionotes.core.config import settings
from audionotes.core.exceptions import AudioConversionError

logger = logging.getLogger(__name__)

# normalized output: 128 kbps stereo 44.1 kHz mp3
MP3_BITRATE = "128k"
MP3_CHANNELS = 2
MP3_SAMPLE_RATE = 44100

# how much ffmpeg stderr ends up in a conversion error
STDERR_TAIL_CHARS = 4000


@dataclass
class AudioMetadata:
    duration: float | None = None
    bitrate: int | None = None
    sample_rate: int | None = None
    channels: int | None = None
    format: str | None = None
    recorded_at: datetime | None = None

    def as_note_fields(self) -> dict[str, Any]:
        return {
            "duration": self.duration,
            "bitrate": self.bitrate,
            "sample_rate": self.sample_rate,
            "channels": self.channels,
            "format": self.format,
            "recorded_at": self.recorded_at,
        }


# ----------------------------
# ffprobe
# ----------------------------


def _run_ffprobe(input_path: Path) -> dict[str, Any]:
    args = [
        settings.ffprobe_bin,
        "-v",
        "error",
        "-print_format",
        "json",
        "-show_format",
        "-show_streams",
        str(input_path),
    ]
    p = subprocess.run(args, capture_output=True, text=True)
    if p.returncode != 0:
        raise AudioConversionError(p.stderr.strip() or "ffprobe failed", source_path=str(input_path))
    return json.loads(p.stdout or "{}")


def _to_float(v: Any) -> float | None:
    try:
        return float(v)
    except (TypeError, ValueError):
        return None


def _to_int(v: Any) -> int | None:
    f = _to_float(v)
    return int(f) if f is not None else None


def _parse_recorded_at(tags: dict[str, Any]) -> datetime | None:
    raw = tags.get("creation_time") or tags.get("date")
    if not raw:
        return None
    s = str(raw).strip().replace("Z", "+00:00")
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def parse_probe_output(probe: dict[str, Any]) -> AudioMetadata:
    fmt = probe.get("format") or {}
    streams = probe.get("streams") or []
    audio = next((s for s in streams if s.get("codec_type") == "audio"), {})

    tags: dict[str, Any] = {}
    for src in (fmt.get("tags") or {}, audio.get("tags") or {}):
        # ffprobe tag keys vary in case between containers
        tags.update({str(k).lower(): v for k, v in src.items()})

    return AudioMetadata(
        duration=_to_float(fmt.get("duration")) or _to_float(audio.get("duration")),
        bitrate=_to_int(fmt.get("bit_rate")) or _to_int(audio.get("bit_rate")),
        sample_rate=_to_int(audio.get("sample_rate")),
        channels=_to_int(audio.get("channels")),
        format=fmt.get("format_name"),
        recorded_at=_parse_recorded_at(tags),
    )


def extract_audio_metadata(input_path: str | Path) -> AudioMetadata:
    """
    Probe duration/format/recording timestamp before queueing.
    Never raises: an unreadable file just yields empty metadata and the
    pipeline's conversion step reports the real problem.
    """
    try:
        return parse_probe_output(_run_ffprobe(Path(input_path)))
    except (AudioConversionError, OSError, ValueError) as e:
        logger.warning("Metadata probe failed for %s: %s", input_path, e)
        return AudioMetadata()


# ----------------------------
# ffmpeg transcode
# ----------------------------


def _progress_percent(line: str, duration: float | None) -> float | None:
    """
    Parse one `-progress pipe:1` line into a 0-100 percentage.
    ffmpeg reports out_time_us (and the misnamed out_time_ms, also microseconds).
    """
    key, _, value = line.strip().partition("=")
    if key not in ("out_time_us", "out_time_ms") or not duration:
        return None
    us = _to_float(value)
    if us is None or us < 0:
        return None
    return max(0.0, min(100.0, (us / 1_000_000.0) / duration * 100.0))


def _stderr_tail(err) -> str:
    err.seek(0)
    return err.read()[-STDERR_TAIL_CHARS:].strip()


def convert_audio_to_mp3(
    input_path: str | Path,
    output_path: str | Path,
    on_progress: Callable[[float], None] | None = None,
) -> None:
    """
    Convert any audio container to a normalized mp3.
    Calls on_progress with 0-100 as ffmpeg advances. Raises AudioConversionError.
    """
    src = Path(input_path)
    dst = Path(output_path)
    dst.parent.mkdir(parents=True, exist_ok=True)

    duration: float | None = None
    try:
        duration = parse_probe_output(_run_ffprobe(src)).duration
    except (AudioConversionError, OSError, ValueError):
        # ffmpeg below will produce the authoritative error
        duration = None

    args = [
        settings.ffmpeg_bin,
        "-y",
        "-loglevel",
        "error",
        "-i",
        str(src),
        "-vn",
        "-codec:a",
        "libmp3lame",
        "-b:a",
        MP3_BITRATE,
        "-ac",
        str(MP3_CHANNELS),
        "-ar",
        str(MP3_SAMPLE_RATE),
        "-f",
        "mp3",
        "-progress",
        "pipe:1",
        "-nostats",
        str(dst),
    ]

    # stderr goes to a temp file: a corrupted input can log far more than a
    # pipe buffer holds while we are still reading progress from stdout
    with tempfile.TemporaryFile(mode="w+", encoding="utf-8", errors="replace") as err:
        try:
            proc = subprocess.Popen(args, stdout=subprocess.PIPE, stderr=err, text=True)
        except OSError as e:
            raise AudioConversionError(f"ffmpeg could not be started: {e}", source_path=str(src)) from e

        with proc:
            try:
                assert proc.stdout is not None
                for line in proc.stdout:
                    pct = _progress_percent(line, duration)
                    if pct is not None and on_progress:
                        on_progress(pct)
            except BaseException:
                proc.kill()
                raise
            returncode = proc.wait()

        if returncode != 0:
            raise AudioConversionError(_stderr_tail(err) or "ffmpeg convert failed", source_path=str(src))

    if on_progress:
        on_progress(100.0)
