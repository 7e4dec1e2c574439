from __future__ import annotations

import re
import subprocess
import threading
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

from app.core.errors import CompressionFailed
from app.core.logging import configure_logging
from app.models import CompressionResult, VideoPreset
from app.storage.local import LocalStorage, StoredFile
from app.storage.replacement import Replacement

logger = configure_logging()

ProgressCallback = Callable[[int], None]


@dataclass(frozen=True)
class PresetSpec:
    height: int
    crf: int


VIDEO_PRESETS = {
    VideoPreset.light: PresetSpec(height=1080, crf=23),
    VideoPreset.medium: PresetSpec(height=720, crf=28),
    VideoPreset.heavy: PresetSpec(height=480, crf=32),
}

AUDIO_BITRATE = "128k"

_DURATION_RE = re.compile(r"Duration:\s*(\d+):(\d{2}):(\d{2}(?:\.\d+)?)")
# ffmpeg يكتب out_time_ms بالميكروثانية أيضًا
_OUT_TIME_RE = re.compile(r"^out_time_(?:us|ms)=(\d+)\s*$")
_PROGRESS_KEY_RE = re.compile(r"^[a-z_]+=\S*$")


def build_ffmpeg_command(binary: str, source: Path, output: Path, preset: VideoPreset) -> List[str]:
    spec = VIDEO_PRESETS[preset]
    return [
        binary,
        "-hide_banner",
        "-nostdin",
        "-y",
        "-i", str(source),
        "-c:v", "libx264",
        "-preset", "medium",
        "-crf", str(spec.crf),
        "-vf", f"scale=-2:{spec.height}",
        "-c:a", "aac",
        "-b:a", AUDIO_BITRATE,
        "-movflags", "+faststart",
        "-progress", "pipe:1",
        "-nostats",
        str(output),
    ]


class ProgressTracker:
    """يحوّل مخرجات ffmpeg إلى نسبة مئوية لا تتراجع."""

    def __init__(self, on_progress: Optional[ProgressCallback] = None) -> None:
        self.on_progress = on_progress
        self.duration: Optional[float] = None
        self.percent = 0

    def feed(self, line: str) -> None:
        if self.duration is None:
            match = _DURATION_RE.search(line)
            if match:
                hours, minutes, seconds = match.groups()
                duration = int(hours) * 3600 + int(minutes) * 60 + float(seconds)
                self.duration = duration or None
            return

        match = _OUT_TIME_RE.match(line.strip())
        if not match:
            return
        elapsed = int(match.group(1)) / 1_000_000
        percent = min(100, int(elapsed * 100 / self.duration))
        if percent > self.percent:
            self.percent = percent
            if self.on_progress:
                self.on_progress(percent)


class VideoCompressor:
    """ضغط الفيديو عبر ffmpeg مع الإبلاغ عن التقدم."""

    def __init__(
        self,
        storage: LocalStorage | None = None,
        ffmpeg_binary: str = "ffmpeg",
        timeout: Optional[float] = None,
    ) -> None:
        self.storage = storage or LocalStorage()
        self.ffmpeg_binary = ffmpeg_binary
        self.timeout = timeout or None

    def compress(
        self,
        stored: StoredFile,
        preset: VideoPreset,
        on_progress: Optional[ProgressCallback] = None,
    ) -> CompressionResult:
        preset = VideoPreset(preset)
        output_name = f"{stored.stem}_compressed.mp4"
        logger.info("Video compression started: %s (preset=%s)", stored.filename, preset.value)

        with Replacement(self.storage, stored, output_name) as replacement:
            self._transcode(stored.path, replacement.output_path, preset, on_progress)

        result = replacement.result
        logger.info(
            "Video compressed: %s -> %s (%d -> %d bytes)",
            stored.filename,
            result.filename,
            result.original_size,
            result.compressed_size,
        )
        return result

    def _transcode(
        self,
        source: Path,
        output: Path,
        preset: VideoPreset,
        on_progress: Optional[ProgressCallback],
    ) -> None:
        command = build_ffmpeg_command(self.ffmpeg_binary, source, output, preset)
        logger.debug("FFmpeg command: %s", " ".join(command))

        tracker = ProgressTracker(on_progress)
        tail: deque = deque(maxlen=15)
        timed_out = threading.Event()

        try:
            # stderr مدموج في stdout: أنبوب واحد يُقرأ حتى النهاية فلا يحدث انسداد
            process = subprocess.Popen(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                stdin=subprocess.DEVNULL,
                text=True,
                errors="replace",
            )
        except FileNotFoundError as exc:
            raise CompressionFailed(f"ffmpeg غير متوفر على الخادم ({self.ffmpeg_binary}).") from exc

        def _expire() -> None:
            timed_out.set()
            process.kill()

        timer = threading.Timer(self.timeout, _expire) if self.timeout else None
        if timer:
            timer.daemon = True
            timer.start()

        try:
            for line in process.stdout:
                tracker.feed(line)
                text = line.rstrip()
                if text and not _PROGRESS_KEY_RE.match(text):
                    tail.append(text)
            returncode = process.wait()
        finally:
            if timer:
                timer.cancel()
            if process.poll() is None:
                process.kill()
                process.wait()
            process.stdout.close()

        if timed_out.is_set():
            raise CompressionFailed(f"تجاوز ضغط الفيديو المهلة المحددة ({self.timeout:.0f} ثانية).")
        if returncode != 0:
            details = "\n".join(tail) or "no output"
            logger.warning("FFmpeg failed (rc=%s) for %s: %s", returncode, source.name, details[-500:])
            raise CompressionFailed(f"ffmpeg exited with code {returncode}: {details[-500:]}")
