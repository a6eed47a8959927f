import json
import logging
import re
import subprocess

logger = logging.getLogger(__name__)

_INT_RE = re.compile(r"[+-]?[0-9]+")


def get_video_info(video_path: str) -> dict:
    cmd = [
        "ffprobe", "-v", "error",
        "-loglevel", "error",
        "-print_format", "json",
        "-show_format", "-show_streams",
        video_path
    ]
    result = subprocess.run(cmd, capture_output=True, text=False)
    if result.returncode != 0:
        raise RuntimeError(f"ffprobe error: {result.stderr.decode('utf-8')}")
    return json.loads(result.stdout.decode('utf-8'))


def get_video_duration(video_path: str) -> float:
    return float(get_video_info(video_path)["format"]["duration"])


def split_hhmmss(t: str) -> tuple[int, int, int]:
    """
    Split a strict HH:MM:SS string into integer components.

    Components are not range checked, so "45:30:00" is returned as (45, 30, 0).
    Raises ValueError when the value does not have exactly three integer parts.
    """
    parts = t.split(":")
    if len(parts) != 3:
        raise ValueError(f"Invalid timestamp format: {t}")
    if not all(_INT_RE.fullmatch(p) for p in parts):
        raise ValueError(f"Invalid timestamp format: {t}")
    h, m, s = (int(p) for p in parts)
    return h, m, s


def hhmmss_to_seconds(t: str) -> int:
    h, m, s = split_hhmmss(t)
    return h * 3600 + m * 60 + s


def seconds_to_hhmmss(seconds) -> str:
    """Format a whole number of seconds as HH:MM:SS."""
    total = int(seconds)
    hours = total // 3600
    minutes = (total % 3600) // 60
    secs = total % 60
    return f"{hours:02}:{minutes:02}:{secs:02}"
