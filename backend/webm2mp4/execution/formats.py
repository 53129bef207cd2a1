"""
Fixed conversion format pair.

The converter supports exactly one conversion: WebM in, MP4 out.
Scratch file names and the ffmpeg argument list are fixed here and
nowhere else.
"""

from typing import List

SOURCE_MEDIA_TYPE = "video/webm"
TARGET_MEDIA_TYPE = "video/mp4"

SOURCE_EXTENSION = ".webm"
TARGET_EXTENSION = ".mp4"

# Scratch names inside the engine working directory
INPUT_NAME = "input" + SOURCE_EXTENSION
OUTPUT_NAME = "output" + TARGET_EXTENSION

TRANSCODE_ARGS: List[str] = ["-i", INPUT_NAME, OUTPUT_NAME]


def suggested_output_name(source_name: str) -> str:
    """
    Derive the download filename for a converted file.

    Replaces a trailing ``.webm`` with ``.mp4``. Names without the source
    extension keep their full name and get ``.mp4`` appended.

    Examples:
        clip.webm       -> clip.mp4
        my.clip.webm    -> my.clip.mp4
        recording       -> recording.mp4
    """
    if source_name.endswith(SOURCE_EXTENSION):
        return source_name[: -len(SOURCE_EXTENSION)] + TARGET_EXTENSION
    return source_name + TARGET_EXTENSION


def format_size(size_bytes: int) -> str:
    """
    Format file size for display.

    Args:
        size_bytes: Size in bytes

    Returns:
        Human-readable size string
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"

    if size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"

    if size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.2f} MB"

    return f"{size_bytes / (1024 * 1024 * 1024):.2f} GB"
