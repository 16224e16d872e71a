"""Image re-encoding applied before server-side uploads.

Every image that passes through the gateway is re-encoded by libvips as a
progressive JPEG with full 4:4:4 chroma, trellis quantisation and overshoot
deringing. The quality level drops as the source grows.
"""

import asyncio
import os
from pathlib import Path

import pyvips

BYTES_PER_MB = 1024**2

IMAGE_EXTENSIONS = frozenset({"jpg", "jpeg", "png"})


def is_image_extension(file_ext: str) -> bool:
    return file_ext.lower().lstrip(".") in IMAGE_EXTENSIONS


def choose_quality(size_mb: float) -> int:
    """JPEG quality for a source of ``size_mb`` megabytes."""
    if size_mb <= 5:
        return 75
    if size_mb <= 7:
        return 60
    if size_mb <= 10:
        return 45
    return 25


def jpeg_options(quality: int) -> dict:
    """Keyword arguments for ``pyvips.Image.jpegsave``."""
    return {
        "Q": quality,
        "subsample_mode": "off",  # 4:4:4
        "interlace": True,  # progressive
        "optimize_coding": True,
        "trellis_quant": True,
        "overshoot_deringing": True,
    }


def compress_image(source: bytes | str | Path, destination: str | Path) -> str:
    """Re-encode an image to JPEG at ``destination``.

    Args:
        source: Raw image bytes or a path to an image file. May be the same
            path as ``destination``.
        destination: Output path

    Returns:
        The destination path

    Raises:
        pyvips.Error: source is not a readable image
        OSError: source or destination cannot be read or written
    """
    if isinstance(source, bytes):
        data = source
    else:
        with open(source, "rb") as f:
            data = f.read()

    image = pyvips.Image.new_from_buffer(data, "", access="sequential")
    if image.hasalpha():
        # JPEG has no alpha channel
        image = image.flatten()
    if image.interpretation not in ("srgb", "b-w"):
        # 16-bit, CMYK and other spaces down to 8-bit sRGB
        image = image.colourspace("srgb")

    image.jpegsave(os.fspath(destination), **jpeg_options(choose_quality(len(data) / BYTES_PER_MB)))
    return str(destination)


async def compress_image_async(source: bytes | str | Path, destination: str | Path) -> str:
    """Run ``compress_image`` in a worker thread and wait for it."""
    return await asyncio.to_thread(compress_image, source, destination)
