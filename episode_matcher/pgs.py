"""Decoding of HDMV PGS (Blu-ray ``.sup``) subtitle streams into images.

A PGS stream is a sequence of segments, each with a 13 byte header::

    "PG" | PTS (4) | DTS (4) | type (1) | size (2)

Segments are grouped into display sets ending with an END segment. A
presentation composition (PCS) places objects (ODS, run-length encoded bitmaps)
on screen using a palette (PDS) of YCbCr + alpha entries.
"""

import logging
import struct
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)

SEGMENT_HEADER = struct.Struct(">2sIIBH")
MAGIC = b"PG"
PTS_CLOCK = 90000

PDS = 0x14
ODS = 0x15
PCS = 0x16
WDS = 0x17
END = 0x80

EPOCH_START = 0x80
OBJECT_CROPPED = 0x80
FIRST_IN_SEQUENCE = 0x80
LAST_IN_SEQUENCE = 0x40


class PGSError(ValueError):
    """Raised when a PGS stream is malformed."""


@dataclass
class Segment:
    type: int
    pts: int
    data: bytes


@dataclass
class CompositionObject:
    object_id: int
    x: int
    y: int
    crop: Optional[Tuple[int, int, int, int]] = None


@dataclass
class Composition:
    width: int
    height: int
    number: int
    state: int
    palette_id: int
    objects: List[CompositionObject] = field(default_factory=list)


@dataclass
class SubtitleImage:
    """One rendered display set."""

    timestamp: float
    image: Image.Image


def iter_segments(data: bytes) -> Iterator[Segment]:
    offset = 0
    while offset + SEGMENT_HEADER.size <= len(data):
        magic, pts, _dts, seg_type, size = SEGMENT_HEADER.unpack_from(data, offset)
        if magic != MAGIC:
            raise PGSError(f"Bad segment magic at offset {offset}")
        offset += SEGMENT_HEADER.size
        payload = data[offset:offset + size]
        if len(payload) < size:
            raise PGSError(f"Truncated segment at offset {offset}")
        offset += size
        yield Segment(seg_type, pts, payload)

    if offset != len(data):
        logger.debug(f"Ignoring {len(data) - offset} trailing bytes in PGS stream")


def parse_composition(data: bytes) -> Composition:
    try:
        width, height, _rate, number, state, _update, palette_id, count = struct.unpack_from(">HHBHBBBB", data, 0)
        offset = 11
        objects = []
        for _ in range(count):
            object_id, _window, flags, x, y = struct.unpack_from(">HBBHH", data, offset)
            offset += 8
            crop = None
            if flags & OBJECT_CROPPED:
                crop = struct.unpack_from(">HHHH", data, offset)
                offset += 8
            objects.append(CompositionObject(object_id, x, y, crop))
    except struct.error as e:
        raise PGSError(f"Malformed composition segment: {e}") from e
    return Composition(width, height, number, state, palette_id, objects)


def ycbcr_to_rgba(y: np.ndarray, cr: np.ndarray, cb: np.ndarray, alpha: np.ndarray) -> np.ndarray:
    """Convert limited-range BT.709 YCbCr palette entries to RGBA."""
    y = (y.astype(np.float32) - 16.0) * 1.164
    cr = cr.astype(np.float32) - 128.0
    cb = cb.astype(np.float32) - 128.0
    r = y + 1.793 * cr
    g = y - 0.213 * cb - 0.533 * cr
    b = y + 2.112 * cb
    rgba = np.stack([r, g, b, alpha.astype(np.float32)], axis=-1)
    return np.clip(rgba, 0, 255).astype(np.uint8)


def parse_palette(data: bytes, palette: Optional[np.ndarray] = None) -> Tuple[int, np.ndarray]:
    """Apply a palette definition segment. Entries not mentioned keep their old value."""
    if len(data) < 2:
        raise PGSError("Palette segment too short")
    palette_id = data[0]
    palette = np.zeros((256, 4), dtype=np.uint8) if palette is None else palette.copy()

    entries = np.frombuffer(data[2:2 + (len(data) - 2) // 5 * 5], dtype=np.uint8).reshape(-1, 5)
    if len(entries):
        palette[entries[:, 0]] = ycbcr_to_rgba(entries[:, 1], entries[:, 2], entries[:, 3], entries[:, 4])
    return palette_id, palette


def decode_rle(rle: bytes, width: int, height: int) -> np.ndarray:
    """Decode a PGS run-length encoded bitmap into palette indices."""
    pixels = np.zeros((height, width), dtype=np.uint8)
    x = y = 0
    i = 0
    n = len(rle)
    try:
        while i < n and y < height:
            color = rle[i]
            i += 1
            if color:
                run = 1
            else:
                flags = rle[i]
                i += 1
                if flags == 0:
                    x = 0
                    y += 1
                    continue
                run = flags & 0x3F
                if flags & 0x40:
                    run = (run << 8) | rle[i]
                    i += 1
                if flags & 0x80:
                    color = rle[i]
                    i += 1
            if x < width:
                pixels[y, x:min(x + run, width)] = color
            x += run
    except IndexError as e:
        raise PGSError("Truncated run-length data") from e
    return pixels


def _render(composition: Composition, palette: np.ndarray, objects: Dict[int, np.ndarray]) -> Optional[Image.Image]:
    """Composite the objects of a composition over black and crop to the drawn area."""
    canvas = np.zeros((composition.height, composition.width, 3), dtype=np.uint8)
    drawn = False

    for placement in composition.objects:
        indices = objects.get(placement.object_id)
        if indices is None:
            logger.debug(f"Composition {composition.number} references unknown object {placement.object_id}")
            continue
        if placement.crop:
            cx, cy, cw, ch = placement.crop
            indices = indices[cy:cy + ch, cx:cx + cw]

        rgba = palette[indices].astype(np.uint16)
        rgb = (rgba[..., :3] * rgba[..., 3:4] // 255).astype(np.uint8)

        h = min(rgb.shape[0], composition.height - placement.y)
        w = min(rgb.shape[1], composition.width - placement.x)
        if h <= 0 or w <= 0:
            continue
        canvas[placement.y:placement.y + h, placement.x:placement.x + w] = rgb[:h, :w]
        drawn = True

    if not drawn:
        return None
    image = Image.fromarray(canvas)
    bbox = image.getbbox()
    return image.crop(bbox) if bbox else None


def iter_subtitle_images(data: bytes) -> Iterator[SubtitleImage]:
    """
    Decode a PGS stream and yield one image per non-empty display set.

    Raises:
        PGSError: If the stream is malformed
    """
    palettes: Dict[int, np.ndarray] = {}
    objects: Dict[int, np.ndarray] = {}
    pending: Dict[int, Tuple[int, int, bytearray]] = {}
    composition: Optional[Composition] = None
    composition_pts = 0

    for segment in iter_segments(data):
        if segment.type == PCS:
            composition = parse_composition(segment.data)
            composition_pts = segment.pts
            if composition.state & EPOCH_START:
                palettes.clear()
                objects.clear()
                pending.clear()

        elif segment.type == PDS:
            palette_id = segment.data[0] if segment.data else 0
            palette_id, palette = parse_palette(segment.data, palettes.get(palette_id))
            palettes[palette_id] = palette

        elif segment.type == ODS:
            if len(segment.data) < 4:
                raise PGSError("Object segment too short")
            object_id, _version, sequence = struct.unpack_from(">HBB", segment.data, 0)
            if sequence & FIRST_IN_SEQUENCE:
                if len(segment.data) < 11:
                    raise PGSError("Object segment too short")
                width, height = struct.unpack_from(">HH", segment.data, 7)
                pending[object_id] = (width, height, bytearray(segment.data[11:]))
            elif object_id in pending:
                pending[object_id][2].extend(segment.data[4:])
            else:
                logger.debug(f"Ignoring continuation of unknown object {object_id}")
                continue
            if sequence & LAST_IN_SEQUENCE:
                width, height, rle = pending.pop(object_id)
                objects[object_id] = decode_rle(bytes(rle), width, height)

        elif segment.type == END:
            if composition is not None and composition.objects:
                palette = palettes.get(composition.palette_id)
                if palette is not None:
                    image = _render(composition, palette, objects)
                    if image is not None:
                        yield SubtitleImage(composition_pts / PTS_CLOCK, image)
            composition = None

        elif segment.type != WDS:
            logger.debug(f"Ignoring unknown PGS segment type 0x{segment.type:02x}")


def read_sup_file(path: Path) -> Iterator[SubtitleImage]:
    """Decode a .sup file written by ffmpeg."""
    yield from iter_subtitle_images(path.read_bytes())
