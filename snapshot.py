"""Shareable snapshots of an assembled tangram.

A snapshot is packed into a small little-endian byte buffer::

    version | dissection id | background rgb | foreground rgb * n
            | (x u16, y u16, angle u16) * n | xor checksum

and the buffer is carried around as URL-safe text (see ``urlsafe``).
Positions are stored relative to the bounding box minimum of the shape
with a resolution of 1/10000, rotations with a resolution of 1/100 degree.
"""
import logging
import struct
from dataclasses import dataclass
from typing import NamedTuple, Tuple

import urlsafe
import vecmath as vm
from tangram import Dissection, create_shape

logger = logging.getLogger(__name__)

ENCODER_VERSION = 1
ENCODE_POSITION_SCALE = 10000
ENCODE_ROTATION_SCALE = 100
DECODE_POSITION_SCALE = 1.0 / ENCODE_POSITION_SCALE
DECODE_ROTATION_SCALE = 1.0 / ENCODE_ROTATION_SCALE

TRANSFORM_FORMAT = struct.Struct("<HHH")


class SnapshotError(ValueError):
    """Base class for snapshot decoding failures."""


class ChecksumNotFoundError(SnapshotError):
    """Buffer is empty, there is not even a checksum byte."""


class ChecksumMismatchError(SnapshotError):
    """XOR over the whole buffer is not zero."""


class VersionNotFoundError(SnapshotError):
    """Buffer ends before the version byte."""


class UnsupportedVersionError(SnapshotError):
    """Snapshot was written by a newer encoder."""


class DissectionIdNotFoundError(SnapshotError):
    """Buffer ends before the dissection id byte."""


class DissectionMismatchError(SnapshotError):
    """Snapshot belongs to another dissection than the one supplied."""


class ColorsNotFoundError(SnapshotError):
    """Buffer is too short for the background and foreground colors."""


class TransformsNotFoundError(SnapshotError):
    """Buffer is too short for one transform per tan."""


class TrailingBytesError(SnapshotError):
    """Bytes remain between the transforms and the checksum."""


@dataclass(frozen=True)
class Color:
    r: int
    g: int
    b: int

    def __post_init__(self):
        for component in (self.r, self.g, self.b):
            if not isinstance(component, int):
                raise ValueError(f"Color components should be integers, got {component!r}")
            if not 0x00 <= component <= 0xFF:
                raise ValueError("Color components should be in range [0..255]")

    @classmethod
    def from_sequence(cls, rgb):
        r, g, b = rgb
        return cls(int(r), int(g), int(b))

    @classmethod
    def from_hex(cls, value):
        """Parse "#29abe2" or "29abe2" """
        value = value.lstrip("#")
        if len(value) != 6:
            raise ValueError(f"Expected 6 hex digits, got {value!r}")
        return cls(int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16))

    def to_bytes(self):
        return bytes((self.r, self.g, self.b))


class Transform(NamedTuple):
    position: Tuple[float, float]
    rotation: float

    @classmethod
    def from_sequence(cls, values):
        """Build from an [x, y, rotation] triple"""
        x, y, rotation = values
        return cls((float(x), float(y)), float(rotation))


@dataclass
class Snapshot:
    dissection: Dissection
    transforms: list
    background_color: Color
    foreground_colors: list

    @classmethod
    def from_dict(cls, data):
        """Read a puzzle definition in its JSON form.

        Expects ``dissection`` ({"id", "vertices", "polygons"}),
        ``transforms`` ([x, y, rotation] per tan), ``backgroundColor`` and
        ``foregroundColors`` ([r, g, b] triples).
        """
        dissection = Dissection.from_dict(data["dissection"])
        transforms = [Transform.from_sequence(t) for t in data["transforms"]]
        background_color = Color.from_sequence(data["backgroundColor"])
        foreground_colors = [Color.from_sequence(c) for c in data["foregroundColors"]]
        return cls(dissection, transforms, background_color, foreground_colors)

    def encode(self):
        return encode_snapshot(self.dissection, self.transforms,
                               self.background_color, self.foreground_colors)

    def create_shape(self):
        return create_shape(self.dissection, self.transforms)


def _checksum(data):
    crc = 0x00
    for b in data:
        crc ^= b
    return crc


def _quantize(value, scale):
    return max(0x0000, min(0xFFFF, vm.round_half_up(value * scale)))


def _normalized_rotation(rotation):
    # a tiny negative angle gives exactly 360.0 after one modulo
    return ((rotation % 360.0) + 360.0) % 360.0


def encode_tangram(tangram, background_color, foreground_colors):
    """Pack the current poses of *tangram* and the colors into URL-safe text"""
    if len(foreground_colors) != len(tangram.tans):
        raise ValueError("Foreground color count should be equal to tan count")
    aabb = tangram.compute_aabb()
    buffer = bytearray()
    buffer.append(ENCODER_VERSION)
    buffer.append(tangram.dissection.id)
    buffer += background_color.to_bytes()
    for color in foreground_colors:
        buffer += color.to_bytes()
    for tan in tangram.tans:
        x = _quantize(tan.position[0] - aabb.min[0], ENCODE_POSITION_SCALE)
        y = _quantize(tan.position[1] - aabb.min[1], ENCODE_POSITION_SCALE)
        a = _quantize(_normalized_rotation(tan.rotation), ENCODE_ROTATION_SCALE)
        buffer += TRANSFORM_FORMAT.pack(x, y, a)
    buffer.append(_checksum(buffer))
    logger.debug("Encoded snapshot of dissection %d into %d bytes", tangram.dissection.id, len(buffer))
    return urlsafe.encode(buffer)


def encode_snapshot(dissection, transforms, background_color, foreground_colors):
    """Encode a shape given by its per-tan transforms"""
    if len(foreground_colors) != len(dissection.polygons):
        raise ValueError("Foreground color count should be equal to tan count")
    tangram = create_shape(dissection, transforms)
    return encode_tangram(tangram, background_color, foreground_colors)


def decode_snapshot(text, dissection):
    """Unpack URL-safe text produced by ``encode_snapshot``.

    Every section is length-checked before it is read; the first problem
    raises the matching ``SnapshotError`` subclass.
    """
    data = urlsafe.decode(text)
    logger.debug("Decoding snapshot of %d bytes", len(data))

    if len(data) < 1:
        raise ChecksumNotFoundError("Checksum not found")
    if _checksum(data) != 0x00:
        raise ChecksumMismatchError("Failed checksum check")

    # the checksum byte at the end is never part of a section
    end = len(data) - 1
    index = 0

    if end - index < 1:
        raise VersionNotFoundError("Snapshot version not found")
    version = data[index]
    index += 1
    if version > ENCODER_VERSION:
        raise UnsupportedVersionError(f"Unsupported snapshot version ({version})")

    if end - index < 1:
        raise DissectionIdNotFoundError("Dissection id not found")
    dissection_id = data[index]
    index += 1
    if dissection_id != dissection.id:
        raise DissectionMismatchError(
            f"Dissection id ({dissection_id}) does not match supplied dissection with id ({dissection.id})")

    count = len(dissection.polygons)
    if end - index < 3 * (1 + count):
        raise ColorsNotFoundError("Colors not found")
    background_color = Color.from_sequence(data[index:index + 3])
    index += 3
    foreground_colors = []
    for _ in range(count):
        foreground_colors.append(Color.from_sequence(data[index:index + 3]))
        index += 3

    if end - index < TRANSFORM_FORMAT.size * count:
        raise TransformsNotFoundError("Transforms not found")
    transforms = []
    for _ in range(count):
        x, y, a = TRANSFORM_FORMAT.unpack_from(data, index)
        index += TRANSFORM_FORMAT.size
        transforms.append(Transform((x * DECODE_POSITION_SCALE, y * DECODE_POSITION_SCALE),
                                    a * DECODE_ROTATION_SCALE))

    if index != end:
        raise TrailingBytesError(f"Remain {end - index} bytes undecoded")

    return Snapshot(dissection, transforms, background_color, foreground_colors)
