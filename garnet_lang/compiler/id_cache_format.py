"""Binary identifier cache format (.gidc).

The persistent interning table is stored between builds in a small binary
container holding a MessagePack-encoded payload dict.

Layout (version 1):

    ┌─────────────────────────────────────────────────────────────┐
    │ MAGIC (16 bytes): 0x89 "GARNET-IDCACHE" 0x0A                │
    ├─────────────────────────────────────────────────────────────┤
    │ VERSION (4 bytes): uint32 LE                                │
    ├─────────────────────────────────────────────────────────────┤
    │ ENTRY_COUNT (4 bytes): uint32 LE (number of interned names) │
    ├─────────────────────────────────────────────────────────────┤
    │ SPARE (8 bytes): uint64 LE (reserved)                       │
    ├─────────────────────────────────────────────────────────────┤
    │ PAYLOAD_LENGTH (8 bytes): uint64 LE                         │
    ├─────────────────────────────────────────────────────────────┤
    │ PAYLOAD_BLOB (N bytes): MessagePack {"methods", "next"}     │
    └─────────────────────────────────────────────────────────────┘

Fixed header size: 40 bytes (magic + version + count + spare + length)
"""
from __future__ import annotations

import struct
from pathlib import Path
from typing import BinaryIO

import msgpack

from garnet_lang.compiler.payload import CachePayload
from garnet_lang.internals.errors import CachePayloadError


def _read_bytes(f: BinaryIO, size: int, path: str) -> bytes:
    """Read exactly *size* bytes or raise CE3002."""
    data = f.read(size)
    if len(data) != size:
        raise CachePayloadError("CE3002", path=path, expected=size, actual=len(data))
    return data


class IdCacheFormat:
    """Binary format reader/writer for identifier cache files."""

    MAGIC = b'\x89GARNET-IDCACHE\n'
    VERSION = 1
    FIXED_HEADER_SIZE = 40  # 16 (magic) + 4 (version) + 4 (count) + 8 (spare) + 8 (length)
    MAX_PAYLOAD_SIZE = 256 * 1024 * 1024

    @staticmethod
    def dumps(payload: CachePayload) -> bytes:
        blob = msgpack.packb(payload.to_dict(), use_bin_type=True)
        header = IdCacheFormat.MAGIC
        header += struct.pack("<I", IdCacheFormat.VERSION)
        header += struct.pack("<I", len(payload.methods))
        header += struct.pack("<Q", 0)  # SPARE
        header += struct.pack("<Q", len(blob))
        return header + blob

    @staticmethod
    def write(output_path: Path, payload: CachePayload) -> None:
        """Write *payload* to *output_path*, replacing it atomically."""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = output_path.with_suffix(output_path.suffix + ".tmp")
        tmp_path.write_bytes(IdCacheFormat.dumps(payload))
        tmp_path.replace(output_path)

    @staticmethod
    def load(f: BinaryIO, path: str = "<stream>") -> CachePayload:
        magic = _read_bytes(f, 16, path)
        if magic != IdCacheFormat.MAGIC:
            raise CachePayloadError("CE3003", path=path)

        version, count = struct.unpack("<II", _read_bytes(f, 8, path))
        if version != IdCacheFormat.VERSION:
            raise CachePayloadError("CE3004", path=path, version=version,
                                    supported=IdCacheFormat.VERSION)

        _read_bytes(f, 8, path)  # SPARE
        blob_len = struct.unpack("<Q", _read_bytes(f, 8, path))[0]
        if blob_len > IdCacheFormat.MAX_PAYLOAD_SIZE:
            raise CachePayloadError("CE3005", path=path,
                                    reason=f"payload length {blob_len} exceeds limit")
        blob = _read_bytes(f, blob_len, path)

        try:
            data = msgpack.unpackb(blob, raw=False, strict_map_key=True)
        except Exception as e:
            raise CachePayloadError("CE3005", path=path, reason=str(e)) from e

        payload = CachePayload.from_dict(data)
        if len(payload.methods) != count:
            raise CachePayloadError(
                "CE3001", reason=f"header declares {count} entries, payload has {len(payload.methods)}")
        return payload

    @staticmethod
    def read(cache_path: Path) -> CachePayload:
        """Read an identifier cache file.

        Raises:
            CachePayloadError: CE3001-CE3005 for format errors, CE3006 if the
                file cannot be opened.
        """
        try:
            f = open(cache_path, 'rb')
        except OSError as e:
            raise CachePayloadError("CE3006", path=str(cache_path), reason=e.strerror or str(e)) from e
        with f:
            return IdCacheFormat.load(f, str(cache_path))
