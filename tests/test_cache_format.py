import io
import struct

import msgpack
import pytest

from garnet_lang.compiler.id_cache_format import IdCacheFormat
from garnet_lang.compiler.payload import CachePayload
from garnet_lang.internals.errors import CachePayloadError


PAYLOAD = CachePayload({"foo": "a", "bar": "b", "@name": "c"}, "d")


def _load(data: bytes) -> CachePayload:
    return IdCacheFormat.load(io.BytesIO(data), "ids.gidc")


def test_header_layout():
    data = IdCacheFormat.dumps(PAYLOAD)
    assert data[:16] == IdCacheFormat.MAGIC
    version, count = struct.unpack("<II", data[16:24])
    assert (version, count) == (IdCacheFormat.VERSION, 3)
    (blob_len,) = struct.unpack("<Q", data[32:40])
    assert blob_len == len(data) - IdCacheFormat.FIXED_HEADER_SIZE


def test_write_and_read(tmp_path):
    path = tmp_path / "cache" / "ids.gidc"
    IdCacheFormat.write(path, PAYLOAD)
    assert IdCacheFormat.read(path) == PAYLOAD
    assert not path.with_suffix(".gidc.tmp").exists()


def test_bad_magic():
    data = b"\x89NOT-AN-IDCACHE\n" + IdCacheFormat.dumps(PAYLOAD)[16:]
    with pytest.raises(CachePayloadError) as exc:
        _load(data)
    assert exc.value.code == "CE3003"


def test_truncated_file():
    data = IdCacheFormat.dumps(PAYLOAD)
    with pytest.raises(CachePayloadError) as exc:
        _load(data[:-3])
    assert exc.value.code == "CE3002"
    with pytest.raises(CachePayloadError) as exc:
        _load(data[:10])
    assert exc.value.code == "CE3002"


def test_unsupported_version():
    data = bytearray(IdCacheFormat.dumps(PAYLOAD))
    data[16:20] = struct.pack("<I", 99)
    with pytest.raises(CachePayloadError) as exc:
        _load(bytes(data))
    assert exc.value.code == "CE3004"


def _with_blob(blob: bytes, count: int = 0) -> bytes:
    return (IdCacheFormat.MAGIC + struct.pack("<II", IdCacheFormat.VERSION, count)
            + struct.pack("<Q", 0) + struct.pack("<Q", len(blob)) + blob)


def test_corrupt_blob():
    with pytest.raises(CachePayloadError) as exc:
        _load(_with_blob(b"\xc1"))
    assert exc.value.code == "CE3005"


def test_blob_with_wrong_shape():
    blob = msgpack.packb({"methods": {"foo": "a"}}, use_bin_type=True)
    with pytest.raises(CachePayloadError) as exc:
        _load(_with_blob(blob, 1))
    assert exc.value.code == "CE3001"


def test_entry_count_mismatch():
    blob = msgpack.packb(PAYLOAD.to_dict(), use_bin_type=True)
    with pytest.raises(CachePayloadError) as exc:
        _load(_with_blob(blob, 7))
    assert exc.value.code == "CE3001"
