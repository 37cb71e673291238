import struct

import pytest

from resgraph.binary.chunks import decode_chunks, read_chunk_table
from resgraph.binary.errors import FormatError, UnsupportedChunkVersion
from resgraph.formats import parse_texture, parse_terrain
from builders import resource, string_table, texture


def test_chunk_table_offsets():
    blob = resource(b"TEST", [(b"AAAA", b"1234"), (b"BBBB", b"")], version=3)
    table = read_chunk_table(blob, b"TEST")
    assert table.version == 3
    assert table.tags() == [b"AAAA", b"BBBB"]
    first, second = table.chunks
    assert (first.offset, first.size, first.payload_offset) == (0x20, 12, 0x28)
    assert second.offset == first.end


def test_unknown_chunk_is_skipped_and_recorded():
    blob = texture(extra=[(b"ZZZZ", b"\x01\x02\x03\x04\x05")])
    tex = parse_texture(blob)
    assert tex.width == 4
    assert [(c.tag, c.size) for c in tex.unknown_chunks] == [(b"ZZZZ", 13)]


def test_missing_required_chunk():
    blob = resource(b"UVTX", [(b"THDR", struct.pack(">HHBBH", 4, 4, 0, 1, 0))], 2)
    with pytest.raises(FormatError) as ei:
        parse_texture(blob)
    assert ei.value.code == "E_CHUNK_MISSING"
    assert ei.value.context["chunk"] == "TXEL"


def test_duplicate_known_chunk():
    hdr = struct.pack(">HHBBH", 4, 4, 0, 1, 0)
    blob = resource(
        b"UVTX", [(b"THDR", hdr), (b"THDR", hdr), (b"TXEL", b"..")], 2
    )
    with pytest.raises(FormatError) as ei:
        parse_texture(blob)
    assert ei.value.code == "E_CHUNK_DUP"


def test_unsupported_version():
    with pytest.raises(UnsupportedChunkVersion) as ei:
        parse_texture(texture(version=7))
    assert ei.value.code == "E_VERSION"
    assert ei.value.context["version"] == 7


def test_version_one_texture_uses_short_header():
    tex = parse_texture(texture(width=8, height=2, fmt=3, version=1))
    assert (tex.width, tex.height, tex.format) == (8, 2, 3)
    assert (tex.levels, tex.flags) == (1, 0)
    assert tex.version == 1


def test_wrong_kind_magic():
    with pytest.raises(FormatError) as ei:
        parse_texture(resource(b"UVTR", []))
    assert ei.value.code == "E_MAGIC"


def test_chunk_past_declared_size():
    blob = bytearray(resource(b"UVTX", [(b"THDR", b"\x00" * 8)], 2))
    struct.pack_into(">I", blob, 0x24, 0x40)
    with pytest.raises(FormatError) as ei:
        read_chunk_table(bytes(blob), b"UVTX")
    assert ei.value.code == "E_RANGE"
    assert ei.value.context["chunk"] == "THDR"


def test_chunk_count_exceeding_payload():
    blob = bytearray(resource(b"UVTX", [(b"THDR", b"\x00" * 8)], 2))
    struct.pack_into(">I", blob, 0x0C, 2)
    with pytest.raises(FormatError) as ei:
        read_chunk_table(bytes(blob), b"UVTX")
    assert ei.value.code == "E_TRUNCATED"


def test_decoder_overread_reports_chunk():
    # THDR shorter than the v2 header
    blob = resource(b"UVTX", [(b"THDR", b"\x00\x04"), (b"TXEL", b"")], 2)
    with pytest.raises(FormatError) as ei:
        parse_texture(blob)
    assert ei.value.code == "E_TRUNCATED"
    assert ei.value.context["chunk"] == "THDR"
    assert ei.value.context["kind"] == "UVTX"


def test_string_table_chunk():
    blob = resource(
        b"UVTR",
        [
            (b"TRHD", struct.pack(">HHff", 1, 1, 1.0, 1.0)),
            (b"TILE", struct.pack(">hHf", -1, 0, 0.0)),
            (b"NAME", string_table(["grass", "rock"])),
        ],
    )
    assert parse_terrain(blob).layer_names == ("grass", "rock")


def test_decode_chunks_direct():
    blob = resource(b"TEST", [(b"ONE ", b"\x00\x07"), (b"SKIP", b"xx")])
    table = read_chunk_table(blob, b"TEST")
    decoded, unknown = decode_chunks(
        table, blob, {b"ONE ": lambda r, t: r.u16()}, required=(b"ONE ",)
    )
    assert decoded == {b"ONE ": 7}
    assert [u.tag for u in unknown] == [b"SKIP"]
