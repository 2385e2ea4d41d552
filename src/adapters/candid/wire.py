"""Formato binario Candid, limitado a lo que necesitan las llamadas DIP-721.

La codificación cubre null, bool, nat, int, nat8..nat64, text, principal,
opt, vec, record y variant. La decodificación acepta cualquier tabla de tipos
construida con esos constructores (más el resto de primitivos), así que las
respuestas de canisters que declaran records o variants más amplios se siguen
decodificando. Las referencias func/service se rechazan.

Valores decodificados en Python plano:
- record  -> dict {field id: valor}
- variant -> tupla (field id, valor)
- vec nat8 -> bytes, cualquier otro vec -> list
- opt -> valor o None
- principal -> bytes

Límites ante respuestas hostiles (todo se reporta como `ValueError`):
- anidamiento máximo `MAX_NESTING_DEPTH` (corta tipos recursivos sin fin);
- un vec no puede declarar más elementos que bytes quedan por leer.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Sequence, Union

MAGIC = b"DIDL"
MAX_NESTING_DEPTH = 100


class Opcode(IntEnum):
    NULL = -1
    BOOL = -2
    NAT = -3
    INT = -4
    NAT8 = -5
    NAT16 = -6
    NAT32 = -7
    NAT64 = -8
    INT8 = -9
    INT16 = -10
    INT32 = -11
    INT64 = -12
    FLOAT32 = -13
    FLOAT64 = -14
    TEXT = -15
    RESERVED = -16
    EMPTY = -17
    OPT = -18
    VEC = -19
    RECORD = -20
    VARIANT = -21
    FUNC = -22
    SERVICE = -23
    PRINCIPAL = -24


_FIXED_UNSIGNED = {Opcode.NAT8: 1, Opcode.NAT16: 2, Opcode.NAT32: 4, Opcode.NAT64: 8}
_FIXED_SIGNED = {Opcode.INT8: 1, Opcode.INT16: 2, Opcode.INT32: 4, Opcode.INT64: 8}
_CONSTRUCTORS = frozenset(
    {Opcode.OPT, Opcode.VEC, Opcode.RECORD, Opcode.VARIANT, Opcode.FUNC, Opcode.SERVICE}
)


def idl_hash(name: str) -> int:
    """Field id of a named record/variant field."""

    h = 0
    for byte in name.encode("utf-8"):
        h = (h * 223 + byte) % (1 << 32)
    return h


def field_id(key: str | int) -> int:
    return key if isinstance(key, int) else idl_hash(key)


# --- LEB128 ----------------------------------------------------------------


def encode_uleb128(value: int) -> bytes:
    if value < 0:
        raise ValueError(f"cannot encode negative value {value} as unsigned LEB128")
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def encode_sleb128(value: int) -> bytes:
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if (value == 0 and not byte & 0x40) or (value == -1 and byte & 0x40):
            out.append(byte)
            return bytes(out)
        out.append(byte | 0x80)


def decode_uleb128(data: bytes, offset: int = 0) -> tuple[int, int]:
    """Return `(value, next offset)`."""

    result = 0
    shift = 0
    while True:
        if offset >= len(data):
            raise ValueError("truncated LEB128 value")
        byte = data[offset]
        offset += 1
        result |= (byte & 0x7F) << shift
        shift += 7
        if not byte & 0x80:
            return result, offset


def decode_sleb128(data: bytes, offset: int = 0) -> tuple[int, int]:
    result = 0
    shift = 0
    while True:
        if offset >= len(data):
            raise ValueError("truncated LEB128 value")
        byte = data[offset]
        offset += 1
        result |= (byte & 0x7F) << shift
        shift += 7
        if not byte & 0x80:
            if byte & 0x40:
                result -= 1 << shift
            return result, offset


# --- Types -----------------------------------------------------------------


@dataclass(frozen=True)
class Prim:
    opcode: Opcode


@dataclass(frozen=True)
class Opt:
    inner: "IdlType"


@dataclass(frozen=True)
class Vec:
    inner: "IdlType"


@dataclass(frozen=True)
class Record:
    fields: tuple[tuple[Union[str, int], "IdlType"], ...]

    def sorted_fields(self) -> list[tuple[int, Union[str, int], "IdlType"]]:
        return sorted(((field_id(k), k, t) for k, t in self.fields), key=lambda f: f[0])


@dataclass(frozen=True)
class Variant:
    fields: tuple[tuple[Union[str, int], "IdlType"], ...]

    def sorted_fields(self) -> list[tuple[int, Union[str, int], "IdlType"]]:
        return sorted(((field_id(k), k, t) for k, t in self.fields), key=lambda f: f[0])


IdlType = Union[Prim, Opt, Vec, Record, Variant]

NULL = Prim(Opcode.NULL)
BOOL = Prim(Opcode.BOOL)
NAT = Prim(Opcode.NAT)
INT = Prim(Opcode.INT)
NAT8 = Prim(Opcode.NAT8)
NAT16 = Prim(Opcode.NAT16)
NAT32 = Prim(Opcode.NAT32)
NAT64 = Prim(Opcode.NAT64)
TEXT = Prim(Opcode.TEXT)
PRINCIPAL = Prim(Opcode.PRINCIPAL)
BLOB = Vec(NAT8)


# --- Encoding --------------------------------------------------------------


class _TypeTable:
    def __init__(self) -> None:
        self._entries: list[bytes] = []
        self._index: dict[IdlType, int] = {}

    def ref(self, t: IdlType) -> int:
        if isinstance(t, Prim):
            return int(t.opcode)
        if t in self._index:
            return self._index[t]

        idx = len(self._entries)
        self._index[t] = idx
        self._entries.append(b"")

        if isinstance(t, (Opt, Vec)):
            opcode = Opcode.OPT if isinstance(t, Opt) else Opcode.VEC
            body = encode_sleb128(opcode) + encode_sleb128(self.ref(t.inner))
        else:
            opcode = Opcode.RECORD if isinstance(t, Record) else Opcode.VARIANT
            fields = t.sorted_fields()
            body = encode_sleb128(opcode) + encode_uleb128(len(fields))
            for fid, _key, ft in fields:
                body += encode_uleb128(fid) + encode_sleb128(self.ref(ft))
        self._entries[idx] = body
        return idx

    def serialize(self) -> bytes:
        return encode_uleb128(len(self._entries)) + b"".join(self._entries)


def _encode_value(t: IdlType, value: Any, out: bytearray) -> None:
    if isinstance(t, Prim):
        op = t.opcode
        if op == Opcode.NULL:
            return
        if op == Opcode.BOOL:
            out.append(1 if value else 0)
        elif op == Opcode.NAT:
            out += encode_uleb128(value)
        elif op == Opcode.INT:
            out += encode_sleb128(value)
        elif op in _FIXED_UNSIGNED:
            try:
                out += int(value).to_bytes(_FIXED_UNSIGNED[op], "little")
            except OverflowError as exc:
                raise ValueError(f"{value} does not fit in {op.name.lower()}") from exc
        elif op == Opcode.TEXT:
            data = value.encode("utf-8")
            out += encode_uleb128(len(data)) + data
        elif op == Opcode.PRINCIPAL:
            raw = bytes(value)
            out += b"\x01" + encode_uleb128(len(raw)) + raw
        else:
            raise ValueError(f"encoding {op.name.lower()} values is not supported")
    elif isinstance(t, Opt):
        if value is None:
            out.append(0)
        else:
            out.append(1)
            _encode_value(t.inner, value, out)
    elif isinstance(t, Vec):
        if t.inner == NAT8 and isinstance(value, (bytes, bytearray)):
            out += encode_uleb128(len(value)) + bytes(value)
            return
        out += encode_uleb128(len(value))
        for item in value:
            _encode_value(t.inner, item, out)
    elif isinstance(t, Record):
        for _fid, key, ft in t.sorted_fields():
            _encode_value(ft, value[key], out)
    else:
        tag, payload = value
        for index, (_fid, key, ft) in enumerate(t.sorted_fields()):
            if key == tag:
                out += encode_uleb128(index)
                _encode_value(ft, payload, out)
                return
        raise ValueError(f"{tag!r} is not a case of the variant")


def encode_args(types: Sequence[IdlType], values: Sequence[Any]) -> bytes:
    """Serialize an argument tuple."""

    if len(types) != len(values):
        raise ValueError(f"{len(types)} types but {len(values)} values")

    table = _TypeTable()
    refs = [table.ref(t) for t in types]
    body = bytearray()
    for t, v in zip(types, values):
        _encode_value(t, v, body)

    header = table.serialize() + encode_uleb128(len(types))
    header += b"".join(encode_sleb128(r) for r in refs)
    return MAGIC + header + bytes(body)


# --- Decoding --------------------------------------------------------------


class _Reader:
    def __init__(self, data: bytes) -> None:
        self.data = data
        self.pos = 0

    def take(self, n: int) -> bytes:
        if self.pos + n > len(self.data):
            raise ValueError("unexpected end of Candid message")
        chunk = self.data[self.pos : self.pos + n]
        self.pos += n
        return chunk

    def byte(self) -> int:
        return self.take(1)[0]

    def uleb(self) -> int:
        value, self.pos = decode_uleb128(self.data, self.pos)
        return value

    def sleb(self) -> int:
        value, self.pos = decode_sleb128(self.data, self.pos)
        return value


_TableEntry = tuple[int, Any]


def _read_type_entry(reader: _Reader) -> _TableEntry:
    op = reader.sleb()
    if op in (Opcode.OPT, Opcode.VEC):
        return op, reader.sleb()
    if op in (Opcode.RECORD, Opcode.VARIANT):
        count = reader.uleb()
        return op, tuple((reader.uleb(), reader.sleb()) for _ in range(count))
    raise ValueError(f"unsupported type constructor {op} in type table")


def _check_ref(ref: int, table: list[_TableEntry]) -> None:
    if ref >= 0:
        if ref >= len(table):
            raise ValueError(f"type reference {ref} out of range")
        return
    try:
        op = Opcode(ref)
    except ValueError as exc:
        raise ValueError(f"unknown primitive type {ref}") from exc
    if op in _CONSTRUCTORS:
        raise ValueError(f"{op.name.lower()} cannot be used as a primitive type")


def _decode_value(reader: _Reader, table: list[_TableEntry], ref: int, depth: int = 0) -> Any:
    if depth > MAX_NESTING_DEPTH:
        raise ValueError(f"values nested deeper than {MAX_NESTING_DEPTH} levels (recursive type?)")
    if ref >= 0:
        op, arg = table[ref]
    else:
        op, arg = Opcode(ref), None

    if op == Opcode.NULL or op == Opcode.RESERVED:
        return None
    if op == Opcode.BOOL:
        flag = reader.byte()
        if flag > 1:
            raise ValueError(f"invalid bool byte {flag}")
        return bool(flag)
    if op == Opcode.NAT:
        return reader.uleb()
    if op == Opcode.INT:
        return reader.sleb()
    if op in _FIXED_UNSIGNED:
        return int.from_bytes(reader.take(_FIXED_UNSIGNED[op]), "little")
    if op in _FIXED_SIGNED:
        return int.from_bytes(reader.take(_FIXED_SIGNED[op]), "little", signed=True)
    if op == Opcode.FLOAT32:
        return struct.unpack("<f", reader.take(4))[0]
    if op == Opcode.FLOAT64:
        return struct.unpack("<d", reader.take(8))[0]
    if op == Opcode.TEXT:
        return reader.take(reader.uleb()).decode("utf-8")
    if op == Opcode.PRINCIPAL:
        if reader.byte() != 1:
            raise ValueError("opaque principal references are not supported")
        return reader.take(reader.uleb())
    if op == Opcode.EMPTY:
        raise ValueError("a value of type empty cannot be decoded")
    if op == Opcode.OPT:
        flag = reader.byte()
        if flag == 0:
            return None
        if flag != 1:
            raise ValueError(f"invalid opt flag {flag}")
        return _decode_value(reader, table, arg, depth + 1)
    if op == Opcode.VEC:
        count = reader.uleb()
        # Un elemento ocupa al menos un byte; vec null/reserved largos se rechazan.
        if count > len(reader.data) - reader.pos:
            raise ValueError(f"vector of {count} elements exceeds the remaining input")
        if arg == Opcode.NAT8:
            return reader.take(count)
        return [_decode_value(reader, table, arg, depth + 1) for _ in range(count)]
    if op == Opcode.RECORD:
        return {fid: _decode_value(reader, table, ft, depth + 1) for fid, ft in arg}
    if op == Opcode.VARIANT:
        index = reader.uleb()
        if index >= len(arg):
            raise ValueError(f"variant index {index} out of range")
        fid, ft = arg[index]
        return fid, _decode_value(reader, table, ft, depth + 1)
    raise ValueError(f"cannot decode values of type {op}")


def decode_args(data: bytes) -> list[Any]:
    """Deserialize an argument tuple into plain Python values."""

    reader = _Reader(bytes(data))
    if reader.take(4) != MAGIC:
        raise ValueError("not a Candid message (missing DIDL header)")

    table = [_read_type_entry(reader) for _ in range(reader.uleb())]
    for op, arg in table:
        if op in (Opcode.OPT, Opcode.VEC):
            _check_ref(arg, table)
        else:
            for _fid, ft in arg:
                _check_ref(ft, table)

    arg_types = [reader.sleb() for _ in range(reader.uleb())]
    for ref in arg_types:
        _check_ref(ref, table)

    values = [_decode_value(reader, table, ref) for ref in arg_types]
    if reader.pos != len(reader.data):
        raise ValueError(f"{len(reader.data) - reader.pos} trailing bytes after the arguments")
    return values
