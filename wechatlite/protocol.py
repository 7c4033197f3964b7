"""Wire format of the chat protocol: fixed-header protocol data units."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import IntEnum

PARTIAL_FILE_SIZE = 4096
DATA_SIZE = 64
NAME_SIZE = 32

_HEADER = struct.Struct("<III64s")
_LENGTH = struct.Struct("<I")
_INT = struct.Struct("<i")
_INT64 = struct.Struct("<q")

HEADER_SIZE = _HEADER.size


class MsgType(IntEnum):
    """Message types carried in a PDU header."""

    MIN = 0
    REGIST_REQUEST = 1
    REGIST_RESPOND = 2
    LOGIN_REQUEST = 3
    LOGIN_RESPOND = 4
    SEARCH_USER_REQUEST = 5
    SEARCH_USER_RESPOND = 6
    ONLINE_USER_REQUEST = 7
    ONLINE_USER_RESPOND = 8
    ADD_FRIEND_REQUEST = 9
    ADD_FRIEND_RESPOND = 10
    ADD_FRIEND_AGREE_REQUEST = 11
    ADD_FRIEND_AGREE_RESPOND = 12
    REFRESH_REQUEST = 13
    REFRESH_RESPOND = 14
    REFRESH_SIGNATURE_REQUEST = 15
    REFRESH_SIGNATURE_RESPOND = 16
    DELETE_FRIEND_REQUEST = 17
    DELETE_FRIEND_RESPOND = 18
    CHAT_REQUEST = 19
    CHAT_RESPOND = 20
    CREATE_DIR_REQUEST = 21
    CREATE_DIR_RESPOND = 22
    FLUSH_FILE_REQUEST = 23
    FLUSH_FILE_RESPOND = 24
    DELETE_DIR_REQUEST = 25
    DELETE_DIR_RESPOND = 26
    RENAME_FILE_REQUEST = 27
    RENAME_FILE_RESPOND = 28
    MOVE_FILE_REQUEST = 29
    MOVE_FILE_RESPOND = 30
    UPLOAD_FILE_REQUEST = 31
    UPLOAD_FILE_RESPOND = 32
    UPLOAD_FILE_DATA_REQUEST = 33
    UPLOAD_FILE_DATA_RESPOND = 34
    DELETE_FILE_REQUEST = 35
    DELETE_FILE_RESPOND = 36
    SHARE_FILE_REQUEST = 37
    SHARE_FILE_RESPOND = 38
    SHARE_AGREE_REQUEST = 39
    SHARE_AGREE_RESPOND = 40
    CHAT_IMG_REQUEST = 41
    CHAT_IMG_RESPOND = 42
    CHAT_IMG_AGREE_REQUEST = 43
    CHAT_IMG_AGREE_RESPOND = 44
    CHAT_IMG_DATA_REQUEST = 45
    CHAT_IMG_DATA_RESPOND = 46
    CHAT_IMG_DATA_RES_REQUEST = 47
    CHAT_IMG_DATA_RES_RESPOND = 48
    FRIEND_MANAGE_REFRESH_REQUEST = 49
    FRIEND_MANAGE_REFRESH_RESPOND = 50


def encode_field(text: str | bytes, size: int) -> bytes:
    """Encode text as UTF-8 into a fixed-size, NUL-padded field, truncating if needed."""
    raw = text.encode("utf-8") if isinstance(text, str) else bytes(text)
    return raw[:size].ljust(size, b"\0")


def decode_field(raw: bytes | bytearray) -> str:
    """Decode a NUL-terminated field back into text."""
    return bytes(raw).split(b"\0", 1)[0].decode("utf-8", errors="replace")


def _message_type(value: int) -> int:
    try:
        return MsgType(value)
    except ValueError:
        return value


@dataclass
class PDU:
    """A protocol data unit: a typed header, 64 bytes of parameters and a message body."""

    msg_type: int = MsgType.MIN
    data: bytearray = field(default_factory=lambda: bytearray(DATA_SIZE))
    msg: bytearray = field(default_factory=bytearray)

    def __post_init__(self) -> None:
        self.data = bytearray(self.data)
        if len(self.data) > DATA_SIZE:
            raise ValueError(f"parameter area is limited to {DATA_SIZE} bytes")
        self.data.extend(bytes(DATA_SIZE - len(self.data)))
        self.msg = bytearray(self.msg)

    @property
    def msg_len(self) -> int:
        return len(self.msg)

    @property
    def pdu_len(self) -> int:
        return HEADER_SIZE + len(self.msg)

    def pack(self) -> bytes:
        """Serialise the unit into its wire form."""
        header = _HEADER.pack(self.pdu_len, int(self.msg_type), self.msg_len, bytes(self.data))
        return header + bytes(self.msg)

    @classmethod
    def unpack(cls, data: bytes | bytearray) -> PDU:
        """Parse one unit from the start of ``data``."""
        if len(data) < HEADER_SIZE:
            raise ValueError("truncated PDU header")
        pdu_len, msg_type, msg_len, params = _HEADER.unpack_from(data)
        if pdu_len < HEADER_SIZE + msg_len:
            raise ValueError("PDU length is smaller than its header and message")
        if len(data) < pdu_len:
            raise ValueError("truncated PDU body")
        msg = data[HEADER_SIZE:HEADER_SIZE + msg_len]
        return cls(msg_type=_message_type(msg_type), data=bytearray(params), msg=bytearray(msg))

    @staticmethod
    def _check_range(offset: int, size: int) -> None:
        if offset < 0 or size < 0 or offset + size > DATA_SIZE:
            raise ValueError(f"range {offset}..{offset + size} lies outside the parameter area")

    def set_text(self, offset: int, text: str | bytes, size: int = NAME_SIZE) -> None:
        """Store text in a fixed-size slot of the parameter area."""
        self._check_range(offset, size)
        self.data[offset:offset + size] = encode_field(text, size)

    def get_text(self, offset: int, size: int = NAME_SIZE) -> str:
        """Read text from a fixed-size slot of the parameter area."""
        self._check_range(offset, size)
        return decode_field(self.data[offset:offset + size])

    def set_flag(self, value: bool) -> None:
        """Store a boolean result in the first parameter byte."""
        self.data[0] = 1 if value else 0

    def get_flag(self) -> bool:
        return self.data[0] != 0

    def set_int(self, offset: int, value: int) -> None:
        """Store a signed 32-bit integer in the parameter area."""
        self._check_range(offset, _INT.size)
        _INT.pack_into(self.data, offset, value)

    def get_int(self, offset: int = 0) -> int:
        self._check_range(offset, _INT.size)
        return _INT.unpack_from(self.data, offset)[0]

    def set_int64(self, offset: int, value: int) -> None:
        """Store a signed 64-bit integer in the parameter area."""
        self._check_range(offset, _INT64.size)
        _INT64.pack_into(self.data, offset, value)

    def get_int64(self, offset: int) -> int:
        self._check_range(offset, _INT64.size)
        return _INT64.unpack_from(self.data, offset)[0]

    def set_names(self, names) -> None:
        """Replace the message body with a list of 32-byte name slots."""
        self.msg = bytearray(b"".join(encode_field(name, NAME_SIZE) for name in names))

    def get_names(self) -> list[str]:
        """Read the message body as a list of 32-byte name slots."""
        count = self.msg_len // NAME_SIZE
        return [
            decode_field(self.msg[start:start + NAME_SIZE])
            for start in range(0, count * NAME_SIZE, NAME_SIZE)
        ]


def make_pdu(msg_len: int = 0) -> PDU:
    """Create a zero-filled unit with a message body of ``msg_len`` bytes."""
    if msg_len < 0:
        raise ValueError("message length must not be negative")
    return PDU(msg=bytearray(msg_len))


class FrameBuffer:
    """Accumulates stream bytes and splits them into complete units."""

    def __init__(self) -> None:
        self._buffer = bytearray()

    def __len__(self) -> int:
        return len(self._buffer)

    def feed(self, data: bytes | bytearray) -> list[PDU]:
        """Add received bytes and return every unit that is now complete."""
        self._buffer += data
        frames: list[PDU] = []
        while len(self._buffer) >= HEADER_SIZE:
            (pdu_len,) = _LENGTH.unpack_from(self._buffer)
            if pdu_len < HEADER_SIZE:
                self._buffer.clear()
                raise ValueError("PDU length is smaller than the header")
            if len(self._buffer) < pdu_len:
                break
            chunk = bytes(self._buffer[:pdu_len])
            del self._buffer[:pdu_len]
            frames.append(PDU.unpack(chunk))
        return frames