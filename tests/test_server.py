import asyncio

import pytest

from wechatlite.database import USER_OFFLINE, USER_ONLINE, Database
from wechatlite.protocol import HEADER_SIZE, PDU, FrameBuffer, MsgType, make_pdu
from wechatlite.server import ChatServer, Connection, main

PASSWORD = "password"


class FakeWriter:
    def __init__(self):
        self.data = bytearray()

    def write(self, data):
        self.data += data


@pytest.fixture
def db():
    database = Database(":memory:")
    database.create_user("alice", PASSWORD, "hello")
    database.create_user("bob", PASSWORD, "busy")
    yield database
    database.close()


def request(msg_type, first="", second="", body=b""):
    pdu = make_pdu(len(body))
    pdu.msg_type = msg_type
    pdu.set_text(0, first)
    pdu.set_text(32, second)
    pdu.msg[:] = body
    return pdu


def test_connection_answers_login(db):
    server = ChatServer(db)
    writer = FakeWriter()
    connection = Connection(writer, server.handler)
    connection.receive(request(MsgType.LOGIN_REQUEST, "alice", PASSWORD).pack())
    replies = FrameBuffer().feed(writer.data)
    assert len(replies) == 1
    assert replies[0].msg_type == MsgType.LOGIN_RESPOND
    assert replies[0].get_flag() is True
    assert connection.name == "alice"


def test_connection_waits_for_whole_frame(db):
    server = ChatServer(db)
    writer = FakeWriter()
    connection = Connection(writer, server.handler)
    wire = request(MsgType.LOGIN_REQUEST, "bob", PASSWORD).pack()
    connection.receive(wire[:10])
    assert writer.data == b""
    connection.receive(wire[10:])
    assert FrameBuffer().feed(writer.data)[0].msg_type == MsgType.LOGIN_RESPOND


def test_connection_handles_two_frames_in_one_chunk(db):
    server = ChatServer(db)
    writer = FakeWriter()
    connection = Connection(writer, server.handler)
    wire = (
        request(MsgType.REGIST_REQUEST, "carol", PASSWORD).pack()
        + request(MsgType.LOGIN_REQUEST, "carol", PASSWORD).pack()
    )
    connection.receive(wire)
    types = [pdu.msg_type for pdu in FrameBuffer().feed(writer.data)]
    assert types == [MsgType.REGIST_RESPOND, MsgType.LOGIN_RESPOND]


def test_send_none_writes_nothing(db):
    writer = FakeWriter()
    Connection(writer, ChatServer(db).handler).send(None)
    assert writer.data == b""


def test_resend_only_to_named_user(db):
    server = ChatServer(db)
    alice, bob = FakeWriter(), FakeWriter()
    for name, writer in (("alice", alice), ("bob", bob)):
        connection = Connection(writer, server.handler)
        connection.name = name
        server.connections.append(connection)
    pdu = request(MsgType.CHAT_RESPOND, "alice", "bob", b"hey")
    assert server.resend("bob", pdu) == 1
    assert alice.data == b""
    assert bytes(bob.data) == pdu.pack()
    assert server.resend("nobody", pdu) == 0


def test_chat_routed_between_connections(db):
    server = ChatServer(db)
    alice_writer, bob_writer = FakeWriter(), FakeWriter()
    alice = Connection(alice_writer, server.handler)
    bob = Connection(bob_writer, server.handler)
    server.connections.extend([alice, bob])
    bob.receive(request(MsgType.LOGIN_REQUEST, "bob", PASSWORD).pack())
    bob_writer.data.clear()
    alice.receive(request(MsgType.CHAT_REQUEST, "alice", "bob", b"hello").pack())
    delivered = FrameBuffer().feed(bob_writer.data)
    assert delivered[0].msg_type == MsgType.CHAT_RESPOND
    assert bytes(delivered[0].msg) == b"hello"
    assert alice_writer.data == b""


def test_malformed_frame_raises(db):
    connection = Connection(FakeWriter(), ChatServer(db).handler)
    with pytest.raises(ValueError):
        connection.receive(b"\x01\x00\x00\x00" + bytes(HEADER_SIZE))


def test_main_rejects_missing_config(tmp_path):
    assert main(["--config", str(tmp_path / "missing"), "--db", str(tmp_path / "x.db")]) == 1


async def _read_pdu(reader):
    header = await reader.readexactly(HEADER_SIZE)
    length = int.from_bytes(header[:4], "little")
    body = await reader.readexactly(length - HEADER_SIZE)
    return PDU.unpack(header + body)


@pytest.mark.asyncio
async def test_end_to_end_chat_and_offline(db):
    server = ChatServer(db)
    listener = await server.start("127.0.0.1", 0)
    port = listener.sockets[0].getsockname()[1]
    try:
        a_reader, a_writer = await asyncio.open_connection("127.0.0.1", port)
        b_reader, b_writer = await asyncio.open_connection("127.0.0.1", port)

        a_writer.write(request(MsgType.LOGIN_REQUEST, "alice", PASSWORD).pack())
        await a_writer.drain()
        assert (await _read_pdu(a_reader)).get_flag() is True

        b_writer.write(request(MsgType.LOGIN_REQUEST, "bob", PASSWORD).pack())
        await b_writer.drain()
        assert (await _read_pdu(b_reader)).get_flag() is True
        assert db.search_user("alice") == USER_ONLINE

        a_writer.write(request(MsgType.CHAT_REQUEST, "alice", "bob", b"ping").pack())
        await a_writer.drain()
        message = await asyncio.wait_for(_read_pdu(b_reader), 5)
        assert message.msg_type == MsgType.CHAT_RESPOND
        assert message.get_text(0) == "alice"
        assert bytes(message.msg) == b"ping"

        a_writer.close()
        await a_writer.wait_closed()
        for _ in range(100):
            if db.search_user("alice") == USER_OFFLINE:
                break
            await asyncio.sleep(0.02)
        assert db.search_user("alice") == USER_OFFLINE
        assert [c.name for c in server.connections] == ["bob"]

        b_writer.close()
        await b_writer.wait_closed()
    finally:
        listener.close()
        await listener.wait_closed()