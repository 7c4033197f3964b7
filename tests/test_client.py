import pytest

from wechatlite.client import ChatClient, validate_credentials
from wechatlite.config import Config
from wechatlite.protocol import PDU, FrameBuffer, MsgType, make_pdu


class FakeTransport:
    def __init__(self):
        self.chunks = []

    def write(self, data):
        self.chunks.append(bytes(data))

    def sent(self):
        return FrameBuffer().feed(b"".join(self.chunks))


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def client(tmp_path, transport):
    return ChatClient(Config(ip="127.0.0.1", port=8888, root_path=str(tmp_path)), transport)


def test_validate_accepts_normal():
    password = "password"
    assert validate_credentials("alice", password) == ("alice", password)


@pytest.mark.parametrize(
    "name, pwd",
    [("", "password"), ("alice", ""), ("a" * 33, "password"), ("alice", "p" * 33), ("é" * 17, "password")],
)
def test_validate_rejects(name, pwd):
    with pytest.raises(ValueError):
        validate_credentials(name, pwd)


def test_validate_accepts_exactly_32_bytes():
    name = "n" * 32
    assert validate_credentials(name, "password")[0] == name


def test_login_sends_request_and_sets_name(client, transport):
    password = "password"
    client.login("alice", password)
    assert client.login_name == "alice"
    (pdu,) = transport.sent()
    assert pdu.msg_type == MsgType.LOGIN_REQUEST
    assert pdu.get_text(0) == "alice"
    assert pdu.get_text(32) == password
    assert pdu.msg_len == 0


def test_invalid_login_sends_nothing(client, transport):
    with pytest.raises(ValueError):
        client.login("", "password")
    assert transport.chunks == []
    assert client.login_name == ""


def test_register_does_not_set_name(client, transport):
    client.register("bob", "password")
    (pdu,) = transport.sent()
    assert pdu.msg_type == MsgType.REGIST_REQUEST
    assert pdu.get_text(0) == "bob"
    assert client.login_name == ""


def test_friend_requests_carry_names(client, transport):
    client.login("alice", "password")
    client.refresh_friend_manage()
    client.add_friend("bob")
    client.delete_friend("carol")
    frames = FrameBuffer().feed(b"".join(transport.chunks))
    assert len(frames) == 4
    _, refresh, add, delete = frames
    assert refresh.msg_type == MsgType.FRIEND_MANAGE_REFRESH_REQUEST
    assert refresh.get_text(0) == "alice"
    assert (add.msg_type, add.get_text(0), add.get_text(32)) == (
        MsgType.ADD_FRIEND_REQUEST, "alice", "bob")
    assert (delete.msg_type, delete.get_text(0), delete.get_text(32)) == (
        MsgType.DELETE_FRIEND_REQUEST, "alice", "carol")


def test_delete_friend_requires_target(client, transport):
    with pytest.raises(ValueError):
        client.delete_friend("")
    assert transport.chunks == []


def test_request_online_users(client, transport):
    returned = client.request_online_users()
    (pdu,) = transport.sent()
    assert pdu.msg_type == MsgType.ONLINE_USER_REQUEST
    assert pdu == returned


def test_feed_reassembles_and_dispatches(client):
    received = []
    client.handler = received.append
    reply = make_pdu()
    reply.msg_type = MsgType.ONLINE_USER_RESPOND
    reply.set_names(["alice", "bob"])
    wire = reply.pack() * 2
    assert client.feed(wire[:10]) == []
    frames = client.feed(wire[10:])
    assert len(frames) == 2
    assert received == frames
    assert received[0].get_names() == ["alice", "bob"]


def test_feed_without_handler_returns_frames(client):
    pdu = PDU(msg_type=MsgType.LOGIN_RESPOND)
    pdu.set_flag(True)
    (frame,) = client.feed(pdu.pack())
    assert frame.get_flag() is True


def test_init_root_creates_sysfile(client, tmp_path):
    path = client.init_root()
    assert path == tmp_path / "sysfile"
    assert path.is_dir()
    assert client.init_root() == path