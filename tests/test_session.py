from datetime import datetime

import pytest
from PIL import Image

from wechatlite.client import ChatClient
from wechatlite.config import Config
from wechatlite.protocol import PARTIAL_FILE_SIZE, FrameBuffer, MsgType
from wechatlite.session import ChatSession, FriendEntry, first_file, format_timestamp


class FakeTransport:
    def __init__(self):
        self.writes = []

    def write(self, data):
        self.writes.append(bytes(data))

    def frames(self):
        return FrameBuffer().feed(b"".join(self.writes))


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def session(tmp_path, transport):
    client = ChatClient(Config(ip="127.0.0.1", port=8888, root_path=str(tmp_path)), transport)
    client.login_name = "alice"
    chat = ChatSession(client)
    chat.clock = lambda: datetime(2024, 1, 2, 3, 4, 5)
    return chat


def _make_png(path, size=(600, 400)):
    Image.new("RGB", size, (10, 200, 30)).save(path, format="PNG")
    return path


def test_format_timestamp():
    assert format_timestamp(datetime(2024, 1, 2, 3, 4, 5)) == "2024.01.02 03:04:05 Tue"


def test_first_file_sorted_and_ignores_dirs(tmp_path):
    (tmp_path / "a_dir").mkdir()
    (tmp_path / "c.jpg").write_bytes(b"c")
    (tmp_path / "b.jpg").write_bytes(b"b")
    assert first_file(tmp_path) == tmp_path / "b.jpg"


def test_first_file_missing_or_empty(tmp_path):
    assert first_file(tmp_path / "nope") is None
    assert first_file(tmp_path) is None


def test_my_avatar_default(session):
    assert session.my_avatar() == session.default_picture


def test_my_avatar_found(session, tmp_path):
    pics = tmp_path / "alice" / "MySetting" / "MyPic"
    pics.mkdir(parents=True)
    (pics / "me.jpg").write_bytes(b"x")
    assert session.my_avatar() == (pics / "me.jpg").resolve()
    assert "用户名：alice" in session.profile_html


def test_refresh_requests(session, transport):
    session.refresh()
    session.refresh_signature()
    frames = FrameBuffer().feed(b"".join(transport.writes))
    assert [f.msg_type for f in frames] == [
        MsgType.REFRESH_REQUEST,
        MsgType.REFRESH_SIGNATURE_REQUEST,
    ]
    assert [f.get_text(0) for f in frames] == ["alice", "alice"]


def test_update_friends(session, tmp_path):
    pics = tmp_path / "alice" / "bob" / "UserPic"
    pics.mkdir(parents=True)
    (pics / "bob.png").write_bytes(b"x")
    entries = session.update_friends(["bob", "carol"], ["hi", "yo"])
    assert entries == [
        FriendEntry("bob", "hi", pics / "bob.png"),
        FriendEntry("carol", "yo", session.default_picture),
    ]
    assert session.friends == entries


def test_update_friends_without_signatures(session):
    entries = session.update_friends(["bob"], [])
    assert [e.signature for e in entries] == [""]


def test_update_friends_too_few_signatures(session):
    with pytest.raises(ValueError):
        session.update_friends(["bob", "carol"], ["hi"])


def test_select_friend_clears_on_change(session):
    session.select_friend("bob")
    session.append_message("one")
    session.select_friend("bob")
    assert session.transcript == ["one"]
    session.select_friend("carol")
    assert session.transcript == []
    assert session.title == "好友：carol"
    assert session.target == "carol"


def test_send_message_requires_target_and_text(session):
    with pytest.raises(ValueError):
        session.send_message("hello")
    session.select_friend("bob")
    with pytest.raises(ValueError):
        session.send_message("")


def test_send_message(session, transport):
    session.select_friend("bob")
    session.send_message("hello")
    (frame,) = transport.frames()
    assert frame.msg_type == MsgType.CHAT_REQUEST
    assert frame.get_text(0) == "alice"
    assert frame.get_text(32) == "bob"
    assert bytes(frame.msg) == b"hello"
    assert session.transcript == ["2024.01.02 03:04:05 Tue\nalice:hello"]


def test_show_picture_unreadable(session, tmp_path):
    bad = tmp_path / "bad.png"
    bad.write_bytes(b"not an image")
    assert session.show_picture(bad, "bob") is None
    assert session.transcript == ["2024.01.02 03:04:05 Tue\nbob:\n"]


def test_send_image(session, transport, tmp_path):
    picture = _make_png(tmp_path / "pic.png")
    session.select_friend("bob")
    session.send_image(picture)
    (frame,) = transport.frames()
    assert frame.msg_type == MsgType.CHAT_IMG_REQUEST
    assert frame.get_text(0) == "pic.png"
    assert frame.get_int64(32) == picture.stat().st_size
    assert frame.get_text(48, 16) == "bob"
    assert frame.get_names() == ["alice"]
    assert session.transcript[-1].startswith('<img src="data:image/jpeg;base64,')
    assert session.upload_path == picture


def test_send_image_requires_target(session, tmp_path):
    with pytest.raises(ValueError):
        session.send_image(_make_png(tmp_path / "pic.png"))


def test_upload_image_data(session, transport, tmp_path):
    content = bytes(range(256)) * 40
    source = tmp_path / "blob.bin"
    source.write_bytes(content)
    session.select_friend("bob")
    session.upload_path = source
    assert session.upload_image_data() == len(content)
    frames = transport.frames()
    assert len(frames) == -(-len(content) // PARTIAL_FILE_SIZE)
    assert b"".join(bytes(f.msg) for f in frames) == content
    assert all(f.msg_type == MsgType.CHAT_IMG_DATA_REQUEST for f in frames)
    assert all(f.get_text(0) == "bob" for f in frames)
    assert session.uploading is False


def test_upload_without_picture(session):
    with pytest.raises(ValueError):
        session.upload_image_data()