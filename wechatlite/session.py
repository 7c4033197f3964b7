"""The main chat view's state: friend list, selected friend, transcript and picture upload."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable

from PIL import Image

from wechatlite.client import ChatClient
from wechatlite.images import image_to_html, resize_for_chat
from wechatlite.protocol import (
    NAME_SIZE,
    PARTIAL_FILE_SIZE,
    PDU,
    MsgType,
    encode_field,
    make_pdu,
)

log = logging.getLogger(__name__)

FRIEND_PREFIX = "好友："
_DAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


def format_timestamp(moment: datetime) -> str:
    """Render a moment as 'yyyy.MM.dd hh:mm:ss ddd'."""
    return f"{moment:%Y.%m.%d %H:%M:%S} {_DAY_NAMES[moment.weekday()]}"


def first_file(directory) -> Path | None:
    """The first regular file in ``directory`` by name, or None if there is none."""
    folder = Path(directory)
    if not folder.is_dir():
        return None
    files = sorted((entry for entry in folder.iterdir() if entry.is_file()), key=lambda p: p.name)
    return files[0] if files else None


@dataclass(frozen=True)
class FriendEntry:
    """One row of the friend list: name, signature and picture."""

    name: str
    signature: str
    picture: Path


class ChatSession:
    """State behind the main chat window of a logged-in user."""

    def __init__(self, client: ChatClient) -> None:
        self.client = client
        self.target = ""
        self.title = ""
        self.transcript: list[str] = []
        self.friends: list[FriendEntry] = []
        self.uploading = False
        self.upload_path: Path | None = None
        self.clock: Callable[[], datetime] = datetime.now

    @property
    def _user_dir(self) -> Path:
        return self.client.root_path / self.client.login_name

    @property
    def default_picture(self) -> Path:
        return self.client.root_path / "sysfile" / "defaultSetting" / "defaultPic.jpg"

    def my_avatar(self) -> Path:
        """The user's own picture, or the default picture when none is set."""
        found = first_file(self._user_dir / "MySetting" / "MyPic")
        if found is None:
            log.debug("no avatar found, using the default")
            return self.default_picture
        return found.resolve()

    @property
    def profile_html(self) -> str:
        return (
            f"<img src='{self.my_avatar()}'  width='80' height='80' />"
            f"   用户名：{self.client.login_name}"
        )

    def _stamp(self) -> str:
        return format_timestamp(self.clock()) + "\n"

    def _request(self, msg_type: MsgType) -> PDU:
        pdu = make_pdu()
        pdu.msg_type = msg_type
        pdu.set_text(0, self.client.login_name)
        self.client.send_pdu(pdu)
        return pdu

    def refresh(self) -> PDU:
        """Ask the server for the friend list."""
        return self._request(MsgType.REFRESH_REQUEST)

    def refresh_signature(self) -> PDU:
        """Ask the server for the friends' signatures."""
        return self._request(MsgType.REFRESH_SIGNATURE_REQUEST)

    def update_friends(self, names, signatures) -> list[FriendEntry]:
        """Rebuild the friend list from names and (possibly empty) signatures."""
        names = list(names)
        signatures = list(signatures)
        if signatures and len(signatures) < len(names):
            raise ValueError("fewer signatures than friends")
        entries = []
        for position, name in enumerate(names):
            picture = first_file(self._user_dir / name / "UserPic") or self.default_picture
            signature = signatures[position] if signatures else ""
            entries.append(FriendEntry(name=name, signature=signature, picture=picture))
        self.friends = entries
        return entries

    def select_friend(self, name: str) -> None:
        """Make ``name`` the chat partner; switching partners clears the transcript."""
        title = FRIEND_PREFIX + name
        if self.title != title:
            self.title = title
            self.transcript.clear()
        self.target = name

    def _require_target(self) -> None:
        if not self.target:
            raise ValueError("no friend selected")

    def send_message(self, text: str) -> PDU:
        """Send a text message to the selected friend and record it."""
        self._require_target()
        if not text:
            raise ValueError("message must not be empty")
        body = text.encode("utf-8")
        pdu = make_pdu(len(body))
        pdu.msg_type = MsgType.CHAT_REQUEST
        pdu.set_text(0, self.client.login_name)
        pdu.set_text(32, self.target)
        pdu.msg[:] = body
        self.client.send_pdu(pdu)
        self.append_message(self._stamp() + f"{self.client.login_name}:{text}")
        return pdu

    def append_message(self, text: str) -> None:
        self.transcript.append(text)

    def show_picture(self, path, who: str) -> str | None:
        """Record a picture from ``who``; return its inline HTML, or None if unreadable."""
        self.append_message(self._stamp() + who + ":\n")
        try:
            with Image.open(Path(path)) as source:
                image = source.convert("RGB")
        except (OSError, ValueError) as exc:
            log.warning("cannot load image %s: %s", path, exc)
            return None
        html = image_to_html(resize_for_chat(image))
        self.append_message(html)
        return html

    def send_image(self, path) -> PDU | None:
        """Show a picture locally and ask the selected friend to accept it."""
        self._require_target()
        if not path:
            return None
        file_path = Path(path)
        size = file_path.stat().st_size
        self.upload_path = file_path
        self.show_picture(file_path, self.client.login_name)
        pdu = make_pdu(NAME_SIZE)
        pdu.msg_type = MsgType.CHAT_IMG_REQUEST
        pdu.set_text(0, file_path.name)
        pdu.set_int64(32, size)
        pdu.set_text(48, self.target, 16)
        pdu.msg[:NAME_SIZE] = encode_field(self.client.login_name, NAME_SIZE)
        self.client.send_pdu(pdu)
        return pdu

    def upload_image_data(self) -> int:
        """Stream the chosen picture to the selected friend; return the bytes sent."""
        if self.upload_path is None:
            raise ValueError("no picture chosen for upload")
        sent = 0
        with open(self.upload_path, "rb") as source:
            self.uploading = True
            try:
                while chunk := source.read(PARTIAL_FILE_SIZE):
                    pdu = PDU(msg_type=MsgType.CHAT_IMG_DATA_REQUEST, msg=bytearray(chunk))
                    pdu.set_text(0, self.target)
                    self.client.send_pdu(pdu)
                    sent += len(chunk)
            finally:
                self.uploading = False
        return sent