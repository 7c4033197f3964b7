"""Client side of the chat protocol: building requests and receiving frames."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Protocol

from wechatlite.config import Config
from wechatlite.protocol import NAME_SIZE, PDU, FrameBuffer, MsgType, make_pdu

log = logging.getLogger(__name__)


class Transport(Protocol):
    """Anything that accepts outgoing bytes."""

    def write(self, data: bytes) -> object: ...


def validate_credentials(name: str, pwd: str) -> tuple[str, str]:
    """Reject empty names or passwords and ones longer than 32 UTF-8 bytes."""
    if not name or not pwd:
        raise ValueError("user name and password must not be empty")
    if len(name.encode("utf-8")) > NAME_SIZE or len(pwd.encode("utf-8")) > NAME_SIZE:
        raise ValueError(f"user name and password are limited to {NAME_SIZE} bytes")
    return name, pwd


class ChatClient:
    """Builds request units for a logged-in user and splits incoming data into units."""

    def __init__(self, config: Config, transport: Transport) -> None:
        self.config = config
        self.transport = transport
        self.login_name = ""
        self.handler: Callable[[PDU], object] | None = None
        self._frames = FrameBuffer()

    @property
    def root_path(self) -> Path:
        return Path(self.config.root_path)

    def init_root(self) -> Path:
        """Make sure the client's sysfile directory exists and return it."""
        sysfile = self.root_path / "sysfile"
        existed = sysfile.is_dir()
        sysfile.mkdir(parents=True, exist_ok=True)
        log.debug("sysfile directory %s", "already present" if existed else "created")
        return sysfile

    def send_pdu(self, pdu: PDU) -> None:
        """Write a unit to the server."""
        log.debug("sending %s", pdu.msg_type)
        self.transport.write(pdu.pack())

    def feed(self, data: bytes) -> list[PDU]:
        """Take bytes from the server, pass each complete unit to the handler, return them."""
        frames = self._frames.feed(data)
        for pdu in frames:
            log.debug("received %s", pdu.msg_type)
            if self.handler is not None:
                self.handler(pdu)
        return frames

    def _request(self, msg_type: MsgType, first: str = "", second: str = "") -> PDU:
        pdu = make_pdu()
        pdu.msg_type = msg_type
        pdu.set_text(0, first)
        pdu.set_text(32, second)
        self.send_pdu(pdu)
        return pdu

    def login(self, name: str, pwd: str) -> PDU:
        """Send a login request and remember the name as the current user."""
        validate_credentials(name, pwd)
        self.login_name = name
        return self._request(MsgType.LOGIN_REQUEST, name, pwd)

    def register(self, name: str, pwd: str) -> PDU:
        """Send a registration request."""
        validate_credentials(name, pwd)
        return self._request(MsgType.REGIST_REQUEST, name, pwd)

    def refresh_friend_manage(self) -> PDU:
        """Ask for the friend list shown in friend management."""
        return self._request(MsgType.FRIEND_MANAGE_REFRESH_REQUEST, self.login_name)

    def delete_friend(self, target: str) -> PDU:
        """Ask the server to end the friendship with ``target``."""
        if not target:
            raise ValueError("no friend selected")
        return self._request(MsgType.DELETE_FRIEND_REQUEST, self.login_name, target)

    def add_friend(self, target: str) -> PDU:
        """Send a friend request to ``target``."""
        return self._request(MsgType.ADD_FRIEND_REQUEST, self.login_name, target)

    def request_online_users(self) -> PDU:
        """Ask for the names of everyone online."""
        pdu = make_pdu()
        pdu.msg_type = MsgType.ONLINE_USER_REQUEST
        self.send_pdu(pdu)
        return pdu