"""Client-side handling of the units the server sends back."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

from wechatlite.client import ChatClient
from wechatlite.protocol import NAME_SIZE, PDU, MsgType, decode_field, make_pdu
from wechatlite.session import ChatSession, format_timestamp

log = logging.getLogger(__name__)

ADD_ALREADY_FRIENDS = -2
ADD_INTERNAL_ERROR = -1
ADD_NOT_ONLINE = 0

DELETE_FAILED = 0
DELETE_OK = 1


class ResponseHandler:
    """Reacts to server units: updates the session, asks the user and answers the server."""

    def __init__(
        self,
        client: ChatClient,
        session: ChatSession,
        ask: Callable[[str], bool],
        notify: Callable[[str], object],
    ) -> None:
        self.client = client
        self.session = session
        self.ask = ask
        self.notify = notify
        self.logged_in = False
        self.signatures: list[str] = []
        self.friend_names: list[str] = []
        self.online_users: list[str] = []
        self.receiving = False
        self.upload_file: Path | None = None
        self.upload_total = 0
        self.upload_received = 0
        self._upload_handle = None
        self._routes: dict[int, Callable[[PDU], object]] = {
            MsgType.REGIST_RESPOND: self.regist,
            MsgType.LOGIN_RESPOND: self.login,
            MsgType.REFRESH_RESPOND: self.refresh_friend,
            MsgType.REFRESH_SIGNATURE_RESPOND: self.refresh_friend_signature,
            MsgType.CHAT_RESPOND: self.chat_request,
            MsgType.CHAT_IMG_RESPOND: self.chat_img_request,
            MsgType.CHAT_IMG_AGREE_RESPOND: self.chat_img_agree_res,
            MsgType.CHAT_IMG_DATA_RESPOND: self.chat_img_data,
            MsgType.FRIEND_MANAGE_REFRESH_RESPOND: self.refresh_friend,
            MsgType.DELETE_FRIEND_RESPOND: self.delete_friend_res,
            MsgType.ADD_FRIEND_REQUEST: self.add_friend_request,
            MsgType.ADD_FRIEND_AGREE_RESPOND: self.add_friend_agree,
            MsgType.ADD_FRIEND_AGREE_REQUEST: self.add_friend_agree,
            MsgType.ADD_FRIEND_RESPOND: self.add_friend,
            MsgType.ONLINE_USER_RESPOND: self.online_user,
        }

    def handle(self, pdu: PDU):
        """Dispatch a unit to its handler and return what the handler returns."""
        route = self._routes.get(pdu.msg_type)
        if route is None:
            log.debug("ignoring message type %s", pdu.msg_type)
            return None
        return route(pdu)

    def regist(self, pdu: PDU) -> bool:
        ok = pdu.get_flag()
        name = pdu.get_text(32)
        self.notify("注册成功" if ok else "非法")
        if ok:
            self.init_setting(name)
        return ok

    def init_setting(self, name: str) -> bool:
        """Create the user's folder with MySetting/MyPic; False if it already existed."""
        path = self.client.root_path / name
        try:
            path.mkdir(parents=True)
        except FileExistsError:
            log.debug("user folder %s already exists", path)
            return False
        settings = path / "MySetting"
        settings.mkdir(exist_ok=True)
        (settings / "MyPic").mkdir(exist_ok=True)
        return True

    def login(self, pdu: PDU) -> bool:
        ok = pdu.get_flag()
        if not ok:
            self.notify("用户名或密码错误")
            return False
        self.notify(f"User: {self.client.login_name} Login Success!")
        if not self.logged_in:
            self.logged_in = True
            self.session.refresh_signature()
            self.session.refresh()
        return True

    def add_friend_request(self, pdu: PDU) -> PDU | None:
        """Ask whether to accept; on yes create the friend's folder and send the agreement."""
        requester = pdu.get_text(0)
        if not self.ask(f"Whether to agree to the friend request from {requester}?"):
            return None
        self.init_friend(requester)
        reply = make_pdu()
        reply.data[:] = pdu.data
        reply.msg_type = MsgType.ADD_FRIEND_AGREE_REQUEST
        self.client.send_pdu(reply)
        return reply

    def add_friend_agree(self, pdu: PDU) -> None:
        self.notify("Success!")
        cur_name, tar_name = pdu.get_text(0), pdu.get_text(32)
        self.session.refresh()
        if self.client.login_name == cur_name:
            self.init_friend(tar_name)

    def init_friend(self, name: str) -> Path:
        """Make sure the folder kept for a friend exists and return it."""
        path = self.client.root_path / self.client.login_name / name
        existed = path.is_dir()
        path.mkdir(parents=True, exist_ok=True)
        log.debug("friend folder %s %s", path, "already present" if existed else "created")
        return path

    def delete_friend_res(self, pdu: PDU) -> int:
        result = pdu.get_int(0)
        if result == DELETE_OK:
            self.notify("Delete success!")
            self.client.refresh_friend_manage()
        elif result == DELETE_FAILED:
            self.notify("Delete Failed!")
        return result

    def add_friend(self, pdu: PDU) -> int:
        result = pdu.get_int(0)
        messages = {
            ADD_ALREADY_FRIENDS: "He is already your friend",
            ADD_INTERNAL_ERROR: "Internal Error",
            ADD_NOT_ONLINE: "Not online",
        }
        if result in messages:
            self.notify(messages[result])
        return result

    def online_user(self, pdu: PDU) -> list[str]:
        """Names of the other users online."""
        names = [name for name in pdu.get_names() if name != self.client.login_name]
        self.online_users = names
        self.notify("Online: " + ", ".join(names))
        return names

    def refresh_friend(self, pdu: PDU) -> list[str]:
        names = pdu.get_names()
        self.friend_names = names
        self.session.update_friends(names, self.signatures)
        return names

    def refresh_friend_signature(self, pdu: PDU) -> list[str]:
        self.signatures = pdu.get_names()
        return self.signatures

    def chat_request(self, pdu: PDU) -> str:
        """Record an incoming text message and switch the chat to its sender."""
        sender = pdu.get_text(0)
        self.session.select_friend(sender)
        line = format_timestamp(self.session.clock()) + "\n" + f"{sender}:{decode_field(pdu.msg)}"
        self.session.append_message(line)
        return line

    def chat_img_request(self, pdu: PDU) -> PDU | None:
        """Prepare to receive a picture.

        Returns the refusal unsent while another picture is still arriving; otherwise
        shows an already-stored picture, or opens the target file and sends the answer.
        """
        reply = make_pdu()
        reply.msg_type = MsgType.CHAT_IMG_AGREE_REQUEST
        if self.receiving:
            log.debug("already receiving a picture")
            reply.set_flag(False)
            return reply
        sender = decode_field(pdu.msg[:NAME_SIZE])
        self.session.target = sender
        file_name = Path(pdu.get_text(0)).name
        total = pdu.get_int64(32)
        path = self.client.root_path / self.client.login_name / sender / file_name
        self.upload_file = path
        if path.exists():
            self.session.select_friend(sender)
            self.session.show_picture(path, sender)
            return None
        ok = False
        try:
            self._upload_handle = open(path, "wb")
        except OSError as exc:
            log.warning("cannot open %s: %s", path, exc)
        else:
            self.receiving = True
            self.upload_received = 0
            self.upload_total = total
            ok = True
        reply.set_flag(ok)
        reply.set_text(32, sender)
        self.client.send_pdu(reply)
        return reply

    def chat_img_agree_res(self, pdu: PDU) -> bool:
        if pdu.get_flag():
            self.session.upload_image_data()
            return True
        self.notify("Fail")
        return False

    def chat_img_data(self, pdu: PDU) -> PDU | None:
        """Store a chunk; once complete, show the picture and return the result unit."""
        if self._upload_handle is None or self.upload_file is None:
            log.warning("picture data arrived with no transfer open")
            return None
        self._upload_handle.write(bytes(pdu.msg))
        self.upload_received += pdu.msg_len
        if self.upload_received < self.upload_total:
            return None
        self._upload_handle.close()
        self._upload_handle = None
        sender = self.session.target
        self.session.select_friend(sender)
        self.session.show_picture(self.upload_file, sender)
        self.receiving = False
        reply = make_pdu()
        reply.msg_type = MsgType.CHAT_IMG_DATA_RES_RESPOND
        reply.set_flag(self.upload_received == self.upload_total)
        return reply