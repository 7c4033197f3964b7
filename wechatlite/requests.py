"""Server-side handling of client requests."""

from __future__ import annotations

import logging
from typing import Callable, Protocol

from wechatlite.database import USER_ONLINE, Database
from wechatlite.protocol import PDU, MsgType, make_pdu

log = logging.getLogger(__name__)


class Router(Protocol):
    """Anything that can forward a unit to the connection of a named user."""

    def resend(self, name: str, pdu: PDU) -> object: ...


class RequestHandler:
    """Turns each request unit into a response, forwarding to other users where needed."""

    def __init__(self, db: Database, router: Router) -> None:
        self.db = db
        self.router = router
        self._routes: dict[int, Callable[[PDU, object], PDU | None]] = {
            MsgType.LOGIN_REQUEST: self.login,
            MsgType.REGIST_REQUEST: lambda pdu, conn: self.regist(pdu),
            MsgType.REFRESH_REQUEST: lambda pdu, conn: self.pre_refresh_friend(pdu, conn.name),
            MsgType.REFRESH_SIGNATURE_REQUEST: lambda pdu, conn: self.refresh_friend_signature(
                conn.name
            ),
            MsgType.CHAT_REQUEST: lambda pdu, conn: self.chat(pdu),
            MsgType.CHAT_IMG_REQUEST: lambda pdu, conn: self.chat_img(pdu),
            MsgType.CHAT_IMG_AGREE_REQUEST: lambda pdu, conn: self.chat_img_agree(pdu),
            MsgType.CHAT_IMG_DATA_REQUEST: lambda pdu, conn: self.chat_img_data(pdu),
            MsgType.FRIEND_MANAGE_REFRESH_REQUEST: lambda pdu, conn: self.pre_refresh_friend(
                pdu, conn.name
            ),
            MsgType.DELETE_FRIEND_REQUEST: lambda pdu, conn: self.delete_friend(pdu),
            MsgType.ADD_FRIEND_REQUEST: lambda pdu, conn: self.add_friend(pdu),
            MsgType.ADD_FRIEND_AGREE_REQUEST: lambda pdu, conn: self.add_friend_agree(pdu),
            MsgType.ONLINE_USER_REQUEST: lambda pdu, conn: self.online_user(pdu),
        }

    def handle(self, pdu: PDU, connection) -> PDU | None:
        """Dispatch a request; return the reply for the sender, or None."""
        route = self._routes.get(pdu.msg_type)
        if route is None:
            log.debug("ignoring message type %s", pdu.msg_type)
            return None
        return route(pdu, connection)

    def regist(self, pdu: PDU) -> PDU:
        name, pwd = pdu.get_text(0), pdu.get_text(32)
        ok = self.db.register(name, pwd)
        reply = make_pdu()
        reply.msg_type = MsgType.REGIST_RESPOND
        reply.set_flag(ok)
        reply.set_text(32, name)
        return reply

    def login(self, pdu: PDU, connection) -> PDU:
        name, pwd = pdu.get_text(0), pdu.get_text(32)
        ok = self.db.login(name, pwd)
        if ok:
            connection.name = name
            log.info("%s logged in", name)
        reply = make_pdu()
        reply.msg_type = MsgType.LOGIN_RESPOND
        reply.set_flag(ok)
        return reply

    def online_user(self, pdu: PDU) -> PDU:
        reply = make_pdu()
        reply.msg_type = MsgType.ONLINE_USER_RESPOND
        reply.set_names(self.db.online_users())
        return reply

    def add_friend(self, pdu: PDU) -> PDU | None:
        cur_name, tar_name = pdu.get_text(0), pdu.get_text(32)
        state = self.db.add_friend(cur_name, tar_name)
        if state == USER_ONLINE:
            self.router.resend(tar_name, pdu)
            return None
        reply = make_pdu()
        reply.msg_type = MsgType.ADD_FRIEND_RESPOND
        reply.set_int(0, state)
        return reply

    def add_friend_agree(self, pdu: PDU) -> PDU:
        cur_name, tar_name = pdu.get_text(0), pdu.get_text(32)
        self.db.agree_friend(cur_name, tar_name)
        self.router.resend(cur_name, pdu)
        reply = make_pdu()
        reply.msg_type = MsgType.ADD_FRIEND_AGREE_RESPOND
        return reply

    def pre_refresh_friend(self, pdu: PDU, login_name: str) -> PDU:
        """Answer a refresh request with the response type that follows its own."""
        return self.refresh_friend(login_name, int(pdu.msg_type) + 1)

    def refresh_friend(self, login_name: str, msg_type: int) -> PDU:
        reply = make_pdu()
        try:
            reply.msg_type = MsgType(msg_type)
        except ValueError:
            reply.msg_type = msg_type
        reply.set_names(self.db.friends(login_name))
        return reply

    def refresh_friend_signature(self, login_name: str) -> PDU:
        """Signatures of the user's friends, in the same order as the friend list."""
        names = self.db.friends(login_name)
        signatures = self.db.friend_signatures(login_name)
        reply = make_pdu()
        reply.msg_type = MsgType.REFRESH_SIGNATURE_RESPOND
        reply.set_names(signatures.get(name, "") for name in names)
        return reply

    def delete_friend(self, pdu: PDU) -> PDU:
        cur_name, tar_name = pdu.get_text(0), pdu.get_text(32)
        result = self.db.delete_friend(cur_name, tar_name)
        reply = make_pdu()
        reply.msg_type = MsgType.DELETE_FRIEND_RESPOND
        reply.set_int(0, result)
        return reply

    def _forward(self, pdu: PDU, target: str, msg_type: MsgType) -> None:
        pdu.msg_type = msg_type
        self.router.resend(target, pdu)
        return None

    def chat(self, pdu: PDU) -> None:
        return self._forward(pdu, pdu.get_text(32), MsgType.CHAT_RESPOND)

    def chat_img(self, pdu: PDU) -> None:
        return self._forward(pdu, pdu.get_text(48, 16), MsgType.CHAT_IMG_RESPOND)

    def chat_img_agree(self, pdu: PDU) -> None:
        return self._forward(pdu, pdu.get_text(32), MsgType.CHAT_IMG_AGREE_RESPOND)

    def chat_img_data(self, pdu: PDU) -> None:
        return self._forward(pdu, pdu.get_text(0), MsgType.CHAT_IMG_DATA_RESPOND)