"""Asyncio TCP server that routes protocol units between logged-in users."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import sys

from wechatlite.config import load_config
from wechatlite.database import Database
from wechatlite.protocol import PDU, FrameBuffer
from wechatlite.requests import RequestHandler

log = logging.getLogger(__name__)

_READ_SIZE = 65536


class Connection:
    """One client link: reassembles frames and answers them."""

    def __init__(self, writer, handler: RequestHandler) -> None:
        self.writer = writer
        self.handler = handler
        self.name = ""
        self._frames = FrameBuffer()

    def send(self, pdu: PDU | None) -> None:
        """Write a unit to the client; None sends nothing."""
        if pdu is None:
            return
        self.writer.write(pdu.pack())

    def receive(self, data: bytes) -> None:
        """Take received bytes and answer every complete request in them."""
        for pdu in self._frames.feed(data):
            log.debug("request %s from %r", pdu.msg_type, self.name)
            self.send(self.handler.handle(pdu, self))


class ChatServer:
    """Tracks client connections and forwards units to them by user name."""

    def __init__(self, db: Database) -> None:
        self.db = db
        self.connections: list[Connection] = []
        self.handler = RequestHandler(db, self)

    def resend(self, name: str, pdu: PDU) -> int:
        """Send a unit to every connection logged in as ``name``; return how many."""
        delivered = 0
        for connection in self.connections:
            if connection.name == name:
                connection.send(pdu)
                delivered += 1
        return delivered

    async def handle_client(self, reader: asyncio.StreamReader, writer) -> None:
        connection = Connection(writer, self.handler)
        self.connections.append(connection)
        log.info("new client %s", writer.get_extra_info("peername"))
        try:
            while data := await reader.read(_READ_SIZE):
                connection.receive(data)
                await writer.drain()
        except ValueError as exc:
            log.warning("dropping client after malformed data: %s", exc)
        except ConnectionError:
            pass
        finally:
            self.db.set_offline(connection.name)
            self.connections.remove(connection)
            writer.close()
            with contextlib.suppress(Exception):
                await writer.wait_closed()

    async def start(self, host: str, port: int) -> asyncio.Server:
        """Begin listening; return the running server."""
        return await asyncio.start_server(self.handle_client, host, port)

    async def serve_forever(self, host: str, port: int) -> None:
        server = await self.start(host, port)
        async with server:
            await server.serve_forever()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Run the chat server.")
    parser.add_argument("--config", default="server.config", help="configuration file")
    parser.add_argument("--db", default="server.db", help="SQLite database file")
    args = parser.parse_args(argv)
    try:
        config = load_config(args.config)
    except (OSError, ValueError) as exc:
        print(f"cannot load configuration: {exc}", file=sys.stderr)
        return 1
    logging.basicConfig(level=logging.INFO)
    with Database(args.db) as db:
        server = ChatServer(db)
        try:
            asyncio.run(server.serve_forever(config.ip, config.port))
        except KeyboardInterrupt:
            pass
    return 0


if __name__ == "__main__":
    sys.exit(main())