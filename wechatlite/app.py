"""Interactive command-line chat client."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import sys

from wechatlite.client import ChatClient
from wechatlite.config import load_config
from wechatlite.responses import ResponseHandler
from wechatlite.session import ChatSession

log = logging.getLogger(__name__)

_READ_SIZE = 65536

HELP = """commands:
  login NAME PASSWORD     log in
  register NAME PASSWORD  create an account
  refresh                 reload the friend list
  signatures              reload the friends' signatures
  manage                  reload the friend-management list
  friends                 show the friend list
  online                  list users online
  add NAME                send a friend request
  delete NAME             end a friendship
  select NAME             chat with a friend
  say TEXT                send a message to the selected friend
  image PATH              send a picture to the selected friend
  history                 show the conversation
  quit                    leave"""


def _one_arg(rest: str, usage: str) -> str:
    parts = rest.split()
    if len(parts) != 1:
        raise ValueError(f"usage: {usage}")
    return parts[0]


def _credentials(rest: str, usage: str) -> tuple[str, str]:
    parts = rest.split()
    if len(parts) != 2:
        raise ValueError(f"usage: {usage}")
    return parts[0], parts[1]


def run_command(line: str, client: ChatClient, session: ChatSession) -> str | None:
    """Run one command line; return text to show, or None when the user quits."""
    parts = line.strip().split(maxsplit=1)
    if not parts:
        return ""
    command = parts[0].lower()
    rest = parts[1] if len(parts) > 1 else ""
    if command in ("quit", "exit"):
        return None
    if command == "help":
        return HELP
    if command == "login":
        client.login(*_credentials(rest, "login NAME PASSWORD"))
        return "login request sent"
    if command == "register":
        client.register(*_credentials(rest, "register NAME PASSWORD"))
        return "registration request sent"
    if command == "refresh":
        session.refresh()
        return "friend list requested"
    if command == "signatures":
        session.refresh_signature()
        return "signatures requested"
    if command == "manage":
        client.refresh_friend_manage()
        return "friend list requested"
    if command == "friends":
        if not session.friends:
            return "(no friends)"
        return "\n".join(f"{entry.name}  {entry.signature}".rstrip() for entry in session.friends)
    if command == "online":
        client.request_online_users()
        return "online users requested"
    if command == "add":
        client.add_friend(_one_arg(rest, "add NAME"))
        return "friend request sent"
    if command == "delete":
        client.delete_friend(_one_arg(rest, "delete NAME"))
        return "delete request sent"
    if command == "select":
        name = _one_arg(rest, "select NAME")
        session.select_friend(name)
        return session.title
    if command == "say":
        session.send_message(rest)
        return session.transcript[-1]
    if command == "image":
        if not rest:
            raise ValueError("usage: image PATH")
        session.send_image(rest)
        return "picture offered"
    if command == "history":
        return "\n".join(session.transcript)
    raise ValueError(f"unknown command: {command!r} (try 'help')")


async def _receive(reader: asyncio.StreamReader, client: ChatClient) -> None:
    while data := await reader.read(_READ_SIZE):
        try:
            client.feed(data)
        except ValueError as exc:
            log.warning("bad data from server: %s", exc)


async def _run(config, accept_friends: bool) -> None:
    reader, writer = await asyncio.open_connection(config.ip, config.port)
    print("connected to the server")
    client = ChatClient(config, writer)
    client.init_root()
    session = ChatSession(client)

    def ask(question: str) -> bool:
        print(f"{question} {'accepted' if accept_friends else 'declined'}")
        return accept_friends

    responses = ResponseHandler(client, session, ask, print)
    client.handler = responses.handle
    receiver = asyncio.create_task(_receive(reader, client))
    loop = asyncio.get_running_loop()
    try:
        while True:
            line = await loop.run_in_executor(None, sys.stdin.readline)
            if not line or receiver.done():
                break
            try:
                output = run_command(line, client, session)
            except (ValueError, OSError) as exc:
                print(f"error: {exc}")
                continue
            if output is None:
                break
            if output:
                print(output)
            await writer.drain()
    finally:
        receiver.cancel()
        writer.close()
        with contextlib.suppress(Exception):
            await writer.wait_closed()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Run the chat client.")
    parser.add_argument("--config", default="client.config", help="configuration file")
    parser.add_argument(
        "--accept-friends", action="store_true", help="accept incoming friend requests"
    )
    args = parser.parse_args(argv)
    try:
        config = load_config(args.config)
    except (OSError, ValueError) as exc:
        print(f"cannot load configuration: {exc}", file=sys.stderr)
        return 1
    try:
        asyncio.run(_run(config, args.accept_friends))
    except OSError as exc:
        print(f"connection failed: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())