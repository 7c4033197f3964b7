# wechatlite

wechatlite is a small instant-messaging system: an asyncio server that keeps
user accounts and friendships in an SQLite database, and a console client that
logs in, manages friends, chats with them and sends them pictures.

## Features

- Account registration and login. Names and passwords must be non-empty and at
  most 32 UTF-8 bytes.
- A list of the users who are online. A user is marked online on login and
  offline when the connection closes.
- Friend requests that the other user must accept (only online users can be
  asked), friend removal, and a friend list with each friend's signature.
- Text messages forwarded from one user to another.
- Picture transfer: the sender announces the file, the receiver agrees, and the
  data follows in 4096-byte chunks. Pictures are scaled so the longer side is
  300 pixels and kept in the conversation as inline JPEG HTML.

## Installation

```
pip install .
```

To run the test suite as well:

```
pip install ".[test]"
pytest
```

## Running

Start the server:

```
wechatlite-server --config server.config --db server.db
```

Both options shown are the defaults. The database file is created if missing.

Then start a client in another terminal:

```
wechatlite --config client.config
```

Add `--accept-friends` to accept every incoming friend request; without it
every request is declined. The client reads commands from standard input, one
per line, and prints what the server sends back:

```
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
help                    show this list
quit                    leave
```

After a successful login the client asks for the friend list and signatures by
itself.

## Configuration

The configuration file holds three lines:

1. the IP address to listen on or connect to,
2. the TCP port (0 to 65535),
3. the root directory where the client keeps its files: a `sysfile` directory,
   a folder per registered user with `MySetting/MyPic`, and a folder per friend
   where received pictures are stored.

The server reads the same format but uses only the address and port. The file
is read with `wechatlite.config.load_config(path)`, or parsed from a string with
`wechatlite.config.parse_config(text)`; both return a `Config` with `ip`,
`port` and `root_path`, and raise `ValueError` for a malformed file.

## Wire format

Every message is a protocol data unit (`wechatlite.protocol.PDU`): three
little-endian unsigned 32-bit integers (total length, message type, message
length), a 64-byte parameter area usually holding two 32-byte NUL-padded names,
then a message body of the stated length. The message types are listed in
`wechatlite.protocol.MsgType`. Incoming bytes are split into whole messages by
`wechatlite.protocol.FrameBuffer.feed`, so a message may arrive in several
pieces.

```python
from wechatlite.protocol import PDU, MsgType, make_pdu

pdu = make_pdu(0)
pdu.msg_type = MsgType.CHAT_REQUEST
pdu.set_text(0, "alice", 32)
pdu.set_text(32, "bob", 32)
data = pdu.pack()

same = PDU.unpack(data)
print(same.msg_type, same.get_text(0, 32), same.get_text(32, 32))
```

## Library use

The pieces can be used on their own:

- `wechatlite.database.Database` stores users, their online state, signatures
  and friendships in SQLite.
- `wechatlite.requests.RequestHandler` answers request units on the server;
  `wechatlite.server.ChatServer` serves clients with asyncio and forwards units
  to users by name.
- `wechatlite.client.ChatClient` builds requests and writes them to a
  transport; `wechatlite.session.ChatSession` keeps the chat view of a
  logged-in user (friend list, selected friend, transcript, picture upload);
  `wechatlite.responses.ResponseHandler` acts on what the server sends back.
- `wechatlite.images` scales pictures and turns them into inline HTML.

```python
from wechatlite.database import Database

password = "password"
with Database("users.db") as db:
    db.register("alice", password)
    db.login("alice", password)
    print(db.online_users())
```

## What it does not do

- There is no graphical interface; the client is a line-oriented console
  program, and pictures appear in `history` as inline HTML text.
- Friend requests are not asked about interactively: the `--accept-friends`
  option decides for all of them.
- Users cannot set their signature over the protocol. A signature can only be
  given when an account is created directly with `Database.create_user`.
- There is no user search and no file sharing beyond chat pictures.
- Passwords are stored as given, without hashing, and traffic is not
  encrypted.