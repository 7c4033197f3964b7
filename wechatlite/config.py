"""Loading of the three-line endpoint configuration file."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Config:
    """Address to listen on or connect to, and the root directory for user files."""

    ip: str
    port: int
    root_path: str


def parse_config(text: str) -> Config:
    """Parse configuration text: IP, port and root path on separate lines."""
    lines = text.splitlines()
    if len(lines) < 3:
        raise ValueError("configuration needs an address, a port and a root path")
    ip, port_text, root_path = lines[0].strip(), lines[1].strip(), lines[2].strip()
    try:
        port = int(port_text)
    except ValueError:
        raise ValueError(f"invalid port: {port_text!r}") from None
    if not 0 <= port <= 0xFFFF:
        raise ValueError(f"port out of range: {port}")
    return Config(ip=ip, port=port, root_path=root_path)


def load_config(path) -> Config:
    """Read and parse a configuration file."""
    return parse_config(Path(path).read_text(encoding="utf-8"))