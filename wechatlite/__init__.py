"""An asyncio chat server and console client over a fixed-header binary protocol."""

__version__ = "0.1.0"