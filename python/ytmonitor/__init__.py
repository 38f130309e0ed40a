"""YouTube Monitor: device-authenticated watch-history sync and block enforcement.

The package holds both sides of the protocol:
- the desktop service (ytmonitor.app, FastAPI over SQLAlchemy)
- the device agent (ytmonitor.agent, asyncio over httpx)
"""

__version__ = "1.0.0"
