"""Thin device agent launcher.

Run with: python -m apps.agent.main

Configuration comes from the environment (see ytmonitor.config.AgentSettings):
YTM_API_URL, YTM_AGENT_STATE_PATH, YTM_DEVICE_NAME, HEARTBEAT_INTERVAL_S, ...
Stops cleanly on Ctrl+C; unsent history stays in the state file.
"""

import asyncio

from ytmonitor.agent import MonitorAgent
from ytmonitor.config import AgentSettings
from ytmonitor.logging import configure_logging, get_logger

logger = get_logger(__name__)


def main() -> None:
    configure_logging()
    agent = MonitorAgent(AgentSettings())
    try:
        asyncio.run(agent.run())
    except KeyboardInterrupt:
        logger.info("agent_interrupted")


if __name__ == "__main__":
    main()
