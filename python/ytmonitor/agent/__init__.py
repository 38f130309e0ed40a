"""Device agent: the monitored side of the protocol.

Registers the device, keeps it alive with heartbeats, uploads watch
history, and enforces block rules against the current page.
"""

from ytmonitor.agent.client import MonitorApiClient
from ytmonitor.agent.enforcement import (
    AttemptLogPolicy,
    ContentIdentity,
    EnforcementEngine,
    EnforcementState,
    match_rules,
)
from ytmonitor.agent.errors import AgentAuthError, AgentError, AgentRequestError, TransientIOError
from ytmonitor.agent.runner import MonitorAgent
from ytmonitor.agent.session import DeviceSession, SessionState
from ytmonitor.agent.state import AgentState, AgentStateFile, BufferedVideo

__all__ = [
    "MonitorAgent",
    "MonitorApiClient",
    "DeviceSession",
    "SessionState",
    "AgentState",
    "AgentStateFile",
    "BufferedVideo",
    "ContentIdentity",
    "EnforcementEngine",
    "EnforcementState",
    "AttemptLogPolicy",
    "match_rules",
    "AgentError",
    "AgentAuthError",
    "AgentRequestError",
    "TransientIOError",
]
