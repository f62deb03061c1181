"""Linear Bridge - Linear issue tracker channel for chat routers.

Polls a bot-controlled Linear account for new assignments and comments,
turns them into normalized inbound chat messages, and exposes a tool
surface the agent uses to act on issues.
"""

__version__ = "1.0.0"
__description__ = "Poll-based Linear channel with deduplicated issue and comment delivery"

from .channel import LINEAR_CHANNEL_JID, LinearChannel, NewMessage
from .config import ChannelConfig, ConfigError, load_config
from .integrations import LinearClient, LinearTools

__all__ = [
    "LinearChannel",
    "LINEAR_CHANNEL_JID",
    "NewMessage",
    "ChannelConfig",
    "ConfigError",
    "load_config",
    "LinearClient",
    "LinearTools",
]
