from berlioz.models.conversation import Conversation
from berlioz.models.conversation_turn import ConversationTurn
from berlioz.models.slack_authorization_state import SlackAuthorizationState
from berlioz.models.slack_client import SlackClient
from berlioz.models.slack_event import SlackEvent
from berlioz.models.slack_integration import SlackIntegration

__all__ = [
    "Conversation",
    "ConversationTurn",
    "SlackAuthorizationState",
    "SlackClient",
    "SlackEvent",
    "SlackIntegration",
]
