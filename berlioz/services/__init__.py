from berlioz.services.authorization_state_service import AuthorizationStateService
from berlioz.services.client_service import ClientService
from berlioz.services.content_extractor import ContentExtractor
from berlioz.services.conversation_service import ConversationService
from berlioz.services.event_service import EventService
from berlioz.services.integration_service import IntegrationService

__all__ = [
    "AuthorizationStateService",
    "ClientService",
    "ContentExtractor",
    "ConversationService",
    "EventService",
    "IntegrationService",
]
