"""Service interface contracts (ABCs)"""

from cryout.services.interfaces.content_classifier import IContentClassifier
from cryout.services.interfaces.messaging_gateway import IMessagingGateway

__all__ = [
    'IContentClassifier',
    'IMessagingGateway',
]
