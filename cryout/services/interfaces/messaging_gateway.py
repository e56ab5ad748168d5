"""
Messaging Gateway Interface Contract.

Defines the contract for the chat transport: ingestion of private messages
and outbound sends to users and to the broadcast channel.
"""

from abc import ABC, abstractmethod

from cryout.schemas.messages import InboundMessage


class IMessagingGateway(ABC):
    """
    Abstract base class for messaging gateways.

    Ingestion runs in the background (long polling or a webhook listener)
    and only deposits messages into an ordered queue; the update loop
    drains it through receive().
    """

    @abstractmethod
    async def start(self) -> None:
        """
        Prepare the transport and begin ingestion.

        Raises:
            GatewaySetupError: If the transport cannot be prepared
        """
        pass

    @abstractmethod
    async def stop(self) -> None:
        """Stop ingestion and release the transport."""
        pass

    @abstractmethod
    async def receive(self) -> InboundMessage:
        """
        Wait for the next inbound message, in arrival order.

        Blocks until a message is available. Callers wanting cancellation
        race this against their own stop signal.
        """
        pass

    @abstractmethod
    async def send_to_user(self, chat_id: int, text: str) -> None:
        """
        Send a reply to a private chat.

        Raises:
            PublishError: If the message could not be sent
        """
        pass

    @abstractmethod
    async def send_to_channel(self, channel: str, text: str) -> int:
        """
        Publish a message to a channel.

        Args:
            channel: Channel username (e.g. "@cryout")
            text: Message text, published as-is

        Returns:
            Message id of the published post

        Raises:
            PublishError: If the message could not be published
        """
        pass
