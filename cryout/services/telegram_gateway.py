"""
Telegram Messaging Gateways.

Two ingestion variants behind IMessagingGateway, both feeding the same
ordered asyncio.Queue of InboundMessage:

- PollingGateway: long-polls getUpdates in a background task
- WebhookGateway: registers a webhook and serves it with uvicorn

Outbound sends (replies and channel posts) are shared and map every
Telegram failure to PublishError.
"""

import asyncio
import contextlib
import logging
import socket
from typing import Iterator, List, Optional

import backoff
import uvicorn
from telegram import Bot, Message, Update
from telegram.error import BadRequest, NetworkError, TelegramError
from telegram.request import HTTPXRequest

from cryout.core.config import Settings
from cryout.core.exceptions import GatewaySetupError, PublishError
from cryout.schemas.messages import InboundMessage
from cryout.services.interfaces.messaging_gateway import IMessagingGateway
from cryout.services.webhook_app import create_webhook_app

logger = logging.getLogger(__name__)

ALLOWED_UPDATES = ["message"]


def create_bot(token: str, timeout: float = 30.0) -> Bot:
    """
    Build a Bot with bounded request timeouts.

    getUpdates gets its own connection pool so a pending long poll never
    blocks replies or channel posts.
    """
    def make_request() -> HTTPXRequest:
        return HTTPXRequest(
            connect_timeout=timeout,
            read_timeout=timeout,
            write_timeout=timeout,
            pool_timeout=timeout,
        )

    return Bot(token=token, request=make_request(), get_updates_request=make_request())


def message_from_update(update: Update) -> Optional[InboundMessage]:
    """
    Convert a Telegram update into an InboundMessage.

    Returns None for updates without a message or without a sender
    (e.g. anonymous group admins, channel posts). Non-text messages are
    kept with text=None; the update loop ignores them.
    """
    message: Optional[Message] = update.message
    if message is None or message.from_user is None:
        return None

    user = message.from_user
    return InboundMessage(
        user_id=user.id,
        chat_id=message.chat.id,
        text=message.text,
        display_name=user.username or user.full_name or "",
    )


class TelegramGateway(IMessagingGateway):
    """
    Shared Telegram transport: queue, conversion and outbound sends.

    Subclasses implement ingestion in start()/stop().
    """

    def __init__(self, bot: Bot):
        self.bot = bot
        self._queue: "asyncio.Queue[InboundMessage]" = asyncio.Queue()

    async def receive(self) -> InboundMessage:
        return await self._queue.get()

    def pending(self) -> int:
        return self._queue.qsize()

    async def enqueue_update(self, update: Update) -> None:
        """Queue a received update; anything without a sender is dropped."""
        inbound = message_from_update(update)
        if inbound is None:
            logger.debug("Skipping update without message", extra={"update_id": update.update_id})
            return
        self._queue.put_nowait(inbound)

    async def _initialize_bot(self) -> None:
        """Validate the token (getMe) and open the HTTP pools."""
        try:
            await self.bot.initialize()
        except TelegramError as e:
            raise GatewaySetupError(f"Failed to initialize Telegram bot: {e}") from e
        logger.info("Authorized on Telegram", extra={"bot_username": self.bot.username})

    async def _shutdown_bot(self) -> None:
        try:
            await self.bot.shutdown()
        except TelegramError as e:
            logger.warning("Error closing Telegram bot", extra={"error": str(e)})

    async def send_to_user(self, chat_id: int, text: str) -> None:
        try:
            await self.bot.send_message(chat_id=chat_id, text=text)
        except TelegramError as e:
            raise PublishError(f"Failed to send message to chat {chat_id}: {e}") from e

    async def send_to_channel(self, channel: str, text: str) -> int:
        try:
            message = await self.bot.send_message(chat_id=channel, text=text)
        except TelegramError as e:
            raise PublishError(f"Failed to publish to {channel}: {e}") from e
        return message.message_id


class PollingGateway(TelegramGateway):
    """
    Pull-mode gateway: long-polls getUpdates from a background task.

    Attributes:
        poll_timeout: Long-poll duration in seconds passed to getUpdates
        error_delay: Pause after a non-network polling error
    """

    def __init__(self, bot: Bot, poll_timeout: int = 60, error_delay: float = 5.0):
        super().__init__(bot)
        self.poll_timeout = poll_timeout
        self.error_delay = error_delay
        self._offset: Optional[int] = None
        self._task: Optional["asyncio.Task[None]"] = None

    async def start(self) -> None:
        await self._initialize_bot()
        try:
            # getUpdates is refused while a webhook is registered
            await self.bot.delete_webhook()
        except TelegramError as e:
            raise GatewaySetupError(f"Polling setup error: {e}") from e

        logger.info("Running in polling mode.")
        self._task = asyncio.create_task(self._poll_loop(), name="telegram-polling")

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        await self._shutdown_bot()

    @backoff.on_exception(
        backoff.expo,
        NetworkError,
        max_time=300,
        max_value=60,
        giveup=lambda e: isinstance(e, BadRequest),
    )
    async def _fetch_updates(self) -> List[Update]:
        """One getUpdates call, retried with exponential backoff on network errors."""
        updates = await self.bot.get_updates(
            offset=self._offset,
            timeout=self.poll_timeout,
            allowed_updates=ALLOWED_UPDATES,
        )
        return list(updates)

    async def _poll_loop(self) -> None:
        while True:
            try:
                updates = await self._fetch_updates()
            except TelegramError as e:
                logger.error(
                    "Polling error",
                    extra={"error": str(e), "error_type": type(e).__name__}
                )
                await asyncio.sleep(self.error_delay)
                continue

            for update in updates:
                self._offset = update.update_id + 1
                await self.enqueue_update(update)


class _EmbeddedServer(uvicorn.Server):
    """uvicorn server that leaves SIGINT/SIGTERM to the bot process."""

    def install_signal_handlers(self) -> None:
        pass

    @contextlib.contextmanager
    def capture_signals(self) -> Iterator[None]:
        yield


class WebhookGateway(TelegramGateway):
    """
    Push-mode gateway: Telegram delivers updates to an HTTP listener.

    start() binds the listen port, registers the webhook, refuses to
    continue if Telegram reports a delivery error, then serves the listener
    in a background task.
    """

    def __init__(
        self,
        bot: Bot,
        webhook_url: str,
        host: str = "0.0.0.0",
        port: int = 8080,
        secret_token: Optional[str] = None,
    ):
        super().__init__(bot)
        self.webhook_url = webhook_url
        self.host = host
        self.port = port
        self.secret_token = secret_token
        self.app = create_webhook_app(
            bot,
            self.enqueue_update,
            secret_token=secret_token,
            queue_size=self.pending,
        )
        self._server: Optional[uvicorn.Server] = None
        self._task: Optional["asyncio.Task[None]"] = None

    async def start(self) -> None:
        await self._initialize_bot()
        sock = self._bind_socket()
        try:
            await self._register_webhook()
        except GatewaySetupError:
            sock.close()
            raise

        config = uvicorn.Config(
            self.app,
            host=self.host,
            port=self.port,
            log_config=None,
            lifespan="off",
        )
        self._server = _EmbeddedServer(config)
        self._task = asyncio.create_task(self._serve(sock), name="telegram-webhook")

        while not self._server.started:
            if self._task.done():
                self._server = None
                self._task = None
                raise GatewaySetupError(f"Webhook listener failed to start on {self.host}:{self.port}")
            await asyncio.sleep(0.05)

        logger.info(
            "Running in webhook mode.",
            extra={"host": self.host, "port": self.port}
        )

    def _bind_socket(self) -> socket.socket:
        """
        Bind the listen socket before anything is registered with Telegram.

        uvicorn calls sys.exit() when it cannot bind, so binding here turns
        a taken port into GatewaySetupError.
        """
        family = socket.AF_INET6 if ":" in self.host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((self.host, self.port))
        except OSError as e:
            sock.close()
            raise GatewaySetupError(f"Webhook listener cannot bind {self.host}:{self.port}: {e}") from e
        return sock

    async def _serve(self, sock: socket.socket) -> None:
        try:
            await self._server.serve(sockets=[sock])
        except SystemExit as e:
            # Keep uvicorn's startup exit inside this task; start() reports it
            logger.error("Webhook listener exited", extra={"exit_code": e.code})

    async def _register_webhook(self) -> None:
        try:
            await self.bot.set_webhook(
                url=self.webhook_url,
                secret_token=self.secret_token,
                allowed_updates=ALLOWED_UPDATES,
            )
            info = await self.bot.get_webhook_info()
        except TelegramError as e:
            raise GatewaySetupError(f"Webhook error: {e}") from e

        if info.last_error_date:
            raise GatewaySetupError(f"Webhook setup error: {info.last_error_message}")

    async def stop(self) -> None:
        if self._server is not None:
            self._server.should_exit = True
        if self._task is not None:
            await self._task
            self._task = None
        self._server = None
        await self._shutdown_bot()


def create_gateway(settings: Settings, bot: Optional[Bot] = None) -> TelegramGateway:
    """
    Select the gateway variant from configuration.

    WEBHOOK_URL set: WebhookGateway, otherwise PollingGateway.
    """
    if bot is None:
        bot = create_bot(settings.telegram_bot_token, settings.telegram_timeout_seconds)

    if settings.push_mode:
        return WebhookGateway(
            bot,
            webhook_url=settings.webhook_url,
            host=settings.webhook_host,
            port=settings.webhook_port,
            secret_token=settings.webhook_secret_token,
        )
    return PollingGateway(bot)
