"""
Tests for the Telegram messaging gateways.

The telegram.Bot is mocked; no network calls are made. Covers:
- Update to InboundMessage conversion
- Send error mapping to PublishError
- Polling ingestion (offsets, ordering, error recovery, stop)
- Webhook registration and listener startup
- Gateway selection from settings
"""

import asyncio
import socket
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from telegram import Bot, Chat, Message, Update, User
from telegram.error import BadRequest, Conflict, Forbidden, InvalidToken

from cryout.core.config import Settings
from cryout.core.exceptions import GatewaySetupError, PublishError
from cryout.services.telegram_gateway import (
    PollingGateway,
    WebhookGateway,
    create_bot,
    create_gateway,
    message_from_update,
)


def make_update(update_id=1, text="привет", user_id=10, username="anna", with_user=True, with_message=True):
    if not with_message:
        return Update(update_id=update_id)
    user = User(id=user_id, first_name="Анна", last_name="К", is_bot=False, username=username) if with_user else None
    message = Message(
        message_id=update_id,
        date=datetime.now(timezone.utc),
        chat=Chat(id=user_id, type=Chat.PRIVATE),
        from_user=user,
        text=text,
    )
    return Update(update_id=update_id, message=message)


@pytest.fixture
def mock_bot():
    bot = AsyncMock()
    bot.username = "cryout_bot"
    bot.get_webhook_info = AsyncMock(return_value=MagicMock(last_error_date=None, last_error_message=None))
    return bot


class TestMessageFromUpdate:

    def test_text_message(self):
        inbound = message_from_update(make_update(text="привет", user_id=10))

        assert inbound.user_id == 10
        assert inbound.chat_id == 10
        assert inbound.text == "привет"
        assert inbound.display_name == "anna"

    def test_falls_back_to_full_name(self):
        inbound = message_from_update(make_update(username=None))
        assert inbound.display_name == "Анна К"

    def test_non_text_message_kept_without_text(self):
        inbound = message_from_update(make_update(text=None))
        assert inbound is not None
        assert inbound.text is None

    def test_update_without_message(self):
        assert message_from_update(make_update(with_message=False)) is None

    def test_message_without_sender(self):
        assert message_from_update(make_update(with_user=False)) is None


class TestSends:

    @pytest.mark.asyncio
    async def test_send_to_channel_returns_message_id(self, mock_bot):
        mock_bot.send_message = AsyncMock(return_value=MagicMock(message_id=321))
        gateway = PollingGateway(mock_bot)

        message_id = await gateway.send_to_channel("@cryout", "текст")

        assert message_id == 321
        mock_bot.send_message.assert_awaited_once_with(chat_id="@cryout", text="текст")

    @pytest.mark.asyncio
    async def test_send_to_channel_error(self, mock_bot):
        mock_bot.send_message = AsyncMock(side_effect=BadRequest("Chat not found"))
        gateway = PollingGateway(mock_bot)

        with pytest.raises(PublishError, match="Chat not found"):
            await gateway.send_to_channel("@cryout", "текст")

    @pytest.mark.asyncio
    async def test_send_to_user_error(self, mock_bot):
        mock_bot.send_message = AsyncMock(side_effect=Forbidden("bot was blocked by the user"))
        gateway = PollingGateway(mock_bot)

        with pytest.raises(PublishError):
            await gateway.send_to_user(10, "ответ")

    @pytest.mark.asyncio
    async def test_send_to_user(self, mock_bot):
        gateway = PollingGateway(mock_bot)

        await gateway.send_to_user(10, "ответ")

        mock_bot.send_message.assert_awaited_once_with(chat_id=10, text="ответ")


class TestPollingGateway:

    @pytest.mark.asyncio
    async def test_invalid_token_fails_setup(self, mock_bot):
        mock_bot.initialize = AsyncMock(side_effect=InvalidToken())
        gateway = PollingGateway(mock_bot)

        with pytest.raises(GatewaySetupError):
            await gateway.start()

    @pytest.mark.asyncio
    async def test_polls_in_order_and_advances_offset(self, mock_bot):
        never = asyncio.Event()
        offsets = []

        async def get_updates(offset=None, timeout=None, allowed_updates=None):
            offsets.append(offset)
            if len(offsets) == 1:
                return (make_update(5, "первый", user_id=1), make_update(6, "второй", user_id=2))
            await never.wait()
            return ()

        mock_bot.get_updates = AsyncMock(side_effect=get_updates)
        gateway = PollingGateway(mock_bot)

        await gateway.start()
        first = await asyncio.wait_for(gateway.receive(), timeout=1.0)
        second = await asyncio.wait_for(gateway.receive(), timeout=1.0)
        while len(offsets) < 2:
            await asyncio.sleep(0.01)
        await gateway.stop()

        assert [first.text, second.text] == ["первый", "второй"]
        assert offsets == [None, 7]
        mock_bot.delete_webhook.assert_awaited_once()
        mock_bot.shutdown.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_recovers_from_polling_error(self, mock_bot):
        never = asyncio.Event()
        calls = 0

        async def get_updates(offset=None, timeout=None, allowed_updates=None):
            nonlocal calls
            calls += 1
            if calls == 1:
                raise Conflict("terminated by other getUpdates request")
            if calls == 2:
                return (make_update(1, "после ошибки"),)
            await never.wait()
            return ()

        mock_bot.get_updates = AsyncMock(side_effect=get_updates)
        gateway = PollingGateway(mock_bot, error_delay=0.01)

        await gateway.start()
        message = await asyncio.wait_for(gateway.receive(), timeout=1.0)
        await gateway.stop()

        assert message.text == "после ошибки"

    @pytest.mark.asyncio
    async def test_skips_updates_without_sender(self, mock_bot):
        never = asyncio.Event()
        batches = [(make_update(1, with_message=False), make_update(2, "текст"))]

        async def get_updates(offset=None, timeout=None, allowed_updates=None):
            if batches:
                return batches.pop()
            await never.wait()
            return ()

        mock_bot.get_updates = AsyncMock(side_effect=get_updates)
        gateway = PollingGateway(mock_bot)

        await gateway.start()
        message = await asyncio.wait_for(gateway.receive(), timeout=1.0)
        await gateway.stop()

        assert message.text == "текст"
        assert gateway.pending() == 0


class TestWebhookGateway:

    @pytest.mark.asyncio
    async def test_register_webhook(self, mock_bot):
        gateway = WebhookGateway(mock_bot, "https://bot.example.org/", secret_token="s3cret")

        await gateway._register_webhook()

        mock_bot.set_webhook.assert_awaited_once_with(
            url="https://bot.example.org/",
            secret_token="s3cret",
            allowed_updates=["message"],
        )

    @pytest.mark.asyncio
    async def test_webhook_last_error_fails_setup(self, mock_bot):
        mock_bot.get_webhook_info.return_value = MagicMock(
            last_error_date=datetime.now(timezone.utc),
            last_error_message="Connection refused",
        )
        gateway = WebhookGateway(mock_bot, "https://bot.example.org/")

        with pytest.raises(GatewaySetupError, match="Connection refused"):
            await gateway._register_webhook()

    @pytest.mark.asyncio
    async def test_set_webhook_error_fails_setup(self, mock_bot):
        mock_bot.set_webhook = AsyncMock(side_effect=BadRequest("Bad webhook: https url must be provided"))
        gateway = WebhookGateway(mock_bot, "http://insecure.example.org/")

        with pytest.raises(GatewaySetupError, match="Webhook error"):
            await gateway._register_webhook()

    @pytest.mark.asyncio
    async def test_port_in_use_fails_setup(self, mock_bot):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as taken:
            taken.bind(("127.0.0.1", 0))
            taken.listen()
            port = taken.getsockname()[1]
            gateway = WebhookGateway(mock_bot, "https://bot.example.org/", host="127.0.0.1", port=port)

            with pytest.raises(GatewaySetupError, match="cannot bind"):
                await asyncio.wait_for(gateway.start(), timeout=5.0)

        mock_bot.set_webhook.assert_not_called()
        await gateway.stop()
        mock_bot.shutdown.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_start_serves_until_stopped(self, mock_bot):
        gateway = WebhookGateway(mock_bot, "https://bot.example.org/", host="127.0.0.1", port=0)

        await asyncio.wait_for(gateway.start(), timeout=5.0)
        assert gateway._server.started
        await asyncio.wait_for(gateway.stop(), timeout=5.0)

        mock_bot.set_webhook.assert_awaited_once()
        mock_bot.shutdown.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_enqueue_update(self, mock_bot):
        gateway = WebhookGateway(mock_bot, "https://bot.example.org/")

        await gateway.enqueue_update(make_update(3, "через вебхук"))

        assert gateway.pending() == 1
        assert (await gateway.receive()).text == "через вебхук"


class TestCreateGateway:

    def test_polling_by_default(self):
        gateway = create_gateway(Settings(_env_file=None), bot=MagicMock())
        assert isinstance(gateway, PollingGateway)

    def test_webhook_when_url_set(self, monkeypatch):
        monkeypatch.setenv("WEBHOOK_URL", "https://bot.example.org/")
        monkeypatch.setenv("WEBHOOK_PORT", "8443")

        gateway = create_gateway(Settings(_env_file=None), bot=MagicMock())

        assert isinstance(gateway, WebhookGateway)
        assert gateway.webhook_url == "https://bot.example.org/"
        assert gateway.port == 8443

    def test_create_bot(self):
        bot = create_bot("123456:test-token", timeout=5.0)

        assert isinstance(bot, Bot)
        assert bot.token == "123456:test-token"
