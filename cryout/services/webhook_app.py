"""
Webhook listener for Telegram push delivery.

A minimal FastAPI application: Telegram POSTs each update as JSON to `/`,
the handler turns it into a telegram.Update and hands it to the gateway,
which only enqueues it. Nothing here calls the gate or the classifier.
"""

import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from fastapi import FastAPI, Header, HTTPException, Request, status
from telegram import Bot, Update

from cryout.schemas.health import HealthResponse

logger = logging.getLogger(__name__)

UpdateHandler = Callable[[Update], Awaitable[None]]


def create_webhook_app(
    bot: Bot,
    on_update: UpdateHandler,
    secret_token: Optional[str] = None,
    queue_size: Callable[[], int] = lambda: 0,
) -> FastAPI:
    """
    Build the webhook application.

    Args:
        bot: Bot used to deserialize updates
        on_update: Coroutine receiving each decoded update
        secret_token: Expected X-Telegram-Bot-Api-Secret-Token (None: not checked)
        queue_size: Reports pending messages for the health endpoint

    Returns:
        FastAPI app with POST / and GET /health
    """
    app = FastAPI(title="Cry Out webhook", docs_url=None, redoc_url=None, openapi_url=None)

    @app.post("/", status_code=status.HTTP_200_OK)
    async def receive_update(
        request: Request,
        x_telegram_bot_api_secret_token: Optional[str] = Header(default=None),
    ) -> dict:
        if secret_token is not None and x_telegram_bot_api_secret_token != secret_token:
            logger.warning("Rejected webhook call with invalid secret token")
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid secret token")

        try:
            payload = await request.json()
        except ValueError:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Body is not valid JSON")

        if not isinstance(payload, dict):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Update must be a JSON object")

        try:
            update = Update.de_json(payload, bot)
        except (TypeError, KeyError, ValueError) as e:
            logger.warning("Rejected malformed update", extra={"error": str(e)})
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Malformed update")

        if update is not None:
            await on_update(update)

        # Any 2xx acknowledges the update to Telegram
        return {"ok": True}

    @app.get("/health", response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        return HealthResponse(
            status="ok",
            timestamp=datetime.now(timezone.utc),
            queued_updates=queue_size(),
        )

    return app
