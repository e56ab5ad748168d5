"""
Cry Out - anonymous moderated relay bot.

Accepts private messages, checks them against the per-user gate and the
content classifier, and republishes approved ones to the channel.

Usage:
    cryout [--env-file .env] [--log-level INFO]
    python -m cryout

Requirements:
    - TELEGRAM_BOT_TOKEN, OPENAI_API_KEY and TELEGRAM_BOT_CHANNEL_NAME set
      in the environment or the env file
    - The bot must be an administrator of the channel
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from cryout.bot.pipeline import ModerationPipeline
from cryout.core.config import Settings, load_settings
from cryout.core.exceptions import ConfigurationError, GatewaySetupError
from cryout.core.lifecycle import install_signal_handlers, remove_signal_handlers
from cryout.core.logging_config import setup_logging
from cryout.services.content_classifier import OpenAIContentClassifier
from cryout.services.submission_gate import SubmissionGate
from cryout.services.telegram_gateway import create_gateway

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command line arguments.

    Returns:
        Parsed arguments with env_file and optional log_level override
    """
    parser = argparse.ArgumentParser(
        prog="cryout",
        description="Anonymous Telegram relay with LLM moderation",
    )
    parser.add_argument(
        "--env-file",
        default=".env",
        help="Dotenv file with bot settings (default: .env; missing file is ignored)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Override LOG_LEVEL",
    )
    return parser.parse_args(argv)


async def run_bot(settings: Settings) -> int:
    """
    Wire services, run the update loop until a shutdown signal, clean up.

    Returns:
        Process exit code (0 on graceful shutdown, 1 on gateway setup failure)
    """
    gate = SubmissionGate(window=settings.rate_limit_window)
    classifier = OpenAIContentClassifier.from_settings(settings)
    gateway = create_gateway(settings)
    pipeline = ModerationPipeline(
        gateway=gateway,
        classifier=classifier,
        gate=gate,
        channel=settings.telegram_bot_channel_name,
        prompt=settings.openai_prompt,
        rules_text=settings.rules_text,
        start_command=settings.start_command,
    )

    stop_event = asyncio.Event()
    install_signal_handlers(stop_event)

    try:
        try:
            await gateway.start()
        except GatewaySetupError as e:
            logger.critical("Gateway setup failed", extra={"error": str(e)})
            await gateway.stop()
            return 1

        try:
            await pipeline.run(stop_event)
        finally:
            logger.info("Cleaning up resources...")
            await gateway.stop()
    finally:
        remove_signal_handlers()
        await classifier.close()

    logger.info("Bot shut down gracefully.")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point: load settings, configure logging, run the bot."""
    args = parse_args(argv)

    setup_logging(level=args.log_level or "INFO")

    try:
        settings = load_settings(args.env_file)
    except ConfigurationError as e:
        logger.critical("Missing required environment variables", extra={"error": str(e)})
        return 1

    setup_logging(level=args.log_level or settings.log_level, json_format=settings.log_json)

    return asyncio.run(run_bot(settings))


if __name__ == "__main__":
    sys.exit(main())
