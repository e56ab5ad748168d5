"""Update loop wiring the gateway, gate and classifier."""

from cryout.bot.pipeline import ModerationPipeline, ProcessingOutcome, build_post_link

__all__ = ["ModerationPipeline", "ProcessingOutcome", "build_post_link"]
