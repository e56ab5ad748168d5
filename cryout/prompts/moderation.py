"""
Fixed user-facing texts and the default moderation prompt.

The classifier answers with a single Russian word; only the affirmative
token approves a submission.
"""

DEFAULT_MODERATION_PROMPT = (
    "Проверь, соответствует ли сообщение следующим критериям: "
    "написано преимущественно на русском языке, не содержит грубых ругательств "
    "(допускаются слова с символами '*'), а цель сообщения — пожаловаться, "
    "выплакаться, выговориться публично. Ответь только 'да' или 'нет'. Сообщение:\n\n"
)

AFFIRMATIVE_ANSWER = "да"

RULES_MESSAGE = (
    "📝 Правила отправки сообщений:\n\n"
    "1. Цель сообщения – выплеснуть эмоции и получить поддержку.\n"
    "2. Сообщение должно быть преимущественно на русском языке.\n"
    "3. Запрещены грубые матерные выражения."
)

RATE_LIMITED_MESSAGE = "⏳ Вы можете отправлять одно сообщение раз в {minutes} минут."

DUPLICATE_MESSAGE = "⚠️ Вы уже отправляли такое сообщение ранее."

CLASSIFY_FAILED_MESSAGE = "🚫 Ошибка проверки. Попробуйте позже."

POLICY_REJECTED_PREFIX = "🚫 Сообщение не соответствует правилам.\n\n"

PUBLISH_FAILED_MESSAGE = "🚫 Ошибка публикации. Попробуйте позже."

PUBLISHED_PREFIX = "✅ Сообщение опубликовано: "


def rate_limited_message(minutes: float) -> str:
    """Cooldown notice; whole minutes are shown without a fractional part."""
    shown = int(minutes) if float(minutes).is_integer() else minutes
    return RATE_LIMITED_MESSAGE.format(minutes=shown)


def policy_rejected_message(rules: str) -> str:
    return POLICY_REJECTED_PREFIX + rules
