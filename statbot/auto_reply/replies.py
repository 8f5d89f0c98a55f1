"""Templated auto-replies for one-to-one conversations."""

import random

REPLY_TEMPLATES = (
    "👋 Hi {name}! I'm {bot_name}",
    "💬 Got your message",
    '📊 Type "{prefix}help" to see my commands',
    "🤖 I'm a message statistics bot",
)


def render_replies(name: str, bot_name: str, prefix: str) -> list[str]:
    return [t.format(name=name, bot_name=bot_name, prefix=prefix) for t in REPLY_TEMPLATES]


def pick_auto_reply(
    name: str,
    bot_name: str,
    prefix: str,
    rng: random.Random | None = None,
) -> str:
    """Pick one reply template at random and fill it in."""
    rng = rng or random
    return rng.choice(render_replies(name, bot_name, prefix))
