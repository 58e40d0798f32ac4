from __future__ import annotations

import logging
import random
from pathlib import Path
from typing import List, Optional, Sequence

from jinja2 import Environment, StrictUndefined, TemplateError

from compliance.compliance_models import MessageContext
from compliance_errors import RenderError

logger = logging.getLogger(__name__)

GREETINGS: Sequence[str] = (
    "Greetings and salutations",
    "Ahoy-hoy",
    "Konnichiwa",
    "Buongiorno",
    "Hola",
    "Habari",
    "Goedendag",
    "Namaste",
    "Shalom",
)


class MessageComposer:
    """Render a reminder in two passes.

    Each need is its own small template rendered against the recipient's
    context first; the top-level template then embeds the rendered needs as
    plain text.
    """

    def __init__(
        self,
        *,
        template_text: Optional[str] = None,
        template_path: Optional[str] = None,
        rng: Optional[random.Random] = None,
        greetings: Sequence[str] = GREETINGS,
    ) -> None:
        if template_text is None:
            if not template_path:
                raise ValueError("MessageComposer needs template_text or template_path")
            template_text = Path(template_path).read_text(encoding="utf-8")

        self.template_text = template_text
        self.rng = rng or random.Random()
        self.greetings = tuple(greetings)
        self.env = Environment(
            undefined=StrictUndefined,
            autoescape=False,
            keep_trailing_newline=True,
        )

    def _render(self, source: str, context: MessageContext, *, name: str) -> str:
        try:
            return self.env.from_string(source).render(**context.template_fields())
        except (TemplateError, TypeError, ValueError, AttributeError) as exc:
            raise RenderError(f"{name}: {exc}", email=context.email or None) from exc

    def compose(self, context: MessageContext) -> str:
        if not context.greetings:
            context = context.model_copy(update={"greetings": self.rng.choice(self.greetings)})

        interpreted: List[str] = [
            self._render(need, context, name="need") for need in context.needs
        ]
        context = context.model_copy(update={"interpreted_needs": tuple(interpreted)})

        text = self._render(self.template_text, context, name="message")
        logger.debug(
            "reminder_message_composed",
            extra={"email": context.email, "need_count": len(interpreted)},
        )
        return text
