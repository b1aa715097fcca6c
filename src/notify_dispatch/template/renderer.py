"""Placeholder renderer for notification templates.

Placeholders use ``{{name}}`` (inner whitespace allowed). Rendering fails
open: a placeholder whose variable is absent is left in the output exactly
as written.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from ..delivery import RenderedContent

if TYPE_CHECKING:
    from ..domain.notification import NotificationContent
    from ..domain.template import NotificationTemplate

logger = logging.getLogger(__name__)

PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")


def interpolate(text: str | None, variables: Mapping[str, Any]) -> str | None:
    """Substitute every known ``{{key}}`` in ``text``."""
    if not text:
        return text

    def _replace(match: re.Match[str]) -> str:
        key = match.group(1)
        if key in variables:
            return str(variables[key])
        return match.group(0)

    return PLACEHOLDER.sub(_replace, text)


def missing_variables(text: str, variables: Mapping[str, Any]) -> list[str]:
    return [key for key in PLACEHOLDER.findall(text) if key not in variables]


class TemplateRenderer:
    """Renders a template in the best available locale.

    Locale order: requested, organization default, template base locale,
    then any translation the template has.
    """

    def render(
        self,
        template: NotificationTemplate,
        locale: str | None,
        variables: Mapping[str, Any],
        fallback_locale: str | None = None,
    ) -> RenderedContent:
        selected = template.text_for(locale, fallback_locale)
        if selected is None:
            logger.warning("Template %s has no translations", template.code)
            return RenderedContent(title="", body="", locale=locale)

        chosen_locale, text = selected
        if locale and chosen_locale != locale:
            logger.debug(
                "Template %s has no %r text, using %r",
                template.code,
                locale,
                chosen_locale,
            )
        missing = missing_variables(text.title + text.body, variables)
        if missing:
            logger.warning(
                "Template %s rendered with unresolved placeholders: %s",
                template.code,
                ", ".join(sorted(set(missing))),
            )

        return RenderedContent(
            title=interpolate(text.title, variables) or "",
            body=interpolate(text.body, variables) or "",
            short_body=interpolate(text.short_body, variables),
            html_body=interpolate(text.html_body, variables),
            action_url=interpolate(template.action_url, variables),
            locale=chosen_locale,
        )


def localize(content: NotificationContent, locale: str | None) -> RenderedContent:
    """Pick the recipient's translation of stored notification content."""
    translated = content.translations.get(locale) if locale else None
    return RenderedContent(
        title=translated.title if translated else content.title,
        body=translated.body if translated else content.body,
        short_body=None if translated else content.short_body,
        html_body=None if translated else content.html_body,
        action_url=content.action_url,
        image_url=content.image_url,
        locale=locale if translated else None,
    )


default_renderer = TemplateRenderer()
