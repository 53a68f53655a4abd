"""Workflow email body rendering: interpolated plain text → escaped HTML (Jinja)."""

from __future__ import annotations

from jinja2 import Environment, Template

# Each text line is escaped; line breaks become <br>.
_DEFAULT_BODY_TEMPLATE = (
    "{% for line in lines %}{{ line }}{% if not loop.last %}<br>\n{% endif %}{% endfor %}"
)


class WorkflowTemplateRenderer:
    """Renders the HTML alternative of a send_message body. Implements IEmailBodyRenderer."""

    def __init__(self, body_template: str | None = None) -> None:
        """Initialize with an optional body template; falls back to _DEFAULT_BODY_TEMPLATE.

        The template receives ``lines`` (the text split on newlines) and
        ``text`` (the whole body). Autoescape is always on.
        """
        self._env = Environment(autoescape=True)
        self._body: Template = self._env.from_string(body_template or _DEFAULT_BODY_TEMPLATE)

    def render_html(self, body_text: str) -> str:
        """Return escaped HTML for the plain-text body."""
        text = body_text or ""
        return self._body.render(lines=text.splitlines(), text=text)
