"""Text and HTML rendering for digests and alerts."""

from __future__ import annotations

from datetime import datetime
from html import escape
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from news_agent.services.digest import Digest
    from news_agent.services.notifications import RatingAlert


def digest_subject(*, prefix: str, user_name: str, at: datetime) -> str:
    return f"[{prefix}] Briefing for {user_name} ({at:%Y/%m/%d %H:%M})"


def campaign_subject(name: str, count: int) -> str:
    return f"[{name}] news report ({count} items)"


def _published_label(value: datetime | None) -> str:
    if value is None:
        return ""
    return f"{value:%m/%d %H:%M}"


def render_digest_text(digest: Digest) -> str:
    lines = [f"{digest.title} | {digest.generated_at:%Y/%m/%d %H:%M} | {digest.total} articles"]
    for group, articles in digest.groups.items():
        lines.append("")
        lines.append(f"# {group}")
        for article in articles:
            lines.append(f"- {article.title}")
            meta = " | ".join(
                part for part in (article.source or "", _published_label(article.published_at)) if part
            )
            if meta:
                lines.append(f"  {meta}")
            lines.append(f"  {article.url}")
    if digest.footer:
        lines.extend(["", digest.footer])
    return "\n".join(lines)


def render_digest_html(digest: Digest) -> str:
    sections: list[str] = []
    for group, articles in digest.groups.items():
        items = "".join(
            "<li>"
            f'<a href="{escape(article.url, quote=True)}">{escape(article.title)}</a>'
            f"<div><small>{escape(article.source or '')} {_published_label(article.published_at)}</small></div>"
            "</li>"
            for article in articles
        )
        sections.append(f"<h3># {escape(group)}</h3><ul>{items}</ul>")
    footer = f"<p><small>{escape(digest.footer)}</small></p>" if digest.footer else ""
    return (
        "<html><body>"
        f"<h2>{escape(digest.title)}</h2>"
        f"<p>{digest.generated_at:%Y/%m/%d %H:%M} | {digest.total} articles</p>"
        f"{''.join(sections)}{footer}"
        "</body></html>"
    )


def render_alert_text(alert: RatingAlert) -> str:
    lines = [
        "★ High Rating News",
        alert.title or alert.url,
        f"Source: {alert.source or '-'} | Rating: {'★' * alert.rating}",
        alert.url,
    ]
    if alert.comment:
        lines.append(f"Comment: {alert.comment}")
    return "\n".join(lines)


def _slack_escape(value: str) -> str:
    """Escape the three characters Slack mrkdwn treats as control sequences."""
    return value.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def build_slack_payload(alert: RatingAlert) -> dict:
    title = _slack_escape(alert.title or alert.url)
    source = _slack_escape(alert.source or "-")
    blocks: list[dict] = [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": "★ High Rating News", "emoji": True},
        },
        {
            "type": "section",
            "text": {
                "type": "mrkdwn",
                "text": (
                    f"*<{alert.url}|{title}>*\n"
                    f"Source: {source} | Rating: {'★' * alert.rating}"
                ),
            },
        },
    ]
    if alert.comment:
        blocks.append(
            {
                "type": "context",
                "elements": [{"type": "mrkdwn", "text": f"Comment: {_slack_escape(alert.comment)}"}],
            }
        )
    return {"text": f"★{alert.rating} <{alert.url}|{title}>", "blocks": blocks}
