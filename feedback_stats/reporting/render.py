"""Render session reports using Jinja2 templates and deliver them to Slack."""
from __future__ import annotations

import logging
from pathlib import Path

from jinja2 import Environment, FileSystemLoader
from slack_sdk import WebClient

from feedback_stats.reporting import config
from feedback_stats.reporting.context import build_report_context
from feedback_stats.session_data import SessionData

logger = logging.getLogger(__name__)

_TEMPLATE_DIR = Path(__file__).parent / "templates"

# Markdown/slack templates don’t need HTML escaping – it breaks apostrophes etc.
_env = Environment(
    loader=FileSystemLoader(str(_TEMPLATE_DIR)),
    autoescape=False,
    trim_blocks=True,
    lstrip_blocks=True,
)


def render_report(session: SessionData, *, include_summary: bool = True) -> str:
    """Render a Slack-friendly markdown report for a closed *session*."""

    context = build_report_context(session, include_summary=include_summary)
    template = _env.get_template("report.md.j2")
    return template.render(**context.to_dict())


def post_report_to_slack(
    *, session: SessionData, client: WebClient, channel: str
) -> None:
    """Send the report for *session* to Slack *channel*.

    The report is rendered before anything is posted, so a rendering failure
    leaves the channel untouched.  A short parent message is then posted and
    the report goes into its thread, as a message or, when too long, as an
    uploaded file.
    """

    report_text = render_report(session)
    report_len = len(report_text)
    logger.debug(
        "Report generated for session=%s channel=%s len=%d",
        session.session_id,
        channel,
        report_len,
    )

    parent_resp = client.chat_postMessage(
        channel=channel,
        text=f"*Feedback report for '{session.topic}'*",
    )
    parent_ts = parent_resp["ts"]

    if report_len < config.SLACK_MESSAGE_LIMIT:
        client.chat_postMessage(
            channel=channel,
            text=report_text,
            thread_ts=parent_ts,
        )
    else:
        logger.debug(
            "Uploading report as file (len=%d >= %d)",
            report_len,
            config.SLACK_MESSAGE_LIMIT,
        )
        client.files_upload_v2(
            channel=channel,
            title=f"Feedback Report {session.session_id}",
            content=report_text,
            filename=f"feedback_{session.session_id}.md",
            thread_ts=parent_ts,
        )
