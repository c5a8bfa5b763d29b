from __future__ import annotations

import logging
from datetime import datetime, tzinfo
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo

from .build_client import AzureDevOpsBuildClient, BuildServer
from .config import (
    DEFINITION_FILTER,
    LOOKBACK_HOURS,
    MAX_BUILDS_PER_DEFINITION,
    ConfigError,
    DigestConfig,
    ServiceCredentials,
)
from .mailer import MailSender, build_mailer, build_message, save_sent_copy
from .report_formatter import ERROR_HTML, build_report, select_scheduled
from .utils import threshold_from_now, utc_now

logger = logging.getLogger(__name__)


def run(
    config: DigestConfig,
    credentials: ServiceCredentials,
    *,
    base_dir: Path,
    build_server: Optional[BuildServer] = None,
    mailer: Optional[MailSender] = None,
    now: Optional[datetime] = None,
) -> str:
    now = now or utc_now()
    threshold = threshold_from_now(now, LOOKBACK_HOURS)
    display_tz = _display_timezone(config)

    if mailer is None:
        mailer = build_mailer(
            sendgrid_api_key=credentials.sendgrid_api_key,
            aws_region=credentials.aws_region,
            aws_access_key_id=credentials.aws_access_key_id,
            aws_secret_access_key=credentials.aws_secret_access_key,
            aws_session_token=credentials.aws_session_token,
        )
    logger.info("Using mail provider=%s", mailer.provider)

    owned_client: Optional[AzureDevOpsBuildClient] = None
    if build_server is None:
        owned_client = AzureDevOpsBuildClient(config.url, token=credentials.build_server_token)
        build_server = owned_client

    try:
        logger.info("Querying builds of project=%s finished since %s", config.team_project, threshold.isoformat())
        builds = build_server.query_builds(
            config.team_project,
            DEFINITION_FILTER,
            max_per_definition=MAX_BUILDS_PER_DEFINITION,
            min_finish_time=threshold,
        )
        logger.info(
            "Reporting %s scheduled builds (from %s total)",
            len(select_scheduled(builds)),
            len(builds),
        )
        html = build_report(builds, build_server, display_tz)
        if html == ERROR_HTML:
            logger.warning("No scheduled builds to report; sending error page.")
    finally:
        if owned_client is not None:
            owned_client.close()

    message = build_message(html, config, base_dir)
    logger.info(
        "Sending digest to %s recipients with inline images=%s",
        len(message.to_emails),
        [image.content_id for image in message.inline_images],
    )
    mailer.send(message)

    copy_path = save_sent_copy(html, config.output_path, base_dir, now.astimezone(display_tz))
    logger.info("Saved sent copy to %s", copy_path)
    return html


def _display_timezone(config: DigestConfig) -> Optional[tzinfo]:
    if not config.display_timezone:
        return None
    try:
        return ZoneInfo(config.display_timezone)
    except (KeyError, ValueError) as exc:
        raise ConfigError(f"Unknown time zone: {config.display_timezone}") from exc
