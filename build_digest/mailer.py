from __future__ import annotations

import base64
import logging
import mimetypes
from datetime import datetime
from email.message import EmailMessage
from pathlib import Path
from typing import Any, List, Optional, Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import (
    Attachment,
    ContentId,
    Disposition,
    Email,
    FileContent,
    FileName,
    FileType,
    Mail,
)

from .config import MAIL_SUBJECT, MAX_RECIPIENTS, RECIPIENT_SEPARATOR, DigestConfig
from .models import DigestMessage, InlineImage, StatusIcon
from .utils import resolve_path

logger = logging.getLogger(__name__)


class MailError(Exception):
    """Raised when mail sending fails."""


class MailSender(Protocol):
    provider: str

    def send(self, message: DigestMessage) -> None: ...


def split_recipients(to_mail: str) -> List[str]:
    """Split the configured recipients on ";" into at most five addresses.

    The fifth entry keeps any remaining separators, as with a limited split.
    """
    if RECIPIENT_SEPARATOR not in to_mail:
        return [to_mail.strip()]
    pieces = to_mail.split(RECIPIENT_SEPARATOR, MAX_RECIPIENTS - 1)
    return [piece.strip() for piece in pieces if piece.strip()]


def icon_image_path(icon: StatusIcon, config: DigestConfig) -> str:
    paths = {
        StatusIcon.SUCCESS: config.success_img_path,
        StatusIcon.FAILED: config.failed_img_path,
        StatusIcon.PARTIALLY: config.partially_img_path,
        StatusIcon.STOPPED: config.stopped_img_path,
        StatusIcon.UNKNOWN: config.default_img_path,
    }
    return paths[icon]


def collect_inline_images(html: str, config: DigestConfig, base_dir: Path) -> List[InlineImage]:
    images: List[InlineImage] = []
    for icon in StatusIcon:
        if icon.placeholder not in html:
            continue
        path = resolve_path(base_dir, icon_image_path(icon, config))
        mime_type, _ = mimetypes.guess_type(path.name)
        images.append(
            InlineImage(
                content_id=icon.content_id,
                filename=path.name,
                content=path.read_bytes(),
                mime_type=mime_type or "image/png",
            )
        )
    return images


def build_message(html: str, config: DigestConfig, base_dir: Path) -> DigestMessage:
    return DigestMessage(
        subject=MAIL_SUBJECT,
        html_body=html,
        from_email=config.from_mail,
        to_emails=split_recipients(config.to_mail),
        inline_images=collect_inline_images(html, config, base_dir),
    )


def save_sent_copy(html: str, output_path: str, base_dir: Path, sent_at: datetime) -> Path:
    directory = resolve_path(base_dir, output_path)
    directory.mkdir(parents=True, exist_ok=True)
    target = directory / f"build-status-{sent_at.strftime('%Y%m%d-%H%M%S')}.html"
    target.write_text(html, encoding="utf-8")
    return target


class SendGridMailer:
    provider = "sendgrid"

    def __init__(self, api_key: str, client: Any | None = None):
        self._client = client or SendGridAPIClient(api_key)

    def send(self, message: DigestMessage) -> None:
        mail = Mail(
            from_email=Email(email=message.from_email),
            to_emails=list(message.to_emails),
            subject=message.subject,
            html_content=message.html_body,
        )
        for image in message.inline_images:
            mail.add_attachment(
                Attachment(
                    FileContent(base64.b64encode(image.content).decode("ascii")),
                    FileName(image.filename),
                    FileType(image.mime_type),
                    Disposition("inline"),
                    ContentId(image.content_id),
                )
            )
        try:
            response = self._client.send(mail)
        except Exception as exc:  # noqa: BLE001
            raise MailError(f"Failed to send email: {exc}") from exc
        if response.status_code >= 400:
            raise MailError(f"SendGrid returned error status: {response.status_code}")
        logger.info("Mail sent with status %s", response.status_code)


class SESMailer:
    provider = "ses"

    def __init__(
        self,
        *,
        aws_region: str,
        aws_access_key_id: str | None = None,
        aws_secret_access_key: str | None = None,
        aws_session_token: str | None = None,
        client: Any | None = None,
    ) -> None:
        if client is not None:
            self._client = client
            return
        client_kwargs = {"region_name": aws_region}
        if aws_access_key_id and aws_secret_access_key:
            client_kwargs["aws_access_key_id"] = aws_access_key_id
            client_kwargs["aws_secret_access_key"] = aws_secret_access_key
            if aws_session_token:
                client_kwargs["aws_session_token"] = aws_session_token
        self._client = boto3.client("sesv2", **client_kwargs)

    def send(self, message: DigestMessage) -> None:
        raw = to_mime(message)
        try:
            response = self._client.send_email(
                FromEmailAddress=message.from_email,
                Destination={"ToAddresses": list(message.to_emails)},
                Content={"Raw": {"Data": raw.as_bytes()}},
            )
        except (ClientError, BotoCoreError) as exc:
            raise MailError(f"Failed to send email: {exc}") from exc
        status_code = response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        if isinstance(status_code, int) and status_code >= 400:
            raise MailError(f"SES returned error status: {status_code}")
        logger.info("Mail sent with status %s", status_code)


def to_mime(message: DigestMessage) -> EmailMessage:
    """Build a multipart/related message with the images referenced by Content-ID."""
    mime = EmailMessage()
    mime["Subject"] = message.subject
    mime["From"] = message.from_email
    mime["To"] = ", ".join(message.to_emails)
    mime.set_content(message.html_body, subtype="html")
    for image in message.inline_images:
        maintype, _, subtype = image.mime_type.partition("/")
        mime.add_related(
            image.content,
            maintype=maintype,
            subtype=subtype,
            cid=f"<{image.content_id}>",
            filename=image.filename,
            disposition="inline",
        )
    return mime


def build_mailer(
    *,
    sendgrid_api_key: Optional[str],
    aws_region: Optional[str],
    aws_access_key_id: Optional[str] = None,
    aws_secret_access_key: Optional[str] = None,
    aws_session_token: Optional[str] = None,
) -> MailSender:
    """
    Provider selection:
    - SendGrid when an API key is set.
    - Otherwise SES when an AWS region is set.
    """
    if sendgrid_api_key and sendgrid_api_key.strip():
        return SendGridMailer(sendgrid_api_key.strip())
    if aws_region and aws_region.strip():
        return SESMailer(
            aws_region=aws_region.strip(),
            aws_access_key_id=aws_access_key_id.strip() if aws_access_key_id else None,
            aws_secret_access_key=aws_secret_access_key.strip() if aws_secret_access_key else None,
            aws_session_token=aws_session_token.strip() if aws_session_token else None,
        )
    raise MailError("No mail provider configured: set SENDGRID_API_KEY or AWS_REGION.")
