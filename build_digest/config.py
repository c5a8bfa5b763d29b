from __future__ import annotations

import os
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

# --------------------------------
# Settings

# How far back (hours) a finished build still counts for the digest
LOOKBACK_HOURS = 24

# Only the latest build of every definition is reported
MAX_BUILDS_PER_DEFINITION = 1

# "*" = every build definition of the project
DEFINITION_FILTER = "*"

# Azure DevOps Server / TFS REST API version
API_VERSION = "7.0"

MAIL_SUBJECT = "Nightly Build-Status"

# Recipient list is split on ";" into at most this many entries
RECIPIENT_SEPARATOR = ";"
MAX_RECIPIENTS = 5

DEFAULT_CONFIG_PATH = "config.xml"
# --------------------------------


class ConfigError(ValueError):
    """Raised when the configuration document or environment is incomplete."""


@dataclass(frozen=True)
class DigestConfig:
    from_mail: str
    to_mail: str
    output_path: str
    success_img_path: str
    failed_img_path: str
    partially_img_path: str
    default_img_path: str
    stopped_img_path: str
    team_project: str
    url: str
    display_timezone: Optional[str] = None


# XML element name -> DigestConfig field
_REQUIRED_ELEMENTS = {
    "FromMail": "from_mail",
    "ToMail": "to_mail",
    "OutputPath": "output_path",
    "SuccessImgPath": "success_img_path",
    "FailedImgPath": "failed_img_path",
    "PartiallyImgPath": "partially_img_path",
    "DefaultImgPath": "default_img_path",
    "StoppedImgPath": "stopped_img_path",
    "TeamProject": "team_project",
    "TFSUrl": "url",
}

_OPTIONAL_ELEMENTS = {
    "DisplayTimeZone": "display_timezone",
}


def load_config(path: str | Path = DEFAULT_CONFIG_PATH) -> DigestConfig:
    """Read the digest settings from an XML document.

    Elements are looked up anywhere in the document and the first match wins.
    Every required element must be present; values are returned as written.
    """
    try:
        root = ET.parse(str(path)).getroot()
    except (OSError, ET.ParseError) as exc:
        raise ConfigError(f"Cannot read configuration document {path}: {exc}") from exc

    values: dict[str, str] = {}
    for tag, field_name in _REQUIRED_ELEMENTS.items():
        text = _element_text(root, tag)
        if text is None:
            raise ConfigError(f"Configuration element <{tag}> is required.")
        values[field_name] = text

    for tag, field_name in _OPTIONAL_ELEMENTS.items():
        text = _element_text(root, tag)
        if text is not None and text.strip():
            values[field_name] = text.strip()

    return DigestConfig(**values)


def _element_text(root: ET.Element, tag: str) -> str | None:
    element = next(root.iter(tag), None)
    if element is None:
        return None
    return "".join(element.itertext())


@dataclass(frozen=True)
class ServiceCredentials:
    build_server_token: str | None = None
    sendgrid_api_key: str | None = None
    aws_region: str | None = None
    aws_access_key_id: str | None = None
    aws_secret_access_key: str | None = None
    aws_session_token: str | None = None

    @staticmethod
    def from_env() -> "ServiceCredentials":
        def optional(name: str) -> str | None:
            value = os.getenv(name)
            if value is None or not value.strip():
                return None
            return value.strip()

        sendgrid_api_key = optional("SENDGRID_API_KEY")
        aws_region = optional("AWS_REGION") or optional("AWS_DEFAULT_REGION")
        if sendgrid_api_key is None and aws_region is None:
            raise ConfigError("Either SENDGRID_API_KEY or AWS_REGION is required.")

        return ServiceCredentials(
            build_server_token=optional("BUILD_SERVER_TOKEN"),
            sendgrid_api_key=sendgrid_api_key,
            aws_region=aws_region,
            aws_access_key_id=optional("AWS_ACCESS_KEY_ID"),
            aws_secret_access_key=optional("AWS_SECRET_ACCESS_KEY"),
            aws_session_token=optional("AWS_SESSION_TOKEN"),
        )
