from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

from build_digest import config
from build_digest.orchestrator import run


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
    base_dir = Path(os.getenv("BUILD_DIGEST_BASE_DIR") or Path.cwd())
    config_path = base_dir / os.getenv("BUILD_DIGEST_CONFIG", config.DEFAULT_CONFIG_PATH)
    try:
        digest_config = config.load_config(config_path)
        credentials = config.ServiceCredentials.from_env()
    except config.ConfigError as exc:
        logging.error("Missing configuration: %s", exc)
        sys.exit(1)

    try:
        run(digest_config, credentials, base_dir=base_dir)
    except Exception as exc:  # noqa: BLE001
        logging.exception("Digest run failed: %s", exc)
        sys.exit(1)


if __name__ == "__main__":
    main()
