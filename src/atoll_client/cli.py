from __future__ import annotations

import asyncio
import json
import os
import sys

from atoll_client.core.config import create_client_from_env, load_env_config
from atoll_client.core.logging import setup_logging
from atoll_client.core.notifications import NotificationLevel


async def _print_notification(message: str, level: NotificationLevel) -> None:
    print(f"[{level.value}] {message}", file=sys.stderr)


async def main() -> int:
    """Connect with env credentials and print the visible projects as JSON."""
    setup_logging(os.getenv("ATOLL_LOG_LEVEL", "INFO"))
    settings = load_env_config()
    try:
        client = create_client_from_env(settings)
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        return 1

    async with client:
        error = await client.connect(
            settings.host_url,
            settings.username,
            settings.password,
            _print_notification,
        )
        if error:
            print(error, file=sys.stderr)
            return 1

        projects = await client.fetch_projects()
        print(
            json.dumps(
                [p.model_dump(by_alias=True, exclude_none=True) for p in projects],
                indent=2,
            )
        )
        client.disconnect()
    return 0


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
