"""
Connect a user's Gmail account: run the OAuth consent flow and save the token.

Usage:
    python -m scripts.connect_gmail --email you@example.com
"""

import argparse
import asyncio
import logging
from dotenv import load_dotenv

load_dotenv()


async def _run(email: str) -> None:
    from financeflow.core.db.engine import AsyncSessionLocal, create_all
    from financeflow.core.dependencies import (
        get_gmail_service,
        get_settings_service,
        get_user_service,
    )
    from financeflow.modules.sync.dto import SettingsPatch

    await create_all()

    async with AsyncSessionLocal() as db:
        user = await get_user_service().find_or_create(db, email=email)

    gmail = get_gmail_service()
    await asyncio.to_thread(gmail.authorize, user.id)
    print(f"Saved Gmail token to {gmail.token_path(user.id)}")

    async with AsyncSessionLocal() as db:
        settings = await get_settings_service().update_settings(
            db, user.id, SettingsPatch(is_enabled=True, linked_account=email)
        )
    print(f"Gmail sync enabled for {email} (every {settings.sync_frequency_minutes} minutes)")


def main() -> None:
    parser = argparse.ArgumentParser(description="Connect a Gmail account for syncing")
    parser.add_argument("--email", required=True, help="User email (Gmail account)")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    asyncio.run(_run(email=args.email))


if __name__ == "__main__":
    main()
