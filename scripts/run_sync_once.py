"""
Run one manual Gmail sync for a user and print the summary and review queue.

Usage:
    python -m scripts.run_sync_once --email you@example.com
    python -m scripts.run_sync_once --email you@example.com --scan-days 30 --full
"""

import argparse
import asyncio
import logging
from dotenv import load_dotenv

load_dotenv()


async def _run(email: str, scan_days: int | None, full: bool) -> None:
    from financeflow.core.db.engine import AsyncSessionLocal, create_all
    from financeflow.core.dependencies import (
        get_settings_service,
        get_sync_registry,
        get_transaction_service,
        get_user_service,
    )
    from financeflow.modules.sync.dto import SettingsPatch
    from financeflow.modules.sync.types import ScanMode
    from financeflow.utils.datetime import format_relative_time

    await create_all()

    async with AsyncSessionLocal() as db:
        user = await get_user_service().find_or_create(db, email=email)
        patch = SettingsPatch(
            is_enabled=True,
            linked_account=email,
            scan_days=scan_days,
            scan_mode=ScanMode.FULL if full else None,
        )
        settings = await get_settings_service().update_settings(db, user.id, patch)

    if settings.last_sync_at:
        print(f"Last successful sync: {format_relative_time(settings.last_sync_at)}")

    print(f"Running Gmail sync for {email} (user {user.id})...")
    summary = await get_sync_registry().trigger(user.id)

    print("\n=== Sync Result ===")
    print(f"Status: {summary.status.value}")
    print(f"Emails scanned: {summary.emails_scanned}")
    print(f"Transactions found: {summary.transactions_found}")
    print(f"Duplicates skipped: {summary.duplicates_detected}")
    print(f"Imported: {summary.imported_count} ({summary.queued_for_review} queued for review)")
    print(f"Duration: {summary.sync_duration_ms} ms")
    if summary.error_message:
        print(f"Error: {summary.error_message}")

    async with AsyncSessionLocal() as db:
        queue = await get_transaction_service().review_queue(db, user.id)

    print("\n=== Review Queue ===")
    print(f"Pending count: {queue.pending_count}")
    for idx, item in enumerate(queue.items, start=1):
        print(
            f"{idx}. ₹{item.amount:,.2f} | {item.merchant_name or 'Unknown'} | "
            f"{item.transaction_date} | {item.review_reason} | id={item.id}"
        )

    if queue.items:
        print("\nNext step:")
        print("- POST /transactions/{id}/approve to post to the ledger")
        print("- POST /transactions/{id}/reject to discard")


def main() -> None:
    parser = argparse.ArgumentParser(description="Run one manual Gmail sync")
    parser.add_argument("--email", required=True, help="User email (Gmail account)")
    parser.add_argument(
        "--scan-days",
        type=int,
        default=None,
        help="Lookback window in days (default: keep current setting)",
    )
    parser.add_argument(
        "--full", action="store_true", help="Scan all folders, not just inbox and updates"
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    asyncio.run(_run(email=args.email, scan_days=args.scan_days, full=args.full))


if __name__ == "__main__":
    main()
