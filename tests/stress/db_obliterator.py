import asyncio
import os
import sys

sys.path.append(os.getcwd())

from sqlalchemy import text  # noqa: E402
from sqlalchemy.exc import IntegrityError  # noqa: E402

from app.db.session import async_session_factory  # noqa: E402

# DB OBLITERATOR: two active assignments for one offer must never commit.
# Usage: python tests/stress/db_obliterator.py <offer_id> <partner_id>


async def chaos_transaction(offer_id, partner_id):
    async with async_session_factory() as session:
        txn = await session.begin()
        try:
            insert = text(
                "INSERT INTO assignments (offer_id, partner_id, status, otp_code) "
                "VALUES (:offer, :partner, 'pending', '123456')"
            )
            await session.execute(insert, {"offer": offer_id, "partner": partner_id})
            # Second active row for the same offer violates the partial unique index
            await session.execute(insert, {"offer": offer_id, "partner": partner_id})

            await txn.commit()
            print("CRITICAL: Transaction committed two active assignments!")
            return False
        except IntegrityError as e:
            await txn.rollback()
            print(f"Transaction cleanly rolled back: {e.orig}")
            return True


async def mass_rollback_test(offer_id, partner_id):
    print("LAUNCHING 100 CONCURRENT TRANSACTIONS (ALL DESTINED TO FAIL)...")
    results = await asyncio.gather(*(chaos_transaction(offer_id, partner_id) for _ in range(100)))
    return all(results)


if __name__ == "__main__":
    if sys.platform == "win32":
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
    ok = asyncio.run(mass_rollback_test(int(sys.argv[1]), int(sys.argv[2])))
    sys.exit(0 if ok else 1)
