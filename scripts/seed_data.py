"""Seed data script for development.

Creates:
- 1 seller and SEED_BIDDERS bidders (bidder01@test.com ...)
- 3 active auctions: an open one, one requiring bid approval and one with
  auto-extend and a buy-now price
- Proxy ceilings for the first two bidders on the open auction
- Access tokens for the seller and the first bidders, printed for API use

Environment Variables:
    AUCTION_DURATION_MINUTES: Auction duration in minutes (default: 30)
    SEED_BIDDERS: Number of bidders to create (default: 20)

Usage:
    python -m scripts.seed_data
"""

import asyncio
import os
from datetime import timedelta
from decimal import Decimal

from sqlalchemy import select

from auctionhouse.core.database import async_session_maker, engine
from auctionhouse.core.security import create_access_token
from auctionhouse.models import Auction, AuctionStatus, ProxyCeiling, User
from auctionhouse.services.ledger import utcnow

# Configuration from environment variables
AUCTION_DURATION_MINUTES = int(os.getenv("AUCTION_DURATION_MINUTES", "30"))
SEED_BIDDERS = int(os.getenv("SEED_BIDDERS", "20"))


async def seed_users(session) -> tuple[User, list[User]]:
    """Create the seller and the bidders, skipping if users already exist."""
    print("Seeding users...")

    result = await session.execute(select(User).where(User.email == "seller@test.com"))
    seller = result.scalar_one_or_none()
    if seller:
        print("  Users already exist, skipping...")
        result = await session.execute(
            select(User).where(User.email != "seller@test.com").order_by(User.email)
        )
        return seller, list(result.scalars().all())

    seller = User(email="seller@test.com", full_name="Demo Seller", rating_pos=40, rating_neg=2)
    bidders = [
        User(
            email=f"bidder{i:02d}@test.com",
            full_name=f"Bidder {i:02d}",
            # Every fifth bidder is unrated, every seventh has a poor record
            rating_pos=0 if i % 5 == 0 else (3 if i % 7 == 0 else 10 + i),
            rating_neg=0 if i % 5 == 0 else (5 if i % 7 == 0 else 1),
        )
        for i in range(1, SEED_BIDDERS + 1)
    ]

    session.add(seller)
    session.add_all(bidders)
    await session.commit()

    print(f"  Created seller and {len(bidders)} bidders")
    return seller, bidders


async def seed_auctions(session, seller: User) -> list[Auction]:
    print("Seeding auctions...")

    now = utcnow()
    end = now + timedelta(minutes=AUCTION_DURATION_MINUTES)
    auctions = [
        Auction(
            seller_id=seller.user_id,
            title="Vintage mechanical watch",
            start_price=Decimal("10000"),
            current_price=Decimal("10000"),
            step_price=Decimal("1000"),
            status=AuctionStatus.ACTIVE.value,
            start_time=now,
            end_time=end,
        ),
        Auction(
            seller_id=seller.user_id,
            title="Signed first edition",
            start_price=Decimal("500"),
            current_price=Decimal("500"),
            step_price=Decimal("50"),
            status=AuctionStatus.ACTIVE.value,
            start_time=now,
            end_time=end,
            requires_bid_approval=True,
            allow_unrated_bidders=False,
        ),
        Auction(
            seller_id=seller.user_id,
            title="Studio headphones",
            start_price=Decimal("800"),
            current_price=Decimal("800"),
            step_price=Decimal("100"),
            buy_now_price=Decimal("3000"),
            status=AuctionStatus.ACTIVE.value,
            start_time=now,
            end_time=end,
            auto_extend=True,
        ),
    ]
    session.add_all(auctions)
    await session.commit()

    for auction in auctions:
        print(f"  Created auction: {auction.title} ({auction.auction_id})")
    return auctions


async def seed_ceilings(session, auction: Auction, bidders: list[User]) -> None:
    print("Seeding proxy ceilings...")

    now = utcnow()
    for bidder, max_price in zip(bidders[:2], (Decimal("15000"), Decimal("13000"))):
        session.add(
            ProxyCeiling(
                auction_id=auction.auction_id,
                bidder_id=bidder.user_id,
                max_price=max_price,
                created_at=now,
            )
        )
        print(f"  {bidder.email}: ceiling {max_price}")
    await session.commit()


async def main():
    """Main seed function."""
    print("=" * 60)
    print("Auction House - Seed Data Script")
    print("=" * 60)
    print(f"  AUCTION_DURATION_MINUTES: {AUCTION_DURATION_MINUTES}")
    print(f"  SEED_BIDDERS: {SEED_BIDDERS}")
    print("=" * 60)

    async with async_session_maker() as session:
        seller, bidders = await seed_users(session)
        auctions = await seed_auctions(session, seller)
        await seed_ceilings(session, auctions[0], bidders)

    print("=" * 60)
    print("Seed data complete!")
    print(f"  Seller token:   {create_access_token(str(seller.user_id))}")
    for bidder in bidders[:3]:
        print(f"  {bidder.email}: {create_access_token(str(bidder.user_id))}")
    print("=" * 60)

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
