"""Proxy-bid ("auto-bid") service.

A bidder may leave a standing ceiling: "bid on my behalf, one step at a time,
up to max_price". After every bid lands the resolver replays the ceilings
against the new price until nobody can answer the current leader.

For ceilings on the step grid the outcome matches a second-price rule: the
holder of the highest ceiling (earliest on ties) leads at
min(runner-up + step, own ceiling), where the runner-up is the next best
ceiling or the triggering bid, whichever is higher.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Sequence
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy import and_, delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from auctionhouse.core.config import settings
from auctionhouse.core.exceptions import BidError, BidErrorCode
from auctionhouse.models.auction import Auction, AuctionStatus
from auctionhouse.models.bid import Bid, ProxyCeiling
from auctionhouse.schemas.bid import BidRecord, CeilingRecord, OutbidEvent, ProxyResolution
from auctionhouse.services.gate_service import BidGateService
from auctionhouse.services.ledger import (
    get_auction,
    is_auction_open,
    load_ceilings,
    lock_auction,
    minimum_next_bid,
    parse_amount,
    utcnow,
)

logger = logging.getLogger(__name__)

# Smallest increment used when an auction has no step configured
MIN_INCREMENT = Decimal("1")


class ProxyStep(BaseModel):
    """One synthetic bid produced by the simulation."""

    bidder_id: UUID
    amount: Decimal
    previous_leader_id: UUID
    previous_amount: Decimal

    model_config = {"frozen": True}


class ProxySimulation(BaseModel):
    steps: list[ProxyStep] = []
    leader_id: UUID | None = None
    final_price: Decimal = Decimal("0")
    iterations: int = 0
    capped: bool = False


def _rank_key(ceiling: CeilingRecord) -> tuple[Decimal, datetime]:
    # Sorting ascending on this key puts the strongest ceiling first
    return (-ceiling.max_price, ceiling.created_at)


def _outranks(a: CeilingRecord, b: CeilingRecord) -> bool:
    return _rank_key(a) < _rank_key(b)


def simulate_proxy_bids(
    ceilings: Sequence[CeilingRecord],
    running_price: Decimal,
    leader_id: UUID,
    step: Decimal,
    max_iterations: int = settings.PROXY_MAX_ITERATIONS,
) -> ProxySimulation:
    """Replay standing ceilings against a freshly landed bid.

    Each round picks the strongest ceiling that is not the current leader and
    can still afford running + step, and bids exactly that on its owner's
    behalf. When that competitor is weaker than the leader's own ceiling, the
    leader answers in one move at min(competitor max + step, leader max) and
    the chain stops.

    The weaker ceiling's intermediate counter-bids are never recorded. With
    A=1000 (set first), B=1200 and a bid of 900 at step 50 the history is
    B 950 then B 1050, not B 950, A 1000, B 1050, so bid_count grows by two.
    The final price is the second-price outcome: runner-up max + step, capped
    at the leader's max. When the runner-up's max is off the step grid, so is
    that answer (A=1020 above gives B 1070).

    Args:
        ceilings: Ceilings of eligible bidders for this auction
        running_price: Amount of the bid that triggered resolution
        leader_id: Bidder who placed that bid
        step: Auction step price
        max_iterations: Safety cap on rounds

    Returns:
        ProxySimulation with the ordered synthetic bids and final state.
        The running price strictly increases with every step.
    """
    increment = step if step > 0 else MIN_INCREMENT
    by_bidder = {c.bidder_id: c for c in ceilings}

    sim = ProxySimulation(leader_id=leader_id, final_price=running_price)
    price = running_price
    leader = leader_id

    while True:
        if sim.iterations >= max_iterations:
            sim.capped = True
            break

        target = price + increment
        competitors = [c for c in ceilings if c.bidder_id != leader and c.max_price >= target]
        if not competitors:
            break

        sim.iterations += 1
        best = min(competitors, key=_rank_key)
        own = by_bidder.get(leader)

        if own is not None and _outranks(own, best):
            answer = min(best.max_price + increment, own.max_price)
            sim.steps.append(ProxyStep(
                bidder_id=leader, amount=answer, previous_leader_id=leader, previous_amount=price
            ))
            price = answer
            break

        sim.steps.append(ProxyStep(
            bidder_id=best.bidder_id, amount=target, previous_leader_id=leader, previous_amount=price
        ))
        price = target
        leader = best.bidder_id

    sim.leader_id = leader
    sim.final_price = price
    return sim


class ProxyBidService:
    """Service class for proxy ceilings and their resolution."""

    def __init__(
        self,
        db: AsyncSession,
        gate: BidGateService | None = None,
        max_iterations: int = settings.PROXY_MAX_ITERATIONS,
    ):
        self.db = db
        self.gate = gate
        self.max_iterations = max_iterations

    # ==================== Ceilings ====================

    async def set_ceiling(self, auction_id: UUID, bidder_id: UUID, max_price) -> CeilingRecord:
        """Create or raise/lower a bidder's ceiling.

        Re-setting a ceiling moves it behind equal ceilings set earlier.

        Args:
            auction_id: Auction UUID
            bidder_id: Bidder UUID
            max_price: Highest amount the resolver may bid for this bidder

        Returns:
            The stored ceiling

        Raises:
            BidError: INVALID_BID_INPUT, PRODUCT_NOT_FOUND, AUCTION_NOT_ACTIVE,
                AUCTION_ENDED, CANNOT_BID_OWN_PRODUCT, MAX_PRICE_TOO_LOW
            GateError: If the gate forbids this bidder
        """
        if not auction_id or not bidder_id:
            raise BidError(BidErrorCode.INVALID_BID_INPUT)
        max_price = parse_amount(max_price)

        auction = await get_auction(self.db, auction_id)
        if auction is None:
            raise BidError(BidErrorCode.PRODUCT_NOT_FOUND, auction_id=auction_id)

        now = utcnow()
        if self.gate is not None:
            await self.gate.ensure_can_bid(auction, bidder_id, now)
        elif not is_auction_open(auction, now):
            if auction.status != AuctionStatus.ACTIVE.value:
                raise BidError(BidErrorCode.AUCTION_NOT_ACTIVE, auction_id=auction_id)
            raise BidError(BidErrorCode.AUCTION_ENDED, auction_id=auction_id)
        elif auction.seller_id == bidder_id:
            raise BidError(BidErrorCode.CANNOT_BID_OWN_PRODUCT, auction_id=auction_id)

        min_required = minimum_next_bid(auction)
        if max_price < min_required:
            raise BidError(
                BidErrorCode.MAX_PRICE_TOO_LOW,
                auction_id=auction_id,
                min_required=min_required,
            )

        stmt = (
            pg_insert(ProxyCeiling)
            .values(auction_id=auction_id, bidder_id=bidder_id, max_price=max_price, created_at=now)
            .on_conflict_do_update(
                index_elements=["auction_id", "bidder_id"],
                set_={"max_price": max_price, "created_at": now},
            )
            .returning(ProxyCeiling)
        )
        try:
            result = await self.db.execute(stmt)
            ceiling = result.scalar_one()
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "Proxy ceiling set",
            extra={"auction_id": auction_id, "bidder_id": bidder_id, "amount": max_price},
        )
        return CeilingRecord.model_validate(ceiling)

    async def remove_ceiling(self, auction_id: UUID, bidder_id: UUID) -> bool:
        """Delete a bidder's ceiling. Returns whether a row was removed."""
        try:
            result = await self.db.execute(
                delete(ProxyCeiling).where(
                    and_(
                        ProxyCeiling.auction_id == auction_id,
                        ProxyCeiling.bidder_id == bidder_id,
                    )
                )
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return result.rowcount > 0

    async def get_ceiling(self, auction_id: UUID, bidder_id: UUID) -> CeilingRecord | None:
        result = await self.db.execute(
            select(ProxyCeiling).where(
                and_(
                    ProxyCeiling.auction_id == auction_id,
                    ProxyCeiling.bidder_id == bidder_id,
                )
            )
        )
        ceiling = result.scalar_one_or_none()
        return CeilingRecord.model_validate(ceiling) if ceiling else None

    async def list_ceilings(self, auction_id: UUID) -> list[CeilingRecord]:
        """All ceilings for an auction, highest max first, oldest first on ties."""
        result = await self.db.execute(
            select(ProxyCeiling)
            .where(ProxyCeiling.auction_id == auction_id)
            .order_by(ProxyCeiling.max_price.desc(), ProxyCeiling.created_at.asc())
        )
        return [CeilingRecord.model_validate(c) for c in result.scalars().all()]

    # ==================== Resolution ====================

    async def resolve_locked(
        self,
        auction: Auction,
        triggering_amount: Decimal,
        triggering_bidder_id: UUID,
    ) -> ProxyResolution:
        """Run the resolver against an auction row already locked by the caller.

        Does not commit. Synthetic bids are added to the session and price and
        bid count are written once after the loop.
        """
        empty = ProxyResolution(
            auction_id=auction.auction_id,
            leader_id=triggering_bidder_id,
            final_price=auction.current_price,
            bid_count=auction.bid_count,
        )
        if not is_auction_open(auction):
            return empty

        rows = await load_ceilings(self.db, auction.auction_id)
        if not rows:
            return empty

        ceilings = [CeilingRecord.model_validate(c) for c in rows]
        sim = simulate_proxy_bids(
            ceilings,
            running_price=Decimal(triggering_amount),
            leader_id=triggering_bidder_id,
            step=auction.step_price,
            max_iterations=self.max_iterations,
        )
        if sim.capped:
            logger.warning(
                "Proxy resolution hit the iteration cap",
                extra={"auction_id": auction.auction_id, "count": sim.iterations},
            )
        if not sim.steps:
            return empty

        now = utcnow()
        bid_count = auction.bid_count
        records: list[BidRecord] = []
        outbid_events: list[OutbidEvent] = []

        for step in sim.steps:
            bid_count += 1
            bid = Bid(
                auction_id=auction.auction_id,
                bidder_id=step.bidder_id,
                amount=step.amount,
                is_automatic=True,
                sequence=bid_count,
                created_at=now,
            )
            self.db.add(bid)
            await self.db.flush()
            records.append(BidRecord.model_validate(bid))

            if step.previous_leader_id != step.bidder_id:
                outbid_events.append(
                    OutbidEvent(
                        auction_id=auction.auction_id,
                        outbid_bidder_id=step.previous_leader_id,
                        previous_amount=step.previous_amount,
                        new_amount=step.amount,
                        new_leader_id=step.bidder_id,
                    )
                )

        auction.current_price = sim.final_price
        auction.bid_count = bid_count
        await self.db.flush()

        logger.info(
            "Proxy bids resolved",
            extra={
                "auction_id": auction.auction_id,
                "automatic_bids": len(records),
                "price": sim.final_price,
                "leader_id": sim.leader_id,
            },
        )
        return ProxyResolution(
            auction_id=auction.auction_id,
            automatic_bids=records,
            outbid_events=outbid_events,
            leader_id=sim.leader_id,
            final_price=sim.final_price,
            bid_count=bid_count,
            iterations=sim.iterations,
        )

    async def resolve(
        self,
        auction_id: UUID,
        triggering_amount: Decimal,
        triggering_bidder_id: UUID,
    ) -> ProxyResolution:
        """Lock the auction, resolve standing ceilings and commit.

        Raises:
            BidError: PRODUCT_NOT_FOUND if the auction row vanished
        """
        try:
            auction = await lock_auction(self.db, auction_id)
            if auction is None:
                raise BidError(BidErrorCode.PRODUCT_NOT_FOUND, auction_id=auction_id)
            resolution = await self.resolve_locked(auction, triggering_amount, triggering_bidder_id)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return resolution
