"""initial_auction_schema

Revision ID: 001_initial_auction_schema
Revises:
Create Date: 2026-10-19

Creates the auction ledger (users, auctions, bids, proxy ceilings), the bid
gate tables (bid requests, rejections) and the order fulfillment tables
(orders, invoices, shipments, chats, ratings).

Unique indexes on (auction_id, bidder_id), (auction_id) for orders and
(from_user_id, to_user_id, auction_id) for ratings are the conflict targets
of the INSERT ... ON CONFLICT upserts.

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '001_initial_auction_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid_pk(name: str) -> sa.Column:
    return sa.Column(name, postgresql.UUID(as_uuid=True), primary_key=True)


def _fk(name: str, target: str, nullable: bool = False, ondelete: str | None = None) -> sa.Column:
    return sa.Column(
        name,
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey(target, ondelete=ondelete),
        nullable=nullable,
    )


def _timestamp(name: str) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())


def upgrade() -> None:
    op.create_table(
        'users',
        _uuid_pk('user_id'),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('full_name', sa.String(255), nullable=True),
        sa.Column('rating_pos', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('rating_neg', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.CheckConstraint('rating_pos >= 0', name='chk_user_rating_pos'),
        sa.CheckConstraint('rating_neg >= 0', name='chk_user_rating_neg'),
    )

    op.create_table(
        'auctions',
        _uuid_pk('auction_id'),
        _fk('seller_id', 'users.user_id'),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('start_price', sa.Numeric(20, 2), nullable=False),
        sa.Column('current_price', sa.Numeric(20, 2), nullable=False),
        sa.Column('step_price', sa.Numeric(20, 2), nullable=False),
        sa.Column('buy_now_price', sa.Numeric(20, 2), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='draft'),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('bid_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('auto_extend', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('requires_bid_approval', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('allow_unrated_bidders', sa.Boolean(), nullable=False, server_default=sa.true()),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.CheckConstraint('start_price >= 0', name='chk_auction_start_price'),
        sa.CheckConstraint('current_price >= start_price', name='chk_auction_current_price'),
        sa.CheckConstraint('step_price >= 0', name='chk_auction_step_price'),
        sa.CheckConstraint('bid_count >= 0', name='chk_auction_bid_count'),
        sa.CheckConstraint('end_time > start_time', name='chk_auction_time'),
    )
    op.create_index('idx_auctions_status_end', 'auctions', ['status', 'end_time'])
    op.create_index('idx_auctions_seller', 'auctions', ['seller_id'])

    op.create_table(
        'bids',
        _uuid_pk('bid_id'),
        _fk('auction_id', 'auctions.auction_id'),
        _fk('bidder_id', 'users.user_id'),
        sa.Column('amount', sa.Numeric(20, 2), nullable=False),
        sa.Column('is_automatic', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('sequence', sa.Integer(), nullable=False),
        _timestamp('created_at'),
        sa.CheckConstraint('amount > 0', name='chk_bid_amount_positive'),
    )
    op.create_index('uq_bids_auction_sequence', 'bids', ['auction_id', 'sequence'], unique=True)
    op.create_index('idx_bids_auction_amount', 'bids', ['auction_id', 'amount'])
    op.create_index('idx_bids_bidder', 'bids', ['bidder_id'])

    op.create_table(
        'proxy_ceilings',
        _uuid_pk('ceiling_id'),
        _fk('auction_id', 'auctions.auction_id'),
        _fk('bidder_id', 'users.user_id'),
        sa.Column('max_price', sa.Numeric(20, 2), nullable=False),
        _timestamp('created_at'),
        sa.CheckConstraint('max_price > 0', name='chk_ceiling_max_price_positive'),
    )
    op.create_index(
        'uq_proxy_ceilings_auction_bidder', 'proxy_ceilings', ['auction_id', 'bidder_id'], unique=True
    )

    op.create_table(
        'bid_requests',
        _uuid_pk('request_id'),
        _fk('auction_id', 'auctions.auction_id'),
        _fk('bidder_id', 'users.user_id'),
        sa.Column('status', sa.String(16), nullable=False, server_default='pending'),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('seller_note', sa.Text(), nullable=True),
        _fk('approved_by', 'users.user_id', nullable=True),
        sa.Column('responded_at', sa.DateTime(timezone=True), nullable=True),
        _timestamp('created_at'),
        _timestamp('updated_at'),
    )
    op.create_index(
        'uq_bid_requests_auction_bidder', 'bid_requests', ['auction_id', 'bidder_id'], unique=True
    )
    op.create_index('idx_bid_requests_status', 'bid_requests', ['status'])

    op.create_table(
        'bid_rejections',
        _uuid_pk('rejection_id'),
        _fk('auction_id', 'auctions.auction_id'),
        _fk('bidder_id', 'users.user_id'),
        sa.Column('reason', sa.Text(), nullable=True),
        _timestamp('created_at'),
    )
    op.create_index(
        'uq_bid_rejections_auction_bidder', 'bid_rejections', ['auction_id', 'bidder_id'], unique=True
    )

    op.create_table(
        'orders',
        _uuid_pk('order_id'),
        _fk('auction_id', 'auctions.auction_id'),
        _fk('seller_id', 'users.user_id'),
        _fk('buyer_id', 'users.user_id'),
        sa.Column('total_price', sa.Numeric(20, 2), nullable=False),
        sa.Column('status', sa.String(40), nullable=False, server_default='awaiting_payment_details'),
        sa.Column('cancel_reason', sa.Text(), nullable=True),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.CheckConstraint('total_price >= 0', name='chk_order_total_price'),
    )
    op.create_index('uq_orders_auction', 'orders', ['auction_id'], unique=True)
    op.create_index('idx_orders_buyer_created', 'orders', ['buyer_id', 'created_at'])
    op.create_index('idx_orders_seller_created', 'orders', ['seller_id', 'created_at'])

    op.create_table(
        'order_invoices',
        _uuid_pk('invoice_id'),
        _fk('order_id', 'orders.order_id', ondelete='CASCADE'),
        sa.Column('payment_method', sa.String(100), nullable=False),
        sa.Column('billing_address', sa.Text(), nullable=True),
        sa.Column('shipping_address', sa.Text(), nullable=False),
        sa.Column('payment_proof', sa.Text(), nullable=True),
        sa.Column('note', sa.Text(), nullable=True),
        _timestamp('created_at'),
    )
    op.create_index('idx_order_invoices_order_created', 'order_invoices', ['order_id', 'created_at'])

    op.create_table(
        'order_shipments',
        _uuid_pk('shipment_id'),
        _fk('order_id', 'orders.order_id', ondelete='CASCADE'),
        sa.Column('carrier', sa.String(100), nullable=True),
        sa.Column('tracking_number', sa.String(100), nullable=True),
        _timestamp('shipping_date'),
        sa.Column('invoice_url', sa.String(500), nullable=True),
        sa.Column('proof_images', postgresql.JSONB(), nullable=False, server_default='[]'),
        _timestamp('created_at'),
    )
    op.create_index('idx_order_shipments_order_created', 'order_shipments', ['order_id', 'created_at'])

    op.create_table(
        'order_chats',
        _uuid_pk('message_id'),
        _fk('order_id', 'orders.order_id', ondelete='CASCADE'),
        _fk('sender_id', 'users.user_id'),
        sa.Column('message', sa.Text(), nullable=False),
        _timestamp('created_at'),
    )
    op.create_index('idx_order_chats_order_created', 'order_chats', ['order_id', 'created_at'])

    op.create_table(
        'ratings',
        _uuid_pk('rating_id'),
        _fk('from_user_id', 'users.user_id'),
        _fk('to_user_id', 'users.user_id'),
        _fk('auction_id', 'auctions.auction_id'),
        sa.Column('score', sa.SmallInteger(), nullable=False),
        sa.Column('comment', sa.Text(), nullable=True),
        _timestamp('created_at'),
        sa.CheckConstraint('score IN (-1, 1)', name='chk_rating_score'),
    )
    op.create_index(
        'uq_ratings_from_to_auction', 'ratings', ['from_user_id', 'to_user_id', 'auction_id'], unique=True
    )


def downgrade() -> None:
    for table in (
        'ratings',
        'order_chats',
        'order_shipments',
        'order_invoices',
        'orders',
        'bid_rejections',
        'bid_requests',
        'proxy_ceilings',
        'bids',
        'auctions',
        'users',
    ):
        op.drop_table(table)
