"""initial schema, PostGIS location column and nearby_events()

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19

"""

from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


NEARBY_EVENTS_FN = """
CREATE OR REPLACE FUNCTION nearby_events(
    lat double precision,
    lon double precision,
    radius_meters double precision DEFAULT 50000,
    limit_count integer DEFAULT 20,
    offset_count integer DEFAULT 0
)
RETURNS TABLE (
    id varchar,
    title varchar,
    description text,
    slug varchar,
    start_date varchar,
    start_time varchar,
    end_date varchar,
    end_time varchar,
    location_name varchar,
    location_address text,
    location text,
    category_id varchar,
    organizer_id varchar,
    status varchar,
    featured boolean,
    distance_meters double precision
)
LANGUAGE sql STABLE
AS $$
    SELECT
        e.id, e.title, e.description, e.slug,
        e.start_date, e.start_time, e.end_date, e.end_time,
        e.location_name, e.location_address,
        ST_AsText(e.location) AS location,
        e.category_id, e.organizer_id, e.status, e.featured,
        ST_Distance(e.location, ST_SetSRID(ST_MakePoint(lon, lat), 4326)::geography) AS distance_meters
    FROM events e
    WHERE e.status = 'published'
      AND e.location IS NOT NULL
      AND ST_DWithin(e.location, ST_SetSRID(ST_MakePoint(lon, lat), 4326)::geography, radius_meters)
    ORDER BY distance_meters ASC, e.id
    LIMIT limit_count
    OFFSET offset_count
$$;
"""


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    ]


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS postgis")

    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False, server_default=""),
        sa.Column("full_name", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("avatar_url", sa.String(length=512), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_users_email", "users", ["email"])

    op.create_table(
        "event_categories",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False, unique=True),
        sa.Column("slug", sa.String(length=120), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("icon", sa.String(length=60), nullable=True),
        sa.Column("color", sa.String(length=7), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_event_categories_slug", "event_categories", ["slug"], unique=True)

    op.create_table(
        "organizers",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("business_name", sa.String(length=200), nullable=False),
        sa.Column("contact_email", sa.String(length=320), nullable=False),
        sa.Column("contact_phone", sa.String(length=40), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("website", sa.String(length=300), nullable=True),
        sa.Column("location", sa.String(length=300), nullable=True),
        sa.Column("logo_url", sa.String(length=512), nullable=True),
        sa.Column("stripe_account_id", sa.String(length=80), nullable=True),
        sa.Column("verification_status", sa.String(length=20), nullable=False, server_default="pending"),
        *_timestamps(),
    )
    op.create_index("ix_organizers_user_id", "organizers", ["user_id"], unique=True)

    op.create_table(
        "events",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("organizer_id", sa.String(length=36), sa.ForeignKey("organizers.id"), nullable=False),
        sa.Column("category_id", sa.String(length=36), sa.ForeignKey("event_categories.id"), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("start_date", sa.String(length=10), nullable=False),
        sa.Column("start_time", sa.String(length=8), nullable=False),
        sa.Column("end_date", sa.String(length=10), nullable=False),
        sa.Column("end_time", sa.String(length=8), nullable=True),
        sa.Column("location_name", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("location_address", sa.Text(), nullable=False, server_default=""),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="draft"),
        sa.Column("featured", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("capacity", sa.Integer(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_events_organizer_id", "events", ["organizer_id"])
    op.create_index("ix_events_category_id", "events", ["category_id"])
    op.create_index("ix_events_slug", "events", ["slug"], unique=True)
    op.create_index("ix_events_start_date", "events", ["start_date"])
    op.create_index("ix_events_status", "events", ["status"])
    op.create_index("ix_events_featured", "events", ["featured"])

    # Not mapped on the model; kept in sync from latitude/longitude by Postgres.
    op.execute(
        """
        ALTER TABLE events ADD COLUMN location geography(Point, 4326)
        GENERATED ALWAYS AS (
            CASE WHEN latitude IS NULL OR longitude IS NULL THEN NULL
            ELSE ST_SetSRID(ST_MakePoint(longitude, latitude), 4326)::geography END
        ) STORED
        """
    )
    op.execute("CREATE INDEX ix_events_location ON events USING GIST (location)")

    op.create_table(
        "event_images",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("event_id", sa.String(length=36), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        sa.Column("image_url", sa.Text(), nullable=False),
        sa.Column("alt_text", sa.String(length=255), nullable=True),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_primary", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_event_images_event_id", "event_images", ["event_id"])

    op.create_table(
        "ticket_types",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("event_id", sa.String(length=36), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("quantity_available", sa.Integer(), nullable=False),
        sa.Column("quantity_sold", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("max_per_order", sa.Integer(), nullable=True),
        sa.Column("sale_start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sale_end_date", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("price >= 0", name="ck_ticket_types_price"),
        sa.CheckConstraint("quantity_available >= 0", name="ck_ticket_types_available"),
        sa.CheckConstraint("quantity_sold <= quantity_available", name="ck_ticket_types_not_oversold"),
    )
    op.create_index("ix_ticket_types_event_id", "ticket_types", ["event_id"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("event_id", sa.String(length=36), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("total_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("customer_name", sa.String(length=200), nullable=False),
        sa.Column("customer_email", sa.String(length=320), nullable=False),
        sa.Column("customer_phone", sa.String(length=40), nullable=True),
        sa.Column("special_requests", sa.Text(), nullable=True),
        sa.Column("idempotency_key", sa.String(length=36), nullable=False, unique=True),
        sa.Column("stripe_checkout_session_id", sa.String(length=255), nullable=True),
        sa.Column("stripe_payment_intent_id", sa.String(length=255), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    op.create_index("ix_bookings_event_id", "bookings", ["event_id"])
    op.create_index("ix_bookings_status", "bookings", ["status"])
    op.create_index("ix_bookings_stripe_checkout_session_id", "bookings", ["stripe_checkout_session_id"])

    op.create_table(
        "booking_items",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("booking_id", sa.String(length=36), sa.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("ticket_type_id", sa.String(length=36), sa.ForeignKey("ticket_types.id"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("total_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("quantity > 0", name="ck_booking_items_quantity"),
    )
    op.create_index("ix_booking_items_booking_id", "booking_items", ["booking_id"])
    op.create_index("ix_booking_items_ticket_type_id", "booking_items", ["ticket_type_id"])

    op.create_table(
        "attendees",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("booking_id", sa.String(length=36), sa.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("phone", sa.String(length=40), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_attendees_booking_id", "attendees", ["booking_id"])

    op.create_table(
        "processed_webhook_events",
        sa.Column("id", sa.String(length=255), primary_key=True),
        sa.Column("event_type", sa.String(length=80), nullable=False),
        sa.Column("booking_id", sa.String(length=36), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_processed_webhook_events_booking_id", "processed_webhook_events", ["booking_id"])

    op.create_table(
        "email_logs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("to_email", sa.String(length=320), nullable=False),
        sa.Column("subject", sa.String(length=200), nullable=False),
        sa.Column("body", sa.Text(), nullable=True),
        sa.Column("html_body", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="queued"),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("related_booking_id", sa.String(length=36), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_email_logs_to_email", "email_logs", ["to_email"])
    op.create_index("ix_email_logs_related_booking_id", "email_logs", ["related_booking_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("actor_user_id", sa.String(length=64), nullable=False),
        sa.Column("action", sa.String(length=80), nullable=False),
        sa.Column("entity_type", sa.String(length=40), nullable=False),
        sa.Column("entity_id", sa.String(length=36), nullable=False),
        sa.Column("details_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_audit_logs_actor_user_id", "audit_logs", ["actor_user_id"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_entity_type", "audit_logs", ["entity_type"])
    op.create_index("ix_audit_logs_entity_id", "audit_logs", ["entity_id"])

    op.execute(NEARBY_EVENTS_FN)


def downgrade() -> None:
    op.execute("DROP FUNCTION IF EXISTS nearby_events(double precision, double precision, double precision, integer, integer)")
    for table in (
        "audit_logs", "email_logs", "processed_webhook_events", "attendees", "booking_items",
        "bookings", "ticket_types", "event_images", "events", "organizers", "event_categories", "users",
    ):
        op.drop_table(table)
