"""Initial schema: users, tours, stops and walking progress.

Revision ID: 001
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ── users ─────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(80), unique=True, nullable=False),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )

    # ── tours ─────────────────────────────────────────────────────────
    op.create_table(
        "tours",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("title", sa.Text, nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("category", sa.String(80), nullable=False),
        sa.Column("latitude", sa.Text, nullable=False),
        sa.Column("longitude", sa.Text, nullable=False),
        sa.Column("h3_cell", sa.String(20), nullable=True),
        sa.Column("h3_resolution", sa.Integer, nullable=True),
        sa.Column("duration", sa.Integer, nullable=True),
        sa.Column("distance", sa.Text, nullable=True),
        sa.Column("cover_image_url", sa.Text, nullable=True),
        sa.Column(
            "creator_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_tours_h3_cell", "tours", ["h3_cell"])
    op.create_index("idx_tours_creator", "tours", ["creator_id"])

    # ── tour_stops ────────────────────────────────────────────────────
    op.create_table(
        "tour_stops",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "tour_id",
            sa.Integer,
            sa.ForeignKey("tours.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.Text, nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("latitude", sa.Text, nullable=False),
        sa.Column("longitude", sa.Text, nullable=False),
        sa.Column("media_type", sa.String(10), nullable=False, server_default="audio"),
        sa.Column("audio_file_url", sa.Text, nullable=True),
        sa.Column("video_file_url", sa.Text, nullable=True),
        sa.Column("order", sa.Integer, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("tour_id", "order", name="uq_tour_stops_order"),
    )
    op.create_index("idx_tour_stops_tour", "tour_stops", ["tour_id"])

    # ── tour_progress ─────────────────────────────────────────────────
    op.create_table(
        "tour_progress",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column(
            "tour_id",
            sa.Integer,
            sa.ForeignKey("tours.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "stop_id",
            sa.Integer,
            sa.ForeignKey("tour_stops.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "completed_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("user_id", "stop_id", name="uq_tour_progress_stop"),
    )
    op.create_index(
        "idx_tour_progress_user_tour", "tour_progress", ["user_id", "tour_id"]
    )

    # ── completed_tours ───────────────────────────────────────────────
    op.create_table(
        "completed_tours",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column(
            "tour_id", sa.Integer, sa.ForeignKey("tours.id"), nullable=False
        ),
        sa.Column(
            "completed_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("user_id", "tour_id", name="uq_completed_tours"),
    )


def downgrade() -> None:
    op.drop_table("completed_tours")
    op.drop_table("tour_progress")
    op.drop_table("tour_stops")
    op.drop_table("tours")
    op.drop_table("users")
