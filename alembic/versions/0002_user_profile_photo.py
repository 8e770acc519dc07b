"""user profile photo

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-18 15:00:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    with op.batch_alter_table("users") as batch_op:
        batch_op.add_column(sa.Column("profile_photo_file_id", sa.Integer(), nullable=True))
        batch_op.create_foreign_key(
            "fk_users_profile_photo_file_id",
            "files",
            ["profile_photo_file_id"],
            ["id"],
            ondelete="SET NULL",
        )


def downgrade() -> None:
    with op.batch_alter_table("users") as batch_op:
        batch_op.drop_constraint("fk_users_profile_photo_file_id", type_="foreignkey")
        batch_op.drop_column("profile_photo_file_id")
