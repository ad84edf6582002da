"""never reuse quote_line_items ids on sqlite

Revision ID: 8c3e71a4d205
Revises: 5b1f0c2d9e47
Create Date: 2026-10-18 15:02:41.508311

SQLite hands out the largest rowid + 1, so deleting the newest line item and
adding another gives the new row the old id. Foreign keys are not enforced
there either, so the deleted line's saved calculation stayed behind and got
picked up by the new line. Rebuilding the table with AUTOINCREMENT stops the
reuse. Databases created from the current models already have it; this is a
no-op for them and for every other dialect.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8c3e71a4d205'
down_revision: Union[str, None] = '5b1f0c2d9e47'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _has_autoincrement(table_name):
    """Check the table's CREATE statement in sqlite_master."""
    bind = op.get_bind()
    row = bind.execute(sa.text(
        "SELECT sql FROM sqlite_master WHERE type = 'table' AND name = :table"
    ), {"table": table_name}).fetchone()
    if row is None:
        return True
    return "AUTOINCREMENT" in (row[0] or "").upper()


def upgrade() -> None:
    bind = op.get_bind()

    # Other databases never reuse serial ids
    if bind.dialect.name != "sqlite":
        return

    if _has_autoincrement("quote_line_items"):
        return

    with op.batch_alter_table(
        "quote_line_items",
        recreate="always",
        table_kwargs={"sqlite_autoincrement": True},
    ):
        pass


def downgrade() -> None:
    # No downgrade — dropping AUTOINCREMENT would bring id reuse back
    pass
