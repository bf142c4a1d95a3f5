"""manual_expense_duplicates

Revision ID: manual_expense_duplicates
Revises: initial_schema_2026
Create Date: 2026-10-20 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'manual_expense_duplicates'
down_revision: Union[str, Sequence[str], None] = 'initial_schema_2026'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Allow hand-entered expenses and link imported duplicates to them."""
    with op.batch_alter_table('expenses') as batch_op:
        batch_op.alter_column('source_transaction_id', existing_type=sa.Integer(), nullable=True)

    with op.batch_alter_table('imported_transactions') as batch_op:
        batch_op.add_column(sa.Column('duplicate_of_id', sa.Integer(), nullable=True))


def downgrade() -> None:
    """Downgrade schema."""
    with op.batch_alter_table('imported_transactions') as batch_op:
        batch_op.drop_column('duplicate_of_id')

    op.execute('DELETE FROM expenses WHERE source_transaction_id IS NULL')
    with op.batch_alter_table('expenses') as batch_op:
        batch_op.alter_column('source_transaction_id', existing_type=sa.Integer(), nullable=False)
