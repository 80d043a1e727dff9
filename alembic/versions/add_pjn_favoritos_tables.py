"""Add pjn_favoritos and pjn_sync_metadata tables

Revision ID: add_pjn_favoritos_tables
Revises:
Create Date: 2025-02-03

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'add_pjn_favoritos_tables'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the favoritos destination tables."""

    op.create_table(
        'pjn_favoritos',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('jurisdiccion', sa.String(10), nullable=False),
        sa.Column('numero', sa.String(20), nullable=False),  # zero-padded to 6
        sa.Column('anio', sa.Integer, nullable=False),
        sa.Column('caratula', sa.Text, nullable=True),
        sa.Column('juzgado', sa.String(255), nullable=True),
        sa.Column('fecha_ultima_carga', sa.String(10), nullable=True),  # DD/MM/YYYY
        sa.Column('fecha_ultima_carga_ts', sa.DateTime(timezone=True), nullable=True),
        sa.Column('observaciones', sa.Text, nullable=True),
        sa.Column('source_url', sa.String(500), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('notas', sa.Text, nullable=True),
        sa.Column('notas_updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('jurisdiccion', 'numero', 'anio', name='uq_pjn_favoritos_key'),
    )

    op.create_index('ix_pjn_favoritos_jurisdiccion', 'pjn_favoritos', ['jurisdiccion'])

    op.create_table(
        'pjn_sync_metadata',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('last_sync_at', sa.DateTime(timezone=True), nullable=True),
    )


def downgrade() -> None:
    """Drop the favoritos destination tables."""
    op.drop_table('pjn_sync_metadata')
    op.drop_index('ix_pjn_favoritos_jurisdiccion', table_name='pjn_favoritos')
    op.drop_table('pjn_favoritos')
