"""seed cpp versions

Revision ID: 0002_seed_cpp_versions
Revises: 0001_init
Create Date: 2026-09-01 10:05:00.000000
"""
from __future__ import annotations

import json

from alembic import op
import sqlalchemy as sa

from shuguridan.domain.versions import CPP_VERSIONS

# revision identifiers, used by Alembic.
revision = "0002_seed_cpp_versions"
down_revision = "0001_init"
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Upsert so re-running against a partially seeded database refreshes the catalog.
    statement = sa.text(
        "INSERT INTO cpp_versions (id, name, year, standard_doc, features) "
        "VALUES (:id, :name, :year, :standard_doc, CAST(:features AS jsonb)) "
        "ON CONFLICT (id) DO UPDATE SET name = EXCLUDED.name, year = EXCLUDED.year, "
        "standard_doc = EXCLUDED.standard_doc, features = EXCLUDED.features"
    )
    bind = op.get_bind()
    for version in CPP_VERSIONS:
        bind.execute(
            statement,
            {
                "id": version.id,
                "name": version.name,
                "year": version.year,
                "standard_doc": version.standard_doc,
                "features": json.dumps(list(version.features)),
            },
        )


def downgrade() -> None:
    op.execute("DELETE FROM cpp_versions")
