"""Create the gov_properties table."""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "20251017_000000"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create gov_properties with the legacy column names."""
    op.create_table(
        "gov_properties",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("pkPropertyId", sa.BigInteger()),
        sa.Column("fkDistrictId", sa.Integer()),
        sa.Column("fkULBId", sa.Integer()),
        sa.Column("ULBCode", sa.String(50)),
        sa.Column("PID", sa.String(100)),
        sa.Column("PIDNDC", sa.String(100)),
        sa.Column("LinkedpkPropertyId", sa.BigInteger()),
        sa.Column("fkColonySurveyId", sa.Integer()),
        sa.Column("fkPropertySubTypeId", sa.Integer()),
        sa.Column("McName", sa.String(255)),
        sa.Column("AuthorityArea", sa.String(255)),
        sa.Column("ColonyName", sa.String(255)),
        sa.Column("KhasaraNo", sa.String(255)),
        sa.Column("PlotNo", sa.String(100)),
        sa.Column("Address1", sa.Text()),
        sa.Column("Lat", sa.Float()),
        sa.Column("Long", sa.Float()),
        sa.Column("LocationsDataJson", sa.Text()),
        sa.Column("PropertyCategory", sa.String(100)),
        sa.Column("PropertyType", sa.String(100)),
        sa.Column("PropertySubType", sa.String(100)),
        sa.Column("OwnerName", sa.String(512)),
        sa.Column("OwnerNameNDC", sa.String(512)),
        sa.Column("MobileNo", sa.String(50)),
        sa.Column("Unit", sa.String(50)),
        sa.Column("PlotSize", sa.Float()),
        sa.Column("ImageViewLink", sa.Text()),
        sa.Column("IntegratedCount", sa.Integer()),
        sa.Column("IntegratedCountCMCDMC", sa.Integer()),
        sa.Column("ClaimCount", sa.Integer()),
        sa.Column("PageNo", sa.Integer()),
        sa.Column("TotalRecord", sa.Integer()),
        sa.Column("IsAuthorised", sa.Integer()),
        sa.Column("IsDataVerified2023", sa.Integer()),
        sa.Column("PossessionFile", sa.Text()),
        sa.Column("DueDetails", sa.Text()),
        sa.Column("response", sa.String(64)),
        sa.Column("remark", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("idx_gov_properties_location", "gov_properties", ["Lat", "Long"])
    op.create_index("ix_gov_properties_pkPropertyId", "gov_properties", ["pkPropertyId"])
    op.create_index("ix_gov_properties_PID", "gov_properties", ["PID"])
    op.create_index("ix_gov_properties_ColonyName", "gov_properties", ["ColonyName"])
    op.create_index(
        "ix_gov_properties_PropertyCategory", "gov_properties", ["PropertyCategory"]
    )


def downgrade() -> None:
    """Drop gov_properties."""
    op.drop_index("ix_gov_properties_PropertyCategory", table_name="gov_properties")
    op.drop_index("ix_gov_properties_ColonyName", table_name="gov_properties")
    op.drop_index("ix_gov_properties_PID", table_name="gov_properties")
    op.drop_index("ix_gov_properties_pkPropertyId", table_name="gov_properties")
    op.drop_index("idx_gov_properties_location", table_name="gov_properties")
    op.drop_table("gov_properties")
