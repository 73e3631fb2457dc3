"""
Government-tracked property parcels.

The table keeps the column names of the legacy data-entry tooling that fills
it; Python attributes are snake_case and map onto those names.
"""
from datetime import datetime, timezone
from sqlalchemy import BigInteger, Column, DateTime, Float, Index, Integer, String, Text

from propmap.core.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GovProperty(Base):
    """
    One parcel. Only ``response`` and ``remark`` are written by this service.
    """
    __tablename__ = "gov_properties"

    id = Column(Integer, primary_key=True)

    # Source identifiers
    pk_property_id = Column("pkPropertyId", BigInteger, index=True)
    fk_district_id = Column("fkDistrictId", Integer)
    fk_ulb_id = Column("fkULBId", Integer)
    ulb_code = Column("ULBCode", String(50))
    pid = Column("PID", String(100), index=True)
    pid_ndc = Column("PIDNDC", String(100))
    linked_pk_property_id = Column("LinkedpkPropertyId", BigInteger)
    fk_colony_survey_id = Column("fkColonySurveyId", Integer)
    fk_property_sub_type_id = Column("fkPropertySubTypeId", Integer)

    # Location / jurisdiction
    mc_name = Column("McName", String(255))
    authority_area = Column("AuthorityArea", String(255))
    colony_name = Column("ColonyName", String(255), index=True)
    khasara_no = Column("KhasaraNo", String(255))
    plot_no = Column("PlotNo", String(100))
    address1 = Column("Address1", Text)
    latitude = Column("Lat", Float)
    longitude = Column("Long", Float)
    locations_data_json = Column("LocationsDataJson", Text)

    # Classification
    property_category = Column("PropertyCategory", String(100), index=True)
    property_type = Column("PropertyType", String(100))
    property_sub_type = Column("PropertySubType", String(100))

    # Owner
    owner_name = Column("OwnerName", String(512))
    owner_name_ndc = Column("OwnerNameNDC", String(512))
    mobile_no = Column("MobileNo", String(50))

    # Plot
    unit = Column("Unit", String(50))
    plot_size = Column("PlotSize", Float)

    # Records metadata
    image_view_link = Column("ImageViewLink", Text)
    integrated_count = Column("IntegratedCount", Integer)
    integrated_count_cmc_dmc = Column("IntegratedCountCMCDMC", Integer)
    claim_count = Column("ClaimCount", Integer)
    page_no = Column("PageNo", Integer)
    total_record = Column("TotalRecord", Integer)
    is_authorised = Column("IsAuthorised", Integer)
    is_data_verified_2023 = Column("IsDataVerified2023", Integer)
    possession_file = Column("PossessionFile", Text)
    due_details = Column("DueDetails", Text)

    # Contact outcome (written by field staff)
    response = Column(String(64))
    remark = Column(Text)

    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        Index("idx_gov_properties_location", "Lat", "Long"),
    )
