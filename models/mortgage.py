from sqlalchemy import JSON, Column, DateTime, Integer, String, Text, func

from database import Base


class MortgageRequest(Base):
    __tablename__ = "mortgage_requests"

    id = Column(String(64), primary_key=True, index=True)
    # One request per applicant; also the natural partition for concurrent writers
    applicant_id = Column(String(256), unique=True, nullable=False, index=True)
    status = Column(String(32), nullable=False, default="Pending", index=True)
    status_reason = Column(Text, nullable=False, default="")
    missing_requirements = Column(JSON, nullable=False, default=list)
    # Open field mapping (income_annual, credit_score, ...), stored verbatim
    request_data = Column(JSON, nullable=False, default=dict)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __mapper_args__ = {"version_id_col": version}
