from sqlalchemy import Column, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import relationship

from models.base_model import BaseModel, Base


class Company(BaseModel, Base):
    __tablename__ = "companies"

    name = Column(String(255), nullable=False)
    registration_number = Column(String(64), nullable=False)
    email = Column(String(255), nullable=False)
    address = Column(String(512), nullable=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    owner = relationship("User", back_populates="companies")

    __table_args__ = (
        UniqueConstraint("user_id", "registration_number", name="uq_companies_owner_registration"),
    )
