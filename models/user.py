from models.base_model import Base, BaseModel
from sqlalchemy import Boolean, Column, String
from sqlalchemy.orm import relationship

VERIFY_EMAIL = "verify_email"
RESET_PASSWORD = "reset_password"


class User(BaseModel, Base):
    __tablename__ = "users"
    name = Column(String(255), nullable=False)
    surname = Column(String(255), nullable=False)
    personal_id_code = Column(String(11), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    is_verified = Column(Boolean, nullable=False, default=False)
    # single pending action token (email verification or password reset)
    verification_token = Column(String(1024), nullable=True)
    verification_purpose = Column(String(32), nullable=True)

    refresh_tokens = relationship(
        "RefreshToken",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    companies = relationship(
        "Company",
        back_populates="owner",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def password(self):
        raise AttributeError("Password: Write-only field")

    def set_action_token(self, token: str | None, purpose: str | None = None):
        """Fill or clear the pending action token slot."""
        self.verification_token = token
        self.verification_purpose = purpose if token else None

    def __repr__(self):
        return f"<User {self.email}>"
