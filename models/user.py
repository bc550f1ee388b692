from models.base_model import Base, BaseModel
from sqlalchemy import Column, String
from sqlalchemy.orm import relationship


class User(BaseModel, Base):
    __tablename__ = "users"
    username = Column(String(64), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    fullname = Column(String(255), nullable=True)
    password_hash = Column(String(255), nullable=False)
    # sha256 hex of the live refresh token id; NULL means logged out
    refresh_fingerprint = Column(String(64), nullable=True)

    relations = relationship(
        "Relation",
        back_populates="actor",
        passive_deletes=True
    )

    @property
    def password(self):
        raise AttributeError("Password: Write-only field")

    @property
    def is_logged_in(self) -> bool:
        return bool(self.refresh_fingerprint)
