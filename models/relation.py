from enum import Enum

from marshmallow import ValidationError
from sqlalchemy import Column, String, ForeignKey, UniqueConstraint, Index
from sqlalchemy.orm import relationship
from sqlalchemy.types import Enum as SAEnum

from models.base_model import BaseModel, Base

TARGET_ID_MAX_LENGTH = 64


class RelationKind(str, Enum):
    VIDEO_LIKE = "video-like"
    COMMENT_LIKE = "comment-like"
    TWEET_LIKE = "tweet-like"
    SUBSCRIPTION = "subscription"

    @classmethod
    def coerce(cls, raw) -> "RelationKind":
        if isinstance(raw, cls):
            return raw
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            allowed = [k.value for k in cls]
            raise ValidationError(f"kind must be one of {allowed}", field_name="kind")


def coerce_target_id(raw) -> str:
    """Target ids are opaque strings that must fit the target_id column."""
    target_id = "" if raw is None else str(raw)
    if not 1 <= len(target_id) <= TARGET_ID_MAX_LENGTH:
        raise ValidationError(
            f"target_id must be 1-{TARGET_ID_MAX_LENGTH} characters long", field_name="target_id"
        )
    return target_id


class Relation(BaseModel, Base):
    __tablename__ = "relations"

    actor_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    kind = Column(
        SAEnum(
            RelationKind,
            name="relation_kind",
            native_enum=False,
            values_callable=lambda kinds: [k.value for k in kinds],
        ),
        nullable=False,
    )
    # video / comment / tweet / channel id; stored, never dereferenced
    target_id = Column(String(TARGET_ID_MAX_LENGTH), nullable=False)

    actor = relationship("User", back_populates="relations")

    __table_args__ = (
        UniqueConstraint("actor_id", "kind", "target_id", name="uq_relations_actor_kind_target"),
        Index("ix_relations_kind_target", "kind", "target_id"),
    )

    def __repr__(self):
        return f"<Relation {self.actor_id} {self.kind.value} {self.target_id}>"
