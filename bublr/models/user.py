import enum
import uuid

from sqlalchemy import Column, DateTime, String, Text, func
from sqlalchemy.orm import relationship

from bublr.db.base_class import Base


class DomainStatus(str, enum.Enum):
    UNSET = "unset"
    PENDING = "pending"      # saved, not yet verified
    ACTIVE = "active"        # DNS verified and subscription servable
    INACTIVE = "inactive"    # was active, subscription lapsed


class User(Base):
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    name = Column(String(64), unique=True, index=True, nullable=False)
    display_name = Column(String(255), nullable=True)
    about = Column(Text, nullable=True)
    link = Column(String(512), nullable=True)
    photo = Column(String(1024), nullable=True)

    # Custom domain (unique index is the conflict guard between users)
    custom_domain = Column(String(255), unique=True, nullable=True, index=True)
    custom_domain_status = Column(String(16), nullable=False, default=DomainStatus.UNSET.value)
    custom_domain_verified_at = Column(DateTime(timezone=True), nullable=True)

    # Billing
    subscription_id = Column(String(128), nullable=True, index=True)
    subscription_status = Column(String(32), nullable=False, default="none")
    billing_customer_id = Column(String(128), nullable=True)
    grace_period_ends_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    posts = relationship(
        "Post",
        back_populates="author",
        order_by="Post.last_edited.desc()",
        cascade="all, delete-orphan",
    )
