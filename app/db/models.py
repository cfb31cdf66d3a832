from sqlalchemy import Column, String, Boolean, Text, LargeBinary, BigInteger, ForeignKey, Index, Integer, DateTime
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func
from sqlalchemy.types import TypeDecorator, CHAR
import uuid

Base = declarative_base()


class GUID(TypeDecorator):
    """Platform-independent GUID type.
    Uses PostgreSQL's UUID type when available, otherwise uses CHAR(36).
    """
    impl = CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == 'postgresql':
            return dialect.type_descriptor(PG_UUID())
        else:
            return dialect.type_descriptor(CHAR(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        elif dialect.name == 'postgresql':
            return str(value)
        else:
            if not isinstance(value, uuid.UUID):
                return str(uuid.UUID(value))
            else:
                return str(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        else:
            if not isinstance(value, uuid.UUID):
                return uuid.UUID(value)
            else:
                return value


class User(Base):
    __tablename__ = "users"

    user_id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False)

    # TOTP seed, only ever stored sealed (AES-256-GCM ciphertext + its IV)
    two_factor_enabled = Column(Boolean, nullable=False, default=False)
    two_factor_secret = Column(LargeBinary, nullable=True)
    two_factor_iv = Column(LargeBinary, nullable=True)

    created_at = Column(DateTime, default=func.now())

    audit_logs = relationship("AuditLog", back_populates="user")


class AuditLog(Base):
    __tablename__ = "audit_log"

    log_id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(GUID(), ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True)
    action = Column(String(50), nullable=False)
    status = Column(String(20), nullable=False)
    meta = Column(Text, nullable=True)  # JSON encoded
    timestamp = Column(BigInteger, nullable=False)
    log_entry_hmac = Column(String(64), nullable=False)
    previous_log_hmac = Column(String(64), nullable=True)

    user = relationship("User", back_populates="audit_logs")

    __table_args__ = (
        Index('idx_audit_user_timestamp', 'user_id', 'timestamp'),
    )
