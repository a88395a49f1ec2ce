from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, LargeBinary, String, Text

from shortlinks.database import Base, utcnow


class Link(Base):
    __tablename__ = "links"

    id = Column(String(16), primary_key=True)
    hash = Column(LargeBinary(32), unique=True, index=True, nullable=False)
    link = Column(Text, nullable=False)
    created_at = Column(DateTime, default=utcnow, index=True, nullable=False)


class Origin(Base):
    __tablename__ = "origins"

    id = Column(String(16), ForeignKey("links.id"), primary_key=True)
    created_by = Column(LargeBinary(16), nullable=False)


class Strike(Base):
    __tablename__ = "strikes"

    origin = Column(LargeBinary(16), primary_key=True)
    amount = Column(Integer, default=0, nullable=False)


class Token(Base):
    __tablename__ = "tokens"

    token = Column(String(64), primary_key=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    admin_perm = Column(Boolean, default=False, nullable=False)
    create_link_perm = Column(Boolean, default=False, nullable=False)
    create_token_perm = Column(Boolean, default=False, nullable=False)
    view_ips_perm = Column(Boolean, default=False, nullable=False)
