# sitebuilder/models.py
import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from .database import Base

# JSONB no Postgres, JSON genérico no SQLite
JsonType = JSON().with_variant(JSONB(), "postgresql")


def _uuid() -> str:
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(String(255), primary_key=True)  # "sub" do provedor de identidade
    email = Column(String(255), unique=True, nullable=True)
    first_name = Column(String(120), nullable=True)
    last_name = Column(String(120), nullable=True)
    profile_image_url = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)

    sites = relationship("Site", back_populates="owner")


class Template(Base):
    __tablename__ = "templates"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), nullable=False)
    category = Column(String(60), nullable=False)  # açaí, burger, pizza, sweets...
    description = Column(Text, nullable=True)
    image_url = Column(String(500), nullable=True)
    html_content = Column(Text, nullable=False)
    css_content = Column(Text, nullable=False)
    js_content = Column(Text, nullable=True)
    config = Column(JsonType, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class Site(Base):
    __tablename__ = "sites"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(255), ForeignKey("users.id"), nullable=False, index=True)
    template_id = Column(Integer, ForeignKey("templates.id"), nullable=False)
    name = Column(String(120), nullable=False)
    slug = Column(String(120), unique=True, nullable=False)
    whatsapp_number = Column(String(30), nullable=True)
    address = Column(Text, nullable=True)
    config = Column(JsonType, nullable=False, default=dict)
    netlify_url = Column(String(255), nullable=True)
    netlify_id = Column(String(80), nullable=True)
    pix_key = Column(String(120), nullable=True)
    pix_key_type = Column(String(10), nullable=True)  # cpf, cnpj, email, phone, random
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)

    owner = relationship("User", back_populates="sites")
    template = relationship("Template")
    products = relationship("Product", back_populates="site", cascade="all, delete-orphan")
    orders = relationship("Order", back_populates="site", cascade="all, delete-orphan")
    analytics = relationship("Analytics", back_populates="site", cascade="all, delete-orphan")


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    site_id = Column(String(36), ForeignKey("sites.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    image_url = Column(String(500), nullable=True)
    category = Column(String(120), nullable=True)
    is_available = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    site = relationship("Site", back_populates="products")


class Order(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=_uuid)
    site_id = Column(String(36), ForeignKey("sites.id"), nullable=False)
    customer_name = Column(String(120), nullable=False)
    customer_phone = Column(String(30), nullable=False)
    customer_address = Column(Text, nullable=True)
    delivery_type = Column(String(10), nullable=False)  # delivery, pickup
    items = Column(JsonType, nullable=False)  # cópia do carrinho no momento do pedido
    total_amount = Column(Numeric(10, 2), nullable=False)
    status = Column(String(20), default="new", nullable=False)  # new, preparing, ready, delivered, cancelled
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    site = relationship("Site", back_populates="orders")

    __table_args__ = (
        Index("idx_orders_site_created", "site_id", "created_at"),
    )


class Analytics(Base):
    __tablename__ = "analytics"

    id = Column(Integer, primary_key=True, index=True)
    site_id = Column(String(36), ForeignKey("sites.id"), nullable=False)
    date = Column(Date, nullable=False)
    views = Column(Integer, default=0)
    orders = Column(Integer, default=0)
    revenue = Column(Numeric(10, 2), default=0)
    conversion_rate = Column(Numeric(5, 2), default=0)

    site = relationship("Site", back_populates="analytics")

    # uma linha por site e por dia
    __table_args__ = (
        UniqueConstraint("site_id", "date", name="uq_analytics_site_date"),
    )
