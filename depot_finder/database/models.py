"""SQLAlchemy models for the postal, depot and paint tables."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, Text

from .base import Base


class PostalPrefixModel(Base):
    """Coordinates for the first three characters of a postal code."""

    __tablename__ = "postal"

    id = Column(Integer, primary_key=True, autoincrement=True)
    prefix = Column(Text, nullable=False, unique=True)
    lat = Column(Text, nullable=False)
    lon = Column(Text, nullable=False)


class DepotModel(Base):
    """Scraped oil depot whose coordinates have already been resolved.

    ``identity_key`` holds the normalized name and address; the unique
    constraint lets concurrent first sightings of a depot share one row.
    """

    __tablename__ = "depots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    identity_key = Column(Text, nullable=False, unique=True)
    depot_name = Column(Text, nullable=False)
    physical_address = Column(Text, nullable=False)
    # Text keeps the precision the geocoder returned; NULL when geocoding failed
    lat = Column(Text, nullable=True)
    lon = Column(Text, nullable=True)
    hours = Column(Text, nullable=False, default="")
    products = Column(Text, nullable=False, default="")
    terms = Column(Text, nullable=False, default="")
    description = Column(Text, nullable=False, default="")

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class PaintMerchantModel(Base):
    """Province-scoped merchant accepting leftover paint."""

    __tablename__ = "paint"

    id = Column(Integer, primary_key=True, autoincrement=True)
    store = Column(Text, nullable=False)
    lat = Column(Text, nullable=False)
    lon = Column(Text, nullable=False)
    address_line_1 = Column(Text, nullable=False, default="")
    address_line_2 = Column(Text, nullable=False, default="")
    city = Column(Text, nullable=False, default="")
    province = Column(Text, nullable=False, default="")
    phone = Column(Text, nullable=False, default="")
    hours = Column(Text, nullable=False, default="")
    products = Column(Text, nullable=False, default="")
