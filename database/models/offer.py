import uuid
from enum import Enum

from sqlalchemy import (
    Column, Text, String, Numeric, Integer, Float, TIMESTAMP, ForeignKey,
    CheckConstraint, Index, func,
)
from sqlalchemy.schema import FetchedValue
from sqlalchemy.sql import text as sql_text
from sqlalchemy.dialects.postgresql import UUID, JSONB, ARRAY, TSVECTOR

from .base import Base


class OfferStatus(str, Enum):
    """Listing status. Inactive offers never appear in search results."""
    ACTIVE = "ativo"
    INACTIVE = "inativo"
    PAUSED = "pausado"


class PersonType(str, Enum):
    """Legal person type of the provider (individual or organization)."""
    INDIVIDUAL = "PF"
    ORGANIZATION = "PJ"


class PriceUnit(str, Enum):
    HOUR = "hora"
    DAY = "diaria"
    MONTH = "mes"
    LESSON = "aula"
    PACKAGE = "pacote"


CATEGORIES = (
    'Tecnologia',
    'Saúde',
    'Educação',
    'Beleza',
    'Limpeza',
    'Consultoria',
    'Construção',
    'Jardinagem',
    'Transporte',
    'Alimentação',
    'Eventos',
    'Outros',
)


def _in_list(column: str, values) -> str:
    quoted = ", ".join(f"'{v}'" for v in values)
    return f"{column} IN ({quoted})"


class Offer(Base):
    """
    A service listing published by a provider.

    The provider_* columns are a denormalized snapshot of the provider taken
    when the offer is written. Search filters and sorts run against this
    snapshot only; display enrichment reads the live ``users`` row separately.

    Two columns exist in the database but are maintained by the
    ``offer_search_fields_sync`` trigger (see database/init_db.py):
    - geo_point: geography(Point, 4326) mirroring (longitude, latitude).
      Not mapped here to avoid a geoalchemy2 dependency; queried with raw SQL.
    - search_vector: weighted tsvector over title (A), description (B), tags (D).
    """
    __tablename__ = 'offer'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # Listing content
    title = Column(String(100), nullable=False)
    description = Column(String(1000), nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    price_unit = Column(Text, nullable=False, default=PriceUnit.PACKAGE.value)
    category = Column(Text, nullable=False)
    subcategory = Column(Text)

    # Provider snapshot (filter/sort keys)
    provider_id = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    provider_name = Column(Text, nullable=False)
    provider_avatar = Column(Text)
    provider_rating = Column(Numeric(3, 2), nullable=False, default=5.0)
    provider_person_type = Column(Text, nullable=False, default=PersonType.INDIVIDUAL.value)

    # Media URLs
    images = Column(ARRAY(Text), nullable=False, server_default=sql_text("'{}'"), default=list)
    videos = Column(ARRAY(Text), nullable=False, server_default=sql_text("'{}'"), default=list)

    # Location
    city = Column(Text, nullable=False)
    state = Column(String(2), nullable=False)
    address = Column(Text)
    latitude = Column(Float)
    longitude = Column(Float)

    status = Column(Text, nullable=False, default=OfferStatus.ACTIVE.value)  # ativo|inativo|pausado
    tags = Column(ARRAY(Text), nullable=False, server_default=sql_text("'{}'"), default=list)
    availability = Column(JSONB, nullable=False, default=dict)  # {weekdays: [...], start: "08:00", end: "18:00"}

    view_count = Column(Integer, nullable=False, default=0)
    favorite_count = Column(Integer, nullable=False, default=0)

    # Trigger-maintained
    search_vector = Column(TSVECTOR, server_default=FetchedValue(), server_onupdate=FetchedValue())

    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=sql_text("timezone('UTC', now())"))
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=sql_text("timezone('UTC', now())"), onupdate=func.now())

    __table_args__ = (
        CheckConstraint('price >= 0', name='ck_offer_price_non_negative'),
        CheckConstraint('provider_rating >= 0 AND provider_rating <= 5', name='ck_offer_provider_rating_range'),
        CheckConstraint('char_length(state) = 2', name='ck_offer_state_length'),
        CheckConstraint('latitude IS NULL OR (latitude >= -90 AND latitude <= 90)', name='ck_offer_latitude_range'),
        CheckConstraint('longitude IS NULL OR (longitude >= -180 AND longitude <= 180)', name='ck_offer_longitude_range'),
        CheckConstraint('(latitude IS NULL) = (longitude IS NULL)', name='ck_offer_coordinates_pair'),
        CheckConstraint(_in_list('status', [s.value for s in OfferStatus]), name='ck_offer_status'),
        CheckConstraint(_in_list('price_unit', [u.value for u in PriceUnit]), name='ck_offer_price_unit'),
        CheckConstraint(_in_list('provider_person_type', [p.value for p in PersonType]), name='ck_offer_person_type'),
        Index('idx_offer_category_status', 'category', 'status'),
        Index('idx_offer_category_subcategory_status', 'category', 'subcategory', 'status'),
        Index('idx_offer_city_state', 'city', 'state'),
        Index('idx_offer_price', 'price'),
        Index('idx_offer_created_at', 'created_at'),
        Index('idx_offer_provider', 'provider_id'),
        Index('idx_offer_person_type', 'provider_person_type'),
        Index('idx_offer_search_vector', 'search_vector', postgresql_using='gin'),
    )

    def __repr__(self):
        return f"<Offer {self.id} '{self.title}' status={self.status}>"
