"""
SQLAlchemy models: one table.

`products`: the catalog the routine builder reads from. List/dict attributes are JSON blobs;
validation into the `Product` schema happens in the repository on the way out.
"""

from sqlalchemy import Boolean, Column, DateTime, Float, JSON, String, Text
from sqlalchemy.sql import func

from skinroutine.database import Base


class ProductRecord(Base):
    __tablename__ = "products"

    id = Column(String(64), primary_key=True, index=True)
    name = Column(String(255), nullable=False, default="")
    brand = Column(String(120))
    link = Column(String(500))
    price = Column(Float)
    ingredient_list = Column(Text, default="")
    primary_actives_json = Column(JSON, default=list)
    skin_types_json = Column(JSON, default=list)
    concerns_json = Column(JSON, default=list)
    steps_json = Column(JSON, default=list)
    format = Column(String(120), default="")
    function_json = Column(JSON, default=list)
    summary = Column(Text, default="")
    strength_json = Column(JSON, default=dict)
    sensitive_safe = Column(Boolean)
    spf_quality = Column(Boolean)
    cannot_mix_with_json = Column(JSON, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<ProductRecord(id={self.id}, name={self.name})>"
