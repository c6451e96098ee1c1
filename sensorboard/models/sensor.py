import uuid
from sqlalchemy import Column, Text, DateTime, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sensorboard.core.database import Base

class Sensor(Base):
    __tablename__ = "sensors"
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    device_id = Column(Uuid, ForeignKey('devices.id', ondelete="CASCADE"), nullable=False, index=True)
    name = Column(Text, nullable=False)
    unit = Column(Text, default="")
    type = Column(Text, default="generic")
    created_at = Column(DateTime(timezone=True), default=func.now())

    # Clave de idempotencia para la creación implícita durante la ingesta
    __table_args__ = (
        UniqueConstraint('device_id', 'name', name='uq_sensors_device_name'),
    )

    device = relationship("Device", back_populates="sensors")
    readings = relationship("Reading", back_populates="sensor", cascade="all, delete-orphan", passive_deletes=True)
