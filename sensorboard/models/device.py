import secrets
import uuid
from sqlalchemy import Column, String, Text, DateTime, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sensorboard.core.database import Base

def generate_api_key() -> str:
    # 32 bytes aleatorios en hex, igual que encode(gen_random_bytes(32), 'hex')
    return secrets.token_hex(32)

class Device(Base):
    __tablename__ = "devices"
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, nullable=False, index=True)
    name = Column(Text, nullable=False)
    description = Column(Text, default="")
    api_key = Column(String(128), unique=True, nullable=False, index=True, default=generate_api_key)
    created_at = Column(DateTime(timezone=True), default=func.now())
    # Solo lo actualiza el trigger de lecturas (ver models/reading.py)
    last_seen = Column(DateTime(timezone=True), default=func.now())

    sensors = relationship("Sensor", back_populates="device", cascade="all, delete-orphan", passive_deletes=True)
