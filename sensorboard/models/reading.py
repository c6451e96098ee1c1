from sqlalchemy import Column, BigInteger, Integer, Float, DateTime, ForeignKey, Index, Uuid, DDL, event
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sensorboard.core.database import Base

class Reading(Base):
    __tablename__ = "readings"
    # BIGINT IDENTITY en PostgreSQL; en SQLite solo INTEGER PRIMARY KEY es autoincremental
    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    sensor_id = Column(Uuid, ForeignKey('sensors.id', ondelete="CASCADE"), nullable=False)
    value = Column(Float, nullable=False)
    timestamp = Column(DateTime(timezone=True), default=func.now())

    __table_args__ = (
        Index('idx_readings_sensor_timestamp', 'sensor_id', 'timestamp'),
    )

    sensor = relationship("Sensor", back_populates="readings")


# Trigger: cada lectura insertada adelanta devices.last_seen al timestamp de la lectura.
# La ingesta nunca escribe last_seen directamente.
_pg_last_seen_function = DDL("""
CREATE OR REPLACE FUNCTION update_device_last_seen()
RETURNS TRIGGER
LANGUAGE plpgsql
AS $$
BEGIN
  UPDATE devices
  SET last_seen = NEW.timestamp
  WHERE id = (SELECT device_id FROM sensors WHERE id = NEW.sensor_id);
  RETURN NEW;
END;
$$;
""")

_pg_last_seen_trigger = DDL("""
CREATE TRIGGER trigger_update_device_last_seen
  AFTER INSERT ON readings
  FOR EACH ROW
  EXECUTE FUNCTION update_device_last_seen();
""")

_sqlite_last_seen_trigger = DDL("""
CREATE TRIGGER trigger_update_device_last_seen
  AFTER INSERT ON readings
  FOR EACH ROW
BEGIN
  UPDATE devices
  SET last_seen = NEW.timestamp
  WHERE id = (SELECT device_id FROM sensors WHERE id = NEW.sensor_id);
END;
""")

event.listen(Reading.__table__, "after_create", _pg_last_seen_function.execute_if(dialect="postgresql"))
event.listen(Reading.__table__, "after_create", _pg_last_seen_trigger.execute_if(dialect="postgresql"))
event.listen(Reading.__table__, "after_create", _sqlite_last_seen_trigger.execute_if(dialect="sqlite"))
