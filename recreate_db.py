# recreate_db.py
import asyncio
from sensorboard.core.database import Base, engine
from sensorboard.models import device, sensor, reading  # Asegura que todos los modelos están registrados

async def recreate_database():
    print("Conectando a la base de datos para reconstruir el esquema...")

    async with engine.begin() as conn:
        print("Eliminando todas las tablas existentes...")
        await conn.run_sync(Base.metadata.drop_all)
        print("Creando todas las tablas (incluye el trigger de last_seen)...")
        await conn.run_sync(Base.metadata.create_all)

    await engine.dispose()
    print("¡Esquema de base de datos reconstruido con éxito!")

if __name__ == "__main__":
    asyncio.run(recreate_database())
