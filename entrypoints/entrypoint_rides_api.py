#!/usr/bin/env python3
# entrypoint_rides_api.py
"""
Точка входа для Rides API.
Порт: 8085
"""

import asyncio
import sys
from pathlib import Path

# Добавляем корневую директорию проекта в путь
project_root = Path(__file__).parent.parent.resolve()
sys.path.insert(0, str(project_root))

import uvicorn

from ridecore.config import settings
from ridecore.common.logger import log_info
from ridecore.common.constants import TypeMsg


async def main() -> None:
    """Запуск Rides API."""
    await log_info(
        f"Запуск Rides API на {settings.deployment.RIDES_API_HOST}:{settings.deployment.RIDES_API_PORT}",
        type_msg=TypeMsg.INFO,
    )

    config = uvicorn.Config(
        "ridecore.services.rides_api.app:app",
        host=settings.deployment.RIDES_API_HOST,
        port=settings.deployment.RIDES_API_PORT,
        reload=settings.system.DEBUG,
        log_level="debug" if settings.system.DEBUG else "info",
    )

    server = uvicorn.Server(config)
    await server.serve()


if __name__ == "__main__":
    asyncio.run(main())
