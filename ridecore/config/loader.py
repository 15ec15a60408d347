# ridecore/config/loader.py
"""
Загрузчик конфигурации проекта.
Источник истины — config/config.json.
Значения, зависящие от окружения, переопределяются из переменных окружения.
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# =============================================================================
# ОПРЕДЕЛЕНИЕ ПУТЕЙ
# =============================================================================

def get_project_root() -> Path:
    """Возвращает корневую директорию проекта."""
    return Path(__file__).parent.parent.parent


def get_config_path() -> Path:
    """
    Возвращает путь к файлу конфигурации.
    Может быть переопределён переменной окружения RIDECORE_CONFIG.
    """
    override = os.getenv("RIDECORE_CONFIG")
    if override:
        return Path(override)
    return get_project_root() / "config" / "config.json"


def load_config_json() -> dict[str, Any]:
    """Загружает config.json и возвращает словарь."""
    config_path = get_config_path()
    if not config_path.exists():
        raise FileNotFoundError(f"Файл конфигурации не найден: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        return json.load(f)


# =============================================================================
# PYDANTIC МОДЕЛИ КОНФИГУРАЦИИ
# =============================================================================

class SystemSettings(BaseModel):
    """Системные настройки."""
    PROJECT_NAME: str = "ridecore"
    VERSION: str = "0.1.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"


class LoggingSettings(BaseModel):
    """Настройки логирования."""
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "colored"
    LOG_TO_FILE: bool = False
    LOG_FILE_PATH: str = "logs/ridecore.log"
    LOG_MAX_BYTES: int = 10485760

    @field_validator("LOG_FORMAT")
    @classmethod
    def validate_format(cls, v: str) -> str:
        if v not in ("colored", "json"):
            raise ValueError("LOG_FORMAT должен быть 'colored' или 'json'")
        return v


class DeploymentSettings(BaseModel):
    """Настройки развертывания API."""
    RIDES_API_HOST: str = "0.0.0.0"
    RIDES_API_PORT: int = 8085


class GeocoderSettings(BaseModel):
    """Настройки геокодера (OpenStreetMap Nominatim)."""
    GEOCODER_BASE_URL: str = "https://nominatim.openstreetmap.org"
    GEOCODER_USER_AGENT: str = "ridecore/0.1"
    GEOCODER_TIMEOUT: float = 10.0
    GEOCODER_RESULT_LIMIT: int = Field(default=5, ge=1, le=50)
    GEOCODING_LANGUAGE: str = "en"

    @field_validator("GEOCODER_BASE_URL")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("GEOCODER_BASE_URL должен начинаться с http:// или https://")
        return v.rstrip("/")


class SearchSettings(BaseModel):
    """Настройки поиска адресов."""
    SEARCH_DEBOUNCE_MS: int = Field(default=300, ge=0)
    SEARCH_MIN_QUERY_LENGTH: int = Field(default=3, ge=1)


class FareSettings(BaseModel):
    """Настройки тарифов (ставки по классам авто зафиксированы в коде)."""
    CURRENCY: str = "INR"

    @field_validator("CURRENCY")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        if len(v) != 3 or not v.isalpha():
            raise ValueError("CURRENCY должен быть трёхбуквенным кодом")
        return v.upper()


class TrackingSettings(BaseModel):
    """Настройки симуляции live-трекинга (секунды от старта сессии)."""
    ASSIGN_DELAY: float = Field(default=3.0, ge=0)
    ACCEPT_DELAY: float = Field(default=8.0, ge=0)
    TRIP_START_DELAY: float = Field(default=15.0, ge=0)
    # 0: поездка не завершается автоматически
    TRIP_COMPLETE_DELAY: float = Field(default=60.0, ge=0)
    POSITION_UPDATE_INTERVAL: float = Field(default=5.0, gt=0)
    POSITION_JITTER_DEG: float = Field(default=0.0005, ge=0)
    DRIVER_SPAWN_JITTER_DEG: float = Field(default=0.005, ge=0)


class RideSettings(BaseModel):
    """Настройки поездок."""
    ESTIMATED_ARRIVAL_MINUTES: int = Field(default=8, ge=0)


# =============================================================================
# ГЛАВНЫЙ КЛАСС НАСТРОЕК
# =============================================================================

class Settings(BaseSettings):
    """
    Главный класс настроек приложения.
    Агрегирует все секции конфигурации.
    """
    system: SystemSettings = Field(default_factory=SystemSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    deployment: DeploymentSettings = Field(default_factory=DeploymentSettings)
    geocoder: GeocoderSettings = Field(default_factory=GeocoderSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    fares: FareSettings = Field(default_factory=FareSettings)
    tracking: TrackingSettings = Field(default_factory=TrackingSettings)
    rides: RideSettings = Field(default_factory=RideSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @classmethod
    def from_config_json(cls, config_data: dict[str, Any] | None = None) -> "Settings":
        """
        Создаёт объект Settings из плоского словаря config.json.
        Если файл отсутствует — используются значения по умолчанию.
        """
        if config_data is None:
            config_data = load_config_json() if get_config_path().exists() else {}

        # Ключи _comment_* являются комментариями внутри JSON
        data = {k: v for k, v in config_data.items() if not k.startswith("_comment_")}

        def pick(model: type[BaseModel], env: tuple[str, ...] = ()) -> BaseModel:
            values = {name: data[name] for name in model.model_fields if name in data}
            for name in env:
                env_value = os.getenv(name)
                if env_value is not None:
                    values[name] = env_value
            return model(**values)

        return cls(
            system=pick(SystemSettings, env=("ENVIRONMENT", "DEBUG")),
            logging=pick(LoggingSettings, env=("LOG_LEVEL", "LOG_FORMAT", "LOG_TO_FILE")),
            deployment=pick(DeploymentSettings, env=("RIDES_API_HOST", "RIDES_API_PORT")),
            geocoder=pick(GeocoderSettings, env=("GEOCODER_BASE_URL", "GEOCODER_USER_AGENT")),
            search=pick(SearchSettings),
            fares=pick(FareSettings, env=("CURRENCY",)),
            tracking=pick(TrackingSettings),
            rides=pick(RideSettings),
        )


@lru_cache()
def get_settings() -> Settings:
    """
    Возвращает синглтон настроек приложения.
    Использует кэширование для производительности.
    """
    from dotenv import load_dotenv

    env_path = get_project_root() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    return Settings.from_config_json()


# Экспорт синглтона для удобного импорта
settings = get_settings()
