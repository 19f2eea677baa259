from typing import Any

from pydantic import Field, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Configuración de la aplicación utilizando Pydantic BaseSettings.
    Carga automáticamente las variables de entorno.
    """

    # API Configuration
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "CareChat API"
    PROJECT_DESCRIPTION: str = "Resolución de tenants, reconciliación de pacientes y estado conversacional"
    VERSION: str = "0.1.0"

    # Environment
    ENVIRONMENT: str = Field("development", description="Entorno de ejecución")
    DEBUG: bool = Field(False, description="Modo debug")
    LOG_LEVEL: str = Field("INFO", description="Nivel de logging")
    LOG_FORMAT: str = Field("colored", description="Formato de logs: colored, json o plain")
    SENTRY_DSN: str | None = Field(None, description="DSN de Sentry para tracking de errores")

    # PostgreSQL Database Settings
    DB_HOST: str = Field("localhost", description="Host de PostgreSQL")
    DB_PORT: int = Field(5432, description="Puerto de PostgreSQL")
    DB_NAME: str = Field("carechat", description="Nombre de la base de datos")
    DB_USER: str = Field("postgres", description="Usuario de PostgreSQL")
    DB_PASSWORD: str | None = Field(None, description="Contraseña de PostgreSQL")
    DB_ECHO: bool = Field(False, description="Log SQL queries (solo para debug)")

    # Database connection pool settings
    DB_POOL_SIZE: int = Field(20, description="Tamaño del pool de conexiones")
    DB_MAX_OVERFLOW: int = Field(30, description="Máximo overflow del pool")
    DB_POOL_RECYCLE: int = Field(3600, description="Reciclar conexiones cada X segundos")
    DB_POOL_TIMEOUT: int = Field(30, description="Timeout para obtener conexión del pool")

    # Credential encryption (Fernet key, urlsafe base64 de 32 bytes)
    CREDENTIAL_ENCRYPTION_KEY: str | None = Field(
        None, description="Clave Fernet para desencriptar credenciales de los tenants"
    )

    # Tenant context cache
    TENANT_CACHE_TTL_SECONDS: int = Field(900, description="TTL de contextos de tenant en cache (15 min)")
    TENANT_CACHE_SWEEP_INTERVAL_SECONDS: int = Field(
        300, description="Intervalo del barrido de entradas expiradas (5 min)"
    )
    DEFAULT_TENANT_SLUG: str = Field("demo", description="Tenant usado en localhost")
    PUBLIC_DOMAIN: str = Field("carechat.app", description="Dominio público para subdominios de tenants")

    # External system of record
    EXTERNAL_RECORDS_PATH: str = Field("/clients", description="Path del endpoint de búsqueda de clientes")
    EXTERNAL_RECORDS_PHONE_PARAM: str = Field(
        "phone_filter", description="Nombre del parámetro de filtro por teléfono"
    )
    EXTERNAL_RECORDS_TIMEOUT: int = Field(15, description="Timeout en segundos del sistema externo")
    EXTERNAL_RECORDS_TRY_VARIANTS: bool = Field(
        True, description="Probar variantes de formato de teléfono si la búsqueda exacta falla"
    )

    # Identity rules
    PHONE_COUNTRY_CODE: str = Field("55", description="Código de país removido al comparar teléfonos")
    NATIONAL_ID_LENGTH: int = Field(11, description="Cantidad de dígitos del documento nacional (CPF)")

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def __init__(self, **data: Any):
        super().__init__(**data)

    @field_validator("LOG_FORMAT")
    @classmethod
    def validate_log_format(cls, v):
        if v not in ("colored", "json", "plain"):
            raise ValueError("LOG_FORMAT must be one of: colored, json, plain")
        return v

    @field_validator("DB_POOL_SIZE")
    @classmethod
    def validate_pool_size(cls, v):
        if v < 1:
            raise ValueError("DB_POOL_SIZE must be at least 1")
        if v > 100:
            raise ValueError("DB_POOL_SIZE should not exceed 100")
        return v

    @field_validator("TENANT_CACHE_TTL_SECONDS", "TENANT_CACHE_SWEEP_INTERVAL_SECONDS")
    @classmethod
    def validate_positive_interval(cls, v):
        if v <= 0:
            raise ValueError("Cache intervals must be positive")
        return v

    @computed_field
    @property
    def database_url(self) -> str:
        """Construye la URL de conexión a PostgreSQL"""
        if self.DB_PASSWORD:
            return f"postgresql://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        return f"postgresql://{self.DB_USER}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    @computed_field
    @property
    def is_development(self) -> bool:
        """Determina si está en modo desarrollo"""
        return self.DEBUG or self.ENVIRONMENT.lower() in ["development", "dev", "local"]


# Singleton para configuración
_settings_instance = None


def get_settings() -> Settings:
    """
    Retorna una instancia cacheada de la configuración.
    Esto evita cargar las variables de entorno múltiples veces.
    """
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
