# Runtime configuration: provider endpoints, fetch/retry defaults, geocoding rate limit.

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional

class Settings(BaseSettings):
    PROJECT_NAME: str = "Travel Info"
    VERSION: str = "1.0.0"
    BRIEF_DESCRIPTION: str = "Resolves destinations into weather, country, currency, exchange-rate and holiday facts."

    ENV: str = Field("development", description="Application environment (e.g., production, development)")
    PORT: int = Field(3000, description="Port used when the app is started directly")
    LOG_LEVEL: str = Field("INFO", description="Level of the travel_info loggers")
    PROVIDER_LOG_LEVEL: str = Field("WARNING", description="Level of the httpx/httpcore loggers")

    # --- Outbound HTTP ---
    USER_AGENT: str = Field(
        "TravelInfo/1.0 (+contato@seudominio.com)",
        description="Client signature sent with every provider request"
    )
    HTTP_MAX_CONNECTIONS: int = Field(100, description="Connection pool size of the shared httpx client")
    HTTP_KEEPALIVE_EXPIRY_SECONDS: float = Field(10.0, description="Idle keep-alive expiry for pooled connections")
    HTTP_CONNECT_TIMEOUT_SECONDS: float = Field(7.0, description="TCP/TLS connect timeout")

    # Retry logic for every provider call
    FETCH_TIMEOUT_SECONDS: float = 12.0
    FETCH_MAX_RETRIES: int = 4  # 5 attempts in total
    FETCH_BASE_DELAY_SECONDS: float = 0.35
    FETCH_MAX_JITTER_SECONDS: float = 0.25

    # --- Geocoding ---
    # Nominatim usage policy: at most one request per second
    GEOCODE_MIN_INTERVAL_SECONDS: float = 1.2
    GEOCODE_LANGUAGE: str = Field("pt", description="Language hint for geocoding providers")
    NOMINATIM_EMAIL: Optional[str] = Field(None, description="Contact e-mail sent to Nominatim (improves acceptance)")
    OPEN_METEO_GEOCODE_TIMEOUT: float = 12.0
    NOMINATIM_SEARCH_TIMEOUT: float = 15.0
    NOMINATIM_REVERSE_TIMEOUT: float = 12.0
    MAPS_CO_TIMEOUT: float = 12.0

    # --- Enrichment ---
    WEATHER_TIMEOUT: float = 12.0
    COUNTRY_TIMEOUT: float = 12.0
    HOLIDAYS_TIMEOUT: float = 12.0
    EXCHANGE_TIMEOUT: float = 10.0
    EXCHANGE_QUOTE_CURRENCY: str = Field("BRL", description="Currency every exchange rate is quoted against")
    EXCHANGE_ACCESS_KEY: Optional[str] = Field(None, description="exchangerate.host access key, if the plan requires one")

    # --- Provider endpoints ---
    OPEN_METEO_GEOCODE_URL: str = "https://geocoding-api.open-meteo.com/v1/search"
    NOMINATIM_SEARCH_URL: str = "https://nominatim.openstreetmap.org/search"
    NOMINATIM_REVERSE_URL: str = "https://nominatim.openstreetmap.org/reverse"
    MAPS_CO_SEARCH_URL: str = "https://geocode.maps.co/search"
    OPEN_METEO_FORECAST_URL: str = "https://api.open-meteo.com/v1/forecast"
    RESTCOUNTRIES_URL: str = "https://restcountries.com/v3.1/alpha"
    NAGER_HOLIDAYS_URL: str = "https://date.nager.at/api/v3/PublicHolidays"
    EXCHANGE_RATE_URL: str = "https://api.exchangerate.host/latest"

    # Reject whole batches up front when the process has no outbound access
    CHECK_EXTERNAL_BEFORE_PROCESS: bool = True
    EXTERNAL_PROBE_TIMEOUT: float = 5.0
    API_CHECK_TIMEOUT: float = 8.0

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore"
    )

settings = Settings()
