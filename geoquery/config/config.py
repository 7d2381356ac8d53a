from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # API configuration
    api_version: str = "1.0"
    log_level: str = "INFO"

    # API call limits
    max_api_calls_per_day: int = 2000

    # LLM configuration (any OpenAI-compatible endpoint, e.g. Ollama's /v1)
    openai_model: str = "llama3.2:3b"
    openai_api_key: str = "ollama"
    openai_base_url: str | None = "http://localhost:11434/v1"
    llm_temperature: float = 0.3
    llm_max_tokens: int = 500
    llm_timeout_s: float = 30.0

    # Retry policy for map collaborators (429 and 5xx only)
    map_max_retries: int = 2
    map_retry_delay_s: float = 0.5

    # OpenRouteService configuration
    ors_api_key: str = ""
    ors_base_url: str = "https://api.openrouteservice.org"
    ors_timeout_s: float = 30.0

    # Overpass configuration
    overpass_url: str = "https://overpass-api.de/api/interpreter"
    overpass_timeout_s: float = 30.0

    # Nominatim configuration
    nominatim_url: str = "https://nominatim.openstreetmap.org"
    nominatim_user_agent: str = "geoquery/1.0"
    nominatim_timeout_s: float = 5.0

    # Fallback location used when the client sends (0, 0)
    default_lat: float = 29.7604
    default_lng: float = -95.3698
    default_city: str = "Houston"
    default_state: str = "TX"

    # MongoDB configuration for conversation memory
    memory_enabled: bool = True
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db_name: str = "geoquery"
    mongo_memory_collection: str = "conversation_memory"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
