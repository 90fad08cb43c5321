from pydantic_settings import BaseSettings
from typing import List

class Settings(BaseSettings):
    secret_key: str = "change-me"
    database_url: str = "sqlite:///./studio.db"
    backend_cors_origins: str = "http://localhost:3000"
    ollama_url: str = "http://localhost:11434"
    ollama_model: str = "llama3:8b"
    sql_echo: bool = False
    access_token_minutes: int = 60

    # cliente del asistente
    api_base_url: str = "http://localhost:8000"
    request_timeout: float = 30.0
    assistant_debug: bool = False

    class Config:
        env_file = ".env"
        extra = "allow"

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.backend_cors_origins.split(",") if origin.strip()]
