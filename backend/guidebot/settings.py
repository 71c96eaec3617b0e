from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
	# OpenAI-compatible chat completions gateway
	gateway_api_key: str | None = Field(default=None, validation_alias="LLM_GATEWAY_API_KEY")
	gateway_base_url: str = Field(default="https://openrouter.ai/api/v1", validation_alias="LLM_GATEWAY_BASE_URL")
	gateway_model: str = Field(default="google/gemini-2.5-flash", validation_alias="LLM_GATEWAY_MODEL")
	# Connect/read timeout in seconds; a stalled stream surfaces as a transport error
	gateway_timeout: float = Field(default=60.0, validation_alias="LLM_GATEWAY_TIMEOUT")

	# Characters of the student's current code forwarded as context
	code_snippet_limit: int = Field(default=500, validation_alias="CODE_SNIPPET_LIMIT")

	# Database
	database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")
	# Unconfirmed conversations idle longer than this are purged
	retention_days: int = Field(default=7, validation_alias="RETENTION_DAYS")

	log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
