from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator

_PLACEHOLDER_KEYS = {"", "YOUR_API_KEY_HERE", "changeme", "change-me"}


class Settings(BaseSettings):
	gemini_api_key: str | None = Field(default=None, validation_alias="GEMINI_API_KEY")
	# Provider can be "vertex" (Vertex AI Express) or "ai_studio" (Generative Language API)
	gemini_provider: str = Field(default="ai_studio", validation_alias="GEMINI_PROVIDER")
	gemini_model: str = Field(default="gemini-2.5-flash", validation_alias="GEMINI_MODEL")
	gemini_timeout_seconds: float = Field(default=30, validation_alias="GEMINI_TIMEOUT_SECONDS")
	vertex_region: str = Field(default="us-central1", validation_alias="GEMINI_VERTEX_REGION")
	vertex_project: str | None = Field(default=None, validation_alias="GEMINI_VERTEX_PROJECT")

	# OpenRouter fallback configuration (optional)
	openrouter_api_key: str | None = Field(default=None, validation_alias="OPENROUTER_API_KEY")
	openrouter_model: str = Field(default="x-ai/grok-4-fast:free", validation_alias="OPENROUTER_MODEL")
	openrouter_base_url: str = Field(default="https://openrouter.ai/api/v1/chat/completions", validation_alias="OPENROUTER_BASE_URL")
	openrouter_referer: str = Field(default="https://localhost", validation_alias="OPENROUTER_HTTP_REFERER")
	openrouter_title: str = Field(default="Campus Records", validation_alias="OPENROUTER_TITLE")

	# Auth
	jwt_secret_key: str = Field(default="change-me", validation_alias="JWT_SECRET_KEY")
	jwt_algorithm: str = Field(default="HS256", validation_alias="JWT_ALGORITHM")
	access_token_expire_minutes: int = Field(default=120, validation_alias="ACCESS_TOKEN_EXPIRE_MINUTES")
	bcrypt_rounds: int = Field(default=12, ge=4, le=31, validation_alias="BCRYPT_ROUNDS")
	# Sessions idle longer than this are purged by the cleanup task
	session_retention_days: int = Field(default=7, validation_alias="SESSION_RETENTION_DAYS")

	# Seed admin, created on startup when both email and password are set
	seed_admin_email: str | None = Field(default=None, validation_alias="SEED_ADMIN_EMAIL")
	seed_admin_password: str | None = Field(default=None, validation_alias="SEED_ADMIN_PASSWORD")
	seed_admin_name: str = Field(default="Administrator", validation_alias="SEED_ADMIN_NAME")

	database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")
	log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

	model_config = SettingsConfigDict(env_file=".env", extra="ignore")

	@field_validator("gemini_api_key", "openrouter_api_key", mode="before")
	@classmethod
	def _drop_placeholder_keys(cls, value):
		if value is None:
			return None
		value = str(value).strip()
		if value in _PLACEHOLDER_KEYS:
			return None
		return value

	@field_validator("gemini_provider")
	@classmethod
	def _check_provider(cls, value: str) -> str:
		value = (value or "").strip().lower()
		if value not in ("vertex", "ai_studio"):
			raise ValueError("GEMINI_PROVIDER must be 'vertex' or 'ai_studio'")
		return value

	@property
	def ai_configured(self) -> bool:
		return bool(self.gemini_api_key)


settings = Settings()
