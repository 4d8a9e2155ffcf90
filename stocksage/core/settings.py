from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_INSIGHT_SYSTEM_PROMPT = """You are StockSage AI, an educational stock market assistant. You provide educational insights about stocks and investing.

CRITICAL RULES:
1. You are NOT a financial advisor. Always include disclaimers.
2. Never give specific buy/sell recommendations or guarantee profits.
3. Always suggest users verify information independently.
4. Use uncertainty language ("may", "could", "historically", "some analysts believe").
5. If asked "what should I buy?", respond with an educational framework instead.

When analyzing a stock, structure your response with:
- **Thesis**: What the company does and potential investment thesis
- **Key Risks**: What could go wrong
- **Potential Catalysts**: What could drive growth
- **Key Metrics to Watch**: Important numbers to monitor
- **What to Verify**: Suggestions for further research

Always end with: "Remember: This is educational content only, not financial advice. Do your own research before making investment decisions.\""""


class Settings(BaseSettings):
    """Runtime configuration loaded from env vars and local env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_env: str = Field(default="local", alias="APP_ENV")
    log_level: str | None = Field(default=None, alias="LOG_LEVEL")

    ai_gateway_url: str = Field(default="https://ai.gateway.lovable.dev/v1", alias="AI_GATEWAY_URL")
    ai_gateway_api_key: str | None = Field(default=None, alias="AI_GATEWAY_API_KEY")
    ai_gateway_model: str = Field(default="google/gemini-3-flash-preview", alias="AI_GATEWAY_MODEL")
    ai_gateway_timeout_seconds: float = Field(default=60.0, alias="AI_GATEWAY_TIMEOUT_SECONDS", gt=0)
    insight_system_prompt: str = Field(default=DEFAULT_INSIGHT_SYSTEM_PROMPT, alias="INSIGHT_SYSTEM_PROMPT")
    cors_allow_origins: list[str] = Field(default_factory=lambda: ["*"], alias="CORS_ALLOW_ORIGINS")
    stream_max_deferred_chars: int = Field(default=65536, alias="STREAM_MAX_DEFERRED_CHARS", ge=1024)

    insight_endpoint_url: str = Field(
        default="http://localhost:8000/api/stock-insight",
        alias="INSIGHT_ENDPOINT_URL",
    )
    insight_api_key: str | None = Field(default=None, alias="INSIGHT_API_KEY")
    insight_timeout_seconds: float = Field(default=120.0, alias="INSIGHT_TIMEOUT_SECONDS", gt=0)

    @property
    def enable_swagger(self) -> bool:
        return self.app_env.lower() == "local"

    @property
    def effective_log_level(self) -> str:
        if self.log_level:
            return self.log_level.upper()
        return "DEBUG" if self.app_env.lower() == "local" else "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings()
