from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    sqlite_path: str = "/app/data/studydesk.db"

    default_model_type: str = "github"  # github or openai

    # managed backend: Azure-OpenAI-style REST deployment
    github_api_endpoint: str = ""
    github_api_key: str = ""  # set it in the .env file
    github_api_version: str = "2023-05-15"
    github_default_deployment: str = "gpt-4o-mini"
    github_max_input_chars: int = 15000

    # SDK backend
    openai_api_key: str = ""  # set it in the .env file
    openai_model: str = "gpt-4o-mini"
    openai_base_url: str = ""
    openai_max_input_chars: int = 15000

    min_text_chars: int = 100
    chat_max_chars: int = 15000
    feynman_reference_chars: int = 2000
    feynman_question_count: int = 5

    generation_timeout_s: float = 30.0
    chat_timeout_s: float = 20.0
    feynman_questions_timeout_s: float = 15.0
    feynman_evaluation_timeout_s: float = 30.0
    ping_timeout_s: float = 15.0

    # a failed quiz generation replaces the whole batch with mock data
    quiz_failure_falls_back: bool = True

    otel_enabled: bool = False


settings = Settings()
