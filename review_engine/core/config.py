from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="REVIEW_ENGINE_", env_file=".env", extra="ignore")

    database_url: str = "sqlite:///./review_engine.db"
    log_level: str = "INFO"

    # "student": the approving teacher's decision is enough to promote the student.
    # "cohort": every gating-required member of the promotion must be approved.
    cohort_gate_policy: Literal["student", "cohort"] = "student"

    # reject requires a reason or an attachment (voice note / file)
    require_rejection_justification: bool = True


settings = Settings()
