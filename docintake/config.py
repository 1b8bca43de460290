"""Settings for the Document Intake service."""

import functools

import pydantic_settings

SettingsConfigDict = pydantic_settings.SettingsConfigDict
BaseSettings = pydantic_settings.BaseSettings


class Settings(BaseSettings):
  """Settings for the Document Intake service.

  Built once at start-up and handed to each component; nothing below the
  application factory reads the environment.
  """

  model_config = SettingsConfigDict(
      env_file='.env', env_file_encoding='utf-8', frozen=True, extra='ignore'
  )
  APP_NAME: str = 'Secure Document Upload'

  # Persistence
  DATABASE_URL: str = 'sqlite:///./docintake.db'

  # Uploads
  UPLOAD_DIR: str = './uploads'
  MAX_FILE_MB: int = 10
  MAX_FILES: int = 10
  ALLOWED_MIMES: str = ''

  # Lead System (TLD)
  TLD_BASE_URL: str = ''
  TLD_API_ID: str = ''
  TLD_API_KEY: str = ''
  TLD_AUTH_MODE: str = 'headers'  # 'headers' | 'basic'
  TLD_INGRESS_LEADS_PATH: str = '/api/ingress/leads'
  TLD_EGRESS_LEADS_PATH: str = '/api/egress/leads'
  HTTP_TIMEOUT_MS: int = 25000

  # Notification relay (Connex)
  CONNEX_TRIGGER_URL: str = ''
  CONNEX_BASIC_AUTH: str = ''

  # Operator listing
  ADMIN_USER: str = ''
  ADMIN_PASS: str = ''
  ADMIN_LIST_LIMIT: int = 200

  RECONCILE_WORKERS: int = 4

  @property
  def allowed_mimes(self) -> list[str]:
    return [m.strip() for m in self.ALLOWED_MIMES.split(',') if m.strip()]

  @property
  def max_file_bytes(self) -> int:
    return self.MAX_FILE_MB * 1024 * 1024

  @property
  def http_timeout_seconds(self) -> float:
    return self.HTTP_TIMEOUT_MS / 1000


@functools.lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Returns the process-wide settings, read from `.env` and the environment."""
  return Settings()
