from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore')

    database_url: str = 'sqlite:///./queuedesk.db'
    kv_backend: str = 'sql'

    default_pm_password: str = 'Bailey'
    default_super_password: str = 'Eunice'
    reset_username: str = 'superadmin'

    display_timezone: str = 'Asia/Taipei'
    log_retention_days: int = 60

    log_level: str = 'INFO'
    json_logs: bool = False

    @property
    def database_url_normalized(self) -> str:
        url = self.database_url.strip()
        if url.startswith('postgres://'):
            return 'postgresql+psycopg://' + url[len('postgres://') :]
        if url.startswith('postgresql://'):
            return 'postgresql+psycopg://' + url[len('postgresql://') :]
        return url


settings = Settings()
