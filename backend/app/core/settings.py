import os


class Settings:
    def __init__(self):
        self.app_name = "Guardian Link Service"
        self.api_version = "1.0.0"
        self.environment = os.getenv("GUARDIANLINK_ENV", "development")
        self.secret_key = os.getenv("SECRET_KEY", "CHANGE_ME")
        self.SECRET_KEY = self.secret_key
        self.access_token_expire_minutes = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))
        self.ACCESS_TOKEN_EXPIRE_MINUTES = self.access_token_expire_minutes
        self.database_url = os.getenv("GUARDIANLINK_DATABASE_URL", "sqlite:///./guardianlink.db")
        self.log_level = os.getenv("LOG_LEVEL", "INFO")

        # Link policy knobs
        self.confirmation_expiry_hours = int(os.getenv("CONFIRMATION_EXPIRY_HOURS", "72"))
        self.confirmation_code_length = int(os.getenv("CONFIRMATION_CODE_LENGTH", "6"))
        self.default_confirmation_method = os.getenv("DEFAULT_CONFIRMATION_METHOD", "sms")
        self.retention_days = int(os.getenv("RETENTION_DAYS", "90"))
        self.max_pending_requests_per_guardian = int(os.getenv("MAX_PENDING_REQUESTS_PER_GUARDIAN", "5"))
        self.min_unlink_reason_length = int(os.getenv("MIN_UNLINK_REASON_LENGTH", "10"))


_settings_instance = None


def get_settings():
    """Return a singleton Settings instance."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
