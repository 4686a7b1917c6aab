import os


def _list(value: str):
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings:
    REQUIRED = ("JWT_SECRET", "PLANTNET_API_KEY", "OPENAI_API_KEY", "STORAGE_BUCKET")

    def __init__(self):
        # identity provider
        self.JWT_SECRET = os.getenv("JWT_SECRET")
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.JWT_AUDIENCE = os.getenv("JWT_AUDIENCE")
        self.JWT_ISSUER = os.getenv("JWT_ISSUER")

        # stores
        self.DATABASE_URL = os.getenv("DATABASE_URL", "sqlite://db.sqlite3")
        self.REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
        self.STORAGE_BUCKET = os.getenv("STORAGE_BUCKET")
        self.PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000")

        # external APIs
        self.PLANTNET_API_KEY = os.getenv("PLANTNET_API_KEY")
        self.PLANTNET_API_URL = os.getenv("PLANTNET_API_URL", "https://my-api.plantnet.org/v2")
        self.PLANTNET_PROJECT = os.getenv("PLANTNET_PROJECT", "all")
        self.OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
        self.OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL")
        self.OPENAI_MODELS = _list(os.getenv("OPENAI_MODELS", "gpt-4o-mini,gpt-4o"))

        self.IDENTIFY_LIMIT = int(os.getenv("IDENTIFY_LIMIT", "2"))

        # watering device on the local network
        self.DEVICE_SUBNET = os.getenv("DEVICE_SUBNET", "192.168.86")
        self.DEVICE_TARGET_IP = os.getenv("DEVICE_TARGET_IP", "192.168.86.62")
        self.DEVICE_PORT = int(os.getenv("DEVICE_PORT", "8080"))
        self.DEVICE_SCAN_WORKERS = int(os.getenv("DEVICE_SCAN_WORKERS", "32"))

        self.CORS_ORIGINS = _list(os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173"))
        self.LOG_DIR = os.getenv("LOG_DIR", "logs")
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")

    def missing(self):
        return [name for name in self.REQUIRED if not getattr(self, name)]

    def validate(self):
        """Raise if any credential the service cannot run without is absent."""
        missing = self.missing()
        if missing:
            raise RuntimeError(f"Missing required environment variables: {', '.join(missing)}")


settings = Settings()
