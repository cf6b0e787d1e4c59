import os
from dotenv import load_dotenv

load_dotenv()

class Settings:
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./planner.db")
    SECRET_KEY: str = os.getenv("SECRET_KEY")
    ALGORITHM: str = os.getenv("ALGORITHM", "HS256")
    CELERY_BROKER_URL: str = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
    CELERY_RESULT_BACKEND: str = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/0")

    # Where the browser lands after an OAuth round trip
    APP_BASE_URL: str = os.getenv("APP_BASE_URL", "http://localhost:3000")
    # Public URL of this API, used to build OAuth redirect URIs
    PUBLIC_SERVER_URL: str = os.getenv("PUBLIC_SERVER_URL", "http://localhost:8000")

    # Shared secret for the external scheduler hitting the cron endpoint
    CRON_SECRET: str = os.getenv("CRON_SECRET")

    # Twitter / X Settings
    X_CLIENT_ID: str = os.getenv("X_CLIENT_ID")
    X_CLIENT_SECRET: str = os.getenv("X_CLIENT_SECRET")

    # LinkedIn Settings
    LINKEDIN_CLIENT_ID: str = os.getenv("LINKEDIN_CLIENT_ID")
    LINKEDIN_CLIENT_SECRET: str = os.getenv("LINKEDIN_CLIENT_SECRET")

    # Facebook app, also used for Instagram
    FACEBOOK_APP_ID: str = os.getenv("FACEBOOK_APP_ID")
    FACEBOOK_APP_SECRET: str = os.getenv("FACEBOOK_APP_SECRET")

    HTTP_TIMEOUT_SECONDS: float = float(os.getenv("HTTP_TIMEOUT_SECONDS", 30))

    # Publishing pipeline
    RECONCILE_BATCH_SIZE: int = int(os.getenv("RECONCILE_BATCH_SIZE", 10))
    RECONCILE_INTERVAL_SECONDS: int = int(os.getenv("RECONCILE_INTERVAL_SECONDS", 60))
    # 0 keeps retrying a failing post forever
    MAX_PUBLISH_ATTEMPTS: int = int(os.getenv("MAX_PUBLISH_ATTEMPTS", 0))
    INSTAGRAM_POLL_ATTEMPTS: int = int(os.getenv("INSTAGRAM_POLL_ATTEMPTS", 10))
    INSTAGRAM_POLL_INTERVAL_SECONDS: float = float(os.getenv("INSTAGRAM_POLL_INTERVAL_SECONDS", 2))

    # Content generation service
    GENERATION_API_URL: str = os.getenv("GENERATION_API_URL", "http://localhost:8081")
    GENERATION_API_KEY: str = os.getenv("GENERATION_API_KEY")

    def redirect_uri(self, platform: str) -> str:
        return f"{self.PUBLIC_SERVER_URL.rstrip('/')}/api/auth/{platform}/callback"


settings = Settings()
