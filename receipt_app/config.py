from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    # App
    APP_NAME: str = "Receipt Extractor"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # CORS
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000"]

    # OCR
    OCR_PROVIDER: str = "tesseract"  # "tesseract" or "mock"
    TESSERACT_CMD: str = "tesseract"
    OCR_LANGUAGES: str = "eng+spa"
    PDF_DPI: int = 300

    # Uploads
    UPLOAD_DIR: str = "uploads"
    MAX_UPLOAD_MB: int = 10

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
