"""
Chat Service Configuration

환경 변수를 통한 설정 관리
"""

from typing import List, Literal, Optional

from dotenv import load_dotenv
from pydantic_settings import BaseSettings

load_dotenv()  # .env 파일 로드


class Settings(BaseSettings):
    """Deal chat service 설정"""

    # Application
    app_name: str = "Devmarket Deal Chat"
    version: str = "1.0.0"
    debug: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = 8002

    # Backends
    storage_backend: Literal["mongodb", "memory"] = "mongodb"
    event_backend: Literal["kafka", "log"] = "kafka"

    # Database - MongoDB
    mongo_url: str = "mongodb://localhost:27017"
    mongodb_db_name: str = "devmarket"

    # JWT (검증만 수행, 발급은 auth 서비스 담당)
    secret_key: str = "your-secret-key-here"
    algorithm: str = "HS256"

    # CORS
    cors_origins: List[str] = ["http://localhost:3000"]

    # Chat
    max_message_length: int = 2000
    last_message_preview_length: int = 100
    platform_commission_rate: float = 0.05
    ws_send_queue_size: int = 100

    # Observability
    metrics_enabled: bool = True
    log_level: str = "INFO"
    log_dir: Optional[str] = None

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"  # 추가 환경변수 무시


settings = Settings()
