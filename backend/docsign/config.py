from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Application
    app_name: str = "DocSign"
    app_version: str = "1.0.0"
    environment: str = "production"
    debug: bool = False
    log_level: str = "INFO"

    # Database
    database_url: str = "postgresql+asyncpg://docsign:docsign@db:5432/docsign"
    db_pool_size: int = 10
    db_max_overflow: int = 10

    # Auth
    secret_key: str = "CHANGE_ME"
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 60

    # MinIO
    minio_endpoint: str = "minio:9000"
    minio_root_user: str = "docsign"
    minio_root_password: str = "CHANGE_ME"
    minio_bucket: str = "docsign-documents"
    minio_use_ssl: bool = False

    # Uploads
    max_upload_bytes: int = 25 * 1024 * 1024

    # Listings
    default_page_size: int = 5
    max_page_size: int = 100

    # Signature placement. Document-space coordinates are pixels of a page
    # rendered at reference_width.
    reference_width: int = 800
    default_position_x: float = 100.0
    default_position_y: float = 100.0
    default_font_size: int = 16
    default_font_family: str = "Arial"
    default_color: str = "#1E40AF"

    # Public signing links
    public_signing_base_url: str = "http://localhost:5173/sign"

    # CORS
    backend_cors_origins: list[str] = ["http://localhost", "http://localhost:5173"]

    model_config = {"env_file": ".env", "case_sensitive": False}


settings = Settings()
