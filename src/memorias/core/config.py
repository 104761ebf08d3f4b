"""Configuration for memorias service."""
import os
from datetime import date
from typing import Optional
from pydantic import BaseModel, Field, field_validator, model_validator


class Config(BaseModel):
    """Configuration settings for the memorias service."""

    # Reference (birth) date used for every elapsed-age computation
    birth_date: date = Field(default_factory=lambda: os.getenv("BIRTH_DATE", "2022-11-11"), validate_default=True)

    # Storage collaborator settings
    storage_backend: str = Field(default_factory=lambda: os.getenv("STORAGE_BACKEND", ""))
    supabase_url: str = Field(default_factory=lambda: os.getenv("SUPABASE_URL", ""))
    supabase_key: str = Field(default_factory=lambda: os.getenv("SUPABASE_ANON_KEY", ""))
    storage_bucket: str = Field(default_factory=lambda: os.getenv("STORAGE_BUCKET", "memorias"))
    request_timeout: float = Field(default_factory=lambda: float(os.getenv("REQUEST_TIMEOUT", "30")))

    # Local storage settings
    data_dir: str = Field(default_factory=lambda: os.getenv("DATA_DIR", "data"))
    tables_dir: Optional[str] = None
    media_dir: Optional[str] = None
    public_base_url: str = Field(default_factory=lambda: os.getenv("PUBLIC_BASE_URL", "http://localhost:8000"))

    # Upload settings
    max_image_size: int = Field(default=10 * 1024 * 1024)
    max_video_size: int = Field(default=100 * 1024 * 1024)
    image_max_width: int = Field(default_factory=lambda: int(os.getenv("IMAGE_MAX_WIDTH", "1920")))
    image_max_height: int = Field(default_factory=lambda: int(os.getenv("IMAGE_MAX_HEIGHT", "1080")))
    image_quality: float = Field(default_factory=lambda: float(os.getenv("IMAGE_QUALITY", "0.8")))
    resize_images: bool = Field(default_factory=lambda: os.getenv("RESIZE_IMAGES", "true").lower() in ("1", "true", "yes"))

    # Service settings
    host: str = Field(default="0.0.0.0")
    port: int = Field(default_factory=lambda: int(os.getenv("PORT", "8000")))

    @field_validator("birth_date", mode="before")
    @classmethod
    def parse_birth_date(cls, value):
        if isinstance(value, str):
            try:
                return date.fromisoformat(value.strip())
            except ValueError as e:
                raise ValueError(f"BIRTH_DATE must be an ISO date (YYYY-MM-DD), got {value!r}") from e
        return value

    @model_validator(mode='after')
    def set_storage_backend(self):
        if not self.storage_backend:
            self.storage_backend = "supabase" if self.supabase_url else "local"
        if self.storage_backend not in ("local", "supabase"):
            raise ValueError(f"Unknown STORAGE_BACKEND: {self.storage_backend}")
        if self.storage_backend == "supabase" and not self.supabase_url:
            raise ValueError("SUPABASE_URL must be set when STORAGE_BACKEND is supabase")
        return self

    @model_validator(mode='after')
    def set_local_dirs(self):
        # Explicitly configured directories win over data_dir
        if self.tables_dir is None:
            self.tables_dir = f"{self.data_dir}/tables"
        if self.media_dir is None:
            self.media_dir = f"{self.data_dir}/media"
        return self


# Global config instance


if __name__ == "__main__":
    import dotenv
    dotenv.load_dotenv()
    config = Config()
    print(f"{config.birth_date=}")
    print(f"{config.storage_backend=}")
    print(f"{config.tables_dir=}")
    print(f"{config.media_dir=}")

else:
    config = Config()
