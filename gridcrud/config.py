import os
from typing import Optional


class Config:
    """Configuration management for gridcrud."""

    # Database configuration
    DB_TYPE: str = os.getenv("GRIDCRUD_DB_TYPE", "sqlite")
    DB_URL: Optional[str] = os.getenv("GRIDCRUD_DB_URL")
    DB_HOST: Optional[str] = os.getenv("GRIDCRUD_DB_HOST")
    DB_PORT: Optional[str] = os.getenv("GRIDCRUD_DB_PORT")
    DB_NAME: Optional[str] = os.getenv("GRIDCRUD_DB_NAME")
    DB_USER: Optional[str] = os.getenv("GRIDCRUD_DB_USER")
    DB_PASSWORD: Optional[str] = os.getenv("GRIDCRUD_DB_PASSWORD")

    # Pool settings (ignored by SQLite)
    DB_POOL_SIZE: int = int(os.getenv("GRIDCRUD_DB_POOL_SIZE", "10"))
    DB_MAX_OVERFLOW: int = int(os.getenv("GRIDCRUD_DB_MAX_OVERFLOW", "20"))
    DB_POOL_RECYCLE: int = int(os.getenv("GRIDCRUD_DB_POOL_RECYCLE", "3600"))

    # Grid rendering defaults
    PAGE_SIZE: int = int(os.getenv("GRIDCRUD_PAGE_SIZE", "50"))
    TEXTAREA_THRESHOLD: int = int(os.getenv("GRIDCRUD_TEXTAREA_THRESHOLD", "50"))

    # Audit trail
    AUDIT_ENABLED: bool = os.getenv("GRIDCRUD_AUDIT_ENABLED", "false").lower() == "true"
    AUDIT_TABLE: str = os.getenv("GRIDCRUD_AUDIT_TABLE", "crud_audit")

    # Seed the demo contacts table on startup
    SEED_DEMO: bool = os.getenv("GRIDCRUD_SEED_DEMO", "false").lower() == "true"

    # Server settings for `python -m gridcrud`
    HOST: str = os.getenv("GRIDCRUD_HOST", "127.0.0.1")
    PORT: int = int(os.getenv("GRIDCRUD_PORT", "8000"))
    RELOAD: bool = os.getenv("GRIDCRUD_RELOAD", "false").lower() == "true"

    @classmethod
    def get_database_type(cls) -> str:
        """Get the database type (sqlite, postgresql, mysql)."""
        return cls.DB_TYPE.lower()

    @classmethod
    def get_page_size(cls) -> int:
        """Get the default number of rows per page."""
        return cls.PAGE_SIZE

    @classmethod
    def get_textarea_threshold(cls) -> int:
        """Get the value length at which plain text cells switch to a textarea."""
        return cls.TEXTAREA_THRESHOLD

    @classmethod
    def is_audit_enabled(cls) -> bool:
        return cls.AUDIT_ENABLED

    @classmethod
    def get_audit_table(cls) -> str:
        return cls.AUDIT_TABLE

    @classmethod
    def get_database_config(cls) -> dict:
        """Get database configuration as a dictionary, merging the URL with discrete settings."""
        raw_config = {
            "type": cls.get_database_type(),
            "url": cls.DB_URL,
            "host": cls.DB_HOST,
            "port": cls.DB_PORT,
            "name": cls.DB_NAME,
            "user": cls.DB_USER,
            "password": cls.DB_PASSWORD,
        }

        if raw_config["type"] in ["postgresql", "mysql", "mariadb"]:
            raw_config.update({
                "pool_size": cls.DB_POOL_SIZE,
                "max_overflow": cls.DB_MAX_OVERFLOW,
                "pool_recycle": cls.DB_POOL_RECYCLE,
            })

        from .config_parser import parse_database_config
        return parse_database_config(raw_config)
