"""
Configuration management for Lead to Order.

Loads environment variables and provides typed config access.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Find project root and load .env
PROJECT_ROOT = Path(__file__).parent.parent.parent
load_dotenv(PROJECT_ROOT / '.env')


class Config:
    """Lead to Order configuration."""

    # Environment
    LTO_ENV: str = os.getenv('LTO_ENV', 'dev')

    # Apps Script web endpoint backing the spreadsheet
    SHEET_SCRIPT_URL: str = os.getenv('SHEET_SCRIPT_URL', '')
    SHEET_REQUEST_TIMEOUT: float = float(os.getenv('SHEET_REQUEST_TIMEOUT', '30'))

    # Sheet (tab) names
    LEADS_SHEET: str = os.getenv('LEADS_SHEET', 'FMS')
    FOLLOW_UP_SHEET: str = os.getenv('FOLLOW_UP_SHEET', 'Flw-Up')
    ENQUIRY_SHEET: str = os.getenv('ENQUIRY_SHEET', 'Enquiery')
    LOGIN_SHEET: str = os.getenv('LOGIN_SHEET', 'Login')

    # Record numbering and session
    LEAD_NO_PREFIX: str = os.getenv('LEAD_NO_PREFIX', 'LN')
    USER_EMAIL_DOMAIN: str = os.getenv('USER_EMAIL_DOMAIN', 'leadtoorder.com')

    # Refresh loop interval (seconds)
    REFRESH_INTERVAL: int = int(os.getenv('REFRESH_INTERVAL', '60'))

    # Local echo store
    DB_PATH: Path = Path(os.getenv('LTO_DB_PATH', str(PROJECT_ROOT / 'data' / 'lead_to_order.db')))

    # Logging (set LTO_LOG_LEVEL=DEBUG for verbose output)
    LOG_LEVEL: str = os.getenv('LTO_LOG_LEVEL', 'INFO')
    LOG_FILE: str = os.getenv('LTO_LOG_FILE', '')

    @classmethod
    def is_dev(cls) -> bool:
        return cls.LTO_ENV == 'dev'

    @classmethod
    def is_prod(cls) -> bool:
        return cls.LTO_ENV == 'prod'

    @classmethod
    def validate(cls) -> list[str]:
        """Validate required configuration. Returns list of errors."""
        errors = []

        if not cls.SHEET_SCRIPT_URL:
            errors.append("SHEET_SCRIPT_URL is required")
        elif not cls.SHEET_SCRIPT_URL.startswith(('http://', 'https://')):
            errors.append("SHEET_SCRIPT_URL must be an http(s) URL")

        if cls.SHEET_REQUEST_TIMEOUT <= 0:
            errors.append("SHEET_REQUEST_TIMEOUT must be positive")

        if cls.REFRESH_INTERVAL <= 0:
            errors.append("REFRESH_INTERVAL must be positive")

        return errors


# Singleton instance
config = Config()
