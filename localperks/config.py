"""
Configuration management for the LocalPerks points engine.
"""
import os
from decimal import Decimal
from dotenv import load_dotenv

load_dotenv()


class BaseConfig:
    """Base configuration."""
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Bearer tokens issued by the identity layer
    JWT_ALGORITHM = 'HS256'

    # Points program defaults (overridden per-tenant by TenantPointsConfig)
    DEFAULT_POINT_FACE_VALUE = Decimal(os.getenv('DEFAULT_POINT_FACE_VALUE', '0.01'))  # £ per point
    DEFAULT_BASE_POINTS_PER_POUND = int(os.getenv('DEFAULT_BASE_POINTS_PER_POUND', '10'))
    MAX_DISCOUNT_AMOUNT = int(os.getenv('MAX_DISCOUNT_AMOUNT', '20'))  # £1 - £20 discounts

    # Vouchers
    VOUCHER_VALID_DAYS = int(os.getenv('VOUCHER_VALID_DAYS', '365'))
    VOUCHER_CODE_MAX_ATTEMPTS = int(os.getenv('VOUCHER_CODE_MAX_ATTEMPTS', '10'))


class DevelopmentConfig(BaseConfig):
    """Development configuration."""
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.getenv(
        'DATABASE_URL',
        'sqlite:///localperks_dev.db'  # SQLite fallback for local dev
    )


class ProductionConfig(BaseConfig):
    """Production configuration."""
    DEBUG = False

    _db_url = os.getenv('DATABASE_URL', '')
    if _db_url.startswith('postgres://'):
        # SQLAlchemy requires postgresql:// not postgres://
        _db_url = _db_url.replace('postgres://', 'postgresql://', 1)

    SQLALCHEMY_DATABASE_URI = _db_url

    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_size': 5,
        'pool_recycle': 300,
        'pool_pre_ping': True,  # Verify connections before using
    }

    # Override SECRET_KEY for production - must be set via environment
    _secret_key = os.getenv('SECRET_KEY', '')

    @classmethod
    def validate_secret_key(cls) -> str:
        """
        Validate SECRET_KEY in production environment.

        The same key verifies bearer tokens, so a weak key lets anyone mint
        a customer identity and spend their points.

        Raises:
            RuntimeError: If SECRET_KEY is missing, empty, or contains unsafe values
        """
        if not cls._secret_key:
            raise RuntimeError(
                "CRITICAL: SECRET_KEY environment variable is not set!\n"
                "Generate one with: python -c \"import secrets; print(secrets.token_hex(32))\""
            )

        insecure_patterns = ['dev', 'change', 'default', 'test', 'secret', 'password']
        lower_key = cls._secret_key.lower()
        for pattern in insecure_patterns:
            if pattern in lower_key:
                raise RuntimeError(
                    f"CRITICAL: SECRET_KEY contains '{pattern}' which suggests it's not secure!\n"
                    "Generate one with: python -c \"import secrets; print(secrets.token_hex(32))\""
                )

        if len(cls._secret_key) < 32:
            raise RuntimeError(
                "CRITICAL: SECRET_KEY is too short (minimum 32 characters required)!"
            )

        return cls._secret_key

    SECRET_KEY = _secret_key  # Validated at app startup


class TestingConfig(BaseConfig):
    """Testing configuration."""
    TESTING = True
    SECRET_KEY = 'testing-signing-key-not-for-production-use'
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'


config_map = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig
}


def get_config(config_name: str = 'development'):
    """Get configuration class by name."""
    return config_map.get(config_name, DevelopmentConfig)


def validate_config(config_name: str = 'development') -> None:
    """
    Validate configuration before app startup.

    Raises:
        RuntimeError: If validation fails in production
    """
    if config_name == 'production':
        ProductionConfig.validate_secret_key()
