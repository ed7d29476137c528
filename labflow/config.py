"""
Application Configuration Settings
Laboratory Order Result Lifecycle & Approval Service
"""

from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # Application
    APP_NAME: str = "Lab Order Results Service"
    APP_VERSION: str = "1.0.0"

    # Database
    DATABASE_URL: str = "sqlite:///./labflow.db"

    # Authentication (tokens are issued by the external identity service)
    JWT_SECRET_KEY: str = "change-this-jwt-secret"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Security
    ALLOWED_ORIGINS: List[str] = ["http://localhost:5173"]

    # Display
    LAB_TIMEZONE: str = "America/Lima"

    # Workflow
    APPROVAL_REQUIRES_SAMPLE_RECEIVED: bool = False  # save-results on a registered order needs a received sample
    PENDING_LIST_LIMIT: int = 200

    # Compliance
    AUDIT_LOG_ENABLED: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()

# Permission strings checked by the lifecycle and the HTTP layer
PERM_ORDERS_READ = "orders.read"
PERM_ORDERS_CREATE = "orders.create"
PERM_ORDERS_PRINT = "orders.print"
PERM_RESULTS_READ = "results.read"
PERM_RESULTS_UPDATE = "results.update"
PERM_RESULTS_APPROVE = "results.approve"
PERM_RESULTS_PRINT = "results.print"

ROLES = {
    "admin": {
        "name": "Administrator",
        "permissions": [
            PERM_ORDERS_READ, PERM_ORDERS_CREATE, PERM_ORDERS_PRINT,
            PERM_RESULTS_READ, PERM_RESULTS_UPDATE, PERM_RESULTS_APPROVE, PERM_RESULTS_PRINT,
        ]
    },
    "biologist": {
        "name": "Approving Biologist",
        "permissions": [
            PERM_ORDERS_READ, PERM_ORDERS_PRINT,
            PERM_RESULTS_READ, PERM_RESULTS_UPDATE, PERM_RESULTS_APPROVE, PERM_RESULTS_PRINT,
        ]
    },
    "technician": {
        "name": "Lab Technician",
        "permissions": [PERM_ORDERS_READ, PERM_RESULTS_READ, PERM_RESULTS_UPDATE]
    },
    "reception": {
        "name": "Reception",
        "permissions": [PERM_ORDERS_READ, PERM_ORDERS_CREATE, PERM_ORDERS_PRINT, PERM_RESULTS_READ, PERM_RESULTS_PRINT]
    },
    "read_only": {
        "name": "Read-Only",
        "permissions": [PERM_ORDERS_READ, PERM_RESULTS_READ]
    }
}
