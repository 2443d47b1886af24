"""Application configuration using pydantic-settings.

Covers the remote signing service endpoint, its TLS material and the
local token backends (PKCS#11 ID-card middleware or a software key).
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Remote signing service
    # ======================
    signing_service_url: str = Field(
        default="https://localhost:8080",
        description="Base URL of the signing service (serves /p1, /p2, /mid)",
    )
    http_timeout: float = Field(default=25.0, gt=0, description="Transport timeout in seconds")
    ca_bundle: Optional[str] = Field(
        default=None, description="CA bundle used to verify the signing service"
    )
    client_cert: Optional[str] = Field(default=None, description="TLS client certificate (PEM)")
    client_key: Optional[str] = Field(default=None, description="TLS client private key (PEM)")

    # ======================
    # Token
    # ======================
    token_backend: str = Field(
        default="auto", description="Token backend: auto, pkcs11 or software"
    )
    pkcs11_lib: Optional[str] = Field(
        default=None, description="Path to the PKCS#11 module (e.g. opensc-pkcs11.so)"
    )
    pkcs11_token_label: Optional[str] = Field(
        default=None, description="Substring of the token label holding the signing key"
    )
    pkcs11_slot: Optional[int] = Field(default=None, description="Fixed PKCS#11 slot id")
    software_token_key: Optional[str] = Field(
        default=None, description="PEM private key or PKCS#12 file for the software token"
    )
    software_token_cert: Optional[str] = Field(
        default=None, description="PEM certificate for the software token"
    )
    software_token_password: Optional[str] = Field(
        default=None, description="Password of the software token key file"
    )

    # ======================
    # Presentation
    # ======================
    ui_language: str = Field(default="et", description="Language for token UI and messages")

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=False, description="Enable debug logging")

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    @property
    def has_pkcs11(self) -> bool:
        """Check if a PKCS#11 module is configured."""
        return bool(self.pkcs11_lib)

    @property
    def has_software_token(self) -> bool:
        """Check if a software token key is configured."""
        return bool(self.software_token_key)

    @property
    def client_certificate(self) -> Optional[tuple[str, str]]:
        """TLS client certificate pair, if both halves are configured."""
        if self.client_cert and self.client_key:
            return (self.client_cert, self.client_key)
        return None

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "service": {
                "url": self.signing_service_url,
                "timeout": self.http_timeout,
                "ca_bundle": self.ca_bundle or "(system)",
                "client_cert": self.client_cert or "(not set)",
                "client_key": "***" if self.client_key else "(not set)",
            },
            "token": {
                "backend": self.token_backend,
                "pkcs11_lib": self.pkcs11_lib or "(not set)",
                "pkcs11_token_label": self.pkcs11_token_label or "(any)",
                "pkcs11_slot": self.pkcs11_slot,
                "software_token_key": self.software_token_key or "(not set)",
                "software_token_password": "***" if self.software_token_password else "(not set)",
            },
            "ui_language": self.ui_language,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
