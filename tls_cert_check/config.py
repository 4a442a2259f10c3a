"""
Configuration management for TLS Certificate Check.
"""

import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from tls_cert_check.ssl_info import TimestampFormat
from tls_cert_check.targets import Target


class VerifyMode(str, Enum):
    """Peer verification mode for network probes."""

    NONE = "none"
    PEER = "peer"


TLS_VERSIONS = ("TLSv1", "TLSv1_1", "TLSv1_2", "TLSv1_3")

# Network probes never negotiate above this version unless configured otherwise
DEFAULT_MAX_VERSION = "TLSv1_2"


def _parse_bool(value: str) -> bool:
    return value.lower() in ("true", "1", "yes")


class Config(BaseModel):
    """Configuration model for TLS Certificate Check."""

    # Events
    tag: str = Field(default="ssl_check")
    log_events: bool = Field(default=True)
    metric_events: bool = Field(default=False)
    event_prefix: str = Field(default="")
    timestamp_format: TimestampFormat = Field(default=TimestampFormat.ISO)

    # Targets
    hosts: List[str] = Field(default_factory=list)
    paths: List[str] = Field(default_factory=list)

    # Check settings
    interval: int = Field(default=600, ge=1)
    timeout: int = Field(default=5, ge=1)

    # Trust store
    ca_path: Optional[str] = None
    ca_file: Optional[str] = None

    # TLS client settings
    sni: bool = Field(default=True)
    verify_mode: VerifyMode = Field(default=VerifyMode.PEER)
    cert: Optional[str] = None
    key: Optional[str] = None
    ssl_min_version: Optional[str] = None
    ssl_max_version: Optional[str] = Field(default=DEFAULT_MAX_VERSION)

    # Output
    output_file: Optional[str] = None

    # Logging
    log_level: str = Field(default="INFO")
    log_file: Optional[str] = None

    # Metrics server
    server_enabled: bool = Field(default=True)
    port: int = Field(default=3201, ge=1, le=65535)
    bind_address: str = Field(default="127.0.0.1")
    allowed_ips: List[str] = Field(default_factory=lambda: ["127.0.0.1", "::1"])
    enable_ip_whitelist: bool = Field(default=True)

    @field_validator("tag")
    @classmethod
    def validate_tag(cls, v: str) -> str:
        """Validate tag is not empty."""
        if not v or not v.strip():
            raise ValueError("tag can not be empty")
        return v

    @field_validator("hosts")
    @classmethod
    def validate_hosts(cls, v: List[str]) -> List[str]:
        """Validate every host entry parses as host[:port]."""
        for entry in v:
            Target.parse_host(entry)
        return v

    @field_validator("ca_path")
    @classmethod
    def validate_ca_path(cls, v: Optional[str]) -> Optional[str]:
        """Validate ca_path is an existing directory."""
        if v is not None and not Path(v).is_dir():
            raise ValueError(f"ca_path should be a dir: {v}")
        return v

    @field_validator("ca_file", "cert", "key")
    @classmethod
    def validate_existing_file(cls, v: Optional[str]) -> Optional[str]:
        """Validate the referenced file exists."""
        if v is not None and not Path(v).is_file():
            raise ValueError(f"should be a file: {v}")
        return v

    @field_validator("verify_mode", mode="before")
    @classmethod
    def validate_verify_mode(cls, v: Any) -> Any:
        """Validate verify mode."""
        if isinstance(v, str):
            v = v.lower()
            if v not in {mode.value for mode in VerifyMode}:
                raise ValueError(f"verify_mode must be one of none, peer, got '{v}'")
        return v

    @field_validator("timestamp_format", mode="before")
    @classmethod
    def validate_timestamp_format(cls, v: Any) -> Any:
        """Validate timestamp format, accepting 'epoch-milliseconds' for 'epochmillis'."""
        if isinstance(v, str):
            return TimestampFormat(v.lower())
        return v

    @field_validator("ssl_min_version", "ssl_max_version")
    @classmethod
    def validate_tls_version(cls, v: Optional[str]) -> Optional[str]:
        """Validate TLS protocol version names."""
        if v is not None and v not in TLS_VERSIONS:
            raise ValueError(f"TLS version must be one of {TLS_VERSIONS}, got '{v}'")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("allowed_ips")
    @classmethod
    def validate_allowed_ips(cls, v: List[str]) -> List[str]:
        """Validate IP addresses and CIDR blocks in allowed_ips list."""
        import ipaddress

        validated_ips = []
        for ip_str in v:
            try:
                if "/" in ip_str:
                    ipaddress.ip_network(ip_str, strict=False)
                else:
                    ipaddress.ip_address(ip_str)
                validated_ips.append(ip_str)
            except ValueError as e:
                logging.error(f"Invalid IP address or network '{ip_str}': {e}")

        # Localhost always allowed for health checks
        for localhost in ["127.0.0.1", "::1"]:
            if localhost not in validated_ips:
                validated_ips.append(localhost)

        return validated_ips

    @model_validator(mode="after")
    def validate_client_certificate(self) -> "Config":
        """cert and key must be given together or not at all."""
        if (self.cert is None) != (self.key is None):
            raise ValueError("cert and key must be given together")
        return self

    @model_validator(mode="after")
    def validate_version_range(self) -> "Config":
        """ssl_min_version can not be above ssl_max_version."""
        if self.ssl_min_version and self.ssl_max_version:
            if TLS_VERSIONS.index(self.ssl_min_version) > TLS_VERSIONS.index(
                self.ssl_max_version
            ):
                raise ValueError("ssl_min_version can not be above ssl_max_version")
        return self

    def targets(self) -> List[Target]:
        """Targets to check, hosts first then paths."""
        return [Target.parse_host(host) for host in self.hosts] + [
            Target.for_path(path) for path in self.paths
        ]


def load_config(config_path: Optional[str] = None) -> Config:
    """
    Load configuration from file or environment variables.

    Args:
        config_path: Path to configuration file

    Returns:
        Config object
    """
    config_data: Dict[str, Any] = {}

    if config_path:
        config_file = Path(config_path)
        if config_file.exists():
            with open(config_file, "r", encoding="utf-8") as f:
                config_data = yaml.safe_load(f) or {}
        else:
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

    env_overrides = _get_env_overrides()
    config_data.update(env_overrides)

    return Config(**config_data)


def _get_env_overrides() -> dict:
    """Get configuration overrides from environment variables."""
    env_mapping: Dict[str, tuple[str, Callable[[str], Any]]] = {
        "TLS_CHECK_TAG": ("tag", str),
        "TLS_CHECK_INTERVAL": ("interval", int),
        "TLS_CHECK_TIMEOUT": ("timeout", int),
        "TLS_CHECK_CA_PATH": ("ca_path", str),
        "TLS_CHECK_CA_FILE": ("ca_file", str),
        "TLS_CHECK_SNI": ("sni", _parse_bool),
        "TLS_CHECK_VERIFY_MODE": ("verify_mode", str),
        "TLS_CHECK_CERT": ("cert", str),
        "TLS_CHECK_KEY": ("key", str),
        "TLS_CHECK_SSL_MIN_VERSION": ("ssl_min_version", str),
        "TLS_CHECK_SSL_MAX_VERSION": ("ssl_max_version", str),
        "TLS_CHECK_LOG_EVENTS": ("log_events", _parse_bool),
        "TLS_CHECK_METRIC_EVENTS": ("metric_events", _parse_bool),
        "TLS_CHECK_EVENT_PREFIX": ("event_prefix", str),
        "TLS_CHECK_TIMESTAMP_FORMAT": ("timestamp_format", str),
        "TLS_CHECK_OUTPUT_FILE": ("output_file", str),
        "TLS_CHECK_LOG_LEVEL": ("log_level", str),
        "TLS_CHECK_LOG_FILE": ("log_file", str),
        "TLS_CHECK_SERVER_ENABLED": ("server_enabled", _parse_bool),
        "TLS_CHECK_PORT": ("port", int),
        "TLS_CHECK_BIND_ADDRESS": ("bind_address", str),
        "TLS_CHECK_ENABLE_IP_WHITELIST": ("enable_ip_whitelist", _parse_bool),
    }

    overrides = {}
    for env_var, (config_key, converter) in env_mapping.items():
        value = os.getenv(env_var)
        if value is not None:
            try:
                overrides[config_key] = converter(value)
            except (ValueError, TypeError) as e:
                logging.warning(f"Invalid value for {env_var}: {value} - {e}")

    # List variables
    hosts = os.getenv("TLS_CHECK_HOSTS")
    if hosts:
        overrides["hosts"] = [h.strip() for h in hosts.split(",") if h.strip()]

    paths = os.getenv("TLS_CHECK_PATHS")
    if paths:
        overrides["paths"] = [p.strip() for p in paths.split(",") if p.strip()]

    allowed_ips = os.getenv("TLS_CHECK_ALLOWED_IPS")
    if allowed_ips:
        overrides["allowed_ips"] = [ip.strip() for ip in allowed_ips.split(",")]

    return overrides


def create_example_config(output_path: str = "config.example.yaml") -> None:
    """Create an example configuration file."""
    example_config = {
        "tag": "ssl_check",
        "hosts": ["example.com", "example.org:8443"],
        "paths": ["/etc/ssl/certs/server.pem"],
        "interval": 600,
        "timeout": 5,
        "sni": True,
        "verify_mode": "peer",
        "ssl_max_version": DEFAULT_MAX_VERSION,
        "log_events": True,
        "metric_events": False,
        "event_prefix": "",
        "timestamp_format": "iso",
        "log_level": "INFO",
        "server_enabled": True,
        "port": 3201,
        "bind_address": "127.0.0.1",
        "allowed_ips": ["127.0.0.1", "::1"],
        "enable_ip_whitelist": True,
    }

    with open(output_path, "w", encoding="utf-8") as f:
        yaml.dump(example_config, f, default_flow_style=False, sort_keys=False)
