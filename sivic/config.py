"""Configuration module for the Sivic security API."""

# Standard library imports
import os
import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Callable, Dict, Optional

# Third-party library imports
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

DEFAULT_HELIUS_RPC_URL = "https://mainnet.helius-rpc.com"
DEFAULT_HELIUS_API_URL = "https://api.helius.xyz/v0"
DEFAULT_PUBLIC_RPC_URL = "https://solana-rpc.publicnode.com"
DEFAULT_DEFILLAMA_API_URL = "https://api.llama.fi"
DEFAULT_DEFILLAMA_COINS_URL = "https://coins.llama.fi"


def get_env_var(key: str, default: Any = None, required: bool = False,
                validator: Optional[Callable[[str], Any]] = None) -> Any:
    """Get and validate environment variable.

    Args:
        key: Environment variable name
        default: Default value if not present
        required: If True, raises ValueError when not found
        validator: Optional validation function

    Returns:
        The environment variable value or default

    Raises:
        ValueError: If required and not found, or fails validation
    """
    value = os.environ.get(key)

    if value is None or value == "":
        if required:
            raise ValueError(f"Required environment variable '{key}' not found")
        return default

    if validator:
        try:
            return validator(value)
        except ValueError as e:
            raise ValueError(f"Invalid value for environment variable '{key}': {str(e)}")

    return value


def bool_validator(value: str) -> bool:
    """Validate and convert string to boolean."""
    return value.lower() in ("true", "1", "yes", "y", "on")


def int_validator(value: str) -> int:
    """Validate and convert string to integer.

    Raises:
        ValueError: If not a valid integer
    """
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"'{value}' is not a valid integer")


def positive_float_validator(value: str) -> float:
    """Validate and convert string to a strictly positive float.

    Raises:
        ValueError: If not a number or not greater than zero
    """
    try:
        number = float(value)
    except ValueError:
        raise ValueError(f"'{value}' is not a valid number")
    if number <= 0:
        raise ValueError(f"'{value}' must be greater than zero")
    return number


def url_validator(value: str) -> str:
    """Validate URL format.

    Args:
        value: URL to validate

    Returns:
        The validated URL without a trailing slash

    Raises:
        ValueError: If not a valid URL format
    """
    url_pattern = re.compile(
        r'^(https?):\/\/'  # http:// or https://
        r'(?:(?:[A-Z0-9](?:[A-Z0-9-]{0,61}[A-Z0-9])?\.)+(?:[A-Z]{2,6}\.?|[A-Z0-9-]{2,}\.?)|'  # domain
        r'localhost|'  # localhost
        r'\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3})'  # or IPv4
        r'(?::\d+)?'  # optional port
        r'(?:/?|[/?]\S+)$', re.IGNORECASE)

    if not url_pattern.match(value):
        raise ValueError(f"'{value}' is not a valid URL")
    return value.rstrip("/")


def log_level_validator(value: str) -> str:
    """Validate log level.

    Raises:
        ValueError: If not a valid log level
    """
    valid_levels = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
    upper_value = value.upper()
    if upper_value not in valid_levels:
        raise ValueError(f"Log level must be one of: {', '.join(valid_levels)}")
    return upper_value


def environment_validator(value: str) -> str:
    """Validate environment name.

    Raises:
        ValueError: If not a valid environment name
    """
    valid_environments = ("development", "testing", "staging", "production")
    if value.lower() not in valid_environments:
        raise ValueError(f"Environment must be one of: {', '.join(valid_environments)}")
    return value.lower()


@dataclass
class HeliusConfig:
    """Configuration for the Helius RPC and enhanced API.

    Without an API key the gateway talks to the public RPC endpoint and the
    enhanced (DAS/metadata) API is reported as not configured.
    """

    api_key: Optional[str] = None
    rpc_url: str = DEFAULT_HELIUS_RPC_URL
    api_url: str = DEFAULT_HELIUS_API_URL
    public_rpc_url: str = DEFAULT_PUBLIC_RPC_URL
    timeout: float = 10.0  # seconds

    @property
    def is_configured(self) -> bool:
        """True when a Helius API key is available."""
        return bool(self.api_key)

    @property
    def rpc_endpoint(self) -> str:
        """Get the JSON-RPC endpoint to use.

        Returns:
            The keyed Helius URL, or the public RPC URL without a key
        """
        if not self.is_configured:
            return self.public_rpc_url
        return f"{self.rpc_url}/?api-key={self.api_key}"


@lru_cache()
def get_helius_config() -> HeliusConfig:
    """Get Helius configuration from environment variables.

    Raises:
        ValueError: If environment variables fail validation
    """
    return HeliusConfig(
        api_key=get_env_var("HELIUS_API_KEY"),
        rpc_url=get_env_var("HELIUS_RPC_URL", DEFAULT_HELIUS_RPC_URL, validator=url_validator),
        api_url=get_env_var("HELIUS_API_URL", DEFAULT_HELIUS_API_URL, validator=url_validator),
        public_rpc_url=get_env_var("PUBLICNODE_RPC_URL", DEFAULT_PUBLIC_RPC_URL,
                                   validator=url_validator),
        timeout=get_env_var("RPC_TIMEOUT", 10.0, validator=positive_float_validator)
    )


@dataclass
class DefiLlamaConfig:
    """Configuration for the DeFiLlama REST APIs."""

    api_url: str = DEFAULT_DEFILLAMA_API_URL
    coins_url: str = DEFAULT_DEFILLAMA_COINS_URL
    timeout: float = 15.0


@lru_cache()
def get_defillama_config() -> DefiLlamaConfig:
    """Get DeFiLlama configuration from environment variables."""
    return DefiLlamaConfig(
        api_url=get_env_var("DEFILLAMA_API_URL", DEFAULT_DEFILLAMA_API_URL, validator=url_validator),
        coins_url=get_env_var("DEFILLAMA_COINS_URL", DEFAULT_DEFILLAMA_COINS_URL,
                              validator=url_validator)
    )


@dataclass
class CacheConfig:
    """Configuration for the response cache."""

    default_ttl: float = 300.0  # seconds
    max_size: int = 1000

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.default_ttl <= 0:
            raise ValueError(f"Invalid default_ttl: {self.default_ttl}")
        if self.max_size <= 0:
            raise ValueError(f"Invalid max_size: {self.max_size}")


@lru_cache()
def get_cache_config() -> CacheConfig:
    """Get cache configuration from environment variables."""
    return CacheConfig(
        default_ttl=get_env_var("CACHE_DEFAULT_TTL", 300.0, validator=positive_float_validator),
        max_size=get_env_var("CACHE_MAX_SIZE", 1000, validator=int_validator)
    )


@dataclass
class ServerConfig:
    """Configuration for the server."""

    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False
    environment: str = "development"
    log_level: str = "INFO"

    @property
    def bind_address(self) -> str:
        """Get the bind address for the server."""
        return f"{self.host}:{self.port}"

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.environment not in ("development", "testing", "staging", "production"):
            raise ValueError(f"Invalid environment: {self.environment}")

        if self.log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log_level: {self.log_level}")


@lru_cache()
def get_server_config() -> ServerConfig:
    """Get server configuration from environment variables.

    Raises:
        ValueError: If environment variables fail validation
    """
    return ServerConfig(
        host=get_env_var("HOST", "0.0.0.0"),
        port=get_env_var("PORT", 8000, validator=int_validator),
        debug=get_env_var("DEBUG", False, validator=bool_validator),
        environment=get_env_var("ENVIRONMENT", "development", validator=environment_validator),
        log_level=get_env_var("LOG_LEVEL", "INFO", validator=log_level_validator)
    )


@dataclass
class AppConfig:
    """Comprehensive application configuration."""

    helius: HeliusConfig = field(default_factory=get_helius_config)
    defillama: DefiLlamaConfig = field(default_factory=get_defillama_config)
    cache: CacheConfig = field(default_factory=get_cache_config)
    server: ServerConfig = field(default_factory=get_server_config)


def get_app_config() -> AppConfig:
    """Get the comprehensive application configuration."""
    return AppConfig()


def get_config_status(config: Optional[AppConfig] = None) -> Dict[str, Any]:
    """Report which optional providers are configured.

    Secrets are never included, only whether they are present.

    Args:
        config: Configuration to inspect, defaults to the environment

    Returns:
        Dictionary describing provider configuration
    """
    config = config or get_app_config()
    return {
        "helius": {
            "configured": config.helius.is_configured,
            "rpc": "helius" if config.helius.is_configured else "public",
        },
        "defillama": {
            "configured": True,
            "api_url": config.defillama.api_url,
        },
        "environment": config.server.environment,
    }
