"""Configuration management for the todo/chat service."""

import os
from typing import Any

import yaml
from dotenv import load_dotenv

DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(__file__), "config.yaml")

VALID_REPOSITORY_BACKENDS = ["memory", "sqlite"]
VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class Configuration:
    """Manages configuration and environment variables for the service."""

    def __init__(self, config_path: str | None = None) -> None:
        """Initialize configuration from YAML and environment variables."""
        self.load_env()  # Load .env for overrides
        self.config_path = config_path or DEFAULT_CONFIG_PATH
        self._config = self._load_yaml_config(self.config_path)

    @staticmethod
    def load_env() -> None:
        """Load environment variables from .env file."""
        load_dotenv()

    @staticmethod
    def _load_yaml_config(config_path: str) -> dict[str, Any]:
        """Load configuration from YAML file."""
        with open(config_path) as file:
            config = yaml.safe_load(file)
            if not isinstance(config, dict):
                raise ValueError(
                    f"Config file must be YAML dict, got {type(config)}"
                )
            return config

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> "Configuration":
        """Build a configuration directly from a dictionary (tests, embedding)."""
        instance = cls.__new__(cls)
        cls.load_env()
        instance.config_path = None
        instance._config = config
        return instance

    def get_config_dict(self) -> dict[str, Any]:
        """Get the full configuration dictionary.

        Returns:
            The complete configuration dictionary.
        """
        return self._config

    def get_llm_config(self) -> dict[str, Any]:
        """Get active LLM provider configuration with environment overrides.

        OLLAMA_BASE_URL, OLLAMA_MODEL and OLLAMA_API_KEY take precedence over
        the YAML values. The returned dictionary is a copy.

        Raises:
            ValueError: If the active provider or a required key is missing.
        """
        llm_config = self._config.get("llm", {})
        active_provider = llm_config.get("active", "ollama")
        providers = llm_config.get("providers", {})

        if active_provider not in providers:
            raise ValueError(
                f"Active provider '{active_provider}' not found in providers config"
            )

        provider_config = {**providers[active_provider]}

        env_overrides = {
            "base_url": "OLLAMA_BASE_URL",
            "model": "OLLAMA_MODEL",
            "api_key": "OLLAMA_API_KEY",
        }
        for key, env_key in env_overrides.items():
            if value := os.getenv(env_key):
                provider_config[key] = value

        required_keys = [
            "base_url", "api_key", "model", "temperature", "top_p", "max_tokens"
        ]
        for key in required_keys:
            if key not in provider_config:
                raise ValueError(
                    f"llm.providers.{active_provider}.{key} must be explicitly "
                    "configured in config.yaml"
                )

        if provider_config["max_tokens"] < 1:
            raise ValueError("llm max_tokens must be at least 1")
        if not 0.0 <= provider_config["top_p"] <= 1.0:
            raise ValueError("llm top_p must be between 0 and 1")

        return provider_config

    def get_http_client_config(self) -> dict[str, Any]:
        """Get HTTP client timeouts for the active LLM provider.

        Raises:
            ValueError: If required timeout parameters are missing or invalid.
        """
        http_config = self.get_llm_config().get("http_client", {})

        required_keys = [
            "connect_timeout", "read_timeout", "write_timeout", "pool_timeout"
        ]
        for key in required_keys:
            if key not in http_config:
                raise ValueError(
                    f"http_client.{key} must be explicitly configured "
                    "for the active LLM provider in config.yaml"
                )
            if http_config[key] <= 0:
                raise ValueError(f"http_client.{key} must be positive")

        return http_config

    def get_server_config(self) -> dict[str, Any]:
        """Get HTTP server configuration.

        PORT and FRONTEND_URL override the port and the CORS origin list.

        Raises:
            ValueError: If host or port is missing.
        """
        server_config = {**self._config.get("server", {})}

        for key in ["host", "port"]:
            if key not in server_config:
                raise ValueError(
                    f"server.{key} must be explicitly configured in config.yaml"
                )

        if port := os.getenv("PORT"):
            server_config["port"] = int(port)

        cors_config = {**server_config.get("cors", {})}
        if frontend_url := os.getenv("FRONTEND_URL"):
            cors_config["allow_origins"] = [frontend_url]
        server_config["cors"] = cors_config
        server_config.setdefault("api_prefix", "/api")

        return server_config

    def get_repository_config(self) -> dict[str, Any]:
        """Get todo repository configuration.

        Raises:
            ValueError: If the backend is missing or unsupported.
        """
        repo_config = {**self._config.get("repository", {})}

        if "backend" not in repo_config:
            raise ValueError(
                "repository.backend must be explicitly configured in config.yaml"
            )
        if repo_config["backend"] not in VALID_REPOSITORY_BACKENDS:
            raise ValueError(
                "repository.backend must be one of: "
                f"{VALID_REPOSITORY_BACKENDS}"
            )

        if db_path := os.getenv("TODO_DB_PATH"):
            repo_config["path"] = db_path
        repo_config.setdefault("path", "todos.db")
        repo_config.setdefault("seed_on_startup", False)

        return repo_config

    def get_consumer_config(self) -> dict[str, Any]:
        """Get stream consumer (client side) configuration."""
        consumer_config = {**self._config.get("consumer", {})}
        if "base_url" not in consumer_config:
            raise ValueError(
                "consumer.base_url must be explicitly configured in config.yaml"
            )
        consumer_config.setdefault("timeout", 120.0)
        return consumer_config

    def get_logging_config(self) -> dict[str, Any]:
        """Get logging configuration from YAML.

        Returns:
            Logging configuration dictionary.
        """
        logging_config = {**self._config.get("logging", {})}
        level = str(logging_config.get("level", "INFO")).upper()
        if level not in VALID_LOG_LEVELS:
            raise ValueError(f"logging.level must be one of: {VALID_LOG_LEVELS}")
        logging_config["level"] = level
        return logging_config
