"""Proxy configuration loader with validation and state machine."""

import hashlib
import time
from pathlib import Path

import structlog
import yaml
from pydantic import ValidationError

from src.config.constants import COMPONENT_CONFIG
from src.config.schemas.proxy import ProxyConfig
from src.config.state_machine import ConfigState, ConfigStateMachine


logger = structlog.get_logger()


class ConfigLoader:
    """Loads and validates the proxy configuration file.

    Implements a state machine for configuration loading:
    UNLOADED -> LOADING -> VALIDATED -> READY

    The returned ProxyConfig is frozen; it is shared read-only by
    every request.
    """

    def __init__(self) -> None:
        self._state_machine = ConfigStateMachine()
        self._checksum: str | None = None
        self._validation_errors: list[dict[str, str]] = []
        self._validation_duration_ms: float = 0

    @property
    def state(self) -> ConfigState:
        """Get the current loader state."""
        return self._state_machine.state

    @property
    def checksum(self) -> str | None:
        """Get the SHA-256 checksum of the loaded file."""
        return self._checksum

    @property
    def validation_errors(self) -> list[dict[str, str]]:
        """Get validation errors if any."""
        return self._validation_errors.copy()

    @property
    def validation_duration_ms(self) -> float:
        """Get validation duration in milliseconds."""
        return self._validation_duration_ms

    def load(self, config_path: Path) -> ProxyConfig:
        """Load and validate a YAML proxy configuration file.

        Args:
            config_path: Path to the YAML file.

        Returns:
            Validated ProxyConfig.

        Raises:
            ValidationError: If the content fails schema validation.
            FileNotFoundError: If the file does not exist.
            yaml.YAMLError: If the YAML is malformed.
            ConfigStateError: If called more than once.
        """
        start_time = time.perf_counter()
        self._state_machine.transition(ConfigState.LOADING)

        log = logger.bind(component=COMPONENT_CONFIG, file_path=str(config_path))
        log.info("loading_config_file")

        try:
            content_bytes = config_path.read_bytes()
            self._checksum = hashlib.sha256(content_bytes).hexdigest()
            data = yaml.safe_load(content_bytes.decode("utf-8")) or {}
            config = ProxyConfig.model_validate(data)
        except ValidationError as e:
            self._fail(
                log,
                "config_validation_failed",
                [
                    {
                        "loc": ".".join(str(loc) for loc in err["loc"]),
                        "msg": err["msg"],
                        "type": err["type"],
                    }
                    for err in e.errors()
                ],
            )
            raise
        except FileNotFoundError as e:
            self._fail(
                log,
                "config_file_not_found",
                [{"loc": "file", "msg": str(e), "type": "file_not_found"}],
            )
            raise
        except yaml.YAMLError as e:
            self._fail(
                log,
                "config_yaml_parse_error",
                [{"loc": "yaml", "msg": str(e), "type": "yaml_parse_error"}],
            )
            raise

        self._state_machine.transition(ConfigState.VALIDATED)
        self._validation_duration_ms = (time.perf_counter() - start_time) * 1000

        log.info(
            "config_validation_complete",
            file_sha256=self._checksum,
            backend_count=len(config.backends),
            handler_count=len(config.status_code_handlers),
            config_validation_duration_ms=self._validation_duration_ms,
        )

        self._state_machine.transition(ConfigState.READY)
        return config

    def _fail(
        self,
        log: structlog.stdlib.BoundLogger,
        event: str,
        errors: list[dict[str, str]],
    ) -> None:
        """Record errors and move to FAILED."""
        self._state_machine.transition(ConfigState.FAILED)
        self._validation_errors.extend(errors)
        log.error(
            event,
            validation_error_count=len(self._validation_errors),
            errors=self._validation_errors,
        )
