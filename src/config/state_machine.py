"""Load lifecycle of the proxy configuration file."""

from enum import Enum

import structlog

from src.config.constants import COMPONENT_CONFIG


logger = structlog.get_logger()


class ConfigState(str, Enum):
    """Where a ConfigLoader is in reading its file.

    UNLOADED -> LOADING -> VALIDATED -> READY, with FAILED reachable
    from every non-terminal state. A loader is single-use: READY and
    FAILED are both final.
    """

    UNLOADED = "UNLOADED"
    LOADING = "LOADING"
    VALIDATED = "VALIDATED"
    READY = "READY"
    FAILED = "FAILED"


_VALID_TRANSITIONS: dict[ConfigState, frozenset[ConfigState]] = {
    ConfigState.UNLOADED: frozenset({ConfigState.LOADING, ConfigState.FAILED}),
    ConfigState.LOADING: frozenset({ConfigState.VALIDATED, ConfigState.FAILED}),
    ConfigState.VALIDATED: frozenset({ConfigState.READY, ConfigState.FAILED}),
    ConfigState.READY: frozenset(),
    ConfigState.FAILED: frozenset(),
}


class ConfigStateError(Exception):
    """A loader was driven through an illegal transition (e.g. reused)."""

    def __init__(self, from_state: ConfigState, to_state: ConfigState) -> None:
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Invalid config load transition: {from_state.value} -> {to_state.value}"
        )


class ConfigStateMachine:
    """Tracks one configuration load."""

    def __init__(self) -> None:
        self._state = ConfigState.UNLOADED
        self._history: list[ConfigState] = [self._state]

    @property
    def state(self) -> ConfigState:
        """Get the current state."""
        return self._state

    @property
    def history(self) -> list[ConfigState]:
        """States visited so far, in order."""
        return list(self._history)

    def can_transition(self, to_state: ConfigState) -> bool:
        """Check if a transition to the given state is valid."""
        return to_state in _VALID_TRANSITIONS[self._state]

    def transition(self, to_state: ConfigState) -> None:
        """Move to ``to_state``.

        Raises:
            ConfigStateError: If the transition is invalid.
        """
        if not self.can_transition(to_state):
            raise ConfigStateError(self._state, to_state)
        logger.debug(
            "config_state_transition",
            component=COMPONENT_CONFIG,
            from_state=self._state.value,
            to_state=to_state.value,
        )
        self._state = to_state
        self._history.append(to_state)

    def is_ready(self) -> bool:
        """Check if configuration is ready for use."""
        return self._state == ConfigState.READY

    def is_failed(self) -> bool:
        """Check if configuration loading has failed."""
        return self._state == ConfigState.FAILED
