"""Unit tests for the configuration loading state machine."""

import pytest

from src.config.state_machine import ConfigState, ConfigStateError, ConfigStateMachine


class TestConfigStateMachine:
    """Tests for ConfigStateMachine."""

    @pytest.mark.unit
    def test_happy_path(self) -> None:
        """UNLOADED -> LOADING -> VALIDATED -> READY."""
        machine = ConfigStateMachine()
        assert machine.state == ConfigState.UNLOADED

        machine.transition(ConfigState.LOADING)
        machine.transition(ConfigState.VALIDATED)
        machine.transition(ConfigState.READY)

        assert machine.is_ready() is True
        assert machine.history == [
            ConfigState.UNLOADED,
            ConfigState.LOADING,
            ConfigState.VALIDATED,
            ConfigState.READY,
        ]
        assert machine.is_failed() is False

    @pytest.mark.unit
    def test_cannot_skip_validation(self) -> None:
        """LOADING cannot jump straight to READY."""
        machine = ConfigStateMachine()
        machine.transition(ConfigState.LOADING)

        with pytest.raises(ConfigStateError, match="LOADING -> READY"):
            machine.transition(ConfigState.READY)

    @pytest.mark.unit
    def test_failed_is_terminal(self) -> None:
        """Nothing leaves FAILED."""
        machine = ConfigStateMachine()
        machine.transition(ConfigState.FAILED)

        assert machine.is_failed() is True
        for state in ConfigState:
            assert machine.can_transition(state) is False
