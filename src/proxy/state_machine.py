"""State machine for composing one page request."""

from enum import Enum

import structlog


logger = structlog.get_logger()


class CompositionState(str, Enum):
    """State of a request during composition.

    States represent the lifecycle of a single page request:
    - START: Options not yet built
    - FETCHING_FRAGMENT: Backend fragment fetch in progress
    - FRAGMENT_READY: Fragment fetched, headers applied
    - EXTRACTING_SLOTS: Parsing slots out of the fragment
    - RENDERING_LAYOUT_URL: Rendering the layout directive as a URL
    - FETCHING_LAYOUT: Layout fetch in progress
    - SIMPLE_EMIT: Fragment (or posted content) written as-is
    - LAYOUT_EMIT: Composed layout written
    - FAILED: Failure answered by the recovery policy or a raw error
    """

    START = "START"
    FETCHING_FRAGMENT = "FETCHING_FRAGMENT"
    FRAGMENT_READY = "FRAGMENT_READY"
    EXTRACTING_SLOTS = "EXTRACTING_SLOTS"
    RENDERING_LAYOUT_URL = "RENDERING_LAYOUT_URL"
    FETCHING_LAYOUT = "FETCHING_LAYOUT"
    SIMPLE_EMIT = "SIMPLE_EMIT"
    LAYOUT_EMIT = "LAYOUT_EMIT"
    FAILED = "FAILED"


TERMINAL_STATES = frozenset(
    {
        CompositionState.SIMPLE_EMIT,
        CompositionState.LAYOUT_EMIT,
        CompositionState.FAILED,
    }
)

# Valid state transitions
_VALID_TRANSITIONS: dict[CompositionState, set[CompositionState]] = {
    # Posted pre-composed content skips every fetch
    CompositionState.START: {
        CompositionState.FETCHING_FRAGMENT,
        CompositionState.SIMPLE_EMIT,
        CompositionState.FAILED,
    },
    CompositionState.FETCHING_FRAGMENT: {
        CompositionState.FRAGMENT_READY,
        CompositionState.FAILED,
    },
    CompositionState.FRAGMENT_READY: {
        CompositionState.SIMPLE_EMIT,
        CompositionState.EXTRACTING_SLOTS,
    },
    CompositionState.EXTRACTING_SLOTS: {
        CompositionState.RENDERING_LAYOUT_URL,
        CompositionState.FAILED,
    },
    CompositionState.RENDERING_LAYOUT_URL: {
        CompositionState.FETCHING_LAYOUT,
        CompositionState.FAILED,
    },
    CompositionState.FETCHING_LAYOUT: {
        CompositionState.LAYOUT_EMIT,
        CompositionState.FAILED,
    },
    CompositionState.SIMPLE_EMIT: set(),  # Terminal state
    CompositionState.LAYOUT_EMIT: set(),  # Terminal state
    CompositionState.FAILED: set(),  # Terminal state
}


class CompositionStateTransitionError(Exception):
    """Raised when an illegal state transition is attempted."""

    def __init__(
        self,
        tracer: str,
        from_state: CompositionState,
        to_state: CompositionState,
    ) -> None:
        """Initialize the transition error.

        Args:
            tracer: Tracer of the request.
            from_state: Current state.
            to_state: Attempted target state.
        """
        self.tracer = tracer
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Illegal composition transition for request '{tracer}': "
            f"{from_state.value} -> {to_state.value}"
        )


class CompositionStateMachine:
    """Manages state transitions for one page request.

    Terminal states have no outgoing transitions, so a request can
    reach a terminal state (and write its response) only once.
    """

    def __init__(
        self,
        tracer: str,
        initial_state: CompositionState = CompositionState.START,
    ) -> None:
        """Initialize the state machine.

        Args:
            tracer: Tracer of the request.
            initial_state: Starting state.
        """
        self._tracer = tracer
        self._state = initial_state
        self._history: list[CompositionState] = [initial_state]
        self._log = logger.bind(component="proxy", tracer=tracer)

    @property
    def state(self) -> CompositionState:
        """Get the current state."""
        return self._state

    @property
    def history(self) -> list[CompositionState]:
        """States visited so far, in order."""
        return list(self._history)

    @property
    def is_terminal(self) -> bool:
        """Check if current state is terminal."""
        return self._state in TERMINAL_STATES

    def can_transition_to(self, target: CompositionState) -> bool:
        """Check if a transition to the target state is valid."""
        return target in _VALID_TRANSITIONS.get(self._state, set())

    def transition_to(self, target: CompositionState) -> None:
        """Transition to a new state.

        Args:
            target: The target state.

        Raises:
            CompositionStateTransitionError: If the transition is invalid.
        """
        if not self.can_transition_to(target):
            self._log.error(
                "illegal_state_transition",
                from_state=self._state.value,
                to_state=target.value,
            )
            raise CompositionStateTransitionError(
                tracer=self._tracer,
                from_state=self._state,
                to_state=target,
            )

        old_state = self._state
        self._state = target
        self._history.append(target)

        self._log.debug(
            "state_transition",
            from_state=old_state.value,
            to_state=target.value,
        )

    def to_fetching_fragment(self) -> None:
        """Transition to FETCHING_FRAGMENT state."""
        self.transition_to(CompositionState.FETCHING_FRAGMENT)

    def to_fragment_ready(self) -> None:
        """Transition to FRAGMENT_READY state."""
        self.transition_to(CompositionState.FRAGMENT_READY)

    def to_extracting_slots(self) -> None:
        """Transition to EXTRACTING_SLOTS state."""
        self.transition_to(CompositionState.EXTRACTING_SLOTS)

    def to_rendering_layout_url(self) -> None:
        """Transition to RENDERING_LAYOUT_URL state."""
        self.transition_to(CompositionState.RENDERING_LAYOUT_URL)

    def to_fetching_layout(self) -> None:
        """Transition to FETCHING_LAYOUT state."""
        self.transition_to(CompositionState.FETCHING_LAYOUT)

    def to_simple_emit(self) -> None:
        """Transition to SIMPLE_EMIT state."""
        self.transition_to(CompositionState.SIMPLE_EMIT)

    def to_layout_emit(self) -> None:
        """Transition to LAYOUT_EMIT state."""
        self.transition_to(CompositionState.LAYOUT_EMIT)

    def to_failed(self) -> None:
        """Transition to FAILED state."""
        self.transition_to(CompositionState.FAILED)
