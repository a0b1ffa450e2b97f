"""State machine for a single dispatch's retry loop."""

from enum import Enum

import structlog


logger = structlog.get_logger()


class DispatchState(str, Enum):
    """State of one logical outbound call.

    - ATTEMPTING: An attempt is in flight
    - RETRY_WAIT: Waiting out the backoff delay before the next attempt
    - SUCCESS: An attempt returned a 2xx/3xx response
    - ABORTED: A terminal failure ended the loop
    - EXHAUSTED: A retryable failure occurred with no attempts left
    """

    ATTEMPTING = "ATTEMPTING"
    RETRY_WAIT = "RETRY_WAIT"
    SUCCESS = "SUCCESS"
    ABORTED = "ABORTED"
    EXHAUSTED = "EXHAUSTED"


# Valid state transitions
_VALID_TRANSITIONS: dict[DispatchState, set[DispatchState]] = {
    DispatchState.ATTEMPTING: {
        DispatchState.SUCCESS,
        DispatchState.RETRY_WAIT,
        DispatchState.ABORTED,
        DispatchState.EXHAUSTED,
    },
    DispatchState.RETRY_WAIT: {DispatchState.ATTEMPTING},
    DispatchState.SUCCESS: set(),  # Terminal state
    DispatchState.ABORTED: set(),  # Terminal state
    DispatchState.EXHAUSTED: set(),  # Terminal state
}

_TERMINAL_STATES = frozenset(
    {DispatchState.SUCCESS, DispatchState.ABORTED, DispatchState.EXHAUSTED}
)


class DispatchStateTransitionError(Exception):
    """Raised when an illegal state transition is attempted."""

    def __init__(
        self,
        endpoint: str,
        from_state: DispatchState,
        to_state: DispatchState,
    ) -> None:
        """Initialize the transition error.

        Args:
            endpoint: Endpoint being dispatched.
            from_state: Current state.
            to_state: Attempted target state.
        """
        self.endpoint = endpoint
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Illegal dispatch transition for '{endpoint}': "
            f"{from_state.value} -> {to_state.value}"
        )


class DispatchStateMachine:
    """Tracks the retry loop of one dispatch.

    Starts in ATTEMPTING with attempt 1. Entering ATTEMPTING again from
    RETRY_WAIT increments the attempt counter.
    """

    def __init__(self, endpoint: str, max_attempts: int) -> None:
        """Initialize the state machine.

        Args:
            endpoint: Endpoint hint, for logging.
            max_attempts: Attempt budget of the retry policy.
        """
        self._endpoint = endpoint
        self._max_attempts = max_attempts
        self._state = DispatchState.ATTEMPTING
        self._attempt = 1
        self._log = logger.bind(component="dispatch", endpoint=endpoint)

    @property
    def state(self) -> DispatchState:
        """Get the current state."""
        return self._state

    @property
    def attempt(self) -> int:
        """Get the current attempt number (1-indexed)."""
        return self._attempt

    @property
    def attempts_remaining(self) -> bool:
        """Check whether another attempt fits in the budget."""
        return self._attempt < self._max_attempts

    @property
    def is_terminal(self) -> bool:
        """Check if current state is terminal."""
        return self._state in _TERMINAL_STATES

    def can_transition_to(self, target: DispatchState) -> bool:
        """Check if a transition to the target state is valid.

        Args:
            target: The target state.

        Returns:
            True if the transition is valid.
        """
        if target == DispatchState.RETRY_WAIT and not self.attempts_remaining:
            return False
        return target in _VALID_TRANSITIONS.get(self._state, set())

    def transition_to(self, target: DispatchState) -> None:
        """Transition to a new state.

        Args:
            target: The target state.

        Raises:
            DispatchStateTransitionError: If the transition is invalid.
        """
        if not self.can_transition_to(target):
            self._log.error(
                "illegal_state_transition",
                from_state=self._state.value,
                to_state=target.value,
                attempt=self._attempt,
            )
            raise DispatchStateTransitionError(
                endpoint=self._endpoint,
                from_state=self._state,
                to_state=target,
            )

        old_state = self._state
        self._state = target
        if old_state == DispatchState.RETRY_WAIT:
            self._attempt += 1

        self._log.debug(
            "state_transition",
            from_state=old_state.value,
            to_state=target.value,
            attempt=self._attempt,
        )

    def on_success(self) -> None:
        """Transition to SUCCESS."""
        self.transition_to(DispatchState.SUCCESS)

    def on_failure(self, retryable: bool) -> DispatchState:
        """Transition after a failed attempt.

        Args:
            retryable: Whether the retry policy considers the failure retryable.

        Returns:
            RETRY_WAIT, ABORTED or EXHAUSTED.
        """
        if not retryable:
            self.transition_to(DispatchState.ABORTED)
        elif self.attempts_remaining:
            self.transition_to(DispatchState.RETRY_WAIT)
        else:
            self.transition_to(DispatchState.EXHAUSTED)
        return self._state

    def resume(self) -> None:
        """Return from RETRY_WAIT to ATTEMPTING for the next attempt."""
        self.transition_to(DispatchState.ATTEMPTING)
