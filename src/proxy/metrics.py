"""Metrics collection for the composition proxy."""

from dataclasses import dataclass, field
from typing import ClassVar


@dataclass
class ProxyMetrics:
    """Metrics for composed responses.

    Singleton class counting terminal outcomes, recovery actions and
    layout compositions.
    """

    responses_total: dict[str, int] = field(default_factory=dict)
    recovery_actions_total: dict[str, int] = field(default_factory=dict)
    layout_compositions_total: int = 0
    extension_posts_total: int = 0
    stale_responses_total: int = 0

    _instance: ClassVar["ProxyMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "ProxyMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        cls._instance = None

    def record_response(self, terminal_state: str) -> None:
        """Record a request reaching a terminal state.

        Args:
            terminal_state: Name of the terminal state.
        """
        self.responses_total[terminal_state] = (
            self.responses_total.get(terminal_state, 0) + 1
        )

    def record_recovery(self, action: str) -> None:
        """Record the recovery action taken for a failure.

        Args:
            action: Name of the recovery action.
        """
        self.recovery_actions_total[action] = (
            self.recovery_actions_total.get(action, 0) + 1
        )

    def record_stale_response(self) -> None:
        """Record a response served from stale content."""
        self.stale_responses_total += 1

    def record_layout_composition(self) -> None:
        """Record a successful layout composition."""
        self.layout_compositions_total += 1

    def record_extension_post(self) -> None:
        """Record pre-composed content posted to the proxy."""
        self.extension_posts_total += 1

    def to_dict(self) -> dict[str, int | dict[str, int]]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric name to value.
        """
        return {
            "responses_total": dict(self.responses_total),
            "recovery_actions_total": dict(self.recovery_actions_total),
            "layout_compositions_total": self.layout_compositions_total,
            "extension_posts_total": self.extension_posts_total,
            "stale_responses_total": self.stale_responses_total,
        }
