"""Agent gRPC method names and evaluation of agent error responses."""

from __future__ import annotations

import enum
from typing import Iterable, List, Optional

DEFAULT_AGENT_RESPONSE_MAX_BYTE_COUNT = 250_000


class Method(str, enum.Enum):
    """Agent gRPC methods."""

    INITIALIZE = "/network.forta.Agent/Initialize"
    EVALUATE_TX = "/network.forta.Agent/EvaluateTx"
    EVALUATE_BLOCK = "/network.forta.Agent/EvaluateBlock"
    EVALUATE_ALERT = "/network.forta.Agent/EvaluateAlert"
    HEALTH_CHECK = "/network.forta.Agent/HealthCheck"


class MultiError(Exception):
    """Several errors collected into one."""

    def __init__(self, errors: Iterable[BaseException]) -> None:
        self.errors: List[BaseException] = list(errors)
        super().__init__(*self.errors)

    def __str__(self) -> str:
        if len(self.errors) == 1:
            return f"1 error occurred:\n\t* {self.errors[0]}\n\n"
        points = "\n\t".join(f"* {err}" for err in self.errors)
        return f"{len(self.errors)} errors occurred:\n\t{points}\n\n"


def response_error(messages: Iterable[str]) -> Exception:
    """Make a single error from the error messages of an agent response."""
    text = ", ".join(messages)
    if not text:
        return Exception("<empty error list>")
    return Exception(text)


def evaluate_health_check_result(
    invoke_error: Optional[BaseException], error_messages: Iterable[str]
) -> Optional[MultiError]:
    """Combine a health-check invocation error and response errors.

    An invocation that failed because the agent does not implement health
    checks (``NotImplementedError``) is not counted as an error.
    """
    errors: List[BaseException] = []
    if invoke_error is not None and not isinstance(invoke_error, NotImplementedError):
        errors.append(invoke_error)
    errors.extend(Exception(message) for message in error_messages)
    return MultiError(errors) if errors else None