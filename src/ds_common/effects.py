"""Side effects emitted by pure decision functions.

Decision functions never perform I/O. They return a list of these records and
the application service executes them:

  AuditRecord    written inside the atomic unit (rolled back with it)
  PayoutRequest  written inside the atomic unit
  Notify         dispatched after commit; failures are logged, never raised
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class AuditRecord:
    entity_type: str
    entity_id: str
    action_type: str
    description: str
    actor_id: str | None = None
    old_value: dict[str, Any] | None = None
    new_value: dict[str, Any] | None = None


@dataclass(frozen=True)
class Notify:
    user_id: str
    notification_type: str
    title: str
    body: str
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PayoutRequest:
    transaction_id: str
    seller_id: str
    amount: int


Effect = AuditRecord | Notify | PayoutRequest


def notifications(effects: list[Effect]) -> list[Notify]:
    return [e for e in effects if isinstance(e, Notify)]
