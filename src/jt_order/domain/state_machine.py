"""Order lifecycle.

    pending_dp ──dp paid──> awaiting_validation
    awaiting_validation ──reject──> rejected                       [terminal]
    awaiting_validation ──accept──> awaiting_final_payment
    awaiting_final_payment ──final proof──> awaiting_final_validation
    awaiting_final_validation ──accept──> paid                     [terminal]
    awaiting_final_validation ──reject──> awaiting_final_payment
"""
from src.jt_common.enums import OrderStatus
from src.jt_common.errors import InvalidTransitionError

TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING_DP: frozenset({OrderStatus.AWAITING_VALIDATION}),
    OrderStatus.AWAITING_VALIDATION: frozenset(
        {OrderStatus.REJECTED, OrderStatus.AWAITING_FINAL_PAYMENT}
    ),
    OrderStatus.AWAITING_FINAL_PAYMENT: frozenset({OrderStatus.AWAITING_FINAL_VALIDATION}),
    OrderStatus.AWAITING_FINAL_VALIDATION: frozenset(
        {OrderStatus.PAID, OrderStatus.AWAITING_FINAL_PAYMENT}
    ),
    OrderStatus.REJECTED: frozenset(),
    OrderStatus.PAID: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, targets in TRANSITIONS.items() if not targets)


def can_transition(current: str, target: str) -> bool:
    try:
        return OrderStatus(target) in TRANSITIONS[OrderStatus(current)]
    except ValueError:
        return False


def ensure_transition(current: str, target: str) -> None:
    if not can_transition(current, target):
        raise InvalidTransitionError(current, target, terminal=is_terminal(current))


def is_terminal(status: str) -> bool:
    try:
        return OrderStatus(status) in TERMINAL_STATUSES
    except ValueError:
        return False
