"""
Order State Machine for validating canonical delivery state transitions.

The courier is the authoritative source of an order's delivery state, so an
unexpected courier-reported transition is still applied; the state machine
flags it in the audit log. The one local transition (partial_delivery ->
delivered after an operator split) requires an operator.
"""

import logging
from typing import Dict, List, Optional, Set

from enums.order_status import OrderStatus

logger = logging.getLogger(__name__)


class OrderStatusTransition:
    """Represents a valid status transition with metadata"""

    def __init__(self, from_status: OrderStatus, to_status: OrderStatus, requires_operator: bool = False,
                 description: str = ""):
        self.from_status = from_status
        self.to_status = to_status
        self.requires_operator = requires_operator
        self.description = description

    def __repr__(self):
        operator_flag = " (Operator)" if self.requires_operator else ""
        return f"{self.from_status.value} -> {self.to_status.value}{operator_flag}"


def _fan_out(from_status: OrderStatus, targets: List[OrderStatus], description: str) -> List[OrderStatusTransition]:
    return [OrderStatusTransition(from_status, target, description=description) for target in targets]


_S = OrderStatus


class OrderStateMachine:
    """
    Finite state machine over the canonical delivery states.

    Courier-driven transitions:
    - PENDING -> any courier state (the courier may skip intermediate scans)
    - SHIPPED <-> DELIVERY, and both -> DELIVERED / RETURNED / RETURNED_IN_STOCK / PARTIAL_DELIVERY
    - DELIVERED -> RETURNED (return/exchange after receipt), PARTIAL_DELIVERY, RETURNED_IN_STOCK
    - RETURNED -> SHIPPED / DELIVERY (re-sent to customer), RETURNED_IN_STOCK
    - PARTIAL_DELIVERY -> RETURNED_IN_STOCK (rejected items back at the merchant)

    Operator transition:
    - PARTIAL_DELIVERY -> DELIVERED (split selected every item)

    Final state:
    - RETURNED_IN_STOCK
    """

    VALID_TRANSITIONS: List[OrderStatusTransition] = [
        *_fan_out(_S.PENDING,
                  [_S.SHIPPED, _S.DELIVERY, _S.DELIVERED, _S.RETURNED, _S.RETURNED_IN_STOCK, _S.PARTIAL_DELIVERY],
                  "Picked up and scanned by the courier"),
        *_fan_out(_S.SHIPPED,
                  [_S.DELIVERY, _S.DELIVERED, _S.RETURNED, _S.RETURNED_IN_STOCK, _S.PARTIAL_DELIVERY],
                  "Courier progress from transit"),
        *_fan_out(_S.DELIVERY,
                  [_S.SHIPPED, _S.DELIVERED, _S.RETURNED, _S.RETURNED_IN_STOCK, _S.PARTIAL_DELIVERY],
                  "Courier progress from last mile"),
        *_fan_out(_S.DELIVERED,
                  [_S.RETURNED, _S.PARTIAL_DELIVERY, _S.RETURNED_IN_STOCK],
                  "Return or exchange after delivery"),
        *_fan_out(_S.RETURNED,
                  [_S.SHIPPED, _S.DELIVERY, _S.RETURNED_IN_STOCK],
                  "Re-sent to the customer or back at the merchant"),
        OrderStatusTransition(_S.PARTIAL_DELIVERY, _S.RETURNED_IN_STOCK,
                              description="Rejected items returned to the merchant"),
        OrderStatusTransition(_S.PARTIAL_DELIVERY, _S.DELIVERED, requires_operator=True,
                              description="Operator split accepted every item"),
    ]

    FINAL_STATUSES: Set[OrderStatus] = {_S.RETURNED_IN_STOCK}

    # Build transition map for fast lookup
    _transition_map: Dict[OrderStatus, Set[OrderStatus]] = {}
    _operator_required_transitions: Set[tuple] = set()
    _transition_descriptions: Dict[tuple, str] = {}

    @classmethod
    def _build_transition_map(cls):
        """Build internal transition maps for performance"""
        if cls._transition_map:
            return

        for transition in cls.VALID_TRANSITIONS:
            cls._transition_map.setdefault(transition.from_status, set()).add(transition.to_status)
            if transition.requires_operator:
                cls._operator_required_transitions.add((transition.from_status, transition.to_status))
            cls._transition_descriptions[(transition.from_status, transition.to_status)] = transition.description

    @classmethod
    def is_valid_transition(cls, from_status: OrderStatus, to_status: OrderStatus) -> bool:
        """
        Check if a status transition is valid according to the state machine.

        Args:
            from_status: Current order status
            to_status: Desired new status

        Returns:
            True if transition is valid, False otherwise
        """
        cls._build_transition_map()

        # Allow staying in same status (no-op)
        if from_status == to_status:
            return True

        return to_status in cls._transition_map.get(from_status, set())

    @classmethod
    def requires_operator(cls, from_status: OrderStatus, to_status: OrderStatus) -> bool:
        cls._build_transition_map()
        return (from_status, to_status) in cls._operator_required_transitions

    @classmethod
    def get_valid_transitions(cls, from_status: OrderStatus) -> List[OrderStatus]:
        cls._build_transition_map()
        return list(cls._transition_map.get(from_status, set()))

    @classmethod
    def get_transition_description(cls, from_status: OrderStatus, to_status: OrderStatus) -> str:
        cls._build_transition_map()
        return cls._transition_descriptions.get(
            (from_status, to_status),
            f"Transition from {from_status.value} to {to_status.value}"
        )

    @classmethod
    def is_final_status(cls, status: OrderStatus) -> bool:
        return status in cls.FINAL_STATUSES

    @classmethod
    def validate_and_log_transition(cls, order_id: int, from_status: OrderStatus, to_status: OrderStatus,
                                    operator: Optional[str] = None) -> bool:
        """
        Validate a status transition and write the audit log entry.

        Args:
            order_id: ID of the order being transitioned
            from_status: Current order status
            to_status: Desired new status
            operator: Operator performing the transition, None for courier-driven ones

        Returns:
            True if transition is valid, False otherwise (an error is logged)
        """
        if not cls.is_valid_transition(from_status, to_status):
            logger.error(f"Invalid status transition for order {order_id}: {from_status.value} -> {to_status.value}")
            return False

        if cls.requires_operator(from_status, to_status) and operator is None:
            logger.error(f"Operator required for transition {from_status.value} -> {to_status.value} on order {order_id}")
            return False

        transition_desc = cls.get_transition_description(from_status, to_status)
        performer = f"operator {operator}" if operator else "courier"
        logger.info(f"ORDER_STATUS_TRANSITION: Order {order_id} {from_status.value} -> {to_status.value} "
                    f"by {performer}: {transition_desc}")
        return True
