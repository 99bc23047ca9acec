"""
Delivery Status Resolver

Turns the raw signal the courier gives for an order into a display/policy result.

A stable status code always wins and is delegated to the registry. Legacy
orders often only carry heterogeneous free text; for those an ordered list of
pattern rules is evaluated and the first match wins. Several patterns are
substrings of others (e.g. "مؤجل" inside "مؤجل لحين اعادة الطلب لاحقا", or
"ارجاع الى التاجر" inside "تم الارجاع الى التاجر"), so the more specific rule
must come first. tests/status/unit/test_delivery_status_resolver.py pins that order.

Free-text results never grant delete/edit rights and never release stock:
only a registry definition (by code, or by an exact courier label) can.
"""

import logging
import re
from typing import Pattern

from pydantic import BaseModel, ConfigDict

from enums.order_status import OrderStatus
from utils.delivery_status_registry import DeliveryStatusRegistry, StatusDefinition

logger = logging.getLogger(__name__)

UNKNOWN_LABEL = 'غير معروف'

CANONICAL_LABELS: dict[OrderStatus, str] = {
    OrderStatus.PENDING: 'قيد التجهيز',
    OrderStatus.SHIPPED: 'تم الشحن',
    OrderStatus.DELIVERY: 'قيد التوصيل',
    OrderStatus.DELIVERED: 'تم التسليم',
    OrderStatus.RETURNED: 'راجعة',
    OrderStatus.RETURNED_IN_STOCK: 'راجع للمخزن',
    OrderStatus.PARTIAL_DELIVERY: 'تسليم جزئي',
}


class StatusPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    can_delete: bool = False
    can_edit: bool = False
    releases_stock: bool = False
    requires_manual_processing: bool = False

    @classmethod
    def from_definition(cls, definition: StatusDefinition) -> "StatusPolicy":
        return cls(
            can_delete=definition.can_delete,
            can_edit=definition.can_edit,
            releases_stock=definition.releases_stock,
            requires_manual_processing=definition.requires_manual_processing,
        )


class ResolvedStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    canonical_state: OrderStatus | None = None
    policy: StatusPolicy = StatusPolicy()
    icon: str = 'help-circle'
    code: str | None = None
    source: str = 'unknown'    # code | text | pattern | unknown
    is_known: bool = False


class StatusRule:
    """A single free-text rule: case-insensitive regex search -> label/icon/state."""

    def __init__(self, pattern: str, label: str, icon: str, canonical_state: OrderStatus,
                 requires_manual_processing: bool = False):
        self.pattern: Pattern = re.compile(pattern, re.IGNORECASE)
        self.label = label
        self.icon = icon
        self.canonical_state = canonical_state
        self.requires_manual_processing = requires_manual_processing

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None

    def __repr__(self):
        return f"StatusRule({self.pattern.pattern!r} -> {self.canonical_state.value})"


STATUS_RULES: tuple[StatusRule, ...] = (
    StatusRule(r'استلام من[ةه] الاسترجاع|partial', 'تسليم جزئي', 'package-minus',
               OrderStatus.PARTIAL_DELIVERY, requires_manual_processing=True),
    StatusRule(r'تم ال[اإ]رجاع [اإ]لى التاجر|returned to merchant', 'تم الارجاع الى التاجر', 'package-check',
               OrderStatus.RETURNED_IN_STOCK),
    StatusRule(r'قيد ال[اإ]رجاع|[اإ]رجاع|راجع|مرتجع|مرجع|return', 'راجع', 'rotate-ccw',
               OrderStatus.RETURNED),
    StatusRule(r'مؤجل لحين|لحين اعادة الطلب', 'مؤجل لحين اعادة الطلب', 'clock',
               OrderStatus.DELIVERY),
    StatusRule(r'قيد التوصيل [اإ]لى الزبون|قيد التوصيل للزبون|في عهد[ةه] المندوب|out for delivery',
               'للزبون', 'truck', OrderStatus.DELIVERY),
    StatusRule(r'في الطريق [اإ]لى مكتب المحافظة|في الطريق [اإ]لى المكتب|طريق المحافظة|في طريقه للمحافظة',
               'في الطريق للمحافظة', 'truck', OrderStatus.SHIPPED),
    StatusRule(r'مكتب المحافظة', 'في مكتب المحافظة', 'building', OrderStatus.SHIPPED),
    StatusRule(r'رفض|ملغي|الغاء|إلغاء|reject|cancel', 'ملغي', 'x-circle', OrderStatus.RETURNED),
    StatusRule(r'تسليم|مسلم|deliver', 'تم التسليم', 'check-circle', OrderStatus.DELIVERED),
    StatusRule(r'جاري التوصيل|قيد التوصيل|مندوب', 'قيد التوصيل', 'truck', OrderStatus.DELIVERY),
    StatusRule(r'في الطريق|طريق|shipping|in transit', 'في الطريق', 'truck', OrderStatus.SHIPPED),
    StatusRule(r'لا يرد|ما يرد|عدم الرد|no answer', 'لا يرد', 'phone-off', OrderStatus.DELIVERY),
    StatusRule(r'مغلق|مقفل|closed', 'مغلق', 'phone-off', OrderStatus.DELIVERY),
    StatusRule(r'عدم وجود|لا يمكن الوصول|غائب|absent|unreachable', 'غائب', 'user-x', OrderStatus.DELIVERY),
    StatusRule(r'مؤجل|تأجيل|postpone|delay', 'مؤجل', 'clock', OrderStatus.DELIVERY),
    StatusRule(r'قيد التجهي[زر]|فعال|pending', 'قيد التجهيز', 'package', OrderStatus.PENDING),
)


class DeliveryStatusResolver:

    @staticmethod
    def from_definition(definition: StatusDefinition, source: str) -> ResolvedStatus:
        return ResolvedStatus(
            label=definition.text,
            canonical_state=definition.canonical_state,
            policy=StatusPolicy.from_definition(definition),
            icon=definition.icon,
            code=definition.code or None,
            source=source,
            is_known=definition.is_known,
        )

    @staticmethod
    def unknown() -> ResolvedStatus:
        return ResolvedStatus(label=UNKNOWN_LABEL, source='unknown')

    @staticmethod
    def match_rule(text: str) -> StatusRule | None:
        for rule in STATUS_RULES:
            if rule.matches(text):
                return rule
        return None

    @staticmethod
    def resolve(primary_code: str | int | None, fallback_free_text: str | None = None) -> ResolvedStatus:
        """
        Resolve a courier status signal.

        Args:
            primary_code: Stable courier status code, if the courier sent one
            fallback_free_text: Legacy free-text status, used only without a code

        Returns:
            ResolvedStatus with label, canonical state and policy flags
        """
        code = DeliveryStatusRegistry.normalize_code(primary_code)
        if code is not None:
            return DeliveryStatusResolver.from_definition(DeliveryStatusRegistry.lookup(code), 'code')

        text = fallback_free_text.strip() if fallback_free_text else ""
        if not text:
            return DeliveryStatusResolver.unknown()

        definition = DeliveryStatusRegistry.lookup_text(text)
        if definition is not None:
            return DeliveryStatusResolver.from_definition(definition, 'text')

        rule = DeliveryStatusResolver.match_rule(text)
        if rule is None:
            logger.warning(f"[StatusResolver] No rule matches courier status text: {text!r}")
            return DeliveryStatusResolver.unknown()

        return ResolvedStatus(
            label=rule.label,
            canonical_state=rule.canonical_state,
            policy=StatusPolicy(requires_manual_processing=rule.requires_manual_processing),
            icon=rule.icon,
            source='pattern',
            is_known=True,
        )

    @staticmethod
    def label_for_state(state: OrderStatus | None) -> str:
        if state is None:
            return UNKNOWN_LABEL
        return CANONICAL_LABELS.get(state, UNKNOWN_LABEL)
