"""
Courier Status Registry

Immutable taxonomy of the courier's delivery status codes. Every code maps to
exactly one StatusDefinition carrying its canonical state and policy flags:

- can_delete / can_edit: only while the courier has not picked the order up
- releases_stock: only on final delivery (4) or confirmed return to the merchant (17)
- requires_manual_processing: delivered-with-return (21), resolved by the partial delivery split

The table is built once at import and exposed read-only. Adding a courier code
is a one-line change in _DEFINITIONS.
"""

import logging
from types import MappingProxyType

from pydantic import BaseModel, ConfigDict

from enums.order_status import OrderStatus

logger = logging.getLogger(__name__)

DELIVERED_CODE = '4'
RETURNED_TO_MERCHANT_CODE = '17'
PARTIAL_DELIVERY_CODE = '21'

# Codes after which the courier never reports anything else for the order
TERMINAL_CODES = frozenset({RETURNED_TO_MERCHANT_CODE})

UNKNOWN_STATUS_TEXT = 'حالة غير معروفة'


class StatusDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str
    text: str
    canonical_state: OrderStatus
    can_delete: bool = False
    can_edit: bool = False
    releases_stock: bool = False
    requires_manual_processing: bool = False
    description: str = ""
    icon: str = "package"
    is_known: bool = True


def _status(code: str, text: str, state: OrderStatus, description: str, icon: str, **flags) -> StatusDefinition:
    return StatusDefinition(code=code, text=text, canonical_state=state,
                            description=description, icon=icon, **flags)


_S = OrderStatus

_DEFINITIONS: tuple[StatusDefinition, ...] = (
    _status('0', 'معطل او غير فعال', _S.PENDING, "Inactive, not yet activated", 'pause',
            can_delete=True, can_edit=True),
    _status('1', 'فعال ( قيد التجهير)', _S.PENDING, "Active, being prepared", 'package',
            can_delete=True, can_edit=True),
    _status('2', 'تم الاستلام من قبل المندوب', _S.SHIPPED, "Picked up by the courier", 'truck'),
    _status('3', 'قيد التوصيل الى الزبون (في عهدة المندوب)', _S.DELIVERY, "Out for delivery to the customer", 'truck'),
    _status(DELIVERED_CODE, 'تم التسليم للزبون', _S.DELIVERED, "Delivered to the customer", 'check-circle',
            releases_stock=True),
    _status('5', 'في موقع فرز بغداد', _S.SHIPPED, "At the Baghdad sorting site", 'warehouse'),
    _status('6', 'في مكتب', _S.SHIPPED, "At a courier office", 'building'),
    _status('7', 'في الطريق الى مكتب المحافظة', _S.SHIPPED, "On the way to the governorate office", 'truck'),
    _status('8', 'في مخزن بغداد', _S.SHIPPED, "In the Baghdad warehouse", 'warehouse'),
    _status('9', 'في طريقه للمحافظة', _S.SHIPPED, "On the way to the governorate", 'truck'),
    _status('10', 'وصل الى مكتب المحافظة', _S.SHIPPED, "Arrived at the governorate office", 'building'),
    _status('11', 'تم استلامه من قبل المكتب', _S.SHIPPED, "Received by the office", 'building'),
    _status('12', 'في مخزن مرتجع المحافظة', _S.RETURNED, "In the governorate returns warehouse", 'rotate-ccw'),
    _status('13', 'في مخزن مرتجع بغداد', _S.RETURNED, "In the Baghdad returns warehouse", 'rotate-ccw'),
    _status('14', 'اعادة الارسال الى الزبون', _S.SHIPPED, "Re-sent to the customer", 'repeat'),
    _status('15', 'ارجاع الى التاجر', _S.RETURNED, "Returning to the merchant", 'rotate-ccw'),
    _status('16', 'قيد الارجاع الى التاجر (في عهدة المندوب)', _S.RETURNED, "Being returned, with the courier", 'rotate-ccw'),
    _status(RETURNED_TO_MERCHANT_CODE, 'تم الارجاع الى التاجر', _S.RETURNED_IN_STOCK, "Returned to the merchant",
            'package-check', releases_stock=True),
    _status('18', 'تغيير سعر', _S.DELIVERY, "Price change requested", 'edit'),
    _status('19', 'ارجاع بعد الاستلام', _S.RETURNED, "Returned after receipt", 'rotate-ccw'),
    _status('20', 'تبديل بعد التوصيل', _S.RETURNED, "Exchanged after delivery", 'repeat'),
    _status(PARTIAL_DELIVERY_CODE, 'تم التسليم للزبون واستلام منة الاسترجاع', _S.PARTIAL_DELIVERY,
            "Delivered with items taken back, needs a manual split", 'package-minus',
            requires_manual_processing=True),
    _status('22', 'ارسال الى الفزر', _S.DELIVERY, "Sent to sorting", 'warehouse'),
    _status('23', 'ارسال الى مخزن الارجاعات', _S.RETURNED, "Sent to the returns warehouse", 'rotate-ccw'),
    _status('24', 'تم تغيير محافظة الزبون', _S.DELIVERY, "Customer governorate changed", 'map-pin'),
    _status('25', 'لا يرد', _S.DELIVERY, "Customer does not answer", 'phone-off'),
    _status('26', 'لا يرد بعد الاتفاق', _S.DELIVERY, "No answer after agreement", 'phone-off'),
    _status('27', 'مغلق', _S.DELIVERY, "Phone switched off", 'phone-off'),
    _status('28', 'مغلق بعد الاتفاق', _S.DELIVERY, "Phone switched off after agreement", 'phone-off'),
    _status('29', 'مؤجل', _S.DELIVERY, "Postponed", 'clock'),
    _status('30', 'مؤجل لحين اعادة الطلب لاحقا', _S.DELIVERY, "Postponed until the customer re-orders", 'clock'),
    _status('31', 'الغاء الطلب', _S.RETURNED, "Order cancelled", 'x-circle'),
    _status('32', 'رفض الطلب', _S.RETURNED, "Order rejected", 'x-circle'),
    _status('33', 'مفصول عن الخدمة', _S.DELIVERY, "Number disconnected", 'phone-off'),
    _status('34', 'طلب مكرر', _S.DELIVERY, "Duplicate order", 'copy'),
    _status('35', 'مستلم مسبقا', _S.DELIVERY, "Already received", 'check'),
    _status('36', 'الرقم غير معرف', _S.DELIVERY, "Unknown number", 'phone-off'),
    _status('37', 'الرقم غير داخل في الخدمة', _S.DELIVERY, "Number out of service", 'phone-off'),
    _status('38', 'العنوان غير دقيق', _S.DELIVERY, "Inaccurate address", 'map-pin'),
    _status('39', 'لم يطلب', _S.DELIVERY, "Customer did not order", 'help-circle'),
    _status('40', 'حظر المندوب', _S.DELIVERY, "Courier blocked by the customer", 'slash'),
    _status('41', 'لا يمكن الاتصال بالرقم', _S.DELIVERY, "Number unreachable", 'phone-off'),
    _status('42', 'تغيير المندوب', _S.DELIVERY, "Courier changed", 'user'),
    _status('43', 'تغيير العنوان', _S.DELIVERY, "Address changed", 'map-pin'),
    _status('44', 'اخراج من المخزن وارسالة الى الفرز', _S.DELIVERY, "Taken out of the warehouse to sorting", 'warehouse'),
)


class DeliveryStatusRegistry:
    """Read-only lookup over the courier status taxonomy."""

    _by_code = MappingProxyType({definition.code: definition for definition in _DEFINITIONS})
    _by_text = MappingProxyType({definition.text: definition for definition in _DEFINITIONS})

    @staticmethod
    def unknown(code: str | None) -> StatusDefinition:
        # Unknown codes keep the order in the courier's hands without granting any rights
        return StatusDefinition(
            code=code or "",
            text=UNKNOWN_STATUS_TEXT,
            canonical_state=OrderStatus.DELIVERY,
            description="Unknown courier status",
            icon='help-circle',
            is_known=False,
        )

    @staticmethod
    def normalize_code(code: str | int | None) -> str | None:
        if code is None:
            return None
        code = str(code).strip()
        return code or None

    @classmethod
    def lookup(cls, code: str | int | None) -> StatusDefinition:
        """
        Resolve a courier status code. Never raises.

        Args:
            code: Courier status code, as str or int

        Returns:
            The matching StatusDefinition, or a safe default (all flags false,
            is_known=False) for empty or unrecognized codes
        """
        normalized = cls.normalize_code(code)
        definition = cls._by_code.get(normalized) if normalized is not None else None
        if definition is None:
            logger.warning(f"[StatusRegistry] Unknown courier status code: {code!r}, using safe default")
            return cls.unknown(normalized)
        return definition

    @classmethod
    def lookup_text(cls, text: str | None) -> StatusDefinition | None:
        """Exact match of a courier status text, None when the text is not a registry label."""
        if not text:
            return None
        return cls._by_text.get(text.strip())

    @classmethod
    def is_known(cls, code: str | int | None) -> bool:
        return cls.normalize_code(code) in cls._by_code

    @classmethod
    def is_terminal_code(cls, code: str | int | None) -> bool:
        return cls.normalize_code(code) in TERMINAL_CODES

    @classmethod
    def all_codes(cls) -> list[str]:
        return list(cls._by_code.keys())

    @classmethod
    def codes_for_state(cls, state: OrderStatus) -> list[str]:
        return [code for code, definition in cls._by_code.items() if definition.canonical_state == state]

    @classmethod
    def stock_releasing_codes(cls) -> list[str]:
        return [code for code, definition in cls._by_code.items() if definition.releases_stock]
