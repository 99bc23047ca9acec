"""
Unit tests for DeliveryStatusResolver.

Covers code precedence, exact-text lookup, pattern rule ordering (specific
phrases must win over the generic ones they contain) and the unknown result.
"""

import pytest

from enums.order_status import OrderStatus
from utils.delivery_status_resolver import DeliveryStatusResolver, UNKNOWN_LABEL, STATUS_RULES


class TestCodePrecedence:

    def test_code_wins_over_text(self):
        """Test a code is resolved through the registry even if the text says something else."""
        resolved = DeliveryStatusResolver.resolve('4', 'راجع')

        assert resolved.source == 'code'
        assert resolved.canonical_state == OrderStatus.DELIVERED
        assert resolved.policy.releases_stock is True

    def test_unknown_code_does_not_fall_back_to_text(self):
        resolved = DeliveryStatusResolver.resolve('999', 'تم التسليم')

        assert resolved.source == 'code'
        assert resolved.is_known is False
        assert resolved.policy.releases_stock is False

    def test_blank_code_uses_text(self):
        resolved = DeliveryStatusResolver.resolve('  ', 'مؤجل للاسبوع القادم')

        assert resolved.source == 'pattern'
        assert resolved.canonical_state == OrderStatus.DELIVERY


class TestFreeText:

    def test_exact_registry_text_returns_full_definition(self):
        resolved = DeliveryStatusResolver.resolve(None, 'تم الارجاع الى التاجر')

        assert resolved.source == 'text'
        assert resolved.code == '17'
        assert resolved.canonical_state == OrderStatus.RETURNED_IN_STOCK
        assert resolved.policy.releases_stock is True

    @pytest.mark.parametrize("text,expected_label,expected_state", [
        ('مؤجل لحين اعادة الطلب لاحقا يا اخي', 'مؤجل لحين اعادة الطلب', OrderStatus.DELIVERY),
        ('مؤجل الى الغد', 'مؤجل', OrderStatus.DELIVERY),
        ('تم التسليم للزبون واستلام منه الاسترجاع', 'تسليم جزئي', OrderStatus.PARTIAL_DELIVERY),
        ('تم التسليم للزبون اليوم', 'تم التسليم', OrderStatus.DELIVERED),
        ('في الطريق الى مكتب المحافظة - البصرة', 'في الطريق للمحافظة', OrderStatus.SHIPPED),
        ('وصل مكتب المحافظة', 'في مكتب المحافظة', OrderStatus.SHIPPED),
        ('قيد التوصيل الى الزبون', 'للزبون', OrderStatus.DELIVERY),
        ('في الطريق', 'في الطريق', OrderStatus.SHIPPED),
        ('تم الارجاع الى التاجر بنجاح', 'تم الارجاع الى التاجر', OrderStatus.RETURNED_IN_STOCK),
        ('Returned to warehouse', 'راجع', OrderStatus.RETURNED),
        ('OUT FOR DELIVERY', 'للزبون', OrderStatus.DELIVERY),
    ])
    def test_specific_rule_wins(self, text, expected_label, expected_state):
        resolved = DeliveryStatusResolver.resolve(None, text)

        assert resolved.source == 'pattern'
        assert resolved.label == expected_label
        assert resolved.canonical_state == expected_state

    def test_pattern_never_grants_rights(self):
        """Test pattern matches never allow delete/edit or stock release."""
        for text in ['تم التسليم للزبون اليوم', 'تم الارجاع الى التاجر بنجاح', 'قيد التجهيز الان']:
            policy = DeliveryStatusResolver.resolve(None, text).policy

            assert policy.can_delete is False
            assert policy.can_edit is False
            assert policy.releases_stock is False

    def test_rule_order_matters(self):
        """Test the generic postponed rule would shadow the specific one if it came first."""
        specific = next(i for i, rule in enumerate(STATUS_RULES) if rule.label == 'مؤجل لحين اعادة الطلب')
        generic = next(i for i, rule in enumerate(STATUS_RULES) if rule.label == 'مؤجل')

        assert specific < generic
        assert STATUS_RULES[generic].matches('مؤجل لحين اعادة الطلب لاحقا')


class TestUnknown:

    @pytest.mark.parametrize("code,text", [(None, None), (None, ''), (None, '   '), (None, 'xyz 123')])
    def test_unresolvable_input(self, code, text):
        resolved = DeliveryStatusResolver.resolve(code, text)

        assert resolved.label == UNKNOWN_LABEL
        assert resolved.canonical_state is None
        assert resolved.is_known is False
        assert resolved.policy.can_delete is False
        assert resolved.policy.can_edit is False
        assert resolved.policy.releases_stock is False
        assert resolved.policy.requires_manual_processing is False

    def test_label_for_state(self):
        assert DeliveryStatusResolver.label_for_state(OrderStatus.DELIVERED) == 'تم التسليم'
        assert DeliveryStatusResolver.label_for_state(None) == UNKNOWN_LABEL
