"""
Unit tests for CourierApiWrapper.

Covers envelope unwrapping, HTTP/network error mapping and record parsing.
No real HTTP calls are made: aiohttp.ClientSession or fetch_api_request is patched.
"""

import asyncio
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

import config
from courier_api.CourierApiWrapper import CourierApiWrapper
from exceptions.courier import AuthExpiredException, CourierAPIException, MalformedCourierResponseException


def _envelope(data, status=True, err_num="S000", msg="ok"):
    return {"status": status, "errNum": err_num, "msg": msg, "data": data}


def _mock_client_session(status: int = 200, json_body=None, json_error: Exception | None = None,
                         request_error: Exception | None = None):
    """Build a patched aiohttp.ClientSession whose request() yields a canned response."""
    response = MagicMock()
    response.status = status
    if json_error is not None:
        response.json = AsyncMock(side_effect=json_error)
    else:
        response.json = AsyncMock(return_value=json_body)

    request_ctx = MagicMock()
    if request_error is not None:
        request_ctx.__aenter__ = AsyncMock(side_effect=request_error)
    else:
        request_ctx.__aenter__ = AsyncMock(return_value=response)
    request_ctx.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    session.request = MagicMock(return_value=request_ctx)

    session_ctx = MagicMock()
    session_ctx.__aenter__ = AsyncMock(return_value=session)
    session_ctx.__aexit__ = AsyncMock(return_value=False)
    return MagicMock(return_value=session_ctx), session


class TestFetchApiRequest:

    @pytest.mark.asyncio
    async def test_success_returns_json(self):
        client_session, _ = _mock_client_session(200, json_body=_envelope([]))
        with patch('courier_api.CourierApiWrapper.aiohttp.ClientSession', client_session):
            result = await CourierApiWrapper.fetch_api_request("https://courier.test/v1/merchant/get_merchant_invoices")

        assert result == _envelope([])
        timeout = client_session.call_args.kwargs['timeout']
        assert timeout.total == config.COURIER_API_TIMEOUT_SECONDS

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403])
    async def test_auth_status_raises_auth_expired(self, status):
        client_session, _ = _mock_client_session(status)
        with patch('courier_api.CourierApiWrapper.aiohttp.ClientSession', client_session):
            with pytest.raises(AuthExpiredException):
                await CourierApiWrapper.fetch_api_request("https://courier.test/v1/merchant/merchant-orders")

    @pytest.mark.asyncio
    async def test_server_error_raises_transient(self):
        client_session, _ = _mock_client_session(502)
        with patch('courier_api.CourierApiWrapper.aiohttp.ClientSession', client_session):
            with pytest.raises(CourierAPIException) as exc_info:
                await CourierApiWrapper.fetch_api_request("https://courier.test/v1/merchant/merchant-orders")

        assert exc_info.value.status_code == 502
        assert exc_info.value.endpoint == "merchant-orders"

    @pytest.mark.asyncio
    async def test_timeout_raises_transient(self):
        client_session, _ = _mock_client_session(request_error=asyncio.TimeoutError())
        with patch('courier_api.CourierApiWrapper.aiohttp.ClientSession', client_session):
            with pytest.raises(CourierAPIException) as exc_info:
                await CourierApiWrapper.fetch_api_request("https://courier.test/v1/merchant/merchant-orders")

        assert "timed out" in exc_info.value.reason

    @pytest.mark.asyncio
    async def test_network_error_raises_transient(self):
        client_session, _ = _mock_client_session(request_error=aiohttp.ClientConnectionError("refused"))
        with patch('courier_api.CourierApiWrapper.aiohttp.ClientSession', client_session):
            with pytest.raises(CourierAPIException):
                await CourierApiWrapper.fetch_api_request("https://courier.test/v1/merchant/merchant-orders")

    @pytest.mark.asyncio
    async def test_invalid_json_raises_malformed(self):
        client_session, _ = _mock_client_session(200, json_error=ValueError("Expecting value"))
        with patch('courier_api.CourierApiWrapper.aiohttp.ClientSession', client_session):
            with pytest.raises(MalformedCourierResponseException):
                await CourierApiWrapper.fetch_api_request("https://courier.test/v1/merchant/merchant-orders")


class TestUnwrapEnvelope:

    def test_success_returns_data(self):
        assert CourierApiWrapper.unwrap_envelope(_envelope([{"id": 1}]), "ep") == [{"id": 1}]

    @pytest.mark.parametrize("msg", ["Invalid token", "انتهت صلاحية التوكن", "يرجى تسجيل الدخول"])
    def test_auth_message_raises_auth_expired(self, msg):
        with pytest.raises(AuthExpiredException):
            CourierApiWrapper.unwrap_envelope(_envelope(None, status=False, err_num="E101", msg=msg), "ep")

    def test_other_error_raises_transient(self):
        with pytest.raises(CourierAPIException) as exc_info:
            CourierApiWrapper.unwrap_envelope(_envelope(None, status=False, err_num="E500", msg="busy"), "ep")

        assert "E500" in exc_info.value.reason

    def test_non_object_payload_is_malformed(self):
        with pytest.raises(MalformedCourierResponseException):
            CourierApiWrapper.unwrap_envelope(["not", "an", "envelope"], "ep")


class TestListInvoices:

    @pytest.mark.asyncio
    @patch('courier_api.CourierApiWrapper.CourierApiWrapper.fetch_api_request')
    async def test_parses_records_and_sends_token(self, mock_fetch):
        """Test invoices are normalized and the token travels as a query parameter."""
        # Arrange
        mock_fetch.return_value = _envelope([
            {"id": 501, "merchant_price": "125000", "delivery_price": "5000", "orders_count": "3",
             "status": "paid", "updated_at": "2024-05-02T10:00:00+03:00"},
            {"invoice_id": "502", "amount": 9000, "created_at": "2024-05-01 08:00:00"},
        ])

        # Act
        invoices = await CourierApiWrapper.list_invoices_since("tok", datetime(2024, 5, 1), 50)

        # Assert
        assert [invoice.external_id for invoice in invoices] == ["501", "502"]
        assert invoices[0].amount == 125000.0
        assert invoices[0].orders_count == 3
        assert invoices[0].timestamp == datetime(2024, 5, 2, 7, 0, 0)
        assert invoices[1].timestamp == datetime(2024, 5, 1, 8, 0, 0)
        url = mock_fetch.call_args.args[0]
        params = mock_fetch.call_args.kwargs['params']
        assert url.endswith("/get_merchant_invoices")
        assert params["token"] == "tok"
        assert params["limit"] == 50

    @pytest.mark.asyncio
    @patch('courier_api.CourierApiWrapper.CourierApiWrapper.fetch_api_request')
    async def test_malformed_records_are_skipped(self, mock_fetch):
        mock_fetch.return_value = _envelope([
            {"merchant_price": 100},                       # no id
            {"id": 7, "updated_at": "not a date"},
            "garbage",
            {"id": 8, "updated_at": "2024-05-02 10:00:00"},
        ])

        invoices = await CourierApiWrapper.list_invoices_since("tok", datetime(2024, 5, 1), 50)

        assert [invoice.external_id for invoice in invoices] == ["8"]

    @pytest.mark.asyncio
    @patch('courier_api.CourierApiWrapper.CourierApiWrapper.fetch_api_request')
    async def test_non_list_data_is_empty(self, mock_fetch):
        mock_fetch.return_value = _envelope("unexpected")

        assert await CourierApiWrapper.list_invoices_since("tok", datetime(2024, 5, 1), 50) == []

    @pytest.mark.asyncio
    @patch('courier_api.CourierApiWrapper.CourierApiWrapper.fetch_api_request')
    async def test_invalid_json_is_empty(self, mock_fetch):
        mock_fetch.side_effect = MalformedCourierResponseException("get_merchant_invoices", "invalid JSON")

        assert await CourierApiWrapper.list_invoices_since("tok", datetime(2024, 5, 1), 50) == []


class TestGetOrderStatuses:

    @pytest.mark.asyncio
    @patch('courier_api.CourierApiWrapper.CourierApiWrapper.fetch_api_request')
    async def test_parses_status_records(self, mock_fetch):
        mock_fetch.return_value = _envelope([
            {"id": "9001", "status_id": 4, "status": "تم التسليم للزبون", "price": "23000"},
        ])

        statuses = await CourierApiWrapper.get_order_statuses("tok", "TRK-1")

        assert len(statuses) == 1
        assert statuses[0].status_code == "4"
        assert statuses[0].status_text == "تم التسليم للزبون"
        assert statuses[0].price == 23000.0
        assert mock_fetch.call_args.kwargs['params']["order_id"] == "TRK-1"

    @pytest.mark.asyncio
    @patch('courier_api.CourierApiWrapper.CourierApiWrapper.fetch_api_request')
    async def test_auth_error_propagates(self, mock_fetch):
        mock_fetch.return_value = _envelope(None, status=False, err_num="E1", msg="token expired")

        with pytest.raises(AuthExpiredException):
            await CourierApiWrapper.get_order_statuses("tok", "TRK-1")
