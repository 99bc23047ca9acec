"""
HTTP client for the courier merchant API.

Every response is wrapped in an envelope:
    {"status": true, "errNum": "S000", "msg": "ok", "data": [...]}
Anything else is an error. Errors are mapped onto the exceptions package:
authorization problems raise AuthExpiredException, network/timeout/5xx and
error envelopes raise CourierAPIException. Malformed records are logged and
skipped so a bad payload reads as "nothing new".
"""

import asyncio
import logging
from datetime import datetime
from typing import Any

import aiohttp
from pydantic import ValidationError

import config
from exceptions.courier import AuthExpiredException, CourierAPIException, MalformedCourierResponseException
from models.courier import CourierInvoiceDTO, CourierOrderStatusDTO

logger = logging.getLogger(__name__)

SUCCESS_CODE = "S000"
AUTH_ERROR_MARKERS = ("token", "توكن", "تسجيل الدخول", "unauthorized")


class CourierApiWrapper:

    @staticmethod
    async def fetch_api_request(url: str, method: str = "GET", params: dict | None = None,
                                data: Any = None, headers: dict | None = None) -> Any:
        """
        Perform a single HTTP call with an explicit timeout and return the decoded JSON body.

        Raises:
            AuthExpiredException: HTTP 401/403
            CourierAPIException: network error, timeout or HTTP 5xx / unexpected status
            MalformedCourierResponseException: body is not JSON
        """
        endpoint = url.rsplit("/", 1)[-1]
        timeout = aiohttp.ClientTimeout(total=config.COURIER_API_TIMEOUT_SECONDS)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.request(method, url, params=params, data=data, headers=headers) as response:
                    if response.status in (401, 403):
                        raise AuthExpiredException(reason=f"HTTP {response.status} from {endpoint}")
                    if response.status >= 400:
                        raise CourierAPIException(endpoint, f"HTTP {response.status}", status_code=response.status)
                    try:
                        return await response.json(content_type=None)
                    except ValueError as e:
                        raise MalformedCourierResponseException(endpoint, f"invalid JSON: {e}")
        except aiohttp.ClientError as e:
            raise CourierAPIException(endpoint, f"network error: {e}")
        except asyncio.TimeoutError:
            raise CourierAPIException(endpoint, f"timed out after {config.COURIER_API_TIMEOUT_SECONDS}s")

    @staticmethod
    def unwrap_envelope(payload: Any, endpoint: str) -> Any:
        """Return the envelope's data or raise the mapped exception."""
        if not isinstance(payload, dict):
            raise MalformedCourierResponseException(endpoint, f"expected an object, got {type(payload).__name__}")
        if payload.get("status") is True and payload.get("errNum") == SUCCESS_CODE:
            return payload.get("data")
        message = str(payload.get("msg") or "unexpected courier response")
        if any(marker in message.lower() for marker in AUTH_ERROR_MARKERS):
            raise AuthExpiredException(reason=message)
        raise CourierAPIException(endpoint, f"{payload.get('errNum')}: {message}")

    @staticmethod
    async def call(endpoint: str, token: str, params: dict | None = None) -> Any:
        query = {"token": token, **(params or {})}
        payload = await CourierApiWrapper.fetch_api_request(f"{config.COURIER_API_URL}/{endpoint}", params=query)
        return CourierApiWrapper.unwrap_envelope(payload, endpoint)

    @staticmethod
    def as_records(data: Any, endpoint: str) -> list[dict]:
        if data is None:
            return []
        if isinstance(data, dict):
            return [data]
        if not isinstance(data, list):
            logger.warning(f"[CourierAPI] {endpoint}: expected a list, got {type(data).__name__}; treating as empty")
            return []
        return [record for record in data if isinstance(record, dict)]

    @staticmethod
    async def list_invoices_since(token: str, since: datetime, page_size: int) -> list[CourierInvoiceDTO]:
        """
        Fetch merchant invoices created/updated after `since`.

        The courier does not reliably honor the filter, callers re-filter.
        """
        endpoint = "get_merchant_invoices"
        try:
            data = await CourierApiWrapper.call(endpoint, token, {
                "updated_since": since.strftime("%Y-%m-%d %H:%M:%S"),
                "limit": page_size,
            })
        except MalformedCourierResponseException as e:
            logger.warning(f"[CourierAPI] {e}; treating as empty")
            return []

        invoices = []
        for record in CourierApiWrapper.as_records(data, endpoint):
            try:
                invoices.append(CourierInvoiceDTO.from_payload(record))
            except ValidationError as e:
                logger.warning(f"[CourierAPI] Skipping malformed invoice {record.get('id')!r}: "
                               f"{e.error_count()} validation error(s)")
        return invoices

    @staticmethod
    async def get_order_statuses(token: str, external_ref: str) -> list[CourierOrderStatusDTO]:
        endpoint = "merchant-orders"
        try:
            data = await CourierApiWrapper.call(endpoint, token, {"order_id": external_ref})
        except MalformedCourierResponseException as e:
            logger.warning(f"[CourierAPI] {e}; treating as empty")
            return []

        statuses = []
        for record in CourierApiWrapper.as_records(data, endpoint):
            try:
                statuses.append(CourierOrderStatusDTO.model_validate(record))
            except ValidationError as e:
                logger.warning(f"[CourierAPI] Skipping malformed status for order {external_ref}: "
                               f"{e.error_count()} validation error(s)")
        return statuses
