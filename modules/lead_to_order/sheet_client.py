"""
Spreadsheet endpoint client for Lead to Order.

The sheet is fronted by an Apps Script web app. Reads are GET requests
selected by an ``action`` query parameter, writes are form-encoded POSTs.
Rows come back as arrays of untyped cells.
"""

import json
import logging
from typing import Optional, Sequence

import httpx

from .config import config
from .exceptions import (
    SheetAPIError,
    SheetConnectionError,
    SheetResponseError,
    SheetTimeoutError,
)

logger = logging.getLogger(__name__)


class SheetClient:
    """Apps Script spreadsheet API client."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url or config.SHEET_SCRIPT_URL
        self.timeout = timeout or config.SHEET_REQUEST_TIMEOUT
        self._transport = transport

    def _request(
        self,
        method: str,
        params: Optional[dict] = None,
        form_data: Optional[dict] = None,
    ) -> dict:
        """Make a request to the script endpoint and decode the JSON body."""
        action = (params or form_data or {}).get('action')

        # Apps Script answers via a 302 to googleusercontent.com
        with httpx.Client(
            timeout=self.timeout,
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            try:
                response = client.request(
                    method,
                    self.base_url,
                    params=params,
                    data=form_data,
                )
            except httpx.TimeoutException as e:
                raise SheetTimeoutError(f"{action} timed out after {self.timeout}s") from e
            except httpx.TransportError as e:
                raise SheetConnectionError(f"{action} failed: {e}") from e

            if response.is_error:
                raise SheetAPIError(
                    f"{action} returned HTTP {response.status_code}",
                    status_code=response.status_code,
                )

            try:
                payload = response.json()
            except (json.JSONDecodeError, ValueError) as e:
                raise SheetResponseError(f"{action} returned a non-JSON body") from e

        if not isinstance(payload, dict):
            raise SheetResponseError(f"{action} returned {type(payload).__name__}, expected an object")

        logger.debug(f"{method} {action}: success={payload.get('success')}")
        return payload

    def _rows(self, action: str, payload: dict) -> list[list]:
        """Rows of a read response; anything malformed counts as no data."""
        data = payload.get('data')
        if not payload.get('success') or not isinstance(data, list):
            logger.warning(
                f"{action}: unusable response (success={payload.get('success')!r}, "
                f"data={type(data).__name__}), treating as no data"
            )
            return []
        return [row if isinstance(row, list) else [] for row in data]

    # ==========================================================================
    # Reads
    # ==========================================================================

    def get_leads(self, sheet_name: Optional[str] = None) -> list[list]:
        """Raw rows of the leads sheet."""
        params = {'action': 'getLeads', 'sheetName': sheet_name or config.LEADS_SHEET}
        return self._rows('getLeads', self._request('GET', params=params))

    def get_follow_ups(self) -> list[list]:
        """Raw rows of the follow-up sheet."""
        params = {'action': 'getFollowUps'}
        return self._rows('getFollowUps', self._request('GET', params=params))

    def get_enquiries(self, sheet_name: Optional[str] = None) -> list[list]:
        """Raw rows of the enquiry sheet."""
        params = {'action': 'getEnquiries', 'sheetName': sheet_name or config.ENQUIRY_SHEET}
        return self._rows('getEnquiries', self._request('GET', params=params))

    def get_last_lead_no(self) -> str:
        """Most recently allocated lead number ('' when the sheet is empty)."""
        payload = self._request('GET', params={'action': 'getLastLeadNo'})
        return str(payload.get('lastLeadNo') or '').strip()

    # ==========================================================================
    # Writes
    # ==========================================================================

    def insert(self, sheet_name: str, row: Sequence) -> dict:
        """
        Append a row to a sheet.

        Returns the endpoint's ``{success, error?}`` response.
        """
        form_data = {
            'action': 'insert',
            'sheetName': sheet_name,
            'rowData': json.dumps(list(row)),
        }
        result = self._request('POST', form_data=form_data)
        if result.get('success'):
            logger.info(f"Inserted row into {sheet_name}")
        else:
            logger.warning(f"Insert into {sheet_name} rejected: {result.get('error')}")
        return result

    def insert_follow_up(
        self,
        lead_no: str,
        lead_status: str,
        next_followup_date: str = '',
        what_did_customer_say: str = '',
        sheet_name: Optional[str] = None,
    ) -> dict:
        """Append a follow-up row; the script stamps the timestamp itself."""
        form_data = {
            'action': 'insertFollowUp',
            'sheetName': sheet_name or config.FOLLOW_UP_SHEET,
            'leadNo': lead_no or '',
            'leadStatus': lead_status or '',
            'nextFollowupDate': next_followup_date or '',
            'whatDidCustomerSay': what_did_customer_say or '',
        }
        result = self._request('POST', form_data=form_data)
        if result.get('success'):
            logger.info(f"Recorded follow-up for {lead_no}")
        else:
            logger.warning(f"Follow-up for {lead_no} rejected: {result.get('error')}")
        return result

    def login_user(self, username: str, password: str, sheet_name: Optional[str] = None) -> dict:
        """Check credentials against the login sheet."""
        form_data = {
            'action': 'loginUser',
            'sheetName': sheet_name or config.LOGIN_SHEET,
            'username': username,
            'password': password,
        }
        return self._request('POST', form_data=form_data)
