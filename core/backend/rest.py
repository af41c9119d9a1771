"""
REST client for the school backend (JSON over HTTP).

Endpoints:
    GET    /academic-years?year=&classes=    -> {"students": [record, ...]}
    GET    /classes/<id>                     -> class document with amountFee
    PUT    /academic-years/<id>/marks
    PUT    /academic-years/<id>/calculate-averages
    POST   /academic-years/<id>/fees
    PUT    /academic-years/<id>/fees/<billID>
    DELETE /academic-years/<id>/fees/<billID>
"""

import requests
from decimal import Decimal
from typing import Dict, List
import logging

from core.records import AcademicYearRecord, parse_decimal
from .base import BaseBackendClient, BackendError

logger = logging.getLogger(__name__)


class RestBackendClient(BaseBackendClient):
    """School backend reached over its JSON REST API."""

    @property
    def name(self) -> str:
        return "SchoolBackend"

    @property
    def base_url(self) -> str:
        return self.config.get('BASE_URL', '').rstrip('/')

    def _get_headers(self) -> Dict:
        """Get request headers, with the bearer token when one is configured."""
        headers = {"Content-Type": "application/json"}
        token = self.config.get('TOKEN')
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def _request(self, method: str, path: str, params: Dict = None, payload: Dict = None):
        endpoint = f"{self.base_url}{path}"
        self.log_request(endpoint, method, payload)

        try:
            response = requests.request(
                method,
                endpoint,
                headers=self._get_headers(),
                params=params,
                json=payload,
                timeout=self.timeout
            )
        except requests.exceptions.Timeout:
            logger.error(f"{self.name} request timed out: {method} {endpoint}")
            raise BackendError("Connection timeout")
        except requests.exceptions.RequestException as e:
            logger.error(f"{self.name} request failed: {method} {endpoint}: {e}")
            raise BackendError(f"Connection error: {str(e)}")

        self.log_response(endpoint, response.status_code)

        try:
            data = response.json() if response.content else {}
        except ValueError:
            data = {}

        if response.status_code >= 400:
            message = data.get('message', 'Request failed') if isinstance(data, dict) else 'Request failed'
            raise BackendError(message, status_code=response.status_code, payload=data)

        return data

    def fetch_academic_year_records(self, year: str, class_id: str = None) -> List[AcademicYearRecord]:
        params = {'year': year}
        if class_id:
            params['classes'] = class_id

        data = self._request('GET', '/academic-years', params=params)
        documents = data.get('students', []) if isinstance(data, dict) else data
        return [AcademicYearRecord.from_api(doc) for doc in documents]

    def fetch_fee_due(self, class_id: str) -> Decimal:
        data = self._request('GET', f'/classes/{class_id}')
        # Some deployments wrap the document.
        if isinstance(data, dict):
            data = data.get('data') or data.get('class') or data
        return parse_decimal(data.get('amountFee'), 'amountFee')

    def update_mark(self, record_id, term, sequence, subject, new_mark) -> None:
        self._request('PUT', f'/academic-years/{record_id}/marks', payload={
            'termInfo': term,
            'sequenceInfo': sequence,
            'subjectInfo': subject,
            'newMark': float(new_mark),
        })

    def calculate_averages(self, record_id) -> None:
        self._request('PUT', f'/academic-years/{record_id}/calculate-averages')

    def add_fee_payment(self, record_id, payment) -> None:
        self._request('POST', f'/academic-years/{record_id}/fees', payload=payment.to_api())

    def update_fee_payment(self, record_id, bill_id, payment) -> None:
        self._request('PUT', f'/academic-years/{record_id}/fees/{bill_id}', payload=payment.to_api())

    def delete_fee_payment(self, record_id, bill_id) -> None:
        self._request('DELETE', f'/academic-years/{record_id}/fees/{bill_id}')
