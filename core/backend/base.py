"""
Base client providing a common interface to the school backend.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Dict, List, Optional
import logging

logger = logging.getLogger(__name__)


class BackendError(Exception):
    """Raised when the school backend cannot be reached or rejects a request."""

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Dict = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload or {}


class BaseBackendClient(ABC):
    """
    Abstract base class for school backend clients.

    The backend owns academic-year records and fee payments. Reads return
    fresh read-only snapshots; writes return nothing and callers re-fetch.
    """

    def __init__(self, config: Dict):
        """
        Initialize the client with backend configuration.

        Args:
            config: dict with BASE_URL, TOKEN and TIMEOUT keys
        """
        self.config = config
        self.timeout = config.get('TIMEOUT', 30)
        self._setup()

    def _setup(self):
        """Optional setup hook for subclasses."""
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the backend name."""
        pass

    @abstractmethod
    def fetch_academic_year_records(self, year: str, class_id: str = None) -> List:
        """
        Fetch every student's record for an academic year.

        Args:
            year: academic year in YYYY-YYYY format
            class_id: restrict to one class

        Returns:
            list of AcademicYearRecord
        """
        pass

    @abstractmethod
    def fetch_fee_due(self, class_id: str) -> Decimal:
        """Return the fee amount owed by each student of a class."""
        pass

    @abstractmethod
    def update_mark(self, record_id: str, term: str, sequence: str, subject: str,
                    new_mark: Decimal) -> None:
        """Replace one subject mark of a record."""
        pass

    @abstractmethod
    def calculate_averages(self, record_id: str) -> None:
        """Ask the backend to recompute the stored averages of a record."""
        pass

    @abstractmethod
    def add_fee_payment(self, record_id: str, payment) -> None:
        """Append a FeePayment to a record."""
        pass

    @abstractmethod
    def update_fee_payment(self, record_id: str, bill_id: str, payment) -> None:
        """Replace the payment identified by bill_id."""
        pass

    @abstractmethod
    def delete_fee_payment(self, record_id: str, bill_id: str) -> None:
        """Remove the payment identified by bill_id."""
        pass

    def log_request(self, endpoint: str, method: str, data: Dict = None):
        """Log API request for debugging."""
        logger.info(f"{self.name} API Request: {method} {endpoint}")
        if data:
            logger.debug(f"Request data: {data}")

    def log_response(self, endpoint: str, status_code: int):
        """Log API response for debugging."""
        logger.info(f"{self.name} API Response: {status_code} from {endpoint}")
