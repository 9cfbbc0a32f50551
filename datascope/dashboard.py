"""
Dashboard session state: raw text, current result set, column mapping and status.

Rationale:
- Fetches are async and cannot be cancelled, so each one takes a generation token.
  Only the most recently started fetch may write its result; older ones are dropped.
- Failures never propagate: the previous result stays and `message` explains what went wrong.
- The column mapping is recomputed exactly once per newly loaded result set.
"""

import json
import logging
from typing import List, Optional

from .column_mapper import infer_mapping
from .errors import DataScopeError, MissingCredentialError
from .key_resolver import KeyResolver
from .presentation import build_charts, build_table
from .request_service import DataRequestService
from .schemas import ColumnMapping, DashboardState, ProcessingOptions, Record

logger = logging.getLogger(__name__)

MISSING_KEY_MESSAGE = "Please provide an API key, or ask the server administrator to configure one."
PROCESSING_FAILED_MESSAGE = "Failed to process data. Please check your input and API key."
LOAD_EXAMPLE_FAILED_MESSAGE = "Could not load the example dataset."
NO_INPUT_MESSAGE = "No input data to process. Paste, upload or load example data first."


class DashboardSession:
    def __init__(self, service: DataRequestService, resolver: KeyResolver):
        self.service = service
        self.resolver = resolver
        self.raw_data = ""
        self.records: List[Record] = []
        self.mapping = ColumnMapping()
        self.options = ProcessingOptions()
        self.message: Optional[str] = None
        self._generation = 0
        self._in_flight = False

    @property
    def is_processing(self) -> bool:
        return self._in_flight

    def set_raw_data(self, raw_data: str) -> None:
        # Editing text never touches records or mapping.
        self.raw_data = raw_data or ""

    def clear(self) -> None:
        self.raw_data = ""

    def _begin(self) -> int:
        self._generation += 1
        self._in_flight = True
        return self._generation

    def _is_current(self, token: int) -> bool:
        return token == self._generation

    def _finish(self, token: int) -> None:
        if self._is_current(token):
            self._in_flight = False

    def _load(self, records: List[Record]) -> None:
        self.records = records
        self.mapping = infer_mapping(records)
        self.message = None

    def _advise(self, error: DataScopeError, fallback: str) -> None:
        if isinstance(error, MissingCredentialError):
            self.message = MISSING_KEY_MESSAGE
        else:
            self.message = f"{fallback} ({error})"

    async def process(self, raw_data: Optional[str] = None, options: Optional[ProcessingOptions] = None) -> bool:
        """
        Send the current raw text to the request service.
        Returns True when this call's result was applied.
        """
        if raw_data is not None:
            self.set_raw_data(raw_data)
        if options is not None:
            self.options = options
        if not self.raw_data.strip():
            self.message = NO_INPUT_MESSAGE
            return False

        token = self._begin()
        try:
            records = await self.service.parse(self.raw_data, self.options)
        except DataScopeError as e:
            logger.error(f"Processing failed: {e}")
            if self._is_current(token):
                self._advise(e, PROCESSING_FAILED_MESSAGE)
            return False
        finally:
            self._finish(token)

        if not self._is_current(token):
            logger.warning(f"Discarding stale result of request {token}; latest is {self._generation}")
            return False
        self._load(records)
        return True

    async def load_example(self) -> bool:
        token = self._begin()
        try:
            records = await self.service.generate_example()
        except DataScopeError as e:
            logger.error(f"Loading example failed: {e}")
            if self._is_current(token):
                self._advise(e, LOAD_EXAMPLE_FAILED_MESSAGE)
            return False
        finally:
            self._finish(token)

        if not self._is_current(token):
            logger.warning(f"Discarding stale example load {token}; latest is {self._generation}")
            return False
        self._load(records)
        self.raw_data = json.dumps(records, indent=2)
        return True

    def snapshot(self) -> DashboardState:
        return DashboardState(
            raw_data=self.raw_data,
            records=self.records,
            mapping=self.mapping,
            is_processing=self.is_processing,
            message=self.message,
            key_mode=self.resolver.resolve().mode,
            charts=build_charts(self.records, self.mapping),
            table=build_table(self.records),
        )
