"""
Pydantic request/response models.

Rationale:
- Define simple, explicit input/output contracts for the API.
- Keep models minimal so the frontend knows exactly what to send and expect.
- Field names on the wire are camelCase (the browser's convention); aliases map them.
"""

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

# One row of a result set. The field set is dynamic and insertion-ordered.
Value = Union[str, int, float, None]
Record = Dict[str, Value]


class AnalyzeRequest(BaseModel):
    prompt: Optional[str] = None
    system_instruction: str = Field("", alias="systemInstruction")
    schema_: Optional[Dict[str, Any]] = Field(None, alias="schema")

    model_config = ConfigDict(populate_by_name=True)


class AnalyzeResponse(BaseModel):
    text: str


class ErrorResponse(BaseModel):
    error: str


class ProcessingOptions(BaseModel):
    clean_missing_values: bool = Field(True, alias="cleanMissingValues")
    normalize_data: bool = Field(False, alias="normalizeData")
    sort_data: bool = Field(True, alias="sortData")
    filter_rows: bool = Field(False, alias="filterRows")

    model_config = ConfigDict(populate_by_name=True)


class ColumnMapping(BaseModel):
    axis_key: str = Field("", alias="axisKey")
    metric_key: str = Field("", alias="metricKey")
    category_key: str = Field("", alias="categoryKey")

    model_config = ConfigDict(populate_by_name=True)

    def is_empty(self) -> bool:
        return not (self.axis_key or self.metric_key or self.category_key)

    def is_complete(self) -> bool:
        """All three slots resolved; anything less means insufficient data."""
        return bool(self.axis_key and self.metric_key and self.category_key)


class Resolution(BaseModel):
    mode: Literal["local", "server"]
    key: Optional[str] = None


class ProcessRequest(BaseModel):
    raw_data: Optional[str] = Field(None, alias="rawData")
    options: Optional[ProcessingOptions] = None

    model_config = ConfigDict(populate_by_name=True)


class KeyRequest(BaseModel):
    key: str


class TableView(BaseModel):
    headers: List[str] = []
    labels: List[str] = []
    rows: List[List[Value]] = []
    placeholder: Optional[str] = None


class DashboardState(BaseModel):
    raw_data: str = Field("", alias="rawData")
    records: List[Record] = []
    mapping: ColumnMapping = Field(default_factory=ColumnMapping)
    is_processing: bool = Field(False, alias="isProcessing")
    message: Optional[str] = None
    key_mode: Literal["local", "server"] = Field("server", alias="keyMode")
    charts: List[Dict[str, Any]] = []
    table: TableView = Field(default_factory=TableView)

    model_config = ConfigDict(populate_by_name=True)
