"""Pytest configuration and fixtures."""
import asyncio
from typing import Dict, List, Optional

import pytest

from visualizer.models.query import VisualizerQueryRequest, VisualizerQueryResult
from visualizer.models.schema import VisualizerSchema


@pytest.fixture
def schema_payload():
    """Schema catalog as the query service returns it (inside ``data``)."""
    return {
        "fields": [
            {
                "key": "call_analysis_v2.status",
                "label": "Status",
                "source": "call_analysis_v2",
                "type": "enum",
                "groupable": True,
                "aggregatable": False,
                "filterable": True,
                "enumValues": ["open", "closed", "escalated"],
            },
            {
                "key": "call_analysis_v2.duration",
                "label": "Duration (s)",
                "source": "call_analysis_v2",
                "type": "numeric",
                "groupable": False,
                "aggregatable": True,
                "filterable": True,
            },
            {
                "key": "call_analysis_v2.agent_name",
                "label": "Agent",
                "source": "call_analysis_v2",
                "type": "text",
                "groupable": True,
                "aggregatable": True,
                "filterable": True,
            },
            {
                "key": "call_analysis_v2.created_at",
                "label": "Created",
                "source": "call_analysis_v2",
                "type": "timestamp",
                "groupable": True,
                "aggregatable": False,
                "filterable": True,
            },
            {
                "key": "call_analysis_v2.is_escalated",
                "label": "Escalated",
                "source": "call_analysis_v2",
                "type": "boolean",
                "groupable": True,
                "aggregatable": False,
                "filterable": True,
            },
            {
                "key": "call_tags.tag_name",
                "label": "Tag",
                "source": "call_tags",
                "type": "text",
                "groupable": True,
                "aggregatable": False,
                "filterable": False,
            },
        ],
        "datePresets": ["today", "yesterday", "last_7_days", "last_30_days", "this_month", "this_year"],
        "allowedOperators": {
            "text": ["contains", "eq", "ne", "not_contains", "starts_with", "ends_with",
                     "in", "not_in", "is_null", "is_not_null"],
            "numeric": ["eq", "ne", "gt", "gte", "lt", "lte", "between", "is_null", "is_not_null"],
            "boolean": ["eq", "is_null", "is_not_null"],
            "timestamp": ["date_preset", "between", "gt", "lt", "is_null", "is_not_null"],
            "enum": ["eq", "ne", "in", "not_in", "is_null", "is_not_null"],
            "jsonb": ["contains_key", "is_null", "is_not_null"],
        },
        "aggregationFns": ["count", "count_distinct", "sum", "avg", "min", "max"],
    }


@pytest.fixture
def schema(schema_payload):
    """Parsed schema catalog."""
    return VisualizerSchema.model_validate(schema_payload)


def make_result(rows: List[Dict], columns: Optional[List[str]] = None, execution_ms: float = 5) -> VisualizerQueryResult:
    """Build a query result from row dicts."""
    if columns is None:
        columns = list(rows[0].keys()) if rows else []
    return VisualizerQueryResult(
        columns=tuple(columns),
        rows=tuple(rows),
        row_count=len(rows),
        truncated=False,
        execution_ms=execution_ms,
    )


class FakeQueryService:
    """
    Stand-in for VisualizerClient.run_query.

    Call ``n`` (0-based) can be held back with ``gates[n]``, made to fail
    with ``errors[n]`` or answered with ``results[n]``. Otherwise the
    result carries the call index in its single row.
    """

    def __init__(self):
        self.calls: List[VisualizerQueryRequest] = []
        self.gates: Dict[int, asyncio.Event] = {}
        self.errors: Dict[int, Exception] = {}
        self.results: Dict[int, VisualizerQueryResult] = {}

    async def run_query(self, request: VisualizerQueryRequest) -> VisualizerQueryResult:
        index = len(self.calls)
        self.calls.append(request)
        gate = self.gates.get(index)
        if gate is not None:
            await gate.wait()
        if index in self.errors:
            raise self.errors[index]
        if index in self.results:
            return self.results[index]
        return make_result([{"call": index, "count_*": 10 + index}])


@pytest.fixture
def query_service():
    """Fake query service recording every executed request."""
    return FakeQueryService()


async def wait_for(predicate, timeout: float = 1.0):
    """Poll the event loop until ``predicate()`` holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not met before timeout")
        await asyncio.sleep(0.001)
