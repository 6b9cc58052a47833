import json

import pytest

from app.external.base_adapter import IntegrationConfig
from app.external.graphql_adapter import GraphqlAdapter
from tests.conftest import json_transport

EVENTS = {
    "allEvents": {
        "data": [
            {"id": 21878, "tickets": [{"price": [{"price": "2100.00"}]}]},
            {"id": 21970, "tickets": [{"price": [{"price": "2500.00"}]}]},
        ]
    }
}

QUERY = "query Events { allEvents { data { id tickets { price { price } } } } }"


def graphql_config(**extra) -> IntegrationConfig:
    return IntegrationConfig.model_validate({"url": "https://events.example.com/graphql", "query": QUERY, **extra})


class TestGraphqlNormalization:
    def setup_method(self):
        self.adapter = GraphqlAdapter()

    def test_nested_array_becomes_rows(self):
        rows = self.adapter.normalize_data(EVENTS)

        assert len(rows) == 2
        assert [row["id"] for row in rows] == [21878, 21970]

    def test_limit_applies_to_found_array(self):
        assert len(self.adapter.normalize_data(EVENTS, limit=1)) == 1

    def test_object_without_array_is_flattened(self):
        data = {"summary": {"revenue": 100, "orders": {"count": 3}, "tickets": []}}

        assert self.adapter.normalize_data(data) == [{"summary.revenue": 100, "summary.orders.count": 3}]

    def test_nested_values_are_extracted(self):
        values = self.adapter.extract_values_from_array(EVENTS["allEvents"]["data"][0]["tickets"])

        assert values == [2100.0]

    def test_numeric_strings_keep_only_finite_prefixes(self):
        items = [{"price": "NaN"}, {"amount": "Infinity"}, {"value": "-inf"}, {"price": "1e999"},
                 {"price": "12.5 EUR"}, {"amount": " -3"}, {"value": "n/a"}]

        values = self.adapter.extract_values_from_array(items)

        assert values == [12.5, -3.0]
        assert json.dumps(values) == "[12.5, -3.0]"

    def test_flatten_collects_array_values_and_first_element(self):
        flat = self.adapter.flatten_object({"stats": {"amounts": [{"amount": 4}, {"amount": 6}], "label": "Q1"}})

        assert flat["stats.amounts"] == [4, 6]
        assert flat["stats.amounts[].amount"] == 4
        assert flat["stats.label"] == "Q1"

    def test_depth_is_bounded(self):
        deep = current = {}
        for _ in range(50):
            current["next"] = {}
            current = current["next"]
        current["value"] = 1

        assert self.adapter.find_first_array(deep) is None
        assert self.adapter.normalize_data(deep) == [{}]


class TestGraphqlRequests:
    @pytest.mark.asyncio
    async def test_fetch_data_posts_query(self):
        calls = []
        adapter = GraphqlAdapter(transport=json_transport({"data": EVENTS}, calls=calls))

        result = await adapter.fetch_data(graphql_config(variables='{"year": 2026}', operationName="Events"))

        assert result.success is True
        assert result.total_rows == 2
        body = json.loads(calls[0].content)
        assert calls[0].method == "POST"
        assert body == {"query": QUERY, "variables": {"year": 2026}, "operationName": "Events"}

    @pytest.mark.asyncio
    async def test_empty_variables_are_omitted(self):
        calls = []
        adapter = GraphqlAdapter(transport=json_transport({"data": EVENTS}, calls=calls))

        await adapter.fetch_data(graphql_config(variables={}))

        assert "variables" not in json.loads(calls[0].content)

    @pytest.mark.asyncio
    async def test_errors_without_data(self):
        adapter = GraphqlAdapter(transport=json_transport({"errors": [{"message": "Unknown field"}]}))

        result = await adapter.fetch_data(graphql_config())

        assert result.success is False
        assert result.error == "GraphQL error: Unknown field"

    @pytest.mark.asyncio
    async def test_partial_data_is_accepted(self):
        payload = {"data": EVENTS, "errors": [{"message": "tickets unavailable"}]}
        adapter = GraphqlAdapter(transport=json_transport(payload))

        result = await adapter.fetch_data(graphql_config())

        assert result.success is True
        assert result.total_rows == 2

    @pytest.mark.asyncio
    async def test_connection_fails_on_any_error(self):
        payload = {"data": EVENTS, "errors": [{"message": "deprecated"}]}
        adapter = GraphqlAdapter(transport=json_transport(payload))

        result = await adapter.test_connection(graphql_config())

        assert result.success is False
        assert result.message == "GraphQL error: deprecated"
        assert json.loads(result.error) == [{"message": "deprecated"}]

    @pytest.mark.asyncio
    async def test_missing_query(self):
        adapter = GraphqlAdapter(transport=json_transport({}))

        result = await adapter.fetch_data(IntegrationConfig(url="https://events.example.com/graphql"))

        assert result.success is False
        assert result.error == "GraphQL query is required"

    @pytest.mark.asyncio
    async def test_missing_endpoint(self):
        adapter = GraphqlAdapter(transport=json_transport({}))

        result = await adapter.test_connection(IntegrationConfig(query=QUERY))

        assert result.success is False
        assert result.error == "GraphQL endpoint URL is required"


class TestGraphqlDiscovery:
    @pytest.mark.asyncio
    async def test_discovers_through_nested_arrays(self):
        adapter = GraphqlAdapter(transport=json_transport({"data": EVENTS}))

        fields = await adapter.discover_fields(graphql_config())
        by_path = {field.path: field for field in fields}

        assert set(by_path) == {"id", "tickets.price.price"}
        assert by_path["id"].data_type == "number"
        assert by_path["tickets.price.price"].sample == "2100.00"

    @pytest.mark.asyncio
    async def test_discovery_on_error_returns_empty_list(self):
        adapter = GraphqlAdapter(transport=json_transport({"errors": [{"message": "denied"}]}))

        assert await adapter.discover_fields(graphql_config()) == []
