import json

import httpx
import pytest

from flashquery.core.exceptions import DownstreamServiceError, NotFoundError
from flashquery.services.vector_store import (
    MAX_QUERY_WINDOW,
    VectorStore,
    database_filter,
    format_vector,
    parse_field_descriptions,
)


RECORDS = [
    {
        "id": "db_1_orders",
        "database_id": "db_1",
        "table_name": "orders",
        "text": "Table: orders\nCustomer orders\nColumns: id, total",
        "needs_sync": False,
        "skipped": False,
        "field_descriptions": json.dumps([{"field_name": "id", "description": "Order id"}]),
    },
    {
        "id": "db_1_customers",
        "database_id": "db_1",
        "table_name": "customers",
        "text": "Table: customers\nPeople who buy\nColumns: id, email",
        "needs_sync": False,
        "skipped": False,
    },
]


class MilvusStub:
    """Captures requests and replies like the Milvus REST API."""

    def __init__(self, records=None, code=0):
        self.records = records if records is not None else [dict(r) for r in RECORDS]
        self.code = code
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append((request.url.path, body))

        if self.code:
            return httpx.Response(200, json={"code": self.code, "message": "collection not loaded"})

        if request.url.path.endswith("/entities/upsert"):
            return httpx.Response(200, json={"code": 0, "data": {"upsertCount": len(body["data"])}})

        records = self.records
        if "table_name ==" in body["filter"]:
            table_name = body["filter"].split('table_name == "')[1].rstrip('"')
            records = [r for r in records if r["table_name"] == table_name]

        if body["outputFields"] == ["count(*)"]:
            return httpx.Response(200, json={"code": 0, "data": [{"count(*)": len(records)}]})

        offset = body.get("offset", 0)
        return httpx.Response(200, json={"code": 0, "data": records[offset:offset + body["limit"]]})


def make_store(stub) -> VectorStore:
    return VectorStore(
        base_url="http://milvus:19530/",
        collection="table_embeddings",
        token="root:Milvus",
        transport=httpx.MockTransport(stub),
    )


def test_database_filter_escapes_quotes():
    assert database_filter("db_1") == 'database_id == "db_1"'
    assert database_filter('db"1', "orders") == 'database_id == "db\\"1" && table_name == "orders"'


def test_parse_field_descriptions():
    assert parse_field_descriptions(None) == []
    assert parse_field_descriptions("not json") == []
    assert parse_field_descriptions('{"a": 1}') == []
    assert parse_field_descriptions('[{"field_name": "id"}]') == [{"field_name": "id"}]


def test_format_vector_splits_text():
    vector = format_vector(RECORDS[0])
    assert vector["table_name"] == "orders"
    assert vector["description"] == "Customer orders"
    assert vector["fields_count"] == 1
    assert vector["metadata"]["columnsLine"] == "Columns: id, total"


@pytest.mark.asyncio
async def test_list_vectors_paginates_in_milvus():
    stub = MilvusStub()
    result = await make_store(stub).list_vectors("db_1", limit=1, offset=1)

    assert result["total"] == 2
    assert result["hasData"] is True
    assert [v["table_name"] for v in result["vectors"]] == ["customers"]

    path, body = stub.requests[-1]
    assert path == "/v2/vectordb/entities/query"
    assert body["collectionName"] == "table_embeddings"
    assert body["filter"] == 'database_id == "db_1"'
    assert body["limit"] == 1
    assert body["offset"] == 1


@pytest.mark.asyncio
async def test_list_vectors_with_search_filters_locally():
    stub = MilvusStub()
    result = await make_store(stub).list_vectors("db_1", search="PEOPLE")

    assert result["total"] == 1
    assert result["tables"] == ["customers"]
    assert stub.requests[-1][1]["limit"] == MAX_QUERY_WINDOW


@pytest.mark.asyncio
async def test_empty_database_has_no_data():
    result = await make_store(MilvusStub(records=[])).list_vectors("db_1")
    assert result == {
        "vectors": [],
        "total": 0,
        "hasData": False,
        "tables": [],
        "metadata": {"collection": "table_embeddings", "database_id": "db_1"},
    }


@pytest.mark.asyncio
async def test_update_field_descriptions_upserts_whole_records():
    stub = MilvusStub()
    fields = [{"field_name": "total", "description": "Order total"}]

    count = await make_store(stub).update_field_descriptions("db_1", "orders", fields)

    assert count == 1
    path, body = stub.requests[-1]
    assert path == "/v2/vectordb/entities/upsert"
    [record] = body["data"]
    assert record["table_name"] == "orders"
    assert record["text"].startswith("Table: orders")
    assert record["needs_sync"] is True
    assert json.loads(record["field_descriptions"]) == fields


@pytest.mark.asyncio
async def test_skip_does_not_flag_needs_sync():
    stub = MilvusStub()
    await make_store(stub).set_table_skipped("db_1", "customers", True)

    [record] = stub.requests[-1][1]["data"]
    assert record["skipped"] is True
    assert record["needs_sync"] is False


@pytest.mark.asyncio
async def test_unknown_table_is_not_found():
    with pytest.raises(NotFoundError):
        await make_store(MilvusStub()).get_field_descriptions("db_1", "missing")


@pytest.mark.asyncio
async def test_milvus_error_code_raises():
    with pytest.raises(DownstreamServiceError) as exc_info:
        await make_store(MilvusStub(code=1100)).list_vectors("db_1")
    assert "collection not loaded" in exc_info.value.message


@pytest.mark.asyncio
async def test_token_is_sent_as_bearer():
    seen = {}

    def handler(request):
        seen["authorization"] = request.headers.get("authorization")
        return httpx.Response(200, json={"code": 0, "data": []})

    await make_store(handler).query('database_id == "db_1"')
    assert seen["authorization"] == "Bearer root:Milvus"
