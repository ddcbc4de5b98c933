# core/document_store.py
"""
Document-store boundary over the Supabase tables.

Exposes the get/list/create/update/delete document operations the social API
is written against. Every call runs the synchronous Supabase SDK in a worker
thread and converts SDK failures into the errors in core.errors.
"""
import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field
from postgrest import APIResponse
from supabase import PostgrestAPIError

from core.config import logger as core_logger
from core.errors import DocumentNotFoundError, TransientBackendError
from core.supabase_client import get_supabase_client

logger = core_logger.getChild("DocumentStore")

ID_COLUMN = "id"
ORDER_METHODS = ("order_desc", "order_asc")
# Postgres rejects a malformed id literal (e.g. not a uuid) with this code
INVALID_ID_CODES = {"22P02"}


@dataclass(frozen=True)
class Query:
    """A single filter, sort, limit or cursor predicate for list_documents."""
    method: str
    column: Optional[str] = None
    value: Any = None

    @classmethod
    def equal(cls, column: str, value: Any) -> "Query":
        return cls("equal", column, value)

    @classmethod
    def contains(cls, column: str, values: Sequence[Any]) -> "Query":
        return cls("contains", column, list(values))

    @classmethod
    def search(cls, column: str, term: str) -> "Query":
        return cls("search", column, term)

    @classmethod
    def order_desc(cls, column: str) -> "Query":
        return cls("order_desc", column)

    @classmethod
    def order_asc(cls, column: str) -> "Query":
        return cls("order_asc", column)

    @classmethod
    def limit(cls, count: int) -> "Query":
        return cls("limit", value=count)

    @classmethod
    def cursor_after(cls, document_id: str) -> "Query":
        return cls("cursor_after", value=document_id)


class DocumentList(BaseModel):
    """Result of list_documents."""
    total: int = 0
    documents: List[Dict[str, Any]] = Field(default_factory=list)


def _with_id_tie_break(queries: List[Query]) -> List[Query]:
    """Appends an id sort key so documents sharing a sort value keep a fixed position."""
    orders = [q for q in queries if q.method in ORDER_METHODS]
    if not orders or any(q.column == ID_COLUMN for q in orders):
        return queries
    return [*queries, Query(orders[0].method, ID_COLUMN)]

def _filter_value(value: Any) -> str:
    """Quotes a value for a PostgREST logical filter, where commas and parentheses are reserved."""
    if isinstance(value, bool):
        value = str(value).lower()
    text = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{text}"'

def _keyset_filter(orders: Sequence[Query], values: Sequence[Any]) -> str:
    """
    Builds the `or` filter selecting rows strictly after the cursor row.

    For sort keys (a, b) descending this is `a < va OR (a = va AND b < vb)`.
    """
    clauses = []
    for i, order in enumerate(orders):
        terms = [f"{prev.column}.eq.{_filter_value(values[j])}" for j, prev in enumerate(orders[:i])]
        operator = "lt" if order.method == "order_desc" else "gt"
        terms.append(f"{order.column}.{operator}.{_filter_value(values[i])}")
        clauses.append(terms[0] if len(terms) == 1 else f"and({','.join(terms)})")
    return ",".join(clauses)

def _apply_query(request, query: Query, cursor_filter: Optional[str]):
    """Adds one predicate to a PostgREST request builder."""
    if query.method == "equal":
        return request.eq(query.column, query.value)
    if query.method == "contains":
        return request.contains(query.column, query.value)
    if query.method == "search":
        # websearch_to_tsquery accepts free text typed by users
        return request.wfts(query.column, query.value)
    if query.method == "order_desc":
        return request.order(query.column, desc=True)
    if query.method == "order_asc":
        return request.order(query.column)
    if query.method == "limit":
        return request.limit(query.value)
    if query.method == "cursor_after":
        return request.or_(cursor_filter)
    raise ValueError(f"Unsupported query method: {query.method}")


class DocumentStore:
    """Async document operations over a Supabase client."""

    def __init__(self, client):
        self.client = client

    async def _run(self, db_call: Callable[[], APIResponse], action: str,
                   not_found: Optional[DocumentNotFoundError] = None) -> APIResponse:
        try:
            return await asyncio.to_thread(db_call)
        except PostgrestAPIError as e:
            if not_found is not None and e.code in INVALID_ID_CODES:
                logger.info(f"{action}: invalid id ({e.message}), treating as not found.")
                raise not_found from e
            logger.error(f"Supabase API error during {action}: {e.message} (Code: {e.code}, Details: {e.details})", exc_info=False)
            raise TransientBackendError(f"Backend API error during {action}: {e.message}") from e
        except Exception as e:
            logger.error(f"Unexpected error during {action}: {e}", exc_info=True)
            raise TransientBackendError(f"Unexpected backend error during {action}: {e}") from e

    async def get_document(self, collection: str, document_id: str) -> Dict[str, Any]:
        """Fetches one document by id. Raises DocumentNotFoundError if it does not exist."""
        job_prefix = f"[{document_id}]"
        not_found = DocumentNotFoundError(collection, str(document_id))
        if not document_id:
            raise not_found

        def db_call():
            return self.client.table(collection)\
                   .select("*")\
                   .eq(ID_COLUMN, document_id)\
                   .limit(1)\
                   .execute()

        response = await self._run(db_call, f"{job_prefix} get from '{collection}'", not_found=not_found)
        if response and response.data:
            logger.debug(f"{job_prefix} Retrieved document from '{collection}'.")
            return response.data[0]
        logger.info(f"{job_prefix} No document found in '{collection}'.")
        raise not_found

    async def list_documents(self, collection: str, queries: Sequence[Query] = ()) -> DocumentList:
        """
        Lists documents matching the given predicates.

        Sorted lists always end with an id sort key, so `cursor_after` continues
        from the cursor document's position even when other documents share its
        sort values.
        """
        queries = _with_id_tie_break(list(queries))
        orders = [q for q in queries if q.method in ORDER_METHODS]
        cursor = next((q for q in queries if q.method == "cursor_after"), None)

        cursor_filter = None
        if cursor is not None:
            if not orders:
                raise ValueError("cursor_after requires an order_desc or order_asc predicate")
            cursor_document = await self.get_document(collection, cursor.value)
            missing = [q.column for q in orders if cursor_document.get(q.column) is None]
            if missing:
                raise ValueError(f"Cursor document '{cursor.value}' has no value for {', '.join(missing)}")
            cursor_filter = _keyset_filter(orders, [cursor_document[q.column] for q in orders])

        def db_call():
            request = self.client.table(collection).select("*", count="exact")
            for query in queries:
                request = _apply_query(request, query, cursor_filter)
            return request.execute()

        response = await self._run(db_call, f"list '{collection}'")
        documents = response.data or []
        total = response.count if isinstance(response.count, int) else len(documents)
        logger.debug(f"Listed {len(documents)} document(s) from '{collection}' (total={total}).")
        return DocumentList(total=total, documents=documents)

    async def create_document(self, collection: str, data: Dict[str, Any],
                              document_id: Optional[str] = None) -> Dict[str, Any]:
        """Inserts a document. The backend assigns the id unless one is given."""
        payload = {**data, ID_COLUMN: document_id} if document_id else dict(data)

        def db_call():
            return self.client.table(collection).insert(payload).execute()

        response = await self._run(db_call, f"create in '{collection}'")
        if not response.data:
            logger.warning(f"Insert into '{collection}' returned no data.")
            raise TransientBackendError(f"Backend returned no data creating document in '{collection}'")
        created = response.data[0]
        logger.info(f"[{created.get(ID_COLUMN)}] Created document in '{collection}'.")
        return created

    async def update_document(self, collection: str, document_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Updates fields of one document. Raises DocumentNotFoundError if nothing matched."""
        job_prefix = f"[{document_id}]"
        not_found = DocumentNotFoundError(collection, document_id)

        def db_call():
            return self.client.table(collection)\
                   .update(data)\
                   .eq(ID_COLUMN, document_id)\
                   .execute()

        response = await self._run(db_call, f"{job_prefix} update in '{collection}'", not_found=not_found)
        if not response.data:
            logger.warning(f"{job_prefix} Update matched no document in '{collection}'.")
            raise not_found
        logger.info(f"{job_prefix} Updated fields {sorted(data)} in '{collection}'.")
        return response.data[0]

    async def delete_document(self, collection: str, document_id: str) -> None:
        """Deletes one document. Raises DocumentNotFoundError if nothing matched."""
        job_prefix = f"[{document_id}]"
        not_found = DocumentNotFoundError(collection, document_id)

        def db_call():
            return self.client.table(collection)\
                   .delete()\
                   .eq(ID_COLUMN, document_id)\
                   .execute()

        response = await self._run(db_call, f"{job_prefix} delete from '{collection}'", not_found=not_found)
        if not response.data:
            logger.warning(f"{job_prefix} Delete matched no document in '{collection}'.")
            raise not_found
        logger.info(f"{job_prefix} Deleted document from '{collection}'.")


async def get_document_store() -> DocumentStore:
    """Builds a DocumentStore on the cached Supabase client."""
    client = await get_supabase_client()
    return DocumentStore(client)
