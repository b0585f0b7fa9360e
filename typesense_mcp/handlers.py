"""
MCP operation handlers for the Typesense adapter.

Each handler takes the ``TypesenseContext`` built at startup, performs at most
two Typesense calls (schema, then a best-effort document sample) and returns
``mcp.types`` objects. Handlers are synchronous; the server wiring runs them
off the event loop.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import quote, unquote, urlparse

import mcp.types as types
from pydantic import ValidationError as PydanticValidationError

from .client import CollectionDescriptor, SearchParams, TypesenseClient
from .config import AppConfig, ConnectionConfig
from .errors import (
    NotFoundPolicyError,
    ServiceError,
    UpstreamError,
    ValidationError,
)

logger = logging.getLogger(__name__)

URI_SCHEME = "typesense"
COLLECTIONS_PREFIX = "/collections/"
JSON_MIME = "application/json"

# Never send vectors back to the agent.
EXCLUDED_FIELDS = ["embedding"]


@dataclass
class TypesenseContext:
    connection: ConnectionConfig
    client: TypesenseClient
    app: AppConfig = field(default_factory=AppConfig)


def _dumps(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False, indent=2)


def _text(obj: Any) -> List[types.TextContent]:
    return [types.TextContent(type="text", text=_dumps(obj))]


def collection_uri(name: str) -> str:
    return f"{URI_SCHEME}://collections/{quote(name, safe='')}"


def collection_name_from_uri(uri: str) -> str:
    """Return the collection name of ``typesense://collections/<name>``.

    Raises ValidationError when nothing is left after the
    ``/collections/`` prefix.
    """
    parsed = urlparse(str(uri))
    path = "/" + (parsed.netloc + parsed.path).lstrip("/")
    name = ""
    if path.startswith(COLLECTIONS_PREFIX):
        name = unquote(path[len(COLLECTIONS_PREFIX):].rstrip("/"))
    if not name:
        raise ValidationError(
            "Invalid collection URI format. "
            "Expected: typesense://collections/{collectionName}"
        )
    return name


def _sample_documents(
    ctx: TypesenseContext, collection: str, size: int
) -> List[Dict[str, Any]]:
    """Best-effort sample; any Typesense failure yields an empty list."""
    try:
        result = ctx.client.search_documents(
            collection, SearchParams(q="*", per_page=size)
        )
    except ServiceError as exc:
        logger.info(
            "No sample documents found for collection %s: %s", collection, exc
        )
        return []
    return result.documents()


# -- resources ---------------------------------------------------------------


def list_resources(ctx: TypesenseContext) -> List[types.Resource]:
    logger.info("Fetching collections from %s", ctx.connection.base_url)
    try:
        collections = ctx.client.list_collections()
    except ServiceError as exc:
        logger.error("Error fetching collections from Typesense", exc_info=True)
        raise UpstreamError(f"Typesense error: {exc}") from exc

    logger.info("Found %d collections", len(collections))
    # Zero collections is an error, never an empty list.
    if not collections:
        raise NotFoundPolicyError(
            "Typesense error: No collections found in Typesense"
        )

    return [
        types.Resource(
            uri=collection_uri(c.name),
            name=c.name,
            description=f"Collection with {c.num_documents or 0} documents",
            mimeType=JSON_MIME,
        )
        for c in collections
    ]


def read_resource(ctx: TypesenseContext, uri: str) -> str:
    """Describe one collection: its fields plus a single sample document."""
    try:
        name = collection_name_from_uri(uri)
    except ValidationError as exc:
        raise ValidationError(f"Failed to read collection: {exc}") from exc
    try:
        schema = ctx.client.retrieve_collection(name)
    except ServiceError as exc:
        logger.error("Error reading collection %s", name, exc_info=True)
        raise UpstreamError(
            f"Failed to read collection '{name}': {exc}"
        ) from exc

    docs = _sample_documents(ctx, name, ctx.app.samples.resource_sample_size)
    return _dumps(
        {
            "type": "collection",
            "name": name,
            "fields": schema.fields,
            "sample": docs[0] if docs else None,
        }
    )


def list_resource_templates() -> List[types.ResourceTemplate]:
    return [
        types.ResourceTemplate(
            name="typesense_search",
            description="Template for constructing Typesense search queries",
            uriTemplate=f"{URI_SCHEME}://collections/{{collection}}/search",
            text=SEARCH_TEMPLATE_TEXT,
        ),
        types.ResourceTemplate(
            name="typesense_collection",
            description="Template for viewing Typesense collection details",
            uriTemplate=f"{URI_SCHEME}://collections/{{collection}}",
            mimeType=JSON_MIME,
            text=COLLECTION_TEMPLATE_TEXT,
        ),
    ]


# -- tools -------------------------------------------------------------------


def _string_prop(description: str) -> Dict[str, str]:
    return {"type": "string", "description": description}


TOOLS = [
    types.Tool(
        name="typesense_query",
        description=(
            "Search for relevant documents in the Typesense database based "
            "on the user's query."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "query": _string_prop("The search query entered by the user."),
                "collection": _string_prop(
                    "The name of the Typesense collection to search within."
                ),
                "query_by": _string_prop(
                    "Comma-separated fields to search in the collection, "
                    "e.g., 'title,content'."
                ),
                "filter_by": _string_prop(
                    "Optional filtering criteria, e.g., 'category:Chatbot'."
                ),
                "sort_by": _string_prop(
                    "Sorting criteria, e.g., 'created_at:desc'."
                ),
                "limit": {
                    "type": "integer",
                    "description": "The maximum number of results to return.",
                    "default": 10,
                },
            },
            "required": ["query", "collection", "query_by"],
        },
    ),
    types.Tool(
        name="typesense_get_document",
        description="Retrieve a specific document by ID from a Typesense collection",
        inputSchema={
            "type": "object",
            "properties": {
                "collection": _string_prop("The name of the Typesense collection"),
                "document_id": _string_prop("The ID of the document to retrieve"),
            },
            "required": ["collection", "document_id"],
        },
    ),
    types.Tool(
        name="typesense_collection_stats",
        description="Get statistics about a Typesense collection",
        inputSchema={
            "type": "object",
            "properties": {
                "collection": _string_prop("The name of the Typesense collection"),
            },
            "required": ["collection"],
        },
    ),
]


def list_tools() -> List[types.Tool]:
    return list(TOOLS)


def _str_arg(args: Mapping[str, Any], key: str) -> str:
    """String argument, with numbers accepted as their text form."""
    value = args.get(key)
    if value is None or value == "":
        return ""
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise ValidationError(f"Parameter '{key}' must be a string")
    return str(value)


def _query(ctx: TypesenseContext, args: Mapping[str, Any]) -> List[types.TextContent]:
    query = _str_arg(args, "query")
    collection = _str_arg(args, "collection")
    query_by = _str_arg(args, "query_by")
    if not query or not collection or not query_by:
        raise ValidationError(
            "Missing required parameters: 'query', 'collection', or 'query_by'"
        )

    limit = args.get("limit")
    # A caller-supplied exclude_fields is ignored on purpose.
    try:
        params = SearchParams(
            q=query,
            query_by=query_by,
            filter_by=args.get("filter_by") or None,
            sort_by=args.get("sort_by") or None,
            per_page=10 if limit is None else limit,
            prefix=False,
            exclude_fields=list(EXCLUDED_FIELDS),
        )
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid search parameters: {exc}") from exc

    try:
        result = ctx.client.search_documents(collection, params)
    except ServiceError as exc:
        raise UpstreamError(
            f"Failed to query Typesense collection '{collection}': {exc}"
        ) from exc
    return _text(result.hits)


def _get_document(
    ctx: TypesenseContext, args: Mapping[str, Any]
) -> List[types.TextContent]:
    collection = _str_arg(args, "collection")
    document_id = _str_arg(args, "document_id")
    if not collection or not document_id:
        raise ValidationError(
            "Missing required parameters: 'collection' or 'document_id'"
        )
    try:
        document = ctx.client.retrieve_document(collection, document_id)
    except ServiceError as exc:
        raise UpstreamError(
            f"Failed to retrieve document '{document_id}' "
            f"from collection '{collection}': {exc}"
        ) from exc
    return _text(document)


def _collection_stats(
    ctx: TypesenseContext, args: Mapping[str, Any]
) -> List[types.TextContent]:
    collection = _str_arg(args, "collection")
    if not collection:
        raise ValidationError("Missing required parameter: 'collection'")
    try:
        descriptor = ctx.client.retrieve_collection(collection)
    except ServiceError as exc:
        raise UpstreamError(
            f"Failed to get stats for collection '{collection}': {exc}"
        ) from exc
    return _text(descriptor.model_dump(mode="json", exclude_unset=True))


_TOOL_HANDLERS = {
    "typesense_query": _query,
    "typesense_get_document": _get_document,
    "typesense_collection_stats": _collection_stats,
}


def call_tool(
    ctx: TypesenseContext, name: str, arguments: Optional[Mapping[str, Any]]
) -> List[types.TextContent]:
    logger.info("Call tool %s with %s", name, _dumps(arguments or {}))
    handler = _TOOL_HANDLERS.get(name)
    if handler is None:
        raise ValidationError(f"Unknown tool: {name}")
    try:
        return handler(ctx, arguments or {})
    except (ValidationError, UpstreamError) as exc:
        logger.error("Tool %s failed: %s", name, exc)
        raise


# -- prompts -----------------------------------------------------------------


PROMPTS = [
    types.Prompt(
        name="analyze_collection",
        description="Analyze a Typesense collection structure and contents",
        arguments=[
            types.PromptArgument(
                name="collection",
                description="Name of the collection to analyze",
                required=True,
            )
        ],
    ),
    types.Prompt(
        name="search_suggestions",
        description="Get suggestions for effective search queries for a collection",
        arguments=[
            types.PromptArgument(
                name="collection",
                description="Name of the collection to analyze",
                required=True,
            )
        ],
    ),
]

ANALYZE_INSTRUCTION = (
    "Provide insights about the collection's structure, data types, "
    "and how to effectively search it."
)
SUGGEST_INSTRUCTION = (
    "Based on the collection schema and sample data, suggest effective "
    "search queries and parameters that would yield useful results."
)


def list_prompts() -> List[types.Prompt]:
    return list(PROMPTS)


def _user_message(text: str) -> types.PromptMessage:
    return types.PromptMessage(
        role="user", content=types.TextContent(type="text", text=text)
    )


def _analyze_text(
    name: str, schema: CollectionDescriptor, docs: List[Dict[str, Any]]
) -> str:
    count = schema.num_documents if schema.num_documents else "unknown"
    return (
        "Please analyze the following Typesense collection:\n"
        f"Collection: {name}\n\n"
        "Schema:\n"
        f"{_dumps(schema.model_dump(mode='json', exclude_unset=True))}\n\n"
        f"Document count: {count}\n\n"
        "Sample documents:\n"
        f"{_dumps(docs)}"
    )


def _suggest_text(
    name: str, schema: CollectionDescriptor, docs: List[Dict[str, Any]]
) -> str:
    return (
        "Please suggest effective search queries for the following "
        "Typesense collection:\n"
        f"Collection: {name}\n\n"
        "Fields:\n"
        f"{_dumps(schema.fields)}\n\n"
        "Sample documents:\n"
        f"{_dumps(docs)}"
    )


_PROMPT_BUILDERS = {
    "analyze_collection": (_analyze_text, ANALYZE_INSTRUCTION),
    "search_suggestions": (_suggest_text, SUGGEST_INSTRUCTION),
}


def get_prompt(
    ctx: TypesenseContext, name: str, arguments: Optional[Mapping[str, str]]
) -> types.GetPromptResult:
    if name not in _PROMPT_BUILDERS:
        raise ValidationError(f"Unknown prompt: {name}")
    collection = _str_arg(arguments or {}, "collection")
    if not collection:
        raise ValidationError("Collection name is required")

    try:
        schema = ctx.client.retrieve_collection(collection)
    except ServiceError as exc:
        logger.error("Error analyzing collection %s", collection, exc_info=True)
        raise UpstreamError(
            f"Failed to analyze collection {collection}: {exc}"
        ) from exc

    docs = _sample_documents(ctx, collection, ctx.app.samples.prompt_sample_size)
    build, instruction = _PROMPT_BUILDERS[name]
    return types.GetPromptResult(
        messages=[
            _user_message(build(collection, schema, docs)),
            _user_message(instruction),
        ]
    )


SEARCH_TEMPLATE_TEXT = """To search Typesense collections, you can use these parameters:

Search parameters:
- q: The query text to search for in the documents
- query_by: Comma-separated list of fields to search against
- filter_by: Filter conditions for refining your search results
- sort_by: Fields to sort the results by
- per_page: Number of results to return per page (default: 10)
- page: Page number of results to return (starts at 1)

Example queries:
1. Basic search for "machine learning" in title and content fields:
{
  "q": "machine learning",
  "query_by": "title,content"
}

2. Search with filtering by category:
{
  "q": "neural networks",
  "query_by": "title,content",
  "filter_by": "category:AI"
}

3. Search with custom sorting:
{
  "q": "database",
  "query_by": "title,content",
  "sort_by": "published_date:desc"
}

Use these patterns to construct Typesense search queries."""

COLLECTION_TEMPLATE_TEXT = """This template is used to view details about a Typesense collection.

The URI format follows this pattern:
typesense://collections/{collection_name}

For example:
typesense://collections/products

This will return information about the collection including:
- Field definitions
- Number of documents
- Collection-specific settings
- Schema details"""
