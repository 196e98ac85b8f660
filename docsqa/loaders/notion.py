"""Loader for pages in a Notion workspace.

Talks to the Notion REST API with httpx:
- POST /search lists the pages shared with the integration
- GET /pages/{id} gives the page title
- GET /blocks/{id}/children gives the page content, rendered to markdown
- POST /databases/{id}/query lists the pages of a database
"""
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx
import structlog

from docsqa import config
from docsqa.loaders.base import DocsLoader, LoadedDocument

logger = structlog.get_logger()

PAGE_SIZE = 100
MAX_DEPTH = 5

# Block type -> markdown line prefix
_PREFIXES = {
    "paragraph": "",
    "heading_1": "# ",
    "heading_2": "## ",
    "heading_3": "### ",
    "bulleted_list_item": "- ",
    "numbered_list_item": "1. ",
    "quote": "> ",
    "callout": "> ",
    "toggle": "- ",
}


def rich_text_to_plain(rich_text: List[Dict[str, Any]]) -> str:
    return "".join(part.get("plain_text", "") for part in rich_text or [])


def page_title(page: Dict[str, Any]) -> str:
    """Extract the title property of a page object."""
    for prop in (page.get("properties") or {}).values():
        if prop.get("type") == "title":
            return rich_text_to_plain(prop.get("title", []))
    return ""


def render_block(block: Dict[str, Any]) -> Optional[str]:
    """Render a single block (without children) as markdown, or None to skip it."""
    block_type = block.get("type")
    body = block.get(block_type) or {}

    if block_type == "divider":
        return "---"
    if block_type == "code":
        language = body.get("language", "")
        return f"```{language}\n{rich_text_to_plain(body.get('rich_text', []))}\n```"
    if block_type == "to_do":
        mark = "x" if body.get("checked") else " "
        return f"- [{mark}] {rich_text_to_plain(body.get('rich_text', []))}"
    if block_type in _PREFIXES:
        text = rich_text_to_plain(body.get("rich_text", []))
        if not text and block_type == "paragraph":
            return None
        return _PREFIXES[block_type] + text

    return None


class NotionLoader(DocsLoader):
    """Loads Notion pages as markdown documents."""

    source = "notion"

    def __init__(
        self,
        token: Optional[str] = None,
        api_url: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the Notion loader.

        Args:
            token: Integration token (defaults to config.NOTION_TOKEN)
            api_url: API base URL (defaults to config.NOTION_API_URL)
            timeout: Request timeout in seconds
            transport: Optional httpx transport, used to fake Notion in tests

        Raises:
            ValueError: If no token is available
        """
        self.token = token or config.NOTION_TOKEN
        if not self.token:
            raise ValueError("A Notion token is required (set NOTION_TOKEN)")

        self.api_url = (api_url or config.NOTION_API_URL).rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.api_url,
            headers={
                "Authorization": f"Bearer {self.token}",
                "Notion-Version": config.NOTION_VERSION,
            },
            timeout=self.timeout,
            transport=self.transport,
        )

    async def _request(
        self, client: httpx.AsyncClient, method: str, path: str, **kwargs
    ) -> Dict[str, Any]:
        try:
            response = await client.request(method, path, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            logger.error(
                "notion_request_failed",
                method=method,
                path=path,
                error=str(e),
                status_code=getattr(getattr(e, "response", None), "status_code", None),
            )
            raise

    async def _paginate(
        self, client: httpx.AsyncClient, method: str, path: str, body: Optional[Dict] = None
    ) -> AsyncIterator[Dict[str, Any]]:
        cursor = None
        while True:
            if method == "GET":
                params = {"page_size": PAGE_SIZE}
                if cursor:
                    params["start_cursor"] = cursor
                data = await self._request(client, method, path, params=params)
            else:
                payload = dict(body or {}, page_size=PAGE_SIZE)
                if cursor:
                    payload["start_cursor"] = cursor
                data = await self._request(client, method, path, json=payload)

            for item in data.get("results", []):
                yield item

            if not data.get("has_more"):
                break
            cursor = data.get("next_cursor")

    async def list_documents(self) -> List[str]:
        """List the IDs of all pages shared with the integration."""
        async with self._client() as client:
            page_ids = [
                page["id"]
                async for page in self._paginate(
                    client,
                    "POST",
                    "/search",
                    {"filter": {"property": "object", "value": "page"}},
                )
            ]

        logger.info("documents_discovered", source=self.source, count=len(page_ids))
        return page_ids

    async def _render_children(
        self, client: httpx.AsyncClient, block_id: str, depth: int = 0
    ) -> List[str]:
        lines = []
        async for block in self._paginate(client, "GET", f"/blocks/{block_id}/children"):
            rendered = render_block(block)
            if rendered is not None:
                lines.append("  " * depth + rendered)

            if block.get("has_children") and block.get("type") not in ("child_page", "child_database"):
                if depth + 1 < MAX_DEPTH:
                    lines.extend(await self._render_children(client, block["id"], depth + 1))
        return lines

    async def _load_page(self, client: httpx.AsyncClient, page_id: str) -> LoadedDocument:
        page = await self._request(client, "GET", f"/pages/{page_id}")
        title = page_title(page)

        lines = await self._render_children(client, page_id)
        body = "\n\n".join(lines)
        text = f"# {title}\n\n{body}" if title else body

        logger.debug("notion_page_loaded", page_id=page_id, block_lines=len(lines))

        return LoadedDocument(
            doc_id=page_id,
            text=text,
            metadata={
                "source": self.source,
                "title": title,
                "url": page.get("url"),
                "last_edited_time": page.get("last_edited_time"),
            },
        )

    async def load_document(self, doc_id: str) -> LoadedDocument:
        async with self._client() as client:
            return await self._load_page(client, doc_id)

    async def load_database(self, database_id: str) -> str:
        """Load every page of a database and join their text."""
        async with self._client() as client:
            texts = []
            async for page in self._paginate(client, "POST", f"/databases/{database_id}/query"):
                document = await self._load_page(client, page["id"])
                texts.append(document.text)

        logger.info("notion_database_loaded", database_id=database_id, pages=len(texts))
        return "\n".join(texts)
