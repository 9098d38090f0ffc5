"""Options for the hosted web-search and file-search tools."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional


@dataclass
class WebSearchOptions:
    """Settings for the configured web-search tool.

    `user_location` follows the provider shape:
    {"type": "approximate", "country", "city", "region", "timezone"}.
    """

    search_context_size: Optional[str] = None
    user_location: Optional[Dict[str, Any]] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["WebSearchOptions"]:
        if not data:
            return None
        return cls(
            search_context_size=data.get("searchContextSize", data.get("search_context_size")),
            user_location=data.get("userLocation", data.get("user_location")),
        )

    def to_tool(self) -> Dict[str, Any]:
        tool: Dict[str, Any] = {"type": "web_search_preview"}
        if self.search_context_size:
            tool["search_context_size"] = self.search_context_size
        if self.user_location:
            tool["user_location"] = self.user_location
        return tool


@dataclass
class FileSearchOptions:
    """Settings for the file-search tool.

    `filters` is a comparison filter: {"type": "eq"|"ne"|"gt"|"gte"|"lt"|"lte",
    "key", "value"}.
    """

    max_num_results: Optional[int] = None
    include_results: bool = False
    filters: Optional[Dict[str, Any]] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["FileSearchOptions"]:
        if not data:
            return None
        return cls(
            max_num_results=data.get("maxNumResults", data.get("max_num_results")),
            include_results=bool(data.get("includeResults", data.get("include_results", False))),
            filters=data.get("filters"),
        )

    def to_tool(self, vector_store_ids: List[str]) -> Dict[str, Any]:
        tool: Dict[str, Any] = {"type": "file_search", "vector_store_ids": list(vector_store_ids)}
        if self.max_num_results:
            tool["max_num_results"] = self.max_num_results
        if self.filters:
            tool["filters"] = self.filters
        return tool
