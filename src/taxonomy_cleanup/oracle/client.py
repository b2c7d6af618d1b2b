"""LLM-backed oracle for merge and hierarchy decisions.

The oracle is called twice per cleanup run: once to decide which embedding
clusters describe the same topic, once to propose parent categories. Calls
are single-shot; any failure raises ``OracleError`` and aborts the run.
Responses are decoded strictly, see ``taxonomy_cleanup.models``.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import structlog

from taxonomy_cleanup.exceptions import OracleError
from taxonomy_cleanup.models import (
    ClusterMergeResponse,
    HierarchyProposal,
    decode_cluster_merge_response,
    decode_hierarchy_proposal,
)
from taxonomy_cleanup.oracle.prompts import (
    HIERARCHY_PROMPT,
    HIERARCHY_SYSTEM_PROMPT,
    MERGE_CLUSTERS_PROMPT,
    MERGE_CLUSTERS_SYSTEM_PROMPT,
)

if TYPE_CHECKING:
    from taxonomy_cleanup.models import Cluster

logger = structlog.get_logger(__name__)


def parse_json_content(content: str) -> Any:
    """Parse a JSON response body, tolerating markdown code fences.

    Args:
        content: Raw message content from the model.

    Returns:
        Parsed JSON value.

    Raises:
        json.JSONDecodeError: If the content is not valid JSON.
    """
    content = content.strip()
    # Strip markdown code fences if present (fallback)
    if content.startswith("```"):
        content = content.split("\n", 1)[1] if "\n" in content else content[3:]
        if content.endswith("```"):
            content = content[:-3]
        content = content.strip()
    return json.loads(content)


class CategoryOracle:
    """OpenAI chat model acting as the merge/hierarchy oracle.

    Attributes:
        model: Chat model name.
        temperature: Sampling temperature.
    """

    def __init__(
        self,
        openai_api_key: str = "",
        model: str = "gpt-4o",
        temperature: float = 0,
        max_tokens: int = 4000,
    ) -> None:
        """Initialize the oracle.

        Args:
            openai_api_key: OpenAI API key.
            model: Chat model name.
            temperature: Sampling temperature.
            max_tokens: Response token limit.
        """
        from openai import AsyncOpenAI  # noqa: PLC0415

        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._client = AsyncOpenAI(api_key=openai_api_key)

    async def _complete_json(self, operation: str, system_prompt: str, prompt: str) -> Any:
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": prompt},
                ],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                response_format={"type": "json_object"},
            )
        except Exception as e:
            raise OracleError(operation, str(e)) from e

        content = response.choices[0].message.content or ""
        if not content.strip():
            raise OracleError(operation, "empty response")

        try:
            return parse_json_content(content)
        except json.JSONDecodeError as e:
            raise OracleError(operation, f"response is not valid JSON: {e}") from e

    async def merge_similar_clusters(self, clusters: list[Cluster]) -> ClusterMergeResponse:
        """Ask which clusters describe the same topic.

        Args:
            clusters: Embedding clusters, most significant first.

        Returns:
            Validated merge decisions.

        Raises:
            OracleError: If the call fails or the payload has the wrong shape.
        """
        operation = "merge_similar_clusters"
        if not clusters:
            logger.info("No clusters to send to oracle", operation=operation)
            return ClusterMergeResponse()

        payload = [cluster.to_oracle_payload() for cluster in clusters]
        prompt = MERGE_CLUSTERS_PROMPT.format(clusters=json.dumps(payload, indent=2))

        raw = await self._complete_json(operation, MERGE_CLUSTERS_SYSTEM_PROMPT, prompt)
        try:
            response = decode_cluster_merge_response(raw)
        except ValueError as e:
            raise OracleError(operation, str(e)) from e

        logger.info(
            "Oracle proposed cluster merges",
            clusters=len(clusters),
            merges=len(response.merges),
        )
        return response

    async def create_category_hierarchy(self, category_names: list[str]) -> HierarchyProposal:
        """Ask for a parent/child grouping of the surviving categories.

        Args:
            category_names: Names of the categories to organize.

        Returns:
            Validated hierarchy proposal.

        Raises:
            OracleError: If the call fails or the payload has the wrong shape.
        """
        operation = "create_category_hierarchy"
        if not category_names:
            logger.info("No categories to send to oracle", operation=operation)
            return HierarchyProposal()

        categories = json.dumps([{"name": name} for name in category_names], indent=2)
        prompt = HIERARCHY_PROMPT.format(categories=categories)

        raw = await self._complete_json(operation, HIERARCHY_SYSTEM_PROMPT, prompt)
        try:
            proposal = decode_hierarchy_proposal(raw)
        except ValueError as e:
            raise OracleError(operation, str(e)) from e

        logger.info(
            "Oracle proposed hierarchy",
            categories=len(category_names),
            parents=len(proposal.parents),
        )
        return proposal
