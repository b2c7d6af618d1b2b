"""Prompt templates for the category oracle.

Both prompts request a single JSON object so responses can be decoded with
``response_format={"type": "json_object"}``.
"""

MERGE_CLUSTERS_SYSTEM_PROMPT = """You are a taxonomy editor consolidating user-generated
content categories for a personal saved-posts collection.
You only merge categories that mean the same thing to a person browsing their posts.
Always respond with a single JSON object."""

MERGE_CLUSTERS_PROMPT = """Below are clusters of categories that were grouped by embedding
similarity. Each cluster has an id (its seed category name), the category names it contains,
and the total number of posts in the cluster. Clusters are ordered by post count.

Clusters:
{clusters}

Identify groups of 2 or more clusters that describe the same topic and should become a
single category. Do not merge clusters that are merely related (e.g. "Hiking" and "Camping").
For each merge choose a short, human-friendly canonical name, preferably one of the
existing category names.

Return JSON in exactly this shape:
{{
  "merges": [
    {{"clusterIds": ["<cluster id>", "<cluster id>"], "canonicalName": "<name>", "reason": "<short reason>"}}
  ]
}}

Use cluster ids verbatim. Return {{"merges": []}} if nothing should be merged."""

HIERARCHY_SYSTEM_PROMPT = """You are a taxonomy designer organizing a flat list of content
categories into a two-level hierarchy of parents and children.
Always respond with a single JSON object."""

HIERARCHY_PROMPT = """Organize the following categories into broad parent categories.

Categories:
{categories}

Rules:
- Each parent must have at least 2 children taken verbatim from the list above.
- A parent may reuse an existing category name when that category is already broad.
- A category belongs to at most one parent.
- Leave categories that fit no group out of every parent; they stay standalone.
- Only two levels: parents cannot be children of other parents.

Return JSON in exactly this shape:
{{
  "parents": [
    {{"name": "<parent name>", "children": ["<category name>", "<category name>"], "reason": "<short reason>"}}
  ]
}}"""
