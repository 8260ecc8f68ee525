"""
Optional AI categorization for rows that rules and keywords left uncategorized.
"""

import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ledgerkeep.ai.client import get_ai_client
from ledgerkeep.ai.prompts.categorization import CATEGORIZATION_SYSTEM, CATEGORIZATION_USER
from ledgerkeep.config import settings
from ledgerkeep.services.normalizer import DEFAULT_KEYWORD_RULES, UNCATEGORIZED, Classification

logger = logging.getLogger(__name__)


def default_category_names() -> List[str]:
    names = []
    for rule in DEFAULT_KEYWORD_RULES:
        if rule.category not in names:
            names.append(rule.category)
    return names + ["Transfer", UNCATEGORIZED]


def _parse_results(payload: Dict[str, Any], count: int, allowed: Sequence[str]) -> List[Optional[Classification]]:
    results: List[Optional[Classification]] = [None] * count
    for item in payload.get("results") or []:
        try:
            index = int(item["index"])
            category = str(item["category"]).strip()
            confidence = float(item.get("confidence", 0))
        except (KeyError, TypeError, ValueError):
            continue
        if not 0 <= index < count or category not in allowed or category == UNCATEGORIZED:
            continue
        results[index] = Classification(
            category,
            item.get("subcategory") or None,
            max(0.0, min(confidence, 1.0)),
            item.get("reasoning") or "AI categorization",
            "ai",
        )
    return results


def categorize_batch(
    transactions: Sequence[Mapping[str, Any]],
    category_names: Optional[Sequence[str]] = None
) -> List[Optional[Classification]]:
    """
    Ask the configured model for categories, in chunks of ``ai_batch_size``.

    Returns one entry per transaction; None where the model gave no usable
    answer. Provider errors degrade to None for the whole chunk.
    """
    if not transactions:
        return []

    allowed = list(category_names or default_category_names())
    system_prompt = CATEGORIZATION_SYSTEM.format(categories_json=json.dumps(allowed, indent=2))
    client = get_ai_client()

    results: List[Optional[Classification]] = []
    size = max(1, settings.ai_batch_size)
    for start in range(0, len(transactions), size):
        chunk = transactions[start:start + size]
        user_prompt = CATEGORIZATION_USER.format(transactions_json=json.dumps([
            {
                "index": i,
                "description": txn.get("description"),
                "amount": float(txn["amount"]) if txn.get("amount") is not None else None,
                "date": str(txn.get("date")),
            }
            for i, txn in enumerate(chunk)
        ], indent=2))

        try:
            payload = client.complete_json(
                system_prompt=system_prompt,
                user_prompt=user_prompt,
                temperature=0.1,
                max_tokens=200 * len(chunk)
            )
            results.extend(_parse_results(payload, len(chunk), allowed))
        except Exception as e:
            logger.warning(f"AI categorization failed for {len(chunk)} transactions: {e}")
            results.extend([None] * len(chunk))

    return results
