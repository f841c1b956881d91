"""
AI Agents for Petty Cash Ledger

DESIGN DECISION: The AI text service is a convenience, never a dependency.

1. CATEGORY AGENT:
   - CAN: Suggest a category from the fixed suggestion list
   - CANNOT: Invent categories (unknown answers map to the fallback)
   - Returns None when unavailable - the user simply picks a category

2. REPORT AGENT:
   - CAN: Summarize the transactions it is given, in markdown
   - CANNOT: See anything beyond those transactions
   - Returns a placeholder string when unavailable

Neither agent ever raises to the caller.
"""

import json
from typing import Any, Optional, Sequence

import google.generativeai as genai

from pettycash.audit import get_logger
from pettycash.config import get_settings
from pettycash.models.ledger import CATEGORIES, FALLBACK_CATEGORY, Transaction


REPORT_NO_KEY = "Unable to generate report. API Key missing."
REPORT_NO_DATA = "No transactions to analyze yet."
REPORT_EMPTY = "No analysis generated."
REPORT_FAILED = "Failed to generate report due to an error."

logger = get_logger(__name__)


def _extract_json(text: str) -> Optional[dict]:
    """Find the first JSON object in a model reply."""
    start = text.find("{")
    end = text.rfind("}") + 1
    if start >= 0 and end > start:
        return json.loads(text[start:end])
    return None


class _GeminiAgent:
    """Shared model setup. A model can be injected for tests."""

    max_output_tokens: Optional[int] = None
    json_output = False

    def __init__(self, model: Any = None):
        self._settings = get_settings().gemini
        self._model = model
        if self._model is None and self._settings.api_key:
            self._configure_genai()

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        generation_config = {
            "temperature": self._settings.temperature,
            "max_output_tokens": self.max_output_tokens or self._settings.max_tokens,
        }
        if self.json_output:
            generation_config["response_mime_type"] = "application/json"
        self._model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config=generation_config,
        )

    @property
    def available(self) -> bool:
        return self._model is not None


class CategoryAgent(_GeminiAgent):
    """Suggests a category for a transaction description."""

    max_output_tokens = 64
    json_output = True

    async def suggest_category(self, description: str) -> Optional[str]:
        """
        Suggest one of CATEGORIES for a description.

        Returns None if the service is unavailable or fails.
        """
        if not self.available:
            logger.warning("category_suggestion_unavailable", reason="api_key_missing")
            return None
        if not description or not description.strip():
            return None

        prompt = f"""Given the transaction description: "{description.strip()}",
suggest the best fitting category from this list: {', '.join(CATEGORIES)}.
If none fit perfectly, choose "{FALLBACK_CATEGORY}".

Respond with ONLY a JSON object in this exact format:
{{"category": "category_name"}}"""

        try:
            response = await self._model.generate_content_async(prompt)
            text = (response.text or "").strip()
            if not text:
                return None
            data = _extract_json(text) or {}
        except Exception as e:
            logger.error("category_suggestion_failed", error=str(e))
            return None

        category = str(data.get("category") or "").strip()
        # Case-insensitive match against the list
        for known in CATEGORIES:
            if known.lower() == category.lower():
                return known
        return FALLBACK_CATEGORY


class ReportAgent(_GeminiAgent):
    """Generates a natural-language spending report."""

    @staticmethod
    def format_transactions(transactions: Sequence[Transaction]) -> str:
        """One compact line per transaction to keep the prompt small."""
        return "\n".join(
            f"{t.day}: {t.type.value} - {t.category} - ${t.amount} ({t.description})"
            for t in transactions
        )

    async def generate_report(self, transactions: Sequence[Transaction]) -> str:
        """
        Generate a markdown report for the given transactions.

        Always returns a string; placeholders stand in for failures.
        """
        if not self.available:
            return REPORT_NO_KEY
        if not transactions:
            return REPORT_NO_DATA

        prompt = f"""Analyze the following petty cash transaction history:

{self.format_transactions(transactions)}

Please provide a brief, helpful financial summary.
1. Identify the biggest spending category.
2. Point out any unusual or high expenses.
3. Give 1 actionable tip to improve cash flow management.

Keep the tone professional but friendly. Format with Markdown."""

        try:
            response = await self._model.generate_content_async(prompt)
            return (response.text or "").strip() or REPORT_EMPTY
        except Exception as e:
            logger.error("report_generation_failed", error=str(e))
            return REPORT_FAILED
