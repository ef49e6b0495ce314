"""Google Gemini text-generation client (google-genai SDK)."""

from typing import Optional

from google import genai
from google.genai import types

from ..utils.config import get_config
from ..utils.logger import get_insights_logger
from ..utils.exceptions import ConfigurationError, InsightError


class GeminiClient:
    """Thin wrapper over ``genai.Client`` for single-prompt completions."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        thinking_budget: Optional[int] = None
    ):
        config = get_config()
        self._api_key = api_key or config.env.google_api_key
        if not self._api_key:
            raise ConfigurationError("GOOGLE_API_KEY is not set")

        self._model_name = model or config.env.gemini_model
        self._thinking_budget = (
            thinking_budget if thinking_budget is not None else config.insights.thinking_budget
        )
        self._client = genai.Client(api_key=self._api_key)
        self.logger = get_insights_logger()

    def generate_text(self, prompt: str) -> str:
        """
        Send a prompt and return the response text.

        Returns:
            The model's text, or an empty string when it returned none.

        Raises:
            InsightError: If the API call fails
        """
        config = types.GenerateContentConfig(
            thinking_config=types.ThinkingConfig(thinking_budget=self._thinking_budget)
        )

        self.logger.debug(f"Generating with {self._model_name} ({len(prompt)} chars)")
        try:
            response = self._client.models.generate_content(
                model=self._model_name,
                contents=prompt,
                config=config,
            )
        except Exception as e:
            raise InsightError(
                f"Gemini request failed: {str(e)}",
                details={"model": self._model_name}
            )

        usage = getattr(response, "usage_metadata", None)
        if usage is not None:
            self.logger.info(
                f"Insight generated: input_tokens={usage.prompt_token_count} "
                f"output_tokens={usage.candidates_token_count}"
            )
        return response.text or ""
