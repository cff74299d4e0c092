from google.genai import types
from langchain_core.prompts import PromptTemplate
from app.core.exceptions import NotFoundError
from app.services.data_service import DataService
from typing import List, Optional
import json
import logging

logger = logging.getLogger(__name__)

FALLBACK_CATEGORY = "Other"
SUMMARY_ELLIPSIS = "..."

SAFETY_SETTINGS = [
    types.SafetySetting(category=category, threshold=types.HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE)
    for category in (
        types.HarmCategory.HARM_CATEGORY_HARASSMENT,
        types.HarmCategory.HARM_CATEGORY_HATE_SPEECH,
        types.HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT,
        types.HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT,
    )
]

CLASSIFY_PROMPT = PromptTemplate.from_template(
    """
You are tasked with classifying content based on its attributes into one of the following categories:
{categories}
I will provide you with content, and you must assign it to one of the categories from the list.
Respond only with the category name, nothing else.
Content to classify: {content}
"""
)

EXTRACT_ENTITIES_PROMPT = PromptTemplate.from_template(
    """
Extract the key entities from the following content.
Focus only on important entities like locations, organizations, people, products, etc.
Return only a JSON array of entities, with no additional text.
Example: ["entity1", "entity2", "entity3"]
Content: {content}
"""
)

SUMMARIZE_PROMPT = PromptTemplate.from_template(
    """
Summarize the following content in a concise way.
Keep only the most important information.
Content: {content}
"""
)


class GenerativeService:
    """Stateless prompt-in/text-out calls to Gemini that fail closed."""

    def __init__(self, client, model_name: str, data_service: DataService):
        self.client = client
        self.model_name = model_name
        self.data_service = data_service

    async def _generate(
        self,
        prompt: str,
        temperature: float,
        max_output_tokens: int,
        is_json: bool = False
    ) -> Optional[str]:
        """Call the model; None stands for an error, a block or an empty answer."""
        if self.client is None:
            logger.error("AI API Key not configured. Cannot call AI model.")
            return None

        config = types.GenerateContentConfig(
            temperature=temperature,
            max_output_tokens=max_output_tokens,
            safety_settings=SAFETY_SETTINGS,
            response_mime_type="application/json" if is_json else None,
        )

        try:
            response = await self.client.aio.models.generate_content(
                model=self.model_name,
                contents=prompt,
                config=config,
            )
        except Exception as e:
            logger.error(f"Error calling AI model ({self.model_name}): {e}")
            return None

        candidates = getattr(response, "candidates", None)
        if not candidates or not candidates[0].content or not response.text:
            finish_reason = candidates[0].finish_reason if candidates else None
            logger.warning(
                f"AI response was blocked or empty. Finish reason: {finish_reason}. "
                f"Prompt feedback: {getattr(response, 'prompt_feedback', None)}"
            )
            return None

        return response.text

    async def classify_content(self, content: str, category_type: str = "default") -> str:
        """Classify content into one of the configured categories, or "Other"."""
        try:
            categories_config = await self.data_service.get_config("categories")
        except NotFoundError:
            logger.error("Categories config not found")
            return FALLBACK_CATEGORY

        categories = categories_config.get(category_type) or []
        if not categories:
            logger.error(f"No categories found for type: {category_type}")
            return FALLBACK_CATEGORY

        prompt = CLASSIFY_PROMPT.format(
            categories="\n".join(f"{index}. {category}" for index, category in enumerate(categories, 1)),
            content=content,
        )
        result = await self._generate(prompt, temperature=0.3, max_output_tokens=50)

        if result is None:
            logger.error("AI classification failed or returned null.")
            return FALLBACK_CATEGORY

        classification = result.strip()
        if classification in categories:
            return classification

        logger.warning(f'Classification "{classification}" not found in valid categories. Using "{FALLBACK_CATEGORY}" instead.')
        return FALLBACK_CATEGORY

    async def extract_entities(self, content: str) -> List[str]:
        """Extract key entities as a list of strings, or [] on any failure."""
        prompt = EXTRACT_ENTITIES_PROMPT.format(content=content)
        result = await self._generate(prompt, temperature=0.2, max_output_tokens=150, is_json=True)

        if result is None:
            logger.error("AI entity extraction failed or returned null.")
            return []

        try:
            entities = json.loads(result)
        except ValueError as e:
            logger.error(f"Failed to parse JSON response from AI: {e}. Raw response: {result!r}")
            return []

        if isinstance(entities, list) and all(isinstance(item, str) for item in entities):
            return entities

        logger.error(f"AI response is not a valid JSON array of strings: {entities!r}")
        return []

    async def generate_summary(self, content: str, max_length: int = 200) -> str:
        """
        Summarize content in at most ``max_length`` characters.

        Longer model output is cut at ``max_length`` and marked with an
        ellipsis, so the result never exceeds ``max_length + 3`` characters.
        """
        prompt = SUMMARIZE_PROMPT.format(content=content)
        result = await self._generate(
            prompt,
            temperature=0.4,
            max_output_tokens=min(max_length * 2, 500),
        )

        if result is None:
            logger.error("AI summarization failed or returned null.")
            return ""

        summary = result.strip()
        if len(summary) > max_length:
            summary = summary[:max_length].strip() + SUMMARY_ELLIPSIS
        return summary
