"""
OpenAI chat completions client used to pick a category for a transaction.
"""
from typing import Any, Optional, Sequence

from openai import APIConnectionError, APIStatusError, APITimeoutError, AsyncOpenAI

from categorizer.config import HTTP_TIMEOUT_SECONDS, OPENAI_BASE_URL, OPENAI_MODEL, get_config_variable
from categorizer.integrations.base import Classification
from categorizer.utils import get_logger

logger = get_logger(__name__)


class OpenAIError(RuntimeError):
    """The completion request failed or returned an unexpected shape."""

    def __init__(self, message: str, status: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.body = body


def build_prompt(categories: Sequence[str], destination_name: str, description: str) -> str:
    return (
        "Given i want to categorize transactions on my bank account into this categories: "
        f"{', '.join(categories)}\n"
        f"In which category would a transaction from \"{destination_name}\" "
        f"with the subject \"{description}\" fall into?\n"
        "Just output the name of the category. Does not have to be a complete sentence."
    )


def match_category(answer: str, categories: Sequence[str]) -> Optional[str]:
    """
    Resolve the model's answer to one of ``categories``.

    The answer is stripped of whitespace, newlines and surrounding quotes, then
    compared exactly and finally case-insensitively. Returns None on no match.
    """
    guess = answer.replace("\n", " ").strip().strip("\"'").strip()
    if guess in categories:
        return guess
    lowered = guess.casefold()
    for name in categories:
        if name.casefold() == lowered:
            return name
    return None


def extract_answer(completion: Any) -> str:
    try:
        return completion.choices[0].message.content or ""
    except (AttributeError, IndexError, TypeError):
        raise OpenAIError("OpenAI response did not contain a completion")


class OpenAiService:
    """OpenAI client implementing the TransactionClassifier contract."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        model: str = OPENAI_MODEL,
        base_url: str = OPENAI_BASE_URL,
        timeout_seconds: float = HTTP_TIMEOUT_SECONDS,
    ):
        self._api_key = api_key or get_config_variable("OPENAI_API_KEY")
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds

    async def _complete(self, prompt: str) -> str:
        # single attempt; a failed call leaves the job in progress
        client = AsyncOpenAI(
            api_key=self._api_key,
            base_url=self.base_url,
            timeout=self.timeout_seconds,
            max_retries=0,
        )
        try:
            async with client:
                completion = await client.chat.completions.create(
                    model=self.model,
                    messages=[{"role": "user", "content": prompt}],
                    temperature=0,
                )
        except APIStatusError as e:
            logger.error("OpenAI request failed", status_code=e.status_code, model=self.model)
            raise OpenAIError(f"OpenAI returned status {e.status_code}", e.status_code, e.response.text)
        except APITimeoutError:
            logger.error("OpenAI request timed out", model=self.model)
            raise OpenAIError("OpenAI request timed out")
        except APIConnectionError as e:
            logger.error("OpenAI client error", model=self.model, error=str(e))
            raise OpenAIError(f"OpenAI client error: {e}")
        return extract_answer(completion)

    async def classify(self, categories: Sequence[str], destination_name: str, description: str) -> Classification:
        prompt = build_prompt(categories, destination_name, description)
        answer = await self._complete(prompt)
        category = match_category(answer, categories)
        if category is None:
            logger.warning(
                "OpenAI could not classify the transaction",
                destination_name=destination_name,
                description=description,
                answer=answer,
            )
        return Classification(category=category, prompt=prompt, response=answer)


__all__ = ["OpenAiService", "OpenAIError", "build_prompt", "match_category", "extract_answer"]
