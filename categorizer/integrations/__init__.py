from .base import Classification, CategoryService, TransactionClassifier
from .firefly import FireflyService, FireflyError
from .openai_client import OpenAiService, OpenAIError

__all__ = [
    "Classification",
    "CategoryService",
    "TransactionClassifier",
    "FireflyService",
    "FireflyError",
    "OpenAiService",
    "OpenAIError",
]
