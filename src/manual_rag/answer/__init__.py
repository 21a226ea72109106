"""manual_rag.answer

Answer normalisation: raw generation output to a bounded canonical answer.
"""

from manual_rag.answer.normalizer import AnswerNormalizer, normalize
from manual_rag.answer.strategies import NOT_FOUND_MESSAGE

__all__ = ["AnswerNormalizer", "NOT_FOUND_MESSAGE", "normalize"]
