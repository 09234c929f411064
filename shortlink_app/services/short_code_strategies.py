"""
Short code generation strategies for the link registry.
Uses Strategy Pattern so the registry can be handed a different generator.
"""

import secrets
import string
from abc import ABC, abstractmethod

# 62 symbols: a-z, A-Z, 0-9
ALPHABET = string.ascii_lowercase + string.ascii_uppercase + string.digits


class ShortCodeStrategy(ABC):
    """Abstract base class for short code generation strategies"""

    @abstractmethod
    def generate(self, length: int = 6) -> str:
        """
        Generate a short code.

        Args:
            length: Number of characters in the code

        Returns:
            A short code string. Uniqueness is the caller's problem.
        """
        pass


class RandomShortCodeStrategy(ShortCodeStrategy):
    """
    Random generation strategy.
    Every character is drawn uniformly and independently from ALPHABET.

    Pros: Unpredictable, stateless, safe to share between threads
    Cons: Collisions are possible, the registry has to check and retry
    """

    def __init__(self, alphabet: str = ALPHABET):
        self.characters = alphabet

    def generate(self, length: int = 6) -> str:
        if length < 1:
            raise ValueError(f"Short code length must be positive, got {length}")
        # secrets uses the OS CSPRNG, no shared state to guard
        return ''.join(secrets.choice(self.characters) for _ in range(length))
