"""
Knowledge-base client interface.

Sandi Metz Principles:
- Interface Segregation: Only the two lookups the matcher needs
- Dependency Inversion: Matcher depends on this abstraction
"""

from abc import ABC, abstractmethod
from typing import Optional

from problem_matcher.models.problem import CandidatePage


class KnowledgeBaseClient(ABC):
    """
    Abstract knowledge-base client.

    Authentication, transport and pagination details belong to the
    implementation.
    """

    @abstractmethod
    async def fetch_candidates(
        self, collection_id: str, page: int, page_size: int
    ) -> CandidatePage:
        """
        Fetch one page of research problems in a collection.

        Args:
            collection_id: Collection (research field) identifier
            page: Zero-based page number
            page_size: Records per page

        Returns:
            Page of raw records with the collection total

        Raises:
            Exception: Any transport or server failure
        """
        pass

    @abstractmethod
    async def fetch_attribute(self, record_id: str, attribute: str) -> Optional[str]:
        """
        Fetch a named scalar attribute of a record.

        Args:
            record_id: Record identifier
            attribute: Attribute name (e.g. "description", "SAME_AS")

        Returns:
            Attribute value, or None when the record has none
        """
        pass
