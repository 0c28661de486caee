"""
Deduplication Module

Stage 4 of the scraping pipeline: hash each listing and drop repeats
within one run.

Hash formula: md5("<source>:<id>:<name>") for festivalinfo,
md5("<source>:<id>:<name>:<dates>") for EB Live.
"""

import hashlib
from typing import Sequence, TypeVar

from pydantic import BaseModel

T = TypeVar("T", bound=BaseModel)


class Deduplicator:
    """
    Per-run duplicate filter based on content hashes.

    Every run starts with an empty set; nothing is carried over between runs.
    """

    def __init__(self, key_fields: Sequence[str] = ("source", "id", "name")):
        """
        Initialize the Deduplicator.

        Args:
            key_fields: Listing attributes joined with ':' to form the hash input.
        """
        self.key_fields = tuple(key_fields)
        self._seen_hashes: set[str] = set()
        self.duplicates = 0

    def generate_hash(self, listing: BaseModel) -> str:
        """
        Generate the hash for a listing.

        Args:
            listing: The listing to hash.

        Returns:
            MD5 hex digest of the joined key fields.
        """
        values = [str(getattr(listing, field, "") or "") for field in self.key_fields]
        hash_input = ":".join(values)
        return hashlib.md5(hash_input.encode("utf-8")).hexdigest()

    def is_duplicate(self, listing: BaseModel) -> bool:
        return self.generate_hash(listing) in self._seen_hashes

    def mark_seen(self, listing: BaseModel) -> str:
        """
        Mark a listing as seen and store the hash on its ``hash`` field.

        Returns:
            The listing's hash.
        """
        hash_value = self.generate_hash(listing)
        self._seen_hashes.add(hash_value)
        listing.hash = hash_value
        return hash_value

    def add(self, listing: BaseModel) -> bool:
        """
        Record a listing.

        Returns:
            True if the listing is new, False if it was counted as a duplicate.
        """
        if self.is_duplicate(listing):
            self.duplicates += 1
            return False
        self.mark_seen(listing)
        return True

    @property
    def unique_count(self) -> int:
        return len(self._seen_hashes)

    def clear(self) -> None:
        """Clear all seen hashes and the duplicate counter."""
        self._seen_hashes.clear()
        self.duplicates = 0

    def process(self, listings: list[T]) -> tuple[list[T], list[T]]:
        """
        Separate new listings from duplicates.

        Args:
            listings: Listings to process.

        Returns:
            Tuple of (new_listings, duplicate_listings).
        """
        new_listings = []
        duplicate_listings = []

        for listing in listings:
            if self.add(listing):
                new_listings.append(listing)
            else:
                duplicate_listings.append(listing)

        return new_listings, duplicate_listings
