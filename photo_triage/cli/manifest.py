"""
Collection manifests for the command line.

A manifest lists the photos of each collection and the clusters an external
similarity classifier found in it:

    {
      "collections": {
        "Trip": {
          "photos": [{"id": "p1", "source": "/photos/p1.jpg",
                      "captured_at": "2024-06-01T10:00:00",
                      "width": 4032, "height": 3024}],
          "clusters": [["p1", "p2"]]
        }
      }
    }
"""

import json
from pathlib import Path
from typing import Any, Dict, List

from pydantic import BaseModel, Field

from ..cleanup.analyzer import StaticClusterAnalyzer
from ..core.types import PhotoRecord


class CollectionEntry(BaseModel):
    """Photos and clusters of one collection."""

    photos: List[Dict[str, Any]] = Field(default_factory=list)
    clusters: List[List[str]] = Field(default_factory=list)


class Manifest(BaseModel):
    """All collections known to the command line."""

    collections: Dict[str, CollectionEntry] = Field(default_factory=dict)

    @classmethod
    def load(cls, path: Path) -> "Manifest":
        """
        Load a manifest from a JSON file.

        Args:
            path: Path to the manifest

        Returns:
            Parsed manifest

        Raises:
            OSError: If the file cannot be read
            ValueError: If the content is not a valid manifest
        """
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return cls.model_validate(data)

    def collection_ids(self) -> List[str]:
        return list(self.collections)

    def photos(self, collection_id: str) -> List[PhotoRecord]:
        """Photo records of a collection; unknown collections have none."""
        entry = self.collections.get(collection_id)
        if entry is None:
            return []
        return [
            PhotoRecord.model_validate({"collection_key": collection_id, **photo})
            for photo in entry.photos
        ]

    def all_photos(self) -> List[PhotoRecord]:
        photos: List[PhotoRecord] = []
        for collection_id in self.collections:
            photos.extend(self.photos(collection_id))
        return photos

    def analyzer(self) -> StaticClusterAnalyzer:
        """Analyzer serving the manifest's clusters."""
        return StaticClusterAnalyzer(
            {cid: entry.clusters for cid, entry in self.collections.items()}
        )
