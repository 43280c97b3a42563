"""共通フィクスチャ"""

import pytest

from geotagging.features.documents.document_store import InMemoryDocumentStore
from geotagging.features.extraction.domain.models import Actor
from geotagging.features.extraction.extractors.heuristic_extractor import HeuristicTextExtractor
from geotagging.features.extraction.extractors.metadata_extractor import (
    MetadataCoordinateExtractor,
)
from geotagging.features.extraction.extractors.pattern_extractor import (
    PatternCoordinateExtractor,
)
from geotagging.features.geocoding.services.geocoding_service import GeocodingService
from geotagging.features.geotagging.services.geotagging_service import GeoTaggingService
from geotagging.features.storage.repositories.audit_repository import InMemoryAuditSink
from geotagging.features.storage.repositories.geotag_repository import (
    InMemoryGeoTagRepository,
)


class MidpointRandom:
    """常に範囲の中央値を返す乱数源（揺らぎ0）"""

    def uniform(self, a: float, b: float) -> float:
        return (a + b) / 2


@pytest.fixture
def geocoder() -> GeocodingService:
    return GeocodingService()


@pytest.fixture
def actor() -> Actor:
    return Actor(user_id="user-1", email="analyst@example.com")


@pytest.fixture
def document_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def repository() -> InMemoryGeoTagRepository:
    return InMemoryGeoTagRepository()


@pytest.fixture
def audit_sink() -> InMemoryAuditSink:
    return InMemoryAuditSink()


@pytest.fixture
def heuristic_extractor(geocoder: GeocodingService) -> HeuristicTextExtractor:
    return HeuristicTextExtractor(geocoder, rng=MidpointRandom())  # type: ignore[arg-type]


@pytest.fixture
def service(
    geocoder: GeocodingService,
    document_store: InMemoryDocumentStore,
    repository: InMemoryGeoTagRepository,
    audit_sink: InMemoryAuditSink,
    heuristic_extractor: HeuristicTextExtractor,
) -> GeoTaggingService:
    return GeoTaggingService(
        extractors=[
            MetadataCoordinateExtractor(),
            PatternCoordinateExtractor(),
            heuristic_extractor,
        ],
        geocoder=geocoder,
        document_store=document_store,
        repository=repository,
        audit_sink=audit_sink,
    )
