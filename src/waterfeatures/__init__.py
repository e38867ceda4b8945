"""waterfeatures: Bulgarian water features from Wikidata, with caching.

Main modules:
- query: SPARQL query composition from list filters
- normalize: SPARQL JSON results to WaterFeature records
- sparql_helper: SparqlHelper client for the query service
- backend: Flask API, TTL cache and retrieval service
"""

from .models import Coordinates, FeatureFilter, FeatureType, WaterFeature
from .normalize import normalize_results
from .query import build_feature_by_id_query, build_features_query

# Import version information
from .version import VERSION

__all__ = [
    "VERSION",
    "Coordinates",
    "FeatureFilter",
    "FeatureType",
    "WaterFeature",
    "build_feature_by_id_query",
    "build_features_query",
    "normalize_results",
]
