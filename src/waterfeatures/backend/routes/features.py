"""Water-feature routes — /api/features/*."""

from __future__ import annotations

import logging

from flask import Blueprint, abort, current_app, jsonify, request
from pydantic import ValidationError

from waterfeatures.backend.services.feature_service import (
    FeatureService,
    InvalidFeatureTypeError,
)
from waterfeatures.models import FeatureFilter, WaterFeature
from waterfeatures.sparql_helper import EndpointError

logger = logging.getLogger(__name__)

features_bp = Blueprint("features", __name__)

# Query-string name → FeatureFilter field
FILTER_ARGS: dict[str, str] = {
    "type": "category",
    "region": "region",
    "minCapacity": "min_capacity",
    "minSurfaceArea": "min_surface_area",
    "sortBy": "sort_field",
    "sortOrder": "sort_direction",
    "limit": "limit",
    "offset": "offset",
}


def _get_svc() -> FeatureService:
    return current_app.config["FEATURES"]


def _dump(features: list[WaterFeature]) -> list[dict]:
    return [f.model_dump(mode="json") for f in features]


def _parse_filter() -> FeatureFilter:
    params = {
        field: request.args[arg]
        for arg, field in FILTER_ARGS.items()
        if arg in request.args
    }
    try:
        return FeatureFilter(**params)
    except ValidationError as exc:
        fields = ", ".join(
            str(err["loc"][0]) for err in exc.errors() if err.get("loc")
        )
        abort(400, description=f"Invalid query parameters: {fields}")


@features_bp.route("/", methods=["GET"])
def list_features():
    """List features, filtered by type, region and numeric bounds."""
    filters = _parse_filter()
    try:
        features = _get_svc().list_features(filters)
    except EndpointError:
        logger.exception("Error fetching water features")
        abort(502)
    return jsonify(_dump(features))


@features_bp.route("/types/<feature_type>", methods=["GET"])
def list_features_of_type(feature_type: str):
    """Return every cached feature of one type."""
    try:
        features = _get_svc().get_by_category(feature_type)
    except InvalidFeatureTypeError as exc:
        abort(400, description=str(exc))
    except EndpointError:
        logger.exception("Error fetching %s features", feature_type)
        abort(502)
    return jsonify(_dump(features))


@features_bp.route("/<feature_id>", methods=["GET"])
def get_feature(feature_id: str):
    """Return one feature by its Wikidata ID."""
    try:
        feature = _get_svc().get_by_id(feature_id)
    except ValueError as exc:
        abort(400, description=str(exc))
    except EndpointError:
        logger.exception("Error fetching water feature with ID %s", feature_id)
        abort(502)
    if feature is None:
        return jsonify({"error": f"Water feature '{feature_id}' not found"}), 404
    return jsonify(feature.model_dump(mode="json"))
