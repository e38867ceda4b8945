"""Fixtures for backend tests."""

from __future__ import annotations

import pytest

from waterfeatures.backend.app import create_app
from waterfeatures.backend.config import TestConfig
from waterfeatures.query import TYPE_IDS
from waterfeatures.sparql_helper import EndpointError

ENTITY = "http://www.wikidata.org/entity/"


def _row(qid: str, name: str, type_label: str, **extra: str) -> dict:
    row = {
        "item": {"type": "uri", "value": f"{ENTITY}{qid}"},
        "itemLabel": {"type": "literal", "value": name},
        "typeLabel": {"type": "literal", "value": type_label},
    }
    for key, value in extra.items():
        row[key] = {"type": "literal", "value": value}
    return row


ROWS = {
    "LAKE": [_row("Q101", "Musala Lakes", "lake", coord="Point(23.58 42.18)")],
    "DAM": [_row("Q201", "Studena", "dam", capacity="25000000")],
    "RESERVOIR": [
        _row("Q301", "Iskar Reservoir", "reservoir", capacity="673000000",
             locatedInLabel="Sofia Province"),
        _row("Q302", "Batak", "reservoir", capacity="310000000"),
    ],
    "RIVER": [_row("Q401", "Maritsa", "river", length="480")],
}


class StubTransport:
    """In-process stand-in for SparqlHelper."""

    def __init__(self) -> None:
        self.queries: list[str] = []
        self.failing = False
        self.extra_rows: list[dict] = []

    def select(self, query: str) -> dict:
        self.queries.append(query)
        if self.failing:
            raise EndpointError(
                "SPARQL query failed: secret upstream detail",
                status_code=500,
                body="secret upstream detail",
            )
        if "BIND(wd:Q777 AS ?entity)" in query:
            rows = [_row("Q777", "Pancharevo", "reservoir")]
        elif "BIND(" in query:
            rows = []
        else:
            rows = []
            for name, type_id in TYPE_IDS.items():
                if f"wd:{type_id} ." in query:
                    rows = ROWS[name.value]
                    break
            else:
                rows = [r for group in ROWS.values() for r in group]
        return {"head": {"vars": []}, "results": {"bindings": rows + self.extra_rows}}


@pytest.fixture()
def transport():
    return StubTransport()


@pytest.fixture()
def app(transport):
    """Create a test Flask application."""
    application = create_app(TestConfig, transport=transport)
    yield application
    application.config["JANITOR"].stop()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture()
def cache(app):
    """Direct access to the MemoryCache instance."""
    return app.config["CACHE"]
