"""
Test configuration and fixtures.

Builds the canonical account/provider schema used across unit and
integration tests:

    PaymentGate 1-* Provider 1-1 Account
    Account 1-1 PersonalDatum, 1-* Accountant, 1-* Auditor (polymorphic)
    Payer *-* Account through Transaction
"""

import pytest

from cachedeps.bootstrap import CascadeConfig, build_cascade
from cachedeps.catalog import RelationshipCatalog, belongs_to, has_many, has_one
from cachedeps.dependencies import DependencyGraph
from cachedeps.persistence import InMemoryStore


def build_account_catalog() -> RelationshipCatalog:
    """Canonical schema without any cache declarations."""
    catalog = RelationshipCatalog()

    catalog.register_type("PersonalDatum", [belongs_to("account")])
    catalog.register_type("Accountant", [belongs_to("account")])
    catalog.register_type("PaymentGate", [has_many("providers")])
    catalog.register_type("Provider", [
        has_one("account"),
        belongs_to("payment_gate"),
    ])
    catalog.register_type("Auditor", [belongs_to("auditable", polymorphic=True)])
    catalog.register_type("Payer", [
        has_many("transactions"),
        has_many("accounts", through="transactions"),
    ])
    catalog.register_type("Transaction", [
        belongs_to("payer"),
        belongs_to("account"),
    ])
    catalog.register_type("Account", [
        belongs_to("provider"),
        has_one("personal_datum"),
        has_many("accountants"),
        has_many("auditors", as_="auditable"),
        has_many("transactions"),
        has_many("payers", through="transactions"),
    ])
    return catalog


def declare_account_dependencies(graph: DependencyGraph) -> None:
    graph.declare("Provider", ["payment_gate"])
    graph.declare("Account", ["provider", "personal_datum", "accountants", "auditors", "payers"])


def build_company_catalog() -> RelationshipCatalog:
    """Second schema: companies and users depend on each other (a cycle)."""
    catalog = RelationshipCatalog()

    catalog.register_type("Company", [
        has_many("users"),
        has_one("company_address"),
    ])
    catalog.register_type("CompanyAddress", [belongs_to("company")])
    catalog.register_type("User", [
        belongs_to("company"),
        has_one("user_profile"),
        has_many("user_roles"),
    ])
    catalog.register_type("UserProfile", [belongs_to("user")])
    catalog.register_type("UserRole", [belongs_to("user")])
    return catalog


@pytest.fixture
def catalog():
    return build_account_catalog()


@pytest.fixture
def graph(catalog):
    graph = DependencyGraph(catalog)
    declare_account_dependencies(graph)
    return graph


@pytest.fixture
def store(catalog):
    return InMemoryStore(catalog)


@pytest.fixture
def config():
    return CascadeConfig()


@pytest.fixture
def cascade(graph, store, config):
    return build_cascade(graph, store, config=config)


@pytest.fixture
def company_catalog():
    return build_company_catalog()


@pytest.fixture
def company_store(company_catalog):
    return InMemoryStore(company_catalog)


@pytest.fixture
def company_cascade(company_catalog, company_store, config):
    graph = DependencyGraph(company_catalog)
    graph.declare("Company", ["users", "company_address"])
    graph.declare("User", ["company", "user_profile", "user_roles"])
    return build_cascade(graph, company_store, config=config)
