from __future__ import annotations

import pytest

from arch_intent import IntentEngine, parse_knowledge_base

E2E_TEXT = (
    "When a premium customer submits a support ticket, show their priority status "
    "on the agent dashboard and notify the assigned team lead"
)
TIE_TEXT = "Apply a discount to the order and regenerate the invoice"
DEPENDENCY_TEXT = "Change the checkout order flow to include the invoice"
WEAK_TEXT = "Speed up checkout"
PLACEHOLDER_TEXT = "Export the KPI report"
SIDE_EFFECT_TEXT = "Send a webhook"


def sample_payload() -> dict:
    return {
        "version": "2025.1",
        "domains": [
            {
                "name": "Customer & Identity",
                "responsibility": "Customer profiles, accounts and support cases",
                "triggers": {"profile": 1.0, "login": 1.0},
                "entities": ["customer", "support ticket", "account"],
                "components": ["customer-service", "support-ticket-service"],
            },
            {
                "name": "Frontend Experience",
                "role": "frontend",
                "triggers": ["dashboard", "show"],
                "components": ["agent-portal"],
            },
            {
                "name": "Integration & Event",
                "role": "integration",
                "triggers": {"notify": 2.0, "webhook": 1.0},
                "components": ["notification-service"],
            },
            {
                "name": "Analytics & Reporting",
                "triggers": {"report": 1.0, "metric": 1.0, "export": 1.0},
                "entities": ["kpi"],
                "components": ["reporting-service"],
            },
            {
                "name": "Orders",
                "triggers": {"checkout": 1.0},
                "entities": ["order"],
                "components": ["order-service", "fulfillment-service"],
            },
            {
                "name": "Billing",
                "triggers": {"payment": 1.0},
                "entities": ["invoice"],
                "components": ["billing-service"],
            },
        ],
        "components": [
            {
                "name": "customer-service",
                "domain": "Customer & Identity",
                "technology": "java",
                "apis": ["GET /customers/{id}", "PATCH /customers/{id}/tier"],
                "publishes": ["CustomerUpdated"],
            },
            {
                "name": "support-ticket-service",
                "domain": "Customer & Identity",
                "apis": ["POST /tickets", "GET /tickets/{id}"],
                "publishes": ["TicketSubmitted"],
            },
            {
                "name": "agent-portal",
                "domain": "Frontend Experience",
                "type": "frontend-app",
                "technology": "react",
                "consumes": ["TicketSubmitted"],
            },
            {
                "name": "notification-service",
                "domain": "Integration & Event",
                "type": "integration",
                "publishes": ["NotificationSent"],
                "consumes": ["TicketSubmitted"],
            },
            {
                "name": "order-service",
                "domain": "Orders",
                "apis": ["POST /orders", "GET /orders/{id}"],
                "publishes": ["OrderPlaced"],
            },
            {
                "name": "fulfillment-service",
                "domain": "Orders",
                "consumes": ["OrderPlaced"],
            },
            {
                "name": "billing-service",
                "domain": "Billing",
                "apis": ["POST /invoices", "GET /invoices/{id}"],
                "publishes": ["InvoiceIssued"],
                "consumes": ["OrderPlaced"],
            },
        ],
    }


@pytest.fixture
def kb():
    return parse_knowledge_base(sample_payload())


@pytest.fixture
def engine(kb):
    return IntentEngine(kb)
