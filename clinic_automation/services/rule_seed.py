"""Default automation rules, seeded when the rules table is empty."""

from __future__ import annotations

import logging

from clinic_automation.services.rule_store import RuleStore

logger = logging.getLogger(__name__)

DEFAULT_RULES: list[dict] = [
    {
        "name": "New lead -> first contact",
        "description": "Tag new leads and send the first message (2h SLA)",
        "priority": "high",
        "sla_thresholds": {"new": 2},
        "conditions": [
            {"type": "status", "operator": "=", "value": "new", "label": "Status new"},
            {"type": "messaging-window", "operator": "<=", "value": 7, "label": "Messaging window open"},
        ],
        "actions": [
            {"type": "add-tag", "value": "Lead", "description": "Tag as Lead"},
            {
                "type": "notify",
                "value": "Hi {name}, thanks for reaching out. When would you like to visit us?",
                "description": "First contact",
            },
            {"type": "move-status", "value": "contacting", "description": "Move to contacting"},
        ],
    },
    {
        "name": "Prospect without response 24h",
        "description": "Retry and tag prospects silent for more than 24 hours",
        "priority": "high",
        "conditions": [
            {"type": "status", "operator": "=", "value": "contacting"},
            {"type": "time-in-status", "operator": ">", "value": 24},
            {"type": "messaging-window", "operator": "<=", "value": 7},
        ],
        "actions": [
            {"type": "notify", "value": "Hi {name}, we are still here to help you book your visit."},
            {"type": "add-tag", "value": "Retry"},
        ],
    },
    {
        "name": "Pending appointment -> confirmation",
        "description": "Ask pending appointments to confirm",
        "priority": "medium",
        "conditions": [
            {"type": "status", "operator": "=", "value": "appointment_pending"},
            {"type": "messaging-window", "operator": "<=", "value": 7},
        ],
        "actions": [
            {"type": "notify", "value": "Hi {name}, please confirm your appointment."},
            {"type": "add-tag", "value": "Confirmation"},
        ],
    },
    {
        "name": "No-show follow-up",
        "description": "Tag no-show leads and open a follow-up task",
        "priority": "high",
        "conditions": [
            {"type": "status", "operator": "=", "value": "no_show"},
            {"type": "tag", "operator": "not-contains", "value": "No show"},
        ],
        "actions": [
            {"type": "add-tag", "value": "No show"},
            {"type": "create-task", "value": "Call patient to reschedule"},
        ],
    },
    {
        "name": "Lead without appointment 14 days",
        "description": "Send long-idle prospects to remarketing",
        "priority": "medium",
        "conditions": [
            {"type": "status", "operator": "=", "value": "contacting"},
            {"type": "time-in-status", "operator": ">", "value": 336},
        ],
        "actions": [
            {"type": "add-tag", "value": "Remarketing"},
            {"type": "notify-supervisor", "value": "Lead 14 days without appointment"},
        ],
    },
    {
        "name": "Stage SLA breached",
        "description": "Alert a supervisor and reassign when a stage takes too long",
        "priority": "high",
        "conditions": [
            {"type": "status", "operator": "in", "value": ["new", "contacting"]},
            {"type": "time-in-status", "operator": ">", "value": 6},
        ],
        "actions": [
            {"type": "notify-supervisor", "value": "SLA breached"},
            {"type": "assign-owner", "value": "supervisor"},
        ],
    },
    {
        "name": "Block social conversation after 7 days",
        "description": "Social conversations silent for more than 7 days are blocked",
        "priority": "high",
        "conditions": [
            {"type": "channel", "operator": "in", "value": "social"},
            {"type": "days-without-response", "operator": ">", "value": 7},
        ],
        "actions": [
            {"type": "block-conversation", "value": "7 days without response"},
        ],
    },
]


def seed_rules_if_empty(store: RuleStore) -> int:
    """Create the default rules when none exist. Returns how many were created."""
    if store.list_rules():
        return 0
    for data in DEFAULT_RULES:
        store.create_rule(data)
    logger.info("Seeded %d default automation rules", len(DEFAULT_RULES))
    return len(DEFAULT_RULES)
