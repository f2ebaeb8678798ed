"""Settlement engine observability metrics.

Counters are fed from domain events, so every absorbed failure (aborted
settlements, assumed-settled submission errors, dropped incoming payments)
is visible even though the connector only sees an amount.

Usage:
    metrics = SettlementMetrics()
    metrics.attach(engine.emitter)

    # For Prometheus export
    print(metrics.snapshot().to_prometheus())

    # For JSON export
    print(metrics.snapshot().to_json())
"""

from __future__ import annotations

import json
from collections import Counter as TallyCounter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from xlm_settlement.events import (
    AsyncEventEmitter,
    DomainEvent,
    IncomingPaymentCredited,
    IncomingPaymentDropped,
    PaymentDetailsIssued,
    SettlementAborted,
    SettlementStarted,
    SettlementSubmissionFailed,
    SettlementSubmitted,
)


@dataclass
class Counter:
    """A counter metric (monotonically increasing)."""

    name: str
    value: int | Decimal
    labels: dict[str, str] = field(default_factory=dict)
    help_text: str = ""


@dataclass
class MetricsSnapshot:
    """Point-in-time view of all engine metrics."""

    counters: list[Counter]
    collected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "collected_at": self.collected_at.isoformat(),
            "metrics": [
                {
                    "name": c.name,
                    "value": float(c.value) if isinstance(c.value, Decimal) else c.value,
                    "labels": c.labels,
                    "help": c.help_text,
                }
                for c in self.counters
            ],
        }

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=2)

    def to_prometheus(self) -> str:
        """Convert to Prometheus text format."""
        lines: list[str] = []
        described: set[str] = set()

        for metric in self.counters:
            if metric.name not in described:
                if metric.help_text:
                    lines.append(f"# HELP {metric.name} {metric.help_text}")
                lines.append(f"# TYPE {metric.name} counter")
                described.add(metric.name)

            labels = ""
            if metric.labels:
                label_parts = [f'{k}="{v}"' for k, v in sorted(metric.labels.items())]
                labels = "{" + ",".join(label_parts) + "}"

            value = float(metric.value) if isinstance(metric.value, Decimal) else metric.value
            lines.append(f"{metric.name}{labels} {value}")

        return "\n".join(lines) + "\n"


class SettlementMetrics:
    """Collects counters from engine domain events."""

    def __init__(self) -> None:
        self.payment_details_issued = 0
        self.settlements_started = 0
        self.settlements_submitted = 0
        self.settled_xlm = Decimal(0)
        self.aborted_by_reason: TallyCounter[str] = TallyCounter()
        self.submission_failures: TallyCounter[str] = TallyCounter()
        self.incoming_credited = 0
        self.credited_xlm = Decimal(0)
        self.incoming_dropped_by_reason: TallyCounter[str] = TallyCounter()

    def attach(self, emitter: AsyncEventEmitter) -> None:
        """Subscribe to all events on an emitter."""
        emitter.on_all(self.record)

    def record(self, event: DomainEvent) -> None:
        """Update counters for one event."""
        if isinstance(event, PaymentDetailsIssued):
            self.payment_details_issued += 1
        elif isinstance(event, SettlementStarted):
            self.settlements_started += 1
        elif isinstance(event, SettlementSubmitted):
            self.settlements_submitted += 1
            self.settled_xlm += event.amount
        elif isinstance(event, SettlementAborted):
            self.aborted_by_reason[event.reason] += 1
        elif isinstance(event, SettlementSubmissionFailed):
            outcome = "assumed_settled" if event.assumed_settled else "reported_zero"
            self.submission_failures[outcome] += 1
            if event.assumed_settled:
                self.settled_xlm += event.amount
        elif isinstance(event, IncomingPaymentCredited):
            self.incoming_credited += 1
            self.credited_xlm += event.amount
        elif isinstance(event, IncomingPaymentDropped):
            self.incoming_dropped_by_reason[event.reason] += 1

    def snapshot(self) -> MetricsSnapshot:
        """Collect all metrics."""
        counters = [
            Counter(
                "xlm_payment_details_issued_total",
                self.payment_details_issued,
                help_text="Payment memos issued to peers",
            ),
            Counter(
                "xlm_settlements_started_total",
                self.settlements_started,
                help_text="Outbound settlements attempted",
            ),
            Counter(
                "xlm_settlements_submitted_total",
                self.settlements_submitted,
                help_text="Outbound payments accepted by the ledger",
            ),
            Counter(
                "xlm_settled_amount_total",
                self.settled_xlm,
                help_text="XLM reported to the connector as settled",
            ),
            Counter(
                "xlm_incoming_credited_total",
                self.incoming_credited,
                help_text="Incoming payments credited to peers",
            ),
            Counter(
                "xlm_credited_amount_total",
                self.credited_xlm,
                help_text="XLM credited to peers from incoming payments",
            ),
        ]
        counters.extend(
            Counter(
                "xlm_settlements_aborted_total",
                count,
                labels={"reason": reason},
                help_text="Outbound settlements that sent nothing",
            )
            for reason, count in sorted(self.aborted_by_reason.items())
        )
        counters.extend(
            Counter(
                "xlm_submission_failures_total",
                count,
                labels={"outcome": outcome},
                help_text="Ledger submissions that failed",
            )
            for outcome, count in sorted(self.submission_failures.items())
        )
        counters.extend(
            Counter(
                "xlm_incoming_dropped_total",
                count,
                labels={"reason": reason},
                help_text="Incoming payments not credited",
            )
            for reason, count in sorted(self.incoming_dropped_by_reason.items())
        )
        return MetricsSnapshot(counters=counters)
