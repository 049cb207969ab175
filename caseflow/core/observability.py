from __future__ import annotations

from collections import defaultdict

# (name, kind, help)
_METRICS: list[tuple[str, str, str]] = [
    # ── Cases ──
    ("caseflow_cases_created_total", "counter", "Cases seeded from a workflow"),
    ("caseflow_case_transitions_total", "counter", "Accepted case actions"),
    ("caseflow_case_transitions_rejected_total", "counter", "Case actions with no matching transition"),
    ("caseflow_case_version_conflicts_total", "counter", "Case updates lost to a concurrent writer"),
    ("caseflow_auto_rules_triggered_total", "counter", "Auto-rules recorded on stage enter/exit"),
    # ── Auth ──
    ("caseflow_login_failures_total", "counter", "Rejected login attempts"),
    # ── Outbox ──
    ("caseflow_event_outbox_written_total", "counter", "Events written to the outbox"),
    ("caseflow_event_outbox_pending", "gauge", "Outbox pending events at last inspection"),
]


class MetricsRegistry:
    def __init__(self) -> None:
        self._counters: dict[str, float] = defaultdict(float)
        self._gauges: dict[str, float] = defaultdict(float)

    def inc(self, name: str, value: float = 1.0) -> None:
        self._counters[name] += value

    def set_gauge(self, name: str, value: float) -> None:
        self._gauges[name] = value

    def get_counter(self, name: str) -> float:
        return self._counters.get(name, 0.0)

    def get_gauge(self, name: str) -> float:
        return self._gauges.get(name, 0.0)

    def reset(self) -> None:
        self._counters.clear()
        self._gauges.clear()

    def render_prometheus(self) -> str:
        lines: list[str] = []
        for name, kind, help_text in _METRICS:
            value = self.get_counter(name) if kind == "counter" else self.get_gauge(name)
            lines.append(f"# HELP {name} {help_text}")
            lines.append(f"# TYPE {name} {kind}")
            lines.append(f"{name} {value}")
        return "\n".join(lines) + "\n"


metrics_registry = MetricsRegistry()
