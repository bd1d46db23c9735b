"""
Backend package for the IoT energy monitor.

Reads appliance telemetry from a ThingSpeak channel, derives decision-ready
analytics (power, energy, cost, stability, relay duty cycle, alerts) and
serves them over a small FastAPI application alongside relay control.

CHANGELOG:
- 2026-10-02: Initial creation (STORY-001)

TODO:
- None
"""
