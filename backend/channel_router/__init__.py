"""
MIDI channel-to-instrument routing engine.

Modules:
    channel_extractor  — Per-channel note/velocity summaries from a MIDI timeline.
    compatibility      — Channel vs. instrument fit score.
    auto_router        — Greedy best-fit routing of channels onto instruments.
    validator          — Conflict detection and routing statistics.
    routing_store      — Assignment table, change notification, presets, import/export.
    presets            — Named presets and the key-value stores that persist them.
    api                — FastAPI surface over routing sessions.
"""
