"""Async wrappers around external diagram renderers.

Modules
-------
kroki — Kroki GET URL construction (no network access)
puml  — PlantUML via server or local jar
viz   — Graphviz via the ``graphviz`` package
vega  — Vega / Vega-Lite compiled by a Kroki server
"""
