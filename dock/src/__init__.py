"""
Dock monitor daemon package.

Ingests battery-module telemetry written by the charger's producer process
into shared JSON files, drives a display sink with the latest readings, and
checks GitHub releases for newer software with an operator-confirmed install.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""
