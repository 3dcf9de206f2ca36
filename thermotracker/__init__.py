"""
ThermoTracker Temperature Sensor Simulator

Simulates a fleet of temperature sensors, validates and scores every reading,
detects anomalies, persists history in DuckDB and renders a live terminal dashboard.
"""

__version__ = "1.0.0"
