"""Metric sources that feed the doctor."""
