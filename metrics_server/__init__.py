"""
Runtime Metrics - Server Package

Receives metrics from agents, serves them back and persists them to disk.
"""
