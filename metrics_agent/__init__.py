"""
Runtime Metrics - Agent Package

Samples runtime statistics and reports them to the metrics server.
"""
