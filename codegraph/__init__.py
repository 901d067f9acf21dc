"""
In-memory code knowledge graph with call-graph and cross-repository
dependency analyses.
"""

__version__ = "0.4.0"
