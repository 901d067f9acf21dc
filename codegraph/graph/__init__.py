"""
Graph module for building and analysing code knowledge graphs.
"""

from .store import CodeGraph
from .query import GraphQuery
from .builder import GraphBuilder
from .python_source import parse_python_source
from .call_graph import CallGraphAnalyzer
from .cross_repo import CrossRepoAnalyzer

__all__ = [
    'CodeGraph',
    'GraphQuery',
    'GraphBuilder',
    'parse_python_source',
    'CallGraphAnalyzer',
    'CrossRepoAnalyzer',
]
