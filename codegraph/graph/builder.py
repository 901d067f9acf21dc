"""
Builds a code graph from parsed source files.

Parsers hand over symbols (modules, functions, classes), module references
and call sites with their line numbers. Definitions and references are wired
immediately; call sites are kept pending until ``link_calls()`` so calls into
files ingested later still resolve to the real function node.
"""
import posixpath
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from ..models import CallSite, ParsedFile, Symbol
from ..types import EdgeType, GraphEdge, GraphNode, NodeType
from ..utils.logger import app_logger
from .store import CodeGraph

REFERENCE_EDGE_TYPES = {
    "import": EdgeType.IMPORTS,
    "use": EdgeType.USES,
    "alias": EdgeType.ALIAS,
}


def find_enclosing_module(symbols: List[Symbol], line: int) -> Optional[Symbol]:
    """The module symbol with the greatest line not after `line`."""
    modules = [s for s in symbols if s.type == "module" and s.line <= line]
    if not modules:
        return None
    return max(modules, key=lambda s: s.line)


def function_id(symbols: List[Symbol], symbol: Symbol) -> str:
    """Qualified id of a function symbol: ``Module.name/arity`` or ``name/arity``."""
    module = find_enclosing_module(symbols, symbol.line)
    arity = symbol.arity or 0
    if module is not None:
        return f"{module.name}.{symbol.name}/{arity}"
    return f"{symbol.name}/{arity}"


class GraphBuilder:
    """Ingests parsed files into a CodeGraph."""

    def __init__(self, graph: CodeGraph):
        self.graph = graph
        self.logger = app_logger.bind(component="graph_builder")
        self.dropped_references = 0
        self.dropped_calls = 0
        self._pending_calls: List[Tuple[str, List[Symbol], CallSite]] = []
        self._functions_by_name: Dict[str, List[str]] = {}

    @property
    def pending_calls(self) -> int:
        return len(self._pending_calls)

    def add_from_parsed(self, parsed: Union[ParsedFile, Dict[str, Any]], file_path: str) -> GraphNode:
        """Add the file, its symbols and its references to the graph."""
        if not isinstance(parsed, ParsedFile):
            parsed = ParsedFile.model_validate(parsed)

        with self.graph.locked():
            file_node = self.graph.add_node(GraphNode(
                id=file_path,
                type=NodeType.FILE,
                name=posixpath.basename(file_path),
                metadata={"path": file_path, "language": parsed.language},
            ))

            for symbol in parsed.symbols:
                if symbol.type == "module":
                    self._add_module(symbol, file_path)
                elif symbol.type == "function":
                    self._add_function(parsed.symbols, symbol, file_path)
                elif symbol.type == "class":
                    self._add_class(symbol, file_path)

            dropped_before = self.dropped_references
            for ref in parsed.references:
                self._add_reference(parsed.symbols, ref.type, ref.module, ref.line, file_path)

        for call in parsed.calls:
            self._pending_calls.append((file_path, parsed.symbols, call))

        self.logger.info(
            f"Ingested {file_path}: {len(parsed.symbols)} symbols, "
            f"{len(parsed.references)} references "
            f"({self.dropped_references - dropped_before} dropped), "
            f"{len(parsed.calls)} call sites pending"
        )
        return file_node

    def build(self, files: Iterable[Tuple[str, Union[ParsedFile, Dict[str, Any]]]]) -> int:
        """Ingest every (file_path, parsed) pair, then link calls across them."""
        for file_path, parsed in files:
            self.add_from_parsed(parsed, file_path)
        return self.link_calls()

    def link_calls(self) -> int:
        """Turn pending call sites into Calls edges. Returns the number created."""
        created = 0
        with self.graph.locked():
            for file_path, symbols, call in self._pending_calls:
                caller = self._find_caller(symbols, call)
                if caller is None:
                    self.dropped_calls += 1
                    self.logger.debug(
                        f"Dropped call to {call.name} at {file_path}:{call.line}: no enclosing function"
                    )
                    continue

                caller_module = find_enclosing_module(symbols, caller.line)
                target_id = self._resolve_callee(call, caller_module.name if caller_module else None)
                self.graph.add_edge(GraphEdge(
                    source=function_id(symbols, caller),
                    target=target_id,
                    type=EdgeType.CALLS,
                    metadata={"line": call.line, "file": file_path},
                ))
                created += 1
            self._pending_calls = []

        self.logger.info(f"Linked {created} calls ({self.dropped_calls} dropped so far)")
        return created

    def _add_module(self, symbol: Symbol, file_path: str):
        self.graph.add_node(GraphNode(
            id=symbol.name,
            type=NodeType.MODULE,
            name=symbol.name,
            metadata={"line": symbol.line, "visibility": symbol.visibility, "file": file_path},
        ))
        self.graph.add_edge(GraphEdge(source=file_path, target=symbol.name, type=EdgeType.DEFINES))

    def _add_function(self, symbols: List[Symbol], symbol: Symbol, file_path: str):
        func_id = function_id(symbols, symbol)
        parent = find_enclosing_module(symbols, symbol.line)

        self.graph.add_node(GraphNode(
            id=func_id,
            type=NodeType.FUNCTION,
            name=symbol.name,
            metadata={
                "line": symbol.line,
                "arity": symbol.arity,
                "visibility": symbol.visibility,
                "file": file_path,
            },
        ))
        self.graph.add_edge(GraphEdge(
            source=parent.name if parent else file_path,
            target=func_id,
            type=EdgeType.DEFINES,
        ))

        # qualified method names are also indexed by their last segment
        for name in {symbol.name, symbol.name.rsplit(".", 1)[-1]}:
            known = self._functions_by_name.setdefault(name, [])
            if func_id not in known:
                known.append(func_id)

    def _add_class(self, symbol: Symbol, file_path: str):
        self.graph.add_node(GraphNode(
            id=symbol.name,
            type=NodeType.CLASS,
            name=symbol.name,
            metadata={"line": symbol.line, "visibility": symbol.visibility, "file": file_path},
        ))
        self.graph.add_edge(GraphEdge(source=file_path, target=symbol.name, type=EdgeType.DEFINES))

    def _add_reference(self, symbols: List[Symbol], ref_type: str, target: str, line: int, file_path: str):
        source = find_enclosing_module(symbols, line)
        if source is None:
            self.dropped_references += 1
            self.logger.debug(f"Dropped {ref_type} of {target} at {file_path}:{line}: no enclosing module")
            return

        self._ensure_external(target)
        self.graph.add_edge(GraphEdge(
            source=source.name,
            target=target,
            type=REFERENCE_EDGE_TYPES[ref_type],
            metadata={"line": line},
        ))

    def _ensure_external(self, node_id: str):
        if not self.graph.has_node(node_id):
            self.graph.add_node(GraphNode(id=node_id, type=NodeType.EXTERNAL, name=node_id))

    def _find_caller(self, symbols: List[Symbol], call: CallSite) -> Optional[Symbol]:
        """The function symbol whose body contains the call site."""
        functions = [s for s in symbols if s.type == "function"]
        if call.caller is not None:
            named = [s for s in functions if s.name == call.caller]
            preceding = [s for s in named if s.line <= call.line]
            if preceding:
                return max(preceding, key=lambda s: s.line)
            return named[0] if named else None

        preceding = [s for s in functions if s.line <= call.line]
        if not preceding:
            return None
        caller = max(preceding, key=lambda s: s.line)

        # a module declared between the def and the call closes the function
        module = find_enclosing_module(symbols, call.line)
        if module is not None and module.line > caller.line:
            return None
        return caller

    def _resolve_callee(self, call: CallSite, caller_module: Optional[str]) -> str:
        arity = call.arity or 0
        candidates = []
        if call.module:
            candidates.append(f"{call.module}.{call.name}/{arity}")
        else:
            if caller_module:
                candidates.append(f"{caller_module}.{call.name}/{arity}")
            candidates.append(f"{call.name}/{arity}")

        for candidate in candidates:
            node = self.graph.get_node(candidate)
            if node is not None and node.type == NodeType.FUNCTION:
                return candidate

        # fall back to a unique definition with that name, ignoring arity
        known = self._functions_by_name.get(call.name, [])
        if call.module:
            known = [f for f in known if f.startswith(f"{call.module}.")]
        if len(known) == 1:
            return known[0]

        self._ensure_external(candidates[0])
        return candidates[0]
