"""
Extracts graph facts (symbols, references and call sites) from Python source.
"""
import ast
from typing import Dict, List, Optional, Set, Tuple

from ..exceptions import SourceParseError
from ..models import CallSite, ParsedFile, Reference, Symbol


def parse_python_source(source: str, module_name: str) -> ParsedFile:
    """
    Parse Python source into a ParsedFile.

    The whole file is one module named `module_name`, declared at line 1.
    Methods are named after their class (`Writer.close`), and calls are
    recorded with the qualified name of the enclosing def. Calls on
    `self`/`cls` name the class method when the class defines it.
    """
    try:
        tree = ast.parse(source)
    except SyntaxError as e:
        raise SourceParseError(module_name, e.msg or "invalid syntax", e.lineno or 0) from e

    collector = _FactCollector(module_name)
    collector.visit(tree)
    return ParsedFile(
        language="python",
        symbols=collector.symbols,
        references=collector.references,
        calls=collector.calls,
    )


def _resolve_relative(module_name: str, target: Optional[str], level: int) -> str:
    if level == 0:
        return target or ""
    package = module_name.split(".")[:-level]
    if target:
        package.append(target)
    return ".".join(package)


class _FactCollector(ast.NodeVisitor):

    def __init__(self, module_name: str):
        self.module_name = module_name
        self.symbols: List[Symbol] = [Symbol(type="module", name=module_name, line=1)]
        self.references: List[Reference] = []
        self.calls: List[CallSite] = []
        self._module_aliases: Dict[str, str] = {}
        self._imported_names: Dict[str, str] = {}
        self._class_methods: Dict[str, Set[str]] = {}
        # (kind, qualified name) for enclosing classes and defs
        self._scopes: List[Tuple[str, str]] = []

    def visit_Import(self, node: ast.Import):
        for alias in node.names:
            if alias.asname:
                self._module_aliases[alias.asname] = alias.name
                self.references.append(Reference(type="alias", module=alias.name, line=node.lineno))
            else:
                # `import a.b` binds `a`
                self._module_aliases[alias.name.split(".")[0]] = alias.name.split(".")[0]
                self._module_aliases[alias.name] = alias.name
                self.references.append(Reference(type="import", module=alias.name, line=node.lineno))

    def visit_ImportFrom(self, node: ast.ImportFrom):
        module = _resolve_relative(self.module_name, node.module, node.level)
        if not module:
            return
        self.references.append(Reference(type="import", module=module, line=node.lineno))
        for alias in node.names:
            if alias.name == "*":
                continue
            self._imported_names[alias.asname or alias.name] = module

    def visit_ClassDef(self, node: ast.ClassDef):
        qualname = self._qualify(node.name)
        self.symbols.append(Symbol(
            type="class",
            name=qualname,
            line=node.lineno,
            visibility="private" if node.name.startswith("_") else "public",
        ))
        self._class_methods[qualname] = {
            stmt.name for stmt in node.body if isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef))
        }

        for expr in node.decorator_list + node.bases + [k.value for k in node.keywords]:
            self.visit(expr)

        self._scopes.append(("class", qualname))
        for stmt in node.body:
            self.visit(stmt)
        self._scopes.pop()

    def visit_FunctionDef(self, node):
        args = node.args
        qualname = self._qualify(node.name)
        self.symbols.append(Symbol(
            type="function",
            name=qualname,
            line=node.lineno,
            arity=len(args.posonlyargs) + len(args.args) + len(args.kwonlyargs),
            visibility="private" if node.name.startswith("_") else "public",
        ))

        # decorators and defaults run in the enclosing scope
        for decorator in node.decorator_list:
            self.visit(decorator)
        for default in args.defaults + [d for d in args.kw_defaults if d is not None]:
            self.visit(default)

        self._scopes.append(("function", qualname))
        for stmt in node.body:
            self.visit(stmt)
        self._scopes.pop()

    visit_AsyncFunctionDef = visit_FunctionDef

    def visit_Call(self, node: ast.Call):
        caller = self._enclosing(("function",))
        if caller is not None:
            site = self._call_site(node, caller)
            if site is not None:
                self.calls.append(site)
        self.generic_visit(node)

    def _qualify(self, name: str) -> str:
        """Methods and nested classes are named after their class."""
        if self._scopes and self._scopes[-1][0] == "class":
            return f"{self._scopes[-1][1]}.{name}"
        return name

    def _enclosing(self, kinds) -> Optional[str]:
        for kind, name in reversed(self._scopes):
            if kind in kinds:
                return name
        return None

    def _call_site(self, node: ast.Call, caller: str) -> Optional[CallSite]:
        func = node.func
        module = None
        arity = len(node.args) + len(node.keywords)
        if isinstance(func, ast.Name):
            name = func.id
            module = self._imported_names.get(name)
        elif isinstance(func, ast.Attribute) and isinstance(func.value, ast.Name):
            owner = func.value.id
            name = func.attr
            if owner in self._module_aliases:
                module = self._module_aliases[owner]
            elif owner in ("self", "cls"):
                # the bound receiver counts toward the method's arity
                arity += 1
                owner_class = self._enclosing(("class",))
                if owner_class is not None and name in self._class_methods.get(owner_class, ()):
                    name = f"{owner_class}.{name}"
            else:
                return None
        else:
            return None

        return CallSite(name=name, line=node.lineno, module=module, arity=arity, caller=caller)
