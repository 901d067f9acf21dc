"""
Input models for the code graph: parser output and repository manifests.
"""
from typing import List, Optional, Union
from pydantic import BaseModel, Field, field_validator


class Symbol(BaseModel):
    """A module, function or class definition found by a parser."""
    type: str  # 'module', 'function' or 'class'
    name: str
    line: int = Field(ge=0)
    arity: Optional[int] = Field(default=None, ge=0)
    visibility: str = "public"

    @field_validator('type')
    @classmethod
    def check_type(cls, v):
        v = v.lower()
        if v not in ('module', 'function', 'class'):
            raise ValueError(f"unknown symbol type: {v}")
        return v


class Reference(BaseModel):
    """A module-level reference to another module."""
    type: str  # 'import', 'use' or 'alias'
    module: str
    line: int = Field(ge=0)

    @field_validator('type')
    @classmethod
    def check_type(cls, v):
        v = v.lower()
        if v not in ('import', 'use', 'alias'):
            raise ValueError(f"unknown reference type: {v}")
        return v


class CallSite(BaseModel):
    """A call expression inside a function body."""
    name: str
    line: int = Field(ge=0)
    module: Optional[str] = None
    arity: Optional[int] = Field(default=None, ge=0)
    caller: Optional[str] = None  # name of the enclosing function, if the parser knows it


class ParsedFile(BaseModel):
    """Structured facts extracted from one source file."""
    language: str
    symbols: List[Symbol] = Field(default_factory=list)
    references: List[Reference] = Field(default_factory=list)
    calls: List[CallSite] = Field(default_factory=list)


class DependencySpec(BaseModel):
    """A dependency pinned to a version constraint."""
    name: str
    version: str


class RepoManifest(BaseModel):
    """Dependencies declared by one repository."""
    name: str
    dependencies: List[Union[str, DependencySpec]] = Field(default_factory=list)
    dev_dependencies: List[Union[str, DependencySpec]] = Field(default_factory=list)

    def dependency_names(self) -> List[str]:
        return [_dep_name(dep) for dep in self.dependencies]

    def dev_dependency_names(self) -> List[str]:
        return [_dep_name(dep) for dep in self.dev_dependencies]

    def versioned_dependencies(self) -> List[DependencySpec]:
        return [dep for dep in self.dependencies if isinstance(dep, DependencySpec)]


def _dep_name(dep: Union[str, DependencySpec]) -> str:
    return dep if isinstance(dep, str) else dep.name
