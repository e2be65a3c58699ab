from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

AttributeKind = Literal[
    "GET",
    "POST",
    "PUT",
    "PATCH",
    "DELETE",
    "HEAD",
    "OPTIONS",
    "Headers",
    "Body",
    "FileUpload",
    "QueryItems",
    "QueryParams",
    "NonThrowing",
]


class ParamDecl(BaseModel):
    name: str
    annotation: str = "Any"
    default: Optional[str] = None  # source text of a declared default, if any


class AttributeDecl(BaseModel):
    kind: AttributeKind
    url: Optional[str] = None                                   # method attributes
    headers: dict[str, str] = Field(default_factory=dict)       # Headers
    param: Optional[str] = None                                 # Body / QueryItems
    params: list[str] = Field(default_factory=list)             # QueryParams
    line: Optional[int] = None


class OperationDecl(BaseModel):
    name: str
    params: list[ParamDecl] = Field(default_factory=list)
    returns: Optional[str] = None   # return annotation source, None when absent
    attributes: list[AttributeDecl] = Field(default_factory=list)
    line: Optional[int] = None


class ServiceDecl(BaseModel):
    name: str
    operations: list[OperationDecl] = Field(default_factory=list)
    live: bool = True
    mock: bool = True
    source_path: str = ""
    line: Optional[int] = None

    def location(self, line: Optional[int] = None) -> str:
        where = self.source_path or self.name
        if line is not None and self.source_path:
            return f"{where}:{line}"
        return where

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ServiceDecl":
        return cls.model_validate(data)


class ModuleDecl(BaseModel):
    """One declaration module: its services plus what their annotations need."""

    source_path: str = ""
    imports: list[str] = Field(default_factory=list)       # import statements to carry over
    definitions: list[str] = Field(default_factory=list)   # top-level models/aliases, verbatim
    services: list[ServiceDecl] = Field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ModuleDecl":
        return cls.model_validate(data)
