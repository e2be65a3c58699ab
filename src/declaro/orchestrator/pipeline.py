from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from declaro.config import DEFAULT_SETTINGS, GeneratorSettings
from declaro.domain.models import ModuleDecl
from declaro.extractors.protocol import extract_module_from_file
from declaro.repo.scanner import scan_python_files, select_declaration_files
from declaro.synth.module import GeneratedModule, synthesize_module

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeneratedFile:
    source_path: str
    out_path: str
    module: GeneratedModule


@dataclass(frozen=True)
class GenerateResult:
    files_scanned: int
    declaration_files: list[str]
    generated: list[GeneratedFile]
    services: int
    operations: int
    written: bool


def load_module(path: Path) -> ModuleDecl:
    """Declaration from a .py source (ast) or a .json record."""
    if path.suffix == ".json":
        module = ModuleDecl.model_validate_json(path.read_text(encoding="utf-8"))
        if not module.source_path:
            module.source_path = str(path)
        return module
    return extract_module_from_file(path)


def find_declarations(
    path: Path,
    settings: GeneratorSettings = DEFAULT_SETTINGS,
    max_files: int | None = None,
) -> tuple[int, list[str]]:
    """Returns (python files scanned, declaration files)."""
    path = path.resolve()
    if path.is_file():
        return 1, [str(path)]
    py_files = scan_python_files(path, max_files=max_files)
    return len(py_files), select_declaration_files(py_files, settings.generated_suffix)


def default_out_path(source: Path, settings: GeneratorSettings = DEFAULT_SETTINGS) -> Path:
    # api/posts.py -> api/posts_generated.py
    return source.with_name(source.stem + settings.generated_suffix)


def run_generate(
    path: Path,
    out: Optional[Path] = None,
    settings: Optional[GeneratorSettings] = None,
    max_files: int | None = None,
    write: bool = True,
) -> GenerateResult:
    """
    scan -> extract -> build -> synthesize -> write.

    Every declaration is extracted and synthesized before the first file is
    written, so a GenerationError anywhere leaves the tree untouched.
    """
    settings = settings or DEFAULT_SETTINGS
    files_scanned, declaration_files = find_declarations(path, settings, max_files=max_files)

    if out is not None and len(declaration_files) > 1:
        raise ValueError("--out can only be used with a single declaration file")

    generated: list[GeneratedFile] = []
    for source in declaration_files:
        source_path = Path(source)
        module = load_module(source_path)
        if not module.services:
            logger.info("no @Service/@Mockable interface in %s", source_path)
            continue
        result = synthesize_module(module, settings)
        target = out if out is not None else default_out_path(source_path, settings)
        generated.append(GeneratedFile(source_path=str(source_path), out_path=str(target), module=result))
        logger.debug("synthesized %s -> %s", source_path, target)

    if write:
        for g in generated:
            target = Path(g.out_path)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(g.module.code, encoding="utf-8")
            logger.info("wrote %s", target)

    return GenerateResult(
        files_scanned=files_scanned,
        declaration_files=declaration_files,
        generated=generated,
        services=sum(len(g.module.services) for g in generated),
        operations=sum(len(s.operations) for g in generated for s in g.module.services),
        written=write,
    )
