"""Locate a dependency's declaration in a manifest and rewrite it in place.

Each ecosystem contributes a `Grammar`: a pattern with a `name` group and an
optional `requirement` group. All matches are scanned in order and the first
one whose parsed name equals the dependency name is chosen, so `i18n` never
matches inside `i18n-extra`. Only the requirement sub-span of that single
declaration is replaced.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass

from packaging.utils import canonicalize_name


@dataclass(frozen=True)
class Grammar:
    name: str
    pattern: re.Pattern
    normalize: Callable[[str], str] = str
    scope: re.Pattern | None = None  # restricts matching to these regions


@dataclass(frozen=True)
class Declaration:
    name: str
    text: str
    span: tuple[int, int]
    requirement_span: tuple[int, int] | None

    @property
    def requirement_text(self) -> str | None:
        if self.requirement_span is None:
            return None
        start = self.requirement_span[0] - self.span[0]
        end = self.requirement_span[1] - self.span[0]
        return self.text[start:end]


_GEM_MATCHER = r"(?:=|!=|>=|<=|>|<|~>)"
_GEM_VERSION = r"[0-9]+(?:\.[a-zA-Z0-9]+)*"
_QUOTED_GEM_REQUIREMENT = rf"[\"'][ \t]*(?:{_GEM_MATCHER}[ \t]*)?{_GEM_VERSION}[ \t]*[\"']"
_GEM_REQUIREMENT_LIST = (
    rf"(?P<requirement>{_QUOTED_GEM_REQUIREMENT}"
    rf"(?:[ \t]*,[ \t]*{_QUOTED_GEM_REQUIREMENT})*)"
)

GEMFILE = Grammar(
    name="gemfile",
    pattern=re.compile(
        r"^[ \t]*gem\(?[ \t]*(?P<q>[\"'])(?P<name>[^\"'\s]+)(?P=q)"
        rf"(?:[ \t]*,[ \t]*{_GEM_REQUIREMENT_LIST})?"
        r"[^\n]*$",
        re.MULTILINE,
    ),
)

GEMSPEC = Grammar(
    name="gemspec",
    pattern=re.compile(
        r"^[ \t]*\w+\.add(?:_development|_runtime)?_dependency"
        r"(?:[ \t]+|[ \t]*\([ \t]*)(?P<q>[\"'])(?P<name>[^\"'\s]+)(?P=q)"
        rf"(?:[ \t]*,[ \t]*\[?[ \t]*{_GEM_REQUIREMENT_LIST})?"
        r"[^\n]*$",
        re.MULTILINE,
    ),
)

_PEP440_OPERATOR = r"(?:===|==|~=|!=|>=|<=|>|<)"
_PEP440_CLAUSE = rf"{_PEP440_OPERATOR}[ \t]*[^\s,;#\\]+"

REQUIREMENTS_TXT = Grammar(
    name="requirements.txt",
    pattern=re.compile(
        r"^[ \t]*(?P<name>[A-Za-z0-9](?:[A-Za-z0-9._-]*[A-Za-z0-9])?)"
        r"(?:[ \t]*\[[^\]\n]*\])?[ \t]*"
        rf"(?P<requirement>{_PEP440_CLAUSE}(?:[ \t]*,[ \t]*{_PEP440_CLAUSE})*)?"
        r"[^\n]*$",
        re.MULTILINE,
    ),
    normalize=canonicalize_name,
)

PACKAGE_JSON = Grammar(
    name="package.json",
    pattern=re.compile(r"\"(?P<name>[^\"\n]+)\"[ \t]*:[ \t]*\"(?P<requirement>[^\"\n]*)\""),
    scope=re.compile(
        r"\"(?:dependencies|devDependencies|optionalDependencies|peerDependencies)\""
        r"\s*:\s*\{[^{}]*\}"
    ),
)

_DOCKER_REGISTRY = r"(?:[\w-]+\.[\w.-]+(?::\d+)?|[\w.-]+:\d+|localhost)"

DOCKERFILE = Grammar(
    name="Dockerfile",
    pattern=re.compile(
        r"^[ \t]*FROM[ \t]+(?:--platform=\S+[ \t]+)?"
        rf"(?:(?P<registry>{_DOCKER_REGISTRY})/)?"
        r"(?P<name>[a-z0-9][a-z0-9._/-]*)"
        r"(?::(?P<requirement>[\w][\w.-]*))?"
        r"(?:@(?P<digest>\S+))?"
        r"[^\n]*$",
        re.MULTILINE | re.IGNORECASE,
    ),
)


def _regions(content: str, grammar: Grammar) -> list[tuple[int, int]]:
    if grammar.scope is None:
        return [(0, len(content))]
    return [m.span() for m in grammar.scope.finditer(content)]


def find_declarations(content: str, grammar: Grammar) -> list[Declaration]:
    """All declaration-like constructs in `content`, in file order."""
    declarations = []
    for start, end in _regions(content, grammar):
        for match in grammar.pattern.finditer(content, start, end):
            requirement_span = (
                match.span("requirement")
                if "requirement" in grammar.pattern.groupindex
                and match.group("requirement") is not None
                else None
            )
            declarations.append(
                Declaration(
                    name=match.group("name"),
                    text=match.group(0),
                    span=match.span(),
                    requirement_span=requirement_span,
                )
            )
    return declarations


def locate_declaration(content: str, dependency_name: str, grammar: Grammar) -> Declaration | None:
    """First declaration whose parsed name equals `dependency_name`."""
    wanted = grammar.normalize(dependency_name)
    for declaration in find_declarations(content, grammar):
        if grammar.normalize(declaration.name) == wanted:
            return declaration
    return None


def rewrite(content: str, declaration: Declaration, new_requirement: str) -> str:
    """Replace only the requirement sub-span of `declaration`."""
    if declaration.requirement_span is None:
        raise ValueError(f"{declaration.name} is declared without a requirement")
    start, end = declaration.requirement_span
    return content[:start] + new_requirement + content[end:]


def replace_declaration(
    content: str,
    dependency_name: str,
    grammar: Grammar,
    new_requirement: str,
    formatter: Callable[[str, str], str] | None = None,
) -> str | None:
    """Rewrite the dependency's requirement, or return None if not applicable.

    `formatter(original_requirement_text, new_requirement)` renders the
    replacement text when the file needs quoting or other decoration.
    """
    declaration = locate_declaration(content, dependency_name, grammar)
    if declaration is None or declaration.requirement_span is None:
        return None
    text = new_requirement
    if formatter is not None:
        text = formatter(declaration.requirement_text, new_requirement)
    return rewrite(content, declaration, text)


def quoted_requirements(requirement_text: str) -> list[str]:
    """`'"~> 1.0", ">= 0.5"'` -> `["~> 1.0", ">= 0.5"]`."""
    return [r.strip() for r in re.findall(r"[\"']([^\"']*)[\"']", requirement_text)]


def format_ruby_requirement(original: str, requirement: str) -> str:
    """Quote each clause of `requirement` the way `original` was quoted."""
    quote = "'" if "'" in original else '"'
    return ", ".join(f"{quote}{r.strip()}{quote}" for r in requirement.split(","))
