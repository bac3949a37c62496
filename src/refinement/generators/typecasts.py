"""
Typecast generator (operand and argument variants).

Wraps an operand or argument in CAST(... AS <type>) where <type> is the
type required by the other operand or by the function signature. Only
pairs listed in the coercible type table are proposed.
"""

from typing import List

from src.config.constants import ANY_TYPE
from src.config.settings import RefinementSettings
from src.refinement.categories import RefinementCategory
from src.refinement.edits import CastArgument, CastOperand
from src.refinement.models import Candidate, FaultySpan, SpanRole
from src.sql.catalog.catalog import CatalogSnapshot
from src.sql.catalog.types import is_coercible, is_compatible, normalize_type


def generate_typecasts(
    category: RefinementCategory,
    span: FaultySpan,
    catalog: CatalogSnapshot,
    config: RefinementSettings,
) -> List[Candidate]:
    if span.role == SpanRole.COMPARISON:
        return _operand_casts(category, span)
    if span.role == SpanRole.FUNCTION:
        return _argument_casts(category, span, catalog)
    return []


def _operand_casts(category: RefinementCategory, span: FaultySpan) -> List[Candidate]:
    left_type = span.context.get("left_type")
    right_type = span.context.get("right_type")

    candidates = []
    for side, key, source, target in ((0, "left", left_type, right_type), (1, "right", right_type, left_type)):
        if not target or not is_coercible(source, target):
            continue
        operand = span.context.get(key) or {}
        target = normalize_type(target)
        # Casting a constant is preferred over casting a column
        preference = 0 if operand.get("kind") == "literal" else 1
        candidates.append(Candidate(
            category=category,
            edit=CastOperand(side, target),
            replacement=f"CAST({operand.get('sql', '')} AS {target})",
            original=operand.get("sql", ""),
            replacement_type=target,
            provenance=f"{normalize_type(source)} -> {target}",
            order=(preference, side),
        ))
    return candidates


def _argument_casts(
    category: RefinementCategory,
    span: FaultySpan,
    catalog: CatalogSnapshot,
) -> List[Candidate]:
    arg_types = span.context.get("arg_types", [])
    arguments = span.context.get("arguments", [])

    candidates = []
    seen = set()
    for signature_index, signature in enumerate(catalog.functions_named(span.context.get("function", span.text))):
        if signature.arity != len(arg_types):
            continue
        for index, (actual, wanted) in enumerate(zip(arg_types, signature.arg_types)):
            if wanted == ANY_TYPE or actual is None:
                continue
            if is_compatible(actual, wanted) or not is_coercible(actual, wanted):
                continue
            edit = CastArgument(index, normalize_type(wanted))
            if edit in seen:
                continue
            seen.add(edit)
            argument_sql = arguments[index].get("sql", "") if index < len(arguments) else ""
            candidates.append(Candidate(
                category=category,
                edit=edit,
                replacement=f"CAST({argument_sql} AS {edit.type_name})",
                original=argument_sql,
                replacement_type=edit.type_name,
                provenance=f"{signature.name}({', '.join(signature.arg_types)})",
                order=(signature_index, index),
            ))
    return candidates
