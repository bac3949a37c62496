"""
Refinement categories - the closed set of edit classes.

Each category owns one generator, one enable toggle and one weight. The
toggle and weight live on RefinementSettings; this module maps a category to
the attribute names so adding a category is a table edit.
"""

from enum import Enum
from typing import Dict, Iterable, List, Tuple

from src.config.settings import RefinementSettings


class RefinementCategory(Enum):
    """Kinds of structural correction the search can propose"""
    TABLE = "table"
    COLUMN = "column"
    TABLE_FOR_COLUMN = "table_for_column"
    COLUMN_TABLE_REFERENCE = "column_table_reference"
    JOIN = "join"
    OPERAND_COLUMN = "operand_column"
    OPERAND_TABLE_FOR_COLUMN = "operand_table_for_column"
    OPERAND_COLUMN_TABLE_REFERENCE = "operand_column_table_reference"
    OPERAND_TYPECAST = "operand_typecast"
    ARGUMENT_COLUMN = "argument_column"
    ARGUMENT_TABLE_FOR_COLUMN = "argument_table_for_column"
    ARGUMENT_COLUMN_TABLE_REFERENCE = "argument_column_table_reference"
    ARGUMENT_TYPECAST = "argument_typecast"
    FUNCTION_NAME = "function_name"
    COLUMN_AMBIGUITY = "column_ambiguity"
    VALUE = "value"
    RESULT_TABLE = "result_table"
    RESULT_OPERAND = "result_operand"
    RESULT_JOIN = "result_join"

    @property
    def toggle(self) -> str:
        """Name of the RefinementSettings flag enabling this category."""
        return _TOGGLES[self]

    @property
    def weight_setting(self) -> str:
        """Name of the RefinementSettings field holding this category's weight."""
        return f"{self.value}_weight"


_TOGGLES: Dict[RefinementCategory, str] = {
    RefinementCategory.TABLE: "enable_table_refinement",
    RefinementCategory.COLUMN: "enable_column_refinement",
    RefinementCategory.TABLE_FOR_COLUMN: "enable_table_for_column",
    RefinementCategory.COLUMN_TABLE_REFERENCE: "enable_column_table_reference",
    RefinementCategory.JOIN: "enable_join_refinement",
    RefinementCategory.OPERAND_COLUMN: "enable_operand_column_refinement",
    RefinementCategory.OPERAND_TABLE_FOR_COLUMN: "enable_operand_table_for_column_refinement",
    RefinementCategory.OPERAND_COLUMN_TABLE_REFERENCE: "enable_operand_column_table_reference_refinement",
    RefinementCategory.OPERAND_TYPECAST: "enable_operand_typecast_refinement",
    RefinementCategory.ARGUMENT_COLUMN: "enable_argument_column_refinement",
    RefinementCategory.ARGUMENT_TABLE_FOR_COLUMN: "enable_argument_table_for_column_refinement",
    RefinementCategory.ARGUMENT_COLUMN_TABLE_REFERENCE: "enable_argument_column_table_reference_refinement",
    RefinementCategory.ARGUMENT_TYPECAST: "enable_argument_typecast_refinement",
    RefinementCategory.FUNCTION_NAME: "enable_function_name_refinement",
    RefinementCategory.COLUMN_AMBIGUITY: "enable_column_ambiguity_refinement",
    RefinementCategory.VALUE: "enable_value_refinement",
    RefinementCategory.RESULT_TABLE: "enable_result_table_refinement",
    RefinementCategory.RESULT_OPERAND: "enable_result_operand_refinement",
    RefinementCategory.RESULT_JOIN: "enable_result_join_refinement",
}

# (column, table-for-column, column-table-reference) per syntactic position
COLUMN_FAMILIES: Dict[str, Tuple[RefinementCategory, RefinementCategory, RefinementCategory]] = {
    "plain": (
        RefinementCategory.COLUMN,
        RefinementCategory.TABLE_FOR_COLUMN,
        RefinementCategory.COLUMN_TABLE_REFERENCE,
    ),
    "operand": (
        RefinementCategory.OPERAND_COLUMN,
        RefinementCategory.OPERAND_TABLE_FOR_COLUMN,
        RefinementCategory.OPERAND_COLUMN_TABLE_REFERENCE,
    ),
    "argument": (
        RefinementCategory.ARGUMENT_COLUMN,
        RefinementCategory.ARGUMENT_TABLE_FOR_COLUMN,
        RefinementCategory.ARGUMENT_COLUMN_TABLE_REFERENCE,
    ),
}

# Ranked with a fixed distance of 1 instead of a similarity score
FIXED_DISTANCE_CATEGORIES = frozenset({
    RefinementCategory.OPERAND_TYPECAST,
    RefinementCategory.ARGUMENT_TYPECAST,
    RefinementCategory.COLUMN_AMBIGUITY,
    RefinementCategory.RESULT_JOIN,
})


def is_enabled(category: RefinementCategory, config: RefinementSettings) -> bool:
    return bool(getattr(config, category.toggle))


def category_weight(category: RefinementCategory, config: RefinementSettings) -> float:
    return float(getattr(config, category.weight_setting))


def enabled_categories(
    categories: Iterable[RefinementCategory],
    config: RefinementSettings,
) -> List[RefinementCategory]:
    """Keep enabled categories in order, dropping duplicates."""
    result: List[RefinementCategory] = []
    for category in categories:
        if category not in result and is_enabled(category, config):
            result.append(category)
    return result
