"""
Search criteria: condition trees, sortations and slices

JSON:API query parameters are translated into a SearchCriteria:
- filtering (https://jsonapi.org/format/#fetching-filtering)
- sorting (https://jsonapi.org/format/#fetching-sorting)
- pagination (https://jsonapi.org/format/#fetching-pagination)

The criteria are storage agnostic, the managers compile them into queries (see db.py)

Filter expressions are nested mappings, e.g.
{
    "&&": [
        {"==": {"order.status": 1}},
        {"!": {">=": {"order.price": "100.00"}}}
    ]
}
"""
import json
from dataclasses import dataclass, field, replace
from typing import Any, Mapping, Optional, Sequence, Tuple, Union
import jsonadm
from .errors import InvalidParameter

COMPARE_OPERATORS = ("==", "!=", "~=", ">", "<", ">=", "<=")
COMBINE_OPERATORS = ("&&", "||")
NEGATE_OPERATOR = "!"

ASC = "+"
DESC = "-"


@dataclass(frozen=True)
class Compare:
    operator: str
    name: str
    value: Any


@dataclass(frozen=True)
class Combine:
    operator: str
    expressions: Tuple["Expression", ...]


@dataclass(frozen=True)
class Negate:
    expression: "Expression"


Expression = Union[Compare, Combine, Negate]


@dataclass(frozen=True)
class Sort:
    name: str
    direction: str = ASC

    @property
    def descending(self) -> bool:
        return self.direction == DESC


@dataclass(frozen=True)
class SearchCriteria:
    """
    Immutable search predicate handed to the managers,
    use `dataclasses.replace` (or the `with_*` helpers) to derive a new one
    """

    condition: Optional[Expression] = None
    sortations: Tuple[Sort, ...] = field(default_factory=tuple)
    offset: int = 0
    limit: int = 100

    def with_condition(self, condition: Optional[Expression]) -> "SearchCriteria":
        return replace(self, condition=condition)

    def with_sortations(self, sortations: Sequence[Sort]) -> "SearchCriteria":
        return replace(self, sortations=tuple(sortations))

    def with_slice(self, offset: int, limit: int) -> "SearchCriteria":
        return replace(self, offset=offset, limit=limit)


def compare(operator: str, name: str, value: Any) -> Compare:
    if operator not in COMPARE_OPERATORS:
        raise InvalidParameter(f'Invalid compare operator "{operator}"')
    if isinstance(value, tuple):
        value = list(value)
    return Compare(operator, name, value)


def combine(operator: str, expressions: Sequence[Optional[Expression]]) -> Optional[Expression]:
    """
    Combine the expressions with a logical operator, None entries are skipped
    :return: the combined expression, the expression itself if only one is left or None if none are left
    """
    if operator not in COMBINE_OPERATORS:
        raise InvalidParameter(f'Invalid combine operator "{operator}"')
    expressions = tuple(expr for expr in expressions if expr is not None)
    if not expressions:
        return None
    if len(expressions) == 1:
        return expressions[0]
    return Combine(operator, expressions)


def negate(expression: Expression) -> Negate:
    return Negate(expression)


def sort(direction: str, name: str) -> Sort:
    return Sort(name, DESC if direction == DESC else ASC)


def to_conditions(filter_spec: Any) -> Optional[Expression]:
    """
    Convert a (decoded) filter parameter into an expression tree
    :param filter_spec: mapping of operators to operands
    :return: expression or None if the filter is empty
    """
    if filter_spec in (None, "", {}, []):
        return None
    if not isinstance(filter_spec, Mapping):
        raise InvalidParameter(f"Invalid filter: {filter_spec}")

    expressions = []
    for operator, operand in filter_spec.items():
        if operator in COMBINE_OPERATORS:
            if isinstance(operand, Mapping):
                # {"&&": {"0": {...}, "1": {...}}} as created by the bracket notation in the query string
                operand = list(operand.values())
            if not isinstance(operand, (list, tuple)):
                raise InvalidParameter(f'Operator "{operator}" requires a list of expressions')
            expressions.append(combine(operator, [to_conditions(item) for item in operand]))
        elif operator == NEGATE_OPERATOR:
            expression = to_conditions(operand)
            if expression is None:
                raise InvalidParameter(f'Operator "{operator}" requires an expression')
            expressions.append(negate(expression))
        elif operator in COMPARE_OPERATORS:
            if not isinstance(operand, Mapping) or not operand:
                raise InvalidParameter(f'Operator "{operator}" requires a mapping of names and values')
            expressions.append(combine("&&", [compare(operator, name, value) for name, value in operand.items()]))
        else:
            raise InvalidParameter(f'Invalid filter operator "{operator}"')

    return combine("&&", expressions)


def _to_int(value: Any, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidParameter(f'Invalid value for "{name}": {value}')


class CriteriaBuilder:
    """
    Converts the request parameters into a SearchCriteria

    :param max_limit: upper bound of page[limit]
    :param default_limit: page[limit] if not given
    :param max_offset: upper bound of page[offset]
    """

    def __init__(self, max_limit: int, default_limit: int, max_offset: int = 2**31) -> None:
        self.max_limit = max(1, int(max_limit))
        self.default_limit = int(default_limit)
        self.max_offset = int(max_offset)

    @classmethod
    def from_context(cls, context) -> "CriteriaBuilder":
        return cls(
            context.get_config("MAX_PAGE_LIMIT"),
            context.get_config("DEFAULT_PAGE_LIMIT"),
            context.get_config("MAX_PAGE_OFFSET"),
        )

    def build(self, params: Mapping[str, Any], base: Optional[SearchCriteria] = None) -> SearchCriteria:
        """
        :param params: request parameters with the optional "filter", "sort" and "page" keys
        :param base: criteria created by the manager, its condition is always kept
        :return: new criteria
        """
        criteria = base if base is not None else SearchCriteria()
        criteria = criteria.with_condition(self.build_condition(params.get("filter"), criteria.condition))
        criteria = criteria.with_sortations(self.build_sortations(params.get("sort")))
        offset, limit = self.build_slice(params.get("page"))
        criteria = criteria.with_slice(offset, limit)
        jsonadm.log.debug(f"Search criteria: {criteria}")
        return criteria

    @staticmethod
    def build_condition(filter_param: Any, existing: Optional[Expression] = None) -> Optional[Expression]:
        """
        The client filter is added to the existing condition, it never replaces it
        """
        if isinstance(filter_param, (str, bytes)):
            if not filter_param.strip():
                return existing
            try:
                filter_param = json.loads(filter_param)
            except ValueError:
                raise InvalidParameter(f"Invalid JSON in filter: {filter_param!r}")

        condition = to_conditions(filter_param)
        if condition is None:
            return existing
        return combine("&&", [condition, existing])

    @staticmethod
    def build_sortations(sort_param: Any) -> Tuple[Sort, ...]:
        if not sort_param:
            return ()
        if isinstance(sort_param, str):
            sort_param = sort_param.split(",")

        sortations = []
        for sort_attr in sort_param:
            sort_attr = str(sort_attr).strip()
            if sort_attr.startswith(DESC):
                sortations.append(sort(DESC, sort_attr[1:].strip()))
            elif sort_attr.startswith(ASC):
                sortations.append(sort(ASC, sort_attr[1:].strip()))
            elif sort_attr:
                sortations.append(sort(ASC, sort_attr))
        return tuple(sortation for sortation in sortations if sortation.name)

    def build_slice(self, page_param: Any) -> Tuple[int, int]:
        page = page_param if isinstance(page_param, Mapping) else {}
        offset = _to_int(page.get("offset", 0), "page[offset]")
        limit = _to_int(page.get("limit", self.default_limit), "page[limit]")

        if not offset and "number" in page and "size" in page:
            # page[number] and page[size] instead of page[offset] and page[limit]
            limit = _to_int(page["size"], "page[size]")
            offset = (_to_int(page["number"], "page[number]") - 1) * limit

        if limit <= 0:
            limit = 1
        if limit > self.max_limit:
            limit = self.max_limit
        if offset <= 0:
            offset = 0
        if offset > self.max_offset:
            offset = self.max_offset
        return offset, limit
