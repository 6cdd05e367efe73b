"""
db.py: SQLAlchemy implementation of the EntityManagerPort

A manager maps the rows of one Flask-SQLAlchemy model to entities:
the columns become attributes prefixed with the resource type,
e.g. the "code" column of the "product" resource is the "product.code" attribute.
The primary key is the entity id.

    registry.register("product", SQLAManager.factory(Product, "product", sub_managers={
        "lists": SQLAManager.factory(ProductList, "product/lists", entity_class=RelationshipRecord, sub_managers={
            "type": SQLATypeManager.factory(ProductListType, "product/lists/type"),
        }),
    }))
"""
import datetime
import decimal
import operator
from typing import Any, Callable, List, Mapping, Optional, Sequence, Tuple, Type
import sqlalchemy
from sqlalchemy import Column, Integer, String, and_, not_, or_
import jsonadm
from .criteria import Combine, Compare, Expression, Negate, SearchCriteria
from .errors import DomainError, GenericError, InvalidParameter, NotFoundError
from .manager import AttributeDescriptor, Entity, EntityManagerPort, attribute_prefix

# Map SQLA types to JSON types
SQLALCHEMY_JSON_TYPE = {
    "INTEGER": "integer",
    "SMALLINT": "integer",
    "NUMERIC": "number",
    "DECIMAL": "number",
    "VARCHAR": "string",
    "TEXT": "string",
    "DATE": "string",
    "BOOLEAN": "boolean",
    "BLOB": "string",
    "FLOAT": "number",
    "REAL": "number",
    "DATETIME": "string",
    "BIGINT": "integer",
    "ENUM": "string",
    "CHAR": "string",
    "TIMESTAMP": "string",
    "NVARCHAR": "string",
    "UUID": "string",
}

COMPARE_FUNCTIONS = {
    "==": operator.eq,
    "!=": operator.ne,
    ">": operator.gt,
    "<": operator.lt,
    ">=": operator.ge,
    "<=": operator.le,
}


def json_type(column) -> str:
    type_name = str(column.type).split("(")[0].upper()
    return SQLALCHEMY_JSON_TYPE.get(type_name, "string")


def _coerce(column, value: Any) -> Any:
    """
    Convert request values (mostly strings) to the python type of the column
    """
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return [_coerce(column, item) for item in value]

    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return value

    if isinstance(value, python_type) and not (python_type is int and isinstance(value, bool)):
        return value

    try:
        if python_type is bool:
            if isinstance(value, str):
                return value.strip().lower() in ("1", "true", "yes")
            return bool(value)
        if python_type in (int, float, str, decimal.Decimal):
            return python_type(value)
        if python_type in (datetime.datetime, datetime.date) and isinstance(value, str):
            return python_type.fromisoformat(value)
    except (TypeError, ValueError, decimal.InvalidOperation):
        raise InvalidParameter(f'Invalid value for "{column.key}": {value!r}')

    return value


class ListItemMixin:
    """
    Columns of the relationship records ("lists" sub-managers),
    e.g. class ProductList(ListItemMixin, db.Model)
    """

    id = Column(Integer, primary_key=True)
    parentid = Column(String(36), index=True, nullable=False)
    domain = Column(String(64), nullable=False)
    refid = Column(String(36), nullable=False)
    typeid = Column(Integer, nullable=True)
    position = Column(Integer, default=0)


class TypeItemMixin:
    """
    Columns of the type items ("type" sub-managers)
    """

    id = Column(Integer, primary_key=True)
    code = Column(String(64), nullable=False)
    domain = Column(String(64), nullable=False)
    label = Column(String(255), default="")


class SQLAManager(EntityManagerPort):
    """
    :param model: Flask-SQLAlchemy model class
    :param resource_type: resource type name, e.g. "order/product"
    :param db: Flask-SQLAlchemy instance, defaults to jsonadm.DB
    :param base_condition: condition added to every search, clients can't remove it
    :param parent_column: column name referencing the parent row for tree resources
    :param entity_class: Entity or RelationshipRecord
    :param sub_managers: related managers by name ("lists", "type")
    """

    def __init__(
        self,
        model,
        resource_type: str,
        db=None,
        base_condition: Optional[Expression] = None,
        parent_column: Optional[str] = None,
        entity_class: Type[Entity] = Entity,
        sub_managers: Optional[Mapping[str, EntityManagerPort]] = None,
    ) -> None:
        self.model = model
        self.resource_type = resource_type
        self.db = db if db is not None else jsonadm.DB
        self.base_condition = base_condition
        self.parent_column = parent_column
        self.entity_class = entity_class
        self.sub_managers = dict(sub_managers or {})

        mapper = sqlalchemy.inspect(model)
        if len(mapper.primary_key) != 1:
            raise GenericError(f"{model.__name__}: composite primary keys are not supported")
        self.pk = mapper.primary_key[0]
        self.columns = {attr.key: attr.columns[0] for attr in mapper.column_attrs}

    @classmethod
    def factory(cls, model, resource_type: str, sub_managers: Optional[Mapping[str, Callable]] = None, **kwargs) -> Callable:
        """
        :param sub_managers: manager factories by name
        :return: manager factory for the ManagerRegistry, the db is taken from the context
        """

        def create_manager(context) -> "SQLAManager":
            subs = {name: sub_factory(context) for name, sub_factory in (sub_managers or {}).items()}
            return cls(model, resource_type, db=context.db, sub_managers=subs, **kwargs)

        return create_manager

    @property
    def prefix(self) -> str:
        return attribute_prefix(self.resource_type)

    @property
    def session(self):
        return self.db.session

    def _column(self, name: str):
        """
        :param name: attribute name, e.g. "product.code"
        :return: the column of the attribute
        """
        if name.startswith(f"{self.prefix}."):
            key = name[len(self.prefix) + 1 :]
            if key == "id":
                return self.pk
            column = self.columns.get(key)
            if column is not None:
                return column
        raise DomainError(f'Invalid name "{name}"')

    def to_entity(self, row) -> Entity:
        attributes = {f"{self.prefix}.{key}": getattr(row, key) for key, column in self.columns.items() if column is not self.pk}
        entity = self.entity_class(self.resource_type, attributes, id=getattr(row, self.pk.key))
        if self.parent_column:
            entity.parent_id = getattr(row, self.parent_column)
        return entity

    def to_expression(self, expression: Expression):
        """
        Compile a criteria expression into an SQLAlchemy expression
        """
        if isinstance(expression, Combine):
            expressions = [self.to_expression(expr) for expr in expression.expressions]
            return and_(*expressions) if expression.operator == "&&" else or_(*expressions)

        if isinstance(expression, Negate):
            return not_(self.to_expression(expression.expression))

        if not isinstance(expression, Compare):
            raise InvalidParameter(f"Invalid expression: {expression}")

        column = self._column(expression.name)
        value = _coerce(column, expression.value)

        if expression.operator == "~=":
            if isinstance(value, list):
                return or_(*[column.contains(item) for item in value])
            return column.contains(value)

        if isinstance(value, list):
            if expression.operator == "==":
                return column.in_(value)
            if expression.operator == "!=":
                return ~column.in_(value)
            return or_(*[COMPARE_FUNCTIONS[expression.operator](column, item) for item in value])

        if value is None:
            if expression.operator == "==":
                return column.is_(None)
            if expression.operator == "!=":
                return column.is_not(None)

        return COMPARE_FUNCTIONS[expression.operator](column, value)

    def create_search_criteria(self) -> SearchCriteria:
        return SearchCriteria(condition=self.base_condition)

    def search(self, criteria: SearchCriteria, ref_domains: Sequence[str] = ()) -> Tuple[List[Entity], int]:
        query = self.session.query(self.model)
        if criteria.condition is not None:
            query = query.filter(self.to_expression(criteria.condition))

        total = query.count()

        order_by = []
        for sortation in criteria.sortations:
            column = self._column(sortation.name)
            order_by.append(column.desc() if sortation.descending else column.asc())
        if not order_by:
            order_by.append(self.pk.asc())

        rows = query.order_by(*order_by).offset(criteria.offset).limit(criteria.limit).all()
        return [self.to_entity(row) for row in rows], total

    def query(self):
        """
        :return: query of the rows matching the base condition
        """
        query = self.session.query(self.model)
        if self.base_condition is not None:
            query = query.filter(self.to_expression(self.base_condition))
        return query

    def coerce_ids(self, ids: Sequence[Any]) -> List[Any]:
        """
        :return: the ids converted to the type of the primary key, ids that can't be converted are dropped
        """
        result = []
        for id in ids:
            try:
                result.append(_coerce(self.pk, id))
            except InvalidParameter:
                continue
        return result

    def search_by_ids(self, ids: Sequence[Any]) -> List[Entity]:
        ids = self.coerce_ids(ids)
        if not ids:
            return []
        rows = self.query().filter(self.pk.in_(ids)).order_by(self.pk).all()
        return [self.to_entity(row) for row in rows]

    def search_children(self, ids: Sequence[Any]) -> List[Entity]:
        if not self.parent_column or not ids:
            return []
        column = self.columns[self.parent_column]
        rows = self.session.query(self.model).filter(column.in_(_coerce(column, list(ids)))).order_by(self.pk).all()
        return [self.to_entity(row) for row in rows]

    def _get_row(self, id: Any):
        ids = self.coerce_ids([id])
        row = self.query().filter(self.pk == ids[0]).first() if ids and ids[0] is not None else None
        if row is None:
            raise NotFoundError(f'Item with ID "{id}" in "{self.resource_type}" not found')
        return row

    def get_item(self, id: Any) -> Entity:
        return self.to_entity(self._get_row(id))

    def create_item(self) -> Entity:
        return self.entity_class(self.resource_type)

    def save_item(self, entity: Entity) -> Entity:
        if entity.id is None:
            row = self.model()
            self.session.add(row)
        else:
            row = self._get_row(entity.id)

        if self.parent_column and entity.parent_id is not None and not entity.get(f"{self.prefix}.{self.parent_column}"):
            entity.set(f"{self.prefix}.{self.parent_column}", entity.parent_id)

        for name, value in entity.attributes.items():
            key = name[len(self.prefix) + 1 :] if name.startswith(f"{self.prefix}.") else None
            column = self.columns.get(key)
            if column is None or column is self.pk:
                # e.g. "product.lists.type", resolved to "product.lists.typeid" before
                continue
            setattr(row, key, _coerce(column, value))

        self.session.commit()
        return self.to_entity(row)

    def delete_item(self, id: Any) -> None:
        self.session.delete(self._get_row(id))
        self.session.commit()

    def delete_items(self, ids: Sequence[Any]) -> None:
        ids = self.coerce_ids(ids)
        if not ids:
            return
        self.query().filter(self.pk.in_(ids)).delete(synchronize_session=False)
        self.session.commit()

    def get_relationship_manager(self, name: str) -> EntityManagerPort:
        manager = self.sub_managers.get(name)
        if manager is None:
            return super().get_relationship_manager(name)
        return manager

    def get_resource_type(self) -> str:
        return self.resource_type

    def list_resource_types(self) -> List[str]:
        result = [self.resource_type]
        for manager in self.sub_managers.values():
            result.extend(manager.list_resource_types())
        return result

    def list_searchable_attributes(self) -> List[AttributeDescriptor]:
        result = []
        for key, column in self.columns.items():
            default = column.default.arg if getattr(column.default, "is_scalar", False) else None
            required = not column.nullable and column is not self.pk and column.default is None
            result.append(AttributeDescriptor(f"{self.prefix}.{key}", json_type(column), key, required, default))
        for manager in self.sub_managers.values():
            result.extend(manager.list_searchable_attributes())
        return result


class SQLATypeManager(SQLAManager):
    """
    Manager of the type items, the types are referenced by their code in the requests
    """

    def find_item(self, code: str, domain: str) -> Entity:
        """
        :return: the type item with the code for the domain
        """
        code_column = self._column(f"{self.prefix}.code")
        domain_column = self._column(f"{self.prefix}.domain")
        row = self.session.query(self.model).filter(code_column == code, domain_column == domain).first()
        if row is None:
            raise NotFoundError(f'Type "{code}" for "{domain}" in "{self.resource_type}" not found')
        return self.to_entity(row)
