import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Mapping, Optional, Sequence, Union

if TYPE_CHECKING:
	from src.mysql_client import MySQLClient, MutationResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Equals:
	"""
	`column = value` condition.
	"""
	value: Any


@dataclass(frozen=True)
class IsNull:
	"""
	`column IS NULL` condition.
	"""


@dataclass(frozen=True)
class In:
	"""
	`column IN (...)` condition.
	"""
	values: tuple[Any, ...] = ()


Condition = Union[Equals, IsNull, In]


@dataclass(frozen=True)
class Statement:
	"""
	Rendered SQL text with the named-placeholder values to substitute into it.
	"""
	text: str
	values: Mapping[str, Any] | None = None


def to_condition(value: Any) -> Condition:
	"""
	Normalize a plain mapping value into a Condition.
	None -> IsNull, list/tuple/set -> In, anything else -> Equals.
	Equals(None) also becomes IsNull so a NULL comparison never renders as `= NULL`.
	"""
	if isinstance(value, Equals) and value.value is None:
		return IsNull()
	if isinstance(value, (Equals, IsNull, In)):
		return value
	if value is None:
		return IsNull()
	if isinstance(value, (list, tuple, set, frozenset)):
		return In(tuple(value))
	return Equals(value)


def escape_identifier(name: str) -> str:
	"""
	Backtick-quote a MySQL identifier. 'schema.table' is quoted per part.
	"""
	parts = str(name).split(".")
	return ".".join("`" + part.replace("`", "``") + "`" for part in parts)


class QueryBuilder:
	"""
	Shared chaining state and terminal operations.

	Subclasses decide how each statement is rendered: TableQuery synthesizes SQL
	from its structured fields, RawQuery reuses its SQL text verbatim.
	"""

	def __init__(self, client: "MySQLClient"):
		self._client = client
		self._conditions: dict[str, Any] | None = None
		self._data: Mapping[str, Any] | Sequence[Mapping[str, Any]] | None = None
		self._upsert = False

	def conditions(self, conditions: Mapping[str, Any] | None) -> "QueryBuilder":
		self._conditions = dict(conditions) if conditions is not None else None
		return self

	def data(self, data: Mapping[str, Any] | Sequence[Mapping[str, Any]] | None) -> "QueryBuilder":
		self._data = data
		return self

	# ---------- Rendering (overridden) ----------
	def _select_statement(self) -> Statement:
		raise NotImplementedError

	def _insert_statement(self) -> Statement | None:
		raise NotImplementedError

	def _update_statement(self) -> Statement:
		raise NotImplementedError

	def _erase_statement(self) -> Statement:
		raise NotImplementedError

	def _truncate_statement(self) -> Statement:
		raise NotImplementedError

	async def _run(self, statement: Statement):
		return await self._client.execute(statement.text, statement.values)

	# ---------- Reads ----------
	async def many(self) -> list[dict]:
		rows = await self._run(self._select_statement())
		if not isinstance(rows, list):
			raise ValueError(f"Statement returned no result set ({rows!r}); use update(), erase() or execute() for writes.")
		return rows

	async def one(self) -> dict | None:
		rows = await self.many()
		return rows[0] if rows else None

	async def field(self) -> Any:
		row = await self.one()
		if not row:
			return None
		first = next(iter(row))
		return row[first] or None

	async def column(self) -> list:
		rows = await self.many()
		if not rows:
			return []
		first = next(iter(rows[0]))
		return [row[first] for row in rows]

	# ---------- Writes ----------
	async def insert(self) -> int | bool:
		"""
		Insert the data and return the generated id, True when the driver reports none,
		or False for an empty bulk payload (nothing is executed).
		"""
		statement = self._insert_statement()
		if statement is None:
			return False
		result = await self._run(statement)
		insert_id = getattr(result, "insert_id", None)
		return True if insert_id is None else insert_id

	async def upsert(self) -> int | bool:
		self._upsert = True
		return await self.insert()

	async def update(self) -> "MutationResult":
		return await self._run(self._update_statement())

	async def erase(self) -> "MutationResult":
		return await self._run(self._erase_statement())

	async def truncate(self) -> "MutationResult":
		return await self._run(self._truncate_statement())


class RawQuery(QueryBuilder):
	"""
	Builder bound to caller-supplied SQL.
	The conditions mapping is used for `:name` substitution, never to build a WHERE clause.
	Only conditions() and data() are available; select(), or_(), asc(), desc(), limit()
	and ignore() exist on TableQuery only, so calling them here raises AttributeError.
	"""

	def __init__(self, client: "MySQLClient", query: str, values: Optional[Mapping[str, Any]] = None):
		super().__init__(client)
		self._query = query
		self.conditions(values)

	def __repr__(self) -> str:
		return f"<RawQuery {self._query!r}>"

	def _statement(self) -> Statement:
		return Statement(self._query, self._conditions)

	_select_statement = _statement
	_insert_statement = _statement
	_update_statement = _statement
	_erase_statement = _statement
	_truncate_statement = _statement


class TableQuery(QueryBuilder):
	"""
	Builder bound to a table; every statement is synthesized from the chained settings.
	"""

	def __init__(self, client: "MySQLClient", table: str):
		super().__init__(client)
		self._table = table
		self._select: list[str] | None = None
		self._glue = " AND "
		self._order: list[tuple[str, str]] = []
		self._limits: tuple[int, ...] | None = None
		self._ignore = False

	def __repr__(self) -> str:
		return f"<TableQuery {self._table!r}>"

	# ---------- Chaining ----------
	def select(self, *columns) -> "TableQuery":
		if len(columns) == 1 and isinstance(columns[0], (list, tuple)):
			columns = tuple(columns[0])
		self._select = list(columns) or None
		return self

	def or_(self, enabled: bool = True) -> "TableQuery":
		self._glue = " OR " if enabled else " AND "
		return self

	def asc(self, column: str) -> "TableQuery":
		self._order.append((column, "ASC"))
		return self

	def desc(self, column: str) -> "TableQuery":
		self._order.append((column, "DESC"))
		return self

	def limit(self, *numbers) -> "TableQuery":
		if len(numbers) not in (1, 2):
			raise ValueError(f"limit() takes a row count or (offset, row count), got {len(numbers)} arguments.")
		self._limits = tuple(int(n) for n in numbers)
		return self

	def ignore(self, value: bool = True) -> "TableQuery":
		self._ignore = bool(value)
		return self

	# ---------- Clause builders ----------
	def _build_select(self) -> str:
		if not self._select:
			return "*"
		return ", ".join(c if c == "*" else escape_identifier(c) for c in self._select)

	def _build_condition(self, column: str, condition: Condition) -> str:
		column_sql = escape_identifier(column)
		if isinstance(condition, IsNull):
			return f"{column_sql} IS NULL"
		if isinstance(condition, In):
			return f"{column_sql} IN {self._client.escape(list(condition.values))}"
		return f"{column_sql} = {self._client.escape(condition.value)}"

	def _build_conditions(self) -> str:
		return self._glue.join(
			self._build_condition(column, to_condition(value))
			for column, value in self._conditions.items()
		)

	def _build_data(self, data: Mapping[str, Any]) -> str:
		return ", ".join(
			f"{escape_identifier(column)} = {self._client.escape(value)}"
			for column, value in data.items()
		)

	def _build_order(self) -> str:
		return ", ".join(f"{escape_identifier(column)} {direction}" for column, direction in self._order)

	def _build_limits(self) -> str:
		return ", ".join(str(n) for n in self._limits)

	def _where_and_limit(self, *, order: bool = False) -> str:
		tail = ""
		if self._conditions:
			tail += " WHERE " + self._build_conditions()
		if order and self._order:
			tail += " ORDER BY " + self._build_order()
		if self._limits:
			tail += " LIMIT " + self._build_limits()
		return tail

	def _insert_head(self) -> str:
		return "INSERT " + ("IGNORE " if self._ignore else "") + "INTO " + escape_identifier(self._table)

	# ---------- Statements ----------
	def _select_statement(self) -> Statement:
		query = f"SELECT {self._build_select()} FROM {escape_identifier(self._table)}"
		return Statement(query + self._where_and_limit(order=True))

	def _insert_statement(self) -> Statement | None:
		if self._data is None or isinstance(self._data, Mapping):
			if not self._data:
				raise ValueError("Data dictionary is empty.")
			assignments = self._build_data(self._data)
			query = f"{self._insert_head()} SET {assignments}"
			if self._upsert:
				query += f" ON DUPLICATE KEY UPDATE {assignments}"
			return Statement(query)
		return self._insert_many_statement(list(self._data))

	def _insert_many_statement(self, rows: list) -> Statement | None:
		if not rows:
			logger.debug("Skipping bulk insert into %s: no rows", self._table)
			return None
		for idx, row in enumerate(rows):
			if not isinstance(row, Mapping):
				raise ValueError(f"rows[{idx}] must be a dictionary.")

		columns = list(rows[0].keys())
		fields = ", ".join(escape_identifier(c) for c in columns)
		values = ",".join(
			"(" + ",".join(self._client.escape(row.get(c)) for c in columns) + ")"
			for row in rows
		)
		query = f"{self._insert_head()} ({fields}) VALUES {values}"
		if self._upsert:
			query += " ON DUPLICATE KEY UPDATE " + ", ".join(
				f"{escape_identifier(c)} = VALUES({escape_identifier(c)})" for c in columns
			)
		return Statement(query)

	def _update_statement(self) -> Statement:
		if not self._data:
			raise ValueError("Missing data for an UPDATE query.")
		if not isinstance(self._data, Mapping):
			raise ValueError("UPDATE data must be a dictionary.")
		query = f"UPDATE {escape_identifier(self._table)} SET {self._build_data(self._data)}"
		return Statement(query + self._where_and_limit())

	def _erase_statement(self) -> Statement:
		return Statement(f"DELETE FROM {escape_identifier(self._table)}" + self._where_and_limit())

	def _truncate_statement(self) -> Statement:
		return Statement(f"TRUNCATE TABLE {escape_identifier(self._table)}")
