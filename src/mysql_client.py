import logging
import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import aiomysql
from pymysql import converters

from src.query_builder import RawQuery, TableQuery, escape_identifier

logger = logging.getLogger(__name__)

_NAMED_PLACEHOLDER_RE = re.compile(r":(\w+)")


@dataclass(frozen=True)
class MutationResult:
	"""
	Outcome of a statement that returns no result set.
	"""
	affected_rows: int
	insert_id: int | None = None


def escape_literal(value: Any, charset: str = "utf8mb4") -> str:
	"""
	Escape a scalar to a MySQL literal, or a list/tuple/set to a parenthesised list.
	Strings use backslash escaping, so servers running with NO_BACKSLASH_ESCAPES in sql_mode
	are not supported.
	"""
	if isinstance(value, (list, tuple, set, frozenset)):
		return "(" + ",".join(converters.escape_item(v, charset) for v in value) + ")"
	return converters.escape_item(value, charset)


class MySQLClient:
	"""
	Async MySQL client holding one aiomysql pool and producing fluent query builders.

	Create once at startup and pass it around:
		client = MySQLClient()
		await client.configure(database="app", user="root", password="...", host="localhost")

	Then build queries:
		rows = await client.table("users").conditions({"active": 1}).desc("id").limit(10).many()
		user_id = await client.table("users").data({"name": "Ada"}).insert()
		total = await client.query("SELECT COUNT(*) FROM users WHERE role = :role", {"role": "admin"}).field()

	Call `close()` when the client is no longer needed.
	"""

	def __init__(self):
		self.database: str | None = None
		self.user: str | None = None
		self.host: str | None = None
		self.port: int | None = None
		self.charset = "utf8mb4"
		self.pool = None
		self._configured = False
		self._closed = False

	def __repr__(self) -> str:
		if not self._configured:
			return "<MySQLClient unconfigured>"
		host = self.host or ""
		port = f":{self.port}" if self.port else ""
		return f"<MySQLClient {self.user}@{host}{port}/{self.database} pool={getattr(self.pool, 'minsize', '?')}-{getattr(self.pool, 'maxsize', '?')}>"

	# ---------- Pool plumbing ----------
	async def configure(
		self,
		*,
		database: Optional[str] = None,
		user: str = "root",
		password: Optional[str] = None,
		host: str = "localhost",
		port: int = 3306,
		minsize: int = 1,
		maxsize: int = 10,
		charset: str = "utf8mb4",
		autocommit: bool = False,
		**conn_kwargs
	) -> None:
		"""
		Create the connection pool. Can only be called once per client.
		Extra aiomysql/PyMySQL connect kwargs pass through via **conn_kwargs (e.g., connect_timeout=5).
		"""
		if self._configured:
			raise RuntimeError("MySQLClient.configure can only be called once.")
		self._configured = True

		self.database = database
		self.user = user
		self.host = host
		self.port = port
		self.charset = charset

		options = dict(conn_kwargs)
		if database is not None:
			options["db"] = database
		if password is not None:
			options["password"] = password

		logger.debug("Creating MySQL pool for %s@%s:%s/%s", user, host, port, database or "")
		try:
			self.pool = await aiomysql.create_pool(
				minsize=minsize,
				maxsize=maxsize,
				user=user,
				host=host,
				port=port,
				charset=charset,
				autocommit=autocommit,
				**options
			)
		except Exception:
			self._configured = False
			raise

	async def close(self) -> None:
		"""Close this client's pool."""
		if self._closed or self.pool is None:
			return
		self._closed = True
		try:
			self.pool.close()
			await self.pool.wait_closed()
		except Exception:
			logger.exception("Error closing connection pool")

	def _require_pool(self):
		if self._closed:
			raise RuntimeError("MySQLClient is closed.")
		if self.pool is None:
			raise RuntimeError("MySQLClient is not configured; call configure() first.")
		return self.pool

	# ---------- Escaping ----------
	def escape(self, value: Any) -> str:
		return escape_literal(value, self.charset)

	@staticmethod
	def escape_id(name: str) -> str:
		return escape_identifier(name)

	def format_query(self, query: str, values: Optional[Mapping[str, Any]] = None) -> str:
		"""
		Replace `:name` tokens with escaped values from `values`.
		Tokens without a matching key are left as they are.
		"""
		if values is None:
			return query

		def _substitute(match: re.Match) -> str:
			key = match.group(1)
			if key in values:
				return self.escape(values[key])
			return match.group(0)

		return _NAMED_PLACEHOLDER_RE.sub(_substitute, query)

	# ---------- Builder factories ----------
	def table(self, name: str) -> TableQuery:
		return TableQuery(self, name)

	def query(self, query: str, values: Optional[Mapping[str, Any]] = None) -> RawQuery:
		return RawQuery(self, query, values)

	# ---------- Execution helpers ----------
	@staticmethod
	async def _result_from_cursor(cur) -> list[dict] | MutationResult:
		if cur.description is None:
			return MutationResult(affected_rows=cur.rowcount, insert_id=cur.lastrowid or None)
		return list(await cur.fetchall())

	async def _execute_on_conn(self, conn, query_text: str) -> list[dict] | MutationResult:
		"""
		Run one statement on an acquired connection.
		Commits on success; rolls back on exception.
		"""
		try:
			async with conn.cursor(aiomysql.DictCursor) as cur:
				await cur.execute(query_text)
				result = await self._result_from_cursor(cur)
			await conn.commit()
			return result
		except Exception:
			await conn.rollback()
			raise

	async def execute(self, query: str, values: Optional[Mapping[str, Any]] = None) -> list[dict] | MutationResult:
		"""
		Execute SQL with optional named-placeholder values.
		Returns list[dict] for result sets, otherwise a MutationResult.
		"""
		pool = self._require_pool()
		query_text = self.format_query(query, values)
		logger.debug("Executing SQL: %s", query_text)
		async with pool.acquire() as conn:
			return await self._execute_on_conn(conn, query_text)
