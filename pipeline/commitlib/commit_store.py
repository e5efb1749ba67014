"""SQLite-backed ordered key-value store for mirrored commits.

Keys have two parts: a prefix (a list of key parts such as
["commits", "<repo>"]) and a key inside that prefix (the commit hash).
Values are JSON documents. Writes to an existing (prefix, key) replace
the stored value in place.
"""

import json
import os
import sqlite3

from commitlib.commit_record import CommitRecord
from commitlib.errors import StoreError

COMMITS_PREFIX = "commits"


#============================================
def encode_prefix(prefix_parts: list[str]) -> str:
	return json.dumps(list(prefix_parts), ensure_ascii=True)


#============================================
def commit_prefix(repo: str) -> list[str]:
	"""
	Return the key prefix that groups one repository's commits.
	"""
	return [COMMITS_PREFIX, repo]


#============================================
class CommitStore:
	"""
	Ordered key-value mapping with point writes and prefix scans.
	"""

	def __init__(self, db_path: str):
		self.db_path = db_path
		try:
			self.conn = sqlite3.connect(db_path)
			self.conn.execute(
				"""
				CREATE TABLE IF NOT EXISTS kv (
					prefix TEXT NOT NULL,
					key TEXT NOT NULL,
					value TEXT NOT NULL,
					PRIMARY KEY (prefix, key)
				)
				"""
			)
			self.conn.commit()
		except sqlite3.Error as error:
			raise StoreError(f"Cannot open commit store {db_path}: {error}") from error

	#============================================
	def __enter__(self):
		return self

	#============================================
	def __exit__(self, exc_type, exc_value, traceback) -> None:
		self.close()

	#============================================
	def close(self) -> None:
		self.conn.close()

	#============================================
	def put_value(self, prefix_parts: list[str], key: str, value: dict) -> None:
		"""
		Insert or overwrite one value.
		"""
		try:
			self.conn.execute(
				"""
				INSERT INTO kv (prefix, key, value) VALUES (?, ?, ?)
				ON CONFLICT (prefix, key) DO UPDATE SET value = excluded.value
				""",
				(encode_prefix(prefix_parts), key, json.dumps(value, sort_keys=True)),
			)
			self.conn.commit()
		except sqlite3.Error as error:
			raise StoreError(f"Cannot write key {key!r} to {self.db_path}: {error}") from error

	#============================================
	def scan_prefix(self, prefix_parts: list[str]):
		"""
		Yield (key, value) pairs under one prefix in key order.

		Rows are read into memory first so the scan sees one snapshot.
		"""
		try:
			rows = self.conn.execute(
				"SELECT key, value FROM kv WHERE prefix = ? ORDER BY key",
				(encode_prefix(prefix_parts),),
			).fetchall()
		except sqlite3.Error as error:
			raise StoreError(f"Cannot scan {self.db_path}: {error}") from error
		for key, value_text in rows:
			try:
				value = json.loads(value_text)
			except json.JSONDecodeError as error:
				raise StoreError(f"Corrupted value for key {key!r} in {self.db_path}: {error}") from error
			yield key, value


#============================================
def put_commit(store: CommitStore, repo: str, record: CommitRecord) -> None:
	"""
	Upsert one commit under (repo, commit hash).
	"""
	store.put_value(commit_prefix(repo), record.commit_hash, record.to_dict())


#============================================
def list_commits(store: CommitStore, repo: str) -> list[CommitRecord]:
	return [CommitRecord.from_dict(value) for _, value in store.scan_prefix(commit_prefix(repo))]


#============================================
def count_commits(store: CommitStore, repo: str) -> int:
	return sum(1 for _ in store.scan_prefix(commit_prefix(repo)))


#============================================
def clear_store_files(store_path: str, log_fn=None) -> list[str]:
	"""Delete the store file and every companion file sharing its name prefix.

	Must run before the store is opened. A missing directory or no
	matching file is a no-op.

	Args:
		store_path: Configured store file path.
		log_fn: Optional one-line logger.

	Returns:
		Paths of removed files.

	Raises:
		StoreError: A matching file could not be removed.
	"""
	absolute_path = os.path.abspath(store_path)
	store_dir = os.path.dirname(absolute_path)
	file_prefix = os.path.basename(absolute_path)
	removed = []
	try:
		entries = sorted(os.scandir(store_dir), key=lambda entry: entry.name)
	except FileNotFoundError:
		if log_fn is not None:
			log_fn(f"Store directory {store_dir} does not exist, nothing to clean up")
		return removed
	except OSError as error:
		raise StoreError(f"Cannot list store directory {store_dir}: {error}") from error
	for entry in entries:
		if not entry.is_file() or not entry.name.startswith(file_prefix):
			continue
		if log_fn is not None:
			log_fn(f"Removing store file: {entry.path}")
		try:
			os.remove(entry.path)
		except FileNotFoundError:
			continue
		except OSError as error:
			raise StoreError(f"Cannot remove store file {entry.path}: {error}") from error
		removed.append(entry.path)
	if not removed and log_fn is not None:
		log_fn(f"No store files matching {file_prefix} in {store_dir}, nothing to clean up")
	return removed
