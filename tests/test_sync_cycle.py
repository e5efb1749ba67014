import os
import sys
from datetime import datetime
from datetime import timedelta
from datetime import timezone

import pytest

# add pipeline directory to path for commitlib imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "pipeline"))

from commitlib import commit_record
from commitlib import commit_store
from commitlib import sync_cycle
from commitlib import watermark
from commitlib.errors import FetchError

T1 = datetime(2024, 1, 1, 0, 0, 0, tzinfo=timezone.utc)
T2 = datetime(2024, 1, 2, 0, 0, 0, tzinfo=timezone.utc)
T3 = datetime(2024, 1, 3, 0, 0, 0, tzinfo=timezone.utc)


#============================================
def make_raw(sha: str, author_date: datetime | None, message: str = "msg") -> dict:
	author = None
	if author_date is not None:
		author = {"email": f"{sha}@example.com", "date": author_date.isoformat().replace("+00:00", "Z")}
	return {"sha": sha, "commit": {"message": message, "author": author, "committer": None}}


#============================================
class FakeClient:
	"""
	Upstream stand-in applying the inclusive since filter.
	"""

	def __init__(self, commits: list[dict]):
		self.commits = list(commits)
		self.since_calls = []

	def list_commits(self, owner: str, repo: str, since=None) -> list[dict]:
		self.since_calls.append(since)
		if since is None:
			return list(self.commits)
		selected = []
		for raw in self.commits:
			timestamp = commit_record.normalize_commit(raw).commit_timestamp
			if timestamp is not None and timestamp >= since:
				selected.append(raw)
		return selected


#============================================
class IgnoreSinceClient(FakeClient):
	"""
	Upstream that returns every commit regardless of since.
	"""

	def list_commits(self, owner: str, repo: str, since=None) -> list[dict]:
		self.since_calls.append(since)
		return list(self.commits)


#============================================
class FailingClient:
	def list_commits(self, owner: str, repo: str, since=None) -> list[dict]:
		raise FetchError("page 2 failed")


#============================================
def test_since_after_watermark() -> None:
	"""
	Watermark plus one second, or None for an empty store.
	"""
	assert sync_cycle.since_after_watermark(None) is None
	assert sync_cycle.since_after_watermark(T1) == T1 + timedelta(seconds=1)


#============================================
def test_initial_then_incremental_cycle(tmp_path) -> None:
	"""
	First cycle loads full history; second cycle asks since T3+1s and adds nothing.
	"""
	client = FakeClient([make_raw("c3", T3), make_raw("c2", T2), make_raw("c1", T1)])
	messages = []
	with commit_store.CommitStore(str(tmp_path / "store.sqlite")) as store:
		written = sync_cycle.run_cycle("repo", "owner", store, client, log_fn=messages.append)
		assert written == 3
		assert commit_store.count_commits(store, "repo") == 3
		assert watermark.latest_commit_timestamp(store, "repo") == T3

		written = sync_cycle.run_cycle("repo", "owner", store, client, log_fn=messages.append)
		assert written == 0
		assert commit_store.count_commits(store, "repo") == 3
	assert client.since_calls == [None, T3 + timedelta(seconds=1)]
	assert any("initial historical load" in message for message in messages)
	assert any("new commits found after timestamp" in message for message in messages)


#============================================
def test_commit_at_watermark_instant_is_not_fetched(tmp_path) -> None:
	"""
	A new commit sharing the exact watermark timestamp is skipped by the offset.
	"""
	client = FakeClient([make_raw("old", T1)])
	with commit_store.CommitStore(str(tmp_path / "store.sqlite")) as store:
		sync_cycle.run_cycle("repo", "owner", store, client)
		client.commits.append(make_raw("same-instant", T1))
		written = sync_cycle.run_cycle("repo", "owner", store, client)
		hashes = [record.commit_hash for record in commit_store.list_commits(store, "repo")]
	assert written == 0
	assert hashes == ["old"]


#============================================
def test_new_commit_after_watermark_is_added(tmp_path) -> None:
	"""
	Commits later than watermark+1s are picked up and advance the watermark.
	"""
	client = FakeClient([make_raw("c1", T1)])
	with commit_store.CommitStore(str(tmp_path / "store.sqlite")) as store:
		sync_cycle.run_cycle("repo", "owner", store, client)
		before = watermark.latest_commit_timestamp(store, "repo")
		client.commits.append(make_raw("c2", T2))
		written = sync_cycle.run_cycle("repo", "owner", store, client)
		after = watermark.latest_commit_timestamp(store, "repo")
	assert written == 1
	assert after >= before
	assert after == T2


#============================================
def test_reingesting_same_commit_keeps_one_record(tmp_path) -> None:
	"""
	Same hash fetched twice overwrites in place.
	"""
	with commit_store.CommitStore(str(tmp_path / "store.sqlite")) as store:
		sync_cycle.run_cycle("repo", "owner", store, FakeClient([make_raw("dup", T1, "first")]))
		sync_cycle.run_cycle("repo", "owner", store, IgnoreSinceClient([make_raw("dup", T1, "second")]))
		records = commit_store.list_commits(store, "repo")
	assert len(records) == 1
	assert records[0].commit_message == "second"


#============================================
def test_undated_commit_is_stored(tmp_path) -> None:
	"""
	A commit without dates still adds one stored record.
	"""
	client = FakeClient([make_raw("dated", T1), make_raw("undated", None)])
	with commit_store.CommitStore(str(tmp_path / "store.sqlite")) as store:
		sync_cycle.run_cycle("repo", "owner", store, client)
		assert commit_store.count_commits(store, "repo") == 2
		assert watermark.latest_commit_timestamp(store, "repo") == T1


#============================================
def test_fetch_error_aborts_cycle_without_writes(tmp_path) -> None:
	"""
	Fetch failure propagates and nothing is written.
	"""
	with commit_store.CommitStore(str(tmp_path / "store.sqlite")) as store:
		with pytest.raises(FetchError):
			sync_cycle.run_cycle("repo", "owner", store, FailingClient())
		assert commit_store.count_commits(store, "repo") == 0


#============================================
def test_single_flight_guard_skips_overlap() -> None:
	"""
	A trigger arriving during a running cycle is skipped.
	"""
	messages = []
	guard = sync_cycle.SingleFlightGuard(log_fn=messages.append)
	calls = []

	def outer_cycle():
		calls.append("outer")
		assert guard.run(lambda: calls.append("inner")) is False

	assert guard.run(outer_cycle) is True
	assert guard.run(lambda: calls.append("after")) is True
	assert calls == ["outer", "after"]
	assert guard.skipped_count == 1
	assert len(messages) == 1


#============================================
def test_single_flight_guard_releases_on_error() -> None:
	"""
	An exception inside a cycle must not leave the guard locked.
	"""
	guard = sync_cycle.SingleFlightGuard()

	def broken_cycle():
		raise FetchError("boom")

	with pytest.raises(FetchError):
		guard.run(broken_cycle)
	assert guard.run(lambda: None) is True
