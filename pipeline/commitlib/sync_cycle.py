"""One incremental sync cycle and the guard that keeps cycles from overlapping.

A cycle reads the newest stored commit timestamp, asks GitHub for commits
since one second after it, normalizes them and upserts each one. Nothing
is carried between cycles except what is in the store.
"""

# Standard Library
import threading
from datetime import datetime
from datetime import timedelta

from commitlib import commit_fetcher
from commitlib import commit_record
from commitlib import commit_store
from commitlib import watermark

WATERMARK_OFFSET = timedelta(seconds=1)


#============================================
def since_after_watermark(latest: datetime | None) -> datetime | None:
	"""Return the inclusive since filter for the next fetch.

	The GitHub since filter is inclusive and the watermark is the date of
	a commit that is already stored, so the filter starts one second later.
	Another commit sharing exactly the watermark timestamp is not fetched.

	Args:
		latest: Newest stored commit timestamp, or None for an empty store.

	Returns:
		latest plus one second, or None for a full historical load.
	"""
	if latest is None:
		return None
	return latest + WATERMARK_OFFSET


#============================================
def run_cycle(repo: str, owner: str, store: commit_store.CommitStore, client, log_fn=None) -> int:
	"""Run one fetch, normalize and store pass for owner/repo.

	Fetch errors propagate before anything is written. A store error while
	writing leaves earlier writes in place; the next cycle recomputes the
	watermark from whatever was stored.

	Args:
		repo: Repository name.
		owner: Repository owner.
		store: Open commit store shared across cycles.
		client: Object exposing list_commits(owner, repo, since=None).
		log_fn: Optional one-line logger.

	Returns:
		Number of commit records written.
	"""
	latest = watermark.latest_commit_timestamp(store, repo)
	since = since_after_watermark(latest)
	raw_commits = commit_fetcher.fetch_commits(client, repo, owner, since=since, log_fn=log_fn)
	records = commit_record.normalize_commits(raw_commits)
	for record in records:
		commit_store.put_commit(store, repo, record)
	if log_fn is not None:
		latest_text = latest.isoformat() if latest is not None else "none"
		log_fn(f"Cycle for {owner}/{repo}: watermark={latest_text}, wrote {len(records)} commit record(s).")
	return len(records)


#============================================
class SingleFlightGuard:
	"""
	Skip a trigger while the previous cycle is still running.
	"""

	def __init__(self, log_fn=None):
		self.log_fn = log_fn
		self._lock = threading.Lock()
		self.skipped_count = 0

	#============================================
	def run(self, cycle_fn) -> bool:
		"""
		Run cycle_fn unless another call is in flight; return whether it ran.
		"""
		if not self._lock.acquire(blocking=False):
			self.skipped_count += 1
			if self.log_fn is not None:
				self.log_fn("Previous sync cycle still running; skipping this trigger.")
			return False
		try:
			cycle_fn()
		finally:
			self._lock.release()
		return True
