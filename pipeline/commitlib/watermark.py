from datetime import datetime

from commitlib import commit_store


#============================================
def latest_commit_timestamp(store: commit_store.CommitStore, repo: str) -> datetime | None:
	"""
	Return the newest stored commit timestamp for repo, or None.

	Records without a timestamp never replace a known maximum.
	"""
	max_timestamp = None
	for record in commit_store.list_commits(store, repo):
		timestamp = record.commit_timestamp
		if timestamp is None:
			continue
		if max_timestamp is None or timestamp > max_timestamp:
			max_timestamp = timestamp
	return max_timestamp
