from datetime import datetime


#============================================
def fetch_commits(client, repo: str, owner: str, since: datetime | None = None, log_fn=None) -> list[dict]:
	"""
	Fetch all raw commits for owner/repo at or after since.

	Without since the full history is loaded. The client follows every
	result page; a failing page raises FetchError and nothing is returned.
	"""
	commits = list(client.list_commits(owner, repo, since=since))
	if log_fn is not None:
		if since is not None:
			log_fn(f"{len(commits)} new commits found after timestamp {since.isoformat()}")
		else:
			log_fn(f"{len(commits)} new commits found for initial historical load")
	return commits
