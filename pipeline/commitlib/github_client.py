import time
from datetime import datetime
from datetime import timezone

from commitlib.errors import FetchError
from commitlib.errors import RateLimitError


#============================================
def normalize_datetime(value: datetime) -> datetime:
	"""
	Normalize datetime to timezone-aware UTC.
	"""
	if value.tzinfo is None:
		return value.replace(tzinfo=timezone.utc)
	return value.astimezone(timezone.utc)


#============================================
def to_utc_iso(value) -> str | None:
	"""
	Convert datetime-like values to ISO-8601 UTC strings.
	"""
	if value is None:
		return None
	if isinstance(value, str):
		return value
	if isinstance(value, datetime):
		return normalize_datetime(value).isoformat()
	return str(value)


#============================================
def git_actor_to_dict(actor) -> dict | None:
	"""
	Convert a PyGithub GitAuthor to the REST {email, date} shape.
	"""
	if actor is None:
		return None
	return {
		"email": getattr(actor, "email", None),
		"date": to_utc_iso(getattr(actor, "date", None)),
	}


#============================================
def commit_to_dict(commit_obj) -> dict:
	"""
	Normalize a PyGithub commit object to REST-like dict shape.

	Reads the fields the list endpoint already returned instead of
	raw_data, which would complete every commit with one extra request.
	"""
	if isinstance(commit_obj, dict):
		return dict(commit_obj)
	git_commit = getattr(commit_obj, "commit", None)
	return {
		"sha": getattr(commit_obj, "sha", ""),
		"commit": {
			"message": getattr(git_commit, "message", "") or "",
			"author": git_actor_to_dict(getattr(git_commit, "author", None)),
			"committer": git_actor_to_dict(getattr(git_commit, "committer", None)),
		},
	}


#============================================
class GitHubClient:
	"""
	Thin PyGithub wrapper for listing repository commits.
	"""

	def __init__(self, token: str, log_fn=None):
		self.log_fn = log_fn
		self._low_remaining_threshold = 5
		self._max_proactive_sleep_seconds = 10
		self._api_call_count = 0
		try:
			from github import Auth
			from github import Github
			from github.GithubException import GithubException
		except ModuleNotFoundError as error:
			raise RuntimeError(
				"Missing dependency: PyGithub. Install it with pip install PyGithub."
			) from error
		self._github_exception_class = GithubException
		self.client = self._build_github_client(Github, Auth, token)

	#============================================
	def _build_github_client(self, github_class, auth_module, token: str):
		"""
		Create Github client with retry disabled.

		PyGithub retries 403/429 by sleeping until the quota resets; a
		cycle must fail fast with RateLimitError instead.
		"""
		if token:
			return github_class(auth=auth_module.Token(token), retry=None)
		return github_class(retry=None)

	#============================================
	def log(self, message: str) -> None:
		"""
		Emit one log line when logger is configured.
		"""
		if self.log_fn is not None:
			self.log_fn(message)

	#============================================
	def record_api_call(self) -> None:
		self._api_call_count += 1

	#============================================
	def api_call_count(self) -> int:
		return self._api_call_count

	#============================================
	def get_core_rate_limit_snapshot(self) -> tuple[int, datetime]:
		"""
		Read core quota remaining/reset from PyGithub 2.x rate-limit data.

		Newer releases nest the core quota under resources.
		"""
		self.record_api_call()
		overview = self.client.get_rate_limit()
		resources = getattr(overview, "resources", None)
		rate_limit = getattr(resources, "core", None) or getattr(overview, "core", None)
		if rate_limit is None:
			raise RuntimeError("Rate limit data does not expose core resource fields.")
		return int(rate_limit.remaining), normalize_datetime(rate_limit.reset)

	#============================================
	def maybe_wait_for_rate_limit(self, context: str) -> None:
		"""
		Sleep until reset when the core quota is nearly exhausted.
		"""
		try:
			remaining, reset_time = self.get_core_rate_limit_snapshot()
		except (RuntimeError, ValueError, OSError, self._github_exception_class) as error:
			self.log(f"Rate limit check ({context}) unavailable: {error}")
			return
		if remaining > self._low_remaining_threshold:
			return
		sleep_seconds = int((reset_time - datetime.now(timezone.utc)).total_seconds()) + 1
		if sleep_seconds <= 0:
			return
		if sleep_seconds > self._max_proactive_sleep_seconds:
			self.log(
				f"Rate limit is low ({remaining}), but reset is {sleep_seconds}s away; "
				+ "continuing without waiting."
			)
			return
		self.log(f"Rate limit is low ({remaining}); sleeping {sleep_seconds}s until reset.")
		time.sleep(sleep_seconds)

	#============================================
	def raise_from_github_error(self, error: Exception, context: str) -> None:
		"""
		Raise RateLimitError for quota failures, FetchError otherwise.
		"""
		status = getattr(error, "status", None)
		if status not in (403, 429):
			raise FetchError(f"GitHub API request failed while {context}: {error}") from error
		reset_text = "unknown"
		remaining_text = "unknown"
		try:
			remaining, reset_time = self.get_core_rate_limit_snapshot()
			reset_text = reset_time.isoformat()
			remaining_text = str(remaining)
		except (RuntimeError, ValueError, OSError, self._github_exception_class):
			pass
		raise RateLimitError(
			"GitHub API rate limit exceeded while "
			+ f"{context}; remaining={remaining_text}; reset_at={reset_text}. "
			+ "Set useGithubToken and GITHUB_PAT for higher limits."
		) from error

	#============================================
	def call_api(self, context: str, call_fn):
		"""
		Run one API call, converting GitHub and transport failures to FetchError.
		"""
		try:
			self.record_api_call()
			return call_fn()
		except self._github_exception_class as error:
			self.raise_from_github_error(error, context)
		except OSError as error:
			raise FetchError(f"Network failure while {context}: {error}") from error

	#============================================
	def list_commits(self, owner: str, repo: str, since: datetime | None = None) -> list[dict]:
		"""
		List every commit of owner/repo, following all result pages.

		since is inclusive, matching the GitHub API filter.
		"""
		full_name = f"{owner}/{repo}"
		self.maybe_wait_for_rate_limit(f"list_commits {full_name}")
		return self.call_api(
			f"listing commits for {full_name}",
			lambda: self._list_commits_live(full_name, since),
		)

	#============================================
	def _list_commits_live(self, full_name: str, since: datetime | None) -> list[dict]:
		repo_obj = self.client.get_repo(full_name)
		kwargs = {}
		if since is not None:
			kwargs["since"] = normalize_datetime(since)
		return [commit_to_dict(commit_obj) for commit_obj in repo_obj.get_commits(**kwargs)]
