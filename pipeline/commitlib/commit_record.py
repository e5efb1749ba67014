"""Commit record shape and normalization of raw GitHub commit payloads.

Raw commits follow the REST list-commits shape:
{sha, commit: {message, author?: {email, date}, committer?: {email, date}}}.
"""

from dataclasses import dataclass
from datetime import datetime
from datetime import timezone


#============================================
@dataclass(frozen=True)
class CommitRecord:
	commit_hash: str
	commit_timestamp: datetime | None
	commit_message: str
	commit_email: str | None

	#============================================
	def to_dict(self) -> dict:
		"""
		Serialize to a JSON-safe mapping for the store.
		"""
		timestamp_text = None
		if self.commit_timestamp is not None:
			timestamp_text = self.commit_timestamp.isoformat()
		return {
			"commitHash": self.commit_hash,
			"commitTimestamp": timestamp_text,
			"commitMessage": self.commit_message,
			"commitEmail": self.commit_email,
		}

	#============================================
	@classmethod
	def from_dict(cls, data: dict) -> "CommitRecord":
		"""
		Rebuild a record from its stored mapping.
		"""
		return cls(
			commit_hash=data["commitHash"],
			commit_timestamp=parse_commit_date(data.get("commitTimestamp")),
			commit_message=data.get("commitMessage") or "",
			commit_email=data.get("commitEmail"),
		)


#============================================
def parse_commit_date(value) -> datetime | None:
	"""
	Parse an ISO-8601 date (or datetime) into timezone-aware UTC.

	Empty or unparsable values mean the date is absent.
	"""
	if value is None or value == "":
		return None
	if isinstance(value, datetime):
		parsed = value
	else:
		try:
			parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
		except ValueError:
			return None
	if parsed.tzinfo is None:
		return parsed.replace(tzinfo=timezone.utc)
	return parsed.astimezone(timezone.utc)


#============================================
def resolve_timestamp_and_email(commit_data: dict) -> tuple[datetime | None, str | None]:
	"""
	Pick date and email from the author, or both from the committer.

	The author wins whenever it carries a date, even if its email is
	missing. Only a missing author date switches both fields to the
	committer, so a record never mixes author email with committer date.
	"""
	author = commit_data.get("author") or {}
	committer = commit_data.get("committer") or {}
	author_date = parse_commit_date(author.get("date"))
	if author_date is not None:
		return author_date, author.get("email")
	committer_date = parse_commit_date(committer.get("date"))
	if committer_date is not None:
		return committer_date, committer.get("email")
	return None, None


#============================================
def normalize_commit(raw_commit: dict) -> CommitRecord:
	commit_data = raw_commit.get("commit") or {}
	timestamp, email = resolve_timestamp_and_email(commit_data)
	return CommitRecord(
		commit_hash=raw_commit["sha"],
		commit_timestamp=timestamp,
		commit_message=commit_data.get("message") or "",
		commit_email=email,
	)


#============================================
def normalize_commits(raw_commits: list[dict]) -> list[CommitRecord]:
	"""
	Map raw commits one-to-one, in order, to CommitRecords.
	"""
	return [normalize_commit(raw_commit) for raw_commit in raw_commits]
