"""
Structured git log output.

The log is requested with a format that separates fields with ASCII unit
separators and records with record separators, neither of which can appear
in a hash, author or date, so hashes come back byte-for-byte and multi-line
descriptions survive intact.
"""

from typing import List, Tuple

from ..models.runtime import Revision

FIELD_SEP = "\x1f"
RECORD_SEP = "\x1e"

# hash, abbreviated parents, author, strict ISO-8601 date, raw description
LOG_FORMAT = FIELD_SEP.join(["%H", "%p", "%an <%ae>", "%aI", "%B"]) + RECORD_SEP

_FIELD_COUNT = 5


def parse_log(output: str) -> List[Tuple[Revision, List[str]]]:
    """
    Parse ``git log --format=LOG_FORMAT`` output.

    Returns:
        (revision, parent references) pairs, most recent first. The parent
        references are the abbreviated parent hashes as printed by git,
        first parent first, and empty for a root commit; the revision's
        own ``parent`` is left empty for the caller to fill in.

    Raises:
        ValueError: If a record does not have the expected fields
    """
    entries = []
    for record in output.split(RECORD_SEP):
        record = record.lstrip("\r\n")
        if not record.strip():
            continue
        fields = record.split(FIELD_SEP, _FIELD_COUNT - 1)
        if len(fields) != _FIELD_COUNT:
            raise ValueError(f"malformed log record: {record[:80]!r}")
        hash_, parents, author, date, desc = fields
        parent_refs = parents.split()
        revision = Revision(
            hash=hash_.strip(),
            author=author,
            date=date.strip(),
            desc=desc.strip(),
        )
        entries.append((revision, parent_refs))
    return entries
