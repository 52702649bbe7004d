from __future__ import annotations


class NotFoundError(LookupError):
    """A reviewer, repository, team or file does not exist.

    Frequently an expected control-flow signal rather than a failure: the
    resolver uses it to walk up to the parent directory, and the selection
    engine uses it to leave the optional slot empty.
    """
