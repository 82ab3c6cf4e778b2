"""Node id generation."""
import itertools
import uuid

_counter = itertools.count(1)


def new_id(prefix: str) -> str:
    """
    Return a process-unique id such as ``f_12_3fa9c``.

    The counter guarantees uniqueness within the process; the random suffix
    keeps ids from different processes from lining up.
    """
    return f"{prefix}_{next(_counter)}_{uuid.uuid4().hex[:5]}"
