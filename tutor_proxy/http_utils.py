# HTTP helper functions
import time

import requests

# Single-byte reads return as soon as any data arrives, so a trickling
# body cannot hold a read open past the deadline
READ_CHUNK_SIZE = 1


def deadline_after(timeout: float) -> float:
    return time.monotonic() + timeout


def read_body(response: requests.Response, deadline: float, timeout: float) -> bytes:
    """
    Read a streamed response body, giving up once ``deadline`` has passed.

    The requests ``timeout`` only bounds the connect step and each socket
    read; this bounds the whole call. The caller must close ``response``
    (a ``with`` block), which drops the connection when the body is unread.

    Raises:
        requests.exceptions.ReadTimeout: the deadline passed before the body completed
    """
    chunks = []
    if time.monotonic() > deadline:
        raise requests.exceptions.ReadTimeout(f"No complete response within {timeout}s")
    for chunk in response.iter_content(chunk_size=READ_CHUNK_SIZE):
        chunks.append(chunk)
        if time.monotonic() > deadline:
            raise requests.exceptions.ReadTimeout(f"No complete response within {timeout}s")
    return b"".join(chunks)
