"""HTTP timeout configuration utilities.

Generation against a local model can stream for minutes, while connection
problems should surface quickly; httpx.Timeout keeps the two separate.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx

if TYPE_CHECKING:
    from meeting_summarizer import config


def get_http_timeout(
    cfg: config.Config,
    connect_timeout: float | None = None,
    read_timeout: float | None = None,
    write_timeout: float | None = None,
    pool_timeout: float | None = None,
) -> httpx.Timeout:
    """Get HTTP timeout configuration for httpx-based clients.

    Args:
        cfg: Configuration object
        connect_timeout: Connect timeout in seconds (default: 10.0)
        read_timeout: Read timeout in seconds (default: cfg.ollama_timeout)
        write_timeout: Write timeout in seconds (default: 10.0)
        pool_timeout: Pool timeout in seconds (default: 10.0)

    Returns:
        httpx.Timeout with separate connect/read/write/pool values

    Note:
        The connect timeout is always kept strictly below the read timeout.
    """
    connect = connect_timeout if connect_timeout is not None else 10.0
    read = read_timeout if read_timeout is not None else float(cfg.ollama_timeout)
    write = write_timeout if write_timeout is not None else 10.0
    pool = pool_timeout if pool_timeout is not None else 10.0

    if connect >= read:
        connect = min(max(0.1, read * 0.5), read - 0.1)

    return httpx.Timeout(
        connect=connect,
        read=read,
        write=write,
        pool=pool,
    )
