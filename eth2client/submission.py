"""Attestation submission for backends that insist on a subnet ID.

The backend wants the attestation's subnet alongside it but offers no way to
compute it. It does name the subnet it expected when it refuses one, so the
attestation goes out with subnet 0 first and, if refused, once more with the
subnet taken from the refusal.
"""

import logging
import re
from typing import Awaitable, Callable, Optional, Union

from .exceptions import BackendRejected, SubmissionFailed

logger = logging.getLogger(__name__)

DEFAULT_SUBNET = 0

_EXPECTED_SUBNET = re.compile(r".*expected: SubnetId\(([0-9]+)\)")


def is_accepted(response: Union[str, bytes, None]) -> bool:
    """An empty or ``null`` body means the attestation was taken."""
    if response is None:
        return True
    if isinstance(response, (bytes, bytearray)):
        response = response.decode("utf-8", errors="replace")
    return response.strip() in ("", "null")


def expected_subnet(message: str) -> Optional[int]:
    """Pull the subnet the backend expected out of its refusal message."""
    match = _EXPECTED_SUBNET.search(message)
    if match is None:
        return None
    return int(match.group(1))


async def _attempt(send: Callable[[int], Awaitable[bytes]], subnet: int) -> tuple[bool, str, int]:
    try:
        response = await send(subnet)
    except BackendRejected as e:
        return False, e.message, e.status
    if is_accepted(response):
        return True, "", 200
    return False, response.decode("utf-8", errors="replace"), 200


async def submit_with_subnet_retry(
    send: Callable[[int], Awaitable[bytes]],
    log: Optional[logging.LoggerAdapter] = None,
) -> None:
    """Run the two-attempt submission.

    Args:
        send: posts the attestation tagged with the given subnet and returns
            the raw response body
        log: logger for this submission

    Raises:
        SubmissionFailed: the refusal named no subnet, or the retry was
            refused as well
    """
    log = log or logger

    accepted, message, status = await _attempt(send, DEFAULT_SUBNET)
    if accepted:
        return

    subnet = expected_subnet(message)
    if subnet is None:
        log.warning(f"No subnet ID supplied in error message: {message}")
        raise SubmissionFailed(f"no subnet ID supplied in error message: {message}", status)

    log.debug(f"Resubmitting attestation with subnet {subnet}")
    accepted, message, status = await _attempt(send, subnet)
    if not accepted:
        raise SubmissionFailed(f"failed to submit attestation: {message}", status)
