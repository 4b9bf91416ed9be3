"""Validator lifecycle states."""

from enum import Enum
from typing import Optional


class ValidatorState(str, Enum):
    UNKNOWN = "unknown"
    PENDING_INITIALIZED = "pending_initialized"
    PENDING_QUEUED = "pending_queued"
    ACTIVE_ONGOING = "active_ongoing"
    ACTIVE_EXITING = "active_exiting"
    ACTIVE_SLASHED = "active_slashed"
    EXITED_UNSLASHED = "exited_unslashed"
    EXITED_SLASHED = "exited_slashed"
    WITHDRAWAL_POSSIBLE = "withdrawal_possible"
    WITHDRAWAL_DONE = "withdrawal_done"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, text: str) -> "ValidatorState":
        if not isinstance(text, str):
            raise ValueError(f"unrecognised validator state {text!r}")
        try:
            return cls(text.lower())
        except ValueError:
            raise ValueError(f"unrecognised validator state {text}") from None

    def is_pending(self) -> bool:
        return self in (ValidatorState.PENDING_INITIALIZED, ValidatorState.PENDING_QUEUED)

    def is_active(self) -> bool:
        return self in (
            ValidatorState.ACTIVE_ONGOING,
            ValidatorState.ACTIVE_EXITING,
            ValidatorState.ACTIVE_SLASHED,
        )

    def has_activated(self) -> bool:
        return self.is_active() or self.has_exited()

    def is_attesting(self) -> bool:
        return self in (ValidatorState.ACTIVE_ONGOING, ValidatorState.ACTIVE_EXITING)

    def is_exited(self) -> bool:
        return self in (ValidatorState.EXITED_UNSLASHED, ValidatorState.EXITED_SLASHED)

    def has_exited(self) -> bool:
        return self.is_exited() or self in (
            ValidatorState.WITHDRAWAL_POSSIBLE,
            ValidatorState.WITHDRAWAL_DONE,
        )

    def has_balance(self) -> bool:
        return self is not ValidatorState.UNKNOWN


def validator_to_state(
    validator,
    balance: Optional[int],
    current_epoch: int,
    far_future_epoch: int,
) -> ValidatorState:
    """Derive the lifecycle state of a validator record at ``current_epoch``.

    Used for backends that return the raw record without a status.
    """
    if validator is None:
        return ValidatorState.UNKNOWN

    activation_epoch = int(validator.activation_epoch)
    exit_epoch = int(validator.exit_epoch)
    slashed = bool(validator.slashed)

    if activation_epoch > current_epoch:
        if int(validator.activation_eligibility_epoch) == far_future_epoch:
            return ValidatorState.PENDING_INITIALIZED
        return ValidatorState.PENDING_QUEUED
    if exit_epoch == far_future_epoch:
        return ValidatorState.ACTIVE_ONGOING
    if exit_epoch > current_epoch:
        return ValidatorState.ACTIVE_SLASHED if slashed else ValidatorState.ACTIVE_EXITING
    if int(validator.withdrawable_epoch) > current_epoch:
        return ValidatorState.EXITED_SLASHED if slashed else ValidatorState.EXITED_UNSLASHED
    if balance is not None and balance == 0:
        return ValidatorState.WITHDRAWAL_DONE
    return ValidatorState.WITHDRAWAL_POSSIBLE
