"""
Typed exception hierarchy for the expense ledger.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the ledger (the HTTP layer, scripts, tests) must react to failures
by category, not by parsing message strings:

  - Validation failures are rejected before any row is touched.
  - Conflicts mean a referenced record is not in the source state the action
    expects ("already applied", "not yet applied", "already settled").
  - NotFound means an id or application number does not exist.
  - Internal failures mean the store misbehaved; the whole request may be
    retried because nothing was partially committed.

Every class carries a ``code`` class attribute (machine-readable, API-safe)
and keeps its context as attributes rather than inside the message.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ExpenseLedgerError (base)
    |
    +-- ValidationError
    |   +-- EmptyBatchError
    |   +-- BatchTooLargeError
    |   +-- MissingDueDateError
    |   +-- MissingApplicationNumberError
    |   +-- DueDateInPastError
    |   +-- InvalidAmountError
    |   +-- InvalidRateError
    |   +-- InvalidCurrencyCodeError
    |   +-- InvalidCostFieldError
    |   +-- InvalidCounterpartyError
    |   +-- MixedCostTypesError
    |   +-- MixedCurrenciesError
    |
    +-- ConflictError
    |   +-- CostStatusConflictError
    |   +-- InvalidStatusTransitionError
    |   +-- ApplicationAlreadyCanceledError
    |   +-- ApplicationHasSettledCostsError
    |   +-- ImmutabilityViolationError
    |   +-- ConcurrencyError
    |       +-- OptimisticLockError
    |       +-- LockTimeoutError
    |
    +-- NotFoundError
    |   +-- CostNotFoundError
    |   +-- ApplicationNotFoundError
    |
    +-- InternalLedgerError
        +-- SequenceAllocationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category    | Code                          | When Raised
------------|-------------------------------|--------------------------------------
Validation  | EMPTY_BATCH                   | No cost ids supplied
            | BATCH_TOO_LARGE               | More ids than max_batch_size
            | MISSING_DUE_DATE              | Apply without a due date
            | MISSING_APPLICATION_NUMBER    | Cancel without an application number
            | DUE_DATE_IN_PAST              | Due date before the business date
            | INVALID_AMOUNT                | Non-numeric or non-positive amount
            | INVALID_RATE                  | Non-numeric or negative VAT/WHT rate
            | INVALID_CURRENCY_CODE         | Empty or over-long currency code
            | INVALID_COST_FIELD            | Missing/unknown field on a cost line
            | INVALID_COUNTERPARTY          | Counterparty type does not match AR/AP
            | MIXED_COST_TYPES              | AR and AP lines in one application
            | MIXED_CURRENCIES              | Several currencies in one application
------------|-------------------------------|--------------------------------------
Conflict    | COST_STATUS_CONFLICT          | Batch member not in expected status
            | INVALID_STATUS_TRANSITION     | Illegal lifecycle edge
            | APPLICATION_ALREADY_CANCELED  | Cancel of a canceled application
            | APPLICATION_HAS_SETTLED_COSTS | Cancel while a member is settled
            | IMMUTABILITY_VIOLATION        | Edit of a locked field / row
            | OPTIMISTIC_LOCK_CONFLICT      | Row version changed underneath us
            | LOCK_TIMEOUT                  | Row lock not acquired in time
------------|-------------------------------|--------------------------------------
NotFound    | COST_NOT_FOUND                | Unknown cost id(s)
            | APPLICATION_NOT_FOUND         | Unknown application number
------------|-------------------------------|--------------------------------------
Internal    | SEQUENCE_ALLOCATION_FAILED    | Application number not allocated

===============================================================================
HANDLING PATTERNS
===============================================================================

    try:
        ledger.apply(cost_ids, due_date=due, remarks=None)
    except CostStatusConflictError as e:
        show_locked(e.cost_ids, e.expected_status)
    except ValidationError as e:
        api_response(400, code=e.code, error=str(e))

The HTTP layer maps categories to status codes: ValidationError and
ConflictError -> 400, NotFoundError -> 404, InternalLedgerError -> 500.
"""


class ExpenseLedgerError(Exception):
    """
    Base exception for all expense ledger errors.

    All subclasses must have a ``code`` class attribute for
    machine-readable error identification.
    """

    code: str = "EXPENSE_LEDGER_ERROR"


# Validation


class ValidationError(ExpenseLedgerError):
    """Malformed or missing input, rejected before any mutation."""

    code: str = "VALIDATION_ERROR"


class EmptyBatchError(ValidationError):
    """An action was requested without any cost ids."""

    code: str = "EMPTY_BATCH"

    def __init__(self, action: str):
        self.action = action
        super().__init__(f"At least one cost must be selected for {action}")


class BatchTooLargeError(ValidationError):
    """More cost ids than the configured batch limit."""

    code: str = "BATCH_TOO_LARGE"

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"Batch of {size} costs exceeds the limit of {limit}")


class MissingDueDateError(ValidationError):
    """Apply was requested without a due date."""

    code: str = "MISSING_DUE_DATE"

    def __init__(self):
        super().__init__("A due date is required to apply costs")


class MissingApplicationNumberError(ValidationError):
    """Cancel-application was requested without a number."""

    code: str = "MISSING_APPLICATION_NUMBER"

    def __init__(self):
        super().__init__("An application number is required")


class DueDateInPastError(ValidationError):
    """The due date lies before the current business date."""

    code: str = "DUE_DATE_IN_PAST"

    def __init__(self, due_date: str, today: str):
        self.due_date = due_date
        self.today = today
        super().__init__(f"Due date {due_date} is earlier than {today}")


class InvalidAmountError(ValidationError):
    """Cost amount is not a positive decimal."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, value: str, reason: str = "must be a positive number"):
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid amount {value!r}: {reason}")


class InvalidRateError(ValidationError):
    """VAT or WHT rate is not a non-negative decimal."""

    code: str = "INVALID_RATE"

    def __init__(self, rate_name: str, value: str):
        self.rate_name = rate_name
        self.value = value
        super().__init__(
            f"Invalid {rate_name} {value!r}: must be a non-negative number"
        )


class InvalidCurrencyCodeError(ValidationError):
    """Currency code is empty or too long."""

    code: str = "INVALID_CURRENCY_CODE"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Invalid currency code: {currency!r}")


class InvalidCostFieldError(ValidationError):
    """A cost field is missing, unknown or not editable through this path."""

    code: str = "INVALID_COST_FIELD"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid cost field '{field}': {reason}")


class InvalidCounterpartyError(ValidationError):
    """Counterparty type does not match the cost type."""

    code: str = "INVALID_COUNTERPARTY"

    def __init__(self, cost_type: str, settlement_unit_type: str, expected: str):
        self.cost_type = cost_type
        self.settlement_unit_type = settlement_unit_type
        self.expected = expected
        super().__init__(
            f"{cost_type} costs must settle with a {expected}, "
            f"got {settlement_unit_type!r}"
        )


class MixedCostTypesError(ValidationError):
    """An application may only group costs of one type (AR or AP)."""

    code: str = "MIXED_COST_TYPES"

    def __init__(self, types: list[str]):
        self.types = types
        super().__init__(
            f"One application must contain a single cost type, got {types}"
        )


class MixedCurrenciesError(ValidationError):
    """An application may only group costs in one currency."""

    code: str = "MIXED_CURRENCIES"

    def __init__(self, currencies: list[str]):
        self.currencies = currencies
        super().__init__(
            f"One application must contain a single currency, got {currencies}"
        )


# Conflict


class ConflictError(ExpenseLedgerError):
    """A referenced record is not in the state the action requires."""

    code: str = "CONFLICT"


class CostStatusConflictError(ConflictError):
    """One or more batch members are not in the expected source status."""

    code: str = "COST_STATUS_CONFLICT"

    def __init__(self, action: str, expected_status: str, cost_ids: list[str]):
        self.action = action
        self.expected_status = expected_status
        self.cost_ids = cost_ids
        super().__init__(
            f"Cannot {action}: {len(cost_ids)} cost(s) are not {expected_status}"
        )


class InvalidStatusTransitionError(ConflictError):
    """The lifecycle table has no edge for this (status, action) pair."""

    code: str = "INVALID_STATUS_TRANSITION"

    def __init__(self, current_status: str, action: str):
        self.current_status = current_status
        self.action = action
        super().__init__(f"Cannot {action} a cost in status '{current_status}'")


class ApplicationAlreadyCanceledError(ConflictError):
    """The application was canceled before."""

    code: str = "APPLICATION_ALREADY_CANCELED"

    def __init__(self, application_number: str):
        self.application_number = application_number
        super().__init__(f"Application {application_number} is already canceled")


class ApplicationHasSettledCostsError(ConflictError):
    """Cancel-application refused because a member has been settled."""

    code: str = "APPLICATION_HAS_SETTLED_COSTS"

    def __init__(self, application_number: str, settled_cost_ids: list[str]):
        self.application_number = application_number
        self.settled_cost_ids = settled_cost_ids
        super().__init__(
            f"Application {application_number} has "
            f"{len(settled_cost_ids)} settled cost(s) and cannot be canceled"
        )


class ImmutabilityViolationError(ConflictError):
    """Attempted to modify or delete a locked cost record or field."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


class ConcurrencyError(ConflictError):
    """Base exception for concurrency-related conflicts."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


class LockTimeoutError(ConcurrencyError):
    """Row locks could not be acquired within the configured wait."""

    code: str = "LOCK_TIMEOUT"

    def __init__(self, action: str, detail: str = ""):
        self.action = action
        self.detail = detail
        super().__init__(
            f"Could not lock costs for {action}; another request holds them"
        )


# Not found


class NotFoundError(ExpenseLedgerError):
    """A referenced identifier does not exist."""

    code: str = "NOT_FOUND"


class CostNotFoundError(NotFoundError):
    """One or more cost ids do not exist."""

    code: str = "COST_NOT_FOUND"

    def __init__(self, cost_ids: list[str]):
        self.cost_ids = cost_ids
        super().__init__(f"Cost(s) not found: {', '.join(cost_ids)}")


class ApplicationNotFoundError(NotFoundError):
    """No application (or no records) exist for this number."""

    code: str = "APPLICATION_NOT_FOUND"

    def __init__(self, application_number: str):
        self.application_number = application_number
        super().__init__(f"Application not found: {application_number}")


# Internal


class InternalLedgerError(ExpenseLedgerError):
    """Store-level failure; the request may be retried as a whole."""

    code: str = "INTERNAL_ERROR"


class SequenceAllocationError(InternalLedgerError):
    """An application number could not be allocated."""

    code: str = "SEQUENCE_ALLOCATION_FAILED"

    def __init__(self, sequence_name: str, reason: str):
        self.sequence_name = sequence_name
        self.reason = reason
        super().__init__(
            f"Could not allocate from sequence {sequence_name}: {reason}"
        )
