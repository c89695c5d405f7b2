"""
Record contracts.

Everything read back from the signaling store was written by another process,
possibly a browser. Records are checked against a contract before they reach
the peer connection.
"""


class BaseType:

    def __init__(self):
        raise Exception("Cannot instantiate")

    @staticmethod
    def validate():
        raise NotImplementedError("Subclasses should implement this!")


class NumberType(BaseType):

    @staticmethod
    def validate(value):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise TypeError("Value must be a number.")


class StringType(BaseType):

    @staticmethod
    def validate(value):
        if not isinstance(value, str):
            raise TypeError("Value must be a string.")


class ChoiceType(BaseType):

    def __init__(self, *choices):
        self.choices = choices

    def validate(self, value):
        if value not in self.choices:
            allowed = ", ".join(repr(choice) for choice in self.choices)
            raise TypeError(f"Value must be one of {allowed}.")


class OptionalType(BaseType):

    def __init__(self, item_type):
        self.item_type = item_type

    def validate(self, value):
        if value is not None:
            self.item_type.validate(value)


def validate_contract(contract, data):
    if not isinstance(data, dict):
        raise TypeError("Record must be a mapping.")
    for key, value in contract.items():
        if key not in data:
            if isinstance(value, OptionalType):
                continue
            raise KeyError(f"Missing key: {key}")
        if isinstance(value, dict):
            validate_contract(value, data[key])
        else:
            value.validate(data[key])


class ContractValidationError(Exception):
    """Exception raised when contract validation fails."""

    def __init__(self, error_type: str, message: str):
        self.error_type = error_type
        self.message = message
        super().__init__(message)


def validate_record(contract, data, kind: str):
    """
    Validate a store record and raise a single exception type on failure.

    Args:
        contract: The contract schema to validate against
        data: The record read from the store
        kind: Human readable record kind used in the error message

    Raises:
        ContractValidationError: error_type is "missing_field" or "invalid_type"
    """
    from tools.logger import log_warning

    try:
        validate_contract(contract, data)
    except KeyError as e:
        log_warning(f"Invalid {kind} record - missing field: {e}")
        raise ContractValidationError(
            "missing_field", f"Invalid {kind}: missing required field {e}"
        ) from e
    except TypeError as e:
        log_warning(f"Invalid {kind} record - type mismatch: {e}")
        raise ContractValidationError(
            "invalid_type", f"Invalid {kind}: {e}"
        ) from e
