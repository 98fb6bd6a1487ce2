"""Domain-specific errors for bledissect."""


class BledissectError(Exception):
    """Base error for bledissect."""


class MalformedRecord(BledissectError):
    """Raised when a record buffer violates the type/length framing."""


class DecoderNotAvailable(BledissectError):
    """Raised when no decoder is registered for a record type."""


class DecodingError(BledissectError):
    """Base error for a decoder rejecting its input."""


class IncorrectLength(DecodingError):
    """Raised when input is shorter than the record layout requires."""


class IncorrectType(DecodingError):
    """Raised when a decoder is handed a record of another type."""


class FailedDecoding(DecodingError):
    """Raised when a field cannot be extracted from otherwise valid input."""


class LayoutValidationError(BledissectError):
    """Raised when a layout file does not conform to schema or semantics."""


class LayoutLoadError(BledissectError):
    """Raised when reading layout sources fails."""


class ReplayError(BledissectError):
    """Raised when a replay file cannot be read or validated."""


class ScannerError(BledissectError):
    """Raised when live BLE scanning fails."""


class InputError(BledissectError):
    """Raised when user-supplied hex or record types cannot be parsed."""
