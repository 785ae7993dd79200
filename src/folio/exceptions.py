class FolioError(Exception):
    """Base class for errors raised by folio."""


class InvalidTransactionError(FolioError, ValueError):
    """A transaction is missing a required field or cannot be interpreted."""

    def __init__(self, message: str, row_number: int | None = None):
        """Initialize the error.

        Args:
            message: Description of what is wrong with the transaction.
            row_number: 1-based worksheet row the transaction was read from, if any.
        """
        if row_number is not None:
            message = f"Row {row_number}: {message}"
        super().__init__(message)
        self.row_number = row_number


class MissingSheetError(FolioError, KeyError):
    """The workbook lacks a sheet that is required."""

    def __str__(self):
        return str(self.args[0]) if self.args else ""
