class ReportError(ValueError):
    """Base class for errors raised while classifying or processing a report."""


class UnrecognizedReportType(ReportError):
    """The filename matched none of the known report patterns."""

    def __init__(self, filename: str):
        self.filename = filename
        super().__init__(
            f"File name '{filename}' does not match any known report type. "
            "Check that it contains the expected keywords (e.g. 'Inventory Enquiry AU')."
        )


class UnsupportedReportType(ReportError):
    """A report type outside the six known types reached the engine."""

    def __init__(self, value):
        self.value = value
        super().__init__(f"Unsupported report type: {value!r}")


class WorkbookReadError(ReportError):
    """The uploaded content could not be read as a spreadsheet workbook."""
