"""Sum the Total column of a CSV and write a gratuity report workbook."""

__version__ = "0.1.0"
