"""posprep: spreadsheet combining, SKU matching and label packaging for POS imports."""

__version__ = "0.3.0"
