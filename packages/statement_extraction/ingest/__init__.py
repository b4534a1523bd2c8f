"""File readers: PDF text and spreadsheet tables."""
