"""QR/barcode triggered stock decrement service backed by a Notion database."""
