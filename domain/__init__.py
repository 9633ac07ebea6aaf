# domain - Instrument records, status constants and operation errors
