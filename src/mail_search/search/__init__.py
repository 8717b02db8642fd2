"""
Indexing and retrieval engine.

- analyzers: term extraction and body normalization
- dedup: canonical document keys
- sqlite_storage: documents + postings in SQLite
- indexer: batched ingestion
- query: query string parsing
- retrieval: boolean AND/OR evaluation
- fuzzy: misspelling-tolerant term expansion
- snippet: result context windows
- related: related-document strategies
"""
