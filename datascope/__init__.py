"""DataScope Analyzer: LLM-backed data cleaning, column inference and chart export."""
