"""llm-cli: bounded prompt/response pipeline for interchangeable LLM backends."""

__version__ = "0.1.0"
