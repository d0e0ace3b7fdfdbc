"""Reasoning steps: tool selection, chaining, response generation and the pipeline."""
