"""LLM provider adapters (OpenAI Responses, OpenAI Chat, Ollama)."""
